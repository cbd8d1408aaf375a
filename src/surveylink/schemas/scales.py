"""Scale declarations used by the straight-lining detector.

Each scale lists its item fields explicitly. Items that sit inside a scale's
block in the questionnaire but do not belong to it (the attention check in the
PBSM block) are declared in NON_SCALE_ITEMS and must never appear in a scale.

Declarations are checked against the baseline schema when this module is
imported, so a renamed field fails at startup rather than mid-run. The
straight-lining detector runs the same check on whatever scales it is given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from surveylink.schemas.study import (
    ATTENTION_FIELD,
    BASELINE_FIELDS,
    CUDIT_ITEMS,
    K6_ITEMS,
    MMM_ITEMS,
    NORMS_ITEMS,
    PBSM_ITEMS,
)


@dataclass(frozen=True)
class Scale:
    name: str
    items: tuple[str, ...]


SCALES = (
    Scale("cudit", tuple(CUDIT_ITEMS)),
    Scale("mmm", tuple(MMM_ITEMS)),
    Scale("pbsm", tuple(PBSM_ITEMS)),
    Scale("k6", tuple(K6_ITEMS)),
    Scale("norms", tuple(NORMS_ITEMS)),
)

NON_SCALE_ITEMS = frozenset({ATTENTION_FIELD})


def validate_scales(
    scales: Iterable[Scale],
    fields: Iterable[str],
    non_scale_items: Iterable[str] = NON_SCALE_ITEMS,
) -> None:
    """Raise ValueError if a scale declaration does not fit the schema.

    Checks performed:
    - Scale names are unique
    - Every scale has at least two items
    - Every item is a known field
    - No item is a designated non-scale item
    - No item belongs to two scales
    """
    field_set = set(fields)
    excluded = set(non_scale_items)
    errors = []
    seen_names: set[str] = set()
    owner: dict[str, str] = {}

    for scale in scales:
        if scale.name in seen_names:
            errors.append(f"duplicate scale name '{scale.name}'")
        seen_names.add(scale.name)

        if len(scale.items) < 2:
            errors.append(f"scale '{scale.name}' needs at least two items")

        for item in scale.items:
            if item not in field_set:
                errors.append(f"scale '{scale.name}' item '{item}' is not a known field")
            if item in excluded:
                errors.append(f"scale '{scale.name}' includes non-scale item '{item}'")
            if item in owner and owner[item] != scale.name:
                errors.append(
                    f"item '{item}' declared in both '{owner[item]}' and '{scale.name}'"
                )
            owner[item] = scale.name

    if errors:
        raise ValueError("Scale declarations invalid:\n  - " + "\n  - ".join(errors))


validate_scales(SCALES, BASELINE_FIELDS)
