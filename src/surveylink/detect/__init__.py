"""Quality signal detectors.

Every detector takes the unified dataset and returns a copy with its own flag
column(s) added. Detectors read only linked fields, never each other's flags,
so they can run in any order.
"""

from surveylink.detect.attention import flag_attention_check
from surveylink.detect.inconsistency import (
    computed_age,
    flag_age,
    flag_cannabis_duplicate,
    flag_cannabis_ever,
    flag_frequency_3m,
    flag_inconsistencies,
    flag_use_3m_6m,
)
from surveylink.detect.location import flag_location, reported_province
from surveylink.detect.speeding import completion_minutes, flag_speeders, speeding_cutoff
from surveylink.detect.straightlining import (
    SL_MAX_SCALES,
    flag_straightlining,
    straightline_by_scale,
)

__all__ = [
    "flag_speeders",
    "completion_minutes",
    "speeding_cutoff",
    "flag_straightlining",
    "straightline_by_scale",
    "SL_MAX_SCALES",
    "flag_inconsistencies",
    "flag_cannabis_ever",
    "flag_cannabis_duplicate",
    "flag_frequency_3m",
    "flag_use_3m_6m",
    "flag_age",
    "computed_age",
    "flag_attention_check",
    "flag_location",
    "reported_province",
]
