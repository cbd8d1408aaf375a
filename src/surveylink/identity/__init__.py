"""Participant identity registry and validation."""

from surveylink.identity.registry import (
    CodeRegistry,
    generate_registry,
    load_registry,
    registry_from_frame,
    write_registry,
)
from surveylink.identity.validate_identity import (
    flag_ac_duplicate,
    flag_blank_code,
    flag_invalid_code,
    validate_identity,
)

__all__ = [
    "CodeRegistry",
    "load_registry",
    "registry_from_frame",
    "generate_registry",
    "write_registry",
    "validate_identity",
    "flag_invalid_code",
    "flag_blank_code",
    "flag_ac_duplicate",
]
