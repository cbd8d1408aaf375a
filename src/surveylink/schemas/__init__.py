"""Schema definitions for the survey linkage pipeline.

This package defines the contract layer - what "valid data" looks like.
Nothing here should do work, only define structure.

Schemas:
- study: Fixed study fields, identity code rules and response codes
- scales: Statically declared straight-lining scales
- captures: Raw capture streams and the capture store
- unified: Unified participant record structure
- quality_flags: Flag column vocabulary
- validate: Validation helpers
"""

from surveylink.schemas.captures import (
    CaptureStreams,
    normalize_missing,
    validate_baseline,
    validate_followup,
)
from surveylink.schemas.quality_flags import (
    AC_DUPLICATE,
    ATTNCHECK_FAIL,
    BLANK_CODE,
    DETECTOR_FLAGS,
    EXCLUDE,
    EXCLUSION_FLAGS,
    IDENTITY_FLAGS,
    INCONSISTENCY_FLAGS,
    INVALID_CODE,
    SL_FLAG,
    SPEEDER,
    WITHDREW,
    add_flag,
)
from surveylink.schemas.scales import NON_SCALE_ITEMS, SCALES, Scale, validate_scales
from surveylink.schemas.unified import (
    UNIFIED_FIELDS,
    compose_id_code,
    validate_flagged,
    validate_unified,
)
from surveylink.schemas.validate import (
    require_absent,
    require_columns,
    require_datetime,
    require_int_range,
    require_no_nulls,
    require_string_length,
    require_unique,
)

__all__ = [
    # Captures
    "CaptureStreams",
    "normalize_missing",
    "validate_baseline",
    "validate_followup",
    # Quality flags
    "INVALID_CODE",
    "BLANK_CODE",
    "AC_DUPLICATE",
    "SPEEDER",
    "SL_FLAG",
    "ATTNCHECK_FAIL",
    "WITHDREW",
    "EXCLUDE",
    "IDENTITY_FLAGS",
    "INCONSISTENCY_FLAGS",
    "DETECTOR_FLAGS",
    "EXCLUSION_FLAGS",
    "add_flag",
    # Scales
    "Scale",
    "SCALES",
    "NON_SCALE_ITEMS",
    "validate_scales",
    # Unified records
    "UNIFIED_FIELDS",
    "compose_id_code",
    "validate_unified",
    "validate_flagged",
    # Validation helpers
    "require_columns",
    "require_absent",
    "require_datetime",
    "require_no_nulls",
    "require_unique",
    "require_int_range",
    "require_string_length",
]
