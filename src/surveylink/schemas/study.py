"""Fixed study schema: stream fields, identity codes and response codes.

This is the one study this package exists for. Field names match the survey
platform's export column names after renaming; response codes match the
platform's numeric recode values.

Key rules (do not bend these later):
- Baseline rows carry the identity code pair and IP address
- Follow-up rows carry the access code emailed after baseline
- start_date is entrance, end_date is exit; exports are read as UTC and
  held tz-naive
"""

from __future__ import annotations

import string


def _items(prefix: str, n: int) -> list[str]:
    return [f"{prefix}_{i}" for i in range(1, n + 1)]


# Stream names as supplied by the capture source
BASELINE = "baseline"
FU1_CONTROL = "fu1_control"
FU1_INTERVENTION = "fu1_intervention"
FU2_CONTROL = "fu2_control"
FU2_INTERVENTION = "fu2_intervention"

FOLLOWUP_STREAMS = [FU1_CONTROL, FU1_INTERVENTION, FU2_CONTROL, FU2_INTERVENTION]
ALL_STREAMS = [BASELINE, *FOLLOWUP_STREAMS]

ARM_CONTROL = "control"
ARM_INTERVENTION = "intervention"
ARMS = [ARM_CONTROL, ARM_INTERVENTION]

# Fields present in every stream
META_FIELDS = ["response_id", "start_date", "end_date", "finished"]
TIMESTAMP_FIELDS = ["start_date", "end_date"]

# Identity and network fields (baseline only)
IDENTITY_FIELDS = ["r_code", "s_code", "access_code", "ip_address"]

DEMOGRAPHIC_FIELDS = ["age", "birth_year", "birth_month", "province"]

CANNABIS_FIELDS = [
    "cannabis_ever",
    "cannabis_freq_3m",
    "cannabis_use_3m",
    "cannabis_use_6m",
    "cannabis_ever_confirm",
]

ATTENTION_FIELD = "attncheck"

# Questionnaire blocks in presentation order. The attention check is shown
# inside the PBSM block, between items 9 and 10.
CUDIT_ITEMS = _items("cudit", 8)
MMM_ITEMS = _items("mmm", 12)
PBSM_ITEMS = _items("pbsm", 17)
K6_ITEMS = _items("k6", 6)
NORMS_ITEMS = _items("norms", 6)

BASELINE_FIELDS = [
    *META_FIELDS,
    *IDENTITY_FIELDS,
    *DEMOGRAPHIC_FIELDS,
    *CANNABIS_FIELDS,
    *CUDIT_ITEMS,
    *MMM_ITEMS,
    *PBSM_ITEMS[:9],
    ATTENTION_FIELD,
    *PBSM_ITEMS[9:],
    *K6_ITEMS,
    *NORMS_ITEMS,
]

FOLLOWUP_FIELDS = [
    *META_FIELDS,
    "access_code",
    "cannabis_days_30d",
    *CUDIT_ITEMS,
    *K6_ITEMS,
]

# Identity codes
R_CODE_LENGTH = 3
S_CODE_LENGTH = 10
ID_CODE_LENGTH = S_CODE_LENGTH + R_CODE_LENGTH
R_CODE_ALPHABET = "123456789ABXZ"
S_CODE_ALPHABET = string.ascii_letters + string.digits
REGISTRY_SIZE = 10_000

# What the survey platform's piped text renders for an absent sub-code
MISSING_CODE_TEXT = "NA"
BLANK_ID_CODE = MISSING_CODE_TEXT + MISSING_CODE_TEXT

# Response codes
RESPONSE_YES = 1
RESPONSE_NO = 2
CANNABIS_EVER_NEVER = 1
CANNABIS_FREQ_NONE = 1
ATTENTION_CORRECT = 4

PROVINCES = {
    1: "Alberta",
    2: "British Columbia",
    3: "Manitoba",
    4: "New Brunswick",
    5: "Newfoundland and Labrador",
    6: "Northwest Territories",
    7: "Nova Scotia",
    8: "Nunavut",
    9: "Ontario",
    10: "Prince Edward Island",
    11: "Quebec",
    12: "Saskatchewan",
    13: "Yukon",
}
