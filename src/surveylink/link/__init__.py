"""Record linkage across capture streams."""

from surveylink.link.link_records import (
    backfill_followup1,
    join_followups,
    latest_by_access_code,
    link_records,
)

__all__ = ["link_records", "join_followups", "backfill_followup1", "latest_by_access_code"]
