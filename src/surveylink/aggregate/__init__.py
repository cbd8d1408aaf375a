"""Exclusion decision and recruitment tracking."""

from surveylink.aggregate.exclusion import (
    flag_exclusions,
    flag_withdrawals,
    print_flag_summary,
    summarize_flags,
    write_dataset,
)
from surveylink.aggregate.recruitment import (
    count_included,
    load_recruitment_counter,
    update_recruitment_counter,
    upsert_count,
)

__all__ = [
    "flag_withdrawals",
    "flag_exclusions",
    "summarize_flags",
    "print_flag_summary",
    "write_dataset",
    "count_included",
    "load_recruitment_counter",
    "upsert_count",
    "update_recruitment_counter",
]
