"""
Rerun Eligibility
=================
Pure helpers for the classification phase of the rerun resolver.

A check suite can be re-run when all three hold:
    - GitHub marks it ``rerequestable``
    - it was created strictly less than RERUN_MAX_SUITE_AGE_DAYS ago
    - its status is ``completed``

The two halves of the partition are computed by independent functions over
the same source list. ``non_rerunnable_checks`` is NOT the complement of
``rerunnable_checks``: it reads the full list and re-applies the failed-only
scope on its own.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Set

from rerunner.core.config import RERUN_MAX_SUITE_AGE_DAYS
from rerunner.core.constants import CONCLUSION_FAILURE, STATUS_COMPLETED
from rerunner.models.check_run import CheckRun
from rerunner.models.check_suite import CheckSuite
from rerunner.utils.offset_from import offset_from_now


def checks_to_consider(check_runs: Sequence[CheckRun], failed_only: bool) -> List[CheckRun]:
    """Working subset: only failures when ``failed_only``, otherwise everything."""
    if failed_only:
        return [cr for cr in check_runs if cr.conclusion == CONCLUSION_FAILURE]
    return list(check_runs)


def unique_check_suite_ids(check_runs: Iterable[CheckRun]) -> List[int]:
    """Distinct non-null suite ids, in first-seen order."""
    seen: Set[int] = set()
    ids: List[int] = []
    for cr in check_runs:
        if cr.check_suite_id is None or cr.check_suite_id in seen:
            continue
        seen.add(cr.check_suite_id)
        ids.append(cr.check_suite_id)
    return ids


def _as_utc(value: datetime) -> datetime:
    # GitHub timestamps are UTC; treat naive values the same way
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_suite_rerequestable(
    suite: CheckSuite,
    now: Optional[datetime] = None,
    max_age_days: int = RERUN_MAX_SUITE_AGE_DAYS,
) -> bool:
    cutoff = offset_from_now(-max_age_days, "days", now=now)
    return (
        suite.rerequestable
        and _as_utc(suite.created_at) > _as_utc(cutoff)
        and suite.status == STATUS_COMPLETED
    )


def rerequestable_suite_ids(
    suites: Iterable[Optional[CheckSuite]],
    now: Optional[datetime] = None,
    max_age_days: int = RERUN_MAX_SUITE_AGE_DAYS,
) -> Set[int]:
    """Ids of the fetched suites that pass the eligibility predicate. ``None`` entries are skipped."""
    return {
        suite.id
        for suite in suites
        if suite is not None and is_suite_rerequestable(suite, now, max_age_days)
    }


def rerunnable_checks(considered: Sequence[CheckRun], eligible_suite_ids: Set[int]) -> List[CheckRun]:
    return [
        cr for cr in considered
        if cr.check_suite_id is not None and cr.check_suite_id in eligible_suite_ids
    ]


def non_rerunnable_checks(
    check_runs: Sequence[CheckRun],
    eligible_suite_ids: Set[int],
    failed_only: bool,
) -> List[CheckRun]:
    """
    Runs from the FULL list that are reported as not re-runnable.

    A run lands here when its suite id is missing, its suite is not eligible,
    or (in failed-only mode) the run itself failed. The last clause is kept
    exactly as-is: the resulting count is what the user is shown.
    """
    return [
        cr for cr in check_runs
        if cr.check_suite_id is None
        or cr.check_suite_id not in eligible_suite_ids
        or (failed_only and cr.conclusion == CONCLUSION_FAILURE)
    ]


def rerun_info_prefix(rerunnable_count: int, non_rerunnable_count: int) -> str:
    if rerunnable_count == 0:
        return "There are no checks that can be re-run"
    plural = "s" if non_rerunnable_count != 1 else ""
    verb = "are" if non_rerunnable_count != 1 else "is"
    return f"There {verb} {non_rerunnable_count} check{plural} that cannot be re-run"
