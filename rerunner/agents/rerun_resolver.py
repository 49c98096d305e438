"""
Rerun Resolver
==============
Decides which check runs of a revision can be re-run, then re-runs them.

Lifecycle:
    classifying → ready → submitting → done

    - classifying: entered on construction; suite lookups in flight
    - ready:       partition known; confirm() allowed if anything is rerunnable
    - submitting:  rerun + refresh requests in flight; confirm() rejected
    - done:        terminal; reached through confirm() or cancel()

cancel() is legal in every state. A classification that settles after
cancel() is discarded instead of being applied to the closed resolver.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Sequence

from rerunner.core.config import RERUN_MAX_SUITE_AGE_DAYS
from rerunner.core.constants import RERUN_INFO_SUFFIX, ResolverState
from rerunner.models.check_run import CheckRun
from rerunner.models.check_suite import CheckSuite
from rerunner.models.eligibility import EligibilitySet
from rerunner.services.usage_stats import usage_stats
from rerunner.utils.rerun_eligibility import (
    checks_to_consider,
    non_rerunnable_checks,
    rerequestable_suite_ids,
    rerun_info_prefix,
    rerunnable_checks,
    unique_check_suite_ids,
)

logger = logging.getLogger(__name__)


class ChecksClient(Protocol):
    async def fetch_check_suite(self, repository: str, suite_id: int) -> Optional[CheckSuite]: ...

    async def submit_rerun(self, repository: str, check_runs: Sequence[CheckRun], failed_only: bool) -> None: ...

    async def refresh_status(self, repository: str, ref: str, check_runs: Sequence[CheckRun]) -> None: ...


class RerunNotAllowedError(RuntimeError):
    """Raised when confirm() is called while no rerun can be submitted."""


class RerunResolver:
    """
    Classifies check runs into rerunnable / non-rerunnable and submits the rerun.
    """

    def __init__(
        self,
        repository: str,
        check_runs: Sequence[CheckRun],
        ref: str,
        failed_only: bool,
        on_dismissed: Callable[[], None],
        client: ChecksClient,
        record_rerun_event: Callable[[], None] = usage_stats.record_rerun_checks,
        now: Optional[datetime] = None,
        max_age_days: int = RERUN_MAX_SUITE_AGE_DAYS,
    ) -> None:
        self.repository = repository
        self.check_runs: List[CheckRun] = list(check_runs)
        self.ref = ref
        self.failed_only = failed_only
        self.client = client
        self._on_dismissed = on_dismissed
        self._record_rerun_event = record_rerun_event
        self._now = now
        self._max_age_days = max_age_days

        self.state: ResolverState = "classifying"
        self.eligibility = EligibilitySet()
        self._closed = False
        self._classification: Optional[asyncio.Task] = None
        # Set once submit_rerun has succeeded, even if the refresh afterwards fails
        self.submitted: Optional[List[CheckRun]] = None

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------
    def start(self) -> "asyncio.Task[EligibilitySet]":
        """Schedule classification on the running loop (idempotent)."""
        if self._classification is None:
            self._classification = asyncio.get_running_loop().create_task(
                self._determine_rerunnability()
            )
        return self._classification

    async def wait_ready(self) -> EligibilitySet:
        return await self.start()

    async def _fetch_suites(self, suite_ids: List[int]) -> List[Optional[CheckSuite]]:
        results = await asyncio.gather(
            *(self.client.fetch_check_suite(self.repository, suite_id) for suite_id in suite_ids),
            return_exceptions=True,
        )
        suites: List[Optional[CheckSuite]] = []
        for suite_id, result in zip(suite_ids, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning(
                    "Check suite %s lookup failed in %s, treating as not rerunnable: %s",
                    suite_id, self.repository, result,
                )
                suites.append(None)
            else:
                suites.append(result)
        return suites

    async def _determine_rerunnability(self) -> EligibilitySet:
        # Only reached through start(), which runs it at most once
        if self.state != "classifying":
            return self.eligibility

        considered = checks_to_consider(self.check_runs, self.failed_only)
        suite_ids = unique_check_suite_ids(considered)
        logger.info(
            "Classifying %d check run(s) across %d check suite(s) in %s (failed_only=%s)",
            len(considered), len(suite_ids), self.repository, self.failed_only,
        )

        suites = await self._fetch_suites(suite_ids)

        if self._closed:
            logger.debug("Resolver for %s@%s closed during classification, discarding result", self.repository, self.ref)
            return self.eligibility

        eligible = rerequestable_suite_ids(suites, now=self._now, max_age_days=self._max_age_days)
        self.eligibility = EligibilitySet(
            rerunnable=rerunnable_checks(considered, eligible),
            non_rerunnable=non_rerunnable_checks(self.check_runs, eligible, self.failed_only),
            loading=False,
        )
        self.state = "ready"
        logger.info(
            "Classification done for %s@%s: %d rerunnable, %d not rerunnable",
            self.repository, self.ref,
            len(self.eligibility.rerunnable), len(self.eligibility.non_rerunnable),
        )
        return self.eligibility

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    @property
    def can_confirm(self) -> bool:
        return self.state == "ready" and len(self.eligibility.rerunnable) > 0

    async def confirm(self) -> List[CheckRun]:
        """Rerun the rerunnable checks, refresh their status, then dismiss."""
        if not self.can_confirm:
            raise RerunNotAllowedError(
                f"Cannot rerun checks for {self.repository}@{self.ref} "
                f"(state={self.state}, rerunnable={len(self.eligibility.rerunnable)})"
            )

        self.state = "submitting"
        to_rerun = list(self.eligibility.rerunnable)
        await self.client.submit_rerun(self.repository, to_rerun, self.failed_only)
        self.submitted = to_rerun
        await self.client.refresh_status(self.repository, self.ref, to_rerun)

        try:
            self._record_rerun_event()
        except Exception as e:
            logger.warning("Failed to record rerun event: %s", e)

        self._dismiss()
        return to_rerun

    def cancel(self) -> None:
        self._dismiss()

    def _dismiss(self) -> None:
        self.state = "done"
        if self._closed:
            return
        self._closed = True
        self._on_dismissed()

    # ------------------------------------------------------------------
    # Presentation helpers
    # ------------------------------------------------------------------
    def rerun_info_message(self) -> Optional[str]:
        """Warning shown next to the rerun list, or None when every check can be re-run."""
        if self.eligibility.loading or not self.eligibility.non_rerunnable:
            return None
        prefix = rerun_info_prefix(len(self.eligibility.rerunnable), len(self.eligibility.non_rerunnable))
        return f"{prefix}. {RERUN_INFO_SUFFIX}"
