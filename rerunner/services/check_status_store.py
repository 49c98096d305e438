"""
Check Status Store
==================
In-memory snapshot of the latest check runs per (repository, ref).

Written by the post-rerun status refresh and read by the status endpoint.

Pending runs:
    - The ids handed to refresh() right after a rerun are marked pending
    - A pending id is cleared once a later snapshot shows it completed again
      after having been seen queued or in progress
    - Nothing is persisted; the store lives as long as the process
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel

from rerunner.core.constants import STATUS_COMPLETED
from rerunner.models.check_run import CheckRun

logger = logging.getLogger(__name__)


class CheckStatusSnapshot(BaseModel):
    repository: str
    ref: str
    check_runs: List[CheckRun] = []
    pending_ids: List[int] = []
    refreshed_at: datetime


class CheckStatusStore:
    """
    Usage:
        store = CheckStatusStore()
        store.update("owner/repo", "refs/pull/1/head", runs, pending_ids={1, 2})
        snapshot = store.get("owner/repo", "refs/pull/1/head")
    """

    def __init__(self) -> None:
        self._snapshots: Dict[Tuple[str, str], CheckStatusSnapshot] = {}
        # (repository, ref) → pending ids that have been seen re-queued
        self._requeued: Dict[Tuple[str, str], Set[int]] = {}

    def update(
        self,
        repository: str,
        ref: str,
        check_runs: List[CheckRun],
        pending_ids: Optional[Iterable[int]] = None,
    ) -> CheckStatusSnapshot:
        key = (repository, ref)
        previous = self._snapshots.get(key)
        pending: Set[int] = set(previous.pending_ids) if previous else set()
        if pending_ids is not None:
            new_ids = set(pending_ids)
            pending |= new_ids
            # A fresh rerun request restarts tracking for these ids
            self._requeued.setdefault(key, set()).difference_update(new_ids)

        requeued = self._requeued.setdefault(key, set())
        for cr in check_runs:
            if cr.id not in pending:
                continue
            if cr.status != STATUS_COMPLETED:
                requeued.add(cr.id)
            elif cr.id in requeued:
                pending.discard(cr.id)
                requeued.discard(cr.id)

        snapshot = CheckStatusSnapshot(
            repository=repository,
            ref=ref,
            check_runs=check_runs,
            pending_ids=sorted(pending),
            refreshed_at=datetime.now(timezone.utc),
        )
        self._snapshots[key] = snapshot
        logger.debug(
            "Stored %d check runs for %s@%s (%d pending)",
            len(check_runs), repository, ref, len(pending),
        )
        return snapshot

    def get(self, repository: str, ref: str) -> Optional[CheckStatusSnapshot]:
        return self._snapshots.get((repository, ref))

    def clear(self) -> None:
        self._snapshots.clear()
        self._requeued.clear()
        logger.debug("Check status store cleared")

    def __len__(self) -> int:
        return len(self._snapshots)
