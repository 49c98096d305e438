"""
Usage Stats
In-memory counters for user actions. Recording never raises into the caller's flow.
"""
import logging
from collections import Counter

logger = logging.getLogger(__name__)


class UsageStats:
    def __init__(self) -> None:
        self._counters: Counter = Counter()

    def record_rerun_checks(self) -> None:
        self._counters["rerun_checks"] += 1
        logger.debug("Recorded rerun_checks (total=%d)", self._counters["rerun_checks"])

    def get(self, name: str) -> int:
        return self._counters[name]

    def snapshot(self) -> dict[str, int]:
        return dict(self._counters)


usage_stats = UsageStats()
