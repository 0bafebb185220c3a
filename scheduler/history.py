"""
Time-bounded ledger of emitted notification items.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import structlog

from scheduler.models import NotificationItem, PersistentState

logger = structlog.get_logger(__name__)

DEFAULT_RETENTION = timedelta(days=7)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HistoryStore:
    """
    Append-only history of notification items, pruned by age.

    Items live in the history list of the given PersistentState so that the
    state file always carries them.
    """

    def __init__(
        self,
        state: PersistentState,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize history store.

        Args:
            state: Persistent state owning the history list
            retention: Maximum item age kept by prune()
            clock: Source of the current time
        """
        self.state = state
        self.retention = retention
        self.clock = clock
        self.logger = logger.bind(component="history_store")

    def append(self, item: NotificationItem) -> None:
        self.state.history.append(item)

    def prune(self, max_age: Optional[timedelta] = None, now: Optional[datetime] = None) -> int:
        """
        Drop items whose age is at least max_age.

        Args:
            max_age: Retention window (defaults to the store's retention)
            now: Reference time (defaults to the clock)

        Returns:
            Number of items removed
        """
        max_age = max_age if max_age is not None else self.retention
        now = now if now is not None else self.clock()

        kept = [item for item in self.state.history if now - item.date < max_age]
        removed = len(self.state.history) - len(kept)
        self.state.history[:] = kept

        if removed:
            self.logger.info(
                "Pruned notification history",
                removed=removed,
                remaining=len(kept),
                retention_days=max_age.days
            )
        return removed

    def all(self) -> List[NotificationItem]:
        """All items, most recent first."""
        return sorted(self.state.history, key=lambda item: item.date, reverse=True)

    def __len__(self) -> int:
        return len(self.state.history)
