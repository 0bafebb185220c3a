"""
Notification deduplication backed by the persisted set of delivered fingerprints.
"""

import structlog

from scheduler.models import PersistentState

logger = structlog.get_logger(__name__)


class NotificationDeduplicator:
    """
    Suppresses re-emission of notifications that were already delivered.

    The seen list of the given state is the source of truth and is mutated in
    place; a set mirrors it for constant time lookups. Fingerprints are never
    evicted.
    """

    def __init__(self, state: PersistentState):
        self.state = state
        self._seen = set(state.seen)
        self.logger = logger.bind(component="deduplicator")

    def should_emit(self, uid: str) -> bool:
        return uid not in self._seen

    def mark_emitted(self, uid: str) -> None:
        if uid in self._seen:
            return
        self._seen.add(uid)
        self.state.seen.append(uid)

    def __contains__(self, uid: str) -> bool:
        return uid in self._seen

    def __len__(self) -> int:
        return len(self._seen)
