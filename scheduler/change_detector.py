"""
Change detection engine for timetable snapshots.

This module provides:
- Snapshot construction from raw periods
- Snapshot differencing (added / removed / updated)
- Filtering of artifacts caused by the sliding retrieval window
"""

from datetime import date
from typing import Iterable, List, Optional, Tuple

import structlog

from scheduler.fingerprinting import fingerprint
from scheduler.models import Change, ChangeType, TimetableSnapshot
from untis.models import UntisPeriod

logger = structlog.get_logger(__name__)


def diff_snapshots(old: TimetableSnapshot, new: TimetableSnapshot) -> List[Change]:
    """
    Compare two snapshots key by key.

    Keys are visited in sorted order so the result is deterministic. Entries
    present in both snapshots are compared by fingerprint.
    """
    changes = []
    for key in sorted(set(old) | set(new)):
        old_entry = old.get(key)
        new_entry = new.get(key)

        if old_entry is None:
            changes.append(Change.added(new_entry))
        elif new_entry is None:
            changes.append(Change.removed(old_entry))
        elif fingerprint(old_entry) != fingerprint(new_entry):
            changes.append(Change.updated(old_entry, new_entry))
    return changes


class WindowFilter:
    """
    Drops differences caused only by the retrieval window moving forward.

    A removed entry dated before today fell off the trailing edge. An added
    entry dated after the newest date of the previous snapshot came in over
    the leading edge. Updates are never filtered.
    """

    def __init__(self, old_snapshot: TimetableSnapshot, today: date):
        self.today = today.isoformat()
        self.old_max_date = max((entry.date for entry in old_snapshot.values()), default="")

    def is_artifact(self, change: Change) -> bool:
        if change.change_type == ChangeType.REMOVED:
            return change.old.date < self.today
        if change.change_type == ChangeType.ADDED:
            return bool(self.old_max_date) and change.new.date > self.old_max_date
        return False

    def apply(self, changes: Iterable[Change]) -> Tuple[List[Change], int]:
        """Return the surviving changes and the number filtered out."""
        kept = []
        filtered = 0
        for change in changes:
            if self.is_artifact(change):
                filtered += 1
                logger.debug(
                    "Filtered window artifact",
                    change_type=change.change_type.value,
                    period_id=change.period_id,
                    date=change.entry.date
                )
                continue
            kept.append(change)
        return kept, filtered


def filter_window_artifacts(
    changes: Iterable[Change],
    old_snapshot: TimetableSnapshot,
    today: date
) -> List[Change]:
    kept, _ = WindowFilter(old_snapshot, today).apply(changes)
    return kept


class DetectionOutcome:
    """Changes surviving the window filter plus bookkeeping counts."""

    def __init__(self, changes: List[Change], detected: int = 0, filtered: int = 0, first_run: bool = False):
        self.changes = changes
        self.detected = detected
        self.filtered = filtered
        self.first_run = first_run


class TimetableChangeDetector:
    """Engine for detecting changes between timetable snapshots."""

    def __init__(self):
        self.logger = logger.bind(component="change_detector")

    def build_snapshot(self, periods: Iterable[UntisPeriod]) -> TimetableSnapshot:
        """
        Key normalized entries by period id.

        Args:
            periods: Validated raw periods from the source

        Returns:
            Snapshot for the current retrieval window
        """
        snapshot = {}
        for period in periods:
            snapshot[str(period.id)] = period.to_period_entry()
        return snapshot

    def detect_changes(
        self,
        old_snapshot: Optional[TimetableSnapshot],
        new_snapshot: TimetableSnapshot,
        today: date
    ) -> DetectionOutcome:
        """
        Diff the previous snapshot against the new one and filter window artifacts.

        Args:
            old_snapshot: Previous snapshot, or None when none was ever stored
            new_snapshot: Snapshot built this cycle
            today: Current date in the configured timezone

        Returns:
            DetectionOutcome with the changes worth notifying about
        """
        if old_snapshot is None:
            self.logger.warning(
                "First run detected. Initializing timetable cache without notifications.",
                entries=len(new_snapshot)
            )
            return DetectionOutcome([], first_run=True)

        changes = diff_snapshots(old_snapshot, new_snapshot)
        kept, filtered = WindowFilter(old_snapshot, today).apply(changes)

        self.logger.info(
            "Timetable changes detected",
            old_entries=len(old_snapshot),
            new_entries=len(new_snapshot),
            changes_detected=len(changes),
            window_artifacts=filtered
        )
        return DetectionOutcome(kept, detected=len(changes), filtered=filtered)
