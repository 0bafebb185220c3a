"""
Test cases for the snapshot differ and the window filter.
"""

import itertools
from datetime import date

from scheduler.change_detector import (
    TimetableChangeDetector, WindowFilter, diff_snapshots, filter_window_artifacts
)
from scheduler.models import Change, ChangeType
from untis.models import UntisPeriod


def snapshot(*entries):
    return {str(entry.id): entry for entry in entries}


class TestDiffSnapshots:
    """Test cases for diff_snapshots."""

    def test_identical_snapshots_produce_no_changes(self, make_entry):
        old = snapshot(make_entry(id=1), make_entry(id=2))
        new = snapshot(make_entry(id=1), make_entry(id=2))
        assert diff_snapshots(old, new) == []

    def test_added_removed_updated(self, make_entry):
        old = snapshot(make_entry(id=1), make_entry(id=2))
        new = snapshot(make_entry(id=2, code="cancelled"), make_entry(id=3))

        changes = diff_snapshots(old, new)
        by_id = {change.period_id: change.change_type for change in changes}

        assert by_id == {1: ChangeType.REMOVED, 2: ChangeType.UPDATED, 3: ChangeType.ADDED}

    def test_updated_carries_both_entries(self, make_entry):
        old_entry = make_entry(code=None)
        new_entry = make_entry(code="cancelled")

        changes = diff_snapshots(snapshot(old_entry), snapshot(new_entry))

        assert changes == [Change.updated(old_entry, new_entry)]

    def test_empty_old_snapshot_marks_everything_added(self, make_entry):
        changes = diff_snapshots({}, snapshot(make_entry(id=1), make_entry(id=2)))
        assert [change.change_type for change in changes] == [ChangeType.ADDED, ChangeType.ADDED]

    def test_key_iteration_order_does_not_matter(self, make_entry):
        entries_old = [make_entry(id=i, date=f"2024-01-1{i}") for i in range(1, 5)]
        entries_new = [make_entry(id=i, date=f"2024-01-1{i}", code="cancelled") for i in range(3, 7)]
        expected = diff_snapshots(snapshot(*entries_old), snapshot(*entries_new))

        for old_order, new_order in zip(itertools.permutations(entries_old), itertools.permutations(entries_new)):
            assert diff_snapshots(snapshot(*old_order), snapshot(*new_order)) == expected


class TestWindowFilter:
    """Test cases for window artifact filtering."""

    def test_removed_before_today_is_artifact(self, make_entry):
        old = snapshot(make_entry(id=1, date="2024-01-09"))
        window = WindowFilter(old, date(2024, 1, 10))
        assert window.is_artifact(Change.removed(old["1"])) is True

    def test_removed_today_is_kept(self, make_entry):
        old = snapshot(make_entry(id=1, date="2024-01-10"))
        window = WindowFilter(old, date(2024, 1, 10))
        assert window.is_artifact(Change.removed(old["1"])) is False

    def test_added_after_old_max_date_is_artifact(self, make_entry):
        old = snapshot(make_entry(id=1, date="2024-01-20"))
        window = WindowFilter(old, date(2024, 1, 10))
        assert window.is_artifact(Change.added(make_entry(id=2, date="2024-01-21"))) is True

    def test_added_on_old_max_date_is_kept(self, make_entry):
        old = snapshot(make_entry(id=1, date="2024-01-20"))
        window = WindowFilter(old, date(2024, 1, 10))
        assert window.is_artifact(Change.added(make_entry(id=2, date="2024-01-20"))) is False

    def test_empty_old_snapshot_disables_leading_edge(self, make_entry):
        window = WindowFilter({}, date(2024, 1, 10))
        assert window.old_max_date == ""
        assert window.is_artifact(Change.added(make_entry(id=2, date="2030-01-01"))) is False

    def test_updates_never_filtered(self, make_entry):
        old_entry = make_entry(id=1, date="2024-01-01")
        window = WindowFilter(snapshot(old_entry), date(2024, 1, 10))
        change = Change.updated(old_entry, make_entry(id=1, date="2024-01-01", code="cancelled"))
        assert window.is_artifact(change) is False

    def test_apply_counts_filtered(self, make_entry):
        old = snapshot(make_entry(id=1, date="2024-01-09"), make_entry(id=2, date="2024-01-20"))
        changes = [
            Change.removed(old["1"]),
            Change.added(make_entry(id=3, date="2024-01-25")),
            Change.added(make_entry(id=4, date="2024-01-18")),
        ]

        kept, filtered = WindowFilter(old, date(2024, 1, 10)).apply(changes)

        assert [change.period_id for change in kept] == [4]
        assert filtered == 2
        assert filter_window_artifacts(changes, old, date(2024, 1, 10)) == kept


class TestTimetableChangeDetector:
    """Test cases for TimetableChangeDetector."""

    def setup_method(self):
        self.detector = TimetableChangeDetector()

    def test_build_snapshot_keys_by_string_id(self):
        period = UntisPeriod.model_validate({
            "id": 77, "date": 20240110, "startTime": 745, "endTime": 830,
            "su": [{"id": 1, "name": "M", "longname": "Mathematics"}],
            "te": [{"id": 1, "name": "A", "longname": "Anna", "orgname": "Bert"}],
            "ro": [{"id": 1, "name": "R1", "longname": "Room 1"}],
            "code": "",
        })

        result = self.detector.build_snapshot([period])

        entry = result["77"]
        assert entry.date == "2024-01-10"
        assert entry.start_time == "07:45"
        assert entry.end_time == "08:30"
        assert entry.code is None
        assert entry.original_teacher == "Bert"

    def test_first_run_emits_nothing(self, make_entry):
        """Scenario: no prior snapshot, one new entry."""
        new = snapshot(make_entry(id=1, date="2024-01-10"))

        outcome = self.detector.detect_changes(None, new, date(2024, 1, 10))

        assert outcome.first_run is True
        assert outcome.changes == []
        assert outcome.detected == 0

    def test_empty_snapshot_is_not_first_run(self, make_entry):
        new = snapshot(make_entry(id=1, date="2024-01-10"))

        outcome = self.detector.detect_changes({}, new, date(2024, 1, 10))

        assert outcome.first_run is False
        assert len(outcome.changes) == 1

    def test_cancellation_is_single_update(self, make_entry):
        """Scenario: code null -> cancelled."""
        old = snapshot(make_entry(id=1, code=None))
        new = snapshot(make_entry(id=1, code="cancelled"))

        outcome = self.detector.detect_changes(old, new, date(2024, 1, 10))

        assert len(outcome.changes) == 1
        assert outcome.changes[0].change_type == ChangeType.UPDATED

    def test_leading_edge_artifact_filtered(self, make_entry):
        """Scenario: old max date 2024-01-20."""
        old = snapshot(make_entry(id=1, date="2024-01-20"))

        beyond = self.detector.detect_changes(
            old, snapshot(old["1"], make_entry(id=2, date="2024-01-25")), date(2024, 1, 10)
        )
        within = self.detector.detect_changes(
            old, snapshot(old["1"], make_entry(id=3, date="2024-01-18")), date(2024, 1, 10)
        )

        assert beyond.changes == []
        assert beyond.filtered == 1
        assert beyond.detected == 1
        assert [change.period_id for change in within.changes] == [3]
        assert within.filtered == 0
