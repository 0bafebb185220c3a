"""
Rendering of notification items for each record category.

This module provides:
- Classification of timetable changes into readable titles
- Item construction for exams, absences and messages
"""

from datetime import datetime
from typing import Callable, Tuple

from scheduler.history import utc_now
from scheduler.models import Change, ChangeType, NotificationItem
from untis.models import UntisAbsence, UntisExam, UntisMessage, convert_untis_date


def _subjects(change: Change) -> str:
    return ", ".join(change.entry.subjects)


def classify_timetable_change(change: Change) -> Tuple[str, str]:
    """
    Pick title and description for a timetable change.

    Args:
        change: Change surviving the window filter

    Returns:
        (title, description)
    """
    entry = change.entry
    old, new = change.old, change.new
    subjects = _subjects(change)

    if change.change_type == ChangeType.ADDED:
        if new.is_irregular:
            return (
                f"🗓️ Event: {new.lstext or 'Irregular Event'}",
                f"An event has been added on {entry.date} from {entry.start_time} to {entry.end_time}.",
            )
        return (
            f"New Lesson: {subjects} on {entry.date}",
            f"A new lesson has been added at {entry.start_time}.",
        )

    if change.change_type == ChangeType.REMOVED:
        return (
            f"Lesson Removed: {subjects} on {entry.date}",
            f"A lesson has been removed at {entry.start_time}.",
        )

    if new.is_cancelled and not old.is_cancelled:
        return (
            f"❌ Lesson Cancelled: {subjects}",
            f"The lesson {subjects} at {entry.start_time} on {entry.date} has been cancelled.",
        )
    if new.original_teacher and not old.original_teacher:
        substitute = new.teachers[0] if new.teachers else "another teacher"
        return (
            f"🔄 Substitution: {subjects}",
            f"For {subjects} at {entry.start_time}, {substitute} is substituting for {new.original_teacher}.",
        )
    if new.is_irregular:
        return (
            f"🗓️ Event Update: {new.lstext or 'Irregular Event'}",
            f"An event on {entry.date} has been updated.",
        )
    return (
        f"Lesson Updated: {subjects} on {entry.date}",
        f"A lesson at {entry.start_time} has been updated.",
    )


class NotificationBuilder:
    """Builds immutable feed items stamped with the emission time."""

    def __init__(self, clock: Callable[[], datetime] = utc_now, link: str = ""):
        """
        Initialize notification builder.

        Args:
            clock: Source of emission timestamps
            link: Link attached to every item
        """
        self.clock = clock
        self.link = link

    def _item(self, uid: str, title: str, description: str) -> NotificationItem:
        return NotificationItem(
            title=title,
            id=uid,
            link=self.link,
            description=description,
            date=self.clock(),
        )

    def timetable_item(self, change: Change, uid: str) -> NotificationItem:
        title, description = classify_timetable_change(change)
        return self._item(uid, title, description)

    def exam_item(self, exam: UntisExam, uid: str) -> NotificationItem:
        exam_date = convert_untis_date(exam.exam_date).isoformat()
        description = (
            f"Subject: {exam.subject} | Teacher: {', '.join(exam.teachers)} | "
            f"Room: {', '.join(exam.rooms)}"
        )
        return self._item(uid, f"📝 EXAM: {exam.name or exam.subject} on {exam_date}", description)

    def absence_item(self, absence: UntisAbsence, uid: str) -> NotificationItem:
        absence_date = convert_untis_date(absence.start_date).isoformat()
        if absence.is_excused:
            title = f"✅ Absence Excused: {absence.reason}"
        else:
            title = f"Absence Recorded: {absence.reason}"

        description = (
            f"Date: {absence_date} | Status: {absence.excuse_status or 'unknown'} | "
            f"Created by: {absence.created_user or 'unknown'}"
        )
        excuse = absence.excuse
        if absence.is_excused and excuse is not None:
            excused_on = convert_untis_date(excuse.excuse_date).isoformat() if excuse.excuse_date else "unknown date"
            description += f" | Excused by: {excuse.username or 'unknown'} on {excused_on}"
        return self._item(uid, title, description)

    def message_item(self, message: UntisMessage, uid: str) -> NotificationItem:
        return self._item(uid, f"📢 NEWS: {message.subject}", message.text)
