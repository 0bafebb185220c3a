"""
Models for change detection and notification functionality.

This module defines Pydantic models for:
- Normalized timetable entries and snapshots
- Timetable changes
- Notification items and persisted state
- Scheduler and feed configuration
- Refresh cycle results
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ChangeType(str, Enum):
    """Classification of a timetable difference."""
    ADDED = "added"
    REMOVED = "removed"
    UPDATED = "updated"


class NotificationCategory(str, Enum):
    """Record categories that can produce notifications."""
    TIMETABLE = "timetable"
    EXAM = "exam"
    ABSENCE = "absence"
    MESSAGE = "message"


class PeriodEntry(BaseModel):
    """
    Normalized view of one scheduled lesson or event occurrence.

    Name lists are kept sorted so that two entries compare equal regardless
    of the order the source reported them in. Serialized with camelCase keys
    (see to_record) which is also the persisted snapshot format.
    """
    id: int = Field(..., description="Source-assigned period id")
    date: str = Field(..., description="Calendar date, YYYY-MM-DD")
    start_time: str = Field(..., alias="startTime", description="HH:MM")
    end_time: str = Field(..., alias="endTime", description="HH:MM")
    subjects: List[str] = Field(default_factory=list)
    teachers: List[str] = Field(default_factory=list)
    rooms: List[str] = Field(default_factory=list)
    code: Optional[str] = Field(default=None, description="cancelled, irregular or None")
    subst_text: Optional[str] = Field(default=None, alias="substText")
    original_teacher: Optional[str] = Field(default=None, alias="originalTeacher")
    lstext: Optional[str] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("subjects", "teachers", "rooms")
    @classmethod
    def sort_names(cls, v):
        return sorted(v)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        datetime.strptime(v, "%Y-%m-%d")
        return v

    @property
    def is_cancelled(self) -> bool:
        return self.code == "cancelled"

    @property
    def is_irregular(self) -> bool:
        return self.code == "irregular"

    def to_record(self) -> Dict[str, Any]:
        """Plain dict in the persisted (camelCase) shape."""
        return self.model_dump(by_alias=True)


# Mapping from period id (string key) to entry for one retrieval window.
TimetableSnapshot = Dict[str, PeriodEntry]


class Change(BaseModel):
    """A single timetable difference produced by the snapshot differ."""
    change_type: ChangeType
    old: Optional[PeriodEntry] = None
    new: Optional[PeriodEntry] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_shape(self):
        if self.change_type == ChangeType.ADDED and (self.new is None or self.old is not None):
            raise ValueError("added change requires only a new entry")
        if self.change_type == ChangeType.REMOVED and (self.old is None or self.new is not None):
            raise ValueError("removed change requires only an old entry")
        if self.change_type == ChangeType.UPDATED and (self.old is None or self.new is None):
            raise ValueError("updated change requires old and new entries")
        return self

    @classmethod
    def added(cls, new: PeriodEntry) -> "Change":
        return cls(change_type=ChangeType.ADDED, new=new)

    @classmethod
    def removed(cls, old: PeriodEntry) -> "Change":
        return cls(change_type=ChangeType.REMOVED, old=old)

    @classmethod
    def updated(cls, old: PeriodEntry, new: PeriodEntry) -> "Change":
        return cls(change_type=ChangeType.UPDATED, old=old, new=new)

    @property
    def entry(self) -> PeriodEntry:
        """The entry the change is about: new if present, otherwise old."""
        return self.new if self.new is not None else self.old

    @property
    def period_id(self) -> int:
        return self.entry.id


class NotificationItem(BaseModel):
    """One emitted feed item. The id is the content fingerprint."""
    title: str = Field(..., description="Human-readable title")
    id: str = Field(..., description="Fingerprint, doubles as feed guid")
    link: str = Field(default="")
    description: str = Field(default="")
    date: datetime = Field(..., description="Emission timestamp")

    model_config = ConfigDict(frozen=True)

    @field_validator("date")
    @classmethod
    def ensure_aware(cls, v):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class PersistentState(BaseModel):
    """Delivered fingerprints plus the bounded notification history."""
    seen: List[str] = Field(default_factory=list)
    history: List[NotificationItem] = Field(default_factory=list)


class FeedConfig(BaseModel):
    """Channel settings for the generated RSS document."""
    title: str = "WebUntis Live Alerts"
    description: str = "Personalized timetable changes, exams, and absences."
    base_url: str = "http://localhost:6565"
    feed_path: str = "feed.xml"
    favicon_path: str = "favicon.svg"
    language: str = "en"
    generator: str = "untis-feed"

    model_config = ConfigDict(frozen=True)

    @property
    def feed_url(self) -> str:
        return f"{self.base_url}/{self.feed_path}"

    @property
    def favicon_url(self) -> str:
        return f"{self.base_url}/{self.favicon_path}"


class SchedulerConfig(BaseModel):
    """Immutable configuration for the refresh engine."""
    # Scheduling
    update_interval_seconds: int = Field(default=3600, ge=1, description="Seconds between refresh cycles")
    timezone: str = Field(default="UTC", description="Timezone that defines 'today'")

    # Change detection
    lookahead_days: int = Field(default=14, ge=1, description="Length of the timetable retrieval window")
    history_retention_days: int = Field(default=7, ge=1, description="Days to keep emitted items")

    # Categories
    notify_timetable: bool = Field(default=False)
    notify_exams: bool = Field(default=False)
    notify_absences: bool = Field(default=False)
    notify_messages: bool = Field(default=False)

    feed: FeedConfig = Field(default_factory=FeedConfig)

    model_config = ConfigDict(frozen=True)

    def enabled_categories(self) -> List[NotificationCategory]:
        flags = [
            (NotificationCategory.TIMETABLE, self.notify_timetable),
            (NotificationCategory.EXAM, self.notify_exams),
            (NotificationCategory.ABSENCE, self.notify_absences),
            (NotificationCategory.MESSAGE, self.notify_messages),
        ]
        return [category for category, enabled in flags if enabled]


class CycleResult(BaseModel):
    """Result of one refresh cycle."""
    cycle_id: str = Field(..., description="Unique cycle identifier")
    run_timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    success: bool = Field(default=True)
    skipped: bool = Field(default=False, description="Trigger skipped because a cycle was in flight")

    notifications_emitted: int = Field(default=0)
    emitted_by_category: Dict[NotificationCategory, int] = Field(default_factory=dict)
    changes_detected: int = Field(default=0)
    changes_filtered: int = Field(default=0)
    first_run: bool = Field(default=False)

    history_size: int = Field(default=0)
    pruned_items: int = Field(default=0)
    state_saved: bool = Field(default=False)
    feed_written: bool = Field(default=False)

    duration_seconds: float = Field(default=0.0)
    errors: List[str] = Field(default_factory=list)

    def record_emission(self, category: NotificationCategory) -> None:
        self.notifications_emitted += 1
        self.emitted_by_category[category] = self.emitted_by_category.get(category, 0) + 1
