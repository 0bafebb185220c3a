"""
Refresh cycle orchestration.

This module provides:
- One fetch and reconcile pass over every enabled category
- Per-category failure isolation
- Ordered persistence of snapshot, state and feed at the end of a cycle
- A re-entrancy guard so overlapping triggers are skipped
"""

import asyncio
import time
import uuid
from datetime import date, datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import structlog

from scheduler.change_detector import TimetableChangeDetector
from scheduler.deduplication import NotificationDeduplicator
from scheduler.feed_generator import FeedGenerator
from scheduler.fingerprinting import ContentFingerprinter
from scheduler.history import HistoryStore, utc_now
from scheduler.models import (
    CycleResult, NotificationCategory, NotificationItem, SchedulerConfig, TimetableSnapshot
)
from scheduler.notifications import NotificationBuilder
from scheduler.store import StateStore
from untis.models import SchoolYear
from utilities.logger import CycleLogger

logger = structlog.get_logger(__name__)


class UpdateOrchestrator:
    """Runs refresh cycles against the WebUntis source."""

    def __init__(
        self,
        config: SchedulerConfig,
        client,
        state_store: StateStore,
        feed_generator: FeedGenerator,
        fingerprinter: Optional[ContentFingerprinter] = None,
        builder: Optional[NotificationBuilder] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize the orchestrator and load persisted state.

        Args:
            config: Immutable scheduler configuration
            client: Source client (login, logout, get_* coroutines)
            state_store: Persistence for state and snapshot
            feed_generator: RSS serializer
            fingerprinter: Identity hasher (default ContentFingerprinter)
            builder: Notification renderer (default NotificationBuilder)
            clock: Source of the current time
        """
        self.config = config
        self.client = client
        self.state_store = state_store
        self.feed_generator = feed_generator
        self.fingerprinter = fingerprinter or ContentFingerprinter()
        self.builder = builder or NotificationBuilder(clock=clock)
        self.clock = clock
        self.timezone = ZoneInfo(config.timezone)

        self.detector = TimetableChangeDetector()
        self.state_store.ensure_data_dir()
        self.state = state_store.load_state()
        self.snapshot: Optional[TimetableSnapshot] = state_store.load_snapshot()
        self.deduplicator = NotificationDeduplicator(self.state)
        self.history = HistoryStore(
            self.state,
            retention=timedelta(days=config.history_retention_days),
            clock=clock
        )

        self._lock = asyncio.Lock()
        self.cycle_logger = CycleLogger()
        self.logger = logger.bind(component="update_orchestrator")

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def today(self) -> date:
        """Current date in the configured timezone."""
        return self.clock().astimezone(self.timezone).date()

    async def run_cycle(self) -> CycleResult:
        """
        Run one refresh cycle.

        Returns a skipped result without doing anything when another cycle is
        still in flight.
        """
        cycle_id = f"cycle_{uuid.uuid4().hex[:12]}"

        if self._lock.locked():
            self.logger.warning("Refresh cycle already in progress, skipping trigger", cycle_id=cycle_id)
            return CycleResult(cycle_id=cycle_id, run_timestamp=self.clock(), skipped=True)

        async with self._lock:
            return await self._run_locked(cycle_id)

    async def _run_locked(self, cycle_id: str) -> CycleResult:
        started = time.monotonic()
        result = CycleResult(cycle_id=cycle_id, run_timestamp=self.clock())
        today = self.today()
        categories = self.config.enabled_categories()

        self.cycle_logger.clear_context().bind_context(cycle_id=cycle_id)
        self.cycle_logger.log_cycle_start(today.isoformat(), [c.value for c in categories])

        try:
            await self.client.login()
        except Exception as e:
            self.logger.error("Update Loop Error: Login failed", cycle_id=cycle_id, error=str(e))
            result.success = False
            result.errors.append(f"login: {e}")
            result.duration_seconds = time.monotonic() - started
            return result

        new_snapshot: Optional[TimetableSnapshot] = None
        try:
            school_year = None
            if NotificationCategory.EXAM in categories or NotificationCategory.ABSENCE in categories:
                school_year = await self._school_year(today)

            for category in categories:
                try:
                    if category == NotificationCategory.TIMETABLE:
                        new_snapshot = await self._process_timetable(today, result)
                    elif category == NotificationCategory.EXAM:
                        await self._process_exams(school_year, result)
                    elif category == NotificationCategory.ABSENCE:
                        await self._process_absences(school_year, result)
                    elif category == NotificationCategory.MESSAGE:
                        await self._process_messages(today, result)
                except Exception as e:
                    self.cycle_logger.log_category_error(category.value, str(e))
                    result.errors.append(f"{category.value}: {e}")

            # A cycle fails only when nothing could be fetched.
            if categories and len(result.errors) == len(categories):
                result.success = False

            self._persist(new_snapshot, result)
        finally:
            try:
                await self.client.logout()
            except Exception as e:
                self.logger.warning("Logout failed", cycle_id=cycle_id, error=str(e))

        result.duration_seconds = time.monotonic() - started
        self.cycle_logger.log_cycle_complete(
            result.notifications_emitted, result.duration_seconds, len(result.errors)
        )
        return result

    async def _school_year(self, today: date) -> SchoolYear:
        try:
            return await self.client.get_school_year(today)
        except Exception as e:
            self.logger.warning(
                "Could not fetch current school year. Falling back to programmatic dates.",
                error=str(e)
            )
            return SchoolYear.containing(today)

    def _emit(self, category: NotificationCategory, uid: str, make_item: Callable[[], NotificationItem], result: CycleResult) -> bool:
        """Append an item to history unless its fingerprint was delivered before."""
        if not self.deduplicator.should_emit(uid):
            self.cycle_logger.log_suppressed(category.value, uid)
            return False

        item = make_item()
        self.history.append(item)
        self.deduplicator.mark_emitted(uid)
        result.record_emission(category)
        self.cycle_logger.log_notification(category.value, item.title, uid)
        return True

    async def _process_timetable(self, today: date, result: CycleResult) -> TimetableSnapshot:
        end = today + timedelta(days=self.config.lookahead_days - 1)
        periods = await self.client.get_timetable(today, end)
        new_snapshot = self.detector.build_snapshot(periods)

        outcome = self.detector.detect_changes(self.snapshot, new_snapshot, today)
        result.first_run = outcome.first_run
        result.changes_detected = outcome.detected
        result.changes_filtered = outcome.filtered

        for change in outcome.changes:
            uid = self.fingerprinter.timetable_change(change)
            self._emit(
                NotificationCategory.TIMETABLE,
                uid,
                lambda: self.builder.timetable_item(change, uid),
                result
            )
        return new_snapshot

    async def _process_exams(self, school_year: SchoolYear, result: CycleResult) -> None:
        exams = await self.client.get_exams(school_year.start_date, school_year.end_date)
        for exam in exams:
            uid = self.fingerprinter.exam(exam)
            self._emit(NotificationCategory.EXAM, uid, lambda: self.builder.exam_item(exam, uid), result)

    async def _process_absences(self, school_year: SchoolYear, result: CycleResult) -> None:
        response = await self.client.get_absences(school_year.start_date, school_year.end_date)
        for absence in response.absences:
            uid = self.fingerprinter.absence(absence)
            self._emit(NotificationCategory.ABSENCE, uid, lambda: self.builder.absence_item(absence, uid), result)

    async def _process_messages(self, today: date, result: CycleResult) -> None:
        news = await self.client.get_news(today)
        for message in news.messages_of_day:
            uid = self.fingerprinter.message(message)
            self._emit(NotificationCategory.MESSAGE, uid, lambda: self.builder.message_item(message, uid), result)

    def _persist(self, new_snapshot: Optional[TimetableSnapshot], result: CycleResult) -> None:
        """Write snapshot and state, prune history and regenerate the feed."""
        if new_snapshot is not None:
            self.snapshot = new_snapshot
            saved = self.state_store.save_snapshot(new_snapshot)
            self.cycle_logger.log_persistence("snapshot", saved)

        result.pruned_items = self.history.prune()
        result.history_size = len(self.history)

        result.state_saved = self.state_store.save_state(self.state)
        self.cycle_logger.log_persistence("state", result.state_saved)

        result.feed_written = self.feed_generator.write(self.history.all())
        self.cycle_logger.log_persistence("feed", result.feed_written)
