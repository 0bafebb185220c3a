"""
Pytest configuration and shared fixtures.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from scheduler.feed_generator import FeedGenerator
from scheduler.models import FeedConfig, PeriodEntry, SchedulerConfig
from scheduler.store import StateStore
from untis.models import (
    SchoolYear, UntisAbsenceResponse, UntisExam, UntisNewsWidget, UntisPeriod, to_untis_date
)


class FixedClock:
    """Controllable replacement for utc_now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class MockUntisClient:
    """
    In-memory WebUntis double whose data evolves once per completed cycle.

    The counter only advances on logout:
    - cycle 0: a Mathematics lesson at 08:00
    - cycle 1+: that lesson is cancelled
    - cycle 2+: an irregular English lesson is added at 09:00
    - cycle 3+: a Math Final exam appears
    """

    def __init__(self, today: date):
        self.today = today
        self.counter = 0
        self.logins = 0
        self.logouts = 0
        self.fail_login = False
        self.failing = set()

    async def login(self):
        self.logins += 1
        if self.fail_login:
            raise RuntimeError("invalid credentials")

    async def logout(self):
        self.logouts += 1
        self.counter += 1

    def _check(self, category: str) -> None:
        if category in self.failing:
            raise RuntimeError(f"{category} endpoint unavailable")

    async def get_school_year(self, today=None):
        self._check("school_year")
        return SchoolYear(start_date=date(self.today.year, 1, 1), end_date=date(self.today.year, 12, 31))

    async def get_timetable(self, start, end):
        self._check("timetable")
        day = to_untis_date(self.today)
        math = {
            "id": 1001, "date": day, "startTime": 800, "endTime": 845,
            "kl": [{"id": 1, "name": "10A", "longname": "10A"}],
            "te": [{"id": 1, "name": "MUSTER", "longname": "Max Mustermann"}],
            "su": [{"id": 1, "name": "MATH", "longname": "Mathematics"}],
            "ro": [{"id": 1, "name": "R101", "longname": "Room 101"}],
            "lsnumber": 1,
        }
        if self.counter >= 1:
            math["code"] = "cancelled"
        periods = [math]

        if self.counter >= 2:
            periods.append({
                "id": 1002, "date": day, "startTime": 900, "endTime": 945,
                "kl": [{"id": 1, "name": "10A", "longname": "10A"}],
                "te": [{"id": 2, "name": "TEST", "longname": "Test Teacher"}],
                "su": [{"id": 2, "name": "ENG", "longname": "English"}],
                "ro": [{"id": 2, "name": "R102", "longname": "Room 102"}],
                "lsnumber": 2,
                "code": "irregular",
                "lstext": "Extra Lesson",
            })
        return [UntisPeriod.model_validate(p) for p in periods]

    async def get_exams(self, start, end):
        self._check("exams")
        if self.counter < 3:
            return []
        return [UntisExam.model_validate({
            "id": 999, "examType": "written", "name": "Math Final",
            "studentClass": ["10A"], "examDate": to_untis_date(self.today),
            "startTime": 1000, "endTime": 1200, "subject": "MATH",
            "teachers": ["MUSTER"], "rooms": ["R101"], "text": "Final Exam",
        })]

    async def get_absences(self, start, end):
        self._check("absences")
        return UntisAbsenceResponse(absences=[])

    async def get_news(self, day):
        self._check("messages")
        return UntisNewsWidget(messages_of_day=[])


@pytest.fixture
def today():
    return date(2024, 1, 10)


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 10, 7, 0, tzinfo=timezone.utc))


@pytest.fixture
def mock_untis_client(today):
    return MockUntisClient(today)


@pytest.fixture
def feed_config():
    return FeedConfig(base_url="http://localhost:6565")


@pytest.fixture
def scheduler_config(feed_config):
    """Create scheduler configuration with every category enabled."""
    return SchedulerConfig(
        update_interval_seconds=3600,
        timezone="UTC",
        notify_timetable=True,
        notify_exams=True,
        notify_absences=True,
        notify_messages=True,
        feed=feed_config,
    )


@pytest.fixture
def state_store(tmp_path):
    return StateStore(tmp_path / "data")


@pytest.fixture
def feed_generator(feed_config, tmp_path, clock):
    return FeedGenerator(feed_config, tmp_path / "data" / "feed.xml", clock=clock)


@pytest.fixture
def make_entry():
    """Factory for PeriodEntry values with sensible defaults."""
    def _make(**overrides):
        data = {
            "id": 1,
            "date": "2024-01-10",
            "startTime": "08:00",
            "endTime": "08:45",
            "subjects": ["Mathematics"],
            "teachers": ["Max Mustermann"],
            "rooms": ["Room 101"],
            "code": None,
            "substText": None,
            "originalTeacher": None,
            "lstext": None,
        }
        data.update(overrides)
        return PeriodEntry.model_validate(data)
    return _make
