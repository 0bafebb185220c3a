"""
Test cases for raw WebUntis record schemas.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from untis.models import (
    SchoolYear, UntisAbsence, UntisAbsenceResponse, UntisExam, UntisNewsWidget, UntisPeriod,
    convert_untis_date, convert_untis_time, to_untis_date
)


class TestConversions:
    """Test cases for WebUntis date and time helpers."""

    def test_convert_date(self):
        assert convert_untis_date(20240110) == date(2024, 1, 10)
        assert convert_untis_date("20231231") == date(2023, 12, 31)

    def test_invalid_date(self):
        with pytest.raises(ValueError):
            convert_untis_date(2024110)
        with pytest.raises(ValueError):
            convert_untis_date(20241310)

    def test_convert_time(self):
        assert convert_untis_time(745) == "07:45"
        assert convert_untis_time(1330) == "13:30"
        assert convert_untis_time(0) == "00:00"

    def test_invalid_time(self):
        with pytest.raises(ValueError):
            convert_untis_time(1275)

    def test_to_untis_date(self):
        assert to_untis_date(date(2024, 1, 10)) == 20240110


class TestUntisPeriod:
    """Test cases for UntisPeriod normalization."""

    def test_to_period_entry(self):
        period = UntisPeriod.model_validate({
            "id": 1001, "date": 20240110, "startTime": 800, "endTime": 845,
            "kl": [{"id": 1, "name": "10A", "longname": "10A"}],
            "te": [
                {"id": 2, "name": "ZED", "longname": "Zed Zulu"},
                {"id": 3, "name": "ANN", "longname": "Anna Alpha", "orgid": 9, "orgname": "MUS"},
            ],
            "su": [{"id": 1, "name": "MATH", "longname": "Mathematics"}],
            "ro": [{"id": 1, "name": "R101", "longname": "Room 101"}],
            "code": "cancelled",
            "substText": "",
            "lstext": "",
            "unknownField": "ignored",
        })

        entry = period.to_period_entry()

        assert entry.id == 1001
        assert entry.date == "2024-01-10"
        assert entry.start_time == "08:00"
        assert entry.teachers == ["Anna Alpha", "Zed Zulu"]
        assert entry.original_teacher == "MUS"
        assert entry.code == "cancelled"
        assert entry.subst_text is None
        assert entry.lstext is None

    def test_missing_fields_rejected(self):
        with pytest.raises(ValidationError):
            UntisPeriod.model_validate({"id": 1, "date": 20240110})

    def test_invalid_date_rejected(self):
        with pytest.raises(ValidationError):
            UntisPeriod.model_validate({"id": 1, "date": 123, "startTime": 800, "endTime": 845})

    def test_invalid_time_rejected(self):
        with pytest.raises(ValidationError):
            UntisPeriod.model_validate({"id": 1, "date": 20240110, "startTime": 1275, "endTime": 1330})


class TestOtherRecords:
    """Test cases for exam, absence, news and school year records."""

    def test_exam_null_lists(self):
        exam = UntisExam.model_validate({
            "examDate": 20240115, "startTime": 1000, "teachers": None, "rooms": None, "studentClass": None
        })
        assert exam.teachers == []
        assert exam.rooms == []
        assert exam.student_class == []

    def test_absence_response(self):
        response = UntisAbsenceResponse.model_validate({
            "absences": [{
                "id": 5, "startDate": 20240109, "lastUpdate": 1704873600000,
                "reason": "Sick", "isExcused": True,
                "excuse": {"id": 1, "excuseDate": 20240111, "username": "Parent"},
            }],
            "absenceReasons": [],
        })

        absence = response.absences[0]
        assert absence.is_excused is True
        assert absence.excuse.username == "Parent"

    @pytest.mark.parametrize("model,data", [
        (UntisExam, {"examDate": 0, "startTime": 1000}),
        (UntisAbsence, {"id": 5, "startDate": 2024019}),
        (UntisAbsence, {"id": 5, "startDate": 20240109, "excuse": {"excuseDate": 99}}),
    ])
    def test_malformed_dates_rejected(self, model, data):
        with pytest.raises(ValidationError):
            model.model_validate(data)

    def test_news_widget(self):
        news = UntisNewsWidget.model_validate({"messagesOfDay": [{"id": 3, "subject": "Trip", "text": "x"}]})
        assert news.messages_of_day[0].id == 3

    def test_school_year_parses_untis_dates(self):
        school_year = SchoolYear.model_validate({"startDate": 20230911, "endDate": "20240726"})
        assert school_year.start_date == date(2023, 9, 11)
        assert school_year.end_date == date(2024, 7, 26)

    @pytest.mark.parametrize("today,start", [
        (date(2024, 1, 10), date(2023, 9, 1)),
        (date(2024, 8, 31), date(2023, 9, 1)),
        (date(2024, 9, 1), date(2024, 9, 1)),
    ])
    def test_school_year_fallback(self, today, start):
        school_year = SchoolYear.containing(today)
        assert school_year.start_date == start
        assert school_year.end_date == date(start.year + 1, 8, 31)
