"""
Pydantic models for raw WebUntis records.

The WebUntis API returns loosely structured JSON. Every record is validated
against one of these schemas when it leaves the client, so the change
detection engine only ever sees typed values.
"""

from datetime import date
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scheduler.models import PeriodEntry


def convert_untis_date(value: Union[int, str]) -> date:
    """Convert a WebUntis YYYYMMDD integer (or string) to a date."""
    text = str(value).strip()
    if len(text) != 8 or not text.isdigit():
        raise ValueError(f"invalid WebUntis date: {value!r}")
    return date(int(text[:4]), int(text[4:6]), int(text[6:]))


def convert_untis_time(value: Union[int, str]) -> str:
    """Convert a WebUntis HHMM integer (e.g. 745, 1330) to 'HH:MM'."""
    number = int(value)
    hours, minutes = divmod(number, 100)
    if hours > 23 or minutes > 59 or number < 0:
        raise ValueError(f"invalid WebUntis time: {value!r}")
    return f"{hours:02d}:{minutes:02d}"


def to_untis_date(value: date) -> int:
    """Convert a date to the YYYYMMDD integer WebUntis expects."""
    return int(value.strftime("%Y%m%d"))


class UntisCredentials(BaseModel):
    """Connection settings for one WebUntis account."""
    school: str
    username: str
    password: str
    server: str
    client_name: str = "UntisFeedBot/1.0"
    timeout: int = 30

    model_config = ConfigDict(frozen=True)

    @property
    def base_url(self) -> str:
        return f"https://{self.server}"


class UntisRecord(BaseModel):
    """Base for raw records: unknown fields are ignored, aliases are camelCase."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class UntisEntity(UntisRecord):
    """A class, subject or room reference inside a period."""
    id: int = 0
    name: str = ""
    longname: str = ""

    @property
    def display_name(self) -> str:
        return self.longname or self.name


class UntisTeacher(UntisEntity):
    """Teacher reference; orgname is set when the teacher is substituted."""
    orgid: Optional[int] = None
    orgname: Optional[str] = None


class UntisPeriod(UntisRecord):
    """One lesson occurrence as returned by getTimetable."""
    id: int
    date: int
    start_time: int = Field(..., alias="startTime")
    end_time: int = Field(..., alias="endTime")
    kl: List[UntisEntity] = Field(default_factory=list)
    te: List[UntisTeacher] = Field(default_factory=list)
    su: List[UntisEntity] = Field(default_factory=list)
    ro: List[UntisEntity] = Field(default_factory=list)
    lsnumber: Optional[int] = None
    activity_type: Optional[str] = Field(default=None, alias="activityType")
    code: Optional[str] = None
    subst_text: Optional[str] = Field(default=None, alias="substText")
    lstext: Optional[str] = None
    sg: Optional[str] = None
    bk_remark: Optional[str] = Field(default=None, alias="bkRemark")

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        convert_untis_date(v)
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v):
        convert_untis_time(v)
        return v

    def to_period_entry(self) -> PeriodEntry:
        """Normalize into the comparable PeriodEntry view."""
        original_teacher = next((t.orgname for t in self.te if t.orgname), None)
        return PeriodEntry(
            id=self.id,
            date=convert_untis_date(self.date).isoformat(),
            start_time=convert_untis_time(self.start_time),
            end_time=convert_untis_time(self.end_time),
            subjects=[s.longname for s in self.su],
            teachers=[t.longname for t in self.te],
            rooms=[r.longname for r in self.ro],
            code=self.code or None,
            subst_text=self.subst_text or None,
            original_teacher=original_teacher,
            lstext=self.lstext or None,
        )


class UntisExam(UntisRecord):
    """Exam record from the exams endpoint. The id is not reliable (often 0)."""
    id: int = 0
    exam_type: Optional[str] = Field(default=None, alias="examType")
    name: str = ""
    student_class: List[str] = Field(default_factory=list, alias="studentClass")
    exam_date: int = Field(..., alias="examDate")
    start_time: int = Field(..., alias="startTime")
    end_time: int = Field(default=0, alias="endTime")
    subject: str = ""
    teachers: List[str] = Field(default_factory=list)
    rooms: List[str] = Field(default_factory=list)
    text: Optional[str] = None

    @field_validator("teachers", "rooms", "student_class", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []

    @field_validator("exam_date")
    @classmethod
    def validate_exam_date(cls, v):
        convert_untis_date(v)
        return v


class UntisExcuse(UntisRecord):
    id: int = 0
    text: Optional[str] = None
    excuse_date: Optional[int] = Field(default=None, alias="excuseDate")
    excuse_status: Optional[str] = Field(default=None, alias="excuseStatus")
    is_excused: bool = Field(default=False, alias="isExcused")
    user_id: Optional[int] = Field(default=None, alias="userId")
    username: Optional[str] = None

    @field_validator("excuse_date")
    @classmethod
    def validate_excuse_date(cls, v):
        if v:
            convert_untis_date(v)
        return v


class UntisAbsence(UntisRecord):
    """Student absence; lastUpdate changes whenever the school edits it."""
    id: int
    start_date: int = Field(..., alias="startDate")
    end_date: Optional[int] = Field(default=None, alias="endDate")
    start_time: Optional[int] = Field(default=None, alias="startTime")
    end_time: Optional[int] = Field(default=None, alias="endTime")
    create_date: Optional[int] = Field(default=None, alias="createDate")
    last_update: Optional[int] = Field(default=None, alias="lastUpdate")
    created_user: Optional[str] = Field(default=None, alias="createdUser")
    updated_user: Optional[str] = Field(default=None, alias="updatedUser")
    reason_id: Optional[int] = Field(default=None, alias="reasonId")
    reason: str = ""
    text: Optional[str] = None
    student_name: Optional[str] = Field(default=None, alias="studentName")
    excuse_status: Optional[str] = Field(default=None, alias="excuseStatus")
    is_excused: bool = Field(default=False, alias="isExcused")
    excuse: Optional[UntisExcuse] = None

    @field_validator("start_date")
    @classmethod
    def validate_start_date(cls, v):
        convert_untis_date(v)
        return v


class UntisAbsenceResponse(UntisRecord):
    absences: List[UntisAbsence] = Field(default_factory=list)


class UntisMessage(UntisRecord):
    """A message of the day from the news widget."""
    id: int
    subject: str = ""
    text: str = ""


class UntisNewsWidget(UntisRecord):
    messages_of_day: List[UntisMessage] = Field(default_factory=list, alias="messagesOfDay")


class SchoolYear(UntisRecord):
    """Current school year bounds."""
    id: Optional[int] = None
    name: Optional[str] = None
    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_untis_date(cls, v: Any):
        if isinstance(v, int) or (isinstance(v, str) and v.isdigit() and len(v) == 8):
            return convert_untis_date(v)
        return v

    @classmethod
    def containing(cls, today: date) -> "SchoolYear":
        """Fallback school year: 1 September to 31 August around today."""
        start_year = today.year if today.month >= 9 else today.year - 1
        return cls(
            start_date=date(start_year, 9, 1),
            end_date=date(start_year + 1, 8, 31),
        )
