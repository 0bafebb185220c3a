"""
Async WebUntis client.

Talks JSON-RPC for the session, timetable and school year, and the REST API
under /WebUntis/api for exams, absences and news. Raw payloads are validated
into the schemas of untis.models before they are returned.
"""

import base64
import itertools
from datetime import date
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from untis.models import (
    SchoolYear, UntisAbsence, UntisAbsenceResponse, UntisCredentials, UntisExam,
    UntisMessage, UntisNewsWidget, UntisPeriod, to_untis_date
)

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

JSONRPC_PATH = "/WebUntis/jsonrpc.do"
TOKEN_PATH = "/WebUntis/api/token/new"
EXAMS_PATH = "/WebUntis/api/exams"
ABSENCES_PATH = "/WebUntis/api/classreg/absences/students"
NEWS_PATH = "/WebUntis/api/public/news/newsWidgetData"

ELEMENT_FIELDS = ["id", "name", "longname", "externalkey"]


class UntisError(Exception):
    """Base class for WebUntis failures."""


class UntisAuthenticationError(UntisError):
    """Login failed or a call was made without a session."""


class UntisRequestError(UntisError):
    """Transport, HTTP or JSON-RPC level failure of a single request."""


class UntisSession(BaseModel):
    session_id: str
    person_id: int
    person_type: int
    klasse_id: Optional[int] = None


class UntisClient:
    """Client for one WebUntis account."""

    def __init__(
        self,
        credentials: UntisCredentials,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the client.

        Args:
            credentials: School, user, password and server
            transport: Optional httpx transport (used by tests)
        """
        self.credentials = credentials
        self.session: Optional[UntisSession] = None
        self._request_ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            base_url=credentials.base_url,
            timeout=credentials.timeout,
            headers={
                "User-Agent": credentials.client_name,
                "Accept": "application/json",
                "Cache-Control": "no-cache",
                "X-Requested-With": "XMLHttpRequest",
            },
            follow_redirects=True,
            transport=transport,
        )
        self.logger = logger.bind(component="untis_client", server=credentials.server)

    @property
    def is_logged_in(self) -> bool:
        return self.session is not None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def login(self) -> UntisSession:
        """
        Authenticate and keep the session cookie.

        Raises:
            UntisAuthenticationError: if the credentials are rejected or the
                server cannot be reached
        """
        try:
            result = await self._rpc("authenticate", {
                "user": self.credentials.username,
                "password": self.credentials.password,
                "client": self.credentials.client_name,
            }, require_session=False)
        except UntisRequestError as e:
            raise UntisAuthenticationError(f"Login failed - {e}") from e

        if not isinstance(result, dict) or not result.get("sessionId"):
            raise UntisAuthenticationError("Login failed - no session id returned")

        self.session = UntisSession(
            session_id=result["sessionId"],
            person_id=result.get("personId", 0),
            person_type=result.get("personType", 0),
            klasse_id=result.get("klasseId"),
        )
        school_cookie = base64.b64encode(self.credentials.school.encode("utf-8")).decode("ascii")
        self._client.cookies.set("JSESSIONID", self.session.session_id, domain=self.credentials.server)
        self._client.cookies.set("schoolname", f'"_{school_cookie}"', domain=self.credentials.server)

        self.logger.info("Logged in", person_id=self.session.person_id)
        return self.session

    async def logout(self) -> None:
        if self.session is None:
            return
        try:
            await self._rpc("logout", {})
        finally:
            self.session = None
            self._client.cookies.clear()
            self.logger.info("Logged out")

    async def get_school_year(self, today: Optional[date] = None) -> SchoolYear:
        """Current school year, or a computed one if the server cannot say."""
        today = today or date.today()
        try:
            result = await self._rpc("getCurrentSchoolyear", {})
            return SchoolYear.model_validate(result)
        except (UntisError, ValidationError) as e:
            self.logger.warning(
                "Could not fetch current school year. Falling back to programmatic dates.",
                error=str(e)
            )
            return SchoolYear.containing(today)

    async def get_timetable(self, start: date, end: date) -> List[UntisPeriod]:
        """Periods of the logged-in person between start and end (inclusive)."""
        session = self._require_session()
        result = await self._rpc("getTimetable", {
            "options": {
                "element": {"id": session.person_id, "type": session.person_type},
                "startDate": to_untis_date(start),
                "endDate": to_untis_date(end),
                "showLsText": True,
                "showStudentgroup": True,
                "showLsNumber": True,
                "showSubstText": True,
                "showInfo": True,
                "showBooking": True,
                "klasseFields": ELEMENT_FIELDS,
                "roomFields": ELEMENT_FIELDS,
                "subjectFields": ELEMENT_FIELDS,
                "teacherFields": ELEMENT_FIELDS,
            }
        })
        return self._parse_records(UntisPeriod, result, "timetable", strict=True)

    async def get_exams(self, start: date, end: date) -> List[UntisExam]:
        session = self._require_session()
        payload = await self._rest(EXAMS_PATH, {
            "startDate": to_untis_date(start),
            "endDate": to_untis_date(end),
            "klasseId": session.klasse_id if session.klasse_id is not None else -1,
            "withGrades": "true",
        })
        exams = (payload.get("data") or {}).get("exams", []) if isinstance(payload, dict) else []
        return self._parse_records(UntisExam, exams, "exams")

    async def get_absences(self, start: date, end: date) -> UntisAbsenceResponse:
        session = self._require_session()
        payload = await self._rest(ABSENCES_PATH, {
            "startDate": to_untis_date(start),
            "endDate": to_untis_date(end),
            "studentId": session.person_id,
            "excuseStatusId": -1,
        })
        data = payload.get("data") if isinstance(payload, dict) else None
        absences = (data or {}).get("absences", [])
        return UntisAbsenceResponse(absences=self._parse_records(UntisAbsence, absences, "absences"))

    async def get_news(self, day: date) -> UntisNewsWidget:
        self._require_session()
        payload = await self._rest(NEWS_PATH, {"date": to_untis_date(day)})
        data = payload.get("data") if isinstance(payload, dict) else None
        messages = (data or {}).get("messagesOfDay") or []
        return UntisNewsWidget(messages_of_day=self._parse_records(UntisMessage, messages, "messages"))

    def _require_session(self) -> UntisSession:
        if self.session is None:
            raise UntisAuthenticationError("Not logged in")
        return self.session

    async def _rpc(self, method: str, params: Dict[str, Any], require_session: bool = True) -> Any:
        """Call a JSON-RPC method and return its result."""
        if require_session:
            self._require_session()
        body = {
            "id": str(next(self._request_ids)),
            "method": method,
            "params": params,
            "jsonrpc": "2.0",
        }
        try:
            response = await self._client.post(
                JSONRPC_PATH, params={"school": self.credentials.school}, json=body
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UntisRequestError(f"{method}: {e}") from e

        if not isinstance(payload, dict):
            raise UntisRequestError(f"{method}: unexpected response")
        if payload.get("error"):
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise UntisRequestError(f"{method}: {message}")
        return payload.get("result")

    async def _bearer_token(self) -> str:
        try:
            response = await self._client.get(TOKEN_PATH)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise UntisRequestError(f"token: {e}") from e
        return response.text.strip()

    async def _rest(self, path: str, params: Dict[str, Any]) -> Any:
        token = await self._bearer_token()
        try:
            response = await self._client.get(
                path, params=params, headers={"Authorization": f"Bearer {token}"}
            )
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UntisRequestError(f"{path}: {e}") from e

    def _parse_records(self, model: Type[RecordT], raw: Any, category: str, strict: bool = False) -> List[RecordT]:
        """Validate raw records one by one.

        Invalid records are dropped, unless ``strict`` is set, in which case the
        first invalid record fails the whole batch. The timetable is parsed
        strictly because a dropped period would read as a removed lesson.
        """
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise UntisRequestError(f"{category}: expected a list, got {type(raw).__name__}")

        records = []
        for item in raw:
            try:
                records.append(model.model_validate(item))
            except ValidationError as e:
                if strict:
                    raise UntisRequestError(f"{category}: invalid record: {e}") from e
                self.logger.warning(
                    "Dropping invalid record",
                    category=category,
                    error=str(e)
                )
        return records
