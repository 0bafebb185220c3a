"""
Content fingerprinting for change detection and deduplication.

This module provides:
- Key-order independent serialization of structured values
- Fingerprint generation (SHA-1 hex digest)
- The identity tuples used for each notification category
"""

import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel

from scheduler.models import Change

logger = structlog.get_logger(__name__)

FINGERPRINT_ALGORITHM = "sha1"


def stable_serialize(value: Any) -> str:
    """
    Render a value as JSON with object keys sorted at every level.

    Arrays keep their element order. Pydantic models are rendered through
    their aliased dump so that a PeriodEntry hashes the same as its
    persisted dict.
    """
    if isinstance(value, BaseModel):
        return stable_serialize(value.model_dump(by_alias=True))
    if isinstance(value, Enum):
        return stable_serialize(value.value)
    if isinstance(value, (datetime, date)):
        return json.dumps(value.isoformat())
    if isinstance(value, dict):
        parts = [
            f"{json.dumps(str(key), ensure_ascii=False)}:{stable_serialize(value[key])}"
            for key in sorted(value, key=str)
        ]
        return "{" + ",".join(parts) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(stable_serialize(item) for item in value) + "]"
    if isinstance(value, float) and value.is_integer():
        return json.dumps(int(value))
    return json.dumps(value, ensure_ascii=False)


def fingerprint(value: Any) -> str:
    """
    Deterministic content hash of a structured value.

    Args:
        value: dict, list, scalar or pydantic model

    Returns:
        40 character hex digest
    """
    digest = hashlib.new(FINGERPRINT_ALGORITHM)
    digest.update(stable_serialize(value).encode("utf-8"))
    return digest.hexdigest()


class ContentFingerprinter:
    """Builds the identity tuple of each category and hashes it."""

    def __init__(self):
        self.logger = logger.bind(component="fingerprinter")

    def timetable_change(self, change: Change) -> str:
        """
        Fingerprint a timetable change.

        The change type is part of the identity so that an 'added' and a later
        'updated' event for the same period produce distinct items.
        """
        entry = change.entry
        uid = fingerprint({
            "type": change.change_type.value,
            "id": entry.id,
            "data": entry.to_record(),
        })
        self.logger.debug(
            "Generated timetable fingerprint",
            change_type=change.change_type.value,
            period_id=entry.id,
            hash=uid[:12]
        )
        return uid

    def exam(self, exam) -> str:
        # Exam ids are unreliable, so the identity is date + subject + start time.
        return fingerprint({
            "type": "exam",
            "date": exam.exam_date,
            "subject": exam.subject,
            "startTime": exam.start_time,
        })

    def absence(self, absence) -> str:
        """Absences re-surface whenever the school updates them."""
        return fingerprint({
            "type": "absence",
            "id": absence.id,
            "lastUpdate": absence.last_update,
        })

    def message(self, message) -> str:
        return fingerprint({"type": "message", "id": message.id})
