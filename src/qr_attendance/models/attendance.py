from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Session:
    name: str
    course_name: str
    session_date: datetime
    id: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class ClaimMetadata:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True, slots=True)
class AttendanceRecord:
    user_id: int
    session_id: int
    scanned_at: datetime
    id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True, slots=True)
class AttendanceSummary:
    attendance_id: int
    session_id: int
    session_name: str
    course_name: str
    scanned_at: datetime
