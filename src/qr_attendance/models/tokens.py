from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from qr_attendance.utils.time import from_millis

if TYPE_CHECKING:
    from qr_attendance.models.outcomes import FailureReason


@dataclass(frozen=True, slots=True)
class TokenRecord:
    """Audit row for an issued token. Holding one grants nothing by itself."""

    token: str
    session_id: int
    expires_at: int
    created_at: int
    id: Optional[int] = None

    @property
    def expires_at_datetime(self) -> datetime:
        return from_millis(self.expires_at)


@dataclass(frozen=True, slots=True)
class TokenValidation:
    valid: bool
    session_id: Optional[int] = None
    timestamp: Optional[int] = None
    reason: Optional["FailureReason"] = None

    @property
    def error(self) -> Optional[str]:
        return self.reason.message if self.reason else None
