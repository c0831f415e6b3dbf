from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from qr_attendance.models.attendance import AttendanceSummary
from qr_attendance.utils.time import isoformat_utc


class FailureReason(str, Enum):
    """Why a token check or an attendance claim was refused."""

    INVALID_FORMAT = "invalid_format"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    SESSION_NOT_FOUND = "session_not_found"
    DUPLICATE = "duplicate"
    INTERNAL = "internal"
    MISSING_TOKEN = "missing_token"
    RATE_LIMITED = "rate_limited"

    @property
    def message(self) -> str:
        return FAILURE_MESSAGES[self][0]

    @property
    def message_ar(self) -> str:
        return FAILURE_MESSAGES[self][1]


_QR_INVALID_AR = "رمز QR غير صالح أو منتهي الصلاحية"

# English text first, Arabic second. The presentation layer renders both.
FAILURE_MESSAGES: dict[FailureReason, tuple[str, str]] = {
    FailureReason.INVALID_FORMAT: ("Invalid token format", _QR_INVALID_AR),
    FailureReason.INVALID_SIGNATURE: ("Invalid token signature", _QR_INVALID_AR),
    FailureReason.EXPIRED: ("Token expired", _QR_INVALID_AR),
    FailureReason.SESSION_NOT_FOUND: ("Session not found", "الجلسة غير موجودة"),
    FailureReason.DUPLICATE: ("Attendance already recorded", "تم تسجيل حضورك مسبقاً"),
    FailureReason.INTERNAL: ("Failed to record attendance", "فشل في تسجيل الحضور"),
    FailureReason.MISSING_TOKEN: ("Token is required", "الرمز مطلوب"),
    FailureReason.RATE_LIMITED: (
        "Too many attendance attempts, please try again later",
        "محاولات كثيرة جداً، يرجى المحاولة لاحقاً",
    ),
}

SUCCESS_MESSAGE = "Attendance recorded successfully"
SUCCESS_MESSAGE_AR = "تم تسجيل حضورك بنجاح"


@dataclass(frozen=True, slots=True)
class AttendanceOutcome:
    success: bool
    reason: Optional[FailureReason] = None
    summary: Optional[AttendanceSummary] = None
    retry_after: Optional[float] = None

    @classmethod
    def succeeded(cls, summary: AttendanceSummary) -> "AttendanceOutcome":
        return cls(success=True, summary=summary)

    @classmethod
    def failed(cls, reason: FailureReason, *, retry_after: float | None = None) -> "AttendanceOutcome":
        return cls(success=False, reason=reason, retry_after=retry_after)

    @property
    def error(self) -> Optional[str]:
        return self.reason.message if self.reason else None

    def to_payload(self) -> dict[str, Any]:
        if self.success and self.summary is not None:
            return {
                "success": True,
                "message": SUCCESS_MESSAGE,
                "message_ar": SUCCESS_MESSAGE_AR,
                "attendance": {
                    "id": self.summary.attendance_id,
                    "session_name": self.summary.session_name,
                    "course_name": self.summary.course_name,
                    "scanned_at": isoformat_utc(self.summary.scanned_at),
                },
            }

        reason = self.reason or FailureReason.INTERNAL
        payload: dict[str, Any] = {
            "success": False,
            "reason": reason.value,
            "error": reason.message,
            "error_ar": reason.message_ar,
        }
        if self.retry_after is not None:
            payload["retry_after"] = round(self.retry_after, 3)
        return payload
