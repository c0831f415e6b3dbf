from .attendance import AttendanceRecord, AttendanceSummary, ClaimMetadata, Session
from .outcomes import FAILURE_MESSAGES, AttendanceOutcome, FailureReason
from .tokens import TokenRecord, TokenValidation

__all__ = [
    "AttendanceOutcome",
    "AttendanceRecord",
    "AttendanceSummary",
    "ClaimMetadata",
    "FAILURE_MESSAGES",
    "FailureReason",
    "Session",
    "TokenRecord",
    "TokenValidation",
]
