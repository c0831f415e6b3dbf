from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from qr_attendance.models import AttendanceOutcome, ClaimMetadata, FailureReason
from qr_attendance.services.attendance_service import AttendanceRecorder
from qr_attendance.services.rate_limiter import ScanRateLimiter, ScanRateLimitExceeded

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ClaimSubmission:
    token: Optional[str]
    latitude: Optional[float] = None
    longitude: Optional[float] = None


def resolve_client_ip(forwarded_for: str | None, remote_addr: str | None) -> str | None:
    """First hop of ``X-Forwarded-For`` when present, otherwise the socket address."""

    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    return remote_addr or None


class ClaimHandler:
    def __init__(self, recorder: AttendanceRecorder, limiter: ScanRateLimiter) -> None:
        self._recorder = recorder
        self._limiter = limiter

    def submit(
        self,
        user_id: int,
        submission: ClaimSubmission,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AttendanceOutcome:
        # Charged before the token check, so empty submissions spend the budget too.
        try:
            self._limiter.check(f"user:{user_id}")
        except ScanRateLimitExceeded as exc:
            logger.warning("Throttled attendance claims for user %s", user_id)
            return AttendanceOutcome.failed(FailureReason.RATE_LIMITED, retry_after=exc.retry_after)

        token = (submission.token or "").strip()
        if not token:
            return AttendanceOutcome.failed(FailureReason.MISSING_TOKEN)

        metadata = ClaimMetadata(
            ip_address=ip_address,
            user_agent=user_agent,
            latitude=submission.latitude,
            longitude=submission.longitude,
        )
        return self._recorder.record(user_id, token, metadata)
