from __future__ import annotations

import logging

from qr_attendance.config.settings import Settings
from qr_attendance.data import Database
from qr_attendance.services import (
    AttendanceRecorder,
    ClaimHandler,
    QRCodeIssuer,
    QRCodeRenderer,
    ScanRateLimiter,
    SessionRepository,
    TokenSigner,
    TokenStore,
    TokenValidator,
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


class AttendanceApp:
    """Wires storage, token services and the claim pipeline from one Settings object."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

        self.database = Database(settings.database_path)
        self.sessions = SessionRepository(self.database)
        self.token_store = TokenStore(self.database)
        self.signer = TokenSigner(settings.qr_secret, ttl_seconds=settings.qr_token_expiry)
        self.validator = TokenValidator(settings.qr_secret, ttl_seconds=settings.qr_token_expiry)
        self.recorder = AttendanceRecorder(self.database, self.validator, self.sessions)
        self.rate_limiter = ScanRateLimiter(
            settings.attendance_rate_limit,
            settings.attendance_rate_window,
        )
        self.claims = ClaimHandler(self.recorder, self.rate_limiter)
        self.issuer = QRCodeIssuer(
            self.signer,
            self.token_store,
            self.sessions,
            base_url=settings.public_backend_url,
            renderer=QRCodeRenderer(size=settings.qr_image_size),
        )

    def initialize(self) -> list[str]:
        return self.database.initialize()
