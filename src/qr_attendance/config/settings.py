from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parents[3]
ENV_PATH = BASE_DIR / ".env"
load_dotenv(ENV_PATH)

APP_NAME = os.getenv("APP_NAME", "QR Attendance")
APP_DATA_DIR = Path(os.getenv("APP_DATA_DIR", str(Path.home() / ".qr_attendance"))).expanduser()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass(frozen=True)
class Settings:
    app_name: str = APP_NAME
    database_path: Path = field(
        default_factory=lambda: Path(os.getenv("DATABASE_PATH", str(APP_DATA_DIR / "attendance.db")))
    )
    qr_secret: str = field(default_factory=lambda: os.getenv("QR_SECRET", "your-qr-secret"))
    qr_token_expiry: int = field(default_factory=lambda: _env_int("QR_TOKEN_EXPIRY", 300))
    public_backend_url: str = field(
        default_factory=lambda: os.getenv("PUBLIC_BACKEND_URL", "http://localhost:3000")
    )
    qr_image_size: int = field(default_factory=lambda: _env_int("QR_IMAGE_SIZE", 400))
    attendance_rate_limit: int = field(default_factory=lambda: _env_int("ATTENDANCE_RATE_LIMIT", 10))
    attendance_rate_window: int = field(default_factory=lambda: _env_int("ATTENDANCE_RATE_WINDOW", 60))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    def __repr__(self) -> str:
        # The signing secret never appears in logs or tracebacks.
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"database_path={str(self.database_path)!r}, "
            f"qr_token_expiry={self.qr_token_expiry}, "
            f"public_backend_url={self.public_backend_url!r}, "
            f"qr_image_size={self.qr_image_size}, "
            f"attendance_rate_limit={self.attendance_rate_limit}, "
            f"attendance_rate_window={self.attendance_rate_window}, "
            f"log_level={self.log_level!r})"
        )


settings = Settings()


def refresh_settings() -> Settings:
    """Rebuild the settings object from the current environment."""

    global settings  # noqa: PLW0603 - module-level singleton

    load_dotenv(ENV_PATH, override=False)
    settings = Settings()
    return settings
