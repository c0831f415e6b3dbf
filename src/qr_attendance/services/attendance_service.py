from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable

from qr_attendance.data import Database
from qr_attendance.models import (
    AttendanceOutcome,
    AttendanceRecord,
    AttendanceSummary,
    ClaimMetadata,
    FailureReason,
    Session,
)
from qr_attendance.services.sessions import SessionRepository
from qr_attendance.services.tokens import TokenValidator
from qr_attendance.utils.time import coerce_datetime, isoformat_utc

logger = logging.getLogger(__name__)

RECENT_ATTENDANCE_LIMIT = 10
WEEKLY_BREAKDOWN_WEEKS = 8
SQLITE_INTEGER_MIN = -(2**63)
SQLITE_INTEGER_MAX = 2**63 - 1


class DuplicateAttendanceError(RuntimeError):
    """Raised when a user has already been recorded for the session."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttendanceRecorder:
    """Turns a scanned token into exactly one attendance row per user and session.

    The existence check before the insert only saves a write. The
    ``UNIQUE (user_id, session_id)`` constraint is what keeps concurrent
    claims, from this process or any other, down to a single row.
    """

    def __init__(
        self,
        database: Database,
        validator: TokenValidator,
        sessions: SessionRepository | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._database = database
        self._validator = validator
        self._sessions = sessions or SessionRepository(database)
        self._clock = clock

    def record(
        self,
        user_id: int,
        token: str,
        metadata: ClaimMetadata | None = None,
    ) -> AttendanceOutcome:
        metadata = metadata or ClaimMetadata()

        validation = self._validator.validate(token)
        if not validation.valid:
            logger.info("Rejected attendance token for user %s: %s", user_id, validation.reason.value)
            return AttendanceOutcome.failed(validation.reason)

        session_id = int(validation.session_id)
        if not SQLITE_INTEGER_MIN <= session_id <= SQLITE_INTEGER_MAX:
            # No stored session can carry an id SQLite cannot represent.
            logger.info("User %s scanned a token for out-of-range session id", user_id)
            return AttendanceOutcome.failed(FailureReason.SESSION_NOT_FOUND)

        try:
            session = self._sessions.get_session(session_id)
            if session is None:
                logger.info("User %s scanned a token for unknown session %s", user_id, session_id)
                return AttendanceOutcome.failed(FailureReason.SESSION_NOT_FOUND)

            if self.has_attendance(user_id, session_id):
                return AttendanceOutcome.failed(FailureReason.DUPLICATE)

            record = self._insert_attendance(user_id, session_id, metadata)
        except DuplicateAttendanceError:
            logger.info("Concurrent duplicate claim for user %s in session %s", user_id, session_id)
            return AttendanceOutcome.failed(FailureReason.DUPLICATE)
        except Exception:
            logger.exception("Error recording attendance for user %s in session %s", user_id, session_id)
            return AttendanceOutcome.failed(FailureReason.INTERNAL)

        logger.info(
            "Attendance recorded for user %s in session %s (attendance id %s)",
            user_id,
            session_id,
            record.id,
        )
        return AttendanceOutcome.succeeded(self._summarize(record, session))

    def has_attendance(self, user_id: int, session_id: int) -> bool:
        with self._database.connect() as connection:
            row = connection.execute(
                "SELECT id FROM attendance_records WHERE user_id = ? AND session_id = ?",
                (int(user_id), int(session_id)),
            ).fetchone()
        return row is not None

    def get_attendance(self, user_id: int, session_id: int) -> AttendanceRecord | None:
        with self._database.connect() as connection:
            row = connection.execute(
                """
                SELECT id, user_id, session_id, scanned_at, ip_address, user_agent, latitude, longitude
                  FROM attendance_records
                 WHERE user_id = ? AND session_id = ?
                """,
                (int(user_id), int(session_id)),
            ).fetchone()

        if not row:
            return None
        return self._row_to_record(row)

    def get_user_attendance_stats(self, user_id: int) -> dict:
        total_sessions = self._sessions.count_sessions()

        with self._database.connect() as connection:
            attendance_count = int(
                connection.execute(
                    "SELECT COUNT(*) FROM attendance_records WHERE user_id = ?",
                    (int(user_id),),
                ).fetchone()[0]
            )
            rows = connection.execute(
                """
                SELECT ar.id,
                       ar.session_id,
                       ar.scanned_at,
                       s.name AS session_name,
                       s.course_name,
                       s.session_date
                  FROM attendance_records AS ar
            INNER JOIN sessions AS s ON s.id = ar.session_id
                 WHERE ar.user_id = ?
              ORDER BY ar.scanned_at DESC, ar.id DESC
                 LIMIT ?
                """,
                (int(user_id), RECENT_ATTENDANCE_LIMIT),
            ).fetchall()
            weekly_breakdown = self._weekly_breakdown(connection, int(user_id), self._clock())

        attendance_rate = round(attendance_count / total_sessions * 100, 2) if total_sessions > 0 else 0.0

        return {
            "user_id": int(user_id),
            "total_sessions": total_sessions,
            "attendance_count": attendance_count,
            "absence_count": max(0, total_sessions - attendance_count),
            "attendance_rate": attendance_rate,
            "weekly_breakdown": weekly_breakdown,
            "recent_attendances": [
                {
                    "id": int(row["id"]),
                    "session_id": int(row["session_id"]),
                    "session_name": row["session_name"],
                    "course_name": row["course_name"],
                    "date": coerce_datetime(row["session_date"]),
                    "scanned_at": coerce_datetime(row["scanned_at"]),
                }
                for row in rows
            ],
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _weekly_breakdown(connection: sqlite3.Connection, user_id: int, now: datetime) -> list[dict]:
        """Sunday-based weeks, oldest first, ending with the week containing ``now``.

        ``attended`` counts claims by scan time; ``total`` counts sessions by
        their scheduled date.
        """

        now = coerce_datetime(now)
        days_since_sunday = (now.weekday() + 1) % 7
        current_week_start = (now - timedelta(days=days_since_sunday)).replace(
            hour=0, minute=0, second=0, microsecond=0
        )

        breakdown: list[dict] = []
        for weeks_back in range(WEEKLY_BREAKDOWN_WEEKS - 1, -1, -1):
            week_start = current_week_start - timedelta(weeks=weeks_back)
            bounds = (isoformat_utc(week_start), isoformat_utc(week_start + timedelta(weeks=1)))

            attended = int(
                connection.execute(
                    """
                    SELECT COUNT(*) FROM attendance_records
                     WHERE user_id = ? AND scanned_at >= ? AND scanned_at < ?
                    """,
                    (user_id, *bounds),
                ).fetchone()[0]
            )
            total = int(
                connection.execute(
                    "SELECT COUNT(*) FROM sessions WHERE session_date >= ? AND session_date < ?",
                    bounds,
                ).fetchone()[0]
            )
            breakdown.append(
                {
                    "week": f"Week {WEEKLY_BREAKDOWN_WEEKS - weeks_back}",
                    "week_start": week_start,
                    "attended": attended,
                    "absent": max(0, total - attended),
                    "total": total,
                }
            )
        return breakdown

    def _insert_attendance(self, user_id: int, session_id: int, metadata: ClaimMetadata) -> AttendanceRecord:
        scanned_at = self._clock()
        with self._database.connect() as connection:
            try:
                cursor = connection.execute(
                    """
                    INSERT INTO attendance_records (
                        user_id, session_id, scanned_at, ip_address, user_agent, latitude, longitude
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        int(user_id),
                        int(session_id),
                        isoformat_utc(scanned_at),
                        metadata.ip_address,
                        metadata.user_agent,
                        metadata.latitude,
                        metadata.longitude,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                if "UNIQUE" not in str(exc).upper():
                    raise
                raise DuplicateAttendanceError("User already recorded for this session.") from exc
            record_id = int(cursor.lastrowid)

        return AttendanceRecord(
            id=record_id,
            user_id=int(user_id),
            session_id=int(session_id),
            scanned_at=coerce_datetime(isoformat_utc(scanned_at)),
            ip_address=metadata.ip_address,
            user_agent=metadata.user_agent,
            latitude=metadata.latitude,
            longitude=metadata.longitude,
        )

    @staticmethod
    def _summarize(record: AttendanceRecord, session: Session) -> AttendanceSummary:
        return AttendanceSummary(
            attendance_id=int(record.id),
            session_id=record.session_id,
            session_name=session.name,
            course_name=session.course_name,
            scanned_at=record.scanned_at,
        )

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> AttendanceRecord:
        return AttendanceRecord(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            session_id=int(row["session_id"]),
            scanned_at=coerce_datetime(row["scanned_at"]),
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            latitude=row["latitude"],
            longitude=row["longitude"],
        )
