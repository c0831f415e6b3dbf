from __future__ import annotations

from qr_attendance.data import Database
from qr_attendance.models import Session
from qr_attendance.utils.time import coerce_datetime, isoformat_utc


class SessionNotFoundError(LookupError):
    """Raised when a session id does not match any stored session."""


class SessionRepository:
    def __init__(self, database: Database) -> None:
        self._database = database

    def create_session(self, session: Session) -> int:
        with self._database.connect() as connection:
            cursor = connection.execute(
                """
                INSERT INTO sessions (name, course_name, session_date, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    session.name.strip(),
                    session.course_name.strip(),
                    isoformat_utc(session.session_date),
                    isoformat_utc(session.created_at),
                ),
            )
            return int(cursor.lastrowid)

    def get_session(self, session_id: int) -> Session | None:
        with self._database.connect() as connection:
            row = connection.execute(
                """
                SELECT id, name, course_name, session_date, created_at
                  FROM sessions
                 WHERE id = ?
                """,
                (int(session_id),),
            ).fetchone()

        if not row:
            return None

        return Session(
            id=int(row["id"]),
            name=row["name"],
            course_name=row["course_name"],
            session_date=coerce_datetime(row["session_date"]),
            created_at=coerce_datetime(row["created_at"]),
        )

    def require_session(self, session_id: int) -> Session:
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} does not exist.")
        return session

    def count_sessions(self) -> int:
        with self._database.connect() as connection:
            return int(connection.execute("SELECT COUNT(*) FROM sessions").fetchone()[0])
