from __future__ import annotations

import logging
from typing import Callable

from qr_attendance.data import Database
from qr_attendance.models import TokenRecord
from qr_attendance.utils.time import now_millis

logger = logging.getLogger(__name__)


class TokenStore:
    """Bookkeeping for issued tokens.

    Rows are an audit trail only. Validation never reads this table, so a
    swept token stays usable until its own window closes.
    """

    def __init__(self, database: Database, *, clock: Callable[[], int] = now_millis) -> None:
        self._database = database
        self._clock = clock

    def persist(
        self,
        token: str,
        session_id: int,
        expires_at: int,
        *,
        created_at: int | None = None,
    ) -> TokenRecord:
        created_value = int(created_at) if created_at is not None else self._clock()
        with self._database.connect() as connection:
            cursor = connection.execute(
                """
                INSERT INTO qr_tokens (token, session_id, expires_at, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (token, int(session_id), int(expires_at), created_value),
            )
            record_id = int(cursor.lastrowid)

        return TokenRecord(
            id=record_id,
            token=token,
            session_id=int(session_id),
            expires_at=int(expires_at),
            created_at=created_value,
        )

    def sweep(self) -> int:
        """Delete every record whose expiry has passed. Returns the count removed."""

        cutoff = self._clock()
        with self._database.connect() as connection:
            cursor = connection.execute(
                "DELETE FROM qr_tokens WHERE expires_at < ?",
                (cutoff,),
            )
            removed = int(cursor.rowcount or 0)

        if removed:
            logger.debug("Swept %d expired QR token record(s)", removed)
        return removed

    def list_for_session(self, session_id: int) -> list[TokenRecord]:
        with self._database.connect() as connection:
            rows = connection.execute(
                """
                SELECT id, token, session_id, expires_at, created_at
                  FROM qr_tokens
                 WHERE session_id = ?
              ORDER BY created_at DESC, id DESC
                """,
                (int(session_id),),
            ).fetchall()

        return [
            TokenRecord(
                id=int(row["id"]),
                token=row["token"],
                session_id=int(row["session_id"]),
                expires_at=int(row["expires_at"]),
                created_at=int(row["created_at"]),
            )
            for row in rows
        ]
