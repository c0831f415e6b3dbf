from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

BUSY_TIMEOUT_SECONDS = 10.0


class Database:
    """Short-lived SQLite connections plus an ordered migration runner.

    Every ``connect()`` opens its own connection, so callers on different
    threads (or processes) never share one. Concurrent writers wait on the
    SQLite lock for up to ``BUSY_TIMEOUT_SECONDS``.
    """

    def __init__(self, db_path: Path, *, timeout: float = BUSY_TIMEOUT_SECONDS) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._db_path

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        connection = sqlite3.connect(self._db_path, timeout=self._timeout)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        try:
            yield connection
            connection.commit()
        except Exception:
            connection.rollback()
            raise
        finally:
            connection.close()

    def initialize(self) -> list[str]:
        """Apply pending migrations and return the names of those applied."""

        migrations_dir = Path(__file__).resolve().parent / "migrations"
        migration_files = sorted(migrations_dir.glob("*.sql"))
        newly_applied: list[str] = []

        with self.connect() as connection:
            connection.execute("PRAGMA journal_mode = WAL")
            self._ensure_migrations_table(connection)
            applied = {
                row["name"] for row in connection.execute("SELECT name FROM schema_migrations")
            }

            for migration in migration_files:
                if migration.name in applied:
                    continue
                with migration.open("r", encoding="utf-8") as sql_file:
                    sql_script = sql_file.read()
                connection.executescript(sql_script)
                connection.execute(
                    "INSERT INTO schema_migrations(name) VALUES (?)",
                    (migration.name,),
                )
                newly_applied.append(migration.name)

        return newly_applied

    @staticmethod
    def _ensure_migrations_table(connection: sqlite3.Connection) -> None:
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            """
        )
