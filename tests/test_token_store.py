from datetime import datetime, timezone

from qr_attendance.data import Database
from qr_attendance.models import Session
from qr_attendance.services import SessionRepository, TokenSigner, TokenStore, TokenValidator

T0 = 1_716_400_000_000


class FakeClock:
    def __init__(self, now_ms: int) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


def create_session(database: Database, name: str = "Lecture 1") -> int:
    return SessionRepository(database).create_session(
        Session(
            name=name,
            course_name="CS101",
            session_date=datetime(2025, 10, 2, 10, 0, tzinfo=timezone.utc),
        )
    )


def test_persist_and_list_for_session(tmp_path):
    database = Database(tmp_path / "attendance.db")
    database.initialize()
    session_id = create_session(database)
    store = TokenStore(database, clock=FakeClock(T0))

    record = store.persist("token-a", session_id, T0 + 300_000)

    assert record.id > 0
    assert record.created_at == T0
    assert record.expires_at_datetime == datetime.fromtimestamp((T0 + 300_000) / 1000, tz=timezone.utc)
    assert [r.token for r in store.list_for_session(session_id)] == ["token-a"]


def test_sweep_removes_only_expired_records_and_is_idempotent(tmp_path):
    database = Database(tmp_path / "attendance.db")
    database.initialize()
    session_id = create_session(database)
    clock = FakeClock(T0)
    store = TokenStore(database, clock=clock)

    store.persist("old", session_id, T0 - 1)
    store.persist("edge", session_id, T0)
    store.persist("fresh", session_id, T0 + 60_000)

    assert store.sweep() == 1
    assert store.sweep() == 0
    assert sorted(r.token for r in store.list_for_session(session_id)) == ["edge", "fresh"]


def test_wired_signer_persists_record_with_ttl_expiry(tmp_path):
    database = Database(tmp_path / "attendance.db")
    database.initialize()
    session_id = create_session(database)
    clock = FakeClock(T0)
    store = TokenStore(database, clock=clock)
    signer = TokenSigner("s1", ttl_seconds=300, store=store, clock=clock)

    token = signer.issue(session_id)

    records = store.list_for_session(session_id)
    assert len(records) == 1
    assert records[0].token == token
    assert records[0].expires_at == records[0].created_at + 300_000


def test_wired_signer_issues_for_unknown_session(tmp_path):
    database = Database(tmp_path / "attendance.db")
    database.initialize()
    clock = FakeClock(T0)
    store = TokenStore(database, clock=clock)
    signer = TokenSigner("s1", ttl_seconds=300, store=store, clock=clock)

    token = signer.issue(777)

    assert token.startswith("777:")
    assert [r.token for r in store.list_for_session(777)] == [token]


def test_swept_token_still_validates(tmp_path):
    database = Database(tmp_path / "attendance.db")
    database.initialize()
    session_id = create_session(database)
    clock = FakeClock(T0)
    store = TokenStore(database, clock=clock)
    signer = TokenSigner("s1", ttl_seconds=300, store=store, clock=clock)
    validator = TokenValidator("s1", ttl_seconds=300, clock=clock)

    token = signer.issue(session_id)
    with database.connect() as connection:
        connection.execute("DELETE FROM qr_tokens")

    assert store.list_for_session(session_id) == []
    assert validator.validate(token).valid is True
