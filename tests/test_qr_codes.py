import base64
import io
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import pytest
from PIL import Image

from qr_attendance.data import Database
from qr_attendance.models import Session
from qr_attendance.services import (
    QRCodeIssuer,
    QRCodeRenderer,
    SessionNotFoundError,
    SessionRepository,
    TokenSigner,
    TokenStore,
    TokenValidator,
    build_scan_url,
)
from qr_attendance.services.qr_codes import to_data_url

T0 = 1_716_400_000_000


class FakeClock:
    def __init__(self, now_ms: int) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


def build_issuer(tmp_path, clock: FakeClock, *, wire_store: bool = False):
    database = Database(tmp_path / "attendance.db")
    database.initialize()
    sessions = SessionRepository(database)
    store = TokenStore(database, clock=clock)
    signer = TokenSigner("s1", ttl_seconds=300, clock=clock, store=store if wire_store else None)
    issuer = QRCodeIssuer(signer, store, sessions, base_url="https://attend.example.edu/", renderer=QRCodeRenderer(size=200))
    session_id = sessions.create_session(
        Session(name="Lecture 5", course_name="CS101", session_date=datetime(2025, 10, 2, tzinfo=timezone.utc))
    )
    return issuer, store, session_id


def test_build_scan_url_encodes_token():
    url = build_scan_url("http://localhost:3000/", "12:1716400000000:3f2a9c")

    assert url == "http://localhost:3000/api/attendance/scan?token=12%3A1716400000000%3A3f2a9c"
    assert parse_qs(urlparse(url).query)["token"] == ["12:1716400000000:3f2a9c"]


def test_renderer_produces_square_image_and_data_url():
    image = QRCodeRenderer().render("http://localhost:3000/api/attendance/scan?token=1%3A2%3A3")

    assert image.size == (400, 400)
    assert image.mode == "RGB"
    assert image.getpixel((0, 0)) == (255, 255, 255)

    data_url = to_data_url(image)
    assert data_url.startswith("data:image/png;base64,")
    decoded = Image.open(io.BytesIO(base64.b64decode(data_url.split(",", 1)[1])))
    assert decoded.size == (400, 400)


def test_issue_for_session_persists_and_returns_valid_token(tmp_path):
    clock = FakeClock(T0)
    issuer, store, session_id = build_issuer(tmp_path, clock)

    issued = issuer.issue_for_session(session_id)

    assert TokenValidator("s1", clock=clock).validate(issued.token).session_id == session_id
    assert issued.expires_at == T0 + 300_000
    assert issued.expires_in == 300
    assert issued.scan_url.startswith("https://attend.example.edu/api/attendance/scan?token=")
    assert issued.png.startswith(b"\x89PNG")
    assert issued.to_payload()["qr_code"].startswith("data:image/png;base64,")
    assert [r.token for r in store.list_for_session(session_id)] == [issued.token]


def test_wired_signer_is_not_persisted_twice(tmp_path):
    clock = FakeClock(T0)
    issuer, store, session_id = build_issuer(tmp_path, clock, wire_store=True)

    issuer.issue_for_session(session_id)

    assert len(store.list_for_session(session_id)) == 1


def test_issue_sweeps_expired_records_and_rotates(tmp_path):
    clock = FakeClock(T0)
    issuer, store, session_id = build_issuer(tmp_path, clock)

    first = issuer.issue_for_session(session_id)
    clock.now_ms += 200_000
    second = issuer.issue_for_session(session_id)
    validator = TokenValidator("s1", clock=clock)

    assert validator.validate(first.token).valid is True
    assert validator.validate(second.token).valid is True
    assert len(store.list_for_session(session_id)) == 2

    clock.now_ms += 200_000
    issuer.issue_for_session(session_id)

    remaining = {r.token for r in store.list_for_session(session_id)}
    assert first.token not in remaining
    assert second.token in remaining


def test_issue_for_unknown_session_raises(tmp_path):
    issuer, _, _ = build_issuer(tmp_path, FakeClock(T0))

    with pytest.raises(SessionNotFoundError):
        issuer.issue_for_session(999)
