from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode

import qrcode
from PIL import Image
from qrcode.constants import ERROR_CORRECT_M

from qr_attendance.services.sessions import SessionRepository
from qr_attendance.services.token_store import TokenStore
from qr_attendance.services.tokens import TokenSigner
from qr_attendance.utils.time import from_millis

logger = logging.getLogger(__name__)

SCAN_PATH = "/api/attendance/scan"
DEFAULT_IMAGE_SIZE = 400
DEFAULT_MARGIN = 2
DARK_COLOR = "#000000"
LIGHT_COLOR = "#FFFFFF"


def build_scan_url(base_url: str, token: str, *, path: str = SCAN_PATH) -> str:
    return f"{base_url.rstrip('/')}{path}?{urlencode({'token': token})}"


def to_png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def png_data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def to_data_url(image: Image.Image) -> str:
    return png_data_url(to_png_bytes(image))


class QRRenderer(Protocol):
    def render(self, url: str) -> Image.Image:
        ...


class QRCodeRenderer:
    def __init__(
        self,
        *,
        size: int = DEFAULT_IMAGE_SIZE,
        margin: int = DEFAULT_MARGIN,
        dark: str = DARK_COLOR,
        light: str = LIGHT_COLOR,
    ) -> None:
        self._size = int(size)
        self._margin = int(margin)
        self._dark = dark
        self._light = light

    def render(self, url: str) -> Image.Image:
        code = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=self._margin)
        code.add_data(url)
        code.make(fit=True)
        image = code.make_image(fill_color=self._dark, back_color=self._light).convert("RGB")
        if image.size != (self._size, self._size):
            image = image.resize((self._size, self._size), Image.Resampling.NEAREST)
        return image


@dataclass(frozen=True, slots=True)
class IssuedQRCode:
    token: str
    session_id: int
    expires_at: int
    expires_in: int
    scan_url: str
    png: bytes

    @property
    def data_url(self) -> str:
        return png_data_url(self.png)

    def to_payload(self) -> dict:
        return {
            "success": True,
            "token": self.token,
            "expires_at": from_millis(self.expires_at).isoformat(),
            "expires_in": self.expires_in,
            "qr_code": self.data_url,
        }


class QRCodeIssuer:
    """Authority side of the flow: one fresh, persisted, rendered token per call.

    Calling it repeatedly rotates the code. Earlier tokens stay valid until
    their own expiry.
    """

    def __init__(
        self,
        signer: TokenSigner,
        store: TokenStore,
        sessions: SessionRepository,
        *,
        base_url: str,
        renderer: QRRenderer | None = None,
    ) -> None:
        self._signer = signer
        self._store = store
        self._sessions = sessions
        self._base_url = base_url
        self._renderer = renderer or QRCodeRenderer()

    def issue_for_session(self, session_id: int) -> IssuedQRCode:
        self._sessions.require_session(session_id)
        self._store.sweep()

        record = self._signer.issue_record(session_id)
        if self._signer.store is None:
            record = self._store.persist(
                record.token, record.session_id, record.expires_at, created_at=record.created_at
            )

        scan_url = build_scan_url(self._base_url, record.token)
        png = to_png_bytes(self._renderer.render(scan_url))
        logger.info("Issued QR token for session %s (expires at %s)", session_id, record.expires_at)

        return IssuedQRCode(
            token=record.token,
            session_id=record.session_id,
            expires_at=record.expires_at,
            expires_in=self._signer.ttl_seconds,
            scan_url=scan_url,
            png=png,
        )
