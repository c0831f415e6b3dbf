"""Signed, short-lived attendance tokens.

A token is ``<session_id>:<timestamp_ms>:<hex hmac-sha256>``. Trust comes from
the signature and the embedded timestamp alone, so any number of tokens for
the same session can be valid at once while the authority rotates them.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import TYPE_CHECKING, Callable

from qr_attendance.models import FailureReason, TokenRecord, TokenValidation
from qr_attendance.utils.time import now_millis

if TYPE_CHECKING:
    from qr_attendance.services.token_store import TokenStore

DEFAULT_TOKEN_TTL_SECONDS = 300
TOKEN_SEPARATOR = ":"


def sign_payload(secret: str, payload: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


class TokenSigner:
    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        store: "TokenStore | None" = None,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._secret = secret
        self._ttl_ms = int(ttl_seconds) * 1000
        self._store = store
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_ms // 1000

    @property
    def store(self) -> "TokenStore | None":
        return self._store

    def issue(self, session_id: int) -> str:
        return self.issue_record(session_id).token

    def issue_record(self, session_id: int) -> TokenRecord:
        """Sign a token for ``session_id`` and, when a store is wired, persist it.

        The session is not looked up here; the recorder resolves it when the
        token is redeemed.
        """

        issued_at = self._clock()
        payload = f"{int(session_id)}{TOKEN_SEPARATOR}{issued_at}"
        token = f"{payload}{TOKEN_SEPARATOR}{sign_payload(self._secret, payload)}"
        expires_at = issued_at + self._ttl_ms

        if self._store is not None:
            return self._store.persist(token, int(session_id), expires_at, created_at=issued_at)

        return TokenRecord(
            token=token,
            session_id=int(session_id),
            expires_at=expires_at,
            created_at=issued_at,
        )


class TokenValidator:
    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._secret = secret
        self._ttl_seconds = int(ttl_seconds)
        self._clock = clock

    def validate(self, token: object) -> TokenValidation:
        if not isinstance(token, str):
            return TokenValidation(valid=False, reason=FailureReason.INVALID_FORMAT)

        parts = token.split(TOKEN_SEPARATOR)
        if len(parts) != 3:
            return TokenValidation(valid=False, reason=FailureReason.INVALID_FORMAT)

        session_part, timestamp_part, signature = parts
        expected = sign_payload(self._secret, f"{session_part}{TOKEN_SEPARATOR}{timestamp_part}")
        if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
            return TokenValidation(valid=False, reason=FailureReason.INVALID_SIGNATURE)

        try:
            session_id = int(session_part)
            timestamp = int(timestamp_part)
        except ValueError:
            return TokenValidation(valid=False, reason=FailureReason.INVALID_FORMAT)

        # Inclusive at exactly the TTL. Future timestamps (negative age) pass.
        age_seconds = (self._clock() - timestamp) / 1000
        if age_seconds > self._ttl_seconds:
            return TokenValidation(valid=False, reason=FailureReason.EXPIRED)

        return TokenValidation(valid=True, session_id=session_id, timestamp=timestamp)
