"""Signed OAuth state tokens.

A state token binds an outbound authorization request to the user who
started it and the integration being connected. Tokens are stateless: the
server keeps no ledger, so a leaked token can be replayed until it expires.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from app.crypto.errors import (
    ConfigurationError,
    Expired,
    InvalidState,
    SignatureMismatch,
    ValidationError,
)
from app.schemas.common import DEFAULT_SOURCE_TYPE, SourceType

DEFAULT_MAX_AGE = timedelta(minutes=10)


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True, slots=True)
class StateClaims:
    """Fields recovered from a verified state token.

    Attributes
    ----------
    subject_id : str
        Identifier of the user who started the flow.
    source_type : SourceType
        Integration being connected.
    issued_at_ms : int
        Issue time in epoch milliseconds.
    """

    subject_id: str
    source_type: SourceType
    issued_at_ms: int


class StateTokenCodec:
    """Mint and verify HMAC-SHA-256 signed state tokens.

    Parameters
    ----------
    signing_secret : str | None
        Process-wide signing secret.
    max_age : timedelta, default=timedelta(minutes=10)
        Validity window.
    clock : Callable[[], int] | None, default=None
        Source of the current epoch milliseconds. Defaults to wall time.
    """

    def __init__(
        self,
        signing_secret: str | None,
        *,
        max_age: timedelta = DEFAULT_MAX_AGE,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._secret = signing_secret.encode("utf-8") if signing_secret else None
        self.max_age_ms = int(max_age.total_seconds() * 1000)
        self._clock = clock or _wall_clock_ms

    def generate(
        self,
        subject_id: str,
        source_type: SourceType | str | None = None,
        *,
        issued_at_ms: int | None = None,
    ) -> str:
        """Create a state token.

        Parameters
        ----------
        subject_id : str
            Owning user identifier.
        source_type : SourceType | str | None, default=None
            Integration type. Falls back to ``gmail``.
        issued_at_ms : int | None, default=None
            Issue timestamp override in epoch milliseconds.

        Returns
        -------
        str
            URL-safe base64 token without padding.
        """
        if not isinstance(subject_id, str) or not subject_id:
            raise ValidationError("subject_id must be a non-empty string")
        source = _coerce_source_type(source_type)
        issued_at = self._clock() if issued_at_ms is None else issued_at_ms
        payload = _canonicalize(subject_id, source, issued_at)
        envelope = json.dumps(
            {"d": payload, "sig": self._sign(payload)},
            separators=(",", ":"),
        )
        encoded = base64.urlsafe_b64encode(envelope.encode("utf-8"))
        return encoded.decode("ascii").rstrip("=")

    def validate(self, token: str, *, now_ms: int | None = None) -> StateClaims:
        """Verify a state token and return its claims.

        Parameters
        ----------
        token : str
            Token read from the provider callback.
        now_ms : int | None, default=None
            Reference time in epoch milliseconds. Defaults to the clock.

        Returns
        -------
        StateClaims
            Verified claims.

        Raises
        ------
        InvalidState
            Token is not decodable or is missing fields.
        SignatureMismatch
            Signature does not match the payload.
        Expired
            Token is older than the validity window.
        """
        payload, signature = _unpack(token)
        expected = self._sign(payload)
        if not hmac.compare_digest(
            signature.encode("utf-8"), expected.encode("utf-8")
        ):
            raise SignatureMismatch("state signature validation failed")

        claims = _parse_payload(payload)
        now = self._clock() if now_ms is None else now_ms
        if now - claims.issued_at_ms > self.max_age_ms:
            raise Expired(
                f"state issued at {claims.issued_at_ms} is older than "
                f"{self.max_age_ms} ms"
            )
        return claims

    def _sign(self, payload: str) -> str:
        if self._secret is None:
            raise ConfigurationError("signing secret is not configured")
        digest = hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256)
        return digest.hexdigest()


def _coerce_source_type(value: SourceType | str | None) -> SourceType:
    if value is None or value == "":
        return DEFAULT_SOURCE_TYPE
    try:
        return SourceType(value)
    except ValueError as exc:
        raise ValidationError(f"unsupported source type {value!r}") from exc


def _canonicalize(subject_id: str, source_type: SourceType, issued_at_ms: int) -> str:
    return json.dumps(
        {"u": subject_id, "s": source_type.value, "t": issued_at_ms},
        sort_keys=True,
        separators=(",", ":"),
    )


def _unpack(token: Any) -> tuple[str, str]:
    if not isinstance(token, str) or not token:
        raise InvalidState("state parameter is missing")
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        envelope = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise InvalidState("state parameter is not decodable") from exc
    if not isinstance(envelope, dict):
        raise InvalidState("state envelope is not an object")
    payload = envelope.get("d")
    signature = envelope.get("sig")
    if not payload or not signature:
        raise InvalidState("state missing data or signature")
    if not isinstance(payload, str) or not isinstance(signature, str):
        raise InvalidState("state data and signature must be strings")
    return payload, signature


def _parse_payload(payload: str) -> StateClaims:
    try:
        data = json.loads(payload)
    except ValueError as exc:
        raise InvalidState("signed state payload is not JSON") from exc
    if not isinstance(data, dict):
        raise InvalidState("signed state payload is not an object")

    subject_id = data.get("u")
    issued_at = data.get("t")
    if not isinstance(subject_id, str) or not subject_id:
        raise InvalidState("signed state payload has no subject")
    # bool is an int subclass
    if not isinstance(issued_at, int) or isinstance(issued_at, bool):
        raise InvalidState("signed state payload has no issue time")
    try:
        source_type = SourceType(data.get("s") or DEFAULT_SOURCE_TYPE)
    except ValueError as exc:
        raise InvalidState("signed state payload has unknown source type") from exc
    return StateClaims(
        subject_id=subject_id, source_type=source_type, issued_at_ms=issued_at
    )
