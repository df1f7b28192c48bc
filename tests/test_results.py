"""Tagged result and error handler tests."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.crypto.errors import (
    AuthenticationError,
    ConfigurationError,
    FailureKind,
    PerimeterError,
    SignatureMismatch,
)
from app.crypto.results import Rejected, Verified, attempt
from app.crypto.state import StateTokenCodec
from app.main import perimeter_error_handler

SECRET = "f3b9c2d1e8a7465b9c0d1e2f3a4b5c6d7e8f9a0b1c2d3e4f"


class TestAttempt:
    """``attempt`` tagging."""

    def test_success_is_verified(self) -> None:
        """Wrap the return value."""
        codec = StateTokenCodec(SECRET)
        token = codec.generate("user-42", "drive")

        outcome = attempt(codec.validate, token)

        assert isinstance(outcome, Verified)
        assert outcome.value.subject_id == "user-42"

    def test_perimeter_error_is_rejected(self) -> None:
        """Tag the failure kind and keep the detail server-side."""
        token = StateTokenCodec("another-signing-secret-0123456789").generate("u")

        outcome = attempt(StateTokenCodec(SECRET).validate, token)

        assert isinstance(outcome, Rejected)
        assert outcome.kind is FailureKind.SIGNATURE_MISMATCH
        assert outcome.detail

    def test_keyword_arguments_are_forwarded(self) -> None:
        """Pass keyword arguments through."""
        codec = StateTokenCodec(SECRET)
        token = codec.generate("user-42", issued_at_ms=0)

        outcome = attempt(codec.validate, token, now_ms=60_000)

        assert isinstance(outcome, Verified)
        assert outcome.value.issued_at_ms == 0

    def test_other_exceptions_propagate(self) -> None:
        """Leave programming errors alone."""

        def broken() -> None:
            raise KeyError("boom")

        with pytest.raises(KeyError):
            attempt(broken)


def _raising_app(error: PerimeterError) -> FastAPI:
    application = FastAPI()
    application.add_exception_handler(PerimeterError, perimeter_error_handler)

    @application.get("/boom")
    async def boom() -> None:
        raise error

    return application


class TestPerimeterErrorHandler:
    """Escaped perimeter errors become generic responses."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "status_code", "detail"),
        [
            (ConfigurationError("signing secret missing"), 500, "Internal error"),
            (AuthenticationError("tag mismatch"), 500, "Internal error"),
            (SignatureMismatch("signature mismatch"), 400, "Request rejected"),
        ],
    )
    async def test_status_and_generic_body(
        self, error: PerimeterError, status_code: int, detail: str
    ) -> None:
        """Map the failure kind to a status without leaking detail."""
        transport = ASGITransport(app=_raising_app(error))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/boom")

        assert response.status_code == status_code
        assert response.json() == {"detail": detail}
        assert error.detail not in response.text
