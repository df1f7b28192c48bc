"""Google OAuth 2.0 provider client."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx
import structlog

from app.config import Settings

logger = structlog.get_logger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
SCOPES = (
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
)
DEFAULT_EXPIRES_IN = 3600


class ProviderError(Exception):
    """Google rejected or failed a token request.

    Parameters
    ----------
    message : str
        Error message.
    status_code : int | None, default=None
        HTTP status code if available.
    error_code : str | None, default=None
        OAuth ``error`` field if present.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class InvalidGrantError(ProviderError):
    """Refresh token was revoked or expired."""


@dataclass(frozen=True, slots=True)
class ProviderTokens:
    """Token set returned by Google.

    Attributes
    ----------
    access_token : str
        Short-lived access token.
    refresh_token : str | None
        Long-lived refresh token. Absent on most refresh responses.
    expires_at_ms : int
        Access token expiry in epoch milliseconds.
    scope : str
        Space-separated granted scopes.
    """

    access_token: str
    refresh_token: str | None
    expires_at_ms: int
    scope: str


class GoogleOAuthClient:
    """Authorization URL builder and token endpoint client.

    Parameters
    ----------
    client_id : str
        OAuth client ID.
    client_secret : str
        OAuth client secret.
    redirect_uri : str
        Registered callback URL.
    timeout : float, default=10.0
        Request timeout in seconds.
    transport : httpx.AsyncBaseTransport | None, default=None
        Optional transport for tests.
    """

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "GoogleOAuthClient":
        """Build a client from application settings.

        Parameters
        ----------
        settings : Settings
            Application settings.
        transport : httpx.AsyncBaseTransport | None, default=None
            Optional transport for tests.

        Returns
        -------
        GoogleOAuthClient
            Configured client.
        """
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.oauth_redirect_uri,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def authorization_url(self, state: str) -> str:
        """Return the consent URL carrying a state token.

        ``prompt=consent`` with offline access makes Google issue a refresh
        token on every grant.

        Parameters
        ----------
        state : str
            Signed state token.

        Returns
        -------
        str
            Google authorization URL.
        """
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": " ".join(SCOPES),
                "access_type": "offline",
                "prompt": "consent",
                "state": state,
            }
        )
        return f"{AUTHORIZE_URL}?{query}"

    async def exchange_code(self, code: str) -> ProviderTokens:
        """Exchange an authorization code for tokens.

        Parameters
        ----------
        code : str
            Authorization code from the callback.

        Returns
        -------
        ProviderTokens
            Issued tokens.
        """
        data = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )
        return _tokens_from_response(data)

    async def refresh(self, refresh_token: str) -> ProviderTokens:
        """Obtain a new access token.

        Parameters
        ----------
        refresh_token : str
            Stored refresh token.

        Returns
        -------
        ProviderTokens
            Refreshed tokens. ``refresh_token`` is set only if Google rotated
            it.
        """
        data = await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )
        return _tokens_from_response(data)

    async def _token_request(self, form: dict[str, str]) -> dict[str, Any]:
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            **form,
        }
        try:
            response = await self._client.post(TOKEN_URL, data=payload)
        except httpx.HTTPError as exc:
            logger.error(
                "google_token_request_failed",
                grant_type=form["grant_type"],
                error=str(exc),
            )
            raise ProviderError("Token endpoint unreachable") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code >= 400:
            error_code = data.get("error")
            logger.warning(
                "google_token_request_rejected",
                grant_type=form["grant_type"],
                status_code=response.status_code,
                error_code=error_code,
            )
            error_cls = (
                InvalidGrantError if error_code == "invalid_grant" else ProviderError
            )
            raise error_cls(
                f"Token request failed with status {response.status_code}",
                status_code=response.status_code,
                error_code=error_code,
            )
        if not data.get("access_token"):
            raise ProviderError("Token response has no access token")
        return data


def _tokens_from_response(data: dict[str, Any]) -> ProviderTokens:
    expires_in = data.get("expires_in") or DEFAULT_EXPIRES_IN
    return ProviderTokens(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        expires_at_ms=time.time_ns() // 1_000_000 + int(expires_in) * 1000,
        scope=data.get("scope") or " ".join(SCOPES),
    )
