"""Runtime configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Immutable application settings.

    Built once at boot, after ``ConfigGuard`` has accepted the environment,
    and passed explicitly to the application factory.

    Attributes
    ----------
    app_name : str
        Human-readable application name.
    jwt_secret : str
        Signing secret for OAuth state tokens.
    encryption_key : str
        Secret the OAuth token encryption key is derived from.
    database_url : str
        SQLAlchemy database URL.
    port : int
        Listener port.
    app_env : str
        Deployment environment name.
    frontend_url : str
        Frontend base URL that OAuth flows redirect back to.
    backend_url : str
        Public backend base URL, used to build the OAuth redirect URI.
    google_client_id : str
        Google OAuth client ID.
    google_client_secret : str
        Google OAuth client secret.
    state_max_age_seconds : int
        OAuth state validity window.
    session_ttl_seconds : int
        Lifetime of newly issued session tokens.
    log_level : str
        Root log level.
    log_format : str
        ``console`` or ``json``.
    """

    model_config = SettingsConfigDict(extra="ignore", frozen=True)

    app_name: str = "Knowledge Assistant"
    jwt_secret: str = Field(min_length=32)
    encryption_key: str = Field(min_length=32)
    database_url: str = "sqlite+aiosqlite:///./knowledge.db"
    port: int = 3001
    app_env: str = "development"
    frontend_url: str = "http://localhost:8080"
    backend_url: str = "http://localhost:3001"
    google_client_id: str = ""
    google_client_secret: str = ""
    state_max_age_seconds: int = 600
    session_ttl_seconds: int = 7 * 24 * 3600
    log_level: str = "INFO"
    log_format: str = "console"

    @property
    def oauth_redirect_uri(self) -> str:
        """Return the Google OAuth callback URL."""
        return f"{self.backend_url.rstrip('/')}/auth/google/callback"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings.

    Returns
    -------
    Settings
        Cached settings instance.
    """
    return Settings()
