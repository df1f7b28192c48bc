"""Application entrypoint."""

import os

import uvicorn

from app.config import get_settings
from app.config_guard import ConfigGuard
from app.logging_config import configure_logging
from app.main import create_app


def main() -> None:
    """Validate configuration, then serve the API.

    The configuration guard runs before the listener binds and exits the
    process with status 1 when a required secret is missing or weak.
    """
    configure_logging(
        os.environ.get("LOG_LEVEL", "INFO"), os.environ.get("LOG_FORMAT", "console")
    )
    ConfigGuard().validate_or_exit()
    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
