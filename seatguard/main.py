"""SeatGuard API server entrypoint."""

import uvicorn

from seatguard.config.settings import get_settings


def cli() -> None:
    """Serve the API; auto-reload only in debug mode."""
    settings = get_settings()
    uvicorn.run(
        "seatguard.web.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    cli()
