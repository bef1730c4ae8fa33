"""
Termalime API entry point.

Usage:
    python -m termalime
    uvicorn termalime.main:app
"""

from termalime.app_factory import create_app
from termalime.config import get_settings
from termalime.utils.structured_logging import configure_logging

# Create app instance for uvicorn
app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        ws_ping_interval=20,  # Keep terminal connections alive
        ws_ping_timeout=20,
        log_config=None,
    )


if __name__ == "__main__":
    run()
