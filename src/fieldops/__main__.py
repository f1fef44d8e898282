"""Run the fieldops HTTP API."""

from aiohttp import web
from loguru import logger

from .api import create_app
from .config import Settings, configure_logging
from .context import build_context


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    app = create_app(build_context(settings))
    logger.info(f"fieldops backend listening on {settings.host}:{settings.port}")
    web.run_app(app, host=settings.host, port=settings.port, print=None)


if __name__ == "__main__":
    main()
