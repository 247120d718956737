import sys

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

from status_api.config import get_settings  # noqa: E402
from status_api.lifecycle import ShutdownCoordinator, serve  # noqa: E402
from status_api.main import create_app  # noqa: E402


def main() -> int:
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper())

    app = create_app(settings)
    coordinator = ShutdownCoordinator(app.state.cleanups)

    logger.info(f"Status server running at http://{settings.host}:{settings.port}")
    logger.info("API endpoints: /health, /live, /ready, /api/status, /api/minecraft-status")
    if settings.server_mode == "proxy":
        logger.info(f"Proxying dev server at {settings.dev_server_url}")
    else:
        logger.info(f"Serving static files from {settings.static_root}")
    logger.info("Press Ctrl+C to stop the server")

    return serve(app, settings.host, settings.port, coordinator, settings.shutdown_timeout_seconds)


if __name__ == "__main__":
    sys.exit(main())
