from __future__ import annotations

import logging

import uvicorn

from .config import Settings
from .limits import InflightTracker
from .main import create_app

logger = logging.getLogger(__name__)


def serve(settings: Settings) -> int:
    """Run the server until SIGINT/SIGTERM; returns the process exit status."""
    app = create_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.app_host,
        port=settings.app_port,
        timeout_keep_alive=settings.idle_timeout_sec,
        timeout_graceful_shutdown=settings.shutdown_grace_sec,
        log_level=settings.log_level,
    )
    server = uvicorn.Server(config)

    logger.info('Server starting on http://127.0.0.1:%d serving %s', settings.app_port, settings.root_dir)
    server.run()

    if not server.started:
        logger.critical('Server failed to start')
        return 1

    tracker: InflightTracker = app.state.inflight
    if tracker.cancelled:
        logger.critical(
            'Server forced to shutdown: %d request(s) still running after %ds grace period',
            tracker.cancelled,
            settings.shutdown_grace_sec,
        )
        return 1

    logger.info('Server exited')
    return 0
