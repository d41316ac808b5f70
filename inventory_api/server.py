"""Process entry point.

The server runs until a signal stops it or the listener fails. A listener
failure terminates the process with SIGTERM instead of retrying, so the
supervisor restarts a pod that cannot serve.
"""
import os
import signal

import uvicorn

from inventory_api.config import get_settings
from inventory_api.core.logging import get_logger, setup_logging


def serve() -> None:
    settings = get_settings()
    setup_logging(settings)
    logger = get_logger(__name__)

    server = uvicorn.Server(
        uvicorn.Config(
            "inventory_api.main:app",
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
            log_config=None,
        )
    )

    try:
        server.run()
    except (OSError, SystemExit) as exc:
        logger.error("server.run_failed", error=str(exc))
        os.kill(os.getpid(), signal.SIGTERM)
        return

    if not server.started:
        # uvicorn returns without raising when it cannot bind the socket
        logger.error("server.listener_failed", host=settings.host, port=settings.port)
        os.kill(os.getpid(), signal.SIGTERM)
        return

    logger.info("server.stopped")


def main() -> None:
    serve()


if __name__ == "__main__":
    main()
