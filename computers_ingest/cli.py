"""CLI entry point for the computers server."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Sequence

from common.config import get_settings

from .receiver import ComputersServer

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s:%(lineno)d - %(message)s"
LOG_MAX_BYTES = 500 * 1024 * 1024
LOG_BACKUP_COUNT = 30


def configure_logging(debug: bool, log_file: Optional[str] = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file,
                maxBytes=LOG_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        )

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = argparse.ArgumentParser(description="RFID computer slots MQTT → PostgreSQL server")
    p.add_argument("--debug", action="store_true", help="sets log level to debug")
    args = p.parse_args(argv)

    try:
        settings = get_settings()
    except ValueError as e:
        configure_logging(args.debug)
        logger.error("Invalid configuration: %s", e)
        return 1

    configure_logging(args.debug, settings.log_file)
    logger.debug("Starting the server")

    stop_requested = threading.Event()

    def _request_stop(signum, frame):
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        stop_requested.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    server = ComputersServer(settings)
    try:
        server.start()
    except Exception as e:
        logger.error("Shutting down the server due to an error: %s", e)
        return 1

    logger.debug("Health: %s", server.health_check())

    # wait() con timeout para que las señales se atiendan en el hilo principal
    while not stop_requested.wait(timeout=1.0):
        pass

    server.stop()
    logger.info("Gracefully shut down the server")
    return 0


if __name__ == "__main__":
    sys.exit(main())
