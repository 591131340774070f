"""Logging setup shared by the API process and the evaluation scheduler."""

import logging

from config import settings

# Cycle work runs on "evaluation_N" pool threads.
LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s  %(message)s"

QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "apscheduler",
)


def setup_logging() -> None:
    """Set the root level from ``settings.LOG_LEVEL`` and quiet chatty libraries.

    APScheduler logs every job run at INFO and httpx logs every request.
    """
    logging.basicConfig(
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        level=getattr(logging, settings.LOG_LEVEL),
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
