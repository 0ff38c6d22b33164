"""Process-wide logging: console, rotating file and optional BetterStack shipping."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from logtail import LogtailHandler

from paysync import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE_NAME = "paysync.log"

# Libraries that log every request at INFO/DEBUG
QUIET_LOGGERS = {
    "urllib3": logging.WARNING,
    "googleapiclient.discovery": logging.WARNING,
    "googleapiclient.discovery_cache": logging.ERROR,
    "uvicorn.access": logging.WARNING,
}


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _console_handler(formatter: logging.Formatter, level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _file_handler(formatter: logging.Formatter, log_file: Path) -> logging.Handler:
    # Sync outcomes are kept on disk at INFO even when the console is quieter
    handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
    handler.setLevel(logging.INFO)
    handler.setFormatter(formatter)
    return handler


def _betterstack_handler(formatter: logging.Formatter) -> Optional[logging.Handler]:
    """LogtailHandler for the configured source, or None when shipping is off."""
    if not settings.BETTERSTACK_SOURCE_TOKEN:
        return None
    kwargs = {"source_token": settings.BETTERSTACK_SOURCE_TOKEN}
    if settings.BETTERSTACK_INGEST_HOST:
        kwargs["host"] = settings.BETTERSTACK_INGEST_HOST
    handler = LogtailHandler(**kwargs)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: Optional[str] = None, log_file: Optional[Path] = None) -> logging.Logger:
    """
    Replace the root handlers and return the `paysync` logger.

    A BetterStack handler that cannot be created is reported and skipped;
    console and file logging still come up.
    """
    root_level = _level(level or settings.LOG_LEVEL)
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)
    root_logger.handlers = []
    root_logger.addHandler(_console_handler(formatter, root_level))
    root_logger.addHandler(_file_handler(formatter, log_file or settings.LOGS_DIR / LOG_FILE_NAME))

    try:
        shipping = _betterstack_handler(formatter)
    except Exception as e:
        root_logger.warning(f"Failed to initialize BetterStack logging: {e}")
        shipping = None
    if shipping is not None:
        root_logger.addHandler(shipping)
        host = settings.BETTERSTACK_INGEST_HOST or "default (in.logs.betterstack.com)"
        root_logger.info(f"BetterStack logging enabled (host: {host})")

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)
    return logging.getLogger("paysync")


logger = setup_logging()
