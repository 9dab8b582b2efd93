"""Logging setup shared by the API server and the cron scripts."""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "hpack", "postgrest", "supabase")

_configured = False


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Set up stream logging, plus a rotating file handler when log_file is given.

    Calling it more than once is a no-op.
    """
    global _configured
    if _configured:
        return

    handlers = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8", delay=True)
        )

    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), handlers=handlers, format=LOG_FORMAT)

    # Tame noisy third-party loggers
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def setup_logging_from_config(config) -> None:
    """Set up logging from the `logging` section of a Config."""
    setup_logging(
        level=config.get('logging.level', 'INFO'),
        log_file=config.get('logging.file'),
    )
