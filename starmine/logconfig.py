"""
Logging setup for the simulation.

Engine modules log through `logging.getLogger(__name__)`; this module only
configures the "starmine" logger hierarchy.
"""

import json
import logging
import os
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class LoggingOptions:
    level: str = "INFO"
    format: str = "text"  # text | json
    file: Optional[str] = None


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context is not None:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _normalize_format(fmt: str) -> str:
    lowered = fmt.strip().lower()
    if lowered in {"text", "json"}:
        return lowered
    raise ValueError(f"Invalid log format: {fmt}")


def _formatter(fmt: str, with_time: bool) -> logging.Formatter:
    if _normalize_format(fmt) == "json":
        return JSONFormatter()
    if with_time:
        return logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    return logging.Formatter("%(levelname)s %(name)s: %(message)s")


def load_logging_options_from_env() -> LoggingOptions:
    """Load logging options from environment.

    Env vars:
        - STARMINE_LOG_LEVEL
        - STARMINE_LOG_FORMAT
        - STARMINE_LOG_FILE
    """
    return LoggingOptions(
        level=os.getenv("STARMINE_LOG_LEVEL", "INFO"),
        format=os.getenv("STARMINE_LOG_FORMAT", "text"),
        file=os.getenv("STARMINE_LOG_FILE"),
    )


def configure_logging(options: Optional[LoggingOptions] = None) -> logging.Logger:
    """Configure the "starmine" logger: stderr plus an optional rotating file.

    Raises ValueError for an unknown format.
    """
    options = options or load_logging_options_from_env()
    fmt = _normalize_format(options.format)

    logger = logging.getLogger("starmine")
    logger.setLevel(getattr(logging, options.level.strip().upper(), logging.INFO))
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_formatter(fmt, with_time=False))
    logger.addHandler(handler)

    if options.file:
        file_handler = RotatingFileHandler(
            options.file,
            maxBytes=10 * 1024 * 1024,
            backupCount=3,
        )
        file_handler.setFormatter(_formatter(fmt, with_time=True))
        logger.addHandler(file_handler)

    return logger
