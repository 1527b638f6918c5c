"""Logging setup for loan-core: console handler, JSON output, package loggers."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from loan_core.config import LoanCoreConfig

PACKAGE_LOGGER = "loan_core"

STANDARD_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
STANDARD_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "INFO",
    format_type: str = "standard",
) -> None:
    """Install a single stdout handler on the root logger.

    Parameters
    ----------
    level : str
        Log level name. Unknown names fall back to INFO.
    format_type : str
        ``"standard"`` for pipe-separated text, ``"json"`` for one JSON
        object per line.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter: logging.Formatter
    if format_type == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=STANDARD_FORMAT, datefmt=STANDARD_DATEFMT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    logging.getLogger(PACKAGE_LOGGER).setLevel(log_level)
    # psycopg logs every connection attempt at INFO
    logging.getLogger("psycopg").setLevel(logging.WARNING)


def setup_logging_from_config(config: LoanCoreConfig) -> None:
    """Apply ``config.log_level`` and ``config.log_format``."""
    setup_logging(level=config.log_level, format_type=config.log_format)


class JsonFormatter(logging.Formatter):
    """Render records as JSON, merging ``extra={"context": {...}}`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            payload.update(context)

        return json.dumps(payload, default=str)


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``loan_core`` hierarchy.

    Names outside the package are nested beneath it, so ``setup_logging``
    levels apply to them too.

    Parameters
    ----------
    name : str
        Module name, usually ``__name__``.

    Returns
    -------
    logging.Logger
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
