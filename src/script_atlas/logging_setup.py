# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structured logging for script atlas.

Recovered failures (ScanWarnings) are logged through log_scan_warning() so
the JSON log carries them as a "scan_warning" object next to the message,
which keeps a run's warnings greppable after the process is gone.

setup_logging() only replaces handlers it installed itself; handlers the
embedding application configured are left alone.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from script_atlas.data_paths import get_logs_dir
from script_atlas.models import ScanWarning

LOG_FILE_PREFIX = "script_atlas_"

# Marks handlers owned by setup_logging()
_HANDLER_TAG = "_script_atlas_handler"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        warning = getattr(record, "scan_warning", None)
        if isinstance(warning, ScanWarning):
            log_data["scan_warning"] = warning.to_dict()

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields passed as logger.info(..., extra={"extra_fields": {...}})
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


def log_scan_warning(log: logging.Logger, warning: ScanWarning) -> ScanWarning:
    """Log a recovered failure and return it for the caller's warning list."""
    log.warning(warning.format_human_readable(), extra={"scan_warning": warning})
    return warning


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: int = logging.INFO,
    console_output: bool = True,
) -> Path:
    """Set up structured logging for the application.

    Calling it again swaps the handlers of the previous call for new ones.

    Args:
        log_dir: Directory for log files. If None, uses ~/.script_atlas/logs/
        log_level: Logging level (default: INFO)
        console_output: Whether to also output to console (default: True)

    Returns:
        Path of the JSON log file.
    """
    if log_dir is None:
        log_dir = get_logs_dir()

    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root_logger.removeHandler(handler)
            handler.close()

    log_file = log_dir / f"{LOG_FILE_PREFIX}{datetime.now(timezone.utc).strftime('%Y%m%d')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(StructuredFormatter())
    _install(root_logger, file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        _install(root_logger, console_handler)

    logging.getLogger(__name__).info(f"Logging initialized. Log file: {log_file}")
    return log_file


def _install(root_logger: logging.Logger, handler: logging.Handler) -> None:
    setattr(handler, _HANDLER_TAG, True)
    root_logger.addHandler(handler)
