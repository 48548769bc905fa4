"""
Layr Logging Module

A single process-wide logger for the orchestration engine. Errors always go to
stderr; a pipeline run can additionally attach a timestamped log file through
an execution context. Credentials flow through adapters and settings, so every
record written to a file is passed through a redaction step first.

Usage:
    from layr.logger import logger

    logger.info("Blueprint selected: %s", blueprint)
    logger.set_execution_context("subscription-tool", log_dir=".layr/logs", log_level="DEBUG")
    ...
    logger.clear_execution_context()
"""

import copy
import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from layr.constants import LAYR_DEFAULT_LOGGER, PROTECTED_KEYWORDS

REDACTED = "***REDACTED***"

_SANITIZE_PATTERN = re.compile(
    r"(['\"]?(?:"
    + "|".join(re.escape(kw) for kw in PROTECTED_KEYWORDS)
    + r")['\"]?)(\s*[:=]\s*)(['\"]?)([^\s,'\"}\]]+)(\3)",
    re.IGNORECASE,
)


def sanitize_log_message(message: str) -> str:
    """Replace values of protected keywords (token=..., "secretKey": "...") with REDACTED."""
    if not isinstance(message, str):
        return message
    return _SANITIZE_PATTERN.sub(rf"\1\2\3{REDACTED}\5", message)


class RedactingFormatter(logging.Formatter):
    """Formatter with microsecond timestamps that redacts sensitive values."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(levelname)s] [%(name)s] - %(message)s")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        ct = datetime.fromtimestamp(record.created)  # noqa: DTZ006
        return ct.strftime(datefmt) if datefmt else ct.isoformat()

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so other handlers still see the original record.
        record_copy = copy.copy(record)
        record_copy.msg = sanitize_log_message(record_copy.getMessage())
        record_copy.args = None
        return super().format(record_copy)


class LayrLogger:
    """
    Singleton logger for Layr.

    Wraps the stdlib "layr" logger, keeps a stderr handler for ERROR and above,
    and manages an optional per-run file handler.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized"):
            return
        self._initialized = True

        self._logger = logging.getLogger("layr")
        self._logger.setLevel(logging.DEBUG)

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.ERROR)
        console_handler.setFormatter(RedactingFormatter())
        self._logger.addHandler(console_handler)

        self._execution_context: dict[str, Any] | None = None
        self._file_handler: logging.FileHandler | None = None

    def set_execution_context(
        self,
        run_name: str,
        log_dir: str | Path | None = None,
        log_level: str = "INFO",
    ) -> Path:
        """
        Start logging a pipeline run to its own timestamped file.

        Args:
            run_name: Name used as the log file prefix (usually the intent slug).
            log_dir: Directory for log files. Defaults to LAYR_DEFAULT_LOGGER["directory"].
            log_level: Logging level name for the file handler.

        Returns:
            Path of the created log file.
        """
        self._drop_file_handler()

        log_path = Path(log_dir or LAYR_DEFAULT_LOGGER["directory"])
        log_path.mkdir(parents=True, exist_ok=True)

        level = getattr(logging, log_level.upper(), logging.INFO)
        self._logger.setLevel(level)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filepath = log_path / f"{run_name}_{timestamp}.log"

        self._file_handler = logging.FileHandler(filepath, encoding="utf-8")
        self._file_handler.setLevel(level)
        self._file_handler.setFormatter(RedactingFormatter())
        self._logger.addHandler(self._file_handler)

        self._execution_context = {
            "run_name": run_name,
            "log_dir": str(log_path),
            "log_file": str(filepath),
            "start_time": datetime.now(),
        }
        self.info("Started pipeline run: %s", run_name)
        return filepath

    def clear_execution_context(self) -> None:
        """Stop file logging for the current run."""
        if self._execution_context:
            elapsed = datetime.now() - self._execution_context["start_time"]
            self.info("Completed run in %.2f seconds", elapsed.total_seconds())
        self._drop_file_handler()
        self._execution_context = None

    def get_execution_context(self) -> dict[str, Any] | None:
        return self._execution_context

    def _drop_file_handler(self) -> None:
        if self._file_handler:
            self._logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def debug(self, message: str, *args: object, **kwargs) -> None:
        self._logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args: object, **kwargs) -> None:
        self._logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args: object, **kwargs) -> None:
        self._logger.warning(message, *args, **kwargs)

    def error(self, message: str, *args: object, **kwargs) -> None:
        self._logger.error(message, *args, **kwargs)

    def exception(self, message: str, *args: object, **kwargs) -> None:
        self._logger.exception(message, *args, **kwargs)


logger = LayrLogger()
