"""Logging configuration setup.

All runtime logs go to a timestamped file under ``LOG_DIR``.  Values that
reach tool servers as environment variables or HTTP headers (API tokens
and the like) are scrubbed from every record by
:data:`secret_redaction_filter`.
"""

import copy
import logging
import logging.config
import os
import re
import sys
from datetime import datetime
from typing import Mapping, Optional, Set, Tuple

from agent_runtime.constants import LOG_DIR

# ── Secret redaction filter ──────────────────────────────────────────────

_REDACTED = "***REDACTED***"


class SecretRedactionFilter(logging.Filter):
    """Logging filter that replaces registered secret values with a placeholder.

    Call :meth:`register` (or :meth:`register_values` for a whole mapping)
    to add values that should be scrubbed.
    """

    def __init__(self) -> None:
        super().__init__()
        self._secrets: Set[str] = set()
        self._pattern: re.Pattern[str] | None = None

    def register(self, value: str) -> None:
        """Register a secret value for redaction."""
        if value and len(value) >= 4:  # skip trivially short values
            self._secrets.add(value)
            # Rebuild regex pattern with longest-first ordering
            escaped = sorted((re.escape(s) for s in self._secrets), key=len, reverse=True)
            self._pattern = re.compile("|".join(escaped))

    def register_values(self, mapping: Optional[Mapping[str, str]]) -> None:
        """Register every value of *mapping* (env vars, HTTP headers)."""
        if not mapping:
            return
        for value in mapping.values():
            if isinstance(value, str):
                self.register(value)

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is not None:
            if isinstance(record.msg, str):
                record.msg = self._pattern.sub(_REDACTED, record.msg)
            if record.args:
                if isinstance(record.args, dict):
                    record.args = {
                        k: self._pattern.sub(_REDACTED, str(v)) if isinstance(v, str) else v
                        for k, v in record.args.items()
                    }
                elif isinstance(record.args, tuple):
                    record.args = tuple(
                        self._pattern.sub(_REDACTED, str(a)) if isinstance(a, str) else a
                        for a in record.args
                    )
        return True


# Module-level singleton so connections can register values as they start.
secret_redaction_filter = SecretRedactionFilter()


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ``agent_runtime`` follows the requested level; the SDK loggers stay quieter.
_PACKAGE_LOGGER = "agent_runtime"
_SDK_LOGGER_LEVELS = {"mcp": "INFO", "httpx": "WARNING"}

BASE_LOG_CFG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple_file": {
            "format": "%(asctime)s - %(name)25s:%(lineno)-4d - %(levelname)-7s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "file_handler": {
            "class": "logging.FileHandler",
            "level": "DEBUG",
            "formatter": "simple_file",
            "filename": "runtime.log",
            "encoding": "utf-8",
        },
    },
    "loggers": {
        name: {"handlers": ["file_handler"], "propagate": False, "level": level}
        for name, level in {_PACKAGE_LOGGER: "INFO", **_SDK_LOGGER_LEVELS}.items()
    },
    "root": {
        "handlers": ["file_handler"],
        "level": "WARNING",
    },
}


def setup_logging(log_lvl_str: str, *, quiet: bool = False) -> Tuple[str, str]:
    """Send runtime logs to ``LOG_DIR/runtime_<timestamp>_<LEVEL>.log``.

    An unknown *log_lvl_str* falls back to ``INFO``.  Returns the log file
    path and the level actually applied.
    """
    log_lvl = log_lvl_str.upper()
    if log_lvl not in _LOG_LEVELS:
        if not quiet:
            print(f"Warning: invalid log level '{log_lvl_str}'. Using 'INFO'.")
        log_lvl = "INFO"

    os.makedirs(LOG_DIR, exist_ok=True)
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_fpath = os.path.join(LOG_DIR, f"runtime_{ts}_{log_lvl}.log")

    log_cfg: dict = copy.deepcopy(BASE_LOG_CFG)
    log_cfg["handlers"]["file_handler"]["filename"] = log_fpath
    log_cfg["loggers"][_PACKAGE_LOGGER]["level"] = log_lvl
    if log_lvl == "DEBUG":
        log_cfg["root"]["level"] = "DEBUG"

    try:
        logging.config.dictConfig(log_cfg)
    except (ValueError, TypeError, AttributeError, ImportError) as e_log_cfg:
        print(f"Error applying logging configuration: {e_log_cfg}", file=sys.stderr)
        return log_fpath, log_lvl

    # Every configured logger writes through the same file handler.
    for handler in logging.root.handlers:
        handler.addFilter(secret_redaction_filter)
    if not quiet:
        print(f"Logging initialized. File log level: {log_lvl}, log file: {log_fpath}")
    return log_fpath, log_lvl
