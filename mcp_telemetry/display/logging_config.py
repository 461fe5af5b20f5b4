"""Logging configuration setup."""

import copy
import logging
import logging.config
import sys
from typing import Optional, Tuple

from mcp_telemetry.constants import DEFAULT_LOG_LEVEL
from mcp_telemetry.privacy.sanitizer import redact_text

# ── PII redaction filter ─────────────────────────────────────────────────


class PIIRedactionFilter(logging.Filter):
    """Logging filter that scrubs emails, card numbers and bearer tokens.

    Applies to the message template and to string arguments.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_text(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: redact_text(v) if isinstance(v, str) else v
                    for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    redact_text(a) if isinstance(a, str) else a for a in record.args
                )
        return True


pii_redaction_filter = PIIRedactionFilter()

# stdout is reserved for the MCP stdio transport; log to stderr.
BASE_LOG_CFG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": ("%(asctime)s - %(name)25s:%(lineno)-4d - " "%(levelname)-7s - %(message)s"),
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "stderr_handler": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "simple",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "mcp_telemetry": {
            "handlers": ["stderr_handler"],
            "propagate": False,
            "level": "INFO",
        },
        "opentelemetry": {
            "handlers": ["stderr_handler"],
            "propagate": False,
            "level": "WARNING",
        },
    },
    "root": {
        "handlers": ["stderr_handler"],
        "level": "WARNING",
    },
}


def setup_logging(
    log_lvl_str: str = DEFAULT_LOG_LEVEL, *, log_file: Optional[str] = None
) -> Tuple[Optional[str], str]:
    """
    Set up the logging system.

    Args:
        log_lvl_str: The desired log level string (e.g., 'debug', 'info').
        log_file: Optional path of an additional log file.

    Returns:
        A tuple of (log_file_path, validated_log_level).
    """
    log_lvl_valid = log_lvl_str.upper()
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if log_lvl_valid not in valid_levels:
        print(f"Warning: invalid log level '{log_lvl_str}'. Using 'INFO'.", file=sys.stderr)
        log_lvl_valid = "INFO"

    log_cfg: dict = copy.deepcopy(BASE_LOG_CFG)
    log_cfg["loggers"]["mcp_telemetry"]["level"] = log_lvl_valid
    log_cfg["root"]["level"] = log_lvl_valid if log_lvl_valid == "DEBUG" else "WARNING"

    if log_file:
        log_cfg["handlers"]["file_handler"] = {
            "class": "logging.FileHandler",
            "level": "DEBUG",
            "formatter": "simple",
            "filename": log_file,
            "encoding": "utf-8",
        }
        for logger_cfg in log_cfg["loggers"].values():
            logger_cfg["handlers"].append("file_handler")
        log_cfg["root"]["handlers"].append("file_handler")

    try:
        logging.config.dictConfig(log_cfg)
        # Attach PII redaction filter to every configured handler
        handlers = set(logging.root.handlers)
        for name in log_cfg["loggers"]:
            handlers.update(logging.getLogger(name).handlers)
        for handler in handlers:
            handler.addFilter(pii_redaction_filter)
    except Exception as e_log_cfg:
        print(f"Error applying logging configuration: {e_log_cfg}", file=sys.stderr)

    return log_file, log_lvl_valid
