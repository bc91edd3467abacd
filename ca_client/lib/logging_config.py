"""JSON logging configuration for CA client actions."""

import logging
import sys
from typing import TextIO

from pythonjsonlogger import jsonlogger

LOGGER_NAME = "ca_client"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with focused field set.

    Includes only 6 fields: timestamp, level, message, exc_info, funcName, lineno.
    Drops verbose fields like module, process, thread, processName, threadName, name.
    """

    def add_fields(self, log_record, record, message_dict):
        """Override to include only specified fields.

        Args:
            log_record: Dict to be logged as JSON
            record: LogRecord object from logging framework
            message_dict: Dict containing message and args
        """
        super().add_fields(log_record, record, message_dict)

        # Rename levelname to level for cleaner output
        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")

        allowed_fields = {
            "timestamp",
            "level",
            "message",
            "exc_info",
            "funcName",
            "lineno",
        }

        keys_to_remove = [key for key in log_record if key not in allowed_fields]
        for key in keys_to_remove:
            log_record.pop(key)


class MaxLevelFilter(logging.Filter):
    """Pass only records strictly below a level."""

    def __init__(self, level: int) -> None:
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def setup_logger(
    out: TextIO | None = None,
    err: TextIO | None = None,
    level: int = logging.INFO,
    name: str = LOGGER_NAME,
) -> logging.Logger:
    """Configure a logger that splits output across two streams.

    Records below WARNING go to ``out``; WARNING and above go to ``err``.
    Calling again with the same name replaces the previous handlers.

    Args:
        out: Stream for informational messages (default: sys.stdout)
        err: Stream for warnings and errors (default: sys.stderr)
        level: Minimum level to emit
        name: Logger name

    Returns:
        Configured logger with CustomJsonFormatter on both handlers
    """
    logger = logging.getLogger(name)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = CustomJsonFormatter(
        fmt="%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s",
        timestamp=True,
    )

    out_handler = logging.StreamHandler(out if out is not None else sys.stdout)
    out_handler.setFormatter(formatter)
    out_handler.addFilter(MaxLevelFilter(logging.WARNING))

    err_handler = logging.StreamHandler(err if err is not None else sys.stderr)
    err_handler.setFormatter(formatter)
    err_handler.setLevel(logging.WARNING)

    logger.setLevel(level)
    logger.addHandler(out_handler)
    logger.addHandler(err_handler)
    logger.propagate = False  # Don't propagate to root logger

    return logger


# Singleton logger instance used by the scripts
LOGGER = setup_logger()
