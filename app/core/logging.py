"""Structured logging configuration for Tuon Engine."""

import logging
import sys
from typing import Any

# Correlation fields lifted from ``extra=`` into the formatted line
CONTEXT_FIELDS = (
    "conversation_id",
    "artifact_id",
    "model_id",
    "provider",
    "destination",
    "version",
    "status",
)


class StructuredFormatter(logging.Formatter):
    """key=value structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured output."""
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        line = " ".join(f"{k}={v}" for k, v in log_data.items())
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.propagate = False

        try:
            from app.core.config import get_settings

            settings = get_settings()
            logger.setLevel(logging.DEBUG if settings.TUON_ENV == "dev" else logging.INFO)
        except Exception:
            # Settings unavailable (e.g. missing Supabase env in a script)
            logger.setLevel(logging.INFO)

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log with additional context fields.

    Known correlation fields (conversation_id, artifact_id, ...) are set on the
    record directly; anything else is appended as extra key=value pairs.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Additional context fields
    """
    extra: dict[str, Any] = {k: kwargs.pop(k) for k in CONTEXT_FIELDS if k in kwargs}
    extra["extra_data"] = kwargs
    logger.log(level, msg, extra=extra)
