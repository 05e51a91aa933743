"""
Logging configuration with JSON formatter for structured logging.
"""
import logging
import sys
from typing import Any, Dict
from pythonjsonlogger import jsonlogger
from core.settings import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any]
    ) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = self.formatTime(record, self.datefmt)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno

        # Application context
        log_record['app_name'] = settings.app_name
        log_record['environment'] = settings.app_env

        if record.exc_info:
            log_record['exc_info'] = self.formatException(record.exc_info)


def setup_logging() -> None:
    """
    Configure application logging with JSON formatter.

    Sets up structured JSON logging for production environments
    and human-readable logging for development.
    """
    use_json = settings.app_env in ["production", "staging"]

    if use_json:
        formatter = CustomJsonFormatter(
            fmt='%(timestamp)s %(level)s %(name)s %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    else:
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.db_echo else logging.WARNING
    )

    logging.info(
        "Logging configured",
        extra={
            "log_level": settings.log_level,
            "environment": settings.app_env,
            "json_logging": use_json
        }
    )


class LogContext:
    """Context manager for adding contextual information to logs."""

    def __init__(self, logger: logging.Logger, **kwargs: Any):
        """
        Initialize log context.

        Args:
            logger: Logger the context writes to
            **kwargs: Key-value pairs to add to every record
        """
        self.context = kwargs
        self.logger = logger

    def __enter__(self) -> 'LogContext':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        # Expected booking outcomes are logged by the caller at the right level
        if exc_type is not None and not getattr(exc_val, "expected", False):
            self.logger.error(
                f"Exception in context: {exc_type.__name__}",
                extra=self.context,
                exc_info=(exc_type, exc_val, exc_tb)
            )

    def bind(self, **extra_fields: Any) -> None:
        """Add fields to the context once they become known."""
        self.context.update(extra_fields)

    def log(self, level: str, message: str, **extra_fields: Any) -> None:
        """
        Log a message with context.

        Args:
            level: Log level (debug, info, warning, error, critical)
            message: Log message
            **extra_fields: Additional fields to include in log
        """
        log_method = getattr(self.logger, level.lower())
        merged_context = {**self.context, **extra_fields}
        log_method(message, extra=merged_context)
