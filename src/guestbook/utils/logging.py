"""
Logging utilities with structured formatting.
"""
import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

# Request context attributes copied into structured records
CONTEXT_FIELDS = ("request_id", "method", "path", "endpoint", "user")


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, **kwargs):
        """Initialize with optional fields."""
        self.additional_fields = kwargs
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        log_data.update(self.additional_fields)

        return json.dumps(log_data)


class RequestLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds request context to log records."""

    def process(self, msg, kwargs):
        """Add context to log records."""
        kwargs.setdefault("extra", {}).update(self.extra)
        return msg, kwargs

    def bind(self, **context) -> "RequestLoggerAdapter":
        """Return an adapter carrying this adapter's context plus ``context``."""
        return RequestLoggerAdapter(self.logger, {**self.extra, **context})


def configure_logging(config: Any) -> None:
    """
    Configure logging with structured formatting.

    Args:
        config: GuestbookConfiguration or a dictionary with the same keys
    """
    if not isinstance(config, dict):
        config = config.model_dump()

    log_level = getattr(logging, str(config.get("log_level", "INFO")).upper(), logging.INFO)
    log_file = config.get("log_file")
    use_json = config.get("structured_logging", False)
    log_to_console = config.get("log_to_console", True)
    max_bytes = config.get("log_max_bytes", 10 * 1024 * 1024)  # 10 MB
    backup_count = config.get("log_backup_count", 5)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers = []

    if log_file:
        log_path = Path(log_file)
        if log_path.parent != Path("."):
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count
        )
        handlers.append(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        handlers.append(console_handler)

    if use_json:
        json_formatter = JsonFormatter(
            application="guestbook",
            environment="development" if config.get("debug") else "production"
        )
        for handler in handlers:
            handler.setFormatter(json_formatter)
    else:
        standard_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
        )
        for handler in handlers:
            handler.setFormatter(standard_formatter)

    for handler in handlers:
        root_logger.addHandler(handler)

    logging.info(f"Logging configured with level: {logging.getLevelName(log_level)}")
    if log_file:
        logging.debug(f"Log file: {log_file}")


def get_logger(name: str, **context) -> logging.Logger:
    """
    Get a logger with context.

    Args:
        name: Logger name
        **context: Additional context fields

    Returns:
        Logger with context
    """
    logger = logging.getLogger(name)

    if context:
        return RequestLoggerAdapter(logger, context)

    return logger


def get_request_logger(
    name: str,
    request_id: str,
    method: Optional[str] = None,
    path: Optional[str] = None,
    **context
) -> RequestLoggerAdapter:
    """
    Get a logger with request context.

    Args:
        name: Logger name
        request_id: Short identifier of the request
        method: HTTP method
        path: Request path
        **context: Additional context fields

    Returns:
        Logger with request context
    """
    extra: Dict[str, Any] = {"request_id": request_id}

    if method:
        extra["method"] = method
    if path:
        extra["path"] = path

    extra.update(context)

    return get_logger(name, **extra)
