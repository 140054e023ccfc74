"""
Utility functions for the guestbook.
"""
from .logging import configure_logging, get_logger, get_request_logger, JsonFormatter, RequestLoggerAdapter

__all__ = [
    'configure_logging',
    'get_logger',
    'get_request_logger',
    'JsonFormatter',
    'RequestLoggerAdapter',
]
