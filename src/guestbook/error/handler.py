"""
Error classification for standardized error responses.
"""
import logging
import time
import traceback
from typing import Any, Dict

from .exceptions import (
    GuestbookError,
    ConfigurationError,
    ContextCreationFailed,
    HTTPError,
    ProgrammerError,
    RenderError,
    SessionError,
    StorageError,
    TemplateError,
)

logger = logging.getLogger(__name__)


class ErrorCategory:
    """Error categories for classification."""
    HTTP = "http"                # Intentional HTTP errors raised by handlers
    PROGRAMMER = "programmer"    # Framework misuse, template setup mistakes
    RENDER = "render"            # Template execution failures
    SESSION = "session"          # Session persistence failures
    STORAGE = "storage"          # Database failures
    CONTEXT = "context"          # Request context could not be built
    CONFIG = "config"            # Invalid configuration
    SYSTEM = "system"            # Anything unexpected


class ErrorHandler:
    """Maps exceptions onto categories, HTTP statuses and log levels."""

    @staticmethod
    def classify_error(error: Exception) -> str:
        """
        Classify error into categories.

        Args:
            error: Exception to classify

        Returns:
            Error category string
        """
        if isinstance(error, HTTPError):
            return ErrorCategory.HTTP
        elif isinstance(error, ProgrammerError):
            return ErrorCategory.PROGRAMMER
        elif isinstance(error, RenderError):
            return ErrorCategory.RENDER
        elif isinstance(error, TemplateError):
            # Registry setup errors reaching request time are bugs
            return ErrorCategory.PROGRAMMER
        elif isinstance(error, SessionError):
            return ErrorCategory.SESSION
        elif isinstance(error, StorageError):
            return ErrorCategory.STORAGE
        elif isinstance(error, ContextCreationFailed):
            return ErrorCategory.CONTEXT
        elif isinstance(error, ConfigurationError):
            return ErrorCategory.CONFIG
        else:
            return ErrorCategory.SYSTEM

    @staticmethod
    def status_for(error: Exception) -> int:
        """Return the HTTP status code used to report an error."""
        if isinstance(error, HTTPError):
            return error.status_code
        return 500

    @staticmethod
    def log_level_for(error: Exception) -> int:
        """Return the log level an error should be reported at."""
        category = ErrorHandler.classify_error(error)
        if category == ErrorCategory.HTTP:
            return logging.INFO if error.status_code < 500 else logging.ERROR
        if category == ErrorCategory.PROGRAMMER:
            return logging.CRITICAL
        return logging.ERROR

    @staticmethod
    def is_fatal(error: Exception) -> bool:
        """Whether an error may abort the process in debug deployments."""
        return ErrorHandler.classify_error(error) == ErrorCategory.PROGRAMMER

    @staticmethod
    def public_message(error: Exception, debug: bool = False) -> str:
        """
        Message shown to the client for an error.

        Args:
            error: Exception being reported
            debug: Whether to expose the exception text

        Returns:
            Message text
        """
        if isinstance(error, HTTPError):
            return error.message
        if debug:
            message = error.message if isinstance(error, GuestbookError) else str(error)
            return f"Internal Server Error: {error.__class__.__name__}: {message}"
        return "Internal Server Error"

    @staticmethod
    def format_exception(exc: Exception) -> Dict[str, Any]:
        """
        Format exception as a dictionary with standard fields.

        Args:
            exc: Exception to format

        Returns:
            Dictionary with exception details
        """
        return {
            "error_type": exc.__class__.__name__,
            "error_message": str(exc),
            "error_category": ErrorHandler.classify_error(exc),
            "status_code": ErrorHandler.status_for(exc),
            "traceback": traceback.format_exception(type(exc), exc, exc.__traceback__),
            "timestamp": time.time()
        }
