"""
Error handling utilities and exceptions.
"""
from .exceptions import (
    ErrorContext,
    GuestbookError,
    ConfigurationError,
    ProgrammerError,
    RouteReversalError,
    TemplateError,
    DuplicateTemplateName,
    FunctionsAfterCompile,
    TemplateNotFound,
    TemplateCompileError,
    UndefinedFunction,
    RenderError,
    SessionError,
    SessionDecodeError,
    TamperedSession,
    ExpiredSession,
    UnregisteredType,
    SessionTooLarge,
    StorageError,
    DatabaseError,
    ContextCreationFailed,
    HTTPError,
    AuthenticationError,
    UserExists,
)

from .handler import ErrorHandler, ErrorCategory

__all__ = [
    # Exceptions
    'ErrorContext',
    'GuestbookError',
    'ConfigurationError',
    'ProgrammerError',
    'RouteReversalError',
    'TemplateError',
    'DuplicateTemplateName',
    'FunctionsAfterCompile',
    'TemplateNotFound',
    'TemplateCompileError',
    'UndefinedFunction',
    'RenderError',
    'SessionError',
    'SessionDecodeError',
    'TamperedSession',
    'ExpiredSession',
    'UnregisteredType',
    'SessionTooLarge',
    'StorageError',
    'DatabaseError',
    'ContextCreationFailed',
    'HTTPError',
    'AuthenticationError',
    'UserExists',

    # Error handling utilities
    'ErrorHandler',
    'ErrorCategory',
]
