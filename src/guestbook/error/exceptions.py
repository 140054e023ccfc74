"""
Centralized exception definitions for the guestbook.
"""
from typing import Optional

from werkzeug.http import HTTP_STATUS_CODES


class ErrorContext:
    """Context information for errors."""

    def __init__(self, component: str = None, operation: str = None, **kwargs):
        self.component = component
        self.operation = operation
        self.details = kwargs


class GuestbookError(Exception):
    """Base class for all guestbook errors."""

    def __init__(self, message: str, context: ErrorContext = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.details = details or {}

    def __str__(self):
        base_str = super().__str__()
        if self.context.component and self.context.operation:
            return f"{base_str} [in {self.context.component}.{self.context.operation}]"
        return base_str


class ConfigurationError(GuestbookError):
    """Error in configuration."""
    pass


class ProgrammerError(GuestbookError):
    """A misuse of the framework that indicates a bug in the calling code.

    Programmer errors are typed and catchable, but the dispatcher logs them at
    CRITICAL and may re-raise them when ``fatal_programmer_errors`` is set.
    """
    pass


class RouteReversalError(ProgrammerError):
    """Building a URL for an unknown endpoint or with missing values."""

    def __init__(self, endpoint: str, reason: str = ""):
        message = f"Cannot reverse route '{endpoint}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, ErrorContext("routing", "reverse", endpoint=endpoint))
        self.endpoint = endpoint


# Templates

class TemplateError(GuestbookError):
    """Error in template handling."""
    pass


class DuplicateTemplateName(TemplateError):
    """A fragment or slot name is already registered in the registry."""

    def __init__(self, name: str):
        super().__init__(
            f"Template '{name}' is already defined in this registry",
            ErrorContext("templates", "compile", name=name),
        )
        self.name = name


class FunctionsAfterCompile(TemplateError):
    """The function table was changed after templates were compiled."""

    def __init__(self, names=None):
        names = sorted(names or [])
        super().__init__(
            "Template functions must be registered before any template is compiled",
            ErrorContext("templates", "register", functions=names),
        )
        self.names = names


class TemplateNotFound(TemplateError):
    """No template is registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(
            f"No template named '{name}'",
            ErrorContext("templates", "lookup", name=name),
        )
        self.name = name


class TemplateCompileError(TemplateError):
    """A fragment could not be parsed."""

    def __init__(self, fragment: str, reason: str):
        super().__init__(
            f"Failed to compile template '{fragment}': {reason}",
            ErrorContext("templates", "compile", fragment=fragment),
        )
        self.fragment = fragment


class UndefinedFunction(TemplateCompileError):
    """A fragment calls a function missing from the function table."""

    def __init__(self, fragment: str, function: str):
        super().__init__(fragment, f"function '{function}' is not defined")
        self.function = function


class RenderError(TemplateError):
    """Executing a template failed."""

    def __init__(self, name: str, reason: str):
        super().__init__(
            f"Failed to render template '{name}': {reason}",
            ErrorContext("templates", "execute", name=name),
        )
        self.name = name


# Sessions

class SessionError(GuestbookError):
    """Error in session handling."""
    pass


class SessionDecodeError(SessionError):
    """A session cookie could not be trusted."""
    pass


class TamperedSession(SessionDecodeError):
    """The session cookie failed its integrity check."""

    def __init__(self, reason: str = "integrity check failed"):
        super().__init__(f"Session cookie rejected: {reason}", ErrorContext("sessions", "open"))


class ExpiredSession(SessionDecodeError):
    """The session cookie is older than the configured max age."""

    def __init__(self, age: int, max_age: int):
        super().__init__(
            f"Session cookie expired ({age}s old, max age {max_age}s)",
            ErrorContext("sessions", "open", age=age, max_age=max_age),
        )


class UnregisteredType(SessionError):
    """A session value has a type unknown to the serializer."""

    def __init__(self, type_name: str):
        super().__init__(
            f"Type '{type_name}' is not registered with the session serializer",
            ErrorContext("sessions", "serialize", type=type_name),
        )
        self.type_name = type_name


class SessionTooLarge(SessionError):
    """The encoded session does not fit in a cookie."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Encoded session is {size} bytes, limit is {limit}",
            ErrorContext("sessions", "save", size=size, limit=limit),
        )


# Storage

class StorageError(GuestbookError):
    """Error in storage operations."""
    pass


class DatabaseError(StorageError):
    """Database operation failed."""
    pass


# Requests

class ContextCreationFailed(GuestbookError):
    """The request context could not be built."""
    pass


class HTTPError(GuestbookError):
    """An intentional HTTP error response raised by a handler."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or HTTP_STATUS_CODES.get(status_code, "Error"))


class AuthenticationError(GuestbookError):
    """Error in account handling."""
    pass


class UserExists(AuthenticationError):
    """The username is already taken."""

    def __init__(self, username: str):
        super().__init__(f"User '{username}' already exists", ErrorContext("auth", "create_user"))
        self.username = username
