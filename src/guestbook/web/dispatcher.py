"""
Runs handlers against a buffered response so the session cookie can be
written after the handler finishes and before anything is sent.
"""
import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Protocol

from ..error.handler import ErrorHandler
from ..utils.logging import get_request_logger
from .context import RequestContext
from .request import IncomingRequest
from .response import BufferedResponse, ResponseSink

if TYPE_CHECKING:
    from ..services import Services

ERROR_CONTENT_TYPE = "text/plain; charset=utf-8"


class Handler(Protocol):
    """Request handler; failures are raised, not returned."""

    def __call__(self, response: BufferedResponse, request: IncomingRequest, ctx: RequestContext) -> None:
        ...


class DispatchState(enum.Enum):
    CREATED = "created"
    CONTEXT_BUILDING = "context_building"
    HANDLER_RUNNING = "handler_running"
    SESSION_SAVING = "session_saving"
    ERRORED = "errored"
    FLUSHED = "flushed"


@dataclass
class DispatchResult:
    """Outcome of one dispatched request."""
    request_id: str
    status_code: int = 200
    trace: List[DispatchState] = field(default_factory=list)
    error: Optional[Exception] = None
    session_saved: bool = False

    @property
    def state(self) -> DispatchState:
        return self.trace[-1]

    @property
    def errored(self) -> bool:
        return DispatchState.ERRORED in self.trace


class Dispatcher:
    """Builds the request context, runs the handler and flushes the response once."""

    def __init__(self, services: "Services"):
        self.services = services

    @property
    def debug(self) -> bool:
        return self.services.config.debug

    def dispatch(self, handler: Handler, request: IncomingRequest, sink: ResponseSink) -> DispatchResult:
        """
        Handle one request.

        1. Build the request context; on failure an error response goes
           straight to ``sink`` and no session is saved.
        2. Run ``handler`` against a buffered response. If it raises, the
           buffer is replaced with an error response.
        3. Save the session into the buffer's headers. If that fails, the
           buffer is replaced with a server error response.
        4. Apply the buffer to ``sink``.

        The database session is released on every path.

        Raises:
            ProgrammerError: After the response is flushed, when the handler
                misused the framework and ``fatal_programmer_errors`` is set
        """
        result = DispatchResult(request_id=uuid.uuid4().hex[:8], trace=[DispatchState.CREATED])
        log = get_request_logger(
            __name__,
            result.request_id,
            method=getattr(request, "method", None),
            path=getattr(request, "path", None),
        )

        result.trace.append(DispatchState.CONTEXT_BUILDING)
        try:
            ctx = RequestContext.create(request, self.services)
        except Exception as e:
            self._fail(result, e, log)
            response = BufferedResponse()
            self._write_error(response, e)
            response.apply(sink)
            result.status_code = response.status_code
            result.trace.append(DispatchState.FLUSHED)
            return self._finish(result)

        with ctx:
            if ctx.identity is not None:
                log = log.bind(user=ctx.identity.username)
            response = BufferedResponse()

            result.trace.append(DispatchState.HANDLER_RUNNING)
            try:
                handler(response, request, ctx)
            except Exception as e:
                self._fail(result, e, log)
                response.reset()
                self._write_error(response, e)

            result.trace.append(DispatchState.SESSION_SAVING)
            try:
                self.services.sessions.save(ctx.session, response)
                result.session_saved = True
            except Exception as e:
                self._fail(result, e, log)
                response.reset()
                self._write_error(response, e)

            response.apply(sink)
            result.status_code = response.status_code
            result.trace.append(DispatchState.FLUSHED)

        log.debug(f"Dispatched with status {result.status_code}: {[state.value for state in result.trace]}")
        return self._finish(result)

    def _fail(self, result: DispatchResult, error: Exception, log: logging.LoggerAdapter) -> None:
        result.trace.append(DispatchState.ERRORED)
        result.error = error
        level = ErrorHandler.log_level_for(error)
        log.log(
            level,
            f"{ErrorHandler.classify_error(error)} error: {error}",
            exc_info=error if level >= logging.ERROR else None,
        )

    def _write_error(self, response: BufferedResponse, error: Exception) -> None:
        response.status_code = ErrorHandler.status_for(error)
        response.headers["Content-Type"] = ERROR_CONTENT_TYPE
        response.write(ErrorHandler.public_message(error, self.debug))
        if self.debug and response.status_code >= 500:
            details = ErrorHandler.format_exception(error)
            response.write("\n\n" + "".join(details["traceback"]))

    def _finish(self, result: DispatchResult) -> DispatchResult:
        error = result.error
        if error is not None and ErrorHandler.is_fatal(error) and self.services.config.fatal_programmer_errors:
            raise error
        return result
