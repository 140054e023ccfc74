"""
Buffered responses and the sinks they are flushed to.
"""
import logging
from typing import Callable, List, Optional, Protocol, Union

from werkzeug.datastructures import Headers
from werkzeug.http import HTTP_STATUS_CODES

from ..error.exceptions import ProgrammerError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "text/html; charset=utf-8"


class ResponseSink(Protocol):
    """The real transport a buffered response is applied to."""

    def start(self, status_code: int, headers: Headers) -> None:
        ...

    def write(self, data: bytes) -> None:
        ...


class BufferedResponse:
    """
    Collects status, headers and body without sending anything.

    Nothing reaches the transport until ``apply`` is called, which may happen
    only once. Headers can be changed at any point before that.
    """

    def __init__(self, status_code: int = 200, content_type: str = DEFAULT_CONTENT_TYPE):
        self._content_type = content_type
        self.status_code = status_code
        self.headers = Headers()
        self.headers["Content-Type"] = content_type
        self._chunks: List[bytes] = []
        self.applied = False

    def write(self, data: Union[str, bytes]) -> None:
        """Append to the body; strings are encoded as UTF-8."""
        if self.applied:
            raise ProgrammerError("Cannot write to a response that was already applied")
        if isinstance(data, str):
            data = data.encode("utf-8")
        elif not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"Response body must be str or bytes, got {type(data).__name__}")
        self._chunks.append(bytes(data))

    def reset(self) -> None:
        """Discard everything written so far, headers included."""
        if self.applied:
            raise ProgrammerError("Cannot reset a response that was already applied")
        self.status_code = 200
        self.headers = Headers()
        self.headers["Content-Type"] = self._content_type
        self._chunks = []

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    @property
    def status(self) -> str:
        return f"{self.status_code} {HTTP_STATUS_CODES.get(self.status_code, 'UNKNOWN')}"

    def apply(self, sink: ResponseSink) -> None:
        """
        Send status, headers and body to ``sink``.

        Raises:
            ProgrammerError: If the response was already applied
        """
        if self.applied:
            raise ProgrammerError("Response was already applied")
        self.applied = True
        body = self.body
        self.headers["Content-Length"] = str(len(body))
        sink.start(self.status_code, self.headers)
        if body:
            sink.write(body)
        logger.debug(f"Applied response {self.status} ({len(body)} bytes)")


def redirect(response: BufferedResponse, location: str, status: int = 303) -> None:
    """Turn ``response`` into a redirect to ``location``."""
    response.status_code = status
    response.headers["Location"] = location


class WSGISink:
    """Sink that hands the response to a WSGI server."""

    def __init__(self, start_response: Callable):
        self._start_response = start_response
        self._chunks: List[bytes] = []
        self.started = False

    def start(self, status_code: int, headers: Headers) -> None:
        if self.started:
            raise ProgrammerError("Response was already started")
        self.started = True
        status = f"{status_code} {HTTP_STATUS_CODES.get(status_code, 'UNKNOWN')}"
        self._start_response(status, headers.to_wsgi_list())

    def write(self, data: bytes) -> None:
        self._chunks.append(data)

    def __iter__(self):
        return iter(self._chunks)


class RecordingSink:
    """Sink that keeps everything it receives in memory."""

    def __init__(self):
        self.status_code: Optional[int] = None
        self.headers: Optional[Headers] = None
        self.chunks: List[bytes] = []
        self.start_calls = 0

    def start(self, status_code: int, headers: Headers) -> None:
        self.start_calls += 1
        self.status_code = status_code
        self.headers = Headers(headers)

    def write(self, data: bytes) -> None:
        self.chunks.append(data)

    @property
    def body(self) -> bytes:
        return b"".join(self.chunks)

    def cookies(self) -> List[str]:
        return self.headers.getlist("Set-Cookie") if self.headers is not None else []
