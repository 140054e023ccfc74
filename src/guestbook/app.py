"""
WSGI application for the guestbook.
"""
import logging
from typing import Any, Iterable

from werkzeug.wrappers import Request

from .error.exceptions import HTTPError
from .services import Services, build_services
from .web.dispatcher import Dispatcher, DispatchResult
from .web.response import ResponseSink, WSGISink

logger = logging.getLogger(__name__)


def _raising_handler(error: HTTPError):
    def handler(response, request, ctx):
        raise error
    return handler


class GuestbookApp:
    """WSGI callable that routes requests through the dispatcher."""

    def __init__(self, config: Any = None, services: Services = None):
        """
        Initialize the application.

        Args:
            config: GuestbookConfiguration or a dictionary of settings
            services: Prebuilt services; built from ``config`` when omitted
        """
        self.services = services or build_services(config)
        self.dispatcher = Dispatcher(self.services)

    @property
    def config(self):
        return self.services.config

    def handle(self, request: Request, sink: ResponseSink) -> DispatchResult:
        """Route ``request`` and dispatch it into ``sink``."""
        try:
            endpoint, handler, _ = self.services.router.match(request.method, request.path)
            logger.debug(f"{request.method} {request.path} -> {endpoint}")
        except HTTPError as e:
            # Routing errors still go through the dispatcher so the session is kept
            handler = _raising_handler(e)
        return self.dispatcher.dispatch(handler, request, sink)

    def __call__(self, environ: dict, start_response) -> Iterable[bytes]:
        request = Request(environ)
        sink = WSGISink(start_response)
        self.handle(request, sink)
        return sink
