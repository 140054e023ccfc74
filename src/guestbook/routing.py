"""
URL routing over werkzeug's rule map.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from werkzeug.exceptions import HTTPException, MethodNotAllowed, NotFound
from werkzeug.routing import BuildError, Map, Rule

from .error.exceptions import HTTPError, ProgrammerError, RouteReversalError

logger = logging.getLogger(__name__)


class Router:
    """Maps paths to endpoints and endpoints back to paths."""

    def __init__(self):
        self._map = Map(strict_slashes=False)
        self._handlers: Dict[str, Callable] = {}

    def add(
        self,
        path: str,
        endpoint: str,
        handler: Callable,
        methods: Optional[Iterable[str]] = None
    ) -> None:
        """
        Register a route.

        Args:
            path: URL rule, e.g. ``/entries/<int:id>``
            endpoint: Name used to reverse the route
            handler: Callable ``(response, request, ctx)``
            methods: Allowed HTTP methods, GET by default

        Raises:
            ProgrammerError: If the endpoint is already registered
        """
        if endpoint in self._handlers:
            raise ProgrammerError(f"Endpoint '{endpoint}' is already registered")
        methods = [method.upper() for method in (methods or ["GET"])]
        self._map.add(Rule(path, endpoint=endpoint, methods=methods))
        self._handlers[endpoint] = handler
        logger.debug(f"Added route {path} -> {endpoint} {methods}")

    def match(self, method: str, path: str) -> Tuple[str, Callable, Dict[str, Any]]:
        """
        Resolve a request path.

        Returns:
            Tuple of endpoint, handler and converted path values

        Raises:
            HTTPError: 404 for unknown paths, 405 for disallowed methods
        """
        adapter = self._map.bind("localhost")
        try:
            endpoint, values = adapter.match(path, method=method.upper())
        except NotFound:
            raise HTTPError(404)
        except MethodNotAllowed:
            raise HTTPError(405)
        except HTTPException as e:
            raise HTTPError(e.code or 500, e.description)
        return endpoint, self._handlers[endpoint], values

    def reverse(self, endpoint: str, **values: Any) -> str:
        """
        Build the path for an endpoint.

        Values that are not part of the rule are appended as query arguments.

        Raises:
            RouteReversalError: If the endpoint is unknown or values are missing
        """
        adapter = self._map.bind("localhost")
        try:
            return adapter.build(endpoint, values)
        except BuildError as e:
            reason = "unknown endpoint" if endpoint not in self._handlers else "missing or invalid values"
            raise RouteReversalError(endpoint, reason) from e

    def endpoints(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, endpoint: object) -> bool:
        return endpoint in self._handlers
