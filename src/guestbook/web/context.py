"""
Per-request context: database handle, session and signed-in user.
"""
import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional

from ..auth import USER_SESSION_KEY, UserRef
from ..error.exceptions import ContextCreationFailed, DatabaseError, ProgrammerError
from ..sessions.session import FLASH_KEY, Session
from ..storage.collection import Collection
from ..storage.models import User
from .request import IncomingRequest

if TYPE_CHECKING:
    from ..services import Services

logger = logging.getLogger(__name__)


class RequestContext:
    """
    Everything a handler needs for one request.

    Owns a database session checked out from the pool for the lifetime of the
    request. ``close`` returns it and is safe to call more than once; using
    the context as a context manager closes it on every exit path.
    """

    def __init__(
        self,
        request: IncomingRequest,
        services: "Services",
        db_session: Any,
        session: Session
    ):
        self.request = request
        self.services = services
        self.db_session = db_session
        self.session = session
        self.identity: Optional[User] = None
        self.identity_error: Optional[str] = None
        self.closed = False

    @classmethod
    def create(cls, request: IncomingRequest, services: "Services") -> "RequestContext":
        """
        Build the context for ``request``.

        A bad session cookie yields a fresh session. A session that refers to
        a user who no longer exists yields a context without identity, with
        the reason kept in ``identity_error``.

        Raises:
            ContextCreationFailed: If the database cannot be reached
        """
        try:
            db_session = services.database.checkout()
        except DatabaseError as e:
            raise ContextCreationFailed(f"No database connection available: {e.message}") from e

        try:
            session = services.sessions.load(request.cookies)
            ctx = cls(request, services, db_session, session)
            ctx._resolve_identity()
        except DatabaseError as e:
            db_session.close()
            raise ContextCreationFailed(f"Could not resolve request identity: {e.message}") from e
        except BaseException:
            db_session.close()
            raise
        return ctx

    def _resolve_identity(self) -> None:
        ref = self.session.get(USER_SESSION_KEY)
        if ref is None:
            return
        if not isinstance(ref, UserRef):
            self.identity_error = f"Session user reference has unexpected type {type(ref).__name__}"
            logger.warning(self.identity_error)
            return

        user = self.collection("users").get(ref.id)
        if user is None or user.username != ref.username:
            self.identity_error = f"Session refers to unknown user '{ref.username}' ({ref.id})"
            logger.warning(self.identity_error)
            return
        self.identity = user

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def collection(self, name: str) -> Collection:
        """Named collection bound to this request's database session."""
        if self.closed:
            raise ProgrammerError(f"Collection '{name}' requested from a closed request context")
        return self.services.database.collection(self.db_session, name)

    def url_for(self, endpoint: str, **values: Any) -> str:
        return self.services.router.reverse(endpoint, **values)

    def flash(self, message: str) -> None:
        self.session.add_flash(message)

    def render(self, writer: Any, page: str, data: Optional[Mapping[str, Any]] = None) -> None:
        """
        Render a page into ``writer``.

        Templates receive ``ctx`` and the pending flash messages alongside
        ``data``. The messages are drained only once the page has rendered.
        """
        context = {"ctx": self, "flashes": list(self.session.get(FLASH_KEY, []))}
        context.update(data or {})
        self.services.templates.render(writer, page, context)
        self.session.drain_flashes()

    def login(self, user: User) -> None:
        """Store a reference to ``user`` in the session."""
        self.session[USER_SESSION_KEY] = UserRef.for_user(user)
        self.identity = user
        self.identity_error = None
        logger.info(f"User '{user.username}' signed in")

    def logout(self) -> None:
        if self.identity is not None:
            logger.info(f"User '{self.identity.username}' signed out")
        self.session.pop(USER_SESSION_KEY, None)
        self.identity = None

    def close(self) -> None:
        """Return the database session to the pool."""
        if self.closed:
            return
        self.closed = True
        self.db_session.close()

    def __enter__(self) -> "RequestContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
