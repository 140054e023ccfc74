"""Pytest configuration and fixtures."""
import pytest
from werkzeug.test import Client, EnvironBuilder

from guestbook.app import GuestbookApp
from guestbook.auth import create_user, register_session_types
from guestbook.config import GuestbookConfiguration
from guestbook.services import build_services
from guestbook.sessions import SessionSerializer, SessionStore

SECRET_KEY = "test-secret-key-for-signing-cookies"


@pytest.fixture
def config() -> GuestbookConfiguration:
    """Create a test configuration backed by an in-memory database."""
    return GuestbookConfiguration(
        secret_key=SECRET_KEY,
        database_url="sqlite://",
        log_to_console=False,
    )


@pytest.fixture
def services(config):
    """Build services with an initialized database."""
    services = build_services(config)
    services.database.initialize()
    yield services
    services.close()


@pytest.fixture
def app(services) -> GuestbookApp:
    return GuestbookApp(services=services)


@pytest.fixture
def client(app) -> Client:
    """Test client that keeps cookies between requests."""
    return Client(app)


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(SECRET_KEY, serializer=register_session_types(SessionSerializer()))


@pytest.fixture
def db_session(services):
    session = services.database.checkout()
    yield session
    session.close()


@pytest.fixture
def alice(services, db_session):
    """A stored user with the password ``wonderland``."""
    return create_user(services.database.collection(db_session, "users"), "alice", "wonderland")


@pytest.fixture
def make_request():
    """Factory for werkzeug requests, optionally carrying cookies."""
    def _make_request(path="/", method="GET", cookies=None, data=None):
        headers = {}
        if cookies:
            headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in cookies.items())
        return EnvironBuilder(path=path, method=method, headers=headers, data=data).get_request()
    return _make_request


@pytest.fixture
def cookie_value():
    """Extracts the value from a Set-Cookie header."""
    return lambda set_cookie: set_cookie.split(";", 1)[0].split("=", 1)[1]
