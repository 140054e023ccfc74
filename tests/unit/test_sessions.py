import pytest
from cryptography.fernet import Fernet
from pydantic import BaseModel

from guestbook.auth import UserRef, register_session_types
from guestbook.error.exceptions import (
    ExpiredSession,
    ProgrammerError,
    SessionDecodeError,
    SessionTooLarge,
    TamperedSession,
    UnregisteredType,
)
from guestbook.sessions import Session, SessionSerializer, SessionStore
from guestbook.web.response import BufferedResponse

SECRET_KEY = "test-secret-key-for-signing-cookies"


class Clock:
    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _flip(char: str) -> str:
    return "B" if char == "A" else "A"


def test_session_flags():
    session = Session()
    assert session.new and not session.modified and not session.saved
    session["a"] = 1
    assert session.modified
    assert dict(session) == {"a": 1}


def test_flashes_drain_once():
    session = Session()
    session.add_flash("first")
    session.add_flash("second")
    assert session.drain_flashes() == ["first", "second"]
    assert session.drain_flashes() == []


def test_round_trip(store: SessionStore):
    """Test that decoding an encoded session yields the same values."""
    data = {
        "count": 3,
        "ratio": 0.5,
        "flag": True,
        "nothing": None,
        "tags": ["a", "b"],
        "nested": {"x": [1, {"y": "z"}]},
        "user": UserRef(id=7, username="alice"),
    }
    assert store.decode(store.encode(data)) == data


def test_open_without_cookie_returns_fresh_session(store: SessionStore):
    session = store.open({})
    assert session.new
    assert len(session) == 0


def test_open_existing_cookie(store: SessionStore):
    session = store.open({"session": store.encode({"a": 1})})
    assert not session.new
    assert session["a"] == 1


@pytest.mark.parametrize("position", range(43))
def test_tampered_tag_is_rejected(store: SessionStore, position: int):
    """Test that changing any character of the integrity tag invalidates the cookie."""
    value = store.encode({"user": UserRef(id=1, username="alice")})
    signed, tag = value.rsplit(".", 1)
    assert len(tag) == 43
    tag = tag[:position] + _flip(tag[position]) + tag[position + 1:]
    tampered = f"{signed}.{tag}"

    with pytest.raises(TamperedSession):
        store.open({"session": tampered})

    session = store.load({"session": tampered})
    assert session.new
    assert "user" not in session


@pytest.mark.parametrize("junk", ["!!!!", "$$$$", "    ", "!!!!!!!!"])
@pytest.mark.parametrize("position", [0, 21, 43])
def test_tag_with_inserted_junk_is_rejected(store: SessionStore, junk: str, position: int):
    """Test that characters outside the tag alphabet are not skipped over."""
    value = store.encode({"admin": True})
    signed, tag = value.rsplit(".", 1)
    tampered = f"{signed}.{tag[:position]}{junk}{tag[position:]}"

    with pytest.raises(TamperedSession):
        store.open({"session": tampered})
    session = store.load({"session": tampered})
    assert session.new
    assert "admin" not in session


def test_tampered_body_is_rejected(store: SessionStore):
    value = store.encode({"admin": False})
    tampered = _flip(value[0]) + value[1:]
    with pytest.raises(TamperedSession):
        store.decode(tampered)


@pytest.mark.parametrize("value", ["", "garbage", "a.b", "a.b.c.d", "!!!.123.???"])
def test_malformed_cookie_loads_fresh_session(store: SessionStore, value: str):
    assert store.load({"session": value}).new


def test_cookie_is_bound_to_its_name(store: SessionStore):
    other = SessionStore(SECRET_KEY, cookie_name="other")
    with pytest.raises(TamperedSession):
        other.open({"other": store.encode({"a": 1})})


def test_expired_cookie():
    clock = Clock()
    store = SessionStore(SECRET_KEY, max_age=60, clock=clock)
    value = store.encode({"a": 1})

    clock.now += 60
    assert store.decode(value) == {"a": 1}

    clock.now += 1
    with pytest.raises(ExpiredSession):
        store.open({"session": value})
    assert store.load({"session": value}).new


def test_encrypted_store():
    key = Fernet.generate_key().decode()
    store = SessionStore(SECRET_KEY, encryption_key=key)
    value = store.encode({"secret": "plaintext-value"})
    assert store.encrypted
    assert "plaintext-value" not in value
    assert store.decode(value) == {"secret": "plaintext-value"}

    other = SessionStore(SECRET_KEY, encryption_key=Fernet.generate_key().decode())
    with pytest.raises(TamperedSession):
        other.decode(value)


def test_save_writes_one_cookie(store: SessionStore):
    session = store.new()
    session["a"] = 1
    response = BufferedResponse()
    store.save(session, response)

    cookies = response.headers.getlist("Set-Cookie")
    assert len(cookies) == 1
    assert cookies[0].startswith("session=")
    assert "HttpOnly" in cookies[0]
    assert "SameSite=Lax" in cookies[0]
    assert "Path=/" in cookies[0]
    assert session.saved and not session.modified


def test_save_twice_is_a_programmer_error(store: SessionStore):
    session = store.new()
    store.save(session, BufferedResponse())
    with pytest.raises(ProgrammerError):
        store.save(session, BufferedResponse())


def test_unregistered_type_fails_at_save_not_set(store: SessionStore):
    """Test that storing an unknown type is only rejected when saving."""

    class Unknown(BaseModel):
        value: int

    session = store.new()
    session["thing"] = Unknown(value=1)
    response = BufferedResponse()
    with pytest.raises(UnregisteredType):
        store.save(session, response)
    assert "Set-Cookie" not in response.headers
    assert not session.saved


def test_session_too_large():
    store = SessionStore(SECRET_KEY, max_length=200)
    session = store.new()
    session["blob"] = "x" * 500
    with pytest.raises(SessionTooLarge):
        store.save(session, BufferedResponse())


def test_invalidate_expires_cookie(store: SessionStore):
    session = store.open({"session": store.encode({"a": 1})})
    session.invalidate()
    response = BufferedResponse()
    store.save(session, response)
    assert "Max-Age=0" in response.headers["Set-Cookie"]


def test_unknown_stored_type_is_a_decode_error(store: SessionStore):
    plain = SessionStore(SECRET_KEY)
    value = store.encode({"user": UserRef(id=1, username="alice")})
    with pytest.raises(SessionDecodeError):
        plain.decode(value)


class TestSerializer:
    def test_tuples_become_lists(self):
        serializer = SessionSerializer()
        assert serializer.loads(serializer.dumps({"t": (1, 2)})) == {"t": [1, 2]}

    def test_dict_with_type_key_round_trips(self):
        serializer = SessionSerializer()
        data = {"raw": {"__type__": "UserRef", "value": 1}}
        assert serializer.loads(serializer.dumps(data)) == data

    def test_unregistered_value(self):
        with pytest.raises(UnregisteredType) as exc_info:
            SessionSerializer().dumps({"when": object()})
        assert exc_info.value.type_name == "object"

    def test_non_string_keys(self):
        with pytest.raises(UnregisteredType):
            SessionSerializer().dumps({"map": {1: "one"}})

    def test_unknown_tag(self):
        with pytest.raises(UnregisteredType):
            SessionSerializer().loads('{"x": {"__type__": "Missing", "value": {}}}')

    def test_register_validation(self):
        serializer = SessionSerializer()
        with pytest.raises(TypeError):
            serializer.register(dict)
        with pytest.raises(ValueError):
            serializer.register(UserRef, name="dict")

    def test_register_as_decorator(self):
        serializer = SessionSerializer()

        @serializer.register(name="point")
        class Point(BaseModel):
            x: int
            y: int

        assert serializer.loads(serializer.dumps({"p": Point(x=1, y=2)})) == {"p": Point(x=1, y=2)}

    def test_register_session_types_is_repeatable(self):
        serializer = register_session_types(register_session_types(SessionSerializer()))
        assert serializer.is_registered(UserRef)
