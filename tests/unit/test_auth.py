import pytest

from guestbook.auth import UserRef, authenticate, create_user, hash_password, verify_password
from guestbook.error.exceptions import AuthenticationError, UserExists


@pytest.fixture
def users(services, db_session):
    return services.database.collection(db_session, "users")


def test_password_hashing():
    hashed = hash_password("secret")
    assert hashed != "secret"
    assert verify_password(hashed, "secret")
    assert not verify_password(hashed, "wrong")


def test_create_user(users):
    user = create_user(users, "  carol ", "pw")
    assert user.id is not None
    assert user.username == "carol"
    assert verify_password(user.password_hash, "pw")


def test_duplicate_username(users, alice):
    with pytest.raises(UserExists) as exc_info:
        create_user(users, "alice", "other")
    assert exc_info.value.username == "alice"


@pytest.mark.parametrize("username,password", [("", "pw"), ("dave", ""), ("x" * 65, "pw")])
def test_unusable_credentials(users, username, password):
    with pytest.raises(AuthenticationError):
        create_user(users, username, password)


def test_authenticate(users, alice):
    assert authenticate(users, "alice", "wonderland").id == alice.id
    assert authenticate(users, "alice", "wrong") is None
    assert authenticate(users, "nobody", "wonderland") is None
    assert authenticate(users, "", "") is None


def test_user_ref(alice):
    ref = UserRef.for_user(alice)
    assert ref == UserRef(id=alice.id, username="alice")
