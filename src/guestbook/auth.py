"""
User accounts and the session identity reference.
"""
import logging
from typing import Optional

from pydantic import BaseModel
from werkzeug.security import check_password_hash, generate_password_hash

from .error.exceptions import AuthenticationError, UserExists
from .sessions.serializer import SessionSerializer
from .storage.collection import Collection
from .storage.models import User

logger = logging.getLogger(__name__)

# Session key holding the signed-in user's reference
USER_SESSION_KEY = "user"

MAX_USERNAME_LENGTH = 64


class UserRef(BaseModel):
    """Reference to a user stored in the session cookie."""
    id: int
    username: str

    @classmethod
    def for_user(cls, user: User) -> "UserRef":
        return cls(id=user.id, username=user.username)


def register_session_types(serializer: SessionSerializer) -> SessionSerializer:
    """Register the models this package stores in sessions."""
    if not serializer.is_registered(UserRef):
        serializer.register(UserRef)
    return serializer


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def create_user(users: Collection, username: str, password: str) -> User:
    """
    Create a user account.

    Args:
        users: The ``users`` collection
        username: Unique username
        password: Plain text password, stored hashed

    Returns:
        The stored user

    Raises:
        AuthenticationError: If the username or password is unusable
        UserExists: If the username is taken
    """
    username = (username or "").strip()
    if not username:
        raise AuthenticationError("Username is required")
    if len(username) > MAX_USERNAME_LENGTH:
        raise AuthenticationError(f"Username must be at most {MAX_USERNAME_LENGTH} characters")
    if not password:
        raise AuthenticationError("Password is required")

    if users.find({"username": username}).first() is not None:
        raise UserExists(username)

    user = users.insert(User(username=username, password_hash=hash_password(password)))
    logger.info(f"Created user '{username}' with id {user.id}")
    return user


def authenticate(users: Collection, username: str, password: str) -> Optional[User]:
    """
    Check credentials.

    Returns:
        The matching user, or None when the credentials are wrong
    """
    username = (username or "").strip()
    if not username or not password:
        return None
    user = users.find({"username": username}).first()
    if user is None or not verify_password(user.password_hash, password):
        logger.info(f"Failed sign-in for '{username}'")
        return None
    return user
