"""
Signed, optionally encrypted cookie session store.

Cookie values have the form ``<body>.<timestamp>.<tag>``:

- ``body`` is the serialized session as unpadded base64url JSON, or a Fernet
  token when an encryption key is configured
- ``timestamp`` is the time the cookie was written, in integer seconds
- ``tag`` is an unpadded base64url HMAC-SHA256 over
  ``"<cookie name>|<body>.<timestamp>"``
"""
import base64
import binascii
import logging
import time
from typing import Any, Callable, Mapping, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from werkzeug.http import dump_cookie

from ..error.exceptions import (
    ExpiredSession,
    ProgrammerError,
    SessionDecodeError,
    SessionTooLarge,
    TamperedSession,
    UnregisteredType,
)
from .serializer import SessionSerializer
from .session import Session

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 30 * 24 * 3600
DEFAULT_MAX_LENGTH = 4096

_SIGNING_SALT = b"guestbook.session.signing"
_KDF_ITERATIONS = 100000


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def derive_signing_key(secret_key: str) -> bytes:
    """
    Derive the HMAC key from the configured secret.

    Args:
        secret_key: Application secret

    Returns:
        32 byte signing key
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_SIGNING_SALT,
        iterations=_KDF_ITERATIONS,
    )
    return kdf.derive(secret_key.encode("utf-8"))


class SessionStore:
    """Reads sessions from request cookies and writes them into responses."""

    def __init__(
        self,
        secret_key: str,
        cookie_name: str = "session",
        serializer: Optional[SessionSerializer] = None,
        encryption_key: Optional[str] = None,
        max_age: int = DEFAULT_MAX_AGE,
        path: str = "/",
        secure: bool = False,
        httponly: bool = True,
        samesite: Optional[str] = "Lax",
        max_length: int = DEFAULT_MAX_LENGTH,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the session store.

        Args:
            secret_key: Secret the signing key is derived from
            cookie_name: Name of the session cookie
            serializer: Serializer for session values
            encryption_key: Fernet key; cookie bodies are encrypted when set
            max_age: Session lifetime in seconds
            path: Cookie path
            secure: Send the cookie over HTTPS only
            httponly: Hide the cookie from scripts
            samesite: SameSite cookie attribute
            max_length: Largest cookie value the store will write
            clock: Time source returning seconds since the epoch
        """
        if not secret_key:
            raise ValueError("A secret key is required to sign sessions")

        self.cookie_name = cookie_name
        self.serializer = serializer or SessionSerializer()
        self.max_age = max_age
        self.path = path
        self.secure = secure
        self.httponly = httponly
        self.samesite = samesite
        self.max_length = max_length
        self._clock = clock
        self._signing_key = derive_signing_key(secret_key)
        self._fernet = None
        if encryption_key:
            if isinstance(encryption_key, str):
                encryption_key = encryption_key.encode("ascii")
            self._fernet = Fernet(encryption_key)

    @property
    def encrypted(self) -> bool:
        return self._fernet is not None

    def new(self) -> Session:
        """Return a fresh, empty session."""
        return Session(new=True)

    def open(self, cookies: Mapping[str, str]) -> Session:
        """
        Decode the session cookie from a request.

        Args:
            cookies: Request cookies

        Returns:
            Decoded session, or a fresh one when no cookie is present

        Raises:
            TamperedSession: If the cookie is malformed or fails verification
            ExpiredSession: If the cookie is older than ``max_age``
        """
        value = cookies.get(self.cookie_name)
        if not value:
            return self.new()
        return Session(self.decode(value), new=False)

    def load(self, cookies: Mapping[str, str]) -> Session:
        """Like ``open``, but falls back to a fresh session on a bad cookie."""
        try:
            return self.open(cookies)
        except SessionDecodeError as e:
            logger.warning(f"Discarding session cookie '{self.cookie_name}': {e.message}")
            return self.new()

    def encode(self, session: Mapping[str, Any]) -> str:
        """
        Encode session data into a signed cookie value.

        Raises:
            UnregisteredType: If a value cannot be serialized
        """
        payload = self.serializer.dumps(dict(session)).encode("utf-8")
        if self._fernet is not None:
            body = self._fernet.encrypt(payload).decode("ascii")
        else:
            body = _b64encode(payload)
        signed = f"{body}.{int(self._clock())}"
        return f"{signed}.{_b64encode(self._sign(signed))}"

    def decode(self, value: str) -> dict:
        """
        Verify and decode a cookie value produced by ``encode``.

        Raises:
            TamperedSession: If the value is malformed or fails verification
            ExpiredSession: If the value is older than ``max_age``
        """
        parts = value.rsplit(".", 2)
        if len(parts) != 3:
            raise TamperedSession("malformed cookie value")
        body, timestamp, tag = parts

        try:
            tag_bytes = _b64decode(tag)
        except (binascii.Error, ValueError):
            raise TamperedSession("malformed signature")
        if _b64encode(tag_bytes) != tag:
            raise TamperedSession("malformed signature")
        self._verify(f"{body}.{timestamp}", tag_bytes)

        try:
            written = int(timestamp)
        except ValueError:
            raise TamperedSession("malformed timestamp")
        age = int(self._clock()) - written
        if age > self.max_age:
            raise ExpiredSession(age, self.max_age)

        try:
            if self._fernet is not None:
                payload = self._fernet.decrypt(body.encode("ascii"))
            else:
                payload = _b64decode(body)
            text = payload.decode("utf-8")
        except InvalidToken:
            raise TamperedSession("body could not be decrypted")
        except (binascii.Error, ValueError):
            raise TamperedSession("malformed body")

        try:
            return self.serializer.loads(text)
        except UnregisteredType as e:
            raise SessionDecodeError(f"Session holds a value of unknown type '{e.type_name}'") from e

    def save(self, session: Session, response: Any) -> None:
        """
        Write the session into ``response`` as a ``Set-Cookie`` header.

        Args:
            session: Session to save
            response: Object with a werkzeug-style ``headers.add``

        Raises:
            ProgrammerError: If the session was already saved
            UnregisteredType: If a value cannot be serialized
            SessionTooLarge: If the encoded value exceeds ``max_length``
        """
        if session.saved:
            raise ProgrammerError("Session was already saved for this response")

        if session.invalidated and not session:
            cookie = dump_cookie(
                self.cookie_name,
                "",
                max_age=0,
                expires=0,
                path=self.path,
                secure=self.secure,
                httponly=self.httponly,
                samesite=self.samesite,
            )
        else:
            value = self.encode(session)
            if len(value) > self.max_length:
                raise SessionTooLarge(len(value), self.max_length)
            cookie = dump_cookie(
                self.cookie_name,
                value,
                max_age=self.max_age,
                path=self.path,
                secure=self.secure,
                httponly=self.httponly,
                samesite=self.samesite,
            )

        response.headers.add("Set-Cookie", cookie)
        session.saved = True
        session.modified = False
        logger.debug(f"Saved session cookie '{self.cookie_name}'")

    def _sign(self, signed: str) -> bytes:
        mac = hmac.HMAC(self._signing_key, hashes.SHA256())
        mac.update(f"{self.cookie_name}|{signed}".encode("utf-8"))
        return mac.finalize()

    def _verify(self, signed: str, tag: bytes) -> None:
        mac = hmac.HMAC(self._signing_key, hashes.SHA256())
        mac.update(f"{self.cookie_name}|{signed}".encode("utf-8"))
        try:
            mac.verify(tag)
        except InvalidSignature:
            raise TamperedSession("signature mismatch")
