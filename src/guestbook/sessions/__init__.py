"""
Cookie-backed sessions with flash messages.
"""

from .session import Session, FLASH_KEY
from .serializer import SessionSerializer
from .store import SessionStore, derive_signing_key

__all__ = [
    'Session',
    'FLASH_KEY',
    'SessionSerializer',
    'SessionStore',
    'derive_signing_key',
]
