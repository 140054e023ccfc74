"""
Storage for users and guestbook entries.
"""

from .models import Base, User, Entry
from .collection import Collection, Query
from .database import Database, COLLECTIONS

__all__ = [
    'Base',
    'User',
    'Entry',
    'Collection',
    'Query',
    'Database',
    'COLLECTIONS',
]
