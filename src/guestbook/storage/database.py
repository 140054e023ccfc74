"""
Database engine, connection pool and session checkout.
"""
import logging
from typing import Dict, Type

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession, sessionmaker
from sqlalchemy.pool import StaticPool

from ..error.exceptions import DatabaseError, StorageError
from .collection import Collection
from .models import Base, Entry, User

logger = logging.getLogger(__name__)

COLLECTIONS: Dict[str, Type] = {
    "users": User,
    "entries": Entry,
}


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or url.startswith("sqlite:///:memory:?")


class Database:
    """Owns the engine and hands out pooled sessions."""

    def __init__(
        self,
        url: str,
        pool_size: int = 5,
        pool_timeout: float = 30.0,
        echo: bool = False
    ):
        """
        Initialize the database.

        Args:
            url: SQLAlchemy database URL
            pool_size: Connections kept in the pool
            pool_timeout: Seconds to wait for a free connection
            echo: Log every statement
        """
        self.url = url
        try:
            if _is_memory_sqlite(url):
                # One shared connection, or every checkout would see an empty database
                self.engine = create_engine(
                    url,
                    echo=echo,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            elif url.startswith("sqlite"):
                self.engine = create_engine(
                    url,
                    echo=echo,
                    pool_size=pool_size,
                    pool_timeout=pool_timeout,
                    connect_args={"check_same_thread": False},
                )
            else:
                self.engine = create_engine(
                    url,
                    echo=echo,
                    pool_size=pool_size,
                    pool_timeout=pool_timeout,
                    pool_pre_ping=True,
                )
        except (SQLAlchemyError, ImportError) as e:
            raise DatabaseError(f"Could not create database engine for {url}: {str(e)}")

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def initialize(self) -> None:
        """Create the database schema."""
        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Initialized database schema")
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize database: {e}")
            raise DatabaseError(f"Database initialization failed: {str(e)}")

    def checkout(self) -> DBSession:
        """
        Check out a session holding a live pooled connection.

        Raises:
            DatabaseError: If no connection could be obtained
        """
        session = self.SessionLocal()
        try:
            session.connection()
        except SQLAlchemyError as e:
            session.close()
            raise DatabaseError(f"Could not check out a database connection: {str(e)}")
        return session

    def collection(self, session: DBSession, name: str) -> Collection:
        """
        Return the named collection bound to ``session``.

        Raises:
            StorageError: If no collection has that name
        """
        model = COLLECTIONS.get(name)
        if model is None:
            raise StorageError(f"Unknown collection '{name}'")
        return Collection(session, model, name)

    def dispose(self) -> None:
        """Close every pooled connection."""
        self.engine.dispose()
        logger.info("Disposed database engine")
