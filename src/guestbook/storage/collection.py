"""
Query helpers over a single model, bound to one database session.
"""
import logging
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from ..error.exceptions import DatabaseError, StorageError

logger = logging.getLogger(__name__)


class Query:
    """Chainable query: ``find(filter).sort("-timestamp").limit(20).all()``."""

    def __init__(self, collection: "Collection", filter: Optional[Dict[str, Any]] = None):
        self._collection = collection
        self._filter = dict(filter or {})
        self._order: List[str] = []
        self._limit: Optional[int] = None

    def sort(self, *keys: str) -> "Query":
        """Order by fields; a leading ``-`` sorts descending."""
        for key in keys:
            self._collection._column(key.lstrip("-"))
        self._order.extend(keys)
        return self

    def limit(self, count: int) -> "Query":
        if count < 0:
            raise ValueError("limit must not be negative")
        self._limit = count
        return self

    def _statement(self):
        model = self._collection.model
        stmt = select(model).where(*self._collection._conditions(self._filter))
        for key in self._order:
            column = self._collection._column(key.lstrip("-"))
            stmt = stmt.order_by(column.desc() if key.startswith("-") else column.asc())
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        return stmt

    def all(self) -> List[Any]:
        return self._collection._run(lambda s: list(s.scalars(self._statement()).all()))

    def first(self) -> Optional[Any]:
        return self._collection._run(lambda s: s.scalars(self._statement().limit(1)).first())

    def count(self) -> int:
        model = self._collection.model
        stmt = select(func.count()).select_from(model).where(*self._collection._conditions(self._filter))
        return self._collection._run(lambda s: s.scalar(stmt))


class Collection:
    """A named model collection bound to a database session."""

    def __init__(self, session: DBSession, model: Type, name: Optional[str] = None):
        self.session = session
        self.model = model
        self.name = name or model.__tablename__

    def _column(self, field: str):
        column = self.model.__table__.columns.get(field)
        if column is None:
            raise StorageError(f"Collection '{self.name}' has no field '{field}'")
        return getattr(self.model, field)

    def _conditions(self, filter: Dict[str, Any]) -> list:
        return [self._column(field) == value for field, value in filter.items()]

    def _run(self, operation):
        try:
            return operation(self.session)
        except SQLAlchemyError as e:
            logger.error(f"Query on '{self.name}' failed: {e}")
            self.session.rollback()
            raise DatabaseError(f"Query on '{self.name}' failed: {str(e)}")

    def find(self, filter: Optional[Dict[str, Any]] = None) -> Query:
        """Start a query matching every field in ``filter`` by equality."""
        self._conditions(filter or {})
        return Query(self, filter)

    def get(self, id: int) -> Optional[Any]:
        return self._run(lambda s: s.get(self.model, id))

    def insert(self, obj: Any) -> Any:
        """
        Add a record and commit.

        Args:
            obj: Model instance to store

        Returns:
            The stored instance with its primary key populated

        Raises:
            DatabaseError: If the insert fails
        """
        if not isinstance(obj, self.model):
            raise StorageError(f"Collection '{self.name}' only stores {self.model.__name__} records")
        try:
            self.session.add(obj)
            self.session.commit()
            self.session.refresh(obj)
            logger.debug(f"Inserted {obj!r} into '{self.name}'")
            return obj
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert into '{self.name}': {e}")
            self.session.rollback()
            raise DatabaseError(f"Failed to insert into '{self.name}': {str(e)}")

    def update(self, filter: Dict[str, Any], values: Dict[str, Any]) -> int:
        """
        Update matching records and commit.

        Returns:
            Number of records changed

        Raises:
            DatabaseError: If the update fails
        """
        conditions = self._conditions(filter)
        for field in values:
            self._column(field)
        try:
            result = self.session.execute(
                update(self.model).where(*conditions).values(**values)
            )
            self.session.commit()
            logger.debug(f"Updated {result.rowcount} records in '{self.name}'")
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Failed to update '{self.name}': {e}")
            self.session.rollback()
            raise DatabaseError(f"Failed to update '{self.name}': {str(e)}")
