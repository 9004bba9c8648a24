"""Generic repository pattern for type-safe table operations.

This module provides a Generic Repository[T] for SQLModel tables. The
in-process store uses one repository per operation to translate the store's
``Filter`` / ``Order`` query primitives into SQL.

Reference:
    - Repository Pattern: https://martinfowler.com/eaaCatalog/repository.html

Example:
    >>> from climasync.repository import Repository
    >>> from climasync.models import ClimateActionRow
    >>> from climasync.query import eq, desc
    >>> from sqlmodel import Session
    >>>
    >>> repo = Repository[ClimateActionRow](session, ClimateActionRow)
    >>> public = repo.select((eq("is_public", True),), desc("created_at"), limit=50)
    >>> for action in public:
    ...     print(action.category, action.city)
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

from climasync.errors import StoreError
from climasync.query import Filter, Filters, Op, Ordering, orders

# =============================================================================
# Type Variables
# =============================================================================

T = TypeVar("T", bound=SQLModel)

# PostgreSQL "undefined_column"
UNDEFINED_COLUMN = "42703"


# =============================================================================
# Generic Repository
# =============================================================================


class Repository(Generic[T]):
    """Generic repository implementation for SQLModel tables.

    Type Parameter:
        T: SQLModel table type (ClimateActionRow, CommentRow, etc.)

    Args:
        session: SQLModel Session instance
        model: SQLModel table class

    Example:
        >>> repo = Repository[CommentRow](session, CommentRow)
        >>> thread = repo.select(
        ...     (eq("parent_type", "forum_post"), eq("parent_id", post_id)),
        ...     asc("created_at"),
        ... )
        >>> removed = repo.delete_where((eq("user_id", user_id),))
    """

    def __init__(self, session: Session, model: type[T]):
        self.session = session
        self.model = model

    def _column(self, name: str) -> Any:
        if name not in self.model.model_fields:
            raise StoreError(
                f'column "{name}" does not exist on {self.model.__tablename__}',
                code=UNDEFINED_COLUMN,
            )
        return getattr(self.model, name)

    def _condition(self, flt: Filter) -> Any:
        col = self._column(flt.column)
        if flt.op is Op.EQ:
            return col == flt.value
        if flt.op is Op.NEQ:
            return col != flt.value
        if flt.op is Op.GT:
            return col > flt.value
        if flt.op is Op.GTE:
            return col >= flt.value
        if flt.op is Op.LT:
            return col < flt.value
        if flt.op is Op.LTE:
            return col <= flt.value
        if flt.op is Op.IN:
            return col.in_(list(flt.value))
        if flt.op is Op.IS:
            return col.is_(flt.value)
        return col.ilike(f"%{flt.value}%")

    def get(self, entity_id: str) -> T | None:
        """Get row by primary key, or None if not found."""
        return self.session.get(self.model, entity_id)

    def select(
        self,
        filters: Filters = (),
        ordering: Ordering = None,
        limit: int | None = None,
    ) -> Sequence[T]:
        """Select rows matching all ``filters``.

        Args:
            filters: Conjunctive column predicates
            ordering: Sort columns, applied left to right
            limit: Maximum number of rows (None for all)

        Returns:
            Sequence of matching rows

        Raises:
            StoreError: A filter or order names an unknown column
        """
        stmt = select(self.model)
        for flt in filters:
            stmt = stmt.where(self._condition(flt))
        for order in orders(ordering):
            col = self._column(order.column)
            stmt = stmt.order_by(col.asc() if order.ascending else col.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.exec(stmt).all()

    def find_one(self, **criteria: Any) -> T | None:
        """First row whose attributes equal ``criteria``.

        Example:
            >>> reaction = repo.find_one(user_id="u1", parent_type="comment", parent_id="c1")
        """
        stmt = select(self.model)
        for key, value in criteria.items():
            stmt = stmt.where(self._column(key) == value)
        return self.session.exec(stmt.limit(1)).first()

    def create(self, entity: T) -> T:
        """Insert a new row and return it refreshed from the database."""
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def update(self, entity: T, fields: dict[str, Any]) -> T:
        """Apply ``fields`` to an existing row and commit.

        Unknown keys are ignored; the primary key is never rewritten.
        """
        for key, value in fields.items():
            if key in self.model.model_fields and not self._is_primary_key(key):
                setattr(entity, key, value)
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def delete(self, entity_id: str) -> bool:
        """Delete row by primary key.

        Returns:
            True if deleted, False if not found
        """
        entity = self.get(entity_id)
        if entity:
            self.session.delete(entity)
            self.session.commit()
            return True
        return False

    def delete_where(self, filters: Filters) -> int:
        """Delete every row matching ``filters`` and return how many were removed."""
        rows = self.select(filters)
        for row in rows:
            self.session.delete(row)
        self.session.commit()
        return len(rows)

    def count(self, filters: Filters = ()) -> int:
        """Count rows matching ``filters``."""
        stmt = select(func.count()).select_from(self.model)
        for flt in filters:
            stmt = stmt.where(self._condition(flt))
        return self.session.exec(stmt).one()

    def _is_primary_key(self, name: str) -> bool:
        return any(col.name == name for col in self.model.__table__.primary_key.columns)


# =============================================================================
# Export Public API
# =============================================================================

__all__ = ["Repository", "UNDEFINED_COLUMN"]
