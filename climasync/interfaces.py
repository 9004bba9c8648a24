"""Protocol interfaces for dependency injection.

Views, fetchers and mutations never import a concrete store or a concrete
notification surface. They receive objects satisfying the protocols below
through :class:`climasync.context.AppContext`, which keeps them testable
against the in-process :class:`~climasync.database.LocalStore` and lets the
same code talk to a hosted backend through
:class:`~climasync.api.AsyncStoreClient`.

Example:
    >>> from climasync.interfaces import INotifier
    >>> class PrintNotifier:
    ...     def info(self, message): print(message)
    ...     def success(self, message): print(message)
    ...     def error(self, message): print(message)
    >>> isinstance(PrintNotifier(), INotifier)  # True, structural typing!

References:
    - Python typing.Protocol documentation
      https://docs.python.org/3/library/typing.html#typing.Protocol
"""

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from climasync.query import Filters, Ordering

if TYPE_CHECKING:
    from climasync.realtime import Channel


@runtime_checkable
class IRemoteStore(Protocol):
    """Remote relational store contract.

    Every operation is a coroutine. Implementations raise the
    :mod:`climasync.errors` taxonomy:

    - ``TransientStoreError`` for network, timeout, 429 and 5xx failures
    - ``ConstraintError`` for uniqueness violations
    - ``AuthorizationError`` for a missing, expired or insufficient identity
    - ``NotFoundError`` for a missing row or a missing parent row
    """

    async def query(
        self,
        entity_type: str,
        filters: Filters = (),
        order: Ordering = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows of ``entity_type`` matching all ``filters``.

        Args:
            entity_type: Table name (e.g. "climate_actions")
            filters: Conjunctive column predicates
            order: One or more sort columns, applied left to right
            limit: Maximum number of rows

        Returns:
            Row dictionaries in the requested order
        """
        ...

    async def insert(self, entity_type: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored (ids and defaults filled).

        Raises:
            ConstraintError: The row violates a uniqueness constraint
            NotFoundError: A referenced parent row does not exist
        """
        ...

    async def update(
        self, entity_type: str, entity_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        """Update one row by primary key and return it as stored."""
        ...

    async def delete(self, entity_type: str, entity_id: str) -> None:
        """Delete one row by primary key."""
        ...

    async def delete_where(self, entity_type: str, filters: Filters) -> int:
        """Delete every row matching ``filters``; returns the number deleted."""
        ...

    async def upsert(
        self,
        entity_type: str,
        fields: dict[str, Any],
        conflict_key: tuple[str, ...],
    ) -> dict[str, Any]:
        """Insert a row, or update the row sharing its ``conflict_key`` columns."""
        ...

    async def subscribe(self, entity_type: str, filters: Filters = ()) -> "Channel":
        """Open a live channel delivering insert events on ``entity_type``."""
        ...

    async def unsubscribe(self, channel: "Channel") -> None:
        """Release a channel opened by :meth:`subscribe`. Unknown channels are ignored."""
        ...

    async def rpc(self, name: str, args: dict[str, Any] | None = None) -> Any:
        """Call a stored procedure (e.g. "increment_post_views")."""
        ...

    async def invoke_function(self, name: str, payload: dict[str, Any] | None = None) -> Any:
        """Invoke a named remote function (e.g. "get-mapbox-token")."""
        ...


@runtime_checkable
class INotifier(Protocol):
    """User-visible, non-blocking notification surface."""

    def info(self, message: str) -> None:
        ...

    def success(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


__all__ = ["IRemoteStore", "INotifier"]
