"""In-process store for climasync.

This module provides :class:`LocalStore`, a SQLite implementation of
:class:`~climasync.interfaces.IRemoteStore` with:
- The same tables, natural-key uniqueness constraints and parent checks
  as the hosted backend
- Insert notifications delivered to open live channels
- Stored procedures (``increment_post_views``, ``get_admin_stats``,
  ``search_forum_posts``, ``complete_challenge``) and a registry of named remote functions

It backs offline use, the command line front end and the test suite.

Example:
    >>> from climasync.database import LocalStore
    >>>
    >>> store = LocalStore(":memory:")
    >>> store.initialize()
    >>>
    >>> row = await store.insert("climate_actions", {"user_id": "u1", "category": "recycling"})
    >>> channel = await store.subscribe("climate_actions", (eq("is_public", True),))
    >>>
    >>> store.close()
"""

from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, or_, select

from climasync.config import ReportStatus, settings
from climasync.errors import (
    FOREIGN_KEY_VIOLATION,
    NO_ROWS,
    ConstraintError,
    NotFoundError,
    StoreError,
)
from climasync.logging import logger
from climasync.metrics import store_operations_total
from climasync.models import (
    PARENT_TABLES,
    TABLES,
    ChallengeCompletionRow,
    ChallengeRow,
    ForumPostRow,
    UserStatsRow,
)
from climasync.query import Filters, Ordering, eq, primary_key
from climasync.realtime import Channel, InsertEvent
from climasync.repository import Repository

# PostgreSQL "not_null_violation"
NOT_NULL_VIOLATION = "23502"

# Columns that must reference an existing row: table -> (column, referenced table)
FOREIGN_KEYS: dict[str, tuple[str, str]] = {
    "forum_posts": ("forum_id", "forums"),
    "team_members": ("team_id", "teams"),
    "user_challenge_completions": ("challenge_id", "daily_challenges"),
    "bookmarks": ("post_id", "forum_posts"),
    "post_tags": ("post_id", "forum_posts"),
}


# =============================================================================
# Local Store
# =============================================================================


class LocalStore:
    """SQLite-backed store implementing the remote store contract.

    Features:
    - One short-lived session per operation
    - Uniqueness violations raised as ``ConstraintError`` (code 23505)
    - Writes referencing a missing parent raised as ``NotFoundError``
    - Every insert (including the insert branch of an upsert) is offered to
      the open channels

    Args:
        database_path: SQLite file path, or ":memory:" (defaults to settings.local_database_path)

    Example:
        >>> store = LocalStore(":memory:")
        >>> store.initialize()
        >>> await store.rpc("increment_post_views", {"post_id": post_id})
        >>> store.active_channels
        0
    """

    def __init__(self, database_path: str | None = None):
        self.database_path = database_path or settings.local_database_path
        self.engine = None
        self._channels: dict[str, Channel] = {}
        self.procedures: dict[str, Callable[..., Any]] = {
            "increment_post_views": self._increment_post_views,
            "get_admin_stats": self._get_admin_stats,
            "search_forum_posts": self._search_forum_posts,
            "complete_challenge": self._complete_challenge,
        }
        self.functions: dict[str, Callable[[dict[str, Any]], Any]] = {}

    def initialize(self) -> None:
        """Create the engine and all tables."""
        if self.database_path == ":memory:":
            self.engine = create_engine(
                "sqlite://",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.database_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
            with self.engine.connect() as conn:
                conn.exec_driver_sql("PRAGMA journal_mode = WAL;")
                conn.exec_driver_sql("PRAGMA synchronous = NORMAL;")
                conn.commit()

        SQLModel.metadata.create_all(self.engine)
        logger.info("Local store initialized", path=self.database_path)

    def close(self) -> None:
        """Close every open channel and dispose of the engine."""
        for channel in list(self._channels.values()):
            channel.close()
        self._channels.clear()
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    @property
    def active_channels(self) -> int:
        """Number of channels opened and not yet released."""
        return len(self._channels)

    def register_procedure(self, name: str, procedure: Callable[..., Any]) -> None:
        """Expose ``procedure`` to :meth:`rpc`; it is called with the rpc args as keywords."""
        self.procedures[name] = procedure

    def register_function(self, name: str, function: Callable[[dict[str, Any]], Any]) -> None:
        """Expose ``function`` to :meth:`invoke_function`; it receives the payload dict."""
        self.functions[name] = function

    # =========================================================================
    # Helpers
    # =========================================================================

    def _session(self) -> Session:
        if self.engine is None:
            raise RuntimeError("Local store not initialized")
        return Session(self.engine)

    def _model(self, entity_type: str) -> type[SQLModel]:
        model = TABLES.get(entity_type)
        if model is None:
            raise NotFoundError(f'relation "{entity_type}" does not exist', code="42P01")
        return model

    def _build(self, model: type[SQLModel], fields: dict[str, Any]) -> SQLModel:
        known = {k: v for k, v in fields.items() if k in model.model_fields}
        return model(**known)

    def _check_parents(self, session: Session, entity_type: str, fields: dict[str, Any]) -> None:
        if entity_type in ("comments", "reactions"):
            table = PARENT_TABLES.get(str(fields.get("parent_type")))
            if table is None or session.get(TABLES[table], fields.get("parent_id")) is None:
                raise NotFoundError(
                    f"{fields.get('parent_type')} {fields.get('parent_id')} does not exist",
                    code=FOREIGN_KEY_VIOLATION,
                )
        reference = FOREIGN_KEYS.get(entity_type)
        if reference is not None:
            column, table = reference
            if session.get(TABLES[table], fields.get(column)) is None:
                raise NotFoundError(
                    f"{table} {fields.get(column)} does not exist", code=FOREIGN_KEY_VIOLATION
                )

    def _commit_error(self, entity_type: str, e: IntegrityError) -> StoreError:
        message = str(e.orig)
        if "UNIQUE" in message:
            return ConstraintError(f"duplicate key value on {entity_type}: {message}")
        if "NOT NULL" in message:
            return StoreError(message, code=NOT_NULL_VIOLATION)
        return StoreError(message)

    def _publish(self, entity_type: str, row: dict[str, Any]) -> None:
        event = InsertEvent(entity_type=entity_type, row=row)
        delivered = sum(channel.offer(event) for channel in list(self._channels.values()))
        if delivered:
            logger.debug("Insert published", entity_type=entity_type, channels=delivered)

    def _record(self, operation: str, entity_type: str, status: str) -> None:
        store_operations_total.labels(operation=operation, table=entity_type, status=status).inc()

    # =========================================================================
    # Table Operations
    # =========================================================================

    async def query(
        self,
        entity_type: str,
        filters: Filters = (),
        order: Ordering = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        model = self._model(entity_type)
        with self._session() as session:
            rows = Repository(session, model).select(filters, order, limit)
            result = [row.model_dump() for row in rows]
        self._record("query", entity_type, "ok")
        return result

    async def insert(self, entity_type: str, fields: dict[str, Any]) -> dict[str, Any]:
        model = self._model(entity_type)
        with self._session() as session:
            self._check_parents(session, entity_type, fields)
            try:
                row = Repository(session, model).create(self._build(model, fields))
            except IntegrityError as e:
                self._record("insert", entity_type, "error")
                raise self._commit_error(entity_type, e) from e
            result = row.model_dump()
        self._record("insert", entity_type, "ok")
        self._publish(entity_type, result)
        return result

    async def update(
        self, entity_type: str, entity_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        model = self._model(entity_type)
        with self._session() as session:
            repo = Repository(session, model)
            row = repo.get(entity_id)
            if row is None:
                raise NotFoundError(f"{entity_type} {entity_id} not found", code=NO_ROWS)
            try:
                row = repo.update(row, fields)
            except IntegrityError as e:
                raise self._commit_error(entity_type, e) from e
            result = row.model_dump()
        self._record("update", entity_type, "ok")
        return result

    async def delete(self, entity_type: str, entity_id: str) -> None:
        model = self._model(entity_type)
        with self._session() as session:
            if not Repository(session, model).delete(entity_id):
                raise NotFoundError(f"{entity_type} {entity_id} not found", code=NO_ROWS)
        self._record("delete", entity_type, "ok")

    async def delete_where(self, entity_type: str, filters: Filters) -> int:
        if not filters:
            raise StoreError("delete_where requires at least one filter")
        model = self._model(entity_type)
        with self._session() as session:
            removed = Repository(session, model).delete_where(filters)
        self._record("delete", entity_type, "ok")
        return removed

    async def upsert(
        self,
        entity_type: str,
        fields: dict[str, Any],
        conflict_key: tuple[str, ...],
    ) -> dict[str, Any]:
        model = self._model(entity_type)
        with self._session() as session:
            repo = Repository(session, model)
            existing = repo.find_one(**{column: fields.get(column) for column in conflict_key})
            if existing is not None:
                pk = primary_key(entity_type)
                result = repo.update(
                    existing, {k: v for k, v in fields.items() if k != pk}
                ).model_dump()
                self._record("upsert", entity_type, "ok")
                return result
        return await self.insert(entity_type, fields)

    # =========================================================================
    # Live Channels
    # =========================================================================

    async def subscribe(self, entity_type: str, filters: Filters = ()) -> Channel:
        self._model(entity_type)
        channel = Channel(entity_type, filters)
        self._channels[channel.id] = channel
        logger.debug("Channel subscribed", entity_type=entity_type, channel=channel.id)
        return channel

    async def unsubscribe(self, channel: Channel) -> None:
        self._channels.pop(channel.id, None)
        channel.close()

    # =========================================================================
    # Procedures and Functions
    # =========================================================================

    async def rpc(self, name: str, args: dict[str, Any] | None = None) -> Any:
        procedure = self.procedures.get(name)
        if procedure is None:
            raise NotFoundError(f"function {name} does not exist", code="PGRST202")
        return procedure(**(args or {}))

    async def invoke_function(self, name: str, payload: dict[str, Any] | None = None) -> Any:
        function = self.functions.get(name)
        if function is None:
            raise NotFoundError(f"function {name} not found")
        return function(payload or {})

    def _increment_post_views(self, post_id: str) -> None:
        with self._session() as session:
            post = session.get(ForumPostRow, post_id)
            if post is None:
                raise NotFoundError(f"forum_posts {post_id} not found", code=NO_ROWS)
            post.views += 1
            session.add(post)
            session.commit()

    def _complete_challenge(self, user_id: str, challenge_id: str) -> int:
        """Record a completion and award the challenge's points in one transaction.

        Returns:
            The user's new point total

        Raises:
            NotFoundError: If the challenge does not exist
            ConstraintError: If the user already completed it (nothing is awarded)
        """
        with self._session() as session:
            challenge = session.get(ChallengeRow, challenge_id)
            if challenge is None:
                raise NotFoundError(
                    f"daily_challenges {challenge_id} does not exist", code=FOREIGN_KEY_VIOLATION
                )
            completion = ChallengeCompletionRow(user_id=user_id, challenge_id=challenge_id)
            session.add(completion)
            stats = session.get(UserStatsRow, user_id) or UserStatsRow(user_id=user_id)
            stats.total_points += challenge.points_reward
            total = stats.total_points
            session.add(stats)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                self._record("rpc", "user_challenge_completions", "error")
                raise self._commit_error("user_challenge_completions", e) from e
            row = completion.model_dump()
        self._record("rpc", "user_challenge_completions", "ok")
        self._publish("user_challenge_completions", row)
        return total

    def _get_admin_stats(self) -> dict[str, int]:
        with self._session() as session:
            return {
                "total_users": Repository(session, TABLES["profiles"]).count(),
                "total_actions": Repository(session, TABLES["climate_actions"]).count(),
                "total_posts": Repository(session, TABLES["forum_posts"]).count(),
                "total_comments": Repository(session, TABLES["comments"]).count(),
                "pending_reports": Repository(session, TABLES["reports"]).count(
                    (eq("status", ReportStatus.PENDING.value),)
                ),
            }

    def _search_forum_posts(self, search_query: str, limit: int = 20) -> list[dict[str, Any]]:
        pattern = f"%{search_query}%"
        with self._session() as session:
            stmt = (
                select(ForumPostRow)
                .where(or_(ForumPostRow.title.ilike(pattern), ForumPostRow.content.ilike(pattern)))
                .order_by(ForumPostRow.created_at.desc())
                .limit(limit)
            )
            return [row.model_dump() for row in session.exec(stmt).all()]


__all__ = ["LocalStore", "FOREIGN_KEYS", "NOT_NULL_VIOLATION"]
