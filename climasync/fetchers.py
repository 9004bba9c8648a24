"""Entity fetchers.

:class:`EntityFetcher` reads one entity type at a time from the store and
validates every row into a :mod:`climasync.models` record before it reaches
the view builders. Related data is resolved with one query per relation,
keyed by the set of parent ids, never with a query per row.

Two kinds of read:

- Primary reads (``public_actions``, ``comments``, ``challenges``, ...) raise
  the store error so the calling view keeps its previous snapshot and reports
  the failure. A missing parent reads as an empty list.
- Side-channel lookups (``profiles``, ``comment_counts``, ``reactions``, ...)
  return ``None`` on failure; the view builder then defaults the derived
  field to 0 or empty instead of failing the whole view.

Example:
    >>> fetcher = EntityFetcher(store)
    >>> actions = await fetcher.public_actions()
    >>> authors = await fetcher.profiles(a.user_id for a in actions)
"""

import asyncio
from collections import Counter
from collections.abc import Awaitable, Iterable
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from climasync.config import ParentType, ReportStatus, Settings, TeamRole, settings
from climasync.errors import NotFoundError, StoreError
from climasync.interfaces import IRemoteStore
from climasync.logging import logger
from climasync.models import (
    Actor,
    Bookmark,
    Challenge,
    ChallengeCompletion,
    ClimateAction,
    Comment,
    Forum,
    ForumPost,
    Goal,
    PostTag,
    Reaction,
    Report,
    Tag,
    Team,
    TeamMembership,
    UserStats,
)
from climasync.query import Filter, Ordering, asc, desc, eq, in_
from climasync.utils import chunk_list, today_iso, unique_ids

R = TypeVar("R", bound=BaseModel)
T = TypeVar("T")

# Keeps ``in.(...)`` filters well under common URL length limits
LOOKUP_CHUNK_SIZE = 100


def validate_rows(model: type[R], rows: Iterable[dict[str, Any]]) -> list[R]:
    """Validate rows into ``model`` records, skipping (and logging) invalid ones."""
    records: list[R] = []
    for row in rows:
        try:
            records.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(
                "Skipping invalid row",
                model=model.__name__,
                row_id=row.get("id"),
                errors=e.error_count(),
            )
    return records


class EntityFetcher:
    """Reads and validates entities from an :class:`IRemoteStore`.

    Args:
        store: Store to read from
        config: Page sizes (defaults to module settings)
    """

    def __init__(self, store: IRemoteStore, config: Settings | None = None):
        self.store = store
        self.settings = config or settings

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _select(
        self,
        entity_type: str,
        model: type[R],
        filters: tuple[Filter, ...] = (),
        order: Ordering = None,
        limit: int | None = None,
    ) -> list[R]:
        try:
            rows = await self.store.query(entity_type, filters, order, limit)
        except NotFoundError:
            logger.debug("Parent not found, returning empty list", entity_type=entity_type)
            return []
        return validate_rows(model, rows)

    async def _select_in(
        self,
        entity_type: str,
        model: type[R],
        column: str,
        ids: Iterable[str],
        filters: tuple[Filter, ...] = (),
    ) -> list[R]:
        """Select rows whose ``column`` is in ``ids``, chunked; no query for an empty set."""
        keys = unique_ids(ids)
        if not keys:
            return []
        chunks = await asyncio.gather(
            *(
                self._select(entity_type, model, filters + (in_(column, chunk),))
                for chunk in chunk_list(keys, LOOKUP_CHUNK_SIZE)
            )
        )
        return [record for chunk in chunks for record in chunk]

    async def _side(self, lookup: str, call: Awaitable[T]) -> T | None:
        try:
            return await call
        except StoreError as e:
            logger.warning("Side-channel lookup failed", lookup=lookup, error=str(e))
            return None

    # =========================================================================
    # Batched Side-Channel Lookups
    # =========================================================================

    async def profiles(self, user_ids: Iterable[str]) -> dict[str, Actor] | None:
        """Authors keyed by id."""

        async def _load() -> dict[str, Actor]:
            actors = await self._select_in("profiles", Actor, "id", user_ids)
            return {actor.id: actor for actor in actors}

        return await self._side("profiles", _load())

    async def comment_counts(
        self, parent_type: ParentType, parent_ids: Iterable[str]
    ) -> dict[str, int] | None:
        """Number of comments per parent id."""

        async def _load() -> dict[str, int]:
            comments = await self._select_in(
                "comments", Comment, "parent_id", parent_ids, (eq("parent_type", parent_type),)
            )
            return dict(Counter(c.parent_id for c in comments))

        return await self._side("comment_counts", _load())

    async def reactions(
        self, parent_type: ParentType, parent_ids: Iterable[str]
    ) -> list[Reaction] | None:
        """Every reaction row on the given parents."""
        return await self._side(
            "reactions",
            self._select_in(
                "reactions", Reaction, "parent_id", parent_ids, (eq("parent_type", parent_type),)
            ),
        )

    async def post_tags(self, post_ids: Iterable[str]) -> dict[str, list[Tag]] | None:
        """Tags per forum post id."""

        async def _load() -> dict[str, list[Tag]]:
            links = await self._select_in("post_tags", PostTag, "post_id", post_ids)
            tags = await self._select_in("tags", Tag, "id", (link.tag_id for link in links))
            by_id = {tag.id: tag for tag in tags}
            result: dict[str, list[Tag]] = {}
            for link in links:
                if link.tag_id in by_id:
                    result.setdefault(link.post_id, []).append(by_id[link.tag_id])
            return result

        return await self._side("post_tags", _load())

    async def bookmarked_post_ids(self, user_id: str, post_ids: Iterable[str]) -> set[str] | None:
        async def _load() -> set[str]:
            rows = await self._select_in(
                "bookmarks", Bookmark, "post_id", post_ids, (eq("user_id", user_id),)
            )
            return {row.post_id for row in rows}

        return await self._side("bookmarks", _load())

    async def forum_post_stats(
        self, forum_ids: Iterable[str]
    ) -> tuple[dict[str, int], dict[str, ForumPost]] | None:
        """Post count and latest post per forum id, from one query."""

        async def _load() -> tuple[dict[str, int], dict[str, ForumPost]]:
            keys = unique_ids(forum_ids)
            if not keys:
                return {}, {}
            posts = await self._select(
                "forum_posts", ForumPost, (in_("forum_id", keys),), desc("created_at")
            )
            counts = Counter(p.forum_id for p in posts)
            latest: dict[str, ForumPost] = {}
            for post in posts:
                latest.setdefault(post.forum_id, post)
            return dict(counts), latest

        return await self._side("forum_post_stats", _load())

    async def member_counts(self, team_ids: Iterable[str]) -> dict[str, int] | None:
        async def _load() -> dict[str, int]:
            members = await self._select_in("team_members", TeamMembership, "team_id", team_ids)
            return dict(Counter(m.team_id for m in members))

        return await self._side("member_counts", _load())

    async def memberships(self, user_id: str) -> dict[str, TeamRole] | None:
        """The user's role per team id."""

        async def _load() -> dict[str, TeamRole]:
            rows = await self._select("team_members", TeamMembership, (eq("user_id", user_id),))
            return {row.team_id: row.role for row in rows}

        return await self._side("memberships", _load())

    # =========================================================================
    # Primary Reads
    # =========================================================================

    async def public_actions(self, limit: int | None = None) -> list[ClimateAction]:
        """Newest public climate actions (community feed and map)."""
        return await self._select(
            "climate_actions",
            ClimateAction,
            (eq("is_public", True),),
            desc("created_at"),
            limit or self.settings.feed_page_size,
        )

    async def user_actions(self, user_id: str, limit: int | None = None) -> list[ClimateAction]:
        return await self._select(
            "climate_actions", ClimateAction, (eq("user_id", user_id),), desc("created_at"), limit
        )

    async def forums(self) -> list[Forum]:
        return await self._select("forums", Forum, (), asc("name"))

    async def forum_posts(self, forum_id: str, limit: int | None = None) -> list[ForumPost]:
        """Posts of one forum, pinned first, then newest first."""
        return await self._select(
            "forum_posts",
            ForumPost,
            (eq("forum_id", forum_id),),
            (desc("is_pinned"), desc("created_at")),
            limit or self.settings.forum_page_size,
        )

    async def comments(self, parent_type: ParentType, parent_id: str) -> list[Comment]:
        """Comment thread of one parent, oldest first."""
        return await self._select(
            "comments",
            Comment,
            (eq("parent_type", parent_type), eq("parent_id", parent_id)),
            asc("created_at"),
        )

    async def challenges(self, day: str | None = None) -> list[Challenge]:
        """Challenges active on ``day`` (YYYY-MM-DD, default today in UTC)."""
        return await self._select(
            "daily_challenges",
            Challenge,
            (eq("active_date", day or today_iso()),),
            asc("points_reward"),
        )

    async def completed_challenge_ids(self, user_id: str, challenge_ids: Iterable[str]) -> set[str]:
        rows = await self._select_in(
            "user_challenge_completions",
            ChallengeCompletion,
            "challenge_id",
            challenge_ids,
            (eq("user_id", user_id),),
        )
        return {row.challenge_id for row in rows}

    async def teams(self) -> list[Team]:
        return await self._select("teams", Team, (eq("is_public", True),), desc("total_points"))

    async def leaderboard(self, limit: int | None = None) -> list[UserStats]:
        return await self._select(
            "user_stats",
            UserStats,
            (),
            desc("total_points"),
            limit or self.settings.leaderboard_size,
        )

    async def user_stats(self, user_id: str) -> UserStats | None:
        rows = await self._select("user_stats", UserStats, (eq("user_id", user_id),), limit=1)
        return rows[0] if rows else None

    async def goals(self, user_id: str) -> list[Goal]:
        return await self._select("user_goals", Goal, (eq("user_id", user_id),), asc("period_end"))

    async def reports(self, status: ReportStatus = ReportStatus.PENDING) -> list[Report]:
        return await self._select("reports", Report, (eq("status", status),), desc("created_at"))

    # =========================================================================
    # Procedures and Functions
    # =========================================================================

    async def search_posts(self, term: str) -> list[ForumPost]:
        """Full-text forum search through the ``search_forum_posts`` procedure."""
        if not term.strip():
            return []
        rows = await self.store.rpc("search_forum_posts", {"search_query": term.strip()})
        return validate_rows(ForumPost, rows or [])

    async def admin_stats(self) -> dict[str, Any]:
        return await self.store.rpc("get_admin_stats") or {}

    async def record_post_view(self, post_id: str) -> None:
        await self.store.rpc("increment_post_views", {"post_id": post_id})

    async def mapbox_token(self) -> str | None:
        """Public map token from the ``get-mapbox-token`` function, or None if unavailable."""
        try:
            body = await self.store.invoke_function("get-mapbox-token")
        except StoreError as e:
            logger.warning("Map token unavailable", error=str(e))
            return None
        return body.get("token") if isinstance(body, dict) else None


__all__ = ["EntityFetcher", "validate_rows", "LOOKUP_CHUNK_SIZE"]
