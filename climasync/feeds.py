"""Screen-level synchronized views.

Each view composes the synchronization pieces for one screen:

- a :class:`~climasync.views.ViewState` holding the snapshot and overlays
- a :class:`~climasync.realtime.Refresher` running the screen's ``load``
- an optional :class:`~climasync.realtime.LiveUpdateListener` (insert-driven refetch)
- an optional :class:`~climasync.realtime.Poller` (interval-driven refetch)
- mutation methods delegating to the context's
  :class:`~climasync.mutations.OptimisticMutator`

Mounting subscribes before the first fetch, so an insert landing during the
initial load still triggers a refetch. Unmounting releases the channel,
stops the poller and cancels any in-flight refetch; a view can be mounted
and unmounted any number of times.

Example:
    >>> async with ActionFeed(ctx) as feed:
    ...     for item in feed.value:
    ...         print(item.action.category, item.comment_count, item.reactions.counts)
    ...     await feed.react(feed.value[0].id, ReactionType.LOVE)
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from climasync.config import ParentType, ReactionType, ReportStatus, TeamRole
from climasync.context import AppContext
from climasync.errors import StoreError
from climasync.logging import logger
from climasync.metrics import mounted_views
from climasync.models import Comment, ForumPost
from climasync.mutations import (
    MutationResult,
    append_comment,
    mark_challenge_completed,
    pending_comment,
    remove_item,
    remove_own_action,
    set_bookmarked,
    set_goal_progress,
    set_team_role,
    set_user_reaction,
    write_challenge_completion,
    write_reaction,
    write_report_resolution,
    write_team,
)
from climasync.query import Filters, eq
from climasync.realtime import LiveUpdateListener, Poller, Refresher
from climasync.views import (
    ActionView,
    ChallengeBoardView,
    CommentView,
    ForumSummary,
    ImpactView,
    LeaderboardEntry,
    PostView,
    ReportView,
    TeamView,
    ViewState,
    build_action_views,
    build_challenge_board,
    build_comment_views,
    build_forum_summaries,
    build_leaderboard,
    build_post_views,
    build_report_views,
    build_team_views,
    summarize_reactions,
    toggle_target,
)

S = TypeVar("S")
T = TypeVar("T")

GONE_MESSAGE = "This item is no longer available"


# =============================================================================
# Base View
# =============================================================================


class SyncedView(ABC, Generic[S]):
    """Base class for a mounted, self-refreshing view.

    Subclasses implement :meth:`load` and may override :meth:`live_scope`
    (table and filters to listen to) and ``poll_interval``.

    Args:
        ctx: Application context
        initial: Snapshot shown before the first fetch
        name: View name for logs and metrics
        action: Verb phrase for load errors (e.g. "load comments")
        poll_interval: Seconds between polled refreshes (None disables polling)
    """

    def __init__(
        self,
        ctx: AppContext,
        initial: S,
        name: str,
        action: str = "load data",
        poll_interval: float | None = None,
    ):
        self.ctx = ctx
        self.name = name
        self.state: ViewState[S] = ViewState(initial)
        self.refresher: Refresher[S] = Refresher(
            name,
            self.state,
            self.load,
            notifier=ctx.notifier,
            timeout=ctx.settings.request_timeout_seconds,
            action=action,
            on_unauthorized=ctx.expire_session,
        )
        self.poll_interval = poll_interval
        self.listener: LiveUpdateListener | None = None
        self.poller: Poller | None = None
        self.mounted = False

    @abstractmethod
    async def load(self) -> S:
        """Fetch and build a fresh snapshot."""

    def live_scope(self) -> tuple[str, Filters] | None:
        """Table and filters whose inserts invalidate this view (None for no live updates)."""
        return None

    @property
    def value(self) -> S:
        return self.state.value

    async def refresh(self) -> bool:
        """Foreground refresh: failures are reported to the user."""
        return await self.refresher.refresh()

    async def mount(self) -> None:
        if self.mounted:
            return
        self.mounted = True
        mounted_views.inc()
        self.refresher.reopen()

        scope = self.live_scope()
        if scope is not None:
            entity_type, filters = scope
            self.listener = LiveUpdateListener(
                self.ctx.store, entity_type, filters, self.refresher.trigger, name=self.name
            )
            await self.listener.start()
        if self.poll_interval:
            self.poller = Poller(self.refresher, self.poll_interval)
            self.poller.start()

        logger.debug("View mounted", view=self.name)
        await self.refresher.refresh()

    async def unmount(self) -> None:
        if not self.mounted:
            return
        self.mounted = False
        mounted_views.dec()

        if self.poller is not None:
            await self.poller.stop()
            self.poller = None
        if self.listener is not None:
            await self.listener.stop()
            self.listener = None
        await self.refresher.cancel()
        logger.debug("View unmounted", view=self.name)

    async def __aenter__(self) -> "SyncedView[S]":
        await self.mount()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.unmount()


class ReactableListView(SyncedView[list[T]]):
    """List view whose items carry a :class:`~climasync.views.ReactionSummary`."""

    parent_type: ParentType

    def find(self, entity_id: str) -> T | None:
        return next((item for item in self.state.value if item.id == entity_id), None)

    async def react(self, entity_id: str, reaction: ReactionType) -> MutationResult:
        """Toggle the viewer's ``reaction`` on an item.

        Clicking the reaction the viewer already has removes it; clicking a
        different one replaces it.
        """
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("reaction")
        item = self.find(entity_id)
        if item is None:
            return ctx.mutator.skip("reaction", GONE_MESSAGE, error=True)

        target = toggle_target(item.reactions.user_reaction, reaction)
        user_id = ctx.viewer.user_id
        return await ctx.mutator.run(
            "reaction",
            (user_id, self.parent_type.value, entity_id),
            remote=lambda: write_reaction(ctx.store, user_id, self.parent_type, entity_id, target),
            state=self.state,
            overlay=set_user_reaction(entity_id, target),
            refresher=self.refresher,
            action="save reaction",
        )


# =============================================================================
# Community
# =============================================================================


class ActionFeed(ReactableListView[ActionView]):
    """Public climate-action feed (and map), newest first, live on inserts."""

    parent_type = ParentType.CLIMATE_ACTION

    def __init__(self, ctx: AppContext):
        super().__init__(ctx, [], "community-feed", action="load community feed")

    def live_scope(self) -> tuple[str, Filters]:
        return "climate_actions", (eq("is_public", True),)

    async def load(self) -> list[ActionView]:
        fetcher = self.ctx.fetcher
        actions = await fetcher.public_actions()
        ids = [a.id for a in actions]
        profiles, counts, reactions = await asyncio.gather(
            fetcher.profiles([a.user_id for a in actions]),
            fetcher.comment_counts(self.parent_type, ids),
            fetcher.reactions(self.parent_type, ids),
        )
        summaries = summarize_reactions(reactions, self.ctx.viewer_id) if reactions is not None else None
        return build_action_views(actions, profiles, counts, summaries)

    @property
    def map_points(self) -> list[ActionView]:
        """Feed items that carry coordinates."""
        return [item for item in self.value if item.action.has_location]


# =============================================================================
# Forums
# =============================================================================


class ForumIndex(SyncedView[list[ForumSummary]]):
    """Forum list with post counts and latest post."""

    def __init__(self, ctx: AppContext):
        super().__init__(ctx, [], "forum-index", action="load forums")

    async def load(self) -> list[ForumSummary]:
        forums = await self.ctx.fetcher.forums()
        stats = await self.ctx.fetcher.forum_post_stats([f.id for f in forums])
        counts, latest = stats if stats is not None else (None, None)
        return build_forum_summaries(forums, counts, latest)

    async def search(self, term: str) -> list[ForumPost]:
        """Search posts across forums; failures are reported and yield no results."""
        try:
            return await asyncio.wait_for(
                self.ctx.fetcher.search_posts(term), self.ctx.settings.request_timeout_seconds
            )
        except (StoreError, TimeoutError) as e:
            logger.warning("Forum search failed", term=term, error=str(e) or type(e).__name__)
            self.ctx.notifier.error("Failed to search posts")
            return []


class ForumPostList(ReactableListView[PostView]):
    """Posts of one forum, pinned first, live on new posts."""

    parent_type = ParentType.FORUM_POST

    def __init__(self, ctx: AppContext, forum_id: str):
        self.forum_id = forum_id
        super().__init__(ctx, [], f"forum-posts:{forum_id}", action="load posts")

    def live_scope(self) -> tuple[str, Filters]:
        return "forum_posts", (eq("forum_id", self.forum_id),)

    async def load(self) -> list[PostView]:
        fetcher = self.ctx.fetcher
        posts = await fetcher.forum_posts(self.forum_id)
        ids = [p.id for p in posts]
        viewer_id = self.ctx.viewer_id
        profiles, counts, reactions, tags, bookmarks = await asyncio.gather(
            fetcher.profiles([p.user_id for p in posts]),
            fetcher.comment_counts(self.parent_type, ids),
            fetcher.reactions(self.parent_type, ids),
            fetcher.post_tags(ids),
            fetcher.bookmarked_post_ids(viewer_id, ids) if viewer_id else _none(),
        )
        summaries = summarize_reactions(reactions, viewer_id) if reactions is not None else None
        return build_post_views(posts, profiles, counts, summaries, tags, bookmarks)

    async def create_post(self, title: str, content: str) -> MutationResult:
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("create_post")
        if not title.strip() or not content.strip():
            return ctx.mutator.skip("create_post", "Please fill in all fields", error=True)
        user_id = ctx.viewer.user_id
        return await ctx.mutator.run(
            "create_post",
            (user_id, "forum", self.forum_id),
            remote=lambda: ctx.store.insert(
                "forum_posts",
                {
                    "forum_id": self.forum_id,
                    "user_id": user_id,
                    "title": title.strip(),
                    "content": content.strip(),
                },
            ),
            refresher=self.refresher,
            action="create post",
            success_message="Post created successfully!",
        )

    async def toggle_bookmark(self, post_id: str) -> MutationResult:
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("bookmark")
        item = self.find(post_id)
        if item is None:
            return ctx.mutator.skip("bookmark", GONE_MESSAGE, error=True)
        user_id = ctx.viewer.user_id
        target = not item.bookmarked

        async def _write() -> Any:
            if target:
                return await ctx.store.insert("bookmarks", {"user_id": user_id, "post_id": post_id})
            return await ctx.store.delete_where(
                "bookmarks", (eq("user_id", user_id), eq("post_id", post_id))
            )

        return await ctx.mutator.run(
            "bookmark",
            (user_id, "bookmark", post_id),
            remote=_write,
            state=self.state,
            overlay=set_bookmarked(post_id, target),
            refresher=self.refresher,
            action="update bookmark",
            already_done_message="Already bookmarked",
        )

    async def record_view(self, post_id: str) -> None:
        """Count a view of ``post_id``. Failures are only logged."""
        try:
            await asyncio.wait_for(
                self.ctx.fetcher.record_post_view(post_id),
                self.ctx.settings.request_timeout_seconds,
            )
        except (StoreError, TimeoutError) as e:
            logger.warning("Recording post view failed", post_id=post_id, error=str(e))


class CommentThread(ReactableListView[CommentView]):
    """Comments on one parent, oldest first, live on new comments."""

    parent_type = ParentType.COMMENT

    def __init__(self, ctx: AppContext, parent_type: ParentType, parent_id: str):
        self.thread_type = parent_type
        self.parent_id = parent_id
        super().__init__(ctx, [], f"comments:{parent_id}", action="load comments")

    def live_scope(self) -> tuple[str, Filters]:
        return "comments", (eq("parent_type", self.thread_type), eq("parent_id", self.parent_id))

    async def load(self) -> list[CommentView]:
        fetcher = self.ctx.fetcher
        comments = await fetcher.comments(self.thread_type, self.parent_id)
        ids = [c.id for c in comments]
        profiles, reactions = await asyncio.gather(
            fetcher.profiles([c.user_id for c in comments]),
            fetcher.reactions(self.parent_type, ids),
        )
        summaries = summarize_reactions(reactions, self.ctx.viewer_id) if reactions is not None else None
        return build_comment_views(comments, profiles, summaries)

    async def submit(self, content: str) -> MutationResult:
        """Post a comment; it shows as pending until the store assigns its id."""
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("comment")
        if not content.strip():
            return ctx.mutator.skip("comment", "Comment cannot be empty", error=True)

        user_id = ctx.viewer.user_id
        pending = pending_comment(self.thread_type, self.parent_id, user_id, content.strip())

        def confirmed(row: dict[str, Any]) -> Callable[[list[CommentView]], list[CommentView]]:
            return append_comment(
                CommentView(comment=Comment.model_validate(row), author=pending.author)
            )

        return await ctx.mutator.run(
            "comment",
            (user_id, "comment", self.parent_id),
            remote=lambda: ctx.store.insert(
                "comments",
                {
                    "parent_type": self.thread_type,
                    "parent_id": self.parent_id,
                    "user_id": user_id,
                    "content": content.strip(),
                },
            ),
            state=self.state,
            overlay=append_comment(pending),
            on_confirm=confirmed,
            refresher=self.refresher,
            action="post comment",
        )

    async def delete(self, comment_id: str) -> MutationResult:
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("delete_comment")
        item = self.find(comment_id)
        if item is None:
            return ctx.mutator.skip("delete_comment", GONE_MESSAGE, error=True)
        if item.comment.user_id != ctx.viewer.user_id and not ctx.viewer.is_admin:
            return ctx.mutator.skip("delete_comment", "You can only delete your own comments", error=True)
        return await ctx.mutator.run(
            "delete_comment",
            (ctx.viewer.user_id, "comment", comment_id),
            remote=lambda: ctx.store.delete("comments", comment_id),
            state=self.state,
            overlay=remove_item(comment_id),
            refresher=self.refresher,
            action="delete comment",
        )


# =============================================================================
# Gamification
# =============================================================================


class ChallengeBoard(SyncedView[ChallengeBoardView]):
    """Today's challenges with the viewer's completions and point total."""

    def __init__(self, ctx: AppContext, day: str | None = None):
        self.day = day
        super().__init__(ctx, ChallengeBoardView(), "daily-challenges", action="load challenges")

    async def load(self) -> ChallengeBoardView:
        fetcher = self.ctx.fetcher
        challenges = await fetcher.challenges(self.day)
        viewer_id = self.ctx.viewer_id
        if viewer_id is None:
            return build_challenge_board(challenges, set(), None)
        completed, stats = await asyncio.gather(
            fetcher.completed_challenge_ids(viewer_id, [c.id for c in challenges]),
            fetcher.user_stats(viewer_id),
        )
        return build_challenge_board(challenges, completed, stats)

    async def complete(self, challenge_id: str) -> MutationResult:
        """Complete a challenge once; a repeat shows "Already completed" and awards nothing."""
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("challenge")
        view = self.state.value.get(challenge_id)
        if view is None:
            return ctx.mutator.skip("challenge", GONE_MESSAGE, error=True)
        if view.completed:
            return ctx.mutator.skip("challenge", "Already completed")

        user_id = ctx.viewer.user_id
        points = view.challenge.points_reward
        return await ctx.mutator.run(
            "challenge",
            (user_id, "challenge", challenge_id),
            remote=lambda: write_challenge_completion(ctx.store, user_id, challenge_id),
            state=self.state,
            overlay=mark_challenge_completed(challenge_id),
            refresher=self.refresher,
            action="complete challenge",
            success_message=f"Challenge completed! +{points} points",
            already_done_message="Already completed",
        )


class TeamDirectory(SyncedView[list[TeamView]]):
    """Public teams by points, with member counts and the viewer's role."""

    def __init__(self, ctx: AppContext):
        super().__init__(ctx, [], "teams", action="load teams")

    def find(self, team_id: str) -> TeamView | None:
        return next((t for t in self.state.value if t.id == team_id), None)

    async def load(self) -> list[TeamView]:
        fetcher = self.ctx.fetcher
        teams = await fetcher.teams()
        viewer_id = self.ctx.viewer_id
        counts, roles = await asyncio.gather(
            fetcher.member_counts([t.id for t in teams]),
            fetcher.memberships(viewer_id) if viewer_id else _none(),
        )
        return build_team_views(teams, counts, roles)

    async def join(self, team_id: str) -> MutationResult:
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("join_team")
        view = self.find(team_id)
        if view is None:
            return ctx.mutator.skip("join_team", GONE_MESSAGE, error=True)
        if view.role is not None:
            return ctx.mutator.skip("join_team", "You are already a member of this team")
        if view.is_full:
            return ctx.mutator.skip("join_team", "This team is full", error=True)

        user_id = ctx.viewer.user_id
        return await ctx.mutator.run(
            "join_team",
            (user_id, "team", team_id),
            remote=lambda: ctx.store.insert(
                "team_members", {"team_id": team_id, "user_id": user_id, "role": TeamRole.MEMBER}
            ),
            state=self.state,
            overlay=set_team_role(team_id, TeamRole.MEMBER),
            refresher=self.refresher,
            action="join team",
            success_message=f"Joined {view.team.name}!",
            already_done_message="You are already a member of this team",
        )

    async def leave(self, team_id: str) -> MutationResult:
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("leave_team")
        view = self.find(team_id)
        if view is None or view.role is None:
            return ctx.mutator.skip("leave_team", "You are not a member of this team")

        user_id = ctx.viewer.user_id
        return await ctx.mutator.run(
            "leave_team",
            (user_id, "team", team_id),
            remote=lambda: ctx.store.delete_where(
                "team_members", (eq("team_id", team_id), eq("user_id", user_id))
            ),
            state=self.state,
            overlay=set_team_role(team_id, None),
            refresher=self.refresher,
            action="leave team",
            success_message=f"Left {view.team.name}",
        )

    async def create(self, name: str, description: str | None = None) -> MutationResult:
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("create_team")
        if not name.strip():
            return ctx.mutator.skip("create_team", "Please enter a team name", error=True)
        user_id = ctx.viewer.user_id
        return await ctx.mutator.run(
            "create_team",
            (user_id, "create_team"),
            remote=lambda: write_team(ctx.store, user_id, name.strip(), description),
            refresher=self.refresher,
            action="create team",
            success_message="Team created successfully!",
        )


class Leaderboard(SyncedView[list[LeaderboardEntry]]):
    """Top users by points, refreshed on the polling interval."""

    def __init__(self, ctx: AppContext, poll_interval: float | None = None):
        super().__init__(
            ctx,
            [],
            "leaderboard",
            action="load leaderboard",
            poll_interval=poll_interval or ctx.settings.poll_interval_seconds,
        )

    async def load(self) -> list[LeaderboardEntry]:
        stats = await self.ctx.fetcher.leaderboard()
        profiles = await self.ctx.fetcher.profiles([s.user_id for s in stats])
        return build_leaderboard(stats, profiles)


class ImpactDashboard(SyncedView[ImpactView]):
    """The viewer's totals, own climate actions and goals."""

    def __init__(self, ctx: AppContext, user_id: str | None = None):
        self.user_id = user_id
        super().__init__(ctx, ImpactView(), "impact-dashboard", action="load your impact")

    @property
    def subject_id(self) -> str | None:
        return self.user_id or self.ctx.viewer_id

    async def load(self) -> ImpactView:
        subject = self.subject_id
        if subject is None:
            return ImpactView()
        fetcher = self.ctx.fetcher
        stats, actions, goals = await asyncio.gather(
            fetcher.user_stats(subject),
            fetcher.user_actions(subject),
            fetcher.goals(subject),
        )
        return ImpactView(stats=stats, actions=actions, goals=goals)

    async def update_goal(self, goal_id: str, value: int) -> MutationResult:
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("goal")
        goal = next((g for g in self.state.value.goals if g.id == goal_id), None)
        if goal is None:
            return ctx.mutator.skip("goal", GONE_MESSAGE, error=True)
        if value < 0:
            return ctx.mutator.skip("goal", "Progress cannot be negative", error=True)
        completed = value >= goal.target_value
        return await ctx.mutator.run(
            "goal",
            (ctx.viewer.user_id, "goal", goal_id),
            remote=lambda: ctx.store.update(
                "user_goals", goal_id, {"current_value": value, "completed": completed}
            ),
            state=self.state,
            overlay=set_goal_progress(goal_id, value),
            refresher=self.refresher,
            action="update goal",
            success_message="Goal completed!" if completed and not goal.completed else None,
        )

    async def delete_action(self, action_id: str) -> MutationResult:
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("delete_action")
        return await ctx.mutator.run(
            "delete_action",
            (ctx.viewer.user_id, "climate_action", action_id),
            remote=lambda: ctx.store.delete("climate_actions", action_id),
            state=self.state,
            overlay=remove_own_action(action_id),
            refresher=self.refresher,
            action="delete action",
            success_message="Action deleted",
        )


# =============================================================================
# Moderation
# =============================================================================


class ModerationQueue(SyncedView[list[ReportView]]):
    """Reports with one status (pending by default), live on new reports."""

    def __init__(self, ctx: AppContext, status: ReportStatus = ReportStatus.PENDING):
        self.status = status
        super().__init__(ctx, [], f"moderation:{status.value}", action="load reports")

    def live_scope(self) -> tuple[str, Filters]:
        return "reports", (eq("status", self.status),)

    async def load(self) -> list[ReportView]:
        reports = await self.ctx.fetcher.reports(self.status)
        profiles = await self.ctx.fetcher.profiles([r.reporter_id for r in reports])
        return build_report_views(reports, profiles)

    async def resolve(
        self,
        report_id: str,
        status: ReportStatus = ReportStatus.RESOLVED,
        notes: str | None = None,
    ) -> MutationResult:
        ctx = self.ctx
        if ctx.viewer is None:
            return ctx.mutator.require_sign_in("resolve_report")
        if not ctx.viewer.is_admin:
            return ctx.mutator.skip("resolve_report", "Admin access required", error=True)
        moderator_id = ctx.viewer.user_id
        return await ctx.mutator.run(
            "resolve_report",
            (moderator_id, "report", report_id),
            remote=lambda: write_report_resolution(ctx.store, report_id, moderator_id, status, notes),
            state=self.state,
            overlay=remove_item(report_id) if status != self.status else None,
            refresher=self.refresher,
            action="update report",
            success_message=f"Report {status.value}",
        )

    async def admin_stats(self) -> dict[str, Any]:
        return await self.ctx.fetcher.admin_stats()


# =============================================================================
# Polled Widgets
# =============================================================================


class EnvironmentWidget(SyncedView[T | None]):
    """Polled external data (weather, air quality) from a remote function.

    Args:
        ctx: Application context
        name: Widget name
        loader: Coroutine function producing the widget data
        poll_interval: Seconds between refreshes (default ``poll_interval_seconds``)
    """

    def __init__(
        self,
        ctx: AppContext,
        name: str,
        loader: Callable[[], Awaitable[T]],
        poll_interval: float | None = None,
    ):
        self._loader = loader
        super().__init__(
            ctx,
            None,
            name,
            action=f"load {name}",
            poll_interval=poll_interval or ctx.settings.poll_interval_seconds,
        )

    @classmethod
    def for_function(
        cls,
        ctx: AppContext,
        function_name: str,
        payload: dict[str, Any] | None = None,
        poll_interval: float | None = None,
    ) -> "EnvironmentWidget[Any]":
        """Widget polling the remote function ``function_name`` with ``payload``."""
        return cls(
            ctx,
            function_name,
            lambda: ctx.store.invoke_function(function_name, payload),
            poll_interval,
        )

    async def load(self) -> T | None:
        return await self._loader()


async def _none() -> None:
    return None


__all__ = [
    "SyncedView",
    "ReactableListView",
    "ActionFeed",
    "ForumIndex",
    "ForumPostList",
    "CommentThread",
    "ChallengeBoard",
    "TeamDirectory",
    "Leaderboard",
    "ImpactDashboard",
    "ModerationQueue",
    "EnvironmentWidget",
]
