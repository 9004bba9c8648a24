"""Denormalized view building and optimistic view state.

This module holds the read model the presentation layer renders:

1. Display records: immutable pydantic models combining a validated entity
   with its derived fields (author, comment count, reaction tally, ...)
2. Builders: pure functions joining fetched entities with batched side-channel
   lookups. A side channel that failed arrives as ``None`` and its derived
   field falls back to 0 or empty; duplicates are collapsed by id with the
   last-fetched copy winning.
3. :class:`ViewState`: the last applied server snapshot plus the pending
   optimistic overlays, guarded by fetch sequence numbers.

Overlays are "desired state" patches computed against the viewer's own
server-side state (``user_reaction``, ``completed``, ``role``). Applying one to
a snapshot that already reflects the write is a no-op, so a refetch that
lands before or after confirmation never double counts.

Example:
    >>> state = ViewState[list[ActionView]]([])
    >>> seq = state.begin_fetch()
    >>> state.apply_fetch(seq, build_action_views(actions, profiles, counts, summaries))
    True
    >>> state.add_overlay("m1", set_user_reaction("action-1", ReactionType.LOVE))
    >>> state.value[0].reactions.user_reaction
    <ReactionType.LOVE: 'love'>
"""

from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import reduce
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

from climasync.config import ReactionType, TeamRole
from climasync.models import (
    Actor,
    Challenge,
    ClimateAction,
    Comment,
    Forum,
    ForumPost,
    Goal,
    Reaction,
    Report,
    Tag,
    Team,
    UserStats,
)

S = TypeVar("S")
V = TypeVar("V")

# =============================================================================
# Display Records
# =============================================================================


class DisplayRecord(BaseModel):
    """Base for immutable display records."""

    model_config = ConfigDict(frozen=True)


class ReactionSummary(DisplayRecord):
    """Per-type reaction counts on one parent plus the viewer's own reaction.

    Attributes:
        counts: Reaction type to count; types with a zero count are absent
        user_reaction: The viewer's reaction, or None
    """

    counts: dict[str, int] = {}
    user_reaction: Optional[ReactionType] = None

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def with_user_reaction(self, reaction: ReactionType | None) -> "ReactionSummary":
        """Summary after the viewer's reaction becomes ``reaction``.

        Moves one count from the previous reaction (if any) to the new one.
        Setting the reaction the viewer already has returns ``self``.

        Example:
            >>> s = ReactionSummary(counts={"like": 3, "love": 1})
            >>> s.with_user_reaction(ReactionType.LOVE).counts
            {'like': 3, 'love': 2}
        """
        if reaction == self.user_reaction:
            return self
        counts = dict(self.counts)
        if self.user_reaction is not None:
            remaining = counts.get(self.user_reaction, 0) - 1
            if remaining > 0:
                counts[self.user_reaction] = remaining
            else:
                counts.pop(self.user_reaction, None)
        if reaction is not None:
            counts[reaction] = counts.get(reaction, 0) + 1
        return ReactionSummary(counts=counts, user_reaction=reaction)


def toggle_target(current: ReactionType | None, clicked: ReactionType) -> ReactionType | None:
    """Reaction the viewer ends up with after clicking ``clicked``.

    Clicking the current reaction removes it; any other click replaces it.
    """
    return None if current == clicked else clicked


class ActionView(DisplayRecord):
    """Climate action as shown on the community feed and map."""

    action: ClimateAction
    author: Optional[Actor] = None
    comment_count: int = 0
    reactions: ReactionSummary = ReactionSummary()

    @property
    def id(self) -> str:
        return self.action.id


class PostView(DisplayRecord):
    """Forum post with author, counts, tags and the viewer's bookmark flag."""

    post: ForumPost
    author: Optional[Actor] = None
    comment_count: int = 0
    reactions: ReactionSummary = ReactionSummary()
    tags: list[Tag] = []
    bookmarked: bool = False

    @property
    def id(self) -> str:
        return self.post.id


class CommentView(DisplayRecord):
    """Comment in a thread.

    Attributes:
        pending: True while the comment only exists locally (temporary id)
    """

    comment: Comment
    author: Optional[Actor] = None
    reactions: ReactionSummary = ReactionSummary()
    pending: bool = False

    @property
    def id(self) -> str:
        return self.comment.id


class ForumSummary(DisplayRecord):
    forum: Forum
    post_count: int = 0
    latest_post: Optional[ForumPost] = None

    @property
    def id(self) -> str:
        return self.forum.id


class ChallengeView(DisplayRecord):
    challenge: Challenge
    completed: bool = False

    @property
    def id(self) -> str:
        return self.challenge.id


class ChallengeBoardView(DisplayRecord):
    """Today's challenges with the viewer's completion flags and point total."""

    challenges: list[ChallengeView] = []
    total_points: int = 0

    def get(self, challenge_id: str) -> ChallengeView | None:
        return next((c for c in self.challenges if c.id == challenge_id), None)


class TeamView(DisplayRecord):
    """Team with its member count and the viewer's role (None if not a member)."""

    team: Team
    member_count: int = 0
    role: Optional[TeamRole] = None

    @property
    def id(self) -> str:
        return self.team.id

    @property
    def is_full(self) -> bool:
        return self.member_count >= self.team.max_members


class LeaderboardEntry(DisplayRecord):
    rank: int
    stats: UserStats
    actor: Optional[Actor] = None

    @property
    def id(self) -> str:
        return self.stats.user_id


class ImpactView(DisplayRecord):
    """Personal impact dashboard: totals, own actions and goals."""

    stats: Optional[UserStats] = None
    actions: list[ClimateAction] = []
    goals: list[Goal] = []

    @property
    def category_breakdown(self) -> dict[str, int]:
        """Own actions counted per category."""
        return dict(Counter(a.category.value for a in self.actions))


class ReportView(DisplayRecord):
    report: Report
    reporter: Optional[Actor] = None

    @property
    def id(self) -> str:
        return self.report.id


# =============================================================================
# Builders
# =============================================================================


def dedupe_by_id(items: Iterable[V], key: Callable[[V], str] = lambda item: item.id) -> list[V]:  # type: ignore[attr-defined]
    """Collapse items sharing an id.

    The first occurrence keeps its position; the last-fetched copy wins.
    """
    merged: dict[str, V] = {}
    for item in items:
        merged[key(item)] = item
    return list(merged.values())


def summarize_reactions(
    reactions: Iterable[Reaction] | None, viewer_id: str | None
) -> dict[str, ReactionSummary]:
    """Group reaction rows into one :class:`ReactionSummary` per parent id."""
    counts: dict[str, Counter[str]] = {}
    mine: dict[str, ReactionType] = {}
    for reaction in reactions or ():
        counts.setdefault(reaction.parent_id, Counter())[reaction.reaction_type.value] += 1
        if viewer_id is not None and reaction.user_id == viewer_id:
            mine[reaction.parent_id] = reaction.reaction_type
    return {
        parent_id: ReactionSummary(counts=dict(tally), user_reaction=mine.get(parent_id))
        for parent_id, tally in counts.items()
    }


def build_action_views(
    actions: Iterable[ClimateAction],
    profiles: dict[str, Actor] | None,
    comment_counts: dict[str, int] | None,
    reactions: dict[str, ReactionSummary] | None,
) -> list[ActionView]:
    """Join actions with authors, comment counts and reaction tallies."""
    profiles = profiles or {}
    comment_counts = comment_counts or {}
    reactions = reactions or {}
    return dedupe_by_id(
        ActionView(
            action=action,
            author=profiles.get(action.user_id),
            comment_count=comment_counts.get(action.id, 0),
            reactions=reactions.get(action.id, ReactionSummary()),
        )
        for action in actions
    )


def build_post_views(
    posts: Iterable[ForumPost],
    profiles: dict[str, Actor] | None,
    comment_counts: dict[str, int] | None,
    reactions: dict[str, ReactionSummary] | None,
    tags: dict[str, list[Tag]] | None = None,
    bookmarked: set[str] | None = None,
) -> list[PostView]:
    """Join forum posts with authors, counts, tags and bookmark flags."""
    profiles = profiles or {}
    comment_counts = comment_counts or {}
    reactions = reactions or {}
    tags = tags or {}
    bookmarked = bookmarked or set()
    return dedupe_by_id(
        PostView(
            post=post,
            author=profiles.get(post.user_id),
            comment_count=comment_counts.get(post.id, 0),
            reactions=reactions.get(post.id, ReactionSummary()),
            tags=tags.get(post.id, []),
            bookmarked=post.id in bookmarked,
        )
        for post in posts
    )


def build_comment_views(
    comments: Iterable[Comment],
    profiles: dict[str, Actor] | None,
    reactions: dict[str, ReactionSummary] | None,
) -> list[CommentView]:
    profiles = profiles or {}
    reactions = reactions or {}
    return dedupe_by_id(
        CommentView(
            comment=comment,
            author=profiles.get(comment.user_id),
            reactions=reactions.get(comment.id, ReactionSummary()),
        )
        for comment in comments
    )


def build_forum_summaries(
    forums: Iterable[Forum],
    post_counts: dict[str, int] | None,
    latest_posts: dict[str, ForumPost] | None,
) -> list[ForumSummary]:
    post_counts = post_counts or {}
    latest_posts = latest_posts or {}
    return dedupe_by_id(
        ForumSummary(
            forum=forum,
            post_count=post_counts.get(forum.id, 0),
            latest_post=latest_posts.get(forum.id),
        )
        for forum in forums
    )


def build_challenge_board(
    challenges: Iterable[Challenge],
    completed_ids: set[str],
    stats: UserStats | None,
) -> ChallengeBoardView:
    return ChallengeBoardView(
        challenges=dedupe_by_id(
            ChallengeView(challenge=c, completed=c.id in completed_ids) for c in challenges
        ),
        total_points=stats.total_points if stats else 0,
    )


def build_team_views(
    teams: Iterable[Team],
    member_counts: dict[str, int] | None,
    roles: dict[str, TeamRole] | None,
) -> list[TeamView]:
    member_counts = member_counts or {}
    roles = roles or {}
    return dedupe_by_id(
        TeamView(team=team, member_count=member_counts.get(team.id, 0), role=roles.get(team.id))
        for team in teams
    )


def build_leaderboard(
    stats: Iterable[UserStats], profiles: dict[str, Actor] | None
) -> list[LeaderboardEntry]:
    """Rank stats rows in the order given (highest points first)."""
    profiles = profiles or {}
    unique = dedupe_by_id(stats, key=lambda s: s.user_id)
    return [
        LeaderboardEntry(rank=rank, stats=row, actor=profiles.get(row.user_id))
        for rank, row in enumerate(unique, start=1)
    ]


def build_report_views(
    reports: Iterable[Report], profiles: dict[str, Actor] | None
) -> list[ReportView]:
    profiles = profiles or {}
    return dedupe_by_id(
        ReportView(report=report, reporter=profiles.get(report.reporter_id))
        for report in reports
    )


# =============================================================================
# View State
# =============================================================================


@dataclass
class Overlay(Generic[S]):
    """Pending optimistic patch.

    Attributes:
        apply: Pure function from snapshot to patched snapshot
        confirmed_seq: Latest issued fetch sequence when the write was
            confirmed; None while the write is in flight
    """

    apply: Callable[[S], S]
    confirmed_seq: int | None = None


class ViewState(Generic[S]):
    """Last applied server snapshot of one view plus optimistic overlays.

    Every fetch takes a sequence number from :meth:`begin_fetch`. A result is
    applied only if its sequence is newer than the last applied one, so a
    slow, older fetch can never overwrite a newer result. A confirmed overlay
    is retired by the first applied fetch that was issued after the
    confirmation; unconfirmed overlays survive every refetch.

    Args:
        initial: Snapshot shown before the first fetch completes
    """

    def __init__(self, initial: S):
        self._base = initial
        self._overlays: dict[str, Overlay[S]] = {}
        self._issued_seq = 0
        self._applied_seq = 0
        self.loaded = False
        self.error: str | None = None

    @property
    def base(self) -> S:
        """Last applied server snapshot, without overlays."""
        return self._base

    @property
    def value(self) -> S:
        """Server snapshot with every pending overlay applied in order."""
        return reduce(lambda acc, overlay: overlay.apply(acc), self._overlays.values(), self._base)

    @property
    def issued_seq(self) -> int:
        return self._issued_seq

    @property
    def applied_seq(self) -> int:
        return self._applied_seq

    @property
    def pending(self) -> list[str]:
        """Ids of overlays not yet retired."""
        return list(self._overlays)

    def begin_fetch(self) -> int:
        """Issue the next fetch sequence number."""
        self._issued_seq += 1
        return self._issued_seq

    def apply_fetch(self, seq: int, snapshot: S) -> bool:
        """Install ``snapshot`` fetched under ``seq``.

        Returns:
            False (and changes nothing) if a fetch with an equal or newer
            sequence was already applied
        """
        if seq <= self._applied_seq:
            return False
        self._applied_seq = seq
        self._base = snapshot
        self.loaded = True
        self.error = None
        self._overlays = {
            mutation_id: overlay
            for mutation_id, overlay in self._overlays.items()
            if overlay.confirmed_seq is None or overlay.confirmed_seq >= seq
        }
        return True

    def add_overlay(self, mutation_id: str, apply: Callable[[S], S]) -> None:
        self._overlays[mutation_id] = Overlay(apply)

    def confirm(self, mutation_id: str, apply: Callable[[S], S] | None = None) -> None:
        """Mark an overlay's write as confirmed, optionally replacing its patch.

        A replacement lets a pending row take on its server-assigned id.
        """
        overlay = self._overlays.get(mutation_id)
        if overlay is None:
            return
        if apply is not None:
            overlay.apply = apply
        overlay.confirmed_seq = self._issued_seq

    def discard(self, mutation_id: str) -> bool:
        """Drop an overlay (rollback). Returns False if it was already gone."""
        return self._overlays.pop(mutation_id, None) is not None

    def __repr__(self) -> str:
        return (
            f"ViewState(applied_seq={self._applied_seq}, issued_seq={self._issued_seq}, "
            f"pending={len(self._overlays)})"
        )


def replace_items(items: list[V], item_id: str, update: Callable[[V], V]) -> list[V]:
    """Copy of ``items`` with the item whose id is ``item_id`` passed through ``update``."""
    return [update(item) if getattr(item, "id") == item_id else item for item in items]


def model_update(record: Any, **fields: Any) -> Any:
    """Frozen-model copy with ``fields`` replaced."""
    return record.model_copy(update=fields)


__all__ = [
    "ReactionSummary",
    "toggle_target",
    "ActionView",
    "PostView",
    "CommentView",
    "ForumSummary",
    "ChallengeView",
    "ChallengeBoardView",
    "TeamView",
    "LeaderboardEntry",
    "ImpactView",
    "ReportView",
    "dedupe_by_id",
    "summarize_reactions",
    "build_action_views",
    "build_post_views",
    "build_comment_views",
    "build_forum_summaries",
    "build_challenge_board",
    "build_team_views",
    "build_leaderboard",
    "build_report_views",
    "Overlay",
    "ViewState",
    "replace_items",
    "model_update",
]
