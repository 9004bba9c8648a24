"""Data models for climasync.

This module defines both Pydantic validation models (for rows read from the
store) and SQLModel ORM models (for the in-process SQLite store).

Models are organized into two sections:
1. Pydantic records, validated at the fetch boundary
2. SQLModel tables backing :class:`climasync.database.LocalStore`

Rows arriving from any store are plain dictionaries; every Entity Fetcher
turns them into the Section 1 records before they reach the View Builder.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from climasync.config import (
    ActionCategory,
    ParentType,
    ReactionType,
    ReportStatus,
    TeamRole,
)
from climasync.utils import new_id, parse_datetime, utc_now_iso

# =============================================================================
# Section 1: Pydantic Records
# =============================================================================


class Record(BaseModel):
    """Base for validated, immutable store records."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class Actor(Record):
    """User profile referenced as the author of almost every entity.

    Attributes:
        id: Stable user identifier issued by the identity provider
        username: Display name
        avatar_url: Avatar image reference
        is_public: Whether the profile is visible to other users
        created_at: Signup timestamp (UTC)
    """

    id: str
    username: str
    avatar_url: Optional[str] = None
    is_public: bool = True
    created_at: Optional[datetime] = None

    @field_validator("is_public", mode="before")
    @classmethod
    def _coerce_public(cls, v: Optional[bool]) -> bool:
        return True if v is None else v

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class Forum(Record):
    """Discussion forum grouping forum posts."""

    id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class ForumPost(Record):
    """Post inside a forum.

    Attributes:
        id: Post ID
        forum_id: Parent forum
        user_id: Author
        title: Post title
        content: Body text
        is_pinned: Pinned posts sort before all others
        views: View counter maintained by the ``increment_post_views`` procedure
        created_at: Creation timestamp (UTC)
    """

    id: str
    forum_id: str
    user_id: str
    title: str
    content: str = ""
    is_pinned: bool = False
    views: int = 0
    created_at: Optional[datetime] = None

    @field_validator("is_pinned", mode="before")
    @classmethod
    def _coerce_pinned(cls, v: Optional[bool]) -> bool:
        return False if v is None else v

    @field_validator("views", mode="before")
    @classmethod
    def _coerce_views(cls, v: Optional[int]) -> int:
        return 0 if v is None else v

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class ClimateAction(Record):
    """Climate action shared to the community feed and map.

    Attributes:
        id: Action ID
        user_id: Author
        category: Action category
        story: Free-text description
        city: City name
        country: Country name
        latitude: Map latitude (None when not located)
        longitude: Map longitude (None when not located)
        photo_url: Optional photo
        points_awarded: Points granted for the action
        is_public: Whether the action appears on the public feed
        created_at: Creation timestamp (UTC)
    """

    id: str
    user_id: str
    category: ActionCategory = ActionCategory.OTHER
    story: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    photo_url: Optional[str] = None
    points_awarded: int = 0
    is_public: bool = True
    created_at: Optional[datetime] = None

    @field_validator("points_awarded", mode="before")
    @classmethod
    def _coerce_points(cls, v: Optional[int]) -> int:
        return 0 if v is None else v

    @field_validator("is_public", mode="before")
    @classmethod
    def _coerce_public(cls, v: Optional[bool]) -> bool:
        return True if v is None else v

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)

    @property
    def has_location(self) -> bool:
        """True when the action can be placed on the map."""
        return self.latitude is not None and self.longitude is not None


class Comment(Record):
    """Comment attached to a forum post, climate action or another comment."""

    id: str
    parent_type: ParentType
    parent_id: str
    user_id: str
    content: str
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class Reaction(Record):
    """Reaction row; at most one per (user, parent)."""

    id: Optional[str] = None
    user_id: str
    parent_type: ParentType
    parent_id: str
    reaction_type: ReactionType


class Tag(Record):
    """Topic tag attached to forum posts."""

    id: str
    name: str
    color: Optional[str] = None
    slug: Optional[str] = None


class PostTag(Record):
    """Link between a forum post and a tag."""

    post_id: str
    tag_id: str


class Challenge(Record):
    """Daily challenge worth ``points_reward`` points once per user.

    Attributes:
        id: Challenge ID
        title: Short title
        description: What to do
        category: Challenge category
        difficulty: easy, medium or hard
        points_reward: Points granted on completion
        active_date: Day the challenge is offered (YYYY-MM-DD)
        expires_at: Moment the challenge closes (UTC)
    """

    id: str
    title: str
    description: str = ""
    category: str = "general"
    difficulty: str = "easy"
    points_reward: int = 10
    active_date: str
    expires_at: Optional[datetime] = None

    @field_validator("expires_at", mode="before")
    @classmethod
    def _coerce_expires_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class ChallengeCompletion(Record):
    """Completion row; unique per (user, challenge)."""

    id: Optional[str] = None
    user_id: str
    challenge_id: str


class UserStats(Record):
    """Gamification totals for one user."""

    user_id: str
    total_points: int = 0
    total_actions: int = 0
    current_streak: int = 0
    longest_streak: int = 0

    @field_validator(
        "total_points", "total_actions", "current_streak", "longest_streak", mode="before"
    )
    @classmethod
    def _coerce_counts(cls, v: Optional[int]) -> int:
        return 0 if v is None else v


class Goal(Record):
    """Personal goal with numeric progress.

    Attributes:
        id: Goal ID
        user_id: Owner
        goal_type: e.g. weekly_actions, monthly_points, streak_target
        category: Optional action category focus
        target_value: Value that completes the goal
        current_value: Progress so far
        completed: True once current_value reached target_value
        period_start: First day of the goal period (YYYY-MM-DD)
        period_end: Last day of the goal period (YYYY-MM-DD)
    """

    id: str
    user_id: str
    goal_type: str
    category: Optional[str] = None
    target_value: int
    current_value: int = 0
    completed: bool = False
    period_start: Optional[str] = None
    period_end: Optional[str] = None

    @property
    def percentage(self) -> float:
        """Progress towards the target, capped at 100."""
        if self.target_value <= 0:
            return 100.0
        return min(self.current_value / self.target_value * 100, 100.0)


class Team(Record):
    """Team competing on the team leaderboard."""

    id: str
    name: str
    description: Optional[str] = None
    created_by: str
    is_public: bool = True
    max_members: int = 50
    total_points: int = 0
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class TeamMembership(Record):
    """Membership row; unique per (team, user)."""

    id: Optional[str] = None
    team_id: str
    user_id: str
    role: TeamRole = TeamRole.MEMBER


class Report(Record):
    """Moderation report filed against a post, action or comment."""

    id: str
    reporter_id: str
    reported_type: str
    reported_id: str
    reason: str
    details: Optional[str] = None
    status: ReportStatus = ReportStatus.PENDING
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("created_at", "resolved_at", mode="before")
    @classmethod
    def _coerce_timestamps(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class Bookmark(Record):
    """Saved forum post; unique per (user, post)."""

    id: Optional[str] = None
    user_id: str
    post_id: str


# =============================================================================
# Section 2: SQLModel Tables for the In-Process Store
# =============================================================================


class ProfileRow(SQLModel, table=True):
    """Persisted user profile."""

    __tablename__ = "profiles"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    username: str = Field(index=True)
    avatar_url: Optional[str] = None
    is_public: bool = True
    created_at: str = Field(default_factory=utc_now_iso)


class ForumRow(SQLModel, table=True):
    """Persisted forum."""

    __tablename__ = "forums"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)


class ForumPostRow(SQLModel, table=True):
    """Persisted forum post.

    Attributes:
        forum_id: Parent forum (indexed)
        created_at: ISO8601 UTC creation timestamp (indexed)
    """

    __tablename__ = "forum_posts"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    forum_id: str = Field(index=True)
    user_id: str = Field(index=True)
    title: str
    content: str = ""
    is_pinned: bool = False
    views: int = 0
    created_at: str = Field(default_factory=utc_now_iso, index=True)


class ClimateActionRow(SQLModel, table=True):
    """Persisted climate action."""

    __tablename__ = "climate_actions"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True)
    category: str = ActionCategory.OTHER.value
    story: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    photo_url: Optional[str] = None
    points_awarded: int = 0
    is_public: bool = Field(default=True, index=True)
    created_at: str = Field(default_factory=utc_now_iso, index=True)


class CommentRow(SQLModel, table=True):
    """Persisted comment; (parent_type, parent_id) is indexed for thread and count lookups."""

    __tablename__ = "comments"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    parent_type: str = Field(index=True)
    parent_id: str = Field(index=True)
    user_id: str
    content: str
    created_at: str = Field(default_factory=utc_now_iso, index=True)


class ReactionRow(SQLModel, table=True):
    """Persisted reaction; one row per (user, parent)."""

    __tablename__ = "reactions"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("user_id", "parent_type", "parent_id"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str
    parent_type: str
    parent_id: str = Field(index=True)
    reaction_type: str
    created_at: str = Field(default_factory=utc_now_iso)


class TagRow(SQLModel, table=True):
    """Persisted tag."""

    __tablename__ = "tags"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    color: Optional[str] = None
    slug: Optional[str] = None


class PostTagRow(SQLModel, table=True):
    """Link table between forum posts and tags."""

    __tablename__ = "post_tags"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("post_id", "tag_id"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    post_id: str = Field(index=True)
    tag_id: str


class ChallengeRow(SQLModel, table=True):
    """Persisted daily challenge."""

    __tablename__ = "daily_challenges"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    description: str = ""
    category: str = "general"
    difficulty: str = "easy"
    points_reward: int = 10
    active_date: str = Field(index=True)
    expires_at: str


class ChallengeCompletionRow(SQLModel, table=True):
    """Persisted challenge completion; one row per (user, challenge)."""

    __tablename__ = "user_challenge_completions"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("user_id", "challenge_id"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True)
    challenge_id: str
    completed_at: str = Field(default_factory=utc_now_iso)


class UserStatsRow(SQLModel, table=True):
    """Persisted gamification totals keyed by user."""

    __tablename__ = "user_stats"  # type: ignore[assignment]

    user_id: str = Field(primary_key=True)
    total_points: int = Field(default=0, index=True)
    total_actions: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    created_at: str = Field(default_factory=utc_now_iso)


class GoalRow(SQLModel, table=True):
    """Persisted personal goal."""

    __tablename__ = "user_goals"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True)
    goal_type: str
    category: Optional[str] = None
    target_value: int
    current_value: int = 0
    completed: bool = False
    period_start: Optional[str] = None
    period_end: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)


class TeamRow(SQLModel, table=True):
    """Persisted team."""

    __tablename__ = "teams"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    description: Optional[str] = None
    created_by: str
    is_public: bool = True
    max_members: int = 50
    total_points: int = 0
    created_at: str = Field(default_factory=utc_now_iso)


class TeamMemberRow(SQLModel, table=True):
    """Persisted team membership; one row per (team, user)."""

    __tablename__ = "team_members"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("team_id", "user_id"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    team_id: str = Field(index=True)
    user_id: str = Field(index=True)
    role: str = TeamRole.MEMBER.value
    joined_at: str = Field(default_factory=utc_now_iso)


class ReportRow(SQLModel, table=True):
    """Persisted moderation report."""

    __tablename__ = "reports"  # type: ignore[assignment]

    id: str = Field(default_factory=new_id, primary_key=True)
    reporter_id: str
    reported_type: str
    reported_id: str
    reason: str
    details: Optional[str] = None
    status: str = Field(default=ReportStatus.PENDING.value, index=True)
    resolved_by: Optional[str] = None
    resolved_at: Optional[str] = None
    resolution_notes: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso, index=True)


class BookmarkRow(SQLModel, table=True):
    """Persisted bookmark; one row per (user, post)."""

    __tablename__ = "bookmarks"  # type: ignore[assignment]
    __table_args__ = (UniqueConstraint("user_id", "post_id"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(index=True)
    post_id: str
    created_at: str = Field(default_factory=utc_now_iso)


TABLES: dict[str, type[SQLModel]] = {
    "profiles": ProfileRow,
    "forums": ForumRow,
    "forum_posts": ForumPostRow,
    "climate_actions": ClimateActionRow,
    "comments": CommentRow,
    "reactions": ReactionRow,
    "tags": TagRow,
    "post_tags": PostTagRow,
    "daily_challenges": ChallengeRow,
    "user_challenge_completions": ChallengeCompletionRow,
    "user_stats": UserStatsRow,
    "user_goals": GoalRow,
    "teams": TeamRow,
    "team_members": TeamMemberRow,
    "reports": ReportRow,
    "bookmarks": BookmarkRow,
}
"""Store table name to SQLModel class."""

# Which table a (parent_type, parent_id) pair points at
PARENT_TABLES: dict[str, str] = {
    ParentType.FORUM_POST.value: "forum_posts",
    ParentType.CLIMATE_ACTION.value: "climate_actions",
    ParentType.COMMENT.value: "comments",
}
