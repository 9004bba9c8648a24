"""Pytest configuration and shared fixtures for climasync tests."""

import asyncio
import sys
from collections.abc import Awaitable, Callable, Generator
from datetime import timedelta

import pytest
from loguru import logger
from sqlmodel import Session

from climasync.config import ActionCategory, ParentType, ReactionType, TeamRole
from climasync.context import AppContext, Viewer
from climasync.database import LocalStore
from climasync.models import (
    ChallengeRow,
    ClimateActionRow,
    CommentRow,
    ForumPostRow,
    ForumRow,
    GoalRow,
    PostTagRow,
    ProfileRow,
    ReactionRow,
    ReportRow,
    TagRow,
    TeamMemberRow,
    TeamRow,
    UserStatsRow,
)
from climasync.notify import NotificationCenter
from climasync.utils import format_iso, today_iso, utc_now


# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Reset loguru handlers before each test to prevent I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()


def ts(day: int, hour: int = 12) -> str:
    """Fixed past timestamp in the store's ISO format (January 2025)."""
    return f"2025-01-{day:02d}T{hour:02d}:00:00.000000Z"


# =============================================================================
# Store Fixtures
# =============================================================================


def seed(store: LocalStore) -> None:
    """Populate a store with a small community.

    Users u1..u4 plus the moderator ``mod``. Action a1 carries three likes and
    one love, none from u1.
    """
    tomorrow = format_iso(utc_now() + timedelta(days=1))
    with Session(store.engine) as session:
        session.add_all(
            [
                ProfileRow(id="u1", username="ana", created_at=ts(1)),
                ProfileRow(id="u2", username="ben", created_at=ts(1)),
                ProfileRow(id="u3", username="cai", created_at=ts(1)),
                ProfileRow(id="u4", username="dee", created_at=ts(1)),
                ProfileRow(id="mod", username="moderator", created_at=ts(1)),
                # Community feed
                ClimateActionRow(
                    id="a1",
                    user_id="u1",
                    category=ActionCategory.TREE_PLANTING.value,
                    story="Planted two oaks",
                    city="Lisbon",
                    country="Portugal",
                    latitude=38.72,
                    longitude=-9.14,
                    created_at=ts(1),
                ),
                ClimateActionRow(
                    id="a2",
                    user_id="u2",
                    category=ActionCategory.RECYCLING.value,
                    created_at=ts(2),
                ),
                ClimateActionRow(
                    id="a3",
                    user_id="u3",
                    category=ActionCategory.WATER_SAVING.value,
                    is_public=False,
                    created_at=ts(3),
                ),
                # Reactions on a1: {like: 3, love: 1}
                *(
                    ReactionRow(
                        user_id=user_id,
                        parent_type=ParentType.CLIMATE_ACTION.value,
                        parent_id="a1",
                        reaction_type=ReactionType.LIKE.value,
                    )
                    for user_id in ("u2", "u3", "u4")
                ),
                ReactionRow(
                    user_id="mod",
                    parent_type=ParentType.CLIMATE_ACTION.value,
                    parent_id="a1",
                    reaction_type=ReactionType.LOVE.value,
                ),
                # Comments on a1
                CommentRow(
                    id="c1",
                    parent_type=ParentType.CLIMATE_ACTION.value,
                    parent_id="a1",
                    user_id="u2",
                    content="Nice work!",
                    created_at=ts(2, 9),
                ),
                CommentRow(
                    id="c2",
                    parent_type=ParentType.CLIMATE_ACTION.value,
                    parent_id="a1",
                    user_id="u3",
                    content="Which species?",
                    created_at=ts(2, 10),
                ),
                # Forums
                ForumRow(id="f1", name="Climate Science", created_at=ts(1)),
                ForumRow(id="f2", name="Local Action", created_at=ts(1)),
                ForumPostRow(
                    id="p1",
                    forum_id="f1",
                    user_id="u2",
                    title="Carbon budgets explained",
                    content="How much is left?",
                    created_at=ts(4),
                ),
                ForumPostRow(
                    id="p2",
                    forum_id="f1",
                    user_id="u3",
                    title="Forum rules",
                    content="Be kind.",
                    is_pinned=True,
                    created_at=ts(1),
                ),
                TagRow(id="t1", name="science", slug="science"),
                PostTagRow(post_id="p1", tag_id="t1"),
                # Gamification
                ChallengeRow(
                    id="ch1",
                    title="Skip the car",
                    points_reward=10,
                    active_date=today_iso(),
                    expires_at=tomorrow,
                ),
                ChallengeRow(
                    id="ch2",
                    title="Cold wash",
                    points_reward=20,
                    active_date=today_iso(),
                    expires_at=tomorrow,
                ),
                UserStatsRow(user_id="u1", total_points=50, total_actions=1),
                UserStatsRow(user_id="u2", total_points=120, total_actions=5),
                UserStatsRow(user_id="u3", total_points=30, total_actions=2),
                TeamRow(id="tm1", name="Green Team", created_by="u2", total_points=300),
                TeamRow(id="tm2", name="Tiny Team", created_by="u3", max_members=1, total_points=10),
                TeamMemberRow(team_id="tm1", user_id="u2", role=TeamRole.ADMIN.value),
                TeamMemberRow(team_id="tm2", user_id="u3", role=TeamRole.ADMIN.value),
                GoalRow(
                    id="g1",
                    user_id="u1",
                    goal_type="weekly_actions",
                    target_value=5,
                    current_value=2,
                    period_end="2025-01-07",
                ),
                # Moderation
                ReportRow(
                    id="r1",
                    reporter_id="u2",
                    reported_type=ParentType.FORUM_POST.value,
                    reported_id="p1",
                    reason="spam",
                    created_at=ts(5),
                ),
            ]
        )
        session.commit()


@pytest.fixture
def empty_store() -> Generator[LocalStore, None, None]:
    """Initialized in-memory store without data."""
    store = LocalStore(":memory:")
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def store(empty_store: LocalStore) -> LocalStore:
    """In-memory store with the seeded community."""
    seed(empty_store)
    return empty_store


@pytest.fixture
def notifier() -> NotificationCenter:
    return NotificationCenter()


@pytest.fixture
def ctx(store: LocalStore, notifier: NotificationCenter) -> AppContext:
    """Context signed in as u1 (ana)."""
    return AppContext.create(store, viewer=Viewer(user_id="u1", username="ana"), notifier=notifier)


@pytest.fixture
def admin_ctx(store: LocalStore) -> AppContext:
    """Context signed in as the moderator."""
    return AppContext.create(
        store,
        viewer=Viewer(user_id="mod", username="moderator", is_admin=True),
        notifier=NotificationCenter(),
    )


@pytest.fixture
def anonymous_ctx(store: LocalStore) -> AppContext:
    return AppContext.create(store, notifier=NotificationCenter())


# =============================================================================
# Utility Fixtures
# =============================================================================


@pytest.fixture
def eventually() -> Callable[[Callable[[], bool]], Awaitable[None]]:
    """Wait (up to ``timeout`` seconds) until ``predicate`` holds, else fail."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                pytest.fail("Condition not reached in time")
            await asyncio.sleep(0.01)

    return _wait
