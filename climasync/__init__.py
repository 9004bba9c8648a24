"""climasync - read-model synchronization core for a climate community app.

This package keeps denormalized views (community feed, forums, comment
threads, challenges, teams, leaderboard, impact dashboard, moderation queue)
in sync with a remote relational store, under live insert notifications,
polling fallbacks and optimistic local mutations.

Example:
    >>> from climasync import ActionFeed, AppContext, LocalStore, Viewer
    >>> import asyncio
    >>>
    >>> async def main():
    ...     store = LocalStore(":memory:")
    ...     store.initialize()
    ...     ctx = AppContext.create(store, viewer=Viewer(user_id="u1", username="ana"))
    ...     async with ActionFeed(ctx) as feed:
    ...         print(len(feed.value))
    ...     store.close()
    >>>
    >>> asyncio.run(main())
"""

from climasync.api import AsyncStoreClient
from climasync.config import settings
from climasync.context import AppContext, Viewer
from climasync.database import LocalStore
from climasync.errors import (
    AuthorizationError,
    ConstraintError,
    NotFoundError,
    StoreError,
    TransientStoreError,
)
from climasync.feeds import (
    ActionFeed,
    ChallengeBoard,
    CommentThread,
    EnvironmentWidget,
    ForumIndex,
    ForumPostList,
    ImpactDashboard,
    Leaderboard,
    ModerationQueue,
    TeamDirectory,
)
from climasync.mutations import MutationOutcome, MutationResult, OptimisticMutator
from climasync.notify import NotificationCenter
from climasync.realtime import Channel, InsertEvent, LiveUpdateListener, Poller, Refresher
from climasync.views import ViewState

__version__ = "0.1.0"

__all__ = [
    # Context
    "AppContext",
    "Viewer",
    "settings",
    # Stores
    "LocalStore",
    "AsyncStoreClient",
    # Views
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
    # Synchronization
    "ViewState",
    "Refresher",
    "LiveUpdateListener",
    "Poller",
    "Channel",
    "InsertEvent",
    "OptimisticMutator",
    "MutationOutcome",
    "MutationResult",
    "NotificationCenter",
    # Errors
    "StoreError",
    "TransientStoreError",
    "ConstraintError",
    "AuthorizationError",
    "NotFoundError",
]
