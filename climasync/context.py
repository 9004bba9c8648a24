"""Explicitly passed application context.

Every view receives one :class:`AppContext` holding the store, the signed-in
viewer, the notification surface and the shared fetcher and mutator. There
are no module-level singletons for identity or language: two contexts (two
users, or a test and the app) never share state.

Example:
    >>> store = LocalStore(":memory:")
    >>> store.initialize()
    >>> ctx = AppContext.create(store, viewer=Viewer(user_id="u1", username="ana"))
    >>> feed = ActionFeed(ctx)
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from climasync.config import Settings, settings
from climasync.fetchers import EntityFetcher
from climasync.interfaces import INotifier, IRemoteStore
from climasync.logging import logger, set_request_context
from climasync.mutations import OptimisticMutator
from climasync.notify import NotificationCenter


@dataclass(frozen=True)
class Viewer:
    """The signed-in user."""

    user_id: str
    username: str = ""
    is_admin: bool = False
    language: str = "en"


@dataclass
class AppContext:
    """Dependencies shared by the views of one signed-in session.

    Attributes:
        store: Remote store (or the in-process store)
        notifier: User-visible notification surface
        fetcher: Entity fetchers bound to ``store``
        mutator: Optimistic mutator reporting to ``notifier``
        viewer: Signed-in user, or None when signed out
        settings: Page sizes, timeouts and intervals
        on_session_expired: Called after an authorization failure (re-authentication)
    """

    store: IRemoteStore
    notifier: INotifier
    fetcher: EntityFetcher
    mutator: OptimisticMutator
    viewer: Viewer | None = None
    settings: Settings = field(default_factory=lambda: settings)
    on_session_expired: Callable[[], None] | None = None

    @classmethod
    def create(
        cls,
        store: IRemoteStore,
        viewer: Viewer | None = None,
        notifier: INotifier | None = None,
        config: Settings | None = None,
        on_session_expired: Callable[[], None] | None = None,
    ) -> "AppContext":
        """Wire a context from a store, creating the fetcher and mutator."""
        config = config or settings
        notifier = notifier or NotificationCenter()
        ctx = cls(
            store=store,
            notifier=notifier,
            fetcher=EntityFetcher(store, config),
            mutator=OptimisticMutator(notifier, timeout=config.request_timeout_seconds),
            viewer=viewer,
            settings=config,
            on_session_expired=on_session_expired,
        )
        ctx.mutator.on_unauthorized = ctx.expire_session
        if viewer is not None:
            set_request_context(user_id=viewer.user_id)
        return ctx

    @property
    def viewer_id(self) -> str | None:
        return self.viewer.user_id if self.viewer else None

    def sign_in(self, viewer: Viewer) -> None:
        self.viewer = viewer
        set_request_context(user_id=viewer.user_id)
        logger.info("Viewer signed in", user_id=viewer.user_id)

    def expire_session(self) -> None:
        """Drop the viewer after an authorization failure and ask for re-authentication."""
        if self.viewer is not None:
            logger.warning("Session expired", user_id=self.viewer.user_id)
        self.viewer = None
        if self.on_session_expired is not None:
            self.on_session_expired()


__all__ = ["Viewer", "AppContext"]
