"""Live updates, refetch scheduling and polling.

Components:
    Channel: async stream of insert events for one (table, filters) scope
    LiveUpdateListener: per-view subscription state machine
    Refresher: sequence-numbered, timeout-bounded, coalescing view refetch
    Poller: fixed-interval refetch trigger (the polling fallback)

State machine of a listener::

    unsubscribed -> subscribing -> subscribed -> refetch_pending -> subscribed
    subscribed | refetch_pending -> unsubscribed   (teardown)

Insert events carry the new row, but the row alone cannot be rendered (its
author, counts and tallies live in other tables), so every insert triggers a
full refetch of the view. Push and poll triggers share one
:meth:`Refresher.request`, which keeps at most one background fetch in flight
per view and schedules a single trailing rerun for triggers that arrive
meanwhile.

Example:
    >>> refresher = Refresher("community-feed", state, load_feed, notifier=notifier)
    >>> listener = LiveUpdateListener(
    ...     store, "climate_actions", (eq("is_public", True),), on_insert=refresher.trigger
    ... )
    >>> await listener.start()
    >>> ...
    >>> await listener.stop()
"""

import asyncio
import contextlib
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from climasync.config import settings
from climasync.errors import ErrorKind, StoreError, classify, user_message
from climasync.logging import log_context, logger
from climasync.metrics import (
    active_live_channels,
    live_events_total,
    stale_fetches_discarded_total,
    view_fetch_duration_seconds,
    view_fetches_total,
)
from climasync.query import Filters, matches_all
from climasync.telemetry import (
    add_span_attributes,
    get_tracer,
    record_exception_in_span,
    sync_logging_context_to_span,
)
from climasync.utils import new_id, utc_now
from climasync.views import ViewState

if TYPE_CHECKING:
    from climasync.interfaces import INotifier, IRemoteStore

S = TypeVar("S")

tracer = get_tracer(__name__)


# =============================================================================
# Channels
# =============================================================================


@dataclass(frozen=True)
class InsertEvent:
    """A row inserted into ``entity_type``."""

    entity_type: str
    row: dict[str, Any]
    received_at: datetime = field(default_factory=utc_now)


class Channel:
    """Async iterator over insert events matching a table and filters.

    Stores push events with :meth:`offer`; consumers ``async for`` over the
    channel until it is closed. Events queued before :meth:`close` are still
    delivered.

    Args:
        entity_type: Table the channel listens to
        filters: Row predicates an event must satisfy
    """

    def __init__(self, entity_type: str, filters: Filters = ()):
        self.id = new_id()
        self.entity_type = entity_type
        self.filters = tuple(filters)
        self.closed = False
        self._queue: asyncio.Queue[InsertEvent | None] = asyncio.Queue()

    def accepts(self, entity_type: str, row: dict[str, Any]) -> bool:
        return entity_type == self.entity_type and matches_all(self.filters, row)

    def offer(self, event: InsertEvent) -> bool:
        """Queue ``event`` if the channel is open and in scope. Returns True if queued."""
        if self.closed or not self.accepts(event.entity_type, event.row):
            return False
        self._queue.put_nowait(event)
        return True

    def drain(self) -> list[InsertEvent]:
        """Pop every event already queued, without waiting."""
        events: list[InsertEvent] = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is None:
                # Keep the close marker for the iterator
                self._queue.put_nowait(None)
                break
            events.append(event)
        return events

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(None)

    def __aiter__(self) -> "Channel":
        return self

    async def __anext__(self) -> InsertEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def __repr__(self) -> str:
        return f"Channel(id={self.id!r}, entity_type={self.entity_type!r}, closed={self.closed})"


# =============================================================================
# Refresher
# =============================================================================


class Refresher(Generic[S]):
    """Runs a view's fetch and installs the result into its :class:`ViewState`.

    Args:
        name: View name used in logs and metrics
        state: View state receiving results
        fetch: Coroutine function producing a fresh snapshot
        notifier: Surface for foreground errors (background errors are only logged)
        timeout: Upper bound in seconds for one fetch (default from settings)
        action: Verb phrase used in error messages, e.g. "load comments"
        on_unauthorized: Called when a foreground refresh fails on authorization

    Once :meth:`cancel` has run, the refresher is closed: :meth:`request` and
    :meth:`trigger` schedule nothing until :meth:`reopen`.
    """

    def __init__(
        self,
        name: str,
        state: ViewState[S],
        fetch: Callable[[], Awaitable[S]],
        notifier: "INotifier | None" = None,
        timeout: float | None = None,
        action: str = "load data",
        on_unauthorized: Callable[[], None] | None = None,
    ):
        self.name = name
        self.state = state
        self._fetch = fetch
        self._notifier = notifier
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.action = action
        self.on_unauthorized = on_unauthorized
        self.closed = False
        self._task: asyncio.Task[None] | None = None
        self._rerun = False

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self, background: bool = False) -> bool:
        """Fetch once and apply the result.

        Args:
            background: Log failures instead of notifying the user

        Returns:
            True if the result was applied; False if it failed or was stale
        """
        seq = self.state.begin_fetch()
        start = time.perf_counter()

        with log_context(view=self.name), tracer.start_as_current_span("view.refresh") as span:
            sync_logging_context_to_span(span)
            add_span_attributes(span, {"seq": seq, "background": background})
            try:
                snapshot = await asyncio.wait_for(self._fetch(), timeout=self.timeout)
            except (StoreError, TimeoutError) as exc:
                record_exception_in_span(span, exc)
                view_fetches_total.labels(view=self.name, status="error").inc()
                error_kind = classify(exc)
                message = user_message(error_kind, self.action)
                if background:
                    logger.warning(
                        "Background refresh failed",
                        seq=seq,
                        error=str(exc) or type(exc).__name__,
                    )
                else:
                    logger.error("Refresh failed", seq=seq, error=str(exc))
                    self.state.error = message
                    if self._notifier is not None:
                        self._notifier.error(message)
                    if error_kind is ErrorKind.AUTHORIZATION and self.on_unauthorized is not None:
                        self.on_unauthorized()
                return False
            finally:
                view_fetch_duration_seconds.labels(view=self.name).observe(
                    time.perf_counter() - start
                )

            applied = self.state.apply_fetch(seq, snapshot)
            if not applied:
                stale_fetches_discarded_total.labels(view=self.name).inc()
                view_fetches_total.labels(view=self.name, status="stale").inc()
                logger.debug(
                    "Discarded stale fetch",
                    seq=seq,
                    applied_seq=self.state.applied_seq,
                )
                return False

            view_fetches_total.labels(view=self.name, status="applied").inc()
            logger.debug("View refreshed", seq=seq)
        return True

    def request(self) -> asyncio.Task[None] | None:
        """Schedule a background refresh, coalescing with one already running.

        Returns:
            The task running (or about to run) the refresh, or None once closed
        """
        if self.closed:
            logger.debug("Refresh request on closed view ignored", view=self.name)
            return None
        if self.busy:
            self._rerun = True
            return self._task  # type: ignore[return-value]
        self._rerun = False
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def trigger(self, event: InsertEvent | None = None) -> None:
        """Request a refresh and wait for it; cancelling the caller leaves it running."""
        task = self.request()
        if task is not None:
            await asyncio.shield(task)

    async def wait_idle(self) -> None:
        """Wait until no background refresh is in flight."""
        while self.busy:
            await asyncio.shield(self._task)  # type: ignore[arg-type]

    def reopen(self) -> None:
        self.closed = False

    async def cancel(self) -> None:
        """Close the refresher and cancel the in-flight background refresh, if any."""
        self.closed = True
        task, self._task = self._task, None
        self._rerun = False
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self) -> None:
        while True:
            self._rerun = False
            try:
                await self.refresh(background=True)
            except Exception:
                logger.exception("Unexpected error during background refresh", view=self.name)
            if not self._rerun:
                break


# =============================================================================
# Live Update Listener
# =============================================================================


class ChannelState(StrEnum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"
    REFETCH_PENDING = "refetch_pending"


class LiveUpdateListener:
    """Owns one live channel for one mounted view.

    Args:
        store: Store opening the channel
        entity_type: Table to listen to
        filters: Row predicates scoping the channel
        on_insert: Coroutine function called with each batch's first event
            (normally :meth:`Refresher.trigger`)
        name: Listener name used in logs
    """

    def __init__(
        self,
        store: "IRemoteStore",
        entity_type: str,
        filters: Filters,
        on_insert: Callable[[InsertEvent], Awaitable[None]],
        name: str | None = None,
    ):
        self._store = store
        self.entity_type = entity_type
        self.filters = tuple(filters)
        self._on_insert = on_insert
        self.name = name or entity_type
        self.state = ChannelState.UNSUBSCRIBED
        self.channel: Channel | None = None
        self._consumer: asyncio.Task[None] | None = None

    async def start(self) -> bool:
        """Open the channel and start consuming events.

        Returns:
            False if the listener was already started or the store refused the subscription
        """
        if self.state is not ChannelState.UNSUBSCRIBED:
            return False

        self.state = ChannelState.SUBSCRIBING
        try:
            channel = await self._store.subscribe(self.entity_type, self.filters)
        except StoreError as e:
            self.state = ChannelState.UNSUBSCRIBED
            logger.warning("Live subscription failed", listener=self.name, error=str(e))
            return False

        if self.state is not ChannelState.SUBSCRIBING:
            # Torn down while subscribing
            await self._store.unsubscribe(channel)
            return False

        self.channel = channel
        self.state = ChannelState.SUBSCRIBED
        active_live_channels.inc()
        self._consumer = asyncio.get_running_loop().create_task(self._consume(channel))
        logger.debug("Live channel open", listener=self.name, channel=channel.id)
        return True

    async def stop(self) -> None:
        """Cancel the consumer and release the channel. Safe to call repeatedly."""
        if self.state is ChannelState.UNSUBSCRIBED:
            return
        if self.state is ChannelState.SUBSCRIBING:
            self.state = ChannelState.UNSUBSCRIBED
            return

        consumer, self._consumer = self._consumer, None
        channel, self.channel = self.channel, None
        self.state = ChannelState.UNSUBSCRIBED

        if consumer is not None and not consumer.done():
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer

        if channel is not None:
            active_live_channels.dec()
            try:
                await self._store.unsubscribe(channel)
            except StoreError as e:
                channel.close()
                logger.warning("Live channel release failed", listener=self.name, error=str(e))
            logger.debug("Live channel closed", listener=self.name, channel=channel.id)

    async def _consume(self, channel: Channel) -> None:
        async for event in channel:
            batch = 1 + len(channel.drain())
            live_events_total.labels(entity_type=self.entity_type).inc(batch)
            self.state = ChannelState.REFETCH_PENDING
            logger.debug("Insert received", listener=self.name, events=batch)
            try:
                await self._on_insert(event)
            except Exception:
                logger.exception("Live update handler failed", listener=self.name)
            if self.state is ChannelState.REFETCH_PENDING:
                self.state = ChannelState.SUBSCRIBED


# =============================================================================
# Poller
# =============================================================================


class Poller:
    """Requests a refresh every ``interval`` seconds until stopped.

    Args:
        refresher: Refresher to trigger
        interval: Seconds between triggers (default ``poll_interval_seconds``)
    """

    def __init__(self, refresher: Refresher[Any], interval: float | None = None):
        self._refresher = refresher
        self.interval = interval if interval is not None else settings.poll_interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self._refresher.trigger()


__all__ = [
    "InsertEvent",
    "Channel",
    "Refresher",
    "ChannelState",
    "LiveUpdateListener",
    "Poller",
]
