"""Tests for live channels, refetch scheduling and polling."""

import asyncio

import pytest

from climasync.errors import AuthorizationError, TransientStoreError
from climasync.metrics import registry
from climasync.notify import NotificationCenter
from climasync.query import eq
from climasync.realtime import (
    Channel,
    ChannelState,
    InsertEvent,
    LiveUpdateListener,
    Poller,
    Refresher,
)
from climasync.views import ViewState


def gauge(name: str) -> float:
    return registry.get_sample_value(name) or 0.0


class GatedFetch:
    """Fetch whose calls block until released, returning the given values."""

    def __init__(self):
        self.calls = 0
        self.gates: list[asyncio.Event] = []
        self.values: list[object] = []

    async def __call__(self):
        self.calls += 1
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        return self.values[self.calls - 1] if self.calls <= len(self.values) else self.calls


# =============================================================================
# Channel
# =============================================================================


class TestChannel:
    @pytest.mark.asyncio
    async def test_offer_respects_scope(self):
        channel = Channel("comments", (eq("parent_id", "p1"),))
        assert channel.offer(InsertEvent("comments", {"parent_id": "p1"}))
        assert not channel.offer(InsertEvent("comments", {"parent_id": "p2"}))
        assert not channel.offer(InsertEvent("reactions", {"parent_id": "p1"}))
        assert len(channel.drain()) == 1

    @pytest.mark.asyncio
    async def test_iteration_ends_after_close(self):
        channel = Channel("comments")
        channel.offer(InsertEvent("comments", {"id": "1"}))
        channel.offer(InsertEvent("comments", {"id": "2"}))
        channel.close()

        assert not channel.offer(InsertEvent("comments", {"id": "3"}))
        rows = [event.row["id"] async for event in channel]
        assert rows == ["1", "2"]

    @pytest.mark.asyncio
    async def test_drain_keeps_close_marker(self):
        channel = Channel("comments")
        channel.offer(InsertEvent("comments", {"id": "1"}))
        channel.close()

        assert len(channel.drain()) == 1
        assert [event async for event in channel] == []


# =============================================================================
# Refresher
# =============================================================================


class TestRefresher:
    """Tests for sequence-numbered, coalescing refreshes."""

    @pytest.mark.asyncio
    async def test_refresh_applies_result(self):
        state = ViewState[list[str]]([])

        async def fetch():
            return ["a"]

        assert await Refresher("test", state, fetch).refresh()
        assert state.value == ["a"]

    @pytest.mark.asyncio
    async def test_stale_result_discarded(self, eventually):
        """A slow older fetch completing after a newer one is dropped."""
        state = ViewState[object](None)
        fetch = GatedFetch()
        fetch.values = ["old", "new"]
        refresher = Refresher("test", state, fetch)

        slow = asyncio.create_task(refresher.refresh())
        await asyncio.sleep(0)
        fast = asyncio.create_task(refresher.refresh())
        await eventually(lambda: len(fetch.gates) == 2)

        fetch.gates[1].set()
        assert await fast
        fetch.gates[0].set()
        assert not await slow

        assert state.value == "new"
        assert state.applied_seq == 2

    @pytest.mark.asyncio
    async def test_foreground_failure_notifies(self):
        state = ViewState[list[str]](["kept"])
        notifier = NotificationCenter()

        async def fetch():
            raise TransientStoreError("HTTP 503")

        refresher = Refresher("test", state, fetch, notifier=notifier, action="load comments")

        assert not await refresher.refresh()
        assert state.value == ["kept"]
        assert state.error == "Failed to load comments. Check your connection and try again."
        assert notifier.messages() == [state.error]

    @pytest.mark.asyncio
    async def test_background_failure_only_logged(self):
        state = ViewState[list[str]](["kept"])
        notifier = NotificationCenter()

        async def fetch():
            raise TransientStoreError("HTTP 503")

        assert not await Refresher("test", state, fetch, notifier=notifier).refresh(background=True)
        assert notifier.messages() == []
        assert state.error is None

    @pytest.mark.asyncio
    async def test_timeout(self):
        state = ViewState[list[str]]([])
        notifier = NotificationCenter()

        async def fetch():
            await asyncio.sleep(5)
            return ["late"]

        refresher = Refresher("test", state, fetch, notifier=notifier, timeout=0.05, action="load feed")

        assert not await refresher.refresh()
        assert state.value == []
        assert notifier.messages() == ["Timed out trying to load feed. Please try again."]

    @pytest.mark.asyncio
    async def test_requests_coalesce(self, eventually):
        """Triggers arriving while a refresh runs collapse into one trailing rerun."""
        state = ViewState[object](None)
        fetch = GatedFetch()
        refresher = Refresher("test", state, fetch)

        task = refresher.request()
        await eventually(lambda: len(fetch.gates) == 1)
        assert refresher.request() is task
        assert refresher.request() is task
        assert refresher.busy

        fetch.gates[0].set()
        await eventually(lambda: len(fetch.gates) == 2)
        fetch.gates[1].set()
        await refresher.wait_idle()

        assert fetch.calls == 2
        assert state.value == 2

    @pytest.mark.asyncio
    async def test_cancel(self):
        state = ViewState[object](None)
        fetch = GatedFetch()
        refresher = Refresher("test", state, fetch)

        refresher.request()
        await asyncio.sleep(0)
        await refresher.cancel()

        assert not refresher.busy
        assert state.value is None

    @pytest.mark.asyncio
    async def test_closed_refresher_schedules_nothing(self):
        state = ViewState[object](None)
        fetch = GatedFetch()
        refresher = Refresher("test", state, fetch)

        await refresher.cancel()

        assert refresher.closed
        assert refresher.request() is None
        await refresher.trigger()
        assert fetch.calls == 0

        refresher.reopen()
        assert refresher.request() is not None
        await refresher.cancel()

    @pytest.mark.asyncio
    async def test_foreground_authorization_failure_calls_hook(self):
        state = ViewState[list[str]](["kept"])
        expired = []

        async def fetch():
            raise AuthorizationError("JWT expired")

        refresher = Refresher("test", state, fetch, on_unauthorized=lambda: expired.append(True))

        assert not await refresher.refresh(background=True)
        assert expired == []
        assert not await refresher.refresh()
        assert expired == [True]
        assert state.value == ["kept"]

    @pytest.mark.asyncio
    async def test_other_failures_do_not_call_hook(self):
        state = ViewState[list[str]]([])
        expired = []

        async def fetch():
            raise TransientStoreError("HTTP 503")

        refresher = Refresher("test", state, fetch, on_unauthorized=lambda: expired.append(True))

        assert not await refresher.refresh()
        assert expired == []


# =============================================================================
# Live Update Listener
# =============================================================================


class TestLiveUpdateListener:
    """Tests for the per-view subscription state machine."""

    @pytest.mark.asyncio
    async def test_lifecycle(self, store, eventually):
        received = []

        async def on_insert(event):
            received.append(event.row["id"])

        listener = LiveUpdateListener(store, "climate_actions", (eq("is_public", True),), on_insert)
        assert listener.state is ChannelState.UNSUBSCRIBED

        assert await listener.start()
        assert listener.state is ChannelState.SUBSCRIBED
        assert not await listener.start()
        assert store.active_channels == 1

        await store.insert("climate_actions", {"id": "a9", "user_id": "u1"})
        await eventually(lambda: received == ["a9"])
        await eventually(lambda: listener.state is ChannelState.SUBSCRIBED)

        await listener.stop()
        assert listener.state is ChannelState.UNSUBSCRIBED
        assert store.active_channels == 0
        await listener.stop()

    @pytest.mark.asyncio
    async def test_refetch_pending_while_handler_runs(self, store, eventually):
        gate = asyncio.Event()

        async def on_insert(event):
            await gate.wait()

        listener = LiveUpdateListener(store, "comments", (), on_insert)
        await listener.start()
        await store.insert(
            "comments",
            {"parent_type": "climate_action", "parent_id": "a1", "user_id": "u1", "content": "x"},
        )

        await eventually(lambda: listener.state is ChannelState.REFETCH_PENDING)
        gate.set()
        await eventually(lambda: listener.state is ChannelState.SUBSCRIBED)
        await listener.stop()

    @pytest.mark.asyncio
    async def test_burst_of_inserts_batched(self, store, eventually):
        calls = []
        gate = asyncio.Event()

        async def on_insert(event):
            calls.append(event.row["id"])
            await gate.wait()

        listener = LiveUpdateListener(store, "climate_actions", (), on_insert)
        await listener.start()
        await store.insert("climate_actions", {"id": "b1", "user_id": "u1"})
        await eventually(lambda: len(calls) == 1)
        for i in range(2, 6):
            await store.insert("climate_actions", {"id": f"b{i}", "user_id": "u1"})
        gate.set()

        await eventually(lambda: len(calls) == 2)
        await asyncio.sleep(0.05)
        assert len(calls) == 2
        await listener.stop()

    @pytest.mark.asyncio
    async def test_failed_subscription_degrades(self, store):
        async def on_insert(event):
            pass

        listener = LiveUpdateListener(store, "no_such_table", (), on_insert)
        assert not await listener.start()
        assert listener.state is ChannelState.UNSUBSCRIBED

    @pytest.mark.asyncio
    async def test_mount_unmount_cycles_leave_no_channels(self, store):
        async def on_insert(event):
            pass

        before = gauge("active_live_channels")
        for _ in range(100):
            listener = LiveUpdateListener(store, "comments", (), on_insert)
            await listener.start()
            await listener.stop()

        assert store.active_channels == 0
        assert gauge("active_live_channels") == before


# =============================================================================
# Poller
# =============================================================================


class TestPoller:
    @pytest.mark.asyncio
    async def test_polls_until_stopped(self, eventually):
        state = ViewState[int](0)
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            return calls

        poller = Poller(Refresher("poll", state, fetch), interval=0.01)
        poller.start()
        assert poller.running
        await eventually(lambda: calls >= 3)

        await poller.stop()
        stopped_at = calls
        await asyncio.sleep(0.05)

        assert not poller.running
        assert calls == stopped_at
