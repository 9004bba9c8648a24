"""Tests for the HTTP store client.

This module specifically tests:
- Error code classification onto the store error taxonomy
- Retry with backoff for reads, and no retry for writes
- Request shape (params, Prefer headers, endpoints)
- Polling-backed live channels
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from climasync.api import AsyncStoreClient
from climasync.errors import (
    AuthorizationError,
    ConstraintError,
    NotFoundError,
    StoreError,
    TransientStoreError,
)
from climasync.query import desc, eq

BASE_URL = "https://store.test"


def response(status: int, body=None, method: str = "GET") -> httpx.Response:
    """Build an httpx response bound to a request."""
    request = httpx.Request(method, f"{BASE_URL}/rest/v1/x")
    if body is None:
        return httpx.Response(status, request=request)
    return httpx.Response(status, json=body, request=request)


def make_client(**kwargs) -> tuple[AsyncStoreClient, MagicMock]:
    client = AsyncStoreClient(base_url=BASE_URL, api_key="anon_key_1234567890", **kwargs)
    http = MagicMock()
    http.request = AsyncMock()
    return client, http


# =============================================================================
# Error Classification
# =============================================================================


class TestRaiseForResponse:
    """Tests for mapping HTTP errors onto the taxonomy."""

    @pytest.mark.parametrize(
        ("status", "body", "error"),
        [
            (503, {"message": "unavailable"}, TransientStoreError),
            (429, None, TransientStoreError),
            (409, {"code": "23505", "message": "duplicate key"}, ConstraintError),
            (409, {"code": "23503", "message": "fk"}, NotFoundError),
            (406, {"code": "PGRST116", "message": "no rows"}, NotFoundError),
            (401, {"code": "PGRST301", "message": "JWT expired"}, AuthorizationError),
            (403, {"code": "42501", "message": "permission denied"}, AuthorizationError),
            (400, {"code": "22P02", "message": "bad input"}, StoreError),
        ],
    )
    def test_status_mapping(self, status, body, error):
        with pytest.raises(error):
            AsyncStoreClient._raise_for_response(response(status, body))

    def test_success_passes(self):
        AsyncStoreClient._raise_for_response(response(200, []))

    def test_code_preserved(self):
        with pytest.raises(ConstraintError) as exc_info:
            AsyncStoreClient._raise_for_response(response(409, {"code": "23505", "message": "dup"}))
        assert exc_info.value.code == "23505"
        assert str(exc_info.value) == "dup"


# =============================================================================
# Retry Logic
# =============================================================================


class TestReadRetry:
    """Reads retry transient failures; writes never do."""

    @pytest.mark.asyncio
    async def test_query_retries_network_error(self):
        client, http = make_client(max_read_attempts=2)
        http.request.side_effect = [httpx.ConnectError("refused"), response(200, [{"id": "a1"}])]

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            rows = await client.query("climate_actions")

        assert rows == [{"id": "a1"}]
        assert http.request.await_count == 2

    @pytest.mark.asyncio
    async def test_query_gives_up_after_max_attempts(self):
        client, http = make_client(max_read_attempts=1)
        http.request.return_value = response(503, {"message": "down"})

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            with pytest.raises(TransientStoreError):
                await client.query("climate_actions")

        assert http.request.await_count == 1

    @pytest.mark.asyncio
    async def test_query_does_not_retry_permanent_errors(self):
        client, http = make_client(max_read_attempts=3)
        http.request.return_value = response(401, {"code": "PGRST301", "message": "expired"})

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            with pytest.raises(AuthorizationError):
                await client.query("comments")

        assert http.request.await_count == 1

    @pytest.mark.asyncio
    async def test_insert_not_retried(self):
        client, http = make_client(max_read_attempts=3)
        http.request.side_effect = httpx.ReadTimeout("slow")

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            with pytest.raises(TransientStoreError):
                await client.insert("comments", {"content": "x"})

        assert http.request.await_count == 1


# =============================================================================
# Request Shape
# =============================================================================


class TestRequests:
    """Tests for URLs, parameters and headers."""

    @pytest.mark.asyncio
    async def test_query_params(self):
        client, http = make_client()
        http.request.return_value = response(200, [])

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            await client.query("climate_actions", (eq("is_public", True),), desc("created_at"), 50)

        args, kwargs = http.request.call_args
        assert args == ("GET", f"{BASE_URL}/rest/v1/climate_actions")
        assert kwargs["params"] == [
            ("select", "*"),
            ("is_public", "eq.true"),
            ("order", "created_at.desc"),
            ("limit", "50"),
        ]

    @pytest.mark.asyncio
    async def test_insert_returns_representation(self):
        client, http = make_client()
        http.request.return_value = response(201, [{"id": "c9"}], method="POST")

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            row = await client.insert("comments", {"content": "x"})

        assert row == {"id": "c9"}
        assert http.request.call_args.kwargs["headers"] == {"Prefer": "return=representation"}

    @pytest.mark.asyncio
    async def test_update_uses_table_primary_key(self):
        client, http = make_client()
        http.request.return_value = response(200, [{"user_id": "u1", "total_points": 60}])

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            await client.update("user_stats", "u1", {"total_points": 60})

        assert http.request.call_args.kwargs["params"] == [("user_id", "eq.u1")]

    @pytest.mark.asyncio
    async def test_update_missing_row(self):
        client, http = make_client()
        http.request.return_value = response(200, [])

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            with pytest.raises(NotFoundError):
                await client.update("comments", "gone", {"content": "x"})

    @pytest.mark.asyncio
    async def test_upsert_on_conflict(self):
        client, http = make_client()
        http.request.return_value = response(201, [{"id": "r1"}])

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            await client.upsert("reactions", {"user_id": "u1"}, ("user_id", "parent_type", "parent_id"))

        kwargs = http.request.call_args.kwargs
        assert kwargs["params"] == [("on_conflict", "user_id,parent_type,parent_id")]
        assert "resolution=merge-duplicates" in kwargs["headers"]["Prefer"]

    @pytest.mark.asyncio
    async def test_delete_where_counts_rows(self):
        client, http = make_client()
        http.request.return_value = response(200, [{"id": "r1"}, {"id": "r2"}])

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            removed = await client.delete_where("reactions", (eq("user_id", "u1"),))

        assert removed == 2
        with pytest.raises(StoreError):
            await client.delete_where("reactions", ())

    @pytest.mark.asyncio
    async def test_rpc_and_function_endpoints(self):
        client, http = make_client()
        http.request.side_effect = [response(200, {"total_users": 3}), response(200, {"token": "pk"})]

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            stats = await client.rpc("get_admin_stats")
            body = await client.invoke_function("get-mapbox-token")

        assert stats == {"total_users": 3}
        assert body == {"token": "pk"}
        urls = [call.args[1] for call in http.request.call_args_list]
        assert urls == [
            f"{BASE_URL}/rest/v1/rpc/get_admin_stats",
            f"{BASE_URL}/functions/v1/get-mapbox-token",
        ]

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self):
        client, http = make_client()
        http.request.return_value = response(204)

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            assert await client.rpc("increment_post_views", {"post_id": "p1"}) is None

    def test_auth_headers_prefer_session_token(self):
        client = AsyncStoreClient(base_url=BASE_URL, api_key="anon_key_1234567890")
        assert client._auth_headers()["Authorization"] == "Bearer anon_key_1234567890"

        client.set_access_token("session-token")

        assert client._auth_headers()["Authorization"] == "Bearer session-token"
        assert client._auth_headers()["apikey"] == "anon_key_1234567890"


# =============================================================================
# Live Channels
# =============================================================================


class TestPollingChannels:
    """Tests for watermark-polled live channels."""

    @pytest.mark.asyncio
    async def test_new_rows_delivered_once(self):
        client, http = make_client(realtime_poll_seconds=0.01)
        seen_params = []

        async def fake_request(method, url, params=None, json=None, headers=None):
            seen_params.append(params)
            if len(seen_params) == 1:
                return response(200, [{"id": "old", "created_at": "2025-01-01T00:00:00.000000Z"}])
            if len(seen_params) == 2:
                return response(
                    200,
                    [{"id": "new", "is_public": True, "created_at": "2025-01-02T00:00:00.000000Z"}],
                )
            return response(200, [])

        http.request.side_effect = fake_request

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            channel = await client.subscribe("climate_actions", (eq("is_public", True),))
            event = await asyncio.wait_for(channel.__anext__(), 1)
            assert client.active_channels == 1
            await client.unsubscribe(channel)

        assert event.row["id"] == "new"
        assert ("created_at", "gte.2025-01-01T00:00:00.000000Z") in seen_params[1]
        assert client.active_channels == 0
        assert channel.closed

    @pytest.mark.asyncio
    async def test_rows_sharing_watermark_timestamp(self, eventually):
        """A row stored later with the watermark's timestamp is still delivered, once."""
        client, http = make_client(realtime_poll_seconds=0.01)
        stamp = "2025-01-01T00:00:00.000000Z"
        old = {"id": "old", "is_public": True, "created_at": stamp}
        twin = {"id": "twin", "is_public": True, "created_at": stamp}
        late = {"id": "late", "is_public": True, "created_at": stamp}
        pages = [[old], [old, twin], [old, twin], [twin, late]]
        calls = []

        async def fake_request(method, url, params=None, json=None, headers=None):
            calls.append(params)
            return response(200, pages[len(calls) - 1] if len(calls) <= len(pages) else [])

        http.request.side_effect = fake_request

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            channel = await client.subscribe("climate_actions", (eq("is_public", True),))
            first = await asyncio.wait_for(channel.__anext__(), 1)
            second = await asyncio.wait_for(channel.__anext__(), 1)
            await eventually(lambda: len(calls) > len(pages) + 1)
            await client.unsubscribe(channel)

        assert [first.row["id"], second.row["id"]] == ["twin", "late"]
        assert channel.drain() == []

    @pytest.mark.asyncio
    async def test_close_releases_channels(self):
        client, http = make_client(realtime_poll_seconds=10)
        http.request.return_value = response(200, [])

        with patch.object(client, "_ensure_client", AsyncMock(return_value=http)):
            await client.subscribe("comments")
            await client.subscribe("comments")
            assert client.active_channels == 2
            await client.close()

        assert client.active_channels == 0
