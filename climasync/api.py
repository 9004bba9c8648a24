"""HTTP client for a PostgREST/Supabase style backend.

This module provides :class:`AsyncStoreClient`, an async HTTP/2
implementation of :class:`~climasync.interfaces.IRemoteStore` with:
- Connection pooling and HTTP/2 multiplexing
- Retry with exponential backoff for idempotent reads only
- Backend error codes mapped onto the :mod:`climasync.errors` taxonomy
- Live channels backed by ``created_at`` watermark polling
- OpenTelemetry spans and Prometheus counters per request

Endpoints:
    - ``/rest/v1/<table>``: table reads and writes
    - ``/rest/v1/rpc/<name>``: stored procedures
    - ``/functions/v1/<name>``: remote functions (map token, AI chat, speech)

Example:
    >>> from climasync.api import AsyncStoreClient
    >>> from climasync.query import eq, desc
    >>>
    >>> async with AsyncStoreClient() as client:
    ...     rows = await client.query(
    ...         "climate_actions", (eq("is_public", True),), desc("created_at"), limit=50
    ...     )
    ...     print(f"Fetched {len(rows)} actions")
"""

import asyncio
import contextlib
import logging
import time
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from climasync.config import settings
from climasync.errors import (
    FOREIGN_KEY_VIOLATION,
    INSUFFICIENT_PRIVILEGE,
    JWT_EXPIRED,
    NO_ROWS,
    UNIQUE_VIOLATION,
    AuthorizationError,
    ConstraintError,
    NotFoundError,
    StoreError,
    TransientStoreError,
)
from climasync.logging import logger
from climasync.metrics import store_operations_total
from climasync.query import Filters, Ordering, asc, desc, gte, orders, primary_key
from climasync.realtime import Channel, InsertEvent
from climasync.telemetry import add_span_attributes, get_tracer, record_exception_in_span

tracer = get_tracer(__name__)

RETURN_REPRESENTATION = "return=representation"
MERGE_DUPLICATES = "resolution=merge-duplicates"


# =============================================================================
# Async Store Client
# =============================================================================


class AsyncStoreClient:
    """Async HTTP/2 client for the hosted store.

    Features:
    - HTTP/2 multiplexing and keepalive connection pooling
    - ``apikey`` header plus a bearer token (the signed-in session or the anon key)
    - Reads retried on transient failures; writes never retried
    - Polling-backed live channels released by :meth:`unsubscribe`

    Args:
        base_url: Backend base URL (defaults to settings.supabase_url)
        api_key: Public API key (defaults to settings.supabase_anon_key)
        access_token: Signed-in session token; the API key is used when absent
        max_concurrency: Maximum concurrent requests
        pool_limits: Custom httpx connection pool limits
        timeout: Custom httpx timeout configuration
        max_read_attempts: Attempts for reads on transient failures
        realtime_poll_seconds: Poll interval for live channels

    Example:
        >>> client = AsyncStoreClient(access_token=session_token)
        >>> channel = await client.subscribe("comments", (eq("parent_id", post_id),))
        >>> async for event in channel:
        ...     print(event.row["content"])
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        access_token: str | None = None,
        max_concurrency: int = 10,
        pool_limits: httpx.Limits | None = None,
        timeout: httpx.Timeout | None = None,
        max_read_attempts: int | None = None,
        realtime_poll_seconds: float | None = None,
    ) -> None:
        self._base_url = (base_url or settings.supabase_url).rstrip("/")
        self._api_key = api_key or settings.supabase_anon_key or ""
        self._access_token = access_token
        self._sem = asyncio.Semaphore(max_concurrency)
        self._max_read_attempts = max_read_attempts or settings.max_read_attempts
        self._poll_seconds = (
            realtime_poll_seconds
            if realtime_poll_seconds is not None
            else settings.realtime_poll_seconds
        )

        self._limits = pool_limits or httpx.Limits(
            max_connections=50,
            max_keepalive_connections=10,
            keepalive_expiry=30.0,
        )
        self._timeout = timeout or httpx.Timeout(
            timeout=settings.request_timeout_seconds,
            connect=5.0,
        )

        self._client: httpx.AsyncClient | None = None
        self._pollers: dict[str, asyncio.Task[None]] = {}
        self._channels: dict[str, Channel] = {}

    @property
    def rest_url(self) -> str:
        return f"{self._base_url}/rest/v1"

    @property
    def functions_url(self) -> str:
        return f"{self._base_url}/functions/v1"

    @property
    def active_channels(self) -> int:
        return len(self._channels)

    def _auth_headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
        }

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=self._limits,
                timeout=self._timeout,
                http2=True,
                follow_redirects=True,
                headers={"Content-Type": "application/json", **self._auth_headers()},
            )
        return self._client

    def set_access_token(self, access_token: str | None) -> None:
        """Switch the bearer identity (sign-in, token refresh or sign-out)."""
        self._access_token = access_token
        if self._client is not None:
            self._client.headers.update(self._auth_headers())

    async def __aenter__(self) -> "AsyncStoreClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop every live channel and close all connections."""
        for channel in list(self._channels.values()):
            await self.unsubscribe(channel)
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # HTTP Layer
    # =========================================================================

    @staticmethod
    def _raise_for_response(resp: httpx.Response) -> None:
        """Map an error response onto the store error taxonomy.

        Raises:
            TransientStoreError: 429 and 5xx
            ConstraintError: code 23505 or HTTP 409
            NotFoundError: codes 23503 / PGRST116, or HTTP 404 / 406
            AuthorizationError: codes 42501 / PGRST301, or HTTP 401 / 403
            StoreError: anything else
        """
        if resp.status_code < 400:
            return

        code: str | None = None
        message = resp.text[:200]
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message") or body.get("msg") or message

        status = resp.status_code
        if status == 429 or status >= 500:
            raise TransientStoreError(f"HTTP {status}: {message}", code=code)
        if code == UNIQUE_VIOLATION or (status == 409 and code != FOREIGN_KEY_VIOLATION):
            raise ConstraintError(message, code=code or UNIQUE_VIOLATION)
        if code in (FOREIGN_KEY_VIOLATION, NO_ROWS) or status in (404, 406):
            raise NotFoundError(message, code=code)
        if code in (INSUFFICIENT_PRIVILEGE, JWT_EXPIRED) or status in (401, 403):
            raise AuthorizationError(message, code=code)
        raise StoreError(f"HTTP {status}: {message}", code=code)

    async def _request(
        self,
        operation: str,
        target: str,
        method: str,
        url: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Perform one HTTP request and decode the JSON body.

        Returns:
            Decoded JSON, or None for an empty body
        """
        client = await self._ensure_client()
        headers = {"Prefer": prefer} if prefer else None
        start = time.perf_counter()

        with tracer.start_as_current_span(f"store.{operation}") as span:
            add_span_attributes(span, {"store.operation": operation, "store.target": target})
            try:
                async with self._sem:
                    try:
                        resp = await client.request(
                            method, url, params=params, json=json, headers=headers
                        )
                    except (httpx.TimeoutException, httpx.NetworkError) as exc:
                        raise TransientStoreError(f"Network/timeout error: {exc}") from exc
                self._raise_for_response(resp)
            except StoreError as exc:
                record_exception_in_span(span, exc)
                store_operations_total.labels(
                    operation=operation, table=target, status="error"
                ).inc()
                logger.debug(
                    "Store request failed",
                    operation=operation,
                    target=target,
                    error=str(exc),
                    code=exc.code,
                )
                raise

            add_span_attributes(
                span,
                {"http.status_code": resp.status_code, "duration_ms": (time.perf_counter() - start) * 1000},
            )

        store_operations_total.labels(operation=operation, table=target, status="ok").inc()
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise TransientStoreError(f"Invalid JSON: {exc}") from exc

    @staticmethod
    def _query_params(
        filters: Filters = (), order: Ordering = None, limit: int | None = None
    ) -> list[tuple[str, str]]:
        params = [("select", "*")]
        params.extend(f.to_param() for f in filters)
        sort = orders(order)
        if sort:
            params.append(("order", ",".join(o.to_param() for o in sort)))
        if limit is not None:
            params.append(("limit", str(limit)))
        return params

    @staticmethod
    def _single(rows: Any, entity_type: str, entity_id: str | None = None) -> dict[str, Any]:
        if isinstance(rows, list):
            if not rows:
                raise NotFoundError(f"{entity_type} {entity_id or ''} not found".strip(), code=NO_ROWS)
            return rows[0]
        return rows

    # =========================================================================
    # Table Operations
    # =========================================================================

    async def query(
        self,
        entity_type: str,
        filters: Filters = (),
        order: Ordering = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows; retried with exponential backoff on transient failures."""
        logging_logger = logging.getLogger(__name__)
        params = self._query_params(filters, order, limit)

        @retry(
            reraise=True,
            stop=stop_after_attempt(self._max_read_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4) + wait_random(0, 0.25),
            retry=retry_if_exception_type(TransientStoreError),
            before_sleep=before_sleep_log(logging_logger, logging.WARNING),
        )
        async def _runner() -> list[dict[str, Any]]:
            rows = await self._request(
                "query", entity_type, "GET", f"{self.rest_url}/{entity_type}", params=params
            )
            return rows or []

        return await _runner()

    async def insert(self, entity_type: str, fields: dict[str, Any]) -> dict[str, Any]:
        rows = await self._request(
            "insert",
            entity_type,
            "POST",
            f"{self.rest_url}/{entity_type}",
            json=fields,
            prefer=RETURN_REPRESENTATION,
        )
        return self._single(rows, entity_type)

    async def update(
        self, entity_type: str, entity_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        pk = primary_key(entity_type)
        rows = await self._request(
            "update",
            entity_type,
            "PATCH",
            f"{self.rest_url}/{entity_type}",
            params=[(pk, f"eq.{entity_id}")],
            json=fields,
            prefer=RETURN_REPRESENTATION,
        )
        return self._single(rows, entity_type, entity_id)

    async def delete(self, entity_type: str, entity_id: str) -> None:
        pk = primary_key(entity_type)
        rows = await self._request(
            "delete",
            entity_type,
            "DELETE",
            f"{self.rest_url}/{entity_type}",
            params=[(pk, f"eq.{entity_id}")],
            prefer=RETURN_REPRESENTATION,
        )
        self._single(rows, entity_type, entity_id)

    async def delete_where(self, entity_type: str, filters: Filters) -> int:
        if not filters:
            raise StoreError("delete_where requires at least one filter")
        rows = await self._request(
            "delete",
            entity_type,
            "DELETE",
            f"{self.rest_url}/{entity_type}",
            params=[f.to_param() for f in filters],
            prefer=RETURN_REPRESENTATION,
        )
        return len(rows or [])

    async def upsert(
        self,
        entity_type: str,
        fields: dict[str, Any],
        conflict_key: tuple[str, ...],
    ) -> dict[str, Any]:
        rows = await self._request(
            "upsert",
            entity_type,
            "POST",
            f"{self.rest_url}/{entity_type}",
            params=[("on_conflict", ",".join(conflict_key))],
            json=fields,
            prefer=f"{MERGE_DUPLICATES},{RETURN_REPRESENTATION}",
        )
        return self._single(rows, entity_type)

    # =========================================================================
    # Procedures and Functions
    # =========================================================================

    async def rpc(self, name: str, args: dict[str, Any] | None = None) -> Any:
        return await self._request(
            "rpc", name, "POST", f"{self.rest_url}/rpc/{name}", json=args or {}
        )

    async def invoke_function(self, name: str, payload: dict[str, Any] | None = None) -> Any:
        return await self._request(
            "function", name, "POST", f"{self.functions_url}/{name}", json=payload or {}
        )

    # =========================================================================
    # Live Channels
    # =========================================================================

    async def subscribe(self, entity_type: str, filters: Filters = ()) -> Channel:
        """Open a channel fed by polling for rows at or after the latest one seen.

        The watermark starts at the newest matching row, so rows that existed
        before the subscription are never delivered as inserts. Rows sharing
        the watermark timestamp are told apart by primary key.
        """
        pk = primary_key(entity_type)
        latest = await self.query(entity_type, filters, desc("created_at"), limit=1)
        watermark = latest[0].get("created_at") if latest else None
        seen = {latest[0].get(pk)} if latest else set()

        channel = Channel(entity_type, filters)
        self._channels[channel.id] = channel
        self._pollers[channel.id] = asyncio.get_running_loop().create_task(
            self._poll_channel(channel, watermark, seen)
        )
        logger.debug("Polling channel opened", entity_type=entity_type, channel=channel.id)
        return channel

    async def unsubscribe(self, channel: Channel) -> None:
        self._channels.pop(channel.id, None)
        task = self._pollers.pop(channel.id, None)
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        channel.close()

    async def _poll_channel(self, channel: Channel, watermark: str | None, seen: set[Any]) -> None:
        pk = primary_key(channel.entity_type)
        while not channel.closed:
            await asyncio.sleep(self._poll_seconds)
            filters = tuple(channel.filters)
            if watermark is not None:
                filters += (gte("created_at", watermark),)
            try:
                rows = await self.query(channel.entity_type, filters, asc("created_at"))
            except StoreError as e:
                logger.warning(
                    "Live channel poll failed",
                    entity_type=channel.entity_type,
                    channel=channel.id,
                    error=str(e),
                )
                continue
            for row in rows:
                key = row.get(pk)
                created = row.get("created_at") or watermark
                if created == watermark and key in seen:
                    continue
                channel.offer(InsertEvent(entity_type=channel.entity_type, row=row))
                if created != watermark:
                    watermark, seen = created, set()
                seen.add(key)


__all__ = ["AsyncStoreClient"]
