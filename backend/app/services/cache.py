"""Redis-backed cache for short-lived report and membership data.

Usage guidelines:
- Only derived, per-household data is cached; keys are namespaced by
  household id (reports) or user id (memberships).
- Keep report TTLs short (<= 10s).  Entries are also dropped explicitly by
  ``handle_event`` whenever a receipt, category, budget or membership
  mutation is reported, so a cache hit never outlives the data it was
  computed from by more than one TTL even if an event is missed.
- The cache is an injected component.  A ``ReportCache`` without a client
  is a pass-through, which is what tests and cache-less deployments use.

Concurrent requests for the same key are coalesced: the first caller
computes, later callers await the same future.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, TypeVar

from redis import asyncio as aioredis

from app.core.config import settings
from app.core.observability import sentry_breadcrumb
from app.models.enums import MutationEvent
from app.models.schemas import ReceiptFilters

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Events that change receipt-derived reports for a household.
_HOUSEHOLD_EVENTS = frozenset(
    {
        MutationEvent.RECEIPT_CREATED,
        MutationEvent.RECEIPT_UPDATED,
        MutationEvent.RECEIPT_DELETED,
        MutationEvent.CATEGORY_CREATED,
        MutationEvent.CATEGORY_UPDATED,
        MutationEvent.CATEGORY_DELETED,
        MutationEvent.BUDGET_CREATED,
        MutationEvent.BUDGET_UPDATED,
        MutationEvent.BUDGET_DELETED,
    }
)


def filters_digest(filters: ReceiptFilters) -> str:
    """Stable short digest of a filter set (set fields are sorted)."""
    payload = filters.model_dump(mode="json")
    if payload.get("category_ids") is not None:
        payload["category_ids"] = sorted(payload["category_ids"])
    raw = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


class ReportCache:
    """Injectable cache with a TTL and event-driven invalidation."""

    def __init__(
        self,
        client: Any = None,
        ttl_seconds: int = 10,
        membership_ttl_seconds: int = 900,
        namespace: str = "hb",
    ) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.membership_ttl_seconds = membership_ttl_seconds
        self.namespace = namespace
        self._inflight: Dict[str, asyncio.Future] = {}

    @classmethod
    def from_settings(cls) -> "ReportCache":
        client = None
        if settings.REPORT_CACHE_ENABLED:
            client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        return cls(
            client=client,
            ttl_seconds=settings.REPORT_CACHE_TTL_SECONDS,
            membership_ttl_seconds=settings.MEMBERSHIP_CACHE_TTL_SECONDS,
        )

    @property
    def enabled(self) -> bool:
        return self.client is not None

    # --- Keys ----------------------------------------------------------
    def summary_key(self, household_id: int, filters: ReceiptFilters) -> str:
        return f"{self.namespace}:summary:{household_id}:{filters_digest(filters)}"

    def memberships_key(self, user_id: int) -> str:
        return f"{self.namespace}:memberships:{user_id}"

    # --- Raw JSON access (best effort) ---------------------------------
    async def get_json(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = await self.client.get(key)
        except Exception as exc:
            logger.warning("[cache] get failed key=%s err=%s", key, exc)
            return None
        return json.loads(raw) if raw is not None else None

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if not self.enabled:
            return
        try:
            await self.client.set(key, json.dumps(value), ex=ttl or self.ttl_seconds)
        except Exception as exc:
            logger.warning("[cache] set failed key=%s err=%s", key, exc)

    async def delete_pattern(self, pattern: str) -> int:
        """SCAN + DEL; returns the number of deleted keys."""
        if not self.enabled:
            return 0
        deleted = 0
        try:
            async for key in self.client.scan_iter(match=pattern):
                deleted += int(await self.client.delete(key) or 0)
        except Exception as exc:
            logger.warning("[cache] pattern delete failed pattern=%s err=%s", pattern, exc)
        return deleted

    # --- Read-through with coalescing ----------------------------------
    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        dump: Callable[[T], Any],
        load: Callable[[Any], T],
        ttl: Optional[int] = None,
    ) -> T:
        """Return the cached value for ``key`` or compute, store and return it.

        Errors raised by ``compute`` propagate to every waiting caller and
        nothing is stored.
        """
        cached = await self.get_json(key)
        if cached is not None:
            return load(cached)

        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await compute()
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unawaited failure does not log a warning.
            future.exception()
            raise
        else:
            future.set_result(value)
            await self.set_json(key, dump(value), ttl)
            return value
        finally:
            if not future.done():
                future.cancel()
            self._inflight.pop(key, None)

    # --- Invalidation --------------------------------------------------
    async def invalidate_household(self, household_id: int) -> int:
        return await self.delete_pattern(f"{self.namespace}:summary:{household_id}:*")

    async def invalidate_users(self, user_ids: Iterable[int]) -> int:
        deleted = 0
        for user_id in user_ids:
            deleted += await self.delete_pattern(self.memberships_key(user_id))
        return deleted

    async def handle_event(
        self,
        event: MutationEvent,
        household_id: int,
        user_ids: Iterable[int] = (),
    ) -> None:
        """Drop every entry the given mutation can affect."""
        if event in _HOUSEHOLD_EVENTS:
            deleted = await self.invalidate_household(household_id)
        elif event == MutationEvent.MEMBERSHIP_CHANGED:
            deleted = await self.invalidate_users(user_ids)
        else:  # pragma: no cover - exhaustive over MutationEvent
            deleted = 0
        logger.info("[cache] invalidated event=%s household=%s keys=%d", event.value, household_id, deleted)
        sentry_breadcrumb(
            category="cache",
            message="report_cache.invalidated",
            data={"event": event.value, "household_id": household_id, "keys": deleted},
        )


__all__ = ["ReportCache", "filters_digest"]
