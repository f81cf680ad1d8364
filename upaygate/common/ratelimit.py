"""Fixed-window rate limiting for order creation.

Counts live in an injected `CounterStore`. Get-then-put is not atomic, so a
burst of concurrent requests from one identity can slip a few attempts past
the cap; the limit is a soft one.
"""

import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from upaygate.common.config import GatewaySettings
from upaygate.common.errors import CounterStoreError
from upaygate.common.logging import logger
from upaygate.common.metrics import counter_store_errors_total, rate_limit_decisions_total


class CounterStore(Protocol):
    """Key-value counters with per-key expiry."""

    async def get(self, key: str) -> int | None: ...

    async def put_with_ttl(self, key: str, count: int, ttl_seconds: int) -> None: ...


class RedisCounterStore:
    """`CounterStore` backed by Redis `GET` / `SETEX`."""

    def __init__(self, client: aioredis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCounterStore":
        return cls(aioredis.from_url(url, encoding="utf-8", decode_responses=True))

    async def get(self, key: str) -> int | None:
        try:
            raw = await self.client.get(key)
        except RedisError as exc:
            raise CounterStoreError(f"counter read failed: {exc}") from exc
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError as exc:
            raise CounterStoreError(f"corrupt counter value for {key}: {raw!r}") from exc

    async def put_with_ttl(self, key: str, count: int, ttl_seconds: int) -> None:
        try:
            await self.client.setex(key, ttl_seconds, count)
        except RedisError as exc:
            raise CounterStoreError(f"counter write failed: {exc}") from exc

    async def close(self) -> None:
        await self.client.aclose()


class InMemoryCounterStore:
    """Process-local `CounterStore` for single-worker deployments and tests.

    Expired entries are swept on write once the map passes `sweep_threshold`
    entries or `sweep_interval_seconds` have elapsed since the last sweep, so
    a flood of one-off identities does not grow the map forever.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_threshold: int = 1024,
        sweep_interval_seconds: float = 60.0,
    ) -> None:
        self.clock = clock
        self.sweep_threshold = sweep_threshold
        self.sweep_interval_seconds = sweep_interval_seconds
        self._entries: dict[str, tuple[int, float]] = {}
        self._next_sweep_size = sweep_threshold
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> int | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        count, expires_at = entry
        if self.clock() >= expires_at:
            del self._entries[key]
            return None
        return count

    async def put_with_ttl(self, key: str, count: int, ttl_seconds: int) -> None:
        now = self.clock()
        if len(self._entries) >= self._next_sweep_size or now - self._last_sweep >= self.sweep_interval_seconds:
            self._sweep(now)
        self._entries[key] = (count, now + ttl_seconds)

    def _sweep(self, now: float) -> None:
        self._entries = {key: entry for key, entry in self._entries.items() if entry[1] > now}
        self._last_sweep = now
        # Live entries alone can exceed the threshold; back off so writes stay amortized O(1).
        self._next_sweep_size = max(self.sweep_threshold, 2 * len(self._entries))


class RateLimiter:
    """Admit at most `limit` attempts per identity inside one window."""

    def __init__(
        self,
        store: CounterStore | None,
        limit: int = 5,
        window_seconds: int = 60,
        key_prefix: str = "rate-limit-",
        service_name: str = "upay-gateway",
    ) -> None:
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix
        self.service_name = service_name

    def key_for(self, identity: str) -> str:
        return f"{self.key_prefix}{identity}"

    async def allow(self, identity: str) -> bool:
        """Record one attempt for `identity` and report whether it is admitted.

        Denied attempts leave the counter untouched. Without a store, or when
        the store errors, every attempt is admitted.
        """

        if self.store is None:
            self._record("disabled")
            return True
        key = self.key_for(identity)
        try:
            current = await self.store.get(key)
            if current is not None and current >= self.limit:
                self._record("denied")
                return False
            # Every admitted attempt re-arms the window TTL.
            await self.store.put_with_ttl(key, (current or 0) + 1, self.window_seconds)
        except CounterStoreError as exc:
            logger.warning("counter_store_unavailable, failing open: %s", exc)
            counter_store_errors_total.labels(service=self.service_name).inc()
            self._record("fail_open")
            return True
        self._record("allowed")
        return True

    def _record(self, decision: str) -> None:
        rate_limit_decisions_total.labels(service=self.service_name, decision=decision).inc()


def build_counter_store(cfg: GatewaySettings) -> CounterStore | None:
    """Pick the counter backend from settings; None means rate limiting is off."""

    backend = cfg.counter_store_backend.lower()
    if backend == "memory":
        return InMemoryCounterStore()
    if backend == "redis" and cfg.redis_url:
        return RedisCounterStore.from_url(cfg.redis_url)
    if backend not in ("redis", "disabled"):
        raise ValueError(f"unknown counter store backend: {cfg.counter_store_backend}")
    logger.warning("no counter store configured (backend=%s), rate limiting disabled", backend)
    return None
