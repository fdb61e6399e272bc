import json
import logging

import pytest

from core.redis.providers import CacheService
from portfolio.fetch import FetchCache, FetchOutcome, HttpResponse, RetryPolicy


class ScriptedTransport:
    """Transport returning prepared responses in order and recording URLs."""

    def __init__(self, *responses: HttpResponse):
        self.responses = list(responses)
        self.calls: list[str] = []

    async def get(self, url, headers=None):
        self.calls.append(url)
        return self.responses.pop(0)


def make_fetch_cache(transport, memory_redis, sleep) -> FetchCache:
    return FetchCache(
        transport=transport,
        cache_service=CacheService(memory_redis),
        policy=RetryPolicy(sleep=sleep),
        logger=logging.getLogger("test")
    )


class TestRetryPolicy:
    """
    Unit tests for status classification and delays.
    """

    @pytest.mark.parametrize("status,outcome", [
        (200, FetchOutcome.SUCCESS),
        (204, FetchOutcome.SUCCESS),
        (404, FetchOutcome.NOT_FOUND),
        (429, FetchOutcome.RATE_LIMITED),
        (500, FetchOutcome.RETRY),
        (403, FetchOutcome.RETRY),
    ])
    def test_classify(self, status, outcome):
        assert RetryPolicy.classify(status) is outcome

    def test_rate_limit_delay_uses_retry_after(self):
        policy = RetryPolicy()
        assert policy.retry_delay(FetchOutcome.RATE_LIMITED, 1, {"retry-after": "7"}) == 7.0

    def test_rate_limit_delay_has_floor(self):
        policy = RetryPolicy()
        assert policy.retry_delay(FetchOutcome.RATE_LIMITED, 1, {"Retry-After": "1"}) == 2.0
        assert policy.retry_delay(FetchOutcome.RATE_LIMITED, 1, {}) == 2.0
        assert policy.retry_delay(FetchOutcome.RATE_LIMITED, 1, {"Retry-After": "soon"}) == 2.0

    @pytest.mark.parametrize("value", ["inf", "-inf", "nan"])
    def test_rate_limit_delay_ignores_non_finite_retry_after(self, value):
        policy = RetryPolicy()
        assert policy.retry_delay(FetchOutcome.RATE_LIMITED, 1, {"Retry-After": value}) == 2.0

    def test_transient_delay_is_linear(self):
        policy = RetryPolicy()
        delays = [policy.retry_delay(FetchOutcome.RETRY, n, {}) for n in (1, 2, 3, 4)]
        assert delays == [0.5, 1.0, 1.5, 2.0]


class TestFetchCache:
    """
    Unit tests for the read-through cache around upstream calls.
    """

    @pytest.mark.asyncio
    async def test_success_is_cached_once(self, memory_redis, sleep):
        transport = ScriptedTransport(HttpResponse(200, {}, {"id": "usd-coin"}))
        fetch_cache = make_fetch_cache(transport, memory_redis, sleep)

        first = await fetch_cache.fetch("https://x/coin", "k", ttl=60)
        second = await fetch_cache.fetch("https://x/coin", "k", ttl=60)

        assert first == second == {"id": "usd-coin"}
        assert len(transport.calls) == 1
        assert memory_redis.writes == [("k", 60)]
        assert json.loads(memory_redis.store["k"]) == {"id": "usd-coin"}

    @pytest.mark.asyncio
    async def test_live_cache_entry_skips_network(self, memory_redis, sleep):
        memory_redis.store["k"] = json.dumps({"cached": True})
        transport = ScriptedTransport()
        fetch_cache = make_fetch_cache(transport, memory_redis, sleep)

        assert await fetch_cache.fetch("https://x", "k", ttl=60) == {"cached": True}
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_not_found_returns_none_without_retry_or_cache(self, memory_redis, sleep):
        transport = ScriptedTransport(HttpResponse(404))
        fetch_cache = make_fetch_cache(transport, memory_redis, sleep)

        assert await fetch_cache.fetch("https://x", "k", ttl=60) is None
        assert len(transport.calls) == 1
        assert memory_redis.writes == []
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limited_waits_retry_after(self, memory_redis, sleep):
        transport = ScriptedTransport(
            HttpResponse(429, {"Retry-After": "5"}),
            HttpResponse(200, {}, [1, 2]),
        )
        fetch_cache = make_fetch_cache(transport, memory_redis, sleep)

        assert await fetch_cache.fetch("https://x", "k", ttl=60) == [1, 2]
        assert [c.args[0] for c in sleep.await_args_list] == [5.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_four_attempts(self, memory_redis, sleep):
        transport = ScriptedTransport(*[HttpResponse(503) for _ in range(4)])
        fetch_cache = make_fetch_cache(transport, memory_redis, sleep)

        assert await fetch_cache.fetch("https://x", "k", ttl=60) is None
        assert len(transport.calls) == 4
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0, 1.5, 2.0]
        assert memory_redis.writes == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(self, memory_redis, sleep):
        transport = ScriptedTransport(HttpResponse(500), HttpResponse(200, {}, {"ok": 1}))
        fetch_cache = make_fetch_cache(transport, memory_redis, sleep)

        assert await fetch_cache.fetch("https://x", "k", ttl=60) == {"ok": 1}
        assert len(transport.calls) == 2
