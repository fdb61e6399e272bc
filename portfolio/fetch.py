import asyncio
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

import aiohttp

from core.redis.providers import CacheService


Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class HttpResponse:
    """
    Minimal view of an upstream response.

    Attributes
    ----------
    status : int
        HTTP status code
    headers : Mapping[str, str]
        Response headers
    body : Any
        Decoded JSON body (only read for 2xx responses)
    """
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None


class HttpTransport:
    """
    JSON-over-HTTP GET transport backed by aiohttp.

    Parameters
    ----------
    timeout : float
        Total request timeout in seconds
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def get(self, url: str, headers: Mapping[str, str] | None = None) -> HttpResponse:
        """
        Issue a GET request.

        Parameters
        ----------
        url : str
            Absolute URL
        headers : Mapping[str, str] | None
            Request headers

        Returns
        -------
        HttpResponse
            Status, headers and the decoded body for 2xx responses
        """
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(url, headers=dict(headers or {})) as response:
                body = None
                if 200 <= response.status < 300:
                    body = await response.json(content_type=None)
                return HttpResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    body=body
                )


class FetchOutcome(Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    RETRY = "retry"


class RetryPolicy:
    """
    Status-driven retry policy for upstream JSON calls.

    - 2xx: success
    - 404: resource does not exist, stop without retrying
    - 429: wait ``Retry-After`` seconds (default and floor ``rate_limit_floor``)
    - anything else: linear backoff of ``backoff_step * attempt`` seconds

    Every outcome other than success and not-found consumes one attempt.

    Parameters
    ----------
    max_attempts : int
        Attempt budget
    rate_limit_floor : float
        Minimum wait after a 429, in seconds
    backoff_step : float
        Linear backoff increment, in seconds
    sleep : Sleep
        Awaitable sleep function
    """

    def __init__(
        self,
        max_attempts: int = 4,
        rate_limit_floor: float = 2.0,
        backoff_step: float = 0.5,
        sleep: Sleep = asyncio.sleep
    ):
        self.max_attempts = max_attempts
        self.rate_limit_floor = rate_limit_floor
        self.backoff_step = backoff_step
        self.sleep = sleep

    @staticmethod
    def classify(status: int) -> FetchOutcome:
        if 200 <= status < 300:
            return FetchOutcome.SUCCESS
        if status == 404:
            return FetchOutcome.NOT_FOUND
        if status == 429:
            return FetchOutcome.RATE_LIMITED
        return FetchOutcome.RETRY

    def retry_delay(self, outcome: FetchOutcome, attempt: int, headers: Mapping[str, str]) -> float:
        """
        Seconds to wait before the next attempt.

        Parameters
        ----------
        outcome : FetchOutcome
            RATE_LIMITED or RETRY
        attempt : int
            1-based number of the attempt that just failed
        headers : Mapping[str, str]
            Response headers of the failed attempt

        Returns
        -------
        float
            Delay in seconds
        """
        if outcome is FetchOutcome.RATE_LIMITED:
            retry_after = _header(headers, "Retry-After")
            try:
                seconds = float(retry_after) if retry_after else self.rate_limit_floor
            except ValueError:
                seconds = self.rate_limit_floor
            if not math.isfinite(seconds):
                seconds = self.rate_limit_floor
            return max(seconds, self.rate_limit_floor)
        return self.backoff_step * attempt

    async def run(
        self,
        request: Callable[[], Awaitable[HttpResponse]],
        logger: logging.Logger | None = None
    ) -> HttpResponse | None:
        """
        Execute ``request`` under this policy.

        Parameters
        ----------
        request : Callable[[], Awaitable[HttpResponse]]
            Zero-argument coroutine factory issuing one attempt
        logger : logging.Logger | None
            Logger for retry diagnostics

        Returns
        -------
        HttpResponse | None
            The successful response, or None on not-found or exhausted attempts
        """
        for attempt in range(1, self.max_attempts + 1):
            response = await request()
            outcome = self.classify(response.status)

            if outcome is FetchOutcome.SUCCESS:
                return response
            if outcome is FetchOutcome.NOT_FOUND:
                return None

            delay = self.retry_delay(outcome, attempt, response.headers)
            if logger:
                logger.warning(
                    f"Upstream returned {response.status} "
                    f"(attempt {attempt}/{self.max_attempts}), retrying in {delay:.1f}s"
                )
            await self.sleep(delay)

        return None


def _header(headers: Mapping[str, str], name: str) -> str | None:
    for key, value in headers.items():
        if key.lower() == name.lower():
            return value
    return None


class FetchCache:
    """
    Read-through cache in front of upstream JSON GET calls.

    Parameters
    ----------
    transport : HttpTransport
        HTTP transport
    cache_service : CacheService
        Key-value cache
    policy : RetryPolicy
        Retry policy applied on cache miss
    logger : logging.Logger
        Logger instance
    """

    def __init__(
        self,
        transport: HttpTransport,
        cache_service: CacheService,
        policy: RetryPolicy,
        logger: logging.Logger
    ):
        self.transport = transport
        self.cache = cache_service
        self.policy = policy
        self.logger = logger

    async def fetch(
        self,
        url: str,
        cache_key: str,
        ttl: int,
        headers: Mapping[str, str] | None = None
    ) -> Any | None:
        """
        Return cached JSON for ``cache_key`` or fetch it from ``url``.

        Parameters
        ----------
        url : str
            Upstream URL
        cache_key : str
            Cache key
        ttl : int
            Cache time to live in seconds
        headers : Mapping[str, str] | None
            Request headers

        Returns
        -------
        Any | None
            Decoded JSON, or None when the resource does not exist or the
            upstream stays unavailable
        """
        cached = await self.cache.get(cache_key)
        if cached is not None:
            self.logger.debug(f"Cache hit for {cache_key}")
            return cached

        response = await self.policy.run(
            lambda: self.transport.get(url, headers),
            logger=self.logger
        )
        if response is None:
            self.logger.debug(f"No data for {cache_key}")
            return None

        await self.cache.set(cache_key, response.body, ttl=ttl)
        return response.body
