import asyncio
import logging
import math
from typing import Any
from urllib.parse import quote

import aiohttp

from core.exceptions import UpstreamUnavailableException
from portfolio.entities import (
    DEFAULT_DECIMALS,
    PLACEHOLDER_NAME,
    ProviderBalanceEntity,
    TokenMetadataEntity,
)
from portfolio.fetch import FetchCache, HttpTransport, RetryPolicy


METADATA_TTL = 24 * 3600
PRICES_TTL = 120


class MoralisClient:
    """
    Balance provider client for the Moralis Web3 Data API.

    Parameters
    ----------
    transport : HttpTransport
        HTTP transport
    policy : RetryPolicy
        Retry policy for transient failures
    api_key : str
        Moralis API key
    base_url : str
        API base URL
    logger : logging.Logger
        Logger instance
    user_agent : str
        User-Agent header value
    """

    def __init__(
        self,
        transport: HttpTransport,
        policy: RetryPolicy,
        api_key: str,
        base_url: str,
        logger: logging.Logger,
        user_agent: str = "portfolio-api/1.0"
    ):
        self.transport = transport
        self.policy = policy
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.logger = logger
        self.user_agent = user_agent

    async def get_balances(self, address: str, chain: str) -> list[ProviderBalanceEntity]:
        """
        Fetch ERC-20 balances of ``address`` on ``chain``.

        Parameters
        ----------
        address : str
            Wallet address
        chain : str
            Moralis chain identifier (eth, avalanche)

        Returns
        -------
        list[ProviderBalanceEntity]
            Balances in provider order

        Raises
        ------
        UpstreamUnavailableException
            If the provider cannot be reached or keeps failing
        """
        url = f"{self.base_url}/{address}/erc20?chain={quote(chain)}"
        headers = {
            "x-api-key": self.api_key,
            "Accept": "application/json",
            "User-Agent": self.user_agent
        }

        try:
            response = await self.policy.run(
                lambda: self.transport.get(url, headers),
                logger=self.logger
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamUnavailableException(f"Balance provider request failed: {e}")

        if response is None:
            raise UpstreamUnavailableException(
                f"Balance provider unavailable for chain {chain}"
            )

        return [
            ProviderBalanceEntity(
                contract_address=str(item.get("token_address") or "").lower(),
                raw_balance=str(item.get("balance") if item.get("balance") is not None else "0")
            )
            for item in (response.body or [])
        ]


class CoinGeckoClient:
    """
    Metadata and price client for the CoinGecko API.

    Parameters
    ----------
    fetch_cache : FetchCache
        Cached, rate-limit aware fetcher
    base_url : str
        API base URL
    headers : dict[str, str]
        Headers sent with every request
    """

    def __init__(self, fetch_cache: FetchCache, base_url: str, headers: dict[str, str]):
        self.fetch_cache = fetch_cache
        self.base_url = base_url.rstrip("/")
        self.headers = headers

    async def get_token_metadata(self, platform: str, contract: str) -> TokenMetadataEntity | None:
        """
        Resolve metadata of a token contract.

        Parameters
        ----------
        platform : str
            CoinGecko asset platform (ethereum, avalanche)
        contract : str
            Contract address (lower-case)

        Returns
        -------
        TokenMetadataEntity | None
            Metadata, or None if the token is unknown or the service unavailable
        """
        url = f"{self.base_url}/coins/{platform}/contract/{contract}"
        payload = await self.fetch_cache.fetch(
            url,
            cache_key=f"cg:coins:{platform}:{contract}",
            ttl=METADATA_TTL,
            headers=self.headers
        )
        if not payload:
            return None
        return parse_token_metadata(payload, platform)

    async def get_prices(self, ids: list[str], currency: str = "usd") -> dict[str, float]:
        """
        Fetch quotes for a batch of price-feed ids.

        Parameters
        ----------
        ids : list[str]
            Price-feed ids; the cache key uses them in sorted order
        currency : str
            Quote currency

        Returns
        -------
        dict[str, float]
            Finite quotes by id; ids without a usable quote are omitted
        """
        ordered = sorted(ids)
        joined = ",".join(ordered)
        url = (
            f"{self.base_url}/simple/price"
            f"?ids={quote(joined, safe='')}&vs_currencies={quote(currency)}"
        )
        payload = await self.fetch_cache.fetch(
            url,
            cache_key=f"cg:prices:{currency}:{joined}",
            ttl=PRICES_TTL,
            headers=self.headers
        )
        if not isinstance(payload, dict):
            return {}

        quotes = {}
        for price_feed_id in ordered:
            value = (payload.get(price_feed_id) or {}).get(currency)
            if _is_finite_number(value):
                quotes[price_feed_id] = float(value)
        return quotes


def parse_token_metadata(payload: dict[str, Any], platform: str) -> TokenMetadataEntity:
    """
    Extract token metadata from a CoinGecko ``coins/{platform}/contract`` payload.

    Parameters
    ----------
    payload : dict[str, Any]
        Decoded response
    platform : str
        Asset platform whose decimals apply

    Returns
    -------
    TokenMetadataEntity
        Parsed metadata with defaults for missing fields
    """
    symbol = payload.get("symbol")
    detail = (payload.get("detail_platforms") or {}).get(platform) or {}
    decimal_place = detail.get("decimal_place")
    image = payload.get("image") or {}

    return TokenMetadataEntity(
        price_feed_id=payload.get("id") or None,
        name=payload.get("name") or PLACEHOLDER_NAME,
        symbol=symbol.upper() if isinstance(symbol, str) else "TKN",
        decimals=int(decimal_place) if decimal_place is not None else DEFAULT_DECIMALS,
        logo=image.get("small")
    )


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
