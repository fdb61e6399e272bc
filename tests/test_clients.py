import logging
from unittest.mock import AsyncMock

import pytest

from core.exceptions import UpstreamUnavailableException
from portfolio.clients import CoinGeckoClient, MoralisClient, parse_token_metadata
from portfolio.fetch import HttpResponse, RetryPolicy


class TestParseTokenMetadata:
    """
    Unit tests for CoinGecko metadata extraction.
    """

    def test_full_payload(self):
        payload = {
            "id": "usd-coin",
            "name": "USDC",
            "symbol": "usdc",
            "detail_platforms": {"avalanche": {"decimal_place": 6}},
            "image": {"small": "https://img/usdc-small.png", "large": "https://img/usdc.png"},
        }
        metadata = parse_token_metadata(payload, "avalanche")

        assert metadata.price_feed_id == "usd-coin"
        assert metadata.symbol == "USDC"
        assert metadata.decimals == 6
        assert metadata.logo == "https://img/usdc-small.png"

    def test_decimals_come_from_requested_platform(self):
        payload = {
            "id": "t",
            "symbol": "t",
            "name": "T",
            "detail_platforms": {"ethereum": {"decimal_place": 8}},
        }
        assert parse_token_metadata(payload, "avalanche").decimals == 18
        assert parse_token_metadata(payload, "ethereum").decimals == 8

    def test_missing_fields_use_defaults(self):
        metadata = parse_token_metadata({}, "ethereum")

        assert metadata.price_feed_id is None
        assert metadata.name == "Unknown"
        assert metadata.symbol == "TKN"
        assert metadata.decimals == 18
        assert metadata.logo is None


class TestCoinGeckoClient:
    """
    Unit tests for request shaping and quote filtering.
    """

    @pytest.mark.asyncio
    async def test_metadata_request_is_cached_for_a_day(self):
        fetch_cache = AsyncMock()
        fetch_cache.fetch = AsyncMock(return_value=None)
        client = CoinGeckoClient(fetch_cache, "https://cg/api/v3/", {})

        assert await client.get_token_metadata("ethereum", "0xabc") is None
        args, kwargs = fetch_cache.fetch.call_args
        assert args[0] == "https://cg/api/v3/coins/ethereum/contract/0xabc"
        assert kwargs["cache_key"] == "cg:coins:ethereum:0xabc"
        assert kwargs["ttl"] == 86400

    @pytest.mark.asyncio
    async def test_prices_keep_only_finite_numbers(self):
        fetch_cache = AsyncMock()
        fetch_cache.fetch = AsyncMock(return_value={
            "bitcoin": {"usd": 60000},
            "usd-coin": {"usd": 1.0},
            "broken": {"usd": "n/a"},
            "nan": {"usd": float("nan")},
        })
        client = CoinGeckoClient(fetch_cache, "https://cg", {})

        quotes = await client.get_prices(["usd-coin", "nan", "bitcoin", "broken", "missing"])

        assert quotes == {"bitcoin": 60000.0, "usd-coin": 1.0}
        kwargs = fetch_cache.fetch.call_args.kwargs
        assert kwargs["cache_key"] == "cg:prices:usd:bitcoin,broken,missing,nan,usd-coin"
        assert kwargs["ttl"] == 120

    @pytest.mark.asyncio
    async def test_prices_unavailable(self):
        fetch_cache = AsyncMock()
        fetch_cache.fetch = AsyncMock(return_value=None)
        client = CoinGeckoClient(fetch_cache, "https://cg", {})

        assert await client.get_prices(["bitcoin"]) == {}


class TestMoralisClient:
    """
    Unit tests for the balance provider client.
    """

    def make_client(self, *responses, sleep=None):
        transport = AsyncMock()
        transport.get = AsyncMock(side_effect=list(responses))
        return MoralisClient(
            transport=transport,
            policy=RetryPolicy(sleep=sleep or AsyncMock()),
            api_key="key",
            base_url="https://moralis/api/v2.2",
            logger=logging.getLogger("test"),
            user_agent="portfolio-test/1.0"
        ), transport

    @pytest.mark.asyncio
    async def test_maps_balances_in_provider_order(self, wallet):
        client, transport = self.make_client(HttpResponse(200, {}, [
            {"token_address": "0xAAA", "balance": "100"},
            {"token_address": "0xbbb", "balance": None},
        ]))

        balances = await client.get_balances(wallet, "eth")

        assert [(b.contract_address, b.raw_balance) for b in balances] == [
            ("0xaaa", "100"),
            ("0xbbb", "0"),
        ]
        url, headers = transport.get.call_args.args
        assert url == f"https://moralis/api/v2.2/{wallet}/erc20?chain=eth"
        assert headers["x-api-key"] == "key"
        assert headers["User-Agent"] == "portfolio-test/1.0"

    @pytest.mark.asyncio
    async def test_failure_raises_upstream_unavailable(self, wallet):
        client, _ = self.make_client(*[HttpResponse(500) for _ in range(4)])

        with pytest.raises(UpstreamUnavailableException):
            await client.get_balances(wallet, "avalanche")
