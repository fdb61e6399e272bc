import asyncio
import logging
from fractions import Fraction
from typing import Mapping, Sequence, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portfolio.clients import CoinGeckoClient, MoralisClient
from portfolio.entities import (
    BalanceEntity,
    HoldingEntity,
    IngestResultEntity,
    TokenEntity,
)
from portfolio.fetch import Sleep
from portfolio.networks import NETWORKS, NETWORKS_BY_PLATFORM, NetworkEntity
from portfolio.repository import PortfolioRepository


T = TypeVar("T")

DEFAULT_MAX_TOKENS = 200


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """
    Split ``items`` into consecutive groups of at most ``size`` elements.
    """
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BalanceIngestor:
    """
    Synchronous phase of ingest: fetch raw balances and persist them.

    Parameters
    ----------
    balance_client : MoralisClient
        Balance provider client
    logger : logging.Logger
        Logger instance
    max_tokens : int
        Default cap on balances kept per network
    networks : Sequence[NetworkEntity]
        Networks to ingest
    """

    def __init__(
        self,
        balance_client: MoralisClient,
        logger: logging.Logger,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        networks: Sequence[NetworkEntity] = NETWORKS
    ):
        self.balance_client = balance_client
        self.logger = logger
        self.max_tokens = max_tokens
        self.networks = networks

    async def ingest(
        self,
        session: AsyncSession,
        address: str,
        limit: int | None = None
    ) -> IngestResultEntity:
        """
        Fetch balances for ``address`` on every network and write them.

        Balances beyond the cap are dropped in provider order, not by value.
        All networks are fetched before anything is written, so a provider
        failure leaves the store untouched. The caller commits.

        Parameters
        ----------
        session : AsyncSession
            Session whose transaction receives the writes
        address : str
            Normalized wallet address
        limit : int | None
            Per-call override of the cap

        Returns
        -------
        IngestResultEntity
            Number of balances written and the touched contracts per platform

        Raises
        ------
        UpstreamUnavailableException
            If the balance provider fails for any network
        """
        cap = limit or self.max_tokens
        fetched = []
        for network in self.networks:
            balances = await self.balance_client.get_balances(address, network.balance_chain)
            kept = balances[:cap]
            if len(balances) > cap:
                self.logger.info(
                    f"{network.slug}: keeping first {cap} of {len(balances)} balances for {address}"
                )
            fetched.append((network, kept))

        repo = PortfolioRepository(session)
        await repo.seed_networks()
        await repo.ensure_address(address)

        inserted = 0
        touched: dict[str, list[str]] = {}
        for network, balances in fetched:
            contracts = list(dict.fromkeys(b.contract_address.lower() for b in balances))

            # token rows first so no balance ever points at a missing token
            for contract in contracts:
                await repo.ensure_placeholder_token(contract, network.id)

            for balance in balances:
                await repo.upsert_balance(
                    BalanceEntity(
                        address_id=address,
                        contract=balance.contract_address.lower(),
                        network_id=network.id,
                        raw_balance=balance.raw_balance
                    )
                )
                inserted += 1

            touched[network.price_platform] = contracts
            self.logger.info(
                f"{network.slug}: stored {len(balances)} balances "
                f"({len(contracts)} contracts) for {address}"
            )

        return IngestResultEntity(
            address=address,
            inserted_count=inserted,
            touched_contracts=touched
        )


class EnrichmentEngine:
    """
    Background phase of ingest: resolve token metadata and USD prices.

    Metadata lookups run concurrently inside a group and groups run one
    after another with a fixed pause; price batches are sequential too.
    Failures are logged and never propagate.

    Parameters
    ----------
    coingecko_client : CoinGeckoClient
        Metadata and price client
    session_factory : async_sessionmaker[AsyncSession]
        Factory for short-lived sessions, one per unit of work
    logger : logging.Logger
        Logger instance
    sleep : Sleep
        Awaitable sleep used for throttling
    """

    META_GROUP = 10
    META_SLEEP = 1.5
    PRICE_GROUP = 50
    PRICE_SLEEP = 0.5
    CURRENCY = "usd"

    def __init__(
        self,
        coingecko_client: CoinGeckoClient,
        session_factory: async_sessionmaker[AsyncSession],
        logger: logging.Logger,
        sleep: Sleep = asyncio.sleep
    ):
        self.coingecko = coingecko_client
        self.session_factory = session_factory
        self.logger = logger
        self.sleep = sleep

    async def enrich(self, touched_contracts: Mapping[str, Sequence[str]]) -> None:
        """
        Enrich every contract touched by an ingest. Never raises.

        Parameters
        ----------
        touched_contracts : Mapping[str, Sequence[str]]
            Contracts per price platform
        """
        snapshot = {platform: tuple(contracts) for platform, contracts in touched_contracts.items()}
        try:
            await self._enrich(snapshot)
        except Exception:
            self.logger.exception("Background enrichment aborted")

    async def _enrich(self, touched_contracts: Mapping[str, Sequence[str]]) -> None:
        price_feed_ids: list[str] = []

        for platform, contracts in touched_contracts.items():
            network = NETWORKS_BY_PLATFORM.get(platform)
            if network is None or not contracts:
                continue

            unique = list(dict.fromkeys(c.lower() for c in contracts))
            groups = chunk(unique, self.META_GROUP)
            for number, group in enumerate(groups, start=1):
                results = await asyncio.gather(
                    *(self._resolve_token(network, contract) for contract in group),
                    return_exceptions=True
                )
                for contract, result in zip(group, results):
                    if isinstance(result, Exception):
                        self.logger.warning(
                            f"Metadata for {contract} on {network.slug} failed: {result}"
                        )
                    elif result:
                        price_feed_ids.append(result)

                self.logger.info(
                    f"{network.slug}: metadata group {number}/{len(groups)} done"
                )
                await self.sleep(self.META_SLEEP)

        ids = list(dict.fromkeys(price_feed_ids))
        if not ids:
            return

        for group in chunk(ids, self.PRICE_GROUP):
            try:
                await self._store_prices(group)
            except Exception as e:
                self.logger.warning(f"Price batch of {len(group)} ids failed: {e}")
            await self.sleep(self.PRICE_SLEEP)

    async def _resolve_token(self, network: NetworkEntity, contract: str) -> str | None:
        """
        Resolve one token and return its price-feed id, if any.
        """
        async with self.session_factory() as session:
            existing = await PortfolioRepository(session).get_token(contract, network.id)
        if existing and existing.price_feed_id:
            return existing.price_feed_id

        metadata = await self.coingecko.get_token_metadata(network.price_platform, contract)

        async with self.session_factory() as session, session.begin():
            repo = PortfolioRepository(session)
            if metadata is None:
                await repo.ensure_placeholder_token(contract, network.id)
                return None
            await repo.upsert_token(TokenEntity.resolved(contract, network.id, metadata))

        return metadata.price_feed_id

    async def _store_prices(self, ids: list[str]) -> None:
        quotes = await self.coingecko.get_prices(ids, self.CURRENCY)
        if not quotes:
            return
        async with self.session_factory() as session, session.begin():
            repo = PortfolioRepository(session)
            for price_feed_id in ids:
                if price_feed_id in quotes:
                    await repo.upsert_price(price_feed_id, self.CURRENCY, quotes[price_feed_id])
        self.logger.info(f"Stored {len(quotes)} prices")


class PortfolioAggregator:
    """
    Read-only valuation of the balances stored for an address.
    """

    CURRENCY = "usd"

    async def get_portfolio(self, session: AsyncSession, address: str) -> list[HoldingEntity]:
        """
        Join balances with tokens and prices and sort by value.

        Parameters
        ----------
        session : AsyncSession
            Session used for reads only
        address : str
            Normalized wallet address

        Returns
        -------
        list[HoldingEntity]
            Holdings sorted by USD value (unpriced last), then by amount
        """
        repo = PortfolioRepository(session)
        holdings = []
        for balance in await repo.get_balances(address):
            token = await repo.get_token(balance.contract, balance.network_id)
            if token is None:
                token = TokenEntity.placeholder(balance.contract, balance.network_id)

            price = None
            if token.price_feed_id:
                price = await repo.get_price(token.price_feed_id, self.CURRENCY)

            amount = to_amount(balance.raw_balance, token.decimals)
            holdings.append(
                HoldingEntity(
                    network_id=balance.network_id,
                    contract=balance.contract,
                    symbol=token.symbol,
                    name=token.name,
                    decimals=token.decimals,
                    amount=amount,
                    usd=amount * price if price is not None else None,
                    logo=token.logo
                )
            )
        return sort_holdings(holdings)


def to_amount(raw_balance: str, decimals: int) -> float:
    """
    Convert base units to a display amount.

    The division is exact; only the result is rounded to a float.

    Parameters
    ----------
    raw_balance : str
        Balance in base units
    decimals : int
        Token decimals

    Returns
    -------
    float
        Human-readable amount
    """
    return float(Fraction(int(raw_balance or "0"), 10 ** decimals))


def sort_holdings(holdings: list[HoldingEntity]) -> list[HoldingEntity]:
    """
    Sort by USD value descending with unpriced holdings after every priced
    one, ties broken by amount descending.
    """
    return sorted(
        holdings,
        key=lambda h: (h.usd is not None, h.usd or 0.0, h.amount),
        reverse=True
    )
