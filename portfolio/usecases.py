import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.environment.config import Settings
from core.exceptions import InvalidAddressException, MissingAddressException
from core.redis.providers import CacheService
from portfolio.entities import IngestResultEntity
from portfolio.repository import PortfolioRepository
from portfolio.schemas import (
    HoldingResponse,
    PortfolioResponse,
    StatsResponse,
    normalize_address,
)
from portfolio.services import BalanceIngestor, EnrichmentEngine, PortfolioAggregator


def resolve_address(address: str | None, settings: Settings) -> str:
    """
    Pick the requested address or fall back to the configured seed address.

    Raises
    ------
    MissingAddressException
        If neither is available
    InvalidAddressException
        If the seed address is malformed
    """
    if address:
        return address
    if not settings.seed_address:
        raise MissingAddressException()
    try:
        return normalize_address(settings.seed_address)
    except ValueError:
        raise InvalidAddressException("error.address.seed_invalid")


class IngestWalletUseCase:
    """
    Use case for the synchronous ingest phase.

    Balances are committed before the result is returned, so they are
    visible to portfolio reads before any enrichment is scheduled.

    Parameters
    ----------
    ingestor : BalanceIngestor
        Balance ingestor
    session : AsyncSession
        Request-scoped session
    settings : Settings
        Application settings
    """

    def __init__(self, ingestor: BalanceIngestor, session: AsyncSession, settings: Settings):
        self.ingestor = ingestor
        self.session = session
        self.settings = settings

    async def __call__(self, address: str | None, limit: int | None = None) -> IngestResultEntity:
        """
        Execute use case.

        Parameters
        ----------
        address : str | None
            Normalized wallet address
        limit : int | None
            Per-network balance cap

        Returns
        -------
        IngestResultEntity
            Written count and touched contracts for enrichment
        """
        address = resolve_address(address, self.settings)
        async with self.session.begin():
            return await self.ingestor.ingest(self.session, address, limit)


class GetPortfolioUseCase:
    """
    Use case for reading a valued portfolio.
    """

    def __init__(self, aggregator: PortfolioAggregator, session: AsyncSession):
        self.aggregator = aggregator
        self.session = session

    async def __call__(self, address: str) -> PortfolioResponse:
        holdings = await self.aggregator.get_portfolio(self.session, address)
        return PortfolioResponse(
            address=address,
            items=[HoldingResponse.model_validate(holding) for holding in holdings]
        )


class GetStatsUseCase:
    """
    Use case for store row counts.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def __call__(self) -> StatsResponse:
        stats = await PortfolioRepository(self.session).get_stats()
        return StatsResponse.model_validate(stats)


class SeedWalletUseCase:
    """
    Startup ingest of the configured seed address, once per cache TTL.

    Parameters
    ----------
    ingestor : BalanceIngestor
        Balance ingestor
    enrichment_engine : EnrichmentEngine
        Background enrichment engine
    session_factory : async_sessionmaker[AsyncSession]
        Session factory
    cache_service : CacheService
        Cache holding the "already seeded" flag
    settings : Settings
        Application settings
    logger : logging.Logger
        Logger instance
    """

    SEEDED_TTL = 86400

    def __init__(
        self,
        ingestor: BalanceIngestor,
        enrichment_engine: EnrichmentEngine,
        session_factory: async_sessionmaker[AsyncSession],
        cache_service: CacheService,
        settings: Settings,
        logger: logging.Logger
    ):
        self.ingestor = ingestor
        self.enrichment_engine = enrichment_engine
        self.session_factory = session_factory
        self.cache = cache_service
        self.settings = settings
        self.logger = logger
        self._background: set[asyncio.Task] = set()

    async def __call__(self) -> IngestResultEntity | None:
        """
        Ingest the seed address unless it was seeded recently.

        Returns
        -------
        IngestResultEntity | None
            Ingest result, or None when nothing was done
        """
        if not self.settings.seed_address:
            return None

        cache_key = f"seeded:{self.settings.seed_address.lower()}"
        if await self.cache.get(cache_key):
            return None

        try:
            address = normalize_address(self.settings.seed_address)
            async with self.session_factory() as session, session.begin():
                result = await self.ingestor.ingest(session, address)
        except Exception as e:
            self.logger.warning(f"Auto-seed failed: {e}")
            return None

        await self.cache.set(cache_key, 1, ttl=self.SEEDED_TTL)
        task = asyncio.create_task(self.enrichment_engine.enrich(result.touched_contracts))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        self.logger.info(f"Seeded {address} with {result.inserted_count} balances")
        return result
