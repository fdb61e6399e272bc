from dishka import Provider, Scope, provide, FromComponent
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from portfolio.clients import CoinGeckoClient, MoralisClient
from portfolio.fetch import FetchCache, HttpTransport, RetryPolicy
from portfolio.services import BalanceIngestor, EnrichmentEngine, PortfolioAggregator
from portfolio.usecases import (
    GetPortfolioUseCase,
    GetStatsUseCase,
    IngestWalletUseCase,
    SeedWalletUseCase,
)
from typing import Annotated
from core.environment.config import Settings
from core.redis.providers import CacheService
import logging


class PortfolioProvider(Provider):
    """
    Provider for portfolio-related dependencies.
    """

    component = "portfolio"

    @provide(scope=Scope.APP)
    def get_transport(self) -> HttpTransport:
        return HttpTransport()

    @provide(scope=Scope.APP)
    def get_retry_policy(self) -> RetryPolicy:
        return RetryPolicy()

    @provide(scope=Scope.APP)
    def get_fetch_cache(
        self,
        transport: Annotated[HttpTransport, FromComponent("portfolio")],
        policy: Annotated[RetryPolicy, FromComponent("portfolio")],
        cache_service: Annotated[CacheService, FromComponent("cache")],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> FetchCache:
        """
        Provide the cached, rate-limit aware fetcher.

        Parameters
        ----------
        transport : HttpTransport
            HTTP transport
        policy : RetryPolicy
            Retry policy
        cache_service : CacheService
            Cache service instance
        logger : logging.Logger
            Logger instance

        Returns
        -------
        FetchCache
            Fetch cache instance
        """
        return FetchCache(
            transport=transport,
            cache_service=cache_service,
            policy=policy,
            logger=logger
        )

    @provide(scope=Scope.APP)
    def get_moralis_client(
        self,
        transport: Annotated[HttpTransport, FromComponent("portfolio")],
        policy: Annotated[RetryPolicy, FromComponent("portfolio")],
        settings: Annotated[Settings, FromComponent("environment")],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> MoralisClient:
        """
        Provide the balance provider client.
        """
        return MoralisClient(
            transport=transport,
            policy=policy,
            api_key=settings.moralis_api_key,
            base_url=settings.moralis_base_url,
            logger=logger,
            user_agent=settings.user_agent
        )

    @provide(scope=Scope.APP)
    def get_coingecko_client(
        self,
        fetch_cache: Annotated[FetchCache, FromComponent("portfolio")],
        settings: Annotated[Settings, FromComponent("environment")]
    ) -> CoinGeckoClient:
        """
        Provide the metadata and price client.
        """
        return CoinGeckoClient(
            fetch_cache=fetch_cache,
            base_url=settings.coingecko_base_url,
            headers=settings.get_coingecko_headers()
        )

    @provide(scope=Scope.APP)
    def get_ingestor(
        self,
        moralis_client: Annotated[MoralisClient, FromComponent("portfolio")],
        settings: Annotated[Settings, FromComponent("environment")],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> BalanceIngestor:
        """
        Provide balance ingestor.

        Parameters
        ----------
        moralis_client : MoralisClient
            Balance provider client
        settings : Settings
            Application settings
        logger : logging.Logger
            Logger instance

        Returns
        -------
        BalanceIngestor
            Balance ingestor capped at ``settings.ingest_max_tokens``
        """
        return BalanceIngestor(
            balance_client=moralis_client,
            logger=logger,
            max_tokens=settings.ingest_max_tokens
        )

    @provide(scope=Scope.APP)
    def get_enrichment_engine(
        self,
        coingecko_client: Annotated[CoinGeckoClient, FromComponent("portfolio")],
        session_factory: Annotated[
            async_sessionmaker[AsyncSession], FromComponent("database")
        ],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> EnrichmentEngine:
        """
        Provide enrichment engine.

        It outlives requests, so it gets the session factory rather than a
        request-scoped session.
        """
        return EnrichmentEngine(
            coingecko_client=coingecko_client,
            session_factory=session_factory,
            logger=logger
        )

    @provide(scope=Scope.APP)
    def get_aggregator(self) -> PortfolioAggregator:
        return PortfolioAggregator()

    @provide(scope=Scope.APP)
    def get_seed_wallet_use_case(
        self,
        ingestor: Annotated[BalanceIngestor, FromComponent("portfolio")],
        enrichment_engine: Annotated[EnrichmentEngine, FromComponent("portfolio")],
        session_factory: Annotated[
            async_sessionmaker[AsyncSession], FromComponent("database")
        ],
        cache_service: Annotated[CacheService, FromComponent("cache")],
        settings: Annotated[Settings, FromComponent("environment")],
        logger: Annotated[logging.Logger, FromComponent("logger")]
    ) -> SeedWalletUseCase:
        """
        Provide startup seed use case.
        """
        return SeedWalletUseCase(
            ingestor=ingestor,
            enrichment_engine=enrichment_engine,
            session_factory=session_factory,
            cache_service=cache_service,
            settings=settings,
            logger=logger
        )

    @provide(scope=Scope.REQUEST)
    def get_ingest_wallet_use_case(
        self,
        ingestor: Annotated[BalanceIngestor, FromComponent("portfolio")],
        session: Annotated[AsyncSession, FromComponent("database")],
        settings: Annotated[Settings, FromComponent("environment")]
    ) -> IngestWalletUseCase:
        """
        Provide ingest wallet use case.

        Parameters
        ----------
        ingestor : BalanceIngestor
            Balance ingestor
        session : AsyncSession
            Request-scoped session
        settings : Settings
            Application settings

        Returns
        -------
        IngestWalletUseCase
            Ingest wallet use case
        """
        return IngestWalletUseCase(
            ingestor=ingestor,
            session=session,
            settings=settings
        )

    @provide(scope=Scope.REQUEST)
    def get_portfolio_use_case(
        self,
        aggregator: Annotated[PortfolioAggregator, FromComponent("portfolio")],
        session: Annotated[AsyncSession, FromComponent("database")]
    ) -> GetPortfolioUseCase:
        """
        Provide get portfolio use case.
        """
        return GetPortfolioUseCase(aggregator=aggregator, session=session)

    @provide(scope=Scope.REQUEST)
    def get_stats_use_case(
        self,
        session: Annotated[AsyncSession, FromComponent("database")]
    ) -> GetStatsUseCase:
        return GetStatsUseCase(session=session)
