import logging
from typing import Annotated, AsyncIterable

from dishka import Provider, Scope, provide, FromComponent
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.database.base import Base
from core.environment.config import Settings


async def init_db(engine: AsyncEngine) -> None:
    """
    Create all tables declared on the model metadata.

    Parameters
    ----------
    engine : AsyncEngine
        SQLAlchemy async engine
    """
    # registers the portfolio tables on Base.metadata
    import portfolio.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logging.getLogger("portfolio_api").info("Database schema initialized")


class DatabaseProvider(Provider):
    """
    Provider for the relational store: engine, session factory and sessions.
    """

    component = "database"

    @provide(scope=Scope.APP)
    async def provide_engine(
        self,
        settings: Annotated[Settings, FromComponent("environment")]
    ) -> AsyncIterable[AsyncEngine]:
        """
        Create the async engine and dispose it on shutdown.

        Parameters
        ----------
        settings : Settings
            Application settings

        Yields
        ------
        AsyncEngine
            SQLAlchemy async engine
        """
        engine = create_async_engine(settings.database_url)
        try:
            yield engine
        finally:
            await engine.dispose()

    @provide(scope=Scope.APP)
    def provide_session_factory(
        self,
        engine: Annotated[AsyncEngine, FromComponent("database")]
    ) -> async_sessionmaker[AsyncSession]:
        """
        Provide session factory.

        Sessions are not shared between concurrent tasks; background work opens
        its own sessions from this factory.
        """
        return async_sessionmaker(bind=engine, expire_on_commit=False)

    @provide(scope=Scope.REQUEST)
    async def provide_session(
        self,
        session_factory: Annotated[
            async_sessionmaker[AsyncSession], FromComponent("database")
        ]
    ) -> AsyncIterable[AsyncSession]:
        """
        Provide a request-scoped session.

        Yields
        ------
        AsyncSession
            Session closed when the request scope exits
        """
        async with session_factory() as session:
            yield session
