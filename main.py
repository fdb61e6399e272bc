from contextlib import asynccontextmanager

from dishka import AsyncContainer
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from dishka.integrations.fastapi import setup_dishka
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from core.container import container
from core.database.providers import init_db
from core.exception_handler import (
    validation_exception_handler,
    http_exception_handler,
    starlette_exception_handler,
    custom_exception_handler
)
from core.exceptions import BaseCustomException
from portfolio.repository import PortfolioRepository
from portfolio.router import router as portfolio_router
from portfolio.usecases import SeedWalletUseCase

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create the schema, seed networks and optionally ingest the seed wallet.
    """
    app_container: AsyncContainer = app.state.dishka_container

    engine = await app_container.get(AsyncEngine, component="database")
    await init_db(engine)

    session_factory = await app_container.get(
        async_sessionmaker[AsyncSession], component="database"
    )
    async with session_factory() as session, session.begin():
        await PortfolioRepository(session).seed_networks()

    seed_wallet = await app_container.get(SeedWalletUseCase, component="portfolio")
    await seed_wallet()

    yield
    await app_container.close()


def create_app(app_container: AsyncContainer) -> FastAPI:
    """
    Build the application around a dependency container.

    Parameters
    ----------
    app_container : AsyncContainer
        Dishka container with all providers

    Returns
    -------
    FastAPI
        Configured application
    """
    application = FastAPI(
        title="Portfolio API Service",
        version=VERSION,
        description="ERC-20 portfolio ingest and valuation across Ethereum and Avalanche",
        lifespan=lifespan,
    )

    setup_dishka(app_container, application)

    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(HTTPException, http_exception_handler)
    application.add_exception_handler(StarletteHTTPException, starlette_exception_handler)
    application.add_exception_handler(BaseCustomException, custom_exception_handler)
    application.add_exception_handler(Exception, custom_exception_handler)

    application.include_router(portfolio_router)
    application.add_api_route("/", root, methods=["GET"])
    application.add_api_route("/health", health, methods=["GET"])
    return application


async def root():
    """
    Root endpoint.

    Returns
    -------
    dict
        Application information
    """
    return {
        "name": "Portfolio API Service",
        "version": VERSION,
        "endpoints": {
            "ingest": "/api/portfolio/ingest?address=0x...",
            "portfolio": "/api/portfolio?address=0x...",
            "stats": "/api/portfolio/stats",
            "docs": "/docs"
        }
    }


async def health():
    """
    Basic health check endpoint.

    Returns
    -------
    dict
        Health status
    """
    return {"status": "healthy", "version": VERSION}


app = create_app(container)
