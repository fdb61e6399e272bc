from fastapi import APIRouter, BackgroundTasks, Query
from dishka.integrations.fastapi import inject
from dishka import FromComponent
from typing import Annotated
from portfolio.schemas import (
    IngestCounts,
    IngestRequest,
    IngestResponse,
    PortfolioRequest,
    PortfolioResponse,
    StatsResponse,
)
from portfolio.services import EnrichmentEngine
from portfolio.usecases import GetPortfolioUseCase, GetStatsUseCase, IngestWalletUseCase

router = APIRouter(
    prefix="/api/portfolio",
    tags=["Portfolio"]
)


@router.get("/ingest", response_model=IngestResponse)
@inject
async def ingest_wallet(
    request: Annotated[IngestRequest, Query()],
    background_tasks: BackgroundTasks,
    use_case: Annotated[
        IngestWalletUseCase, FromComponent("portfolio")
    ],
    enrichment_engine: Annotated[
        EnrichmentEngine, FromComponent("portfolio")
    ]
) -> IngestResponse:
    """
    Store current balances of a wallet and refresh metadata in the background.

    Parameters
    ----------
    request : IngestRequest
        Query with wallet address and optional per-network cap
    background_tasks : BackgroundTasks
        Tasks run after the response is sent
    use_case : IngestWalletUseCase
        Use case for the synchronous ingest phase
    enrichment_engine : EnrichmentEngine
        Engine resolving metadata and prices

    Returns
    -------
    IngestResponse
        Queued status with the number of stored balances
    """
    result = await use_case(address=request.address, limit=request.limit)
    background_tasks.add_task(enrichment_engine.enrich, result.touched_contracts)
    return IngestResponse(
        address=result.address,
        counts=IngestCounts(balances=result.inserted_count)
    )


@router.get("/stats", response_model=StatsResponse)
@inject
async def get_stats(
    use_case: Annotated[GetStatsUseCase, FromComponent("portfolio")]
) -> StatsResponse:
    """
    Get row counts of the store.
    """
    return await use_case()


@router.get("", response_model=PortfolioResponse)
@inject
async def get_portfolio(
    request: Annotated[PortfolioRequest, Query()],
    use_case: Annotated[
        GetPortfolioUseCase, FromComponent("portfolio")
    ]
) -> PortfolioResponse:
    """
    Get valued holdings of a wallet.

    Parameters
    ----------
    request : PortfolioRequest
        Query with wallet address
    use_case : GetPortfolioUseCase
        Use case for reading the portfolio

    Returns
    -------
    PortfolioResponse
        Holdings sorted by USD value, unpriced tokens last
    """
    return await use_case(address=request.address)
