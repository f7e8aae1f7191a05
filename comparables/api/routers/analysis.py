"""
Analysis routes for comparable sales and live auctions.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from comparables.api.dependencies import get_orchestrator
from comparables.api.schemas import HistoricalAnalysisRequest, ItemDescription
from comparables.models import LiveAnalysisResult, MarketAnalysisResult
from comparables.orchestrator import ComparableSalesOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/analysis/historical", response_model=MarketAnalysisResult)
async def analyze_historical(
    item: HistoricalAnalysisRequest,
    orchestrator: ComparableSalesOrchestrator = Depends(get_orchestrator)
):
    """
    Analyze comparable ended auctions for an item.

    Uses the authoritative query when one is set, otherwise the item attributes.
    Always answers 200; "nothing found" is has_comparable_data = false.
    """
    if not any((item.artist, item.object_type)) and not (
        orchestrator.authority and orchestrator.authority.has_query()
    ):
        raise HTTPException(status_code=400, detail="Provide an artist or object type, or set a query first")

    result = await orchestrator.analyze_historical(
        artist=item.artist,
        object_type=item.object_type,
        period=item.period,
        technique=item.technique,
        current_valuation=item.current_valuation,
    )
    logger.info(
        f"Historical analysis: {result.analyzed_sales} sales for \"{result.actual_search_query}\""
    )
    return result


@router.post("/analysis/live", response_model=LiveAnalysisResult)
async def analyze_live(
    item: ItemDescription,
    orchestrator: ComparableSalesOrchestrator = Depends(get_orchestrator)
):
    """
    Analyze running auctions for the authoritative query.

    Live analysis only ever searches the authoritative query (with fallbacks for
    generated ones), so it needs a query to be set first.
    """
    result = await orchestrator.analyze_live(
        artist=item.artist,
        object_type=item.object_type,
        period=item.period,
        technique=item.technique,
    )
    if result is None:
        raise HTTPException(status_code=404, detail="No search query set; generate or select one first")
    return result


@router.get("/analysis/last-failure")
async def last_failure(orchestrator: ComparableSalesOrchestrator = Depends(get_orchestrator)):
    """Explain the search failure behind the last "no data" answer, with recovery suggestions."""
    description = orchestrator.describe_last_failure()
    if description is None:
        raise HTTPException(status_code=404, detail="No search failure recorded for the last analysis")
    return description
