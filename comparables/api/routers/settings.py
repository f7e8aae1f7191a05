"""
Settings routes for the excluded seller.
"""

import logging

import redis.asyncio as redis
from fastapi import APIRouter, Depends, HTTPException

from comparables.api.dependencies import get_orchestrator, get_settings_store
from comparables.api.schemas import ExcludedSeller
from comparables.orchestrator import ComparableSalesOrchestrator
from comparables.settings_store import SettingsStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/settings/excluded-seller", response_model=ExcludedSeller)
async def get_excluded_seller(store: SettingsStore = Depends(get_settings_store)):
    try:
        return ExcludedSeller(seller_id=await store.get_excluded_seller())
    except redis.RedisError as e:
        logger.error(f"Failed to read excluded seller: {e}")
        raise HTTPException(status_code=503, detail="Settings store unavailable")


@router.put("/settings/excluded-seller", response_model=ExcludedSeller)
async def set_excluded_seller(
    body: ExcludedSeller,
    orchestrator: ComparableSalesOrchestrator = Depends(get_orchestrator)
):
    """Exclude one seller's listings from every search. An empty value clears it."""
    seller_id = body.seller_id.strip() if body.seller_id else None
    try:
        await orchestrator.set_excluded_seller(seller_id or None)
    except redis.RedisError as e:
        logger.error(f"Failed to store excluded seller: {e}")
        raise HTTPException(status_code=503, detail="Settings store unavailable")
    logger.info(f"Excluded seller set to {seller_id or 'none'}")
    return ExcludedSeller(seller_id=seller_id or None)
