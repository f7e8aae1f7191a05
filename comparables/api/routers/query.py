"""
Query routes - read and change the authoritative search query.
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from comparables.api.dependencies import get_authority, get_generator
from comparables.api.schemas import GenerateQueryRequest, QueryState, SelectionRequest
from comparables.query import QueryAuthority, QueryGenerator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/query", response_model=QueryState)
async def get_query(authority: QueryAuthority = Depends(get_authority)):
    """Current query, its selected terms and every candidate term."""
    return QueryState.from_authority(authority)


@router.post("/query/generate", response_model=QueryState)
async def generate_query(
    request: GenerateQueryRequest,
    generator: QueryGenerator = Depends(get_generator),
    authority: QueryAuthority = Depends(get_authority)
):
    """
    Generate candidate terms for an item and make them the current query.

    Falls back to a heuristic query when the model is unavailable.
    """
    generator.generate(request.title, request.description, request.artist)
    return QueryState.from_authority(authority)


@router.post("/query/selection", response_model=QueryState)
async def update_selection(
    request: SelectionRequest,
    authority: QueryAuthority = Depends(get_authority)
):
    """
    Apply the user's term selection.

    Send every checked term in selected_terms and the clicked term in
    toggled_term. Protected artist terms are only dropped when toggled. An
    empty selection is rejected; use DELETE /api/query to reset the query.
    """
    if not request.selected_terms:
        raise HTTPException(status_code=400, detail="No terms selected")
    authority.update_user_selection(request.selected_terms, toggled_term=request.toggled_term)
    return QueryState.from_authority(authority)


@router.delete("/query", response_model=QueryState)
async def clear_query(authority: QueryAuthority = Depends(get_authority)):
    """Reset the session's query."""
    authority.clear()
    return QueryState.from_authority(authority)


@router.get("/query/urls")
async def get_search_urls(authority: QueryAuthority = Depends(get_authority)) -> Dict[str, str]:
    """Marketplace search page links for the current query."""
    urls = authority.get_search_urls()
    if not urls:
        raise HTTPException(status_code=404, detail="No search query set")
    return urls
