"""Request and response bodies for the HTTP API"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from comparables.models import QuerySource, SearchTerm
from comparables.query import QueryAuthority


class ItemDescription(BaseModel):
    """Item attributes to analyze"""
    artist: Optional[str] = None
    object_type: Optional[str] = None
    period: Optional[str] = None
    technique: Optional[str] = None


class HistoricalAnalysisRequest(ItemDescription):
    current_valuation: Optional[float] = Field(default=None, gt=0)


class GenerateQueryRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    artist: Optional[str] = None


class SelectionRequest(BaseModel):
    selected_terms: List[str]
    toggled_term: Optional[str] = None


class QueryState(BaseModel):
    """Current authoritative query as seen by every consumer"""
    query: str
    source: Optional[QuerySource] = None
    confidence: Optional[float] = None
    reasoning: Optional[str] = None
    updated_at: Optional[datetime] = None
    is_user_selection: bool = False
    terms: List[SearchTerm] = []
    available_terms: List[SearchTerm] = []

    @classmethod
    def from_authority(cls, authority: QueryAuthority) -> "QueryState":
        metadata = authority.get_metadata()
        return cls(
            query=authority.get_current_query(),
            source=metadata.source if metadata else None,
            confidence=metadata.confidence if metadata else None,
            reasoning=metadata.reasoning if metadata else None,
            updated_at=metadata.updated_at if metadata else None,
            is_user_selection=authority.is_user_selection(),
            terms=authority.get_current_terms(),
            available_terms=authority.get_available_terms(),
        )


class ExcludedSeller(BaseModel):
    seller_id: Optional[str] = None
