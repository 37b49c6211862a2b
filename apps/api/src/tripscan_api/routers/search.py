"""Unified search router - one endpoint, four actions."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from tripscan_api.dependencies import get_engine
from tripscan_api.schemas.common import ApiResponse
from tripscan_api.schemas.search import DestinationItem, SearchData, SearchRequest
from tripscan_api.services.search_service import SearchEngine
from tripscan_core.schemas import SearchAction

router = APIRouter(tags=["search"])

EngineDep = Annotated[SearchEngine, Depends(get_engine)]
SearchResponse = ApiResponse[SearchData | list[DestinationItem]]


@router.post("/search", response_model=SearchResponse)
async def search(request: SearchRequest, engine: EngineDep) -> SearchResponse:
    """Run a search, continue a session, autocomplete or list trending places."""
    data: SearchData | list[DestinationItem]
    match request.action:
        case SearchAction.CONTINUE:
            data = await engine.continue_search(request)
        case SearchAction.AUTOCOMPLETE:
            data = await engine.autocomplete(request.query, request.limit or 8)
        case SearchAction.TRENDING:
            data = await engine.trending(request.limit or 10)
        case _:
            data = await engine.search(request)
    return SearchResponse(data=data)
