from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...schemas.common import ApiResponse, Pagination, TranscriptCategory
from ...services.analysis import AnalysisService, get_service
from ..errors import to_http


router = APIRouter()


def _category(value: Optional[TranscriptCategory]) -> Optional[str]:
    return value.value if value is not None else None


@router.get("", response_model=ApiResponse)
@router.get("/", response_model=ApiResponse, include_in_schema=False)
async def list_transcripts(svc: AnalysisService = Depends(get_service)) -> ApiResponse:
    return ApiResponse(data=svc.list_transcripts())


@router.get("/search", response_model=ApiResponse)
async def search_transcripts(
    query: str = Query(min_length=1),
    category: Optional[TranscriptCategory] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    svc: AnalysisService = Depends(get_service),
) -> ApiResponse:
    try:
        result = svc.search(query, _category(category), page, limit)
    except Exception as e:
        raise to_http(e, "Error searching transcripts")
    return ApiResponse(data=result["results"], pagination=Pagination(**result["pagination"]))


@router.get("/statistics", response_model=ApiResponse)
async def get_statistics(svc: AnalysisService = Depends(get_service)) -> ApiResponse:
    try:
        return ApiResponse(data=svc.statistics())
    except Exception as e:
        raise to_http(e, "Error getting statistics")


@router.get("/topics/frequent", response_model=ApiResponse)
async def get_frequent_topics(
    category: Optional[TranscriptCategory] = None,
    svc: AnalysisService = Depends(get_service),
) -> ApiResponse:
    try:
        return ApiResponse(data=svc.frequent_topics(_category(category)))
    except Exception as e:
        raise to_http(e, "Error getting frequent topics")


@router.get("/{transcript_id}", response_model=ApiResponse)
async def get_transcript(transcript_id: str, svc: AnalysisService = Depends(get_service)) -> ApiResponse:
    try:
        return ApiResponse(data=svc.get_transcript(transcript_id))
    except Exception as e:
        raise to_http(e, "Error getting transcript")
