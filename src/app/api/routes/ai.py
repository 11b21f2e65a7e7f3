from __future__ import annotations

from fastapi import APIRouter, Depends

from ...schemas.analysis import ExtractTopicsRequest
from ...schemas.common import ApiResponse
from ...services.analysis import AnalysisService, get_service
from ..errors import to_http


router = APIRouter()


@router.post("/topics/extract", response_model=ApiResponse)
async def extract_topics(
    payload: ExtractTopicsRequest | None = None,
    svc: AnalysisService = Depends(get_service),
) -> ApiResponse:
    payload = payload or ExtractTopicsRequest()
    try:
        data = await svc.extract_topics(
            payload.transcript_ids,
            payload.topics_count,
            payload.category.value if payload.category else None,
        )
    except Exception as e:
        raise to_http(e, "Error extracting topics with AI")
    return ApiResponse(data=data)


# Registered before /classify/{transcript_id} so "all" is not taken as an id
@router.post("/classify/all", response_model=ApiResponse)
async def classify_all(svc: AnalysisService = Depends(get_service)) -> ApiResponse:
    try:
        return ApiResponse(data=await svc.classify_all())
    except Exception as e:
        raise to_http(e, "Error classifying transcripts with AI")


@router.post("/classify/{transcript_id}", response_model=ApiResponse)
async def classify_transcript(transcript_id: str, svc: AnalysisService = Depends(get_service)) -> ApiResponse:
    try:
        return ApiResponse(data=await svc.classify_one(transcript_id))
    except Exception as e:
        raise to_http(e, "Error classifying transcript with AI")


@router.post("/summarize/{transcript_id}", response_model=ApiResponse)
async def summarize_transcript(transcript_id: str, svc: AnalysisService = Depends(get_service)) -> ApiResponse:
    try:
        return ApiResponse(data=await svc.summarize(transcript_id))
    except Exception as e:
        raise to_http(e, "Error generating AI summary")


@router.get("/usage", response_model=ApiResponse)
async def usage(svc: AnalysisService = Depends(get_service)) -> ApiResponse:
    return ApiResponse(data=svc.usage())
