from __future__ import annotations

from fastapi import APIRouter, Depends

from ...state import AppContext, get_context

router = APIRouter(tags=["meta"])


@router.get("/health")
async def health(ctx: AppContext = Depends(get_context)) -> dict:
    return {"status": "ok", "transcripts_loaded": ctx.store.loaded}


@router.get("/meta")
async def meta(ctx: AppContext = Depends(get_context)) -> dict:
    return {
        "app": "Transcript Analyzer API",
        "version": "0.1.0",
        "models": [ctx.config.model],
    }
