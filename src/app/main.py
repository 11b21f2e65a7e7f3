from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes.health import router as health_router
from .api.routes.transcripts import router as transcripts_router
from .api.routes.ai import router as ai_router
from .state import AppContext, build_context


logger = logging.getLogger("app")


def create_app(ctx: Optional[AppContext] = None) -> FastAPI:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app = FastAPI(title="Transcript Analyzer API", version=os.getenv("APP_VERSION", "0.1.0"))
    app.state.ctx = ctx or build_context()

    # CORS for local dev and typical frontend origins
    web_origin = os.getenv("WEB_ORIGIN", "http://localhost:5173")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[web_origin, "http://localhost:3000", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(transcripts_router, prefix="/api/transcripts", tags=["transcripts"])
    app.include_router(ai_router, prefix="/api/ai", tags=["ai-analysis"])

    @app.on_event("startup")
    async def _load_corpus() -> None:
        ctx = app.state.ctx
        # Contexts handed in by callers may already be loaded
        if not ctx.store.loaded:
            ctx.store.load()
        logger.info("Using model %s with a $%.2f budget", ctx.config.model, ctx.config.cost_limit_usd)

    return app


app = create_app()
