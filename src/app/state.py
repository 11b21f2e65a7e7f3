from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from analyzer.core.budget import BudgetTracker
from analyzer.core.cache import ExpiringCache
from analyzer.core.config import load_config
from analyzer.core.state import Config
from analyzer.llm.client import LLMClient
from analyzer.orchestrator import ChatClient, TranscriptAnalyzer
from analyzer.transcripts import TranscriptStore


@dataclass
class AppContext:
    """Process-wide state owned by one app instance (no module-level singletons)."""

    config: Config
    store: TranscriptStore
    cache: ExpiringCache
    budget: BudgetTracker
    analyzer: TranscriptAnalyzer


def build_context(config: Optional[Config] = None, *, llm: Optional[ChatClient] = None) -> AppContext:
    cfg = config or load_config()
    budget = BudgetTracker(
        cfg.model,
        cfg.cost_limit_usd,
        input_price_per_m=cfg.input_price_per_m,
        output_price_per_m=cfg.output_price_per_m,
    )
    client = llm or LLMClient(
        provider=cfg.provider,
        model=cfg.model,
        api_key=cfg.api_key,
        api_base=cfg.api_base,
        timeout=cfg.request_timeout_s,
    )
    return AppContext(
        config=cfg,
        store=TranscriptStore(cfg.transcripts_dir),
        cache=ExpiringCache(cfg.cache_ttl_seconds),
        budget=budget,
        analyzer=TranscriptAnalyzer(client, budget),
    )


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx
