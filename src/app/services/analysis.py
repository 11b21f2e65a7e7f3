from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional, Sequence

from fastapi import Depends

from analyzer.core.state import BatchTopicsResult, Transcript
from analyzer.errors import BudgetExceeded, ClassificationFailed, LLMError, TranscriptNotFound
from analyzer.transcripts import SearchResult
from analyzer.topics import aggregate_topics
from ..state import AppContext, get_context


logger = logging.getLogger("app.analysis")

# Cache TTLs (seconds)
SEARCH_TTL = 30 * 60
STATISTICS_TTL = 5 * 60
FREQUENT_TOPICS_TTL = 30 * 60
AI_TOPICS_TTL = 60 * 60
AI_RESULT_TTL = 24 * 60 * 60

# Token estimates used for budget admission
CLASSIFY_ESTIMATE = 500
SUMMARY_ESTIMATE = 200
TOPICS_ESTIMATE = 1000

TOPICS_GROUP_SIZE = 10

# Keys derived from store contents; dropped whenever the store changes
LOCAL_KEY_PREFIXES = ("search:", "statistics", "frequent-topics:")


def _search_result_dict(r: SearchResult) -> dict:
    return {
        "transcript": r.transcript.to_summary(),
        "relevance_score": r.relevance_score,
        "matched_messages": [
            {"timestamp": m.timestamp, "speaker": m.speaker.value, "content": m.content}
            for m in r.matched_messages
        ],
    }


class AnalysisService:
    """Async facade over the store, cache, budget and analyzer.

    Analyzer calls block on the network, so they run on the loop's default
    executor; store mutations happen back on the event loop.
    """

    def __init__(self, ctx: AppContext) -> None:
        self.ctx = ctx
        self.store = ctx.store
        self.cache = ctx.cache
        self.budget = ctx.budget
        self.analyzer = ctx.analyzer

    # --- helpers ------------------------------------------------------------
    def _require(self, transcript_id: str) -> Transcript:
        t = self.store.get(transcript_id)
        if t is None:
            raise TranscriptNotFound(transcript_id)
        return t

    def _invalidate_local(self) -> None:
        for prefix in LOCAL_KEY_PREFIXES:
            self.cache.delete_prefix(prefix)

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    # --- local (no tokens) --------------------------------------------------
    def list_transcripts(self) -> list[dict]:
        return [t.to_summary() for t in self.store.list_transcripts()]

    def get_transcript(self, transcript_id: str) -> dict:
        return self._require(transcript_id).to_dict()

    def search(self, query: str, category: Optional[str] = None, page: int = 1, limit: int = 10) -> dict:
        key = self.cache.generate_key("search", {"query": query, "category": category, "page": page, "limit": limit})
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit for search: %s", query)
            return cached

        result = self.store.search(query, category, page, limit)
        data = {
            "results": [_search_result_dict(r) for r in result.results],
            "pagination": {
                "page": result.page,
                "limit": result.limit,
                "total": result.total,
                "total_pages": result.total_pages,
            },
        }
        self.cache.set(key, data, SEARCH_TTL)
        logger.info("Search completed: %d results for %r", len(result.results), query)
        return data

    def statistics(self) -> dict:
        # only the corpus part is cached; usage and cache counters are live
        transcripts = self.cache.get("statistics")
        if transcripts is None:
            transcripts = self.store.get_statistics()
            self.cache.set("statistics", transcripts, STATISTICS_TTL)
        return {
            "transcripts": transcripts,
            "ai_usage": self.budget.get_usage_stats(),
            "cache": self.cache.stats(),
        }

    def frequent_topics(self, category: Optional[str] = None) -> list[dict]:
        key = f"frequent-topics:{category or 'all'}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        data = [asdict(t) for t in self.store.get_frequent_topics(category)]
        self.cache.set(key, data, FREQUENT_TOPICS_TTL)
        return data

    def usage(self) -> dict:
        stats = self.budget.get_usage_stats()
        stats.update({"model": self.budget.model, "budget_limit": self.budget.ceiling})
        return stats

    # --- AI-backed ----------------------------------------------------------
    async def classify_one(self, transcript_id: str) -> dict:
        key = f"ai-classify:{transcript_id}"
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit for AI classification: %s", transcript_id)
            return cached

        t = self._require(transcript_id)
        with self.budget.reserve(CLASSIFY_ESTIMATE):
            result = await self._run(self.analyzer.classify, t)
        if result.failed:
            raise ClassificationFailed(result)

        summary = ""
        try:
            with self.budget.reserve(SUMMARY_ESTIMATE):
                summary = await self._run(self.analyzer.generate_summary, t)
        except BudgetExceeded:
            logger.info("Skipping summary for %s: budget exhausted", transcript_id)
        except LLMError as e:
            logger.warning("Skipping summary for %s: %s", transcript_id, e)

        self.store.update_classification(t.id, result.category, summary or None)
        self._invalidate_local()

        data = {**asdict(result), "summary": summary}
        self.cache.set(key, data, AI_RESULT_TTL)
        logger.info("Transcript %s classified with AI as %s", transcript_id, result.category)
        return data

    async def classify_all(self) -> dict:
        key = "ai-classify-all"
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit for bulk AI classification")
            return cached

        cfg = self.ctx.config
        transcripts = self.store.list_transcripts()
        batch_size = max(1, int(cfg.batch_size))
        started = time.perf_counter()
        results: list[dict] = []
        successful = failed = skipped = 0

        async def _classify_item(t: Transcript) -> dict:
            if t.category:
                return {
                    "transcript_id": t.id,
                    "category": t.category,
                    "confidence": 1.0,
                    "reasoning": "Already classified",
                    "status": "skipped",
                }
            r = await self._run(self.analyzer.classify, t)
            return {**asdict(r), "status": "failed" if r.failed else "success"}

        with self.budget.reserve(CLASSIFY_ESTIMATE * len(transcripts)):
            logger.info("Starting bulk classification of %d transcripts...", len(transcripts))
            groups = (len(transcripts) + batch_size - 1) // batch_size
            for n, i in enumerate(range(0, len(transcripts), batch_size), start=1):
                logger.info("Processing batch %d/%d...", n, groups)
                group = transcripts[i:i + batch_size]
                for item in await asyncio.gather(*(_classify_item(t) for t in group)):
                    if item["status"] == "success":
                        self.store.update_classification(item["transcript_id"], item["category"])
                        successful += 1
                    elif item["status"] == "failed":
                        failed += 1
                    else:
                        skipped += 1
                    results.append(item)
                if i + batch_size < len(transcripts) and cfg.batch_delay_s > 0:
                    await asyncio.sleep(cfg.batch_delay_s)

        if successful:
            self._invalidate_local()
        elapsed = time.perf_counter() - started
        data = {
            "total_processed": len(transcripts),
            "successful": successful,
            "failed": failed,
            "skipped": skipped,
            "results": results[:10],
            "estimated_cost": self.budget.estimated_cost,
            "processing_time": f"{elapsed:.1f} seconds",
            "note": (
                "Transcripts have been classified and are now searchable by category"
                if successful
                else "No transcripts were classified"
            ),
        }
        # A run with failures is not cached so it can be retried
        if not failed:
            self.cache.set(key, data, AI_RESULT_TTL)
        logger.info(
            "Bulk classification completed: %d successful, %d failed, %d skipped in %.1fs",
            successful, failed, skipped, elapsed,
        )
        return data

    async def extract_topics(
        self,
        transcript_ids: Optional[Sequence[str]] = None,
        topics_count: int = 5,
        category: Optional[str] = None,
    ) -> dict:
        params = {
            "transcript_ids": ",".join(sorted(transcript_ids)) if transcript_ids else None,
            "topics_count": topics_count,
            "category": category,
        }
        key = self.cache.generate_key("ai-topics", params)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit for AI topic extraction")
            return cached

        selected = self.store.list_transcripts()
        if transcript_ids:
            wanted = set(transcript_ids)
            selected = [t for t in selected if t.id in wanted]
        if category:
            selected = [t for t in selected if t.category == category]
        if not selected:
            return {"topics": [], "classifications": [], "failed": []}

        merged = BatchTopicsResult()
        with self.budget.reserve(TOPICS_ESTIMATE * len(selected)):
            for i in range(0, len(selected), TOPICS_GROUP_SIZE):
                group = selected[i:i + TOPICS_GROUP_SIZE]
                batch = await self._run(self.analyzer.extract_topics_from_batch, group, topics_count)
                merged.classifications.extend(batch.classifications)
                merged.failed.extend(batch.failed)

        # re-aggregate across groups so frequencies count distinct transcripts overall
        merged.topics = aggregate_topics(
            ((c.transcript_id, c.category, c.topics) for c in merged.classifications),
            limit=topics_count,
        )
        for c in merged.classifications:
            self.store.update_topics(c.transcript_id, c.topics)
            t = self.store.get(c.transcript_id)
            if t is not None and not t.category and c.category:
                self.store.update_classification(c.transcript_id, c.category)
        if merged.classifications:
            self._invalidate_local()

        data = {
            "topics": [asdict(t) for t in merged.topics],
            "classifications": [asdict(c) for c in merged.classifications],
            "failed": merged.failed,
        }
        if not merged.failed:
            self.cache.set(key, data, AI_TOPICS_TTL)
        logger.info("AI topics extracted: %d topics found", len(merged.topics))
        return data

    async def summarize(self, transcript_id: str) -> dict:
        key = f"ai-summary:{transcript_id}"
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit for AI summary: %s", transcript_id)
            return cached

        t = self._require(transcript_id)
        with self.budget.reserve(SUMMARY_ESTIMATE):
            summary = await self._run(self.analyzer.generate_summary, t)
        if summary:
            self.store.update_summary(t.id, summary)
            self._invalidate_local()

        data = {
            "transcript_id": transcript_id,
            "summary": summary,
            "word_count": len(summary.split()),
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }
        self.cache.set(key, data, AI_RESULT_TTL)
        logger.info("AI summary generated for transcript %s", transcript_id)
        return data


def get_service(ctx: AppContext = Depends(get_context)) -> AnalysisService:
    return AnalysisService(ctx)
