from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from string import Template
from typing import Iterable, Optional, Protocol

from analyzer.core.budget import BudgetTracker
from analyzer.core.state import (
    CATEGORIES,
    ERROR_CATEGORY,
    BatchTopicsResult,
    ClassificationResult,
    Speaker,
    Transcript,
    TranscriptTopics,
)
from analyzer.errors import LLMError
from analyzer.llm.client import content_of
from analyzer.topics import aggregate_topics


logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"

EXCERPT_MESSAGES = 20
CLASSIFY_MAX_TOKENS = 150
TOPICS_MAX_TOKENS = 300
SUMMARY_MAX_TOKENS = 100

_FENCE_OPEN = re.compile(r"^```[\w-]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


class ChatClient(Protocol):
    def chat(self, *, messages: list[dict], max_output_tokens: int = ..., operation: str = ...) -> dict: ...


def _load_prompt(filename: str) -> Template:
    return Template((PROMPTS_DIR / filename).read_text(encoding="utf-8"))


def clean_json_response(content: str) -> str:
    """Strip a surrounding markdown code fence (with or without a language tag)."""
    cleaned = (content or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
    if cleaned.endswith("```"):
        cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def transcript_excerpt(transcript: Transcript, limit: int = EXCERPT_MESSAGES) -> str:
    """First ``limit`` non-system messages, one ``SPEAKER: content`` per line."""
    lines = [
        f"{m.speaker.value}: {m.content}"
        for m in transcript.messages
        if m.speaker is not Speaker.SYSTEM
    ][:limit]
    return f"ID: {transcript.id}\nMessages:\n" + "\n".join(lines)


def _parse_object(raw: str, operation: str) -> dict:
    try:
        obj = json.loads(clean_json_response(raw or "{}"))
    except json.JSONDecodeError as e:
        raise LLMError(f"Malformed JSON from model: {e}", operation=operation) from e
    if not isinstance(obj, dict):
        raise LLMError("Model response is not a JSON object", operation=operation)
    return obj


def _confidence(value: object) -> float:
    try:
        c = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    return min(1.0, max(0.0, c))


class TranscriptAnalyzer:
    """Runs the AI operations against the upstream model and accounts for usage.

    All methods are blocking; the web layer dispatches them to an executor.
    """

    def __init__(self, llm: ChatClient, budget: BudgetTracker) -> None:
        self.llm = llm
        self.budget = budget
        self._classify_prompt = _load_prompt("classify_prompt.txt")
        self._topics_prompt = _load_prompt("topics_prompt.txt")
        self._summary_prompt = _load_prompt("summary_prompt.txt")

    def _complete(self, prompt: str, *, max_output_tokens: int, operation: str) -> str:
        resp = self.llm.chat(
            messages=[{"role": "user", "content": prompt}],
            max_output_tokens=max_output_tokens,
            operation=operation,
        )
        usage = (resp or {}).get("usage") or {}
        self.budget.record_usage(usage.get("prompt_tokens"), usage.get("completion_tokens"))
        return content_of(resp)

    # --- classification -----------------------------------------------------
    def classify(self, transcript: Transcript) -> ClassificationResult:
        """Classify one transcript. Never raises: failures come back as the error sentinel."""
        try:
            prompt = self._classify_prompt.substitute(excerpt=transcript_excerpt(transcript))
            raw = self._complete(prompt, max_output_tokens=CLASSIFY_MAX_TOKENS, operation="classify")
            obj = _parse_object(raw, "classify")
            category = str(obj.get("category") or "").strip()
            if category not in CATEGORIES:
                raise LLMError(f"Unexpected category {category!r}", operation="classify")
            return ClassificationResult(
                transcript_id=transcript.id,
                category=category,
                confidence=_confidence(obj.get("confidence")),
                reasoning=str(obj.get("reasoning") or ""),
            )
        except Exception as e:
            logger.error("Error classifying transcript %s: %s", transcript.id, e)
            return ClassificationResult(
                transcript_id=transcript.id,
                category=ERROR_CATEGORY,
                confidence=0.0,
                reasoning=f"Classification failed: {e}",
            )

    # --- topics -------------------------------------------------------------
    def extract_topics(self, transcript: Transcript, max_topics: int = 5) -> TranscriptTopics:
        prompt = self._topics_prompt.substitute(
            excerpt=transcript_excerpt(transcript),
            max_topics=max_topics,
        )
        raw = self._complete(prompt, max_output_tokens=TOPICS_MAX_TOKENS, operation="extract_topics")
        obj = _parse_object(raw, "extract_topics")
        topics = obj.get("topics")
        if not isinstance(topics, list):
            raise LLMError("Model response has no topics list", operation="extract_topics")
        category = obj.get("category")
        return TranscriptTopics(
            transcript_id=transcript.id,
            category=category if category in CATEGORIES else None,
            confidence=_confidence(obj.get("confidence")),
            topics=[str(t).strip() for t in topics if str(t).strip()][:max_topics],
        )

    def extract_topics_from_batch(
        self,
        transcripts: Iterable[Transcript],
        max_topics: int = 5,
    ) -> BatchTopicsResult:
        """One request per transcript, aggregated by normalized topic.

        A failing transcript is reported in ``failed`` and does not stop the rest.
        """
        result = BatchTopicsResult()
        for t in transcripts:
            try:
                result.classifications.append(self.extract_topics(t, max_topics))
            except Exception as e:
                logger.error("Error extracting topics for transcript %s: %s", t.id, e)
                result.failed.append({"transcript_id": t.id, "error": str(e)})
        result.topics = aggregate_topics(
            ((c.transcript_id, c.category, c.topics) for c in result.classifications),
            limit=max_topics,
        )
        return result

    # --- summaries ----------------------------------------------------------
    def generate_summary(self, transcript: Transcript) -> str:
        prompt = self._summary_prompt.substitute(excerpt=transcript_excerpt(transcript))
        return self._complete(prompt, max_output_tokens=SUMMARY_MAX_TOKENS, operation="summarize").strip()
