from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from analyzer.core.state import UNCLASSIFIED, Message, Speaker, TopicAnalysis, Transcript
from analyzer.errors import TranscriptLoadError
from analyzer.topics import aggregate_topics


logger = logging.getLogger(__name__)

LINE_RE = re.compile(r"\[([^\]]+)\]\s+(\w+):\s*(.+)")

# Speaker tokens as they appear in the corpus files
SPEAKER_TOKENS = {
    "AGENTE": Speaker.AGENT,
    "CLIENTE": Speaker.CLIENT,
    "SISTEMA": Speaker.SYSTEM,
}


def _to_seconds(ts: str) -> Optional[int]:
    parts = ts.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        return None
    total = 0
    for p in parts:
        total = total * 60 + int(p)
    return total


def _fmt_hms(seconds: int) -> str:
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    return f"{h:02d}:{m:02d}:{s:02d}"


def calculate_duration(messages: List[Message]) -> str:
    if not messages:
        return "00:00:00"
    first, last = messages[0].timestamp, messages[-1].timestamp
    start, end = _to_seconds(first), _to_seconds(last)
    if start is None or end is None or end < start:
        return f"{first} - {last}"
    return _fmt_hms(end - start)


def parse_transcript_text(text: str) -> List[Message]:
    """Parse ``[timestamp] SPEAKER: content`` lines; unknown speakers are dropped."""
    messages: List[Message] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        match = LINE_RE.search(line)
        if not match:
            continue
        timestamp, token, content = match.groups()
        speaker = SPEAKER_TOKENS.get(token)
        if speaker is None:
            continue
        messages.append(Message(timestamp=timestamp, speaker=speaker, content=content.strip()))
    return messages


def parse_transcript_file(path: Path) -> Transcript:
    messages = parse_transcript_text(path.read_text(encoding="utf-8"))
    return Transcript(
        id=path.stem,
        file_name=path.name,
        messages=tuple(messages),
        duration=calculate_duration(messages),
    )


@dataclass
class SearchResult:
    transcript: Transcript
    relevance_score: int
    matched_messages: List[Message] = field(default_factory=list)


@dataclass
class SearchPage:
    results: List[SearchResult]
    total: int
    page: int
    limit: int
    total_pages: int


class TranscriptStore:
    """In-memory transcript corpus, loaded once from a directory of ``*.txt`` files.

    Mutations only touch the analysis fields (category, summary, topics).
    Unknown ids never raise: reads and writes both return ``None``.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self._transcripts: List[Transcript] = []
        self.loaded = False

    def load(self) -> int:
        if not self.root.is_dir():
            raise TranscriptLoadError(f"Transcript directory not found: {self.root}")
        files = sorted(p for p in self.root.iterdir() if p.is_file() and p.suffix == ".txt")
        logger.info("Loading %d transcript files from %s", len(files), self.root)

        transcripts: List[Transcript] = []
        for path in files:
            try:
                transcripts.append(parse_transcript_file(path))
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Error parsing file %s: %s", path.name, e)
        self._transcripts = transcripts
        self.loaded = True
        logger.info("Successfully loaded %d transcripts", len(transcripts))
        return len(transcripts)

    def add(self, transcript: Transcript) -> None:
        self._transcripts.append(transcript)

    def list_transcripts(self) -> List[Transcript]:
        return list(self._transcripts)

    def get(self, transcript_id: str) -> Optional[Transcript]:
        for t in self._transcripts:
            if t.id == transcript_id:
                return t
        return None

    def search(
        self,
        query: str,
        category: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> SearchPage:
        q = (query or "").lower()
        candidates = self._transcripts
        if category:
            candidates = [t for t in candidates if t.category == category]

        results: List[SearchResult] = []
        for t in candidates:
            matched = [m for m in t.messages if q in m.content.lower()]
            score = len(matched)
            if t.summary and q in t.summary.lower():
                score += 2
            if t.topics and any(q in topic.lower() for topic in t.topics):
                score += 3
            if score > 0:
                results.append(SearchResult(transcript=t, relevance_score=score, matched_messages=matched))

        # sorted() is stable, equal scores keep corpus order
        results = sorted(results, key=lambda r: -r.relevance_score)
        page = max(1, int(page))
        limit = max(1, int(limit))
        start = (page - 1) * limit
        return SearchPage(
            results=results[start:start + limit],
            total=len(results),
            page=page,
            limit=limit,
            total_pages=math.ceil(len(results) / limit),
        )

    def update_classification(
        self,
        transcript_id: str,
        category: str,
        summary: Optional[str] = None,
    ) -> Optional[Transcript]:
        t = self.get(transcript_id)
        if t is None:
            logger.warning("Cannot classify unknown transcript %s", transcript_id)
            return None
        t.category = category
        if summary:
            t.summary = summary
        return t

    def update_summary(self, transcript_id: str, summary: str) -> Optional[Transcript]:
        t = self.get(transcript_id)
        if t is None:
            logger.warning("Cannot store summary for unknown transcript %s", transcript_id)
            return None
        t.summary = summary
        return t

    def update_topics(self, transcript_id: str, topics: List[str]) -> Optional[Transcript]:
        t = self.get(transcript_id)
        if t is None:
            logger.warning("Cannot store topics for unknown transcript %s", transcript_id)
            return None
        t.topics = list(topics)
        return t

    def get_frequent_topics(self, category: Optional[str] = None, limit: int = 10) -> List[TopicAnalysis]:
        targets = self._transcripts
        if category:
            targets = [t for t in targets if t.category == category]
        return aggregate_topics(((t.id, t.category, t.topics) for t in targets), limit=limit)

    def get_statistics(self) -> dict:
        total = len(self._transcripts)
        distribution: dict[str, int] = {}
        total_messages = 0
        for t in self._transcripts:
            total_messages += len(t.messages)
            key = t.category or UNCLASSIFIED
            distribution[key] = distribution.get(key, 0) + 1
        return {
            "total_transcripts": total,
            "categories_distribution": distribution,
            "average_messages_per_transcript": (total_messages / total) if total else 0.0,
        }
