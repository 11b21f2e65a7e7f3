from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

from analyzer.core.state import TopicAnalysis


def normalize_topic(topic: str) -> str:
    return " ".join(str(topic or "").split()).lower()


def aggregate_topics(
    items: Iterable[Tuple[str, Optional[str], Optional[Sequence[str]]]],
    limit: Optional[int] = None,
) -> list[TopicAnalysis]:
    """Group per-transcript topic lists by normalized topic.

    ``items`` yields ``(transcript_id, category, topics)``. Frequency is the
    number of distinct transcripts mentioning a topic, not mention count.
    Output is ordered by descending frequency; ties keep first-seen order.
    """
    grouped: dict[str, TopicAnalysis] = {}
    for transcript_id, category, topics in items:
        for raw in topics or ():
            key = normalize_topic(raw)
            if not key:
                continue
            agg = grouped.get(key)
            if agg is None:
                agg = grouped[key] = TopicAnalysis(topic=key, frequency=0)
            if transcript_id not in agg.relevant_transcripts:
                agg.relevant_transcripts.append(transcript_id)
                agg.frequency += 1
            if category and category not in agg.categories:
                agg.categories.append(category)

    ranked = sorted(grouped.values(), key=lambda t: -t.frequency)
    for t in ranked:
        t.categories.sort()
    if limit is not None:
        ranked = ranked[: max(0, int(limit))]
    return ranked
