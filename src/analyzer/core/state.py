# core/state.py

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


CATEGORIES: tuple[str, ...] = (
    "technical_issues",
    "commercial_support",
    "administrative_requests",
    "billing_issues",
    "service_activation",
    "complaints_claims",
)
UNCLASSIFIED = "unclassified"
ERROR_CATEGORY = "error"


# ---------- Config ----------
@dataclass
class Config:
    profile: str
    provider: str
    model: str
    api_key: str | None = None
    api_base: str = "https://api.openai.com"
    cost_limit_usd: float = 5.0
    cache_ttl_seconds: float = 3600.0
    transcripts_dir: Path = Path("sample")
    batch_size: int = 5
    batch_delay_s: float = 1.0
    input_price_per_m: float | None = None
    output_price_per_m: float | None = None
    request_timeout_s: float = 60.0


# ---------- Transcript ----------
class Speaker(str, Enum):
    AGENT = "AGENT"
    CLIENT = "CLIENT"
    SYSTEM = "SYSTEM"


@dataclass(frozen=True)
class Message:
    timestamp: str
    speaker: Speaker
    content: str


@dataclass
class Transcript:
    id: str
    file_name: str
    messages: tuple[Message, ...] = ()
    duration: str = "00:00:00"
    # mutable analysis fields, last write wins
    category: str | None = None
    summary: str | None = None
    topics: list[str] | None = None

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "message_count": len(self.messages),
            "duration": self.duration,
            "category": self.category,
            "topics": list(self.topics) if self.topics is not None else None,
        }

    def to_dict(self) -> dict:
        d = self.to_summary()
        d.pop("message_count")
        d["summary"] = self.summary
        d["messages"] = [
            {"timestamp": m.timestamp, "speaker": m.speaker.value, "content": m.content}
            for m in self.messages
        ]
        return d


# ---------- AI results ----------
@dataclass
class ClassificationResult:
    transcript_id: str
    category: str
    confidence: float
    reasoning: str

    @property
    def failed(self) -> bool:
        return self.category == ERROR_CATEGORY


@dataclass
class TranscriptTopics:
    transcript_id: str
    category: str | None
    confidence: float
    topics: list[str] = field(default_factory=list)


@dataclass
class TopicAnalysis:
    topic: str
    frequency: int
    relevant_transcripts: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)


@dataclass
class BatchTopicsResult:
    topics: list[TopicAnalysis] = field(default_factory=list)
    classifications: list[TranscriptTopics] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)
