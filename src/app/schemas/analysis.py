from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field

from .common import TranscriptCategory


class ExtractTopicsRequest(BaseModel):
    transcript_ids: Optional[List[str]] = None
    topics_count: int = Field(default=5, ge=1, le=10)
    category: Optional[TranscriptCategory] = None
