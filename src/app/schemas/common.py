from __future__ import annotations

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel

from analyzer.core.state import CATEGORIES


TranscriptCategory = Enum("TranscriptCategory", {c.upper(): c for c in CATEGORIES}, type=str)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ApiResponse(BaseModel):
    success: bool = True
    data: Any = None
    error: Optional[str] = None
    pagination: Optional[Pagination] = None
