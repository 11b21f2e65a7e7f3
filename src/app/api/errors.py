from __future__ import annotations

import logging

from fastapi import HTTPException

from analyzer.errors import BudgetExceeded, ClassificationFailed, LLMError, TranscriptNotFound


logger = logging.getLogger("app.api")


def to_http(exc: Exception, failure_detail: str) -> HTTPException:
    """Map analyzer errors onto HTTP status codes; upstream details stay in the log."""
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, TranscriptNotFound):
        return HTTPException(status_code=404, detail="Transcript not found")
    if isinstance(exc, BudgetExceeded):
        return HTTPException(status_code=402, detail="AI budget exceeded. Cannot perform this operation.")
    if isinstance(exc, (ClassificationFailed, LLMError)):
        logger.error("%s: %s", failure_detail, exc)
        return HTTPException(status_code=502, detail=failure_detail)
    logger.exception("%s", failure_detail, exc_info=exc)
    return HTTPException(status_code=500, detail=failure_detail)
