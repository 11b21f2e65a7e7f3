# errors.py

from __future__ import annotations


class AnalyzerError(Exception):
    """Base class for all analyzer errors."""
    pass


class LLMError(AnalyzerError):
    """Raised when an upstream model call fails or returns an unusable payload."""
    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation or "unknown_operation"


class BudgetExceeded(AnalyzerError):
    """Raised when an AI operation would push the estimated cost past the ceiling."""
    def __init__(self, message: str, current_cost: float, limit: float):
        super().__init__(message)
        self.current_cost = current_cost
        self.limit = limit


class TranscriptNotFound(AnalyzerError):
    """Raised when a referenced transcript id is not in the store."""
    def __init__(self, transcript_id: str):
        super().__init__(f"Transcript not found: {transcript_id}")
        self.transcript_id = transcript_id


class TranscriptLoadError(AnalyzerError):
    """Raised when the transcript directory itself cannot be read."""
    pass


class ClassificationFailed(AnalyzerError):
    """Raised by the service layer when classify() returned the error sentinel."""
    def __init__(self, result):
        super().__init__(result.reasoning)
        self.result = result
