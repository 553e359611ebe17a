from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    CONTENT_NOT_FOUND = "CONTENT_NOT_FOUND"
    CONTENT_FETCH_FAILED = "CONTENT_FETCH_FAILED"
    INVALID_INPUT = "INVALID_INPUT"


class HigContextError(Exception):
    """Raised for all expected failure conditions.

    Tool handlers let it propagate to server.py, which serialises it into the
    MCP error response. The fetcher raises it for origin failures; the
    resilient cache treats it like any other origin error (serve stale or
    re-raise).
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
