from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    BROWSER_UNAVAILABLE = "BROWSER_UNAVAILABLE"
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"
    CONTENT_DIR_MISSING = "CONTENT_DIR_MISSING"


class LinkCheckError(Exception):
    """Raised for failure conditions that are not a link's own verdict.

    A link that is unreachable is never an exception: strategies report it
    as a failed result and the ladder escalates. This error covers the
    infrastructure around the checks (browser launch, cache persistence,
    bad input), and the CLI serialises it into a structured error on stderr.
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
