"""
SnapMenu Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for the HTTP-facing error scenarios.
How:   Each exception carries a user-safe message and an optional context dict.
       Global exception handlers (registered in main.py) translate them into
       structured JSON error responses with the right HTTP status code.
Who:   Raised by services; caught by global handlers.

Exception Hierarchy:
    SnapMenuError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── InvalidMenuLinkError     → 404 Not Found ("Invalid or expired menu link.")
    ├── EncodingError            → 500 Internal Server Error
    ├── QRCapacityError          → 422 Unprocessable Entity
    ├── ExtractionError          → 503 Service Unavailable (retry later)
    ├── CircuitBreakerOpenError  → 503 Service Unavailable (circuit open)
    └── RateLimitExceededError   → 429 Too Many Requests

Note:
    The codec itself never raises for bad input. `decode` reports failure as
    None and `encode` as an empty token; the share-link layer is where those
    sentinels become InvalidMenuLinkError / EncodingError.
"""

from typing import Any, Dict, Optional


INVALID_LINK_MESSAGE = "Invalid or expired menu link."


class SnapMenuError(Exception):
    """
    Base exception for all SnapMenu application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SnapMenuError):
    """
    Raised when client input fails a business rule.

    When:    Unsupported image type, oversized upload, too many pages,
             edit operation pointing at a category or item that doesn't exist.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class InvalidMenuLinkError(SnapMenuError):
    """
    Raised when a share token is missing, malformed, truncated, or foreign.

    There is exactly one message for every decode failure; the caller
    never learns which stage (alphabet, decompression, parse) rejected it.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        message: str = INVALID_LINK_MESSAGE,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EncodingError(SnapMenuError):
    """
    Raised when a document could not be turned into a share token.

    Should be unreachable for a validated MenuDocument.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "The menu could not be encoded into a share link.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class QRCapacityError(SnapMenuError):
    """
    Raised when a share address is too long to fit in any QR symbol.

    Distinct from the advisory capacity signal on ShareLink: that one warns,
    this one means no QR version can hold the data at all.
    HTTP:    422 Unprocessable Entity
    """

    def __init__(
        self,
        length: int = 0,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"The share link is too long ({length} characters) to fit in a QR code. "
            f"Shorten descriptions or split the menu."
        )
        ctx = context or {}
        ctx["length"] = length
        super().__init__(message=message, context=ctx)
        self.length = length


class ExtractionError(SnapMenuError):
    """
    Raised when the AI extraction collaborator fails.

    What:    Gemini returned nothing, returned unparseable JSON, or failed
             after all retries. The message is shown to the user verbatim.
    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        message: str = "AI menu extraction service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(SnapMenuError):
    """
    Raised when the circuit breaker is in OPEN state.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for recovery_time seconds)
        → After recovery_time → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class RateLimitExceededError(SnapMenuError):
    """
    Raised when a client exceeds the per-IP extraction rate limit.

    HTTP:    429 Too Many Requests
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
