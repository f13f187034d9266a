"""
SnapMenu Backend — Google Gemini Menu Extraction
==================================================

What:  MenuExtractor implementation backed by Google Gemini structured output.
How:   Sends every menu page plus an instruction to Gemini in JSON mode with
       a response schema matching MenuDocument, then validates the JSON.
       Calls are wrapped in tenacity retries and a circuit breaker.
Who:   Instantiated once at import; called by MenuService.extract_menu().

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter, for transient
       transport and quota errors only
    2. Circuit breaker: after N consecutive failures, reject instantly
       for a recovery period
    3. Per-call timeout passed through request_options

Error messages (shown to the user verbatim by the client):
    "No images provided"
    "Failed to extract menu data: No response text."
    "Failed to parse menu data from AI response."
    "AI menu extraction failed after multiple attempts. Please try again later."
    "An unexpected error occurred during menu extraction."
"""

import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
    retry_if_exception_type,
    before_sleep_log,
    RetryError,
)

from snapmenu.config import settings
from snapmenu.exceptions import ExtractionError, CircuitBreakerOpenError
from snapmenu.schemas.menu import MenuDocument
from snapmenu.services.image_service import MenuImage
from snapmenu.services.llm_base import MenuExtractor

logger = logging.getLogger(__name__)

# Errors worth another attempt: network trouble, timeouts, quota, 5xx
TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
    google_exceptions.DeadlineExceeded,
    google_exceptions.ResourceExhausted,
    google_exceptions.ServiceUnavailable,
    google_exceptions.InternalServerError,
)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker guarding the Gemini API.

    State Machine:
        CLOSED    → failures counted; at threshold → OPEN
        OPEN      → every call raises CircuitBreakerOpenError until
                    recovery_timeout has elapsed → HALF_OPEN
        HALF_OPEN → one call allowed; success → CLOSED, failure → OPEN

    Not thread-safe: counters are plain attributes. Fine for a single
    uvicorn process where requests interleave on one event loop.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True if a call may proceed.

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        """Reset to CLOSED."""
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        """Count a failure; may open the circuit."""
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(MenuExtractor):
    """
    Google Gemini implementation of MenuExtractor.

    Error Handling Chain:
        transient API error → tenacity retries (backoff + jitter)
        → retries exhausted → circuit breaker failure → ExtractionError
        other API error     → circuit breaker failure → ExtractionError
        empty / invalid JSON → ExtractionError (the API itself worked,
                               so the breaker records a success)
    """

    SYSTEM_INSTRUCTION = """
You are an expert menu digitizer.
Your goal is to extract restaurant menu information from photos with high accuracy.
- Extract the restaurant name. If not found, use "Restaurant Menu".
- Group items into logical categories (Appetizers, Mains, Drinks, etc.) as they appear.
- Extract item names, descriptions, and prices.
- If prices are just numbers, assume the currency symbol found elsewhere or just the number.
- Identify tags like 'Spicy', 'Vegan', 'GF' if explicitly marked or strongly implied by icons.
- Be resilient to glare, handwriting, or complex layouts.
"""

    EXTRACT_PROMPT = "Extract the menu data from these images into a structured JSON format."

    # Mirrors MenuDocument: required fields match the model's required fields
    RESPONSE_SCHEMA: Dict[str, Any] = {
        "type": "OBJECT",
        "properties": {
            "restaurantName": {"type": "STRING"},
            "description": {"type": "STRING"},
            "categories": {
                "type": "ARRAY",
                "items": {
                    "type": "OBJECT",
                    "properties": {
                        "name": {"type": "STRING"},
                        "items": {
                            "type": "ARRAY",
                            "items": {
                                "type": "OBJECT",
                                "properties": {
                                    "name": {"type": "STRING"},
                                    "description": {"type": "STRING"},
                                    "price": {"type": "STRING"},
                                    "tags": {
                                        "type": "ARRAY",
                                        "items": {"type": "STRING"},
                                    },
                                },
                                "required": ["name", "price"],
                            },
                        },
                    },
                    "required": ["name", "items"],
                },
            },
        },
        "required": ["restaurantName", "categories"],
    }

    def __init__(self):
        if settings.gemini_api_key and settings.gemini_api_key != "your_gemini_api_key_here":
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(
            settings.gemini_model,
            system_instruction=self.SYSTEM_INSTRUCTION,
        )

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    async def extract_menu(self, images: Sequence[MenuImage]) -> MenuDocument:
        """
        Extract a MenuDocument from menu photos.

        Flow:
            1. Reject empty input
            2. Check circuit breaker → may raise CircuitBreakerOpenError
            3. Call Gemini with retry logic
            4. Record success/failure in circuit breaker
            5. Validate the JSON response against MenuDocument

        Raises:
            ExtractionError, CircuitBreakerOpenError
        """
        if not images:
            raise ExtractionError(message="No images provided")

        request_id = str(uuid.uuid4())[:8]

        self.circuit_breaker.can_execute()

        logger.info(
            "[%s] Starting Gemini menu extraction for %d image(s)",
            request_id,
            len(images),
        )

        try:
            text = await self._call_gemini_with_retry(images, request_id)
            self.circuit_breaker.record_success()

        except CircuitBreakerOpenError:
            raise
        except RetryError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] All Gemini retries exhausted: %s",
                request_id,
                str(e.last_attempt.exception()) if e.last_attempt else "Unknown error",
            )
            raise ExtractionError(
                message="AI menu extraction failed after multiple attempts. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "attempts": settings.retry_max_attempts},
            )
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Unexpected Gemini error: %s",
                request_id,
                str(e),
                exc_info=True,
            )
            raise ExtractionError(
                message="An unexpected error occurred during menu extraction.",
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

        if not text:
            raise ExtractionError(
                message="Failed to extract menu data: No response text.",
                context={"request_id": request_id},
            )

        try:
            document = MenuDocument.model_validate_json(text)
        except ValueError as e:
            logger.error("[%s] JSON Parse Error: %s", request_id, str(e))
            raise ExtractionError(
                message="Failed to parse menu data from AI response.",
                context={"request_id": request_id},
            )

        logger.info(
            "[%s] Extracted '%s': %d categories, %d items",
            request_id,
            document.restaurant_name,
            len(document.categories),
            document.item_count,
        )
        return document

    def _build_contents(self, images: Sequence[MenuImage]) -> List[Any]:
        """Inline image parts in page order, then the instruction."""
        parts: List[Any] = [
            {"mime_type": image.mime_type, "data": image.data} for image in images
        ]
        parts.append(self.EXTRACT_PROMPT)
        return parts

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(settings.retry_max_attempts),
        # wait = min(max_wait, min_wait * 2^attempt) + random(0, 1)
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    async def _call_gemini_with_retry(
        self, images: Sequence[MenuImage], request_id: str
    ) -> str:
        """
        The Gemini API call itself, retried on TRANSIENT_ERRORS.

        Kept separate from extract_menu so the circuit breaker check is
        not retried along with the call. Returns "" when the model produced
        no usable text (blocked or empty candidates).
        """
        start_time = time.time()

        try:
            response = await self.model.generate_content_async(
                self._build_contents(images),
                generation_config=genai.GenerationConfig(
                    response_mime_type="application/json",
                    response_schema=self.RESPONSE_SCHEMA,
                ),
                request_options={"timeout": settings.gemini_timeout},
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                request_id,
                duration_ms,
                str(e),
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        try:
            text = response.text.strip() if response.text else ""
        except ValueError:
            # .text raises when the response has no valid parts (safety block)
            text = ""

        logger.info(
            "[%s] Gemini extraction completed in %.0fms, %d chars of JSON",
            request_id,
            duration_ms,
            len(text),
        )
        return text

    async def health_check(self) -> bool:
        """
        Check if Gemini is reachable by listing models (no token cost).
        """
        if not settings.gemini_api_key:
            return False
        try:
            model_names = [m.name for m in genai.list_models()]
            target = f"models/{settings.gemini_model}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


# ── Singleton Instance ────────────────────────────────────────────────────
# Holds the circuit breaker state shared by all requests.
gemini_service = GeminiService()
