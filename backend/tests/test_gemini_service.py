"""
SnapMenu Backend — Gemini Service Unit Tests (Mocked)
=======================================================

What:  Tests for GeminiService with the Google Generative AI SDK mocked out.
Why:   Tests should not make real API calls (costs money, requires network).
How:   Patches the genai module and model to simulate success/failure.
       Retry backoff is replaced with wait_none() so failures are instant.

What we test:
    ✅ Successful extraction returns a validated MenuDocument
    ✅ Empty and malformed responses map to user-facing ExtractionErrors
    ✅ Transient errors are retried, others are not
    ✅ Circuit breaker opens after consecutive failures and blocks calls
    ❌ Real API calls (use integration tests for that)
"""

import json
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.api_core import exceptions as google_exceptions
from tenacity import wait_none

from snapmenu.exceptions import CircuitBreakerOpenError, ExtractionError
from snapmenu.services.gemini_service import CircuitBreaker, GeminiService
from snapmenu.services.image_service import MenuImage


@pytest.fixture
def images(png_bytes):
    return [MenuImage(data=png_bytes, mime_type="image/png")]


@pytest.fixture
def mock_genai():
    with patch("snapmenu.services.gemini_service.genai") as mocked:
        yield mocked


@pytest.fixture
def mock_model(mock_genai):
    model = MagicMock()
    model.generate_content_async = AsyncMock()
    mock_genai.GenerativeModel.return_value = model
    return model


@pytest.fixture
def no_backoff():
    with patch.object(GeminiService._call_gemini_with_retry.retry, "wait", wait_none()):
        yield


def _response(text):
    response = MagicMock()
    response.text = text
    return response


class _BlockedResponse:
    """Safety-blocked responses raise from .text instead of returning it."""

    @property
    def text(self):
        raise ValueError("Response has no valid parts")


class TestCircuitBreaker:
    """Tests for the CircuitBreaker resilience pattern."""

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == "closed"
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == "closed"
        assert cb.can_execute() is True

    def test_opens_at_threshold(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == "open"

    def test_open_circuit_rejects_calls(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        cb.record_failure()
        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            cb.can_execute()
        assert 0 < exc_info.value.recovery_time <= 60

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        assert cb.failure_count == 2

        cb.record_success()
        assert cb.failure_count == 0
        assert cb.state == "closed"

    def test_half_open_after_recovery_timeout(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        cb.record_failure()
        cb.last_failure_time = time.time() - 61

        assert cb.can_execute() is True
        assert cb.state == "half_open"

    def test_failure_in_half_open_reopens(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        cb.state = CircuitBreaker.HALF_OPEN
        cb.record_failure()
        assert cb.state == "open"


class TestGeminiServiceMocked:
    """Tests for GeminiService with mocked Gemini API."""

    @pytest.mark.asyncio
    async def test_extract_menu_success(self, mock_model, images, cafe_sol_payload, cafe_sol):
        mock_model.generate_content_async.return_value = _response(json.dumps(cafe_sol_payload))

        service = GeminiService()
        document = await service.extract_menu(images)

        assert document == cafe_sol
        assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_sends_images_then_prompt_in_json_mode(self, mock_genai, mock_model, images, cafe_sol_payload):
        mock_model.generate_content_async.return_value = _response(json.dumps(cafe_sol_payload))

        service = GeminiService()
        await service.extract_menu(images)

        args, kwargs = mock_model.generate_content_async.call_args
        contents = args[0]
        assert contents[0] == {"mime_type": "image/png", "data": images[0].data}
        assert contents[-1] == GeminiService.EXTRACT_PROMPT
        config_kwargs = mock_genai.GenerationConfig.call_args.kwargs
        assert config_kwargs["response_mime_type"] == "application/json"
        assert config_kwargs["response_schema"]["required"] == ["restaurantName", "categories"]
        assert "timeout" in kwargs["request_options"]

    @pytest.mark.asyncio
    async def test_missing_description_defaults_to_empty(self, mock_model, images):
        payload = {
            "restaurantName": "Taqueria",
            "categories": [{"name": "Tacos", "items": [{"name": "Al Pastor", "price": "3"}]}],
        }
        mock_model.generate_content_async.return_value = _response(json.dumps(payload))

        document = await GeminiService().extract_menu(images)
        assert document.categories[0].items[0].description == ""

    @pytest.mark.asyncio
    async def test_no_images(self, mock_model):
        with pytest.raises(ExtractionError) as exc_info:
            await GeminiService().extract_menu([])
        assert exc_info.value.message == "No images provided"
        mock_model.generate_content_async.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_response_text(self, mock_model, images):
        mock_model.generate_content_async.return_value = _response("")

        with pytest.raises(ExtractionError) as exc_info:
            await GeminiService().extract_menu(images)
        assert exc_info.value.message == "Failed to extract menu data: No response text."

    @pytest.mark.asyncio
    async def test_blocked_response(self, mock_model, images):
        mock_model.generate_content_async.return_value = _BlockedResponse()

        with pytest.raises(ExtractionError) as exc_info:
            await GeminiService().extract_menu(images)
        assert exc_info.value.message == "Failed to extract menu data: No response text."

    @pytest.mark.asyncio
    async def test_malformed_json(self, mock_model, images):
        mock_model.generate_content_async.return_value = _response('{"restaurantName": "X", "categ')

        with pytest.raises(ExtractionError) as exc_info:
            await GeminiService().extract_menu(images)
        assert exc_info.value.message == "Failed to parse menu data from AI response."

    @pytest.mark.asyncio
    async def test_wrong_shape_json(self, mock_model, images):
        mock_model.generate_content_async.return_value = _response('{"items": []}')

        with pytest.raises(ExtractionError) as exc_info:
            await GeminiService().extract_menu(images)
        assert exc_info.value.message == "Failed to parse menu data from AI response."

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, mock_model, images, cafe_sol_payload, no_backoff):
        mock_model.generate_content_async.side_effect = [
            google_exceptions.ServiceUnavailable("overloaded"),
            _response(json.dumps(cafe_sol_payload)),
        ]

        document = await GeminiService().extract_menu(images)
        assert document.restaurant_name == "Cafe Sol"
        assert mock_model.generate_content_async.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, mock_model, images, no_backoff):
        mock_model.generate_content_async.side_effect = google_exceptions.ServiceUnavailable("down")

        service = GeminiService()
        with pytest.raises(ExtractionError) as exc_info:
            await service.extract_menu(images)

        assert exc_info.value.message == (
            "AI menu extraction failed after multiple attempts. Please try again later."
        )
        assert exc_info.value.retry_after == service.circuit_breaker.recovery_timeout
        assert mock_model.generate_content_async.await_count == 3
        assert service.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_non_transient_error_not_retried(self, mock_model, images, no_backoff):
        mock_model.generate_content_async.side_effect = google_exceptions.PermissionDenied("bad key")

        with pytest.raises(ExtractionError) as exc_info:
            await GeminiService().extract_menu(images)

        assert exc_info.value.message == "An unexpected error occurred during menu extraction."
        assert mock_model.generate_content_async.await_count == 1

    @pytest.mark.asyncio
    async def test_circuit_opens_then_blocks(self, mock_model, images, no_backoff):
        mock_model.generate_content_async.side_effect = google_exceptions.PermissionDenied("bad key")

        service = GeminiService()
        for _ in range(service.circuit_breaker.failure_threshold):
            with pytest.raises(ExtractionError):
                await service.extract_menu(images)

        assert service.circuit_breaker.state == "open"
        calls_before = mock_model.generate_content_async.await_count

        with pytest.raises(CircuitBreakerOpenError):
            await service.extract_menu(images)
        assert mock_model.generate_content_async.await_count == calls_before


class TestHealthCheck:

    @pytest.mark.asyncio
    async def test_reachable(self, mock_genai, mock_model):
        model = MagicMock()
        model.name = "models/gemini-2.5-flash"
        mock_genai.list_models.return_value = [model]
        assert await GeminiService().health_check() is True

    @pytest.mark.asyncio
    async def test_unreachable(self, mock_genai, mock_model):
        mock_genai.list_models.side_effect = ConnectionError("offline")
        assert await GeminiService().health_check() is False
