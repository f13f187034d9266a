"""
SnapMenu Backend — Abstract Menu Extractor Interface
======================================================

What:  Abstract base class for AI menu extraction providers.
How:   Concrete implementations inherit from MenuExtractor and implement
       extract_menu() and health_check().
Who:   Called by MenuService during the extraction workflow.
When:  After image validation; the result goes straight to the editor.

Contract:
    The extractor is a black box that turns photos into a best-effort
    MenuDocument. Nothing downstream depends on how it does that; it only
    depends on the output shape and on failures arriving as ExtractionError
    with a message that can be shown to the user as-is.
"""

from abc import ABC, abstractmethod
from typing import Sequence

from snapmenu.schemas.menu import MenuDocument
from snapmenu.services.image_service import MenuImage


class MenuExtractor(ABC):
    """
    Abstract interface for AI-powered menu extraction from photos.

    Implementations:
        - GeminiService: Google Gemini structured-output extraction (default)
    """

    @abstractmethod
    async def extract_menu(self, images: Sequence[MenuImage]) -> MenuDocument:
        """
        Extract a structured menu from one or more page photos.

        Args:
            images: Validated menu pages, in page order.

        Returns:
            MenuDocument conforming to the menu schema. Restaurant name
            falls back to "Restaurant Menu" when none is visible.

        Raises:
            ExtractionError: No images, empty or unparseable model output,
                or the provider failed after all retries.
            CircuitBreakerOpenError: Too many recent consecutive failures.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the provider is reachable without spending extraction quota.

        Returns: True if reachable, False otherwise. Never raises.
        """
        ...
