"""
SnapMenu Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixtures:
    ├── cafe_sol: The two-category menu used across codec/share/route tests
    ├── cafe_sol_payload: The same menu as camelCase wire JSON
    ├── png_bytes / jpeg_bytes: Small real images generated with Pillow
    └── test_client: HTTPX AsyncClient for API endpoint testing
"""

import os
from io import BytesIO

# Override settings for testing BEFORE any snapmenu imports
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["SHARE_BASE_URL"] = "https://snapmenu.example/"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image

from snapmenu.schemas.menu import MenuDocument


# ══════════════════════════════════════════════════════════════════════════
# Menu Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def cafe_sol_payload():
    """Wire-format menu: two categories, one tagged item, one untagged."""
    return {
        "restaurantName": "Cafe Sol",
        "description": "Sunny breakfasts",
        "categories": [
            {
                "name": "Coffee",
                "items": [
                    {"name": "Latte", "description": "", "price": "$4.00"},
                ],
            },
            {
                "name": "Food",
                "items": [
                    {
                        "name": "Toast",
                        "description": "Sourdough",
                        "price": "$6.50",
                        "tags": ["Vegan"],
                    },
                ],
            },
        ],
    }


@pytest.fixture
def cafe_sol(cafe_sol_payload):
    return MenuDocument.model_validate(cafe_sol_payload)


@pytest.fixture
def long_menu():
    """A menu whose share link is well past the QR advisory length."""
    return MenuDocument.model_validate({
        "restaurantName": "Long Menu House",
        "categories": [
            {
                "name": f"Section {c}",
                "items": [
                    {
                        "name": f"Dish {c}-{i} with a distinctive name {c * 31 + i * 17}",
                        "description": f"Ingredients {c}{i} {(c + 3) * (i + 7) * 104729}",
                        "price": f"${c}.{i:02d}",
                    }
                    for i in range(20)
                ],
            }
            for c in range(8)
        ],
    })


# ══════════════════════════════════════════════════════════════════════════
# Image Fixtures
# ══════════════════════════════════════════════════════════════════════════

def _image_bytes(fmt: str) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (8, 8), color=(200, 120, 40)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return _image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return _image_bytes("JPEG")


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client():
    """
    Async HTTP client routed straight into a fresh app instance.

    A fresh app per test keeps rate-limit counters isolated.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from snapmenu.main import create_app
    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
