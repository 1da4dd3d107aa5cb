"""
Pytest configuration and fixtures for storefront tests.
"""
import os
from typing import Any, Callable, Dict

import httpx
import pytest

# Set test environment before importing storefront modules
os.environ["ENVIRONMENT"] = "development"
os.environ["SUPABASE_URL"] = "http://supabase.test"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CART_STORAGE_BACKEND"] = "memory"

from storefront.adapters.storage import MemoryStorage  # noqa: E402
from storefront.core.http_client import ResilientHTTPClient, RetryConfig  # noqa: E402
from storefront.schemas.product import Product, product_from_row  # noqa: E402

SUPABASE_REST_URL = "http://supabase.test/rest/v1"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def product_row() -> Callable[..., Dict[str, Any]]:
    """Factory for raw `products` rows as PostgREST returns them."""
    def _make(**overrides) -> Dict[str, Any]:
        row = {
            "id": 1,
            "name": "Aire acondicionado split",
            "description": "Frío/calor 3000 frigorías",
            "description_large": None,
            "price": 100.0,
            "sale_price": None,
            "on_sale": False,
            "installments": 12,
            "image_url": "https://cdn.test/split.jpg",
            "image1_url": None,
            "image2_url": None,
            "image3_url": None,
            "category": "Climatización",
            "subcategory": "Aires acondicionados",
            "stock": 5,
            "featured": False,
            "created_at": "2024-05-01T12:00:00+00:00",
        }
        row.update(overrides)
        return row
    return _make


@pytest.fixture
def make_product(product_row) -> Callable[..., Product]:
    def _make(**overrides) -> Product:
        return product_from_row(product_row(**overrides))
    return _make


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def mock_http() -> Callable[..., ResilientHTTPClient]:
    """Build a Supabase REST client whose transport is a handler function."""
    def _make(handler, max_retries: int = 0) -> ResilientHTTPClient:
        client = ResilientHTTPClient(
            retry_config=RetryConfig(
                max_retries=max_retries,
                base_delay=0,
                max_delay=0,
                jitter_factor=0,
            ),
            timeout=5.0,
            base_url=SUPABASE_REST_URL,
        )
        client._client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            base_url=SUPABASE_REST_URL,
            timeout=client.timeout,
        )
        return client
    return _make
