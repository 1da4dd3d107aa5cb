"""
Catalog service

Turns catalog failures into a degraded, empty result with a retry hint
instead of an error. Responses are rendered as they arrive; there is no
ordering between concurrent queries.
"""
import logging
from typing import Awaitable, Callable, List, Optional

from pydantic import BaseModel

from storefront.adapters.supabase_catalog import SupabaseCatalogClient
from storefront.core.exceptions import CatalogUnavailableError
from storefront.schemas.product import Product, ProductView
from storefront.services.pricing import (
    effective_unit_price,
    format_price,
    installment_count,
    installment_unit_price,
)

logger = logging.getLogger(__name__)

ALL_PRODUCTS_TITLE = "Todos los productos"
UNAVAILABLE_MESSAGE = "No pudimos cargar los productos. Intentá de nuevo."


class CatalogResult(BaseModel):
    title: str
    products: List[ProductView] = []
    subcategories: List[str] = []
    unavailable: bool = False
    message: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.products


def build_product_view(product: Product) -> ProductView:
    unit_price = effective_unit_price(product)
    per_installment = installment_unit_price(product)
    return ProductView(
        product=product,
        unit_price=unit_price,
        unit_price_display=format_price(unit_price),
        installments=installment_count(product),
        installment_price=per_installment,
        installment_price_display=format_price(per_installment),
        in_stock=product.in_stock,
    )


class CatalogService:
    def __init__(self, client: SupabaseCatalogClient, store_categories: Optional[List[str]] = None):
        self.client = client
        self.store_categories = list(store_categories or [])

    async def _load(
        self,
        title: str,
        fetch: Callable[[], Awaitable[List[Product]]],
    ) -> CatalogResult:
        try:
            products = await fetch()
        except CatalogUnavailableError as e:
            logger.warning(f"[CATALOG] '{title}' unavailable: {e.message}")
            return CatalogResult(title=title, unavailable=True, message=UNAVAILABLE_MESSAGE)
        return CatalogResult(title=title, products=[build_product_view(p) for p in products])

    async def list_all(self) -> CatalogResult:
        return await self._load(ALL_PRODUCTS_TITLE, self.client.fetch_all)

    async def list_category(self, category: str) -> CatalogResult:
        """Products in a category, with its subcategories for grouping."""
        result = await self._load(category, lambda: self.client.fetch_by_category(category))
        if result.unavailable:
            return result
        try:
            result.subcategories = await self.client.fetch_subcategories(category)
        except CatalogUnavailableError as e:
            # Products are already loaded; show them ungrouped
            logger.warning(f"[CATALOG] Subcategories for '{category}' unavailable: {e.message}")
        if result.is_empty:
            result.message = f"De momento no hay productos en esta categoría {category}."
        return result

    async def list_subcategory(self, category: str, subcategory: str) -> CatalogResult:
        return await self._load(
            subcategory,
            lambda: self.client.fetch_by_subcategory(category, subcategory),
        )

    async def search(self, term: str) -> CatalogResult:
        result = await self._load(
            f'Resultados de búsqueda para "{term}"',
            lambda: self.client.search(term),
        )
        if not result.unavailable and result.is_empty:
            result.message = f'No hay productos que coincidan con la búsqueda "{term}".'
        return result

    async def get_product(self, product_id: str) -> Product:
        """Single product; unlike listings this raises on failure."""
        return await self.client.fetch_one(product_id)

    async def categories(self) -> List[str]:
        """Store menu categories, or the ones found in the table when none are configured."""
        if self.store_categories:
            return list(self.store_categories)
        try:
            return await self.client.fetch_categories()
        except CatalogUnavailableError:
            return []

    async def subcategories(self, category: str) -> List[str]:
        try:
            return await self.client.fetch_subcategories(category)
        except CatalogUnavailableError:
            return []
