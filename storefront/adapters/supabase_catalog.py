"""
Supabase catalog adapter

Read queries over the PostgREST `products` table plus the admin writes.
Every row goes through product_from_row, so ids are always row ids. Rows
that fail validation are logged and left out of the result.

Search folds accents and case in Python over the full listing.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from storefront.core.exceptions import CatalogUnavailableError, ProductNotFoundError
from storefront.core.http_client import RateLimitExceeded, ResilientHTTPClient, get_supabase_client
from storefront.core.utils import normalize_text
from storefront.schemas.product import PRODUCT_COLUMNS, Product, ProductWrite, product_from_row

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("name", "description", "description_large", "subcategory")


@dataclass
class SchemaCheck:
    valid: bool
    message: str
    missing_columns: List[str] = field(default_factory=list)


def _distinct(values) -> List[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def matches_search(product: Product, term: str) -> bool:
    """Accent- and case-insensitive substring match over the searchable fields."""
    needle = normalize_text(term)
    if not needle:
        return False
    return any(needle in normalize_text(getattr(product, name)) for name in SEARCH_FIELDS)


class SupabaseCatalogClient:
    """Catalog source backed by Supabase."""

    def __init__(self, http: ResilientHTTPClient, table: str = "products"):
        self.http = http
        self.table = table

    @classmethod
    def from_settings(cls, settings) -> "SupabaseCatalogClient":
        http = get_supabase_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_ANON_KEY,
            max_retries=settings.CATALOG_MAX_RETRIES,
            timeout=settings.CATALOG_TIMEOUT_SECONDS,
        )
        return cls(http, table=settings.SUPABASE_PRODUCTS_TABLE)

    async def close(self) -> None:
        await self.http.close()

    async def _request(
        self,
        operation: str,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        try:
            response = await self.http.request(
                method, f"/{self.table}", params=params, json=json, headers=headers
            )
        except httpx.HTTPStatusError as e:
            logger.error(f"[CATALOG] {operation} failed with status {e.response.status_code}")
            raise CatalogUnavailableError(
                f"Catalog query '{operation}' failed",
                operation=operation,
                status=e.response.status_code,
            ) from e
        except (httpx.HTTPError, RateLimitExceeded) as e:
            logger.error(f"[CATALOG] {operation} failed: {type(e).__name__}: {e}")
            raise CatalogUnavailableError(
                f"Catalog query '{operation}' failed",
                operation=operation,
            ) from e

        if response.status_code == 204 or not response.content:
            return []
        try:
            return response.json()
        except ValueError as e:
            raise CatalogUnavailableError(
                f"Catalog query '{operation}' returned invalid JSON",
                operation=operation,
                status=response.status_code,
            ) from e

    async def _select(self, operation: str, params: Dict[str, Any]) -> List[Product]:
        rows = await self._request(operation, "GET", params={"select": "*", **params})
        products = []
        for row in rows:
            try:
                products.append(product_from_row(row))
            except ValidationError as e:
                logger.warning(
                    f"[CATALOG] {operation}: skipping invalid row id={row.get('id')}: "
                    f"{e.error_count()} errors"
                )
        logger.debug(f"[CATALOG] {operation}: {len(products)} products")
        return products

    # ----- reads -----

    async def fetch_all(self) -> List[Product]:
        """All products, newest first."""
        return await self._select("fetch_all", {"order": "created_at.desc"})

    async def fetch_by_category(self, category: str) -> List[Product]:
        return await self._select(
            "fetch_by_category",
            {"category": f"eq.{category}", "order": "name.asc"},
        )

    async def fetch_by_subcategory(self, category: str, subcategory: str) -> List[Product]:
        return await self._select(
            "fetch_by_subcategory",
            {"category": f"eq.{category}", "subcategory": f"eq.{subcategory}"},
        )

    async def search(self, term: str) -> List[Product]:
        """Products whose name, descriptions or subcategory contain the term."""
        if not normalize_text(term):
            return []
        products = await self.fetch_all()
        return [p for p in products if matches_search(p, term)]

    async def fetch_one(self, product_id: str) -> Product:
        products = await self._select("fetch_one", {"id": f"eq.{product_id}", "limit": 1})
        if not products:
            raise ProductNotFoundError(str(product_id))
        return products[0]

    async def fetch_categories(self) -> List[str]:
        """Distinct non-null categories present in the table."""
        rows = await self._request(
            "fetch_categories", "GET",
            params={"select": "category", "category": "not.is.null"},
        )
        return _distinct(row.get("category") for row in rows)

    async def fetch_subcategories(self, category: str) -> List[str]:
        rows = await self._request(
            "fetch_subcategories", "GET",
            params={
                "select": "subcategory",
                "category": f"eq.{category}",
                "subcategory": "not.is.null",
            },
        )
        return _distinct(row.get("subcategory") for row in rows)

    async def check_schema(self) -> SchemaCheck:
        """Compare a sample row's columns with the ones the storefront reads."""
        rows = await self._request("check_schema", "GET", params={"select": "*", "limit": 1})
        if not rows:
            return SchemaCheck(valid=True, message="Table exists but is empty")
        missing = [col for col in PRODUCT_COLUMNS if col not in rows[0]]
        if missing:
            logger.warning(f"[CATALOG] Missing columns: {missing}")
            return SchemaCheck(
                valid=False,
                message=f"Missing required columns: {', '.join(missing)}",
                missing_columns=missing,
            )
        return SchemaCheck(valid=True, message="Table structure is valid")

    # ----- admin writes -----

    async def create_product(self, data: ProductWrite) -> Product:
        rows = await self._request(
            "create_product", "POST",
            json=data.model_dump(exclude_none=True),
            headers={"Prefer": "return=representation"},
        )
        return product_from_row(rows[0])

    async def update_product(self, product_id: str, data: ProductWrite) -> Product:
        rows = await self._request(
            "update_product", "PATCH",
            params={"id": f"eq.{product_id}"},
            json=data.model_dump(exclude_unset=True),
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise ProductNotFoundError(str(product_id))
        return product_from_row(rows[0])

    async def delete_product(self, product_id: str) -> bool:
        await self._request("delete_product", "DELETE", params={"id": f"eq.{product_id}"})
        return True
