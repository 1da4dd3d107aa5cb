"""
Order backend adapter

Inserts the checkout Order snapshot into the Supabase `orders` table.
Single attempt, no retries; the Idempotency-Key header lets a backend that
honours it collapse repeated submissions of the same checkout.
"""
import logging
from abc import ABC, abstractmethod

import httpx

from storefront.core.exceptions import OrderSubmissionError
from storefront.core.http_client import RateLimitExceeded, ResilientHTTPClient, get_supabase_client
from storefront.schemas.order import Order, OrderReceipt
from storefront.services.pricing import cart_item_count

logger = logging.getLogger(__name__)


class OrderBackend(ABC):
    """Accepts an Order snapshot and returns its identifier."""

    @abstractmethod
    async def submit(self, order: Order) -> OrderReceipt:
        """Raises OrderSubmissionError on any failure."""


class SupabaseOrderBackend(OrderBackend):
    def __init__(self, http: ResilientHTTPClient, table: str = "orders"):
        self.http = http
        self.table = table

    @classmethod
    def from_settings(cls, settings) -> "SupabaseOrderBackend":
        http = get_supabase_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_ANON_KEY,
            max_retries=0,
            timeout=settings.CATALOG_TIMEOUT_SECONDS,
        )
        return cls(http, table=settings.SUPABASE_ORDERS_TABLE)

    async def close(self) -> None:
        await self.http.close()

    async def submit(self, order: Order) -> OrderReceipt:
        try:
            response = await self.http.post(
                f"/{self.table}",
                json=[order.to_row()],
                headers={
                    "Prefer": "return=representation",
                    "Idempotency-Key": order.idempotency_key,
                },
            )
            rows = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"[ORDER] Insert rejected status={e.response.status_code} key={order.idempotency_key}"
            )
            raise OrderSubmissionError(
                "Order backend rejected the order",
                idempotency_key=order.idempotency_key,
                status=e.response.status_code,
            ) from e
        except (httpx.HTTPError, RateLimitExceeded, ValueError) as e:
            logger.error(f"[ORDER] Insert failed key={order.idempotency_key}: {type(e).__name__}: {e}")
            raise OrderSubmissionError(
                "Could not reach the order backend",
                idempotency_key=order.idempotency_key,
            ) from e

        if not rows or rows[0].get("id") is None:
            raise OrderSubmissionError(
                "Order backend did not return an order id",
                idempotency_key=order.idempotency_key,
            )

        row = rows[0]
        logger.info(f"[ORDER] Created order {row['id']} total={order.total:.2f}")
        return OrderReceipt(
            order_id=str(row["id"]),
            total=order.total,
            item_count=cart_item_count(order.items),
            created_at=row.get("created_at"),
        )
