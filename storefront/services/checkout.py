"""
Checkout Orchestrator

Linear flow: REVIEW_CART -> CUSTOMER_DETAILS -> PAYMENT -> CONFIRMATION.
The only backward move is PAYMENT -> CUSTOMER_DETAILS. The cart is cleared
only after the order backend accepted the order; on failure the flow stays
in PAYMENT with the cart untouched and the caller decides whether to retry.

One idempotency key per checkout session, shared by every submit attempt.
"""
import logging
from enum import Enum
from typing import Optional

from storefront.adapters.order_backend import OrderBackend
from storefront.core.exceptions import (
    CheckoutTransitionError,
    CheckoutValidationError,
    OrderSubmissionError,
)
from storefront.core.utils import new_token
from storefront.schemas.order import (
    CheckoutStateResponse,
    CustomerDetails,
    Order,
    OrderItem,
    OrderReceipt,
    ShippingAddress,
)
from storefront.services.cart_store import CartStore
from storefront.services.pricing import cart_total, effective_unit_price, installment_count

logger = logging.getLogger(__name__)


class CheckoutStep(str, Enum):
    REVIEW_CART = "review_cart"
    CUSTOMER_DETAILS = "customer_details"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"


class CheckoutOrchestrator:
    def __init__(
        self,
        cart: CartStore,
        backend: OrderBackend,
        idempotency_key: Optional[str] = None,
    ):
        self.cart = cart
        self.backend = backend
        self.idempotency_key = idempotency_key or new_token()
        self.step = CheckoutStep.REVIEW_CART
        self.customer: Optional[CustomerDetails] = None
        self.shipping_address: Optional[ShippingAddress] = None
        self.receipt: Optional[OrderReceipt] = None
        self.last_error: Optional[str] = None
        self._submitting = False

    def _require(self, expected: CheckoutStep, action: str) -> None:
        if self.step != expected:
            raise CheckoutTransitionError(
                f"Cannot {action} from step '{self.step.value}'",
                current_step=self.step.value,
                action=action,
            )

    def continue_to_details(self) -> CheckoutStep:
        self._require(CheckoutStep.REVIEW_CART, "continue_to_details")
        if self.cart.is_empty():
            raise CheckoutTransitionError(
                "Cannot check out an empty cart",
                current_step=self.step.value,
                action="continue_to_details",
            )
        self.step = CheckoutStep.CUSTOMER_DETAILS
        return self.step

    def submit_details(
        self,
        customer: CustomerDetails,
        ship_to_different_address: bool = False,
        shipping_address: Optional[ShippingAddress] = None,
    ) -> CheckoutStep:
        """
        Capture customer data and move to payment.

        The shipping block counts only when the toggle is set at submission.
        """
        self._require(CheckoutStep.CUSTOMER_DETAILS, "submit_details")

        missing = customer.missing_fields()
        if ship_to_different_address:
            if shipping_address is None:
                missing.append("shipping_address")
            else:
                missing.extend(f"shipping_address.{f}" for f in shipping_address.missing_fields())
        if missing:
            raise CheckoutValidationError("Missing required fields", missing_fields=missing)

        self.customer = customer
        self.shipping_address = shipping_address if ship_to_different_address else None
        self.step = CheckoutStep.PAYMENT
        return self.step

    def back(self) -> CheckoutStep:
        self._require(CheckoutStep.PAYMENT, "back")
        self.step = CheckoutStep.CUSTOMER_DETAILS
        return self.step

    def build_order(self) -> Order:
        lines = self.cart.lines
        items = [
            OrderItem(
                product_id=line.product_id,
                name=line.name,
                price=effective_unit_price(line),
                quantity=line.quantity,
                installments=installment_count(line),
                image_url=line.image_url,
            )
            for line in lines
        ]
        return Order(
            customer=self.customer,
            shipping_address=self.shipping_address,
            items=items,
            total=cart_total(lines),
            idempotency_key=self.idempotency_key,
        )

    async def submit_payment(self) -> OrderReceipt:
        """Send the order; clear the cart only when the backend accepted it."""
        self._require(CheckoutStep.PAYMENT, "submit_payment")
        if self._submitting:
            raise CheckoutTransitionError(
                "Order submission already in progress",
                current_step=self.step.value,
                action="submit_payment",
            )
        if self.cart.is_empty():
            raise CheckoutTransitionError(
                "Cannot submit an order for an empty cart",
                current_step=self.step.value,
                action="submit_payment",
            )

        order = self.build_order()
        self._submitting = True
        try:
            receipt = await self.backend.submit(order)
        except OrderSubmissionError as e:
            self.last_error = e.message
            logger.warning(f"[CHECKOUT] Order submission failed key={self.idempotency_key}: {e.message}")
            raise
        finally:
            self._submitting = False

        self.cart.clear()
        self.receipt = receipt
        self.last_error = None
        self.step = CheckoutStep.CONFIRMATION
        logger.info(f"[CHECKOUT] Order {receipt.order_id} confirmed ({receipt.item_count} items)")
        return receipt

    def state(self) -> CheckoutStateResponse:
        return CheckoutStateResponse(
            step=self.step.value,
            customer=self.customer,
            shipping_address=self.shipping_address,
            receipt=self.receipt,
            last_error=self.last_error,
        )
