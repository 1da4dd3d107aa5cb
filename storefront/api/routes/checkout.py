"""
Checkout routes

Flow per cart session:
1. continue: review cart -> customer details (cart must not be empty)
2. details: customer data (and optional shipping address) -> payment
3. payment: submit the order; the cart is cleared only on success
4. back: payment -> customer details

Invalid transitions answer 409, missing fields 422, order backend
failures 502 with the flow still in payment.
"""
import logging

from fastapi import APIRouter, Depends, Request

from storefront.api.deps import get_checkout_flow, get_checkout_state
from storefront.core.config import settings
from storefront.core.rate_limit import limiter
from storefront.schemas.order import CheckoutDetailsRequest, CheckoutStateResponse
from storefront.services.checkout import CheckoutOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=CheckoutStateResponse)
async def get_checkout(state: CheckoutStateResponse = Depends(get_checkout_state)):
    return state


@router.post("/continue", response_model=CheckoutStateResponse)
async def continue_to_details(flow: CheckoutOrchestrator = Depends(get_checkout_flow)):
    flow.continue_to_details()
    return flow.state()


@router.post("/details", response_model=CheckoutStateResponse)
async def submit_details(
    body: CheckoutDetailsRequest,
    flow: CheckoutOrchestrator = Depends(get_checkout_flow),
):
    flow.submit_details(
        body.customer,
        ship_to_different_address=body.ship_to_different_address,
        shipping_address=body.shipping_address,
    )
    return flow.state()


@router.post("/back", response_model=CheckoutStateResponse)
async def back_to_details(flow: CheckoutOrchestrator = Depends(get_checkout_flow)):
    flow.back()
    return flow.state()


@router.post("/payment", response_model=CheckoutStateResponse)
@limiter.limit(settings.RATE_LIMIT_CHECKOUT)
async def submit_payment(
    request: Request,
    flow: CheckoutOrchestrator = Depends(get_checkout_flow),
):
    """Create the order. Retrying after a failure reuses the same idempotency key."""
    logger.info(f"[CHECKOUT] Payment submitted key={flow.idempotency_key}")
    await flow.submit_payment()
    return flow.state()
