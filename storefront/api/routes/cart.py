"""
Cart routes

Session-scoped cart; every mutation answers with the refreshed cart panel.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from storefront.api.deps import get_cart_store, get_catalog_service
from storefront.schemas.cart import CartItemCreate, CartPanel, ClearCartResponse, ReconcileResponse
from storefront.services.cart_store import CartStore
from storefront.services.cart_views import (
    EMPTY_CART_MESSAGE,
    cart_cleared_message,
    empty_cart_prompt,
    render_panel,
)
from storefront.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter()


def _line_not_found(product_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Product {product_id} is not in the cart",
    )


@router.get("", response_model=CartPanel)
async def get_cart(cart: CartStore = Depends(get_cart_store)):
    return render_panel(cart.snapshot())


@router.post("/items", response_model=CartPanel, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    item_data: CartItemCreate,
    cart: CartStore = Depends(get_cart_store),
    service: CatalogService = Depends(get_catalog_service),
):
    """Add one unit; a product already in the cart gets its quantity raised."""
    product = await service.get_product(item_data.product_id)
    # Other requests for this session may have written while we awaited
    cart.reload()
    cart.add_or_increment(product)
    return render_panel(cart.snapshot())


@router.post("/items/{product_id}/increment", response_model=CartPanel)
async def increment_item(product_id: str, cart: CartStore = Depends(get_cart_store)):
    if cart.increment(product_id) is None:
        raise _line_not_found(product_id)
    return render_panel(cart.snapshot())


@router.post("/items/{product_id}/decrement", response_model=CartPanel)
async def decrement_item(product_id: str, cart: CartStore = Depends(get_cart_store)):
    """Quantity never drops below 1 here; use DELETE to remove the line."""
    if cart.decrement(product_id) is None:
        raise _line_not_found(product_id)
    return render_panel(cart.snapshot())


@router.delete("/items/{product_id}", response_model=CartPanel)
async def remove_item(product_id: str, cart: CartStore = Depends(get_cart_store)):
    if not cart.remove(product_id):
        raise _line_not_found(product_id)
    return render_panel(cart.snapshot())


@router.delete("", response_model=ClearCartResponse)
async def clear_cart(confirm: bool = False, cart: CartStore = Depends(get_cart_store)):
    """
    Empty the cart.

    Without `confirm=true` nothing is removed and the response carries the
    confirmation prompt to show the shopper.
    """
    if cart.is_empty():
        return ClearCartResponse(removed_items=0, message=EMPTY_CART_MESSAGE)
    if not confirm:
        return ClearCartResponse(
            removed_items=0,
            message=empty_cart_prompt(cart.item_count()),
            confirmation_required=True,
        )
    removed = cart.clear()
    return ClearCartResponse(removed_items=removed, message=cart_cleared_message(removed))


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_cart(
    cart: CartStore = Depends(get_cart_store),
    service: CatalogService = Depends(get_catalog_service),
):
    """Refresh line names, images and prices from the current catalog."""
    result = await service.list_all()
    cart.reload()
    if result.unavailable:
        return ReconcileResponse(changed=[], catalog_unavailable=True, cart=render_panel(cart.snapshot()))
    changed = cart.reconcile(view.product for view in result.products)
    return ReconcileResponse(changed=changed, cart=render_panel(cart.snapshot()))
