"""
Cart views

Stateless renderers over CartSnapshot. The header badge, the menu badge and
the side panel all derive from the same snapshot; none of them keeps state
of its own or writes back to the store.
"""
from typing import Any, Callable

from storefront.schemas.cart import CartLineView, CartPanel, CartSnapshot
from storefront.services.pricing import (
    effective_unit_price,
    format_price,
    installment_unit_price,
    line_total,
)

EMPTY_CART_MESSAGE = "Tu carrito está vacío"


def render_badge(snapshot: CartSnapshot) -> str:
    return str(snapshot.item_count)


def render_line(line) -> CartLineView:
    installment_price = installment_unit_price(line)
    total = line_total(line)
    return CartLineView(
        line=line,
        unit_price=effective_unit_price(line),
        installment_price=installment_price,
        installment_price_display=format_price(installment_price),
        line_total=total,
        line_total_display=format_price(total),
    )


def render_panel(snapshot: CartSnapshot) -> CartPanel:
    return CartPanel(
        lines=[render_line(line) for line in snapshot.lines],
        item_count=snapshot.item_count,
        badge=render_badge(snapshot),
        total_price=snapshot.total_price,
        total_price_display=format_price(snapshot.total_price),
        is_empty=snapshot.is_empty,
        empty_message=EMPTY_CART_MESSAGE if snapshot.is_empty else None,
    )


def empty_cart_prompt(item_count: int) -> str:
    """Text of the confirmation asked before emptying the cart."""
    noun = "productos" if item_count > 1 else "producto"
    return f"Tenés {item_count} {noun} en el carrito."


def cart_cleared_message(removed: int) -> str:
    if removed > 1:
        return f"Carrito vaciado. Se eliminaron {removed} productos."
    return f"Carrito vaciado. Se eliminó {removed} producto."


class CartView:
    """
    Store subscriber: renders each snapshot and passes the result to a sink.

    Usage:
        store.subscribe(CartView(render_badge, header_badge.set_text))
        store.subscribe(CartView(render_badge, menu_badge.set_text))
        store.subscribe(CartView(render_panel, side_panel.update))
    """

    def __init__(self, render: Callable[[CartSnapshot], Any], sink: Callable[[Any], None]):
        self.render = render
        self.sink = sink

    def __call__(self, snapshot: CartSnapshot) -> None:
        self.sink(self.render(snapshot))
