"""
Pricing

Pure functions over anything product-shaped: Product, CartLine or a plain
mapping with the same field names. Amounts are accumulated at full float
precision; rounding to two digits happens only in format_price.
"""
from typing import Any, Iterable, Optional

from storefront.schemas.product import DEFAULT_INSTALLMENTS


def _field(item: Any, name: str, default=None):
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def effective_unit_price(item: Any) -> float:
    """Sale price when the item is on sale and has one, otherwise the regular price."""
    sale_price = _field(item, "sale_price")
    if _field(item, "on_sale") and sale_price is not None:
        return sale_price
    return _field(item, "price") or 0.0


def installment_count(item: Any) -> int:
    """Configured installments; absent, None or anything below 1 falls back to 12."""
    count = _field(item, "installments")
    if not count or count < 1:
        return DEFAULT_INSTALLMENTS
    return count


def installment_unit_price(item: Any) -> float:
    return effective_unit_price(item) / installment_count(item)


def line_total(line: Any) -> float:
    return effective_unit_price(line) * _field(line, "quantity", 0)


def cart_total(lines: Iterable[Any]) -> float:
    return sum((line_total(line) for line in lines), 0.0)


def cart_item_count(lines: Iterable[Any]) -> int:
    return sum(_field(line, "quantity", 0) for line in lines)


def format_price(
    amount: float,
    thousands_separator: Optional[str] = None,
    decimal_separator: Optional[str] = None,
) -> str:
    """
    Two fraction digits with grouping, e.g. 1234.5 -> "1.234,50".

    Separators default to the configured store locale.
    """
    if thousands_separator is None or decimal_separator is None:
        from storefront.core.config import settings
        if thousands_separator is None:
            thousands_separator = settings.PRICE_THOUSANDS_SEPARATOR
        if decimal_separator is None:
            decimal_separator = settings.PRICE_DECIMAL_SEPARATOR

    formatted = f"{amount:,.2f}"
    integer_part, fraction = formatted.split(".")
    return f"{integer_part.replace(',', thousands_separator)}{decimal_separator}{fraction}"
