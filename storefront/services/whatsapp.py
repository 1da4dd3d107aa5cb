"""
WhatsApp consult link for a product card.
"""
from typing import Optional
from urllib.parse import quote

from storefront.core.config import settings
from storefront.schemas.product import Product
from storefront.services.pricing import (
    effective_unit_price,
    installment_count,
    installment_unit_price,
)


def build_consult_message(product: Product) -> str:
    price = effective_unit_price(product)
    installments = installment_count(product)
    per_installment = installment_unit_price(product)
    return (
        f"Hola, quiero consultar sobre el producto *{product.name}*, "
        f"que tiene un precio de *${price:.2f}* "
        f"en *{installments} cuotas de ${per_installment:.2f}*. Muchas gracias!"
    )


def build_consult_link(
    product: Product,
    phone: Optional[str] = None,
    base_url: Optional[str] = None,
) -> str:
    phone = phone or settings.WHATSAPP_PHONE
    base_url = base_url or settings.WHATSAPP_BASE_URL
    return f"{base_url}?phone={phone}&text={quote(build_consult_message(product), safe='')}"
