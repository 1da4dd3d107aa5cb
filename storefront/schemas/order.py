"""
Order and checkout schemas
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

# Fields that must be non-blank before leaving the details step
REQUIRED_CUSTOMER_FIELDS = [
    "first_name",
    "last_name",
    "email",
    "phone",
    "street",
    "street_number",
    "city",
    "province",
    "postal_code",
]

REQUIRED_SHIPPING_FIELDS = [
    "recipient_name",
    "street",
    "street_number",
    "city",
    "province",
    "postal_code",
]


def _missing(model: BaseModel, fields: List[str]) -> List[str]:
    return [f for f in fields if not str(getattr(model, f) or "").strip()]


class CustomerDetails(BaseModel):
    """Contact and billing address. Presence is checked, format is not."""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    document: str = ""
    country: str = "Argentina"
    province: str = ""
    city: str = ""
    postal_code: str = ""
    street: str = ""
    street_number: str = ""

    def missing_fields(self) -> List[str]:
        return _missing(self, REQUIRED_CUSTOMER_FIELDS)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def address_line(self) -> str:
        return f"{self.street} {self.street_number}, {self.city}, {self.province}"


class ShippingAddress(BaseModel):
    """Second address block used when shipping somewhere else."""
    recipient_name: str = ""
    country: str = "Argentina"
    province: str = ""
    city: str = ""
    postal_code: str = ""
    street: str = ""
    street_number: str = ""

    def missing_fields(self) -> List[str]:
        return _missing(self, REQUIRED_SHIPPING_FIELDS)

    @property
    def address_line(self) -> str:
        return f"{self.street} {self.street_number}, {self.city}, {self.province}"


class OrderItem(BaseModel):
    product_id: str
    name: str
    price: float  # effective unit price at checkout
    quantity: int
    installments: int
    image_url: Optional[str] = None


class Order(BaseModel):
    """Snapshot built once at checkout completion."""
    customer: CustomerDetails
    shipping_address: Optional[ShippingAddress] = None
    items: List[OrderItem]
    total: float
    status: str = "pending"
    idempotency_key: str

    def to_row(self) -> Dict[str, Any]:
        """
        Row for the `orders` table.

        The user_* columns always hold the customer's own data; a separate
        shipping block goes in `shipping_address` only when one was given.
        """
        customer = self.customer
        row = {
            "user_email": customer.email,
            "user_name": customer.full_name,
            "user_doc": customer.document or "",
            "user_phone": customer.phone,
            "user_address": customer.address_line,
            "user_postalcode": customer.postal_code,
            "user_recept": customer.first_name,
            "items": [item.model_dump() for item in self.items],
            "total": self.total,
            "status": self.status,
        }
        if self.shipping_address is not None:
            row["shipping_address"] = self.shipping_address.model_dump()
        return row


class OrderReceipt(BaseModel):
    order_id: str
    total: float
    item_count: int
    created_at: Optional[datetime] = None


class CheckoutDetailsRequest(BaseModel):
    customer: CustomerDetails
    ship_to_different_address: bool = False
    shipping_address: Optional[ShippingAddress] = None


class CheckoutStateResponse(BaseModel):
    step: str
    customer: Optional[CustomerDetails] = None
    shipping_address: Optional[ShippingAddress] = None
    receipt: Optional[OrderReceipt] = None
    last_error: Optional[str] = None
