"""
Cart schemas
"""
from typing import List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from storefront.schemas.product import DEFAULT_INSTALLMENTS, Product


class CartLine(BaseModel):
    """
    One cart row: a product snapshot taken at add time plus a quantity.

    Also reads the legacy browser layout (sku/titulo/imagen/precio/cantidad)
    so carts saved by the old storefront keep working.
    """
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(validation_alias=AliasChoices("product_id", "sku"))
    name: str = Field("", validation_alias=AliasChoices("name", "titulo"))
    image_url: Optional[str] = Field(None, validation_alias=AliasChoices("image_url", "imagen"))
    price: float = Field(0.0, ge=0, validation_alias=AliasChoices("price", "precio"))
    sale_price: Optional[float] = Field(None, ge=0)
    on_sale: bool = False
    installments: int = DEFAULT_INSTALLMENTS
    quantity: int = Field(1, validation_alias=AliasChoices("quantity", "cantidad"))

    @field_validator('product_id', mode='before')
    @classmethod
    def coerce_id(cls, v):
        return str(v) if v is not None else v

    @field_validator('on_sale', mode='before')
    @classmethod
    def default_bool(cls, v):
        return v if v is not None else False

    @field_validator('installments', mode='before')
    @classmethod
    def default_installments(cls, v):
        return v if v else DEFAULT_INSTALLMENTS

    @field_validator('installments')
    @classmethod
    def positive_installments(cls, v):
        return v if v >= 1 else DEFAULT_INSTALLMENTS

    @classmethod
    def from_product(cls, product: Product, quantity: int = 1) -> "CartLine":
        """Copy the product's display fields into a new line."""
        return cls(
            product_id=product.id,
            name=product.name,
            image_url=product.image_url,
            price=product.price,
            sale_price=product.sale_price,
            on_sale=product.on_sale,
            installments=product.installments,
            quantity=quantity,
        )


class CartLineView(BaseModel):
    """Side-cart row with resolved and formatted prices."""
    line: CartLine
    unit_price: float
    installment_price: float
    installment_price_display: str
    line_total: float
    line_total_display: str


class CartSnapshot(BaseModel):
    """Immutable state handed to view subscribers after every mutation."""
    lines: List[CartLine]
    item_count: int
    total_price: float

    @property
    def is_empty(self) -> bool:
        return not self.lines


class CartPanel(BaseModel):
    """Everything the header badge, menu badge and side panel need."""
    lines: List[CartLineView]
    item_count: int
    badge: str
    total_price: float
    total_price_display: str
    is_empty: bool
    empty_message: Optional[str] = None


class CartItemCreate(BaseModel):
    product_id: str


class ClearCartResponse(BaseModel):
    removed_items: int
    message: str
    # True when nothing was removed because the caller has not confirmed yet
    confirmation_required: bool = False


class ReconcileResponse(BaseModel):
    changed: List[str]
    catalog_unavailable: bool = False
    cart: CartPanel
