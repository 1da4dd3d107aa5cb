"""
Product schemas

One canonical mapping from a `products` row to Product. Every catalog query
goes through product_from_row so the id is always the row id.
"""
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional
from pydantic import BaseModel, Field, field_validator

DEFAULT_INSTALLMENTS = 12

# Columns the storefront expects on the products table
PRODUCT_COLUMNS = [
    "id", "name", "description", "description_large", "price",
    "sale_price", "on_sale", "installments", "image_url",
    "image1_url", "image2_url", "image3_url", "category",
    "subcategory", "stock", "featured",
]


class ProductBase(BaseModel):
    name: str
    description: Optional[str] = None
    description_large: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    price: float = Field(0.0, ge=0)
    sale_price: Optional[float] = Field(None, ge=0)
    on_sale: bool = False
    installments: int = DEFAULT_INSTALLMENTS
    stock: int = 0
    image_url: Optional[str] = None
    images: List[str] = []
    featured: bool = False

    # Handle NULL values from database
    @field_validator('on_sale', 'featured', mode='before')
    @classmethod
    def default_bool(cls, v):
        return v if v is not None else False

    @field_validator('stock', mode='before')
    @classmethod
    def default_int(cls, v):
        return v if v is not None else 0

    @field_validator('price', mode='before')
    @classmethod
    def default_price(cls, v):
        return v if v is not None else 0.0

    @field_validator('installments', mode='before')
    @classmethod
    def default_installments(cls, v):
        # 0, None and missing all mean "use the store default"
        return v if v else DEFAULT_INSTALLMENTS

    @field_validator('installments')
    @classmethod
    def positive_installments(cls, v):
        return v if v >= 1 else DEFAULT_INSTALLMENTS

    @field_validator('images', mode='before')
    @classmethod
    def default_list(cls, v):
        return v if v is not None else []


class Product(ProductBase):
    id: str
    created_at: Optional[datetime] = None

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v):
        return str(v) if v is not None else v

    @property
    def in_stock(self) -> bool:
        """Display-only flag; stock never blocks add-to-cart."""
        return self.stock > 0


class ProductWrite(BaseModel):
    """Payload for admin inserts and updates (column names as in the table)."""
    name: Optional[str] = None
    description: Optional[str] = None
    description_large: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    sale_price: Optional[float] = Field(None, ge=0)
    on_sale: Optional[bool] = None
    installments: Optional[int] = Field(None, ge=1)
    image_url: Optional[str] = None
    image1_url: Optional[str] = None
    image2_url: Optional[str] = None
    image3_url: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    stock: Optional[int] = None
    featured: Optional[bool] = None


class ProductView(BaseModel):
    """Product card data with prices already resolved and formatted."""
    product: Product
    unit_price: float
    unit_price_display: str
    installments: int
    installment_price: float
    installment_price_display: str
    in_stock: bool


def product_from_row(row: Mapping[str, Any]) -> Product:
    """
    Map a `products` row to the canonical Product.

    Gallery columns image1_url..image3_url collapse into `images`; absent
    optional fields fall back to their defaults.
    """
    images = [row.get(col) for col in ("image1_url", "image2_url", "image3_url") if row.get(col)]
    data: Dict[str, Any] = {
        "id": row.get("id"),
        "name": row.get("name") or "",
        "description": row.get("description"),
        "description_large": row.get("description_large"),
        "category": row.get("category"),
        "subcategory": row.get("subcategory"),
        "price": row.get("price"),
        "sale_price": row.get("sale_price"),
        "on_sale": row.get("on_sale"),
        "installments": row.get("installments"),
        "stock": row.get("stock"),
        "image_url": row.get("image_url"),
        "images": images,
        "featured": row.get("featured"),
        "created_at": row.get("created_at"),
    }
    return Product.model_validate(data)
