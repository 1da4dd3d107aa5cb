"""
Application configuration

SECURITY: Defaults are fail-safe for production.
- DEBUG defaults to False
- SUPABASE_URL and SUPABASE_ANON_KEY have no defaults (will fail if not set)
- Runtime validation catches insecure configurations
"""
import json
import os
import logging
from typing import List, Union
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Default CORS origins
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

# Categories shown in the storefront menu, in display order
DEFAULT_STORE_CATEGORIES = [
    "Climatización",
    "Tecnología",
    "Tv Audio y video",
    "Electrodomesticos",
    "Deportes y exterior",
    "Deco Hogar",
    "Cuidado Personal",
    "Herramientas y construcción",
]


def _parse_list(v, default: List[str]) -> List[str]:
    """Accept a JSON array or a comma-separated string."""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        if not v.strip():
            return list(default)
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App - defaults are PRODUCTION safe
    APP_NAME: str = "Storefront"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    # Supabase (PostgREST) - NO DEFAULT (will fail if not set)
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str
    SUPABASE_PRODUCTS_TABLE: str = "products"
    SUPABASE_ORDERS_TABLE: str = "orders"

    @field_validator("SUPABASE_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    # Catalog client
    CATALOG_TIMEOUT_SECONDS: float = 10.0
    CATALOG_MAX_RETRIES: int = 2

    # Pricing / display
    PRICE_THOUSANDS_SEPARATOR: str = "."
    PRICE_DECIMAL_SEPARATOR: str = ","

    # Outbound consult link
    WHATSAPP_PHONE: str = "5491158102407"
    WHATSAPP_BASE_URL: str = "https://api.whatsapp.com/send"

    # Store menu
    STORE_CATEGORIES: Union[str, List[str]] = DEFAULT_STORE_CATEGORIES

    @field_validator("STORE_CATEGORIES", mode="before")
    @classmethod
    def parse_store_categories(cls, v):
        return _parse_list(v, DEFAULT_STORE_CATEGORIES)

    # Cart persistence
    CART_STORAGE_BACKEND: str = "memory"  # "memory" or "file"
    CART_STORAGE_PATH: str = "data/carts.json"
    CART_LINES_KEY: str = "cart_lines"
    CART_ITEM_COUNT_KEY: str = "cart_item_count"
    CART_TOTAL_PRICE_KEY: str = "cart_total_price"
    CART_SESSION_COOKIE: str = "cart_session"
    CART_SESSION_HEADER: str = "X-Cart-Session"

    # Checkout flows held in process memory
    CHECKOUT_FLOW_TTL_SECONDS: int = 3600
    CHECKOUT_MAX_FLOWS: int = 10000

    @field_validator("CART_STORAGE_BACKEND")
    @classmethod
    def validate_storage_backend(cls, v):
        if v not in ("memory", "file"):
            raise ValueError("CART_STORAGE_BACKEND must be 'memory' or 'file'")
        return v

    # CORS - accepts JSON array or comma-separated string
    CORS_ORIGINS: Union[str, List[str]] = DEFAULT_CORS_ORIGINS

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        return _parse_list(v, DEFAULT_CORS_ORIGINS)

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "100/minute"
    RATE_LIMIT_CHECKOUT: str = "10/minute"

    @model_validator(mode="after")
    def validate_production_config(self):
        """Runtime validation to catch insecure production configurations."""
        if self.ENVIRONMENT == "production":
            errors = []

            if self.DEBUG:
                errors.append(
                    "DEBUG=True is forbidden in production. "
                    "Set DEBUG=false or ENVIRONMENT=development"
                )

            if not self.SUPABASE_URL.startswith("https://"):
                errors.append("SUPABASE_URL must use https in production.")

            for origin in self.CORS_ORIGINS:
                if origin == "*":
                    errors.append("Wildcard '*' CORS origin is forbidden in production")
                elif "localhost" in origin or "127.0.0.1" in origin:
                    errors.append(f"Localhost CORS origin '{origin}' is forbidden in production")

            if errors:
                raise ValueError(
                    "PRODUCTION CONFIGURATION VIOLATIONS:\n" + "\n".join(f"  - {e}" for e in errors)
                )

        return self


# Try to load settings, provide helpful error on failure
try:
    settings = Settings()
except Exception:
    # In development, allow fallback defaults
    if os.getenv("ENVIRONMENT", "development") == "development":
        logger.warning(
            "Settings validation failed, using development defaults. "
            "Set SUPABASE_URL and SUPABASE_ANON_KEY in .env file."
        )
        os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
        os.environ.setdefault("SUPABASE_ANON_KEY", "dev-only-anon-key")
        os.environ.setdefault("ENVIRONMENT", "development")
        settings = Settings()
    else:
        raise
