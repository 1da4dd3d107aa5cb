"""
Storefront API

Catalog browsing, a per-session cart and the checkout flow over a Supabase
products/orders backend.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from storefront.adapters.supabase_catalog import SupabaseCatalogClient
from storefront.api.deps import close_clients, get_catalog_client
from storefront.api.routes import cart, checkout, products
from storefront.core.config import settings
from storefront.core.error_handler import register_exception_handlers
from storefront.core.exceptions import CatalogUnavailableError
from storefront.core.rate_limit import limiter, rate_limit_exceeded_handler
from storefront.core.utils import utcnow

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.APP_NAME} starting (environment={settings.ENVIRONMENT})")
    yield
    await close_clients()
    logger.info("Supabase HTTP clients closed")


app = FastAPI(
    lifespan=lifespan,
    title=f"{settings.APP_NAME} API",
    version=VERSION,
    openapi_tags=[
        {"name": "Health", "description": "Health check"},
        {"name": "Products", "description": "Product catalog and WhatsApp consult links"},
        {"name": "Categories", "description": "Store menu categories"},
        {"name": "Cart", "description": "Session cart operations"},
        {"name": "Checkout", "description": "Customer details and order submission"},
    ],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
register_exception_handlers(app)

# Applies RATE_LIMIT_DEFAULT to every route without an explicit limit
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[settings.CART_SESSION_HEADER],
)

app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(products.categories_router, prefix="/api/categories", tags=["Categories"])
app.include_router(cart.router, prefix="/api/cart", tags=["Cart"])
app.include_router(checkout.router, prefix="/api/checkout", tags=["Checkout"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": f"{settings.APP_NAME} API",
        "version": VERSION,
        "status": "operational",
    }


@app.get("/health", tags=["Health"])
async def health_check(client: SupabaseCatalogClient = Depends(get_catalog_client)):
    """Catalog reachability plus the products table column check. 503 when unreachable."""
    health_status = {
        "status": "healthy",
        "catalog": "unknown",
        "timestamp": utcnow().isoformat(),
    }

    try:
        schema = await client.check_schema()
    except CatalogUnavailableError as e:
        health_status["catalog"] = f"error: {e.message}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    health_status["catalog"] = "connected"
    health_status["schema"] = {
        "valid": schema.valid,
        "message": schema.message,
        "missing_columns": schema.missing_columns,
    }
    if not schema.valid:
        health_status["status"] = "degraded"
    return health_status


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("storefront.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
