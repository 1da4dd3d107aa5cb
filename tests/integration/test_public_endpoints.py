import asyncio
import json

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from storefront.adapters.order_backend import SupabaseOrderBackend
from storefront.adapters.storage import MemoryStorage
from storefront.adapters.supabase_catalog import SupabaseCatalogClient
from storefront.api.deps import (
    CheckoutRegistry,
    get_catalog_client,
    get_checkout_registry,
    get_order_backend,
    get_storage,
)
from storefront.main import app

SESSION = {"X-Cart-Session": "session-test-0001"}

CUSTOMER = {
    "first_name": "Ana",
    "last_name": "García",
    "email": "ana@example.com",
    "phone": "1155550000",
    "province": "Buenos Aires",
    "city": "La Plata",
    "postal_code": "1900",
    "street": "Calle 7",
    "street_number": "1234",
}


class SupabaseStub:
    """Minimal PostgREST behaviour over in-memory rows."""

    def __init__(self, rows):
        self.rows = rows
        self.available = True
        self.orders = []
        self.fail_orders = False
        self.delays = {}

    def _eq(self, rows, params, column):
        value = params.get(column)
        if value and value.startswith("eq."):
            return [r for r in rows if str(r.get(column)) == value[3:]]
        return rows

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        delay = self.delays.get(request.url.params.get("id", "")[3:])
        if delay:
            await asyncio.sleep(delay)
        if not self.available:
            return httpx.Response(503)
        if request.url.path.endswith("/orders"):
            if self.fail_orders:
                return httpx.Response(500)
            self.orders.append((request.headers.get("Idempotency-Key"), json.loads(request.content)[0]))
            return httpx.Response(201, json=[{"id": len(self.orders), "created_at": "2024-05-01T12:00:00+00:00"}])

        params = request.url.params
        rows = self.rows
        for column in ("id", "category", "subcategory"):
            rows = self._eq(rows, params, column)
        select = params.get("select")
        if select in ("category", "subcategory"):
            return httpx.Response(200, json=[{select: r.get(select)} for r in rows])
        return httpx.Response(200, json=rows)


@pytest.fixture
def supabase(product_row):
    return SupabaseStub([
        product_row(id=1, name="Producto A", price=100.0, category="Tecnología", subcategory="Notebooks"),
        product_row(id=2, name="Producto B", price=50.0, on_sale=True, sale_price=40.0,
                    category="Tecnología", subcategory="Tablets"),
        product_row(id=3, name="Calefactor", price=30.0, category="Climatización", stock=0),
    ])


@pytest.fixture
def wired_app(supabase, mock_http):
    catalog = SupabaseCatalogClient(mock_http(supabase))
    backend = SupabaseOrderBackend(mock_http(supabase))
    storage = MemoryStorage()
    registry = CheckoutRegistry()

    app.dependency_overrides[get_catalog_client] = lambda: catalog
    app.dependency_overrides[get_order_backend] = lambda: backend
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_checkout_registry] = lambda: registry
    yield app
    app.dependency_overrides.clear()


def _client(application) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=application), base_url="http://test")


@pytest.mark.anyio
async def test_root_endpoint_basic_response():
    async with _client(app) as client:
        resp = await client.get("/")
    assert resp.status_code == 200
    body = resp.json()
    assert body.get("message") == "Storefront API"
    assert body.get("status") == "operational"


@pytest.mark.anyio
async def test_health_reports_schema(wired_app):
    async with _client(wired_app) as client:
        resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["catalog"] == "connected"
    assert body["schema"]["valid"] is True


@pytest.mark.anyio
async def test_health_unhealthy_when_catalog_down(wired_app, supabase):
    supabase.available = False
    async with _client(wired_app) as client:
        resp = await client.get("/health")
    assert resp.status_code == 503
    assert resp.json()["status"] == "unhealthy"


@pytest.mark.anyio
async def test_product_listing_and_filters(wired_app):
    async with _client(wired_app) as client:
        all_products = await client.get("/api/products")
        category = await client.get("/api/products", params={"category": "Tecnología"})
        sub = await client.get("/api/products", params={"category": "Tecnología", "subcategory": "Tablets"})
        search = await client.get("/api/products", params={"search": "calefactor"})
        bad = await client.get("/api/products", params={"subcategory": "Tablets"})

    assert [p["product"]["id"] for p in all_products.json()["products"]] == ["1", "2", "3"]
    body = category.json()
    assert [p["product"]["id"] for p in body["products"]] == ["1", "2"]
    assert body["subcategories"] == ["Notebooks", "Tablets"]
    assert [p["product"]["id"] for p in sub.json()["products"]] == ["2"]
    found = search.json()["products"]
    assert [p["product"]["id"] for p in found] == ["3"]
    assert found[0]["in_stock"] is False
    assert bad.status_code == 422


@pytest.mark.anyio
async def test_listing_degrades_when_catalog_down(wired_app, supabase):
    supabase.available = False
    async with _client(wired_app) as client:
        resp = await client.get("/api/products")
    assert resp.status_code == 200
    body = resp.json()
    assert body["unavailable"] is True
    assert body["products"] == []
    assert body["message"]


@pytest.mark.anyio
async def test_product_detail_and_whatsapp(wired_app):
    async with _client(wired_app) as client:
        detail = await client.get("/api/products/2")
        link = await client.get("/api/products/2/whatsapp")
        missing = await client.get("/api/products/99")

    assert detail.json()["unit_price"] == 40.0
    assert link.json()["url"].startswith("https://api.whatsapp.com/send?phone=")
    assert "*Producto B*" in link.json()["message"]
    assert missing.status_code == 404
    assert missing.json()["error"] == "PRODUCT_NOT_FOUND"


@pytest.mark.anyio
async def test_categories(wired_app):
    async with _client(wired_app) as client:
        menu = await client.get("/api/categories")
        subs = await client.get("/api/categories/Tecnología/subcategories")

    assert "Tecnología" in menu.json()
    assert subs.json() == ["Notebooks", "Tablets"]


@pytest.mark.anyio
async def test_cart_flow(wired_app):
    async with _client(wired_app) as client:
        await client.post("/api/cart/items", json={"product_id": "1"}, headers=SESSION)
        await client.post("/api/cart/items", json={"product_id": "1"}, headers=SESSION)
        resp = await client.post("/api/cart/items", json={"product_id": "2"}, headers=SESSION)
        assert resp.status_code == 201
        panel = resp.json()
        assert panel["item_count"] == 3
        assert panel["total_price"] == 240.0
        assert len(panel["lines"]) == 2

        resp = await client.post("/api/cart/items/1/decrement", headers=SESSION)
        assert resp.json()["item_count"] == 2
        resp = await client.post("/api/cart/items/1/decrement", headers=SESSION)
        assert resp.json()["lines"][0]["line"]["quantity"] == 1

        resp = await client.post("/api/cart/items/2/increment", headers=SESSION)
        assert resp.json()["total_price"] == 180.0

        resp = await client.delete("/api/cart/items/2", headers=SESSION)
        assert resp.json()["item_count"] == 1

        missing = await client.post("/api/cart/items/99/increment", headers=SESSION)
        assert missing.status_code == 404

        other = await client.get("/api/cart", headers={"X-Cart-Session": "session-test-0002"})
        assert other.json()["is_empty"] is True


@pytest.mark.anyio
async def test_add_unknown_product(wired_app):
    async with _client(wired_app) as client:
        resp = await client.post("/api/cart/items", json={"product_id": "99"}, headers=SESSION)
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_clear_cart_requires_confirmation(wired_app):
    async with _client(wired_app) as client:
        await client.post("/api/cart/items", json={"product_id": "1"}, headers=SESSION)
        await client.post("/api/cart/items", json={"product_id": "2"}, headers=SESSION)

        prompt = await client.delete("/api/cart", headers=SESSION)
        assert prompt.json()["confirmation_required"] is True
        assert prompt.json()["message"] == "Tenés 2 productos en el carrito."

        cleared = await client.delete("/api/cart", params={"confirm": "true"}, headers=SESSION)
        assert cleared.json()["removed_items"] == 2

        cart = await client.get("/api/cart", headers=SESSION)
        assert cart.json()["item_count"] == 0


@pytest.mark.anyio
async def test_reconcile_updates_prices(wired_app, supabase):
    async with _client(wired_app) as client:
        await client.post("/api/cart/items", json={"product_id": "1"}, headers=SESSION)
        supabase.rows[0]["price"] = 80.0
        resp = await client.post("/api/cart/reconcile", headers=SESSION)

    body = resp.json()
    assert body["changed"] == ["1"]
    assert body["cart"]["total_price"] == 80.0


@pytest.mark.anyio
async def test_session_cookie_issued_when_missing(wired_app):
    async with _client(wired_app) as client:
        resp = await client.get("/api/cart")
    assert "cart_session=" in resp.headers.get("set-cookie", "")
    assert len(resp.headers["X-Cart-Session"]) == 32


@pytest.mark.anyio
async def test_checkout_success(wired_app, supabase):
    async with _client(wired_app) as client:
        await client.post("/api/cart/items", json={"product_id": "1"}, headers=SESSION)
        await client.post("/api/cart/items", json={"product_id": "1"}, headers=SESSION)
        await client.post("/api/cart/items", json={"product_id": "2"}, headers=SESSION)

        resp = await client.post("/api/checkout/continue", headers=SESSION)
        assert resp.json()["step"] == "customer_details"

        resp = await client.post("/api/checkout/details", json={"customer": CUSTOMER}, headers=SESSION)
        assert resp.json()["step"] == "payment"

        resp = await client.post("/api/checkout/payment", headers=SESSION)
        assert resp.status_code == 200
        body = resp.json()
        assert body["step"] == "confirmation"
        assert body["receipt"]["order_id"] == "1"

        cart = await client.get("/api/cart", headers=SESSION)
        assert cart.json()["is_empty"] is True

    key, row = supabase.orders[0]
    assert key
    assert row["total"] == 240.0
    assert row["user_email"] == "ana@example.com"


@pytest.mark.anyio
async def test_checkout_failure_keeps_cart(wired_app, supabase):
    supabase.fail_orders = True
    async with _client(wired_app) as client:
        await client.post("/api/cart/items", json={"product_id": "1"}, headers=SESSION)
        await client.post("/api/cart/items", json={"product_id": "2"}, headers=SESSION)
        await client.post("/api/checkout/continue", headers=SESSION)
        await client.post("/api/checkout/details", json={"customer": CUSTOMER}, headers=SESSION)

        resp = await client.post("/api/checkout/payment", headers=SESSION)
        assert resp.status_code == 502
        assert resp.json()["error"] == "ORDER_SUBMISSION_FAILED"

        state = await client.get("/api/checkout", headers=SESSION)
        assert state.json()["step"] == "payment"
        assert state.json()["last_error"]

        cart = await client.get("/api/cart", headers=SESSION)
        assert len(cart.json()["lines"]) == 2


@pytest.mark.anyio
async def test_checkout_errors(wired_app):
    async with _client(wired_app) as client:
        empty = await client.post("/api/checkout/continue", headers=SESSION)
        assert empty.status_code == 409
        assert empty.json()["error"] == "CHECKOUT_INVALID_TRANSITION"

        await client.post("/api/cart/items", json={"product_id": "1"}, headers=SESSION)
        await client.post("/api/checkout/continue", headers=SESSION)
        invalid = await client.post(
            "/api/checkout/details",
            json={"customer": {"first_name": "Ana"}},
            headers=SESSION,
        )
        assert invalid.status_code == 422
        assert "email" in invalid.json()["details"]["missing_fields"]

        back = await client.post("/api/checkout/back", headers=SESSION)
        assert back.status_code == 409


@pytest.mark.anyio
async def test_payment_rejected_after_cart_cleared(wired_app, supabase):
    async with _client(wired_app) as client:
        await client.post("/api/cart/items", json={"product_id": "1"}, headers=SESSION)
        await client.post("/api/checkout/continue", headers=SESSION)
        await client.post("/api/checkout/details", json={"customer": CUSTOMER}, headers=SESSION)
        await client.delete("/api/cart", params={"confirm": "true"}, headers=SESSION)

        resp = await client.post("/api/checkout/payment", headers=SESSION)
        assert resp.status_code == 409
        assert resp.json()["error"] == "CHECKOUT_INVALID_TRANSITION"

        state = await client.get("/api/checkout", headers=SESSION)
        assert state.json()["step"] == "payment"

    assert supabase.orders == []


@pytest.mark.anyio
async def test_concurrent_adds_keep_both_lines(wired_app, supabase):
    supabase.delays["1"] = 0.05
    async with _client(wired_app) as client:
        await asyncio.gather(
            client.post("/api/cart/items", json={"product_id": "1"}, headers=SESSION),
            client.post("/api/cart/items", json={"product_id": "2"}, headers=SESSION),
        )
        cart = await client.get("/api/cart", headers=SESSION)

    ids = sorted(line["line"]["product_id"] for line in cart.json()["lines"])
    assert ids == ["1", "2"]


@pytest.mark.anyio
async def test_invalid_row_does_not_break_listing(wired_app, supabase, product_row):
    supabase.rows.append(product_row(id=4, name="Roto", price=-5))
    async with _client(wired_app) as client:
        resp = await client.get("/api/products")

    assert resp.status_code == 200
    assert [p["product"]["id"] for p in resp.json()["products"]] == ["1", "2", "3"]


@pytest.mark.anyio
async def test_reading_checkout_state_does_not_register_flows(wired_app):
    registry = wired_app.dependency_overrides[get_checkout_registry]()
    for _ in range(5):
        async with _client(wired_app) as client:
            resp = await client.get("/api/checkout")
        assert resp.json()["step"] == "review_cart"

    assert len(registry) == 0
