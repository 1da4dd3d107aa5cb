"""
API dependencies

Cart session resolution, per-session cart stores and checkout flows, and the
shared Supabase clients.

The cart session id comes from the X-Cart-Session header first (API and
mobile callers), then from the cart_session cookie. A new id is issued and
set as a cookie when neither is present.
"""
import logging
import re
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from fastapi import Depends, Request, Response

from storefront.adapters.order_backend import OrderBackend, SupabaseOrderBackend
from storefront.adapters.storage import KeyValueStorage, NamespacedStorage, build_storage
from storefront.adapters.supabase_catalog import SupabaseCatalogClient
from storefront.core.config import settings
from storefront.core.utils import new_token
from storefront.schemas.order import CheckoutStateResponse
from storefront.services.cart_store import CartStorageKeys, CartStore
from storefront.services.catalog_service import CatalogService
from storefront.services.checkout import CheckoutOrchestrator, CheckoutStep

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{8,64}$")
SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 30

_storage: Optional[KeyValueStorage] = None
_catalog_client: Optional[SupabaseCatalogClient] = None
_order_backend: Optional[SupabaseOrderBackend] = None


class CheckoutRegistry:
    """
    One checkout flow per cart session, kept in process memory.

    Flows idle for longer than ttl_seconds are dropped, and past max_flows
    the least recently used flow is evicted.
    """

    def __init__(
        self,
        ttl_seconds: float = settings.CHECKOUT_FLOW_TTL_SECONDS,
        max_flows: int = settings.CHECKOUT_MAX_FLOWS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_flows = max_flows
        self._clock = clock
        self._flows: "OrderedDict[str, Tuple[CheckoutOrchestrator, float]]" = OrderedDict()

    def prune(self) -> int:
        """Drop expired flows; returns how many were removed."""
        cutoff = self._clock() - self.ttl_seconds
        expired = [sid for sid, (_, seen) in self._flows.items() if seen < cutoff]
        for sid in expired:
            del self._flows[sid]
        if expired:
            logger.debug(f"[CHECKOUT] Pruned {len(expired)} idle flows")
        return len(expired)

    def peek(self, session_id: str) -> Optional[CheckoutOrchestrator]:
        """Existing flow for the session, without creating one."""
        self.prune()
        entry = self._flows.get(session_id)
        return entry[0] if entry else None

    def get(self, session_id: str, cart: CartStore, backend: OrderBackend) -> CheckoutOrchestrator:
        self.prune()
        entry = self._flows.pop(session_id, None)
        if entry is None:
            flow = CheckoutOrchestrator(cart, backend)
            logger.debug(f"[CHECKOUT] New flow for session {session_id[:8]}")
        else:
            # Cart stores are rebuilt per request over the same storage
            flow = entry[0]
            flow.cart = cart
            flow.backend = backend
        self._flows[session_id] = (flow, self._clock())
        while len(self._flows) > self.max_flows:
            self._flows.popitem(last=False)
        return flow

    def restart(self, session_id: str, cart: CartStore, backend: OrderBackend) -> CheckoutOrchestrator:
        self._flows.pop(session_id, None)
        return self.get(session_id, cart, backend)

    def discard(self, session_id: str) -> None:
        self._flows.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._flows)


checkout_registry = CheckoutRegistry()


# ----- shared clients -----


def get_storage() -> KeyValueStorage:
    global _storage
    if _storage is None:
        _storage = build_storage(settings.CART_STORAGE_BACKEND, settings.CART_STORAGE_PATH)
    return _storage


def get_catalog_client() -> SupabaseCatalogClient:
    global _catalog_client
    if _catalog_client is None:
        _catalog_client = SupabaseCatalogClient.from_settings(settings)
    return _catalog_client


def get_order_backend() -> OrderBackend:
    global _order_backend
    if _order_backend is None:
        _order_backend = SupabaseOrderBackend.from_settings(settings)
    return _order_backend


async def close_clients() -> None:
    """Close the shared HTTP clients (called on shutdown)."""
    global _catalog_client, _order_backend
    if _catalog_client is not None:
        await _catalog_client.close()
        _catalog_client = None
    if _order_backend is not None:
        await _order_backend.close()
        _order_backend = None


def get_catalog_service(
    client: SupabaseCatalogClient = Depends(get_catalog_client),
) -> CatalogService:
    return CatalogService(client, store_categories=settings.STORE_CATEGORIES)


def get_checkout_registry() -> CheckoutRegistry:
    return checkout_registry


# ----- cart session -----


def get_cart_session(request: Request, response: Response) -> str:
    session_id = (
        request.headers.get(settings.CART_SESSION_HEADER)
        or request.cookies.get(settings.CART_SESSION_COOKIE)
    )
    if session_id and SESSION_ID_PATTERN.match(session_id):
        return session_id

    if session_id:
        logger.warning("[CART] Ignoring malformed cart session id")
    session_id = new_token()
    response.set_cookie(
        key=settings.CART_SESSION_COOKIE,
        value=session_id,
        max_age=SESSION_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT == "production",
    )
    response.headers[settings.CART_SESSION_HEADER] = session_id
    return session_id


def get_cart_store(
    session_id: str = Depends(get_cart_session),
    storage: KeyValueStorage = Depends(get_storage),
) -> CartStore:
    return CartStore(
        NamespacedStorage(storage, f"cart:{session_id}"),
        keys=CartStorageKeys.from_settings(settings),
    )


def get_checkout_flow(
    session_id: str = Depends(get_cart_session),
    cart: CartStore = Depends(get_cart_store),
    backend: OrderBackend = Depends(get_order_backend),
    registry: CheckoutRegistry = Depends(get_checkout_registry),
) -> CheckoutOrchestrator:
    flow = registry.get(session_id, cart, backend)
    if flow.step == CheckoutStep.CONFIRMATION and not cart.is_empty():
        # Shopping resumed after a confirmed order: start a fresh flow
        flow = registry.restart(session_id, cart, backend)
    return flow


def get_checkout_state(
    session_id: str = Depends(get_cart_session),
    cart: CartStore = Depends(get_cart_store),
    registry: CheckoutRegistry = Depends(get_checkout_registry),
) -> CheckoutStateResponse:
    """Current checkout state; reading never registers a flow."""
    flow = registry.peek(session_id)
    if flow is None or (flow.step == CheckoutStep.CONFIRMATION and not cart.is_empty()):
        return CheckoutStateResponse(step=CheckoutStep.REVIEW_CART.value)
    return flow.state()
