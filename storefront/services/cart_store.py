"""
Cart Store

Single source of truth for cart lines. Every mutation rewrites the three
storage keys together and then notifies subscribers with a CartSnapshot.
Views subscribe; they never mutate the store.

Invariants:
- at most one line per product id (enforced on every insert path)
- every quantity >= 1; decrement stops at 1, removal is explicit
- item count and total are always recomputed from the lines
"""
import json
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from storefront.adapters.storage import KeyValueStorage
from storefront.schemas.cart import CartLine, CartSnapshot
from storefront.schemas.product import Product
from storefront.services.pricing import cart_item_count, cart_total

logger = logging.getLogger(__name__)

CartListener = Callable[[CartSnapshot], None]


@dataclass(frozen=True)
class CartStorageKeys:
    """Names of the three persisted keys."""
    lines: str = "cart_lines"
    item_count: str = "cart_item_count"
    total_price: str = "cart_total_price"

    @classmethod
    def from_settings(cls, settings) -> "CartStorageKeys":
        return cls(
            lines=settings.CART_LINES_KEY,
            item_count=settings.CART_ITEM_COUNT_KEY,
            total_price=settings.CART_TOTAL_PRICE_KEY,
        )


def load_lines(raw: Optional[str]) -> List[CartLine]:
    """
    Parse persisted lines, tolerating anything.

    Not JSON or not a list -> empty cart. Bad entries and entries with
    quantity < 1 are dropped; repeated product ids are merged.
    """
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("[CART] Persisted cart is not valid JSON, starting empty")
        return []
    if not isinstance(data, list):
        logger.warning(f"[CART] Persisted cart is a {type(data).__name__}, not a list; starting empty")
        return []

    lines: List[CartLine] = []
    index: Dict[str, int] = {}
    for entry in data:
        if not isinstance(entry, dict):
            continue
        try:
            line = CartLine.model_validate(entry)
        except ValidationError as e:
            logger.warning(f"[CART] Dropping malformed cart entry: {e.error_count()} errors")
            continue
        if line.quantity < 1:
            continue
        if line.product_id in index:
            pos = index[line.product_id]
            lines[pos] = lines[pos].model_copy(update={"quantity": lines[pos].quantity + line.quantity})
            continue
        index[line.product_id] = len(lines)
        lines.append(line)
    return lines


class CartStore:
    """In-memory cart mirrored to key-value storage."""

    def __init__(self, storage: KeyValueStorage, keys: Optional[CartStorageKeys] = None):
        self._storage = storage
        self._keys = keys or CartStorageKeys()
        self._listeners: List[CartListener] = []
        self._lines: List[CartLine] = load_lines(storage.get_item(self._keys.lines))

    def reload(self) -> None:
        """Re-read the lines from storage, dropping the in-memory copy."""
        self._lines = load_lines(self._storage.get_item(self._keys.lines))

    # ----- reads -----

    @property
    def lines(self) -> List[CartLine]:
        """Copies of the lines in display order."""
        return [line.model_copy() for line in self._lines]

    def get_line(self, product_id: str) -> Optional[CartLine]:
        pos = self._find(product_id)
        return self._lines[pos].model_copy() if pos is not None else None

    def item_count(self) -> int:
        return cart_item_count(self._lines)

    def total_price(self) -> float:
        return cart_total(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def snapshot(self) -> CartSnapshot:
        return CartSnapshot(
            lines=self.lines,
            item_count=self.item_count(),
            total_price=self.total_price(),
        )

    # ----- subscriptions -----

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register a view; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ----- mutations -----

    def add_or_increment(self, product: Product) -> CartLine:
        pos = self._find(product.id)
        if pos is not None:
            line = self._lines[pos]
            self._lines[pos] = line.model_copy(update={"quantity": line.quantity + 1})
        else:
            self._lines.append(CartLine.from_product(product))
            pos = len(self._lines) - 1
        logger.debug(f"[CART] add {product.id} -> qty {self._lines[pos].quantity}")
        self._commit()
        return self._lines[pos].model_copy()

    def increment(self, product_id: str) -> Optional[CartLine]:
        pos = self._find(product_id)
        if pos is None:
            return None
        line = self._lines[pos]
        self._lines[pos] = line.model_copy(update={"quantity": line.quantity + 1})
        self._commit()
        return self._lines[pos].model_copy()

    def decrement(self, product_id: str) -> Optional[CartLine]:
        """Lower quantity by one; at quantity 1 nothing happens."""
        pos = self._find(product_id)
        if pos is None:
            return None
        line = self._lines[pos]
        if line.quantity <= 1:
            return line.model_copy()
        self._lines[pos] = line.model_copy(update={"quantity": line.quantity - 1})
        self._commit()
        return self._lines[pos].model_copy()

    def remove(self, product_id: str) -> bool:
        pos = self._find(product_id)
        if pos is None:
            return False
        del self._lines[pos]
        self._commit()
        return True

    def clear(self) -> int:
        """Empty the cart; returns how many items were removed."""
        removed = self.item_count()
        self._lines = []
        self._commit()
        logger.info(f"[CART] cleared ({removed} items)")
        return removed

    def reconcile(self, products: Iterable[Product]) -> List[str]:
        """
        Refresh display fields from a catalog snapshot.

        Lines whose product is not in the snapshot keep their last-known data.
        Returns the ids of lines that changed.
        """
        catalog = {p.id: p for p in products}
        changed: List[str] = []
        for pos, line in enumerate(self._lines):
            product = catalog.get(line.product_id)
            if product is None:
                continue
            fresh = CartLine.from_product(product, quantity=line.quantity)
            if fresh != line:
                self._lines[pos] = fresh
                changed.append(line.product_id)
        if changed:
            logger.info(f"[CART] reconciled {len(changed)} lines with catalog")
            self._commit()
        return changed

    # ----- internals -----

    def _find(self, product_id: str) -> Optional[int]:
        product_id = str(product_id)
        for pos, line in enumerate(self._lines):
            if line.product_id == product_id:
                return pos
        return None

    def _commit(self) -> None:
        snapshot = self.snapshot()
        self._persist(snapshot)
        self._notify(snapshot)

    def _persist(self, snapshot: CartSnapshot) -> None:
        payload = json.dumps([line.model_dump(mode="json") for line in snapshot.lines], ensure_ascii=False)
        self._storage.set_item(self._keys.lines, payload)
        self._storage.set_item(self._keys.item_count, str(snapshot.item_count))
        self._storage.set_item(self._keys.total_price, repr(snapshot.total_price))

    def _notify(self, snapshot: CartSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception(f"[CART] Subscriber {listener!r} failed")
