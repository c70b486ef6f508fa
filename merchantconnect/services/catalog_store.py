# merchantconnect/services/catalog_store.py
import logging
from typing import Any, Callable, Iterable

from merchantconnect.models.product import Product
from merchantconnect.schemas.image import normalize_images
from merchantconnect.schemas.product import ProductRead

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[list[dict[str, Any]]], None]
CatalogListener = Callable[[list[ProductRead]], None]
Unsubscribe = Callable[[], None]


class CatalogFeed:
    """
    Live view of the products collection.

    The service layer publishes a complete snapshot after every write;
    subscribers receive snapshots in publish order, each one replacing the
    previous one entirely. A new subscriber immediately receives the last
    published snapshot, if any.
    """

    def __init__(self):
        self._listeners: list[SnapshotListener] = []
        self._last: list[dict[str, Any]] | None = None

    def subscribe_collection(self, on_snapshot: SnapshotListener) -> Unsubscribe:
        self._listeners.append(on_snapshot)
        if self._last is not None:
            on_snapshot(self._last)

        def unsubscribe() -> None:
            if on_snapshot in self._listeners:
                self._listeners.remove(on_snapshot)

        return unsubscribe

    def publish(self, records: Iterable[Product | dict[str, Any]]) -> None:
        snapshot = [
            r.model_dump() if isinstance(r, Product) else dict(r) for r in records
        ]
        self._last = snapshot
        logger.info("Products snapshot published: %d documents", len(snapshot))
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Products snapshot listener failed")


def normalize_product(record: Product | dict[str, Any]) -> ProductRead:
    """
    Build the canonical read model from a stored record.

    - stock defaults to 0 when absent/null
    - created_at defaults to 0 when absent/null
    - images are migrated to ImageVariantSet
    """
    data = record.model_dump() if isinstance(record, Product) else dict(record)
    return ProductRead(
        id=str(data["id"]),
        name=data.get("name") or "",
        description=data.get("description") or "",
        wholesale_price=data.get("wholesale_price") or 0,
        retail_price=data.get("retail_price") or 0,
        stock=data.get("stock") or 0,
        hidden=bool(data.get("hidden")),
        images=normalize_images(data.get("images")),
        created_at=data.get("created_at") or 0,
    )


def sort_newest_first(products: list[ProductRead]) -> list[ProductRead]:
    """Full re-sort by created_at descending (missing timestamps sort last)."""
    return sorted(products, key=lambda p: p.created_at or 0, reverse=True)


def visible_products(products: Iterable[ProductRead], is_admin: bool) -> list[ProductRead]:
    """Non-admin viewers never see hidden products; admins see everything."""
    if is_admin:
        return list(products)
    return [p for p in products if not p.hidden]


class CatalogStore:
    """
    In-memory mirror of the products collection.

    Owns the normalized, newest-first product list. Consumers (feed
    sessions, search, windowing, selection totals) only read it.
    """

    def __init__(self, feed: CatalogFeed):
        self.products: list[ProductRead] = []
        self.loaded = False
        self._by_id: dict[str, ProductRead] = {}
        self._listeners: list[CatalogListener] = []
        self._unsubscribe_feed = feed.subscribe_collection(self._on_snapshot)

    def _on_snapshot(self, records: list[dict[str, Any]]) -> None:
        products = sort_newest_first([normalize_product(r) for r in records])
        self.products = products
        self._by_id = {p.id: p for p in products}
        self.loaded = True
        for listener in list(self._listeners):
            listener(products)

    def subscribe(self, on_change: CatalogListener) -> Unsubscribe:
        """
        Register for catalog changes; the current list is delivered
        immediately once the first snapshot has arrived.
        """
        self._listeners.append(on_change)
        if self.loaded:
            on_change(self.products)

        def unsubscribe() -> None:
            if on_change in self._listeners:
                self._listeners.remove(on_change)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def get(self, product_id: str) -> ProductRead | None:
        return self._by_id.get(product_id)

    def close(self) -> None:
        self._unsubscribe_feed()
        self._listeners.clear()
