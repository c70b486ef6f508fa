# merchantconnect/services/feed_session.py
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable

from merchantconnect.core.auth import Identity
from merchantconnect.schemas.product import ProductRead
from merchantconnect.services.catalog_store import CatalogStore, visible_products
from merchantconnect.services.render_window import RenderWindow, ROWS_PER_BATCH
from merchantconnect.services.search_service import RemoteSearch, SearchState
from merchantconnect.services.selection import SelectionLedger
from merchantconnect.services.view_state import (
    ViewNotAllowedError,
    ViewState,
    ViewStateMachine,
)

logger = logging.getLogger(__name__)

MAX_SELECT_QUANTITY = 10
MAX_FEED_SESSIONS = 1000
FEED_SESSION_IDLE_SECONDS = 30 * 60


class UnknownProductError(LookupError):
    """The product is not (or no longer) visible in this feed."""


class FeedSession:
    """
    Everything one viewer's product feed holds.

    Subscribes to the shared catalog store and reacts to every snapshot:
    selections of products that went out of stock are dropped and the
    render window is re-clamped to the new item count.
    """

    def __init__(
        self,
        key: str,
        store: CatalogStore,
        *,
        width: int = 1024,
        rows_per_batch: int = ROWS_PER_BATCH,
        max_quantity: int = MAX_SELECT_QUANTITY,
        view: ViewStateMachine | None = None,
    ):
        self.key = key
        self.identity: Identity | None = None
        self.max_quantity = max_quantity
        self.ledger = SelectionLedger()
        self.search = SearchState()
        self.window = RenderWindow(width, rows_per_batch)
        self.view = view or ViewStateMachine()
        self.products: list[ProductRead] = []
        self._store = store
        self._unsubscribe = store.subscribe(self._on_catalog_change)

    # ----- Catalog reaction -----

    def _on_catalog_change(self, products: list[ProductRead]) -> None:
        self.products = products
        ledger = self.ledger.without_out_of_stock(products)
        if ledger is not self.ledger:
            logger.info("Feed %s: deselected out-of-stock products", self.key)
            self.ledger = ledger
        self._sync_window()

    def _sync_window(self) -> None:
        self.window.sync(len(self.displayed), self.search.is_active)

    # ----- Viewer -----

    @property
    def is_admin_view(self) -> bool:
        return self.view.is_admin_view

    def resolve(self, identity: Identity | None, is_admin: bool) -> None:
        """
        Feed the latest authentication and allow-list results into the
        view state. Only changes are applied.
        """
        if not self.view.user_loaded or identity != self.identity:
            if self.identity is not None and identity is None:
                self.view.signed_out()
            self.identity = identity
            self.view.auth_resolved()
        if not self.view.allow_list_loaded or is_admin != self.view.is_admin:
            self.view.allow_list_resolved(is_admin)
        self._sync_window()

    def switch_view(self, target: ViewState) -> ViewState:
        state = self.view.switch(target)
        self._sync_window()
        return state

    # ----- Items -----

    @property
    def displayed(self) -> list[ProductRead]:
        return self.search.displayed(self.products, self.is_admin_view)

    @property
    def visible_items(self) -> list[ProductRead]:
        return self.displayed[: self.window.visible_count]

    def load_more(self) -> int:
        """The sentinel after the grid became visible."""
        return self.window.on_sentinel_visible(len(self.displayed))

    def resize(self, width: int) -> int:
        return self.window.resize(width, len(self.displayed), self.search.is_active)

    # ----- Search -----

    def set_query(self, text: str) -> None:
        self.search.edit(text)
        self._sync_window()

    async def commit_search(self, remote_search: RemoteSearch) -> None:
        try:
            await self.search.commit(remote_search)
        finally:
            self._sync_window()

    # ----- Selection -----

    def _find_visible(self, product_id: str) -> ProductRead:
        for product in visible_products(self.products, self.is_admin_view):
            if product.id == product_id:
                return product
        raise UnknownProductError(product_id)

    def select(self, product_id: str, quantity: int | None = None) -> SelectionLedger:
        """
        Toggle a product, or set its quantity from the quantity control.

        The control's range is [0, max_quantity]; an out-of-stock product
        always ends up unselected.
        """
        if self.view.state is ViewState.ADMIN_DASHBOARD:
            raise ViewNotAllowedError("Selection is disabled in the admin dashboard")
        product = self._find_visible(product_id)
        if quantity is not None:
            quantity = max(0, min(quantity, self.max_quantity))
        if not product.in_stock:
            quantity = 0
        self.ledger = self.ledger.toggle(product_id, quantity)
        return self.ledger

    def clear_selection(self) -> None:
        self.ledger = SelectionLedger()

    @property
    def selected_count(self) -> int:
        return self.ledger.selected_count

    @property
    def selected_total(self) -> float:
        return self.ledger.selected_total(self.products)

    def selected_products(self) -> list[tuple[ProductRead, int]]:
        return self.ledger.selected_products(self.products)

    def close(self) -> None:
        self._unsubscribe()


class FeedSessionRegistry:
    """
    Live feed sessions by viewer key (user email or guest session id).

    The last view each key chose is kept here, so a re-created session
    (a "reload") restores it.

    Sessions are kept in least-recently-used order. A session idle for
    `idle_seconds` is dropped, and creating one past `max_sessions`
    drops the least recently used. Dropped sessions unsubscribe from the
    catalog store. A later request for the same key starts a fresh
    session that still restores the saved view.

    Endpoints run on the threadpool, so every access holds `_lock`.
    """

    def __init__(
        self,
        store: CatalogStore,
        rows_per_batch: int = ROWS_PER_BATCH,
        max_quantity: int = MAX_SELECT_QUANTITY,
        *,
        max_sessions: int = MAX_FEED_SESSIONS,
        idle_seconds: float = FEED_SESSION_IDLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.rows_per_batch = rows_per_batch
        self.max_quantity = max_quantity
        self.max_sessions = max_sessions
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._sessions: OrderedDict[str, FeedSession] = OrderedDict()
        self._last_seen: dict[str, float] = {}
        self._saved_views: OrderedDict[str, ViewState] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def _remember_view(self, key: str, state: ViewState) -> None:
        with self._lock:
            self._saved_views[key] = state
            self._saved_views.move_to_end(key)
            while len(self._saved_views) > self.max_sessions:
                self._saved_views.popitem(last=False)

    def _touch(self, key: str) -> None:
        self._sessions.move_to_end(key)
        self._last_seen[key] = self._clock()

    def _discard(self, key: str) -> None:
        session = self._sessions.pop(key, None)
        self._last_seen.pop(key, None)
        if session is not None:
            session.close()

    def _prune_idle(self) -> None:
        now = self._clock()
        for key in list(self._sessions):
            if now - self._last_seen[key] < self.idle_seconds:
                break
            logger.debug("Feed %s: dropped after idling", key)
            self._discard(key)

    def _enforce_limit(self) -> None:
        while self._sessions and len(self._sessions) >= self.max_sessions:
            key = next(iter(self._sessions))
            logger.debug("Feed %s: dropped, session limit reached", key)
            self._discard(key)

    def _create(self, key: str, width: int) -> FeedSession:
        self._prune_idle()
        self._enforce_limit()

        def persist(state: ViewState) -> None:
            self._remember_view(key, state)

        view = ViewStateMachine(saved=self._saved_views.get(key), on_persist=persist)
        session = FeedSession(
            key,
            self.store,
            width=width,
            rows_per_batch=self.rows_per_batch,
            max_quantity=self.max_quantity,
            view=view,
        )
        self._sessions[key] = session
        self._touch(key)
        return session

    def get(self, key: str) -> FeedSession | None:
        with self._lock:
            self._prune_idle()
            session = self._sessions.get(key)
            if session is not None:
                self._touch(key)
            return session

    def get_or_create(self, key: str, width: int = 1024) -> FeedSession:
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                return self._create(key, width)
            self._touch(key)
            return session

    def reload(self, key: str, width: int = 1024) -> FeedSession:
        """Discard the in-memory session and start a fresh one for `key`."""
        with self._lock:
            self._discard(key)
            return self._create(key, width)

    def saved_view(self, key: str) -> ViewState | None:
        return self._saved_views.get(key)

    def drop(self, key: str) -> None:
        with self._lock:
            self._discard(key)

    def close_all(self) -> None:
        with self._lock:
            for key in list(self._sessions):
                self._discard(key)
