"""Tests for per-viewer feed sessions."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from merchantconnect.core.auth import Identity
from merchantconnect.services.catalog_store import CatalogFeed, CatalogStore
from merchantconnect.services.feed_session import (
    FeedSession,
    FeedSessionRegistry,
    UnknownProductError,
)
from merchantconnect.services.view_state import ViewNotAllowedError, ViewState

ADMIN = Identity(email="admin@example.com", display_name="Ada")


def record(pid, **kwargs):
    data = {"id": pid, "name": pid, "wholesale_price": 10, "stock": 5, "created_at": 0}
    data.update(kwargs)
    return data


@pytest.fixture
def feed():
    catalog = CatalogFeed()
    catalog.publish(
        [record(f"p{i}", created_at=i) for i in range(1, 21)]
        + [record("secret", hidden=True, created_at=100)]
    )
    return catalog


@pytest.fixture
def store(feed):
    return CatalogStore(feed)


class TestFeedSession:
    def test_initial_window(self, store):
        session = FeedSession("k", store, width=1280)
        session.resolve(None, False)

        assert len(session.visible_items) == 8
        assert session.visible_items[0].id == "p20"

    def test_load_more(self, store):
        session = FeedSession("k", store, width=1280)
        session.resolve(None, False)

        assert session.load_more() == 16
        assert session.load_more() == 20

    def test_hidden_products_only_in_admin_view(self, store):
        session = FeedSession("k", store, width=1280)
        session.resolve(ADMIN, True)
        assert "secret" not in [p.id for p in session.displayed]

        session.switch_view(ViewState.ADMIN_DASHBOARD)
        assert session.displayed[0].id == "secret"

    def test_quantity_clamped_to_control_range(self, store):
        session = FeedSession("k", store, max_quantity=10)
        session.resolve(None, False)

        session.select("p1", 50)
        assert session.ledger.quantity("p1") == 10

        session.select("p1", -3)
        assert not session.ledger.is_selected("p1")

    def test_out_of_stock_cannot_be_selected(self, feed, store):
        feed.publish([record("p1", stock=0)])
        session = FeedSession("k", store)
        session.resolve(None, False)

        session.select("p1")
        session.select("p1", 3)

        assert not session.ledger.is_selected("p1")

    def test_stock_zero_deselects(self, feed, store):
        session = FeedSession("k", store)
        session.resolve(None, False)
        session.select("p1", 2)
        session.select("p2", 1)

        feed.publish([record("p1", stock=0), record("p2")])

        assert session.ledger.entries == {"p2": 1}

    def test_total_ignores_deleted_products(self, feed, store):
        session = FeedSession("k", store)
        session.resolve(None, False)
        session.select("p1", 2)
        session.select("p2", 3)

        feed.publish([record("p1")])

        assert session.selected_count == 5
        assert session.selected_total == 20

    def test_hidden_product_not_selectable_by_merchant(self, store):
        session = FeedSession("k", store)
        session.resolve(None, False)

        with pytest.raises(UnknownProductError):
            session.select("secret")

    def test_no_selection_in_dashboard(self, store):
        session = FeedSession("k", store)
        session.resolve(ADMIN, True)
        session.switch_view(ViewState.ADMIN_DASHBOARD)

        with pytest.raises(ViewNotAllowedError):
            session.select("p1")

    def test_local_query_shows_all_matches(self, store):
        session = FeedSession("k", store, width=1280)
        session.resolve(None, False)

        session.set_query("p1")

        # p1 and p10..p19
        assert len(session.visible_items) == 11

    @pytest.mark.asyncio
    async def test_commit_search(self, store):
        async def remote(query):
            return [store.get("p3")]

        session = FeedSession("k", store, width=1280)
        session.resolve(None, False)
        session.set_query("anything")
        await session.commit_search(remote)

        assert [p.id for p in session.visible_items] == ["p3"]

    def test_close_unsubscribes(self, feed, store):
        session = FeedSession("k", store)
        session.close()

        feed.publish([record("new")])

        assert "new" not in [p.id for p in session.products]


class TestFeedSessionRegistry:
    def test_reload_restores_saved_view(self, store):
        registry = FeedSessionRegistry(store)
        session = registry.get_or_create(ADMIN.email)
        session.resolve(ADMIN, True)
        session.switch_view(ViewState.ADMIN_DASHBOARD)

        fresh = registry.reload(ADMIN.email)
        assert fresh is not session
        assert fresh.view.state is ViewState.LOADING

        fresh.resolve(ADMIN, True)
        assert fresh.view.state is ViewState.ADMIN_DASHBOARD

    def test_get_or_create_reuses(self, store):
        registry = FeedSessionRegistry(store)
        assert registry.get_or_create("a") is registry.get_or_create("a")
        assert registry.get("b") is None

    def test_close_all(self, feed, store):
        registry = FeedSessionRegistry(store)
        session = registry.get_or_create("a")
        registry.close_all()

        feed.publish([record("new")])

        assert registry.get("a") is None
        assert "new" not in [p.id for p in session.products]

    def test_session_limit_drops_least_recently_used(self, feed, store):
        registry = FeedSessionRegistry(store, max_sessions=3)
        oldest = registry.get_or_create("guest:0")
        for i in range(1, 3):
            registry.get_or_create(f"guest:{i}")
        registry.get_or_create("guest:0")

        for i in range(3, 10):
            registry.get_or_create(f"guest:{i}")

        assert len(registry) == 3
        assert store.listener_count == 3
        assert registry.get("guest:1") is None

        feed.publish([record("new")])
        assert "new" not in [p.id for p in oldest.products]

    def test_idle_sessions_expire(self, store):
        now = [0.0]
        registry = FeedSessionRegistry(store, idle_seconds=60, clock=lambda: now[0])
        registry.get_or_create("guest:a")
        now[0] = 30.0
        registry.get_or_create("guest:b")

        now[0] = 75.0

        assert registry.get("guest:a") is None
        assert registry.get("guest:b") is not None
        assert store.listener_count == 1

    def test_expired_session_restores_saved_view(self, store):
        now = [0.0]
        registry = FeedSessionRegistry(store, idle_seconds=60, clock=lambda: now[0])
        session = registry.get_or_create(ADMIN.email)
        session.resolve(ADMIN, True)
        session.switch_view(ViewState.ADMIN_DASHBOARD)

        now[0] = 120.0
        assert registry.get(ADMIN.email) is None

        fresh = registry.get_or_create(ADMIN.email)
        fresh.resolve(ADMIN, True)
        assert fresh.view.state is ViewState.ADMIN_DASHBOARD

    def test_concurrent_first_requests_share_one_session(self, store):
        registry = FeedSessionRegistry(store)

        with ThreadPoolExecutor(max_workers=8) as pool:
            sessions = list(pool.map(lambda _: registry.get_or_create("guest:x"), range(32)))

        assert all(s is sessions[0] for s in sessions)
        assert len(registry) == 1
        assert store.listener_count == 1
