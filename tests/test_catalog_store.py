"""Tests for catalog normalization, the live feed and the store."""

from merchantconnect.schemas.image import normalize_image, normalize_images
from merchantconnect.services.catalog_store import (
    CatalogFeed,
    CatalogStore,
    normalize_product,
    sort_newest_first,
    visible_products,
)


class TestImageMigration:
    def test_bare_url_becomes_big(self):
        image = normalize_image("https://x/a.jpg")
        assert image.urls.big == "https://x/a.jpg"
        assert image.hero_url == "https://x/a.jpg"
        assert image.thumbnail_url == "https://x/a.jpg"

    def test_flat_dict(self):
        image = normalize_image({"small": "s", "big": "b", "name": "a.jpg"})
        assert image.name == "a.jpg"
        assert image.hero_url == "b"
        assert image.thumbnail_url == "s"

    def test_nested_urls(self):
        image = normalize_image({"name": "a.jpg", "urls": {"small": "s", "medium": "m"}})
        assert image.hero_url == "m"
        assert image.version == 2

    def test_empty_entries_are_dropped(self):
        assert normalize_images(["", {"urls": {}}, None, 42, "u"])[0].urls.big == "u"
        assert len(normalize_images(["", {"urls": {}}, None, 42, "u"])) == 1


class TestNormalizeProduct:
    def test_defaults(self):
        product = normalize_product({"id": "p1", "name": "Hat", "stock": None, "images": None})

        assert product.stock == 0
        assert not product.in_stock
        assert product.created_at == 0
        assert product.images == []
        assert product.hidden is False

    def test_sort_newest_first(self):
        products = [
            normalize_product({"id": "old", "created_at": 1}),
            normalize_product({"id": "none"}),
            normalize_product({"id": "new", "created_at": 5}),
        ]
        assert [p.id for p in sort_newest_first(products)] == ["new", "old", "none"]

    def test_visibility(self):
        products = [
            normalize_product({"id": "a"}),
            normalize_product({"id": "b", "hidden": True}),
        ]
        assert [p.id for p in visible_products(products, False)] == ["a"]
        assert [p.id for p in visible_products(products, True)] == ["a", "b"]


class TestCatalogStore:
    def test_snapshots_replace_list(self):
        feed = CatalogFeed()
        store = CatalogStore(feed)
        assert not store.loaded

        feed.publish([{"id": "a", "created_at": 1}, {"id": "b", "created_at": 2}])
        assert [p.id for p in store.products] == ["b", "a"]

        feed.publish([{"id": "c", "created_at": 3}])
        assert [p.id for p in store.products] == ["c"]
        assert store.get("a") is None
        assert store.get("c").id == "c"

    def test_late_subscriber_gets_last_snapshot(self):
        feed = CatalogFeed()
        feed.publish([{"id": "a"}])

        store = CatalogStore(feed)
        seen = []
        store.subscribe(seen.append)

        assert store.loaded
        assert [p.id for p in seen[0]] == ["a"]

    def test_unsubscribe(self):
        feed = CatalogFeed()
        store = CatalogStore(feed)
        seen = []
        unsubscribe = store.subscribe(seen.append)

        unsubscribe()
        feed.publish([{"id": "a"}])

        assert seen == []

    def test_failing_listener_does_not_block_others(self):
        feed = CatalogFeed()

        def broken(snapshot):
            raise RuntimeError("boom")

        feed.subscribe_collection(broken)
        store = CatalogStore(feed)
        feed.publish([{"id": "a"}])

        assert store.loaded
