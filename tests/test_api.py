"""End-to-end API tests against an in-memory SQLite database."""

from sqlalchemy import update
from sqlmodel import Session

from conftest import ADMIN, MERCHANT, png_bytes
from merchantconnect.models.product import Product
from merchantconnect.repositories.product_repo import ProductRepository

API = "/api/v1"


def seed(services, *products: Product) -> list[str]:
    with Session(services.engine) as session:
        repo = ProductRepository()
        ids = [repo.create(session, p).id for p in products]
        services.product_service.publish(session)
    return ids


class TestHealth:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "logo_html" in data


class TestProducts:
    def test_list_hides_hidden_products(self, client, services, admin_headers):
        seed(
            services,
            Product(name="Boot", wholesale_price=10, retail_price=20, created_at=1),
            Product(name="Secret", wholesale_price=1, retail_price=2, hidden=True, created_at=2),
        )

        public = client.get(f"{API}/products").json()
        assert [p["name"] for p in public] == ["Boot"]

        admin = client.get(
            f"{API}/products", params={"include_hidden": True}, headers=admin_headers
        ).json()
        assert [p["name"] for p in admin] == ["Secret", "Boot"]

    def test_hidden_product_is_404_for_guests(self, client, services):
        (pid,) = seed(services, Product(name="Secret", hidden=True))
        assert client.get(f"{API}/products/{pid}").status_code == 404

    def test_legacy_rows_are_normalized(self, client, services):
        (pid,) = seed(services, Product(name="Old", images=["https://x/a.jpg"]))
        with Session(services.engine) as session:
            session.exec(
                update(Product)
                .where(Product.id == pid)
                .values(stock=None, created_at=None)
            )
            session.commit()
            services.product_service.publish(session)

        product = client.get(f"{API}/products/{pid}").json()

        assert product["stock"] == 0
        assert product["created_at"] == 0
        assert product["images"][0]["urls"]["big"] == "https://x/a.jpg"

    def test_search(self, client, services, merchant_headers):
        seed(
            services,
            Product(name="Red Boot", created_at=1),
            Product(name="Blue Hat", description="shoe box", created_at=2),
            Product(name="Red Secret", hidden=True, created_at=3),
            Product(name="Scarf", created_at=4),
        )

        results = client.get(
            f"{API}/products/search", params={"q": "red shoe"}, headers=merchant_headers
        ).json()

        assert [p["name"] for p in results] == ["Blue Hat", "Red Boot"]


class TestAdminForms:
    def test_requires_admin(self, client, merchant_headers):
        assert client.post(f"{API}/products/forms").status_code == 401
        assert client.post(f"{API}/products/forms", headers=merchant_headers).status_code == 403

    def test_create_edit_save(self, client, services, admin_headers, blob_store):
        form = client.post(f"{API}/products/forms", headers=admin_headers)
        assert form.status_code == 201
        pid = form.json()["product_id"]
        assert form.json()["stock"] == "1"

        response = client.post(
            f"{API}/products/forms/{pid}/images",
            files={"file": ("boot.png", png_bytes(), "image/png")},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert len(response.json()["images"]) == 1
        assert len(blob_store.objects) == 3

        client.patch(
            f"{API}/products/forms/{pid}",
            json={"name": "Boot", "wholesale_price": "12", "retail_price": "25", "stock": "3"},
            headers=admin_headers,
        )
        saved = client.post(f"{API}/products/forms/{pid}/save", headers=admin_headers)
        assert saved.status_code == 200
        assert saved.json()["name"] == "Boot"
        assert saved.json()["stock"] == 3

        assert client.get(f"{API}/products/forms/{pid}", headers=admin_headers).status_code == 404
        assert client.get(f"{API}/products/{pid}").json()["name"] == "Boot"

    def test_cancel_new_product_leaves_no_placeholder(self, client, admin_headers):
        pid = client.post(f"{API}/products/forms", headers=admin_headers).json()["product_id"]

        response = client.delete(f"{API}/products/forms/{pid}", headers=admin_headers)

        assert response.json() == {"outcome": "cancelled"}
        assert client.get(f"{API}/products/{pid}").status_code == 404
        all_products = client.get(
            f"{API}/products", params={"include_hidden": True}, headers=admin_headers
        ).json()
        assert all_products == []

    def test_invalid_save_is_422(self, client, admin_headers):
        pid = client.post(f"{API}/products/forms", headers=admin_headers).json()["product_id"]

        response = client.post(f"{API}/products/forms/{pid}/save", headers=admin_headers)

        assert response.status_code == 422

    def test_image_delete_needs_confirm(self, client, admin_headers):
        pid = client.post(f"{API}/products/forms", headers=admin_headers).json()["product_id"]
        client.post(
            f"{API}/products/forms/{pid}/images",
            files={"file": ("boot.png", png_bytes(), "image/png")},
            headers=admin_headers,
        )

        url = f"{API}/products/forms/{pid}/images/0"
        assert client.delete(url, headers=admin_headers).status_code == 400
        response = client.delete(url, params={"confirm": True}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["images"] == []

    def test_delete_product_removes_images(self, client, services, admin_headers, blob_store):
        pid = client.post(f"{API}/products/forms", headers=admin_headers).json()["product_id"]
        client.post(
            f"{API}/products/forms/{pid}/images",
            files={"file": ("boot.png", png_bytes(), "image/png")},
            headers=admin_headers,
        )
        client.patch(
            f"{API}/products/forms/{pid}",
            json={"name": "Boot", "wholesale_price": 1, "retail_price": 2},
            headers=admin_headers,
        )
        client.post(f"{API}/products/forms/{pid}/save", headers=admin_headers)

        response = client.delete(f"{API}/products/{pid}", headers=admin_headers)

        assert response.status_code == 204
        assert blob_store.objects == {}
        assert client.get(f"{API}/products/{pid}").status_code == 404


class TestFeed:
    def test_guest_feed_is_windowed(self, client, services):
        seed(services, *[Product(name=f"P{i}", stock=3, created_at=i) for i in range(12)])

        feed = client.get(f"{API}/feed", params={"width": 1300}).json()
        assert feed["view"] == "FEED"
        assert feed["columns"] == 4
        assert len(feed["items"]) == 8
        assert feed["items"][0]["name"] == "P11"

        headers = {"X-Feed-Session": feed["session_id"]}
        more = client.post(f"{API}/feed/more", headers=headers).json()
        assert more["visible_count"] == 12

    def test_headerless_guest_reads_stay_bounded(self, client, services):
        services.feed_sessions.max_sessions = 5

        for _ in range(50):
            assert client.get(f"{API}/feed").status_code == 200

        assert len(services.feed_sessions) == 5
        assert services.catalog_store.listener_count == 5

    def test_selection_and_auto_deselect(self, client, services, merchant_headers, admin_headers):
        a, b = seed(
            services,
            Product(name="A", wholesale_price=10, stock=5),
            Product(name="B", wholesale_price=3, stock=5),
        )

        client.post(f"{API}/feed/selection", json={"product_id": a, "quantity": 2}, headers=merchant_headers)
        feed = client.post(
            f"{API}/feed/selection", json={"product_id": b, "quantity": 99}, headers=merchant_headers
        ).json()
        assert feed["selection"] == {a: 2, b: 10}
        assert feed["selected_total"] == 50

        # Admin marks A as restocking
        pid = client.post(f"{API}/products/{a}/form", headers=admin_headers).json()["product_id"]
        client.patch(f"{API}/products/forms/{pid}", json={"stock": "0"}, headers=admin_headers)
        client.post(f"{API}/products/forms/{pid}/save", headers=admin_headers)

        feed = client.get(f"{API}/feed", headers=merchant_headers).json()
        assert feed["selection"] == {b: 10}

    def test_unknown_product(self, client, merchant_headers):
        response = client.post(
            f"{API}/feed/selection", json={"product_id": "nope"}, headers=merchant_headers
        )
        assert response.status_code == 404

    def test_query_and_search(self, client, services):
        seed(
            services,
            Product(name="Red Boot", created_at=1),
            Product(name="Blue Hat", created_at=2),
        )
        feed = client.get(f"{API}/feed").json()
        headers = {"X-Feed-Session": feed["session_id"]}

        feed = client.post(f"{API}/feed/query", json={"text": "hat"}, headers=headers).json()
        assert [p["name"] for p in feed["items"]] == ["Blue Hat"]
        assert feed["search_active"]

        feed = client.post(f"{API}/feed/search", headers=headers).json()
        assert feed["remote_results"]
        assert [p["name"] for p in feed["items"]] == ["Blue Hat"]

        feed = client.post(f"{API}/feed/query", json={"text": ""}, headers=headers).json()
        assert not feed["remote_results"]
        assert len(feed["items"]) == 2

    def test_view_switch(self, client, merchant_headers, admin_headers):
        denied = client.post(
            f"{API}/feed/view", json={"view": "ADMIN_DASHBOARD"}, headers=merchant_headers
        )
        assert denied.status_code == 403

        feed = client.post(
            f"{API}/feed/view", json={"view": "ADMIN_DASHBOARD"}, headers=admin_headers
        ).json()
        assert feed["view"] == "ADMIN_DASHBOARD"

        reloaded = client.post(f"{API}/feed/reload", headers=admin_headers).json()
        assert reloaded["view"] == "ADMIN_DASHBOARD"

    def test_admin_dashboard_sees_hidden(self, client, services, admin_headers):
        seed(services, Product(name="Secret", hidden=True))

        feed = client.get(f"{API}/feed", headers=admin_headers).json()
        assert feed["items"] == []

        feed = client.post(
            f"{API}/feed/view", json={"view": "ADMIN_DASHBOARD"}, headers=admin_headers
        ).json()
        assert [p["name"] for p in feed["items"]] == ["Secret"]


class TestInquiry:
    PAYLOAD = {
        "email": "mia@shop.com",
        "first_name": "Mia",
        "last_name": "Jones",
        "phone": "555-0101",
        "business_name": "Mia's Shop",
        "business_address": {"street": "1 Main", "city": "Austin", "state": "TX", "zipcode": "78701"},
    }

    def test_guest_rejected(self, client):
        assert client.post(f"{API}/feed/inquiry", json=self.PAYLOAD).status_code == 401

    def test_empty_selection_rejected(self, client, merchant_headers):
        response = client.post(f"{API}/feed/inquiry", json=self.PAYLOAD, headers=merchant_headers)
        assert response.status_code == 400

    def test_submit(self, client, services, merchant_headers):
        (pid,) = seed(services, Product(name="Boot", wholesale_price=12.5, stock=4))
        client.post(f"{API}/feed/selection", json={"product_id": pid, "quantity": 2}, headers=merchant_headers)

        profile = client.get(f"{API}/users/me", headers=merchant_headers).json()
        assert profile["persisted"] is False
        assert (profile["first_name"], profile["last_name"]) == ("Mia", "Merchant Jones")

        response = client.post(f"{API}/feed/inquiry", json=self.PAYLOAD, headers=merchant_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["product_count"] == 1
        assert data["subject"] == "Interest in 1 products"
        assert "- Boot x2 (Wholesale: $12.50)" in data["body"]
        assert data["mailto_url"].startswith("mailto:supplier@example.com?subject=")
        assert data["notified_supplier"] is False

        profile = client.get(f"{API}/users/me", headers=merchant_headers).json()
        assert profile["persisted"] is True
        assert profile["email"] == MERCHANT
        assert profile["last_name"] == "Jones"
        assert profile["business_address"]["city"] == "Austin"

    def test_no_mailto_when_not_requested(self, client, services, merchant_headers):
        (pid,) = seed(services, Product(name="Boot", stock=4))
        client.post(f"{API}/feed/selection", json={"product_id": pid}, headers=merchant_headers)

        data = client.post(
            f"{API}/feed/inquiry",
            json={**self.PAYLOAD, "draft_email_for_me": False},
            headers=merchant_headers,
        ).json()

        assert data["mailto_url"] is None


class TestUsers:
    def test_update_me(self, client, merchant_headers):
        response = client.patch(
            f"{API}/users/me", json={"phone": " 555-0199 "}, headers=merchant_headers
        )
        assert response.status_code == 200
        assert response.json()["phone"] == "555-0199"
        assert response.json()["persisted"] is True


class TestConfigsAndAdmin:
    def test_configs(self, client, admin_headers, merchant_headers):
        assert client.get(f"{API}/configs", headers=merchant_headers).status_code == 403

        doc = client.get(f"{API}/configs/adminEmails", headers=admin_headers).json()
        assert doc["data"]["emails"] == [ADMIN]

        response = client.put(
            f"{API}/configs/function1",
            json={"data": {"prompts": [{"name": "Front", "enabled": True}]}},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert set(client.get(f"{API}/configs", headers=admin_headers).json()) == {
            "adminEmails",
            "function1",
        }

    def test_allow_list_cannot_be_emptied(self, client, admin_headers):
        response = client.put(
            f"{API}/configs/adminEmails", json={"data": {"emails": []}}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_storage_cleanup(self, client, services, admin_headers, blob_store):
        (pid,) = seed(services, Product(name="Boot"))
        blob_store.objects = {
            f"products/{pid}/1_a_small.jpg": b"",
            "products/gone/1_a_small.jpg": b"",
        }

        scan = client.get(f"{API}/admin/storage/cleanup", headers=admin_headers).json()
        assert scan["unused_folders"] == ["gone"]

        result = client.post(
            f"{API}/admin/storage/cleanup",
            json={"folders": ["gone", pid]},
            headers=admin_headers,
        ).json()
        assert result["deleted"] == ["gone"]
        assert pid in result["failed"]
        assert list(blob_store.objects) == [f"products/{pid}/1_a_small.jpg"]

    def test_batch_upload(self, client, admin_headers, blob_store):
        client.put(
            f"{API}/configs/function1",
            json={"data": {"prompts": [{"name": "Front", "enabled": True}, {"name": "Back", "enabled": True}]}},
            headers=admin_headers,
        )

        response = client.post(
            f"{API}/admin/batch-upload",
            files=[
                ("files", ("shoe.png", b"png", "image/png")),
                ("files", ("shoe-2.jpg", b"jpg", "image/jpeg")),
            ],
            data={"include_front": "true", "include_back": "false"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["folder"] == "newupload/shoe"
        assert data["prompts_uploaded"] is True
        assert len(data["urls"]) == 2
        assert "newupload/shoe/prompts.json" in blob_store.objects
