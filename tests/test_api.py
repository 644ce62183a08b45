"""Test API endpoints."""

from unittest.mock import MagicMock
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from storefront import main
from storefront.cart_service import CartService
from storefront.catalog_service import CatalogService
from storefront.checkout_service import CheckoutService
from storefront.config import Config


@pytest.fixture
def bridge():
    return MagicMock()


@pytest.fixture
def client(fake_redis, herbs_document, bridge, monkeypatch):
    """FastAPI test client with in-memory services."""
    monkeypatch.setattr(Config, "ORDER_ENDPOINT_URL", None)
    monkeypatch.setattr(Config, "IMAGE_PROXY_ENABLED", False)
    monkeypatch.setattr(Config, "IMAGE_ALLOWED_HOSTS", ["urbfgi.fun"])
    monkeypatch.setattr(main, "get_redis_client", lambda: fake_redis)

    catalog_service = CatalogService(redis_client=fake_redis, fetcher=lambda: herbs_document)
    cart_service = CartService(redis_client=fake_redis)
    checkout_service = CheckoutService(cart_service=cart_service, host_bridge=bridge, session=MagicMock())

    main.app.dependency_overrides[main.get_catalog_service] = lambda: catalog_service
    main.app.dependency_overrides[main.get_cart_service] = lambda: cart_service
    main.app.dependency_overrides[main.get_checkout_service] = lambda: checkout_service

    with TestClient(main.app) as test_client:
        yield test_client

    main.app.dependency_overrides.clear()


HEADERS = {"X-Cart-ID": "session-1"}


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["redis"]["status"] == "healthy"
        assert "X-Response-Time-Ms" in response.headers


class TestCatalogEndpoints:

    def test_catalog(self, client):
        response = client.get("/catalog")
        assert response.status_code == 200
        data = response.json()
        assert data["categories"] == ["Herbs", "Mushrooms"]
        basil = data["products"][0]
        assert basil["id"] == "p1"
        assert basil["basePrice"] == 5.0
        assert basil["options"][0]["choices"] == [
            {"label": "10g", "priceDelta": 0.0},
            {"label": "20g", "priceDelta": 4.0},
        ]

    def test_catalog_category_filter(self, client):
        data = client.get("/catalog", params={"category": "Mushrooms"}).json()
        assert [p["id"] for p in data["products"]] == ["p2"]

    def test_product_and_initial_selection(self, client):
        assert client.get("/products/p2").json()["name"] == "Oyster kit"
        data = client.get("/products/p1/initial-selection").json()
        assert data == {"productId": "p1", "selectedOptions": {"variant": "10g"}, "unitPrice": 5.0}

    def test_unknown_product(self, client):
        response = client.get("/products/nope")
        assert response.status_code == 404
        assert response.json()["error"] == "Product not found"

    def test_refresh(self, client):
        data = client.post("/catalog/refresh").json()
        assert data == {"refreshed": True, "source": "upstream", "products": 2}

    def test_catalog_proxy(self, client, herbs_document):
        response = client.get("/api/catalog")
        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-store"
        assert response.json() == herbs_document


class TestImageProxyEndpoint:

    def test_relays_image(self, client, monkeypatch):
        upstream = MagicMock(status_code=200, ok=True, content=b"img", headers={"content-type": "image/webp"})
        monkeypatch.setattr("storefront.image_proxy.requests.get", MagicMock(return_value=upstream))

        response = client.get("/api/img", params={"u": "https://urbfgi.fun/uploads/a.webp"})
        assert response.status_code == 200
        assert response.content == b"img"
        assert response.headers["content-type"] == "image/webp"
        assert response.headers["content-disposition"] == "inline"

    def test_missing_url(self, client):
        response = client.get("/api/img")
        assert response.status_code == 400

    def test_host_not_allowed(self, client):
        response = client.get("/api/img", params={"u": "https://evil.example/a.jpg"})
        assert response.status_code == 403
        assert response.text == "Host not allowed"


class TestCartEndpoints:

    def _add(self, client, variant):
        return client.post(
            "/cart/items",
            json={"productId": "p1", "selectedOptions": {"variant": variant}},
            headers=HEADERS,
        )

    def test_requires_cart_id(self, client):
        assert client.get("/cart").status_code == 422
        assert client.get("/cart", headers={"X-Cart-ID": "  "}).status_code == 400

    def test_add_and_merge(self, client):
        self._add(client, "20g")
        self._add(client, "20g")
        response = self._add(client, "10g")

        assert response.status_code == 200
        data = response.json()
        assert data["cart_id"] == "session-1"
        assert [(line["quantity"], line["unitPrice"]) for line in data["lines"]] == [(2, 9.0), (1, 5.0)]
        assert data["total_items"] == 3
        assert data["total_price"] == 23.0
        assert client.get("/cart", headers=HEADERS).json() == data

    def test_invalid_selection(self, client):
        response = self._add(client, "1kg")
        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"

    def test_line_operations(self, client):
        key = self._add(client, "10g").json()["lines"][0]["key"]
        path = quote(key, safe="")

        data = client.post(f"/cart/lines/{path}/increment", headers=HEADERS).json()
        assert data["lines"][0]["quantity"] == 2

        data = client.post(f"/cart/lines/{path}/decrement", headers=HEADERS).json()
        assert data["lines"][0]["quantity"] == 1

        data = client.post(f"/cart/lines/{path}/decrement", headers=HEADERS).json()
        assert data["lines"] == []

        data = client.post(f"/cart/lines/{path}/decrement", headers=HEADERS).json()
        assert data["lines"] == []

    def test_remove_and_clear(self, client):
        key = self._add(client, "10g").json()["lines"][0]["key"]
        self._add(client, "20g")

        data = client.delete(f"/cart/lines/{quote(key, safe='')}", headers=HEADERS).json()
        assert [line["selectedOptions"] for line in data["lines"]] == [{"variant": "20g"}]

        assert client.delete("/cart", headers=HEADERS).json() == {"success": True, "cleared": True}
        assert client.get("/cart", headers=HEADERS).json()["lines"] == []


class TestCheckoutEndpoint:

    def test_checkout(self, client, bridge):
        client.post("/cart/items", json={"productId": "p1", "selectedOptions": {"variant": "20g"}}, headers=HEADERS)

        response = client.post("/checkout/start", json={"cart_id": "session-1"}, headers={"X-User-ID": "7"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 9.0
        assert data["items"][0]["unitPrice"] == 9.0
        bridge.send_data.assert_called_once()
        assert client.get("/cart", headers=HEADERS).json()["lines"] == []

    def test_empty_cart(self, client):
        response = client.post("/checkout/start", json={"cart_id": "session-1"})
        assert response.status_code == 400
