"""Test the last-good-state catalog service."""

import json
from unittest.mock import MagicMock

import pytest

from storefront.catalog_service import CATALOG_CACHE_KEY, CatalogService
from storefront.config import Config
from storefront.exceptions import CatalogUnavailableError, ProductNotFoundError, RedisConnectionError


def failing_fetcher():
    raise CatalogUnavailableError("Catalog HTTP 503")


class TestRefresh:
    """Upstream refresh and fallbacks."""

    def test_loads_upstream_and_caches_it(self, fake_redis, herbs_document):
        service = CatalogService(redis_client=fake_redis, fetcher=lambda: herbs_document)
        assert service.refresh() is True
        assert service.source == "upstream"
        assert [p.id for p in service.get_products()] == ["p1", "p2"]
        assert json.loads(fake_redis.store[CATALOG_CACHE_KEY]) == herbs_document
        assert fake_redis.ttls[CATALOG_CACHE_KEY] == Config.CATALOG_CACHE_TTL_SECONDS

    def test_failed_refresh_keeps_previous_catalog(self, fake_redis, herbs_document):
        fetcher = MagicMock(side_effect=[herbs_document, CatalogUnavailableError("down")])
        service = CatalogService(redis_client=fake_redis, fetcher=fetcher)
        service.refresh()

        assert service.refresh() is False
        assert service.source == "upstream"
        assert len(service.get_products()) == 2

    def test_document_without_products_is_a_failure(self, fake_redis, herbs_document):
        fetcher = MagicMock(side_effect=[herbs_document, {"error": "maintenance"}])
        service = CatalogService(redis_client=fake_redis, fetcher=fetcher)
        service.refresh()

        assert service.refresh() is False
        assert len(service.get_products()) == 2

    def test_cold_start_uses_redis_copy(self, fake_redis, herbs_document):
        fake_redis.store[CATALOG_CACHE_KEY] = json.dumps(herbs_document)
        service = CatalogService(redis_client=fake_redis, fetcher=failing_fetcher)
        assert service.refresh() is False
        assert service.source == "cache"
        assert len(service.get_products()) == 2

    def test_cold_start_uses_fallback_file(self, fake_redis, herbs_document, tmp_path, monkeypatch):
        path = tmp_path / "products.json"
        path.write_text(json.dumps(herbs_document), encoding="utf-8")
        monkeypatch.setattr(Config, "CATALOG_FALLBACK_PATH", str(path))

        service = CatalogService(redis_client=fake_redis, fetcher=failing_fetcher)
        assert service.source == "fallback"
        assert service.get_categories() == ["Herbs", "Mushrooms"]

    def test_cold_start_without_anything_is_empty(self, fake_redis, monkeypatch):
        monkeypatch.setattr(Config, "CATALOG_FALLBACK_PATH", None)
        service = CatalogService(redis_client=fake_redis, fetcher=failing_fetcher)
        assert service.get_products() == []
        assert service.raw_document() == {"categories": [], "products": []}

    def test_redis_failure_does_not_block_catalog(self, herbs_document):
        redis = MagicMock()
        redis.set.side_effect = RedisConnectionError("down")
        service = CatalogService(redis_client=redis, fetcher=lambda: herbs_document)
        assert service.refresh() is True
        assert len(service.get_products()) == 2


class TestQueries:
    """Lookups over the loaded catalog."""

    @pytest.fixture
    def service(self, fake_redis, herbs_document):
        return CatalogService(redis_client=fake_redis, fetcher=lambda: herbs_document)

    def test_loads_lazily(self, service):
        assert service.get_product("p1").name == "Basil"

    def test_photos_are_absolute(self, service, monkeypatch):
        monkeypatch.setattr(Config, "CATALOG_URL", "https://shop.example/api/catalog.php")
        monkeypatch.setattr(Config, "IMAGE_PROXY_ENABLED", False)
        assert service.get_product("p2").photo == "https://shop.example/uploads/oyster.jpg"

    def test_photos_through_proxy(self, service, monkeypatch):
        monkeypatch.setattr(Config, "CATALOG_URL", "https://shop.example/api/catalog.php")
        monkeypatch.setattr(Config, "IMAGE_PROXY_ENABLED", True)
        assert service.get_product("p2").photo == (
            "/api/img?u=https%3A%2F%2Fshop.example%2Fuploads%2Foyster.jpg"
        )
        assert service.get_product("p1").photo == ""

    def test_unknown_product(self, service):
        with pytest.raises(ProductNotFoundError):
            service.get_product("nope")

    def test_catalog_response(self, service, herbs_document):
        response = service.get_catalog("Mushrooms")
        assert response.categories == ["Herbs", "Mushrooms"]
        assert [p.id for p in response.products] == ["p2"]
        assert service.raw_document() == herbs_document
