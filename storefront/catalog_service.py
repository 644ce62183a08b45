"""
Catalog service: keeps the last good normalized catalog.

A refresh that fails (network, HTTP status, unparsable document) never
replaces a catalog that is already loaded. On a cold start the service falls
back to the copy cached in Redis, then to the local fallback file, then to an
empty catalog.
"""
import json
import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from storefront.catalog_source import (
    catalog_origin,
    empty_catalog,
    fetch_catalog,
    load_fallback_catalog,
    parse_catalog,
)
from storefront.config import Config
from storefront.exceptions import CatalogUnavailableError, ProductNotFoundError, RedisConnectionError
from storefront.image_proxy import proxied_image_url
from storefront.models import CatalogResponse, DisplayProduct
from storefront.normalizer import category_names, filter_by_category, normalize
from storefront.redis_client import RedisClient, get_redis_client

logger = logging.getLogger(__name__)

CATALOG_CACHE_KEY = "catalog:last_good"


class CatalogState(NamedTuple):
    document: Dict[str, Any]
    products: List[DisplayProduct]
    source: str


class CatalogService:
    """Service for catalog retrieval and normalization"""

    def __init__(
        self,
        redis_client: Optional[RedisClient] = None,
        fetcher: Callable[[], Any] = fetch_catalog,
    ):
        self._redis = redis_client
        self._fetch = fetcher
        self._state: Optional[CatalogState] = None

    def _get_redis(self) -> RedisClient:
        if self._redis is None:
            self._redis = get_redis_client()
        return self._redis

    def _build(self, document: Dict[str, Any], source: str) -> CatalogState:
        products = normalize(parse_catalog(document), image_origin=catalog_origin())
        if Config.IMAGE_PROXY_ENABLED:
            products = [
                p.model_copy(update={"photo": proxied_image_url(p.photo)}) if p.photo else p
                for p in products
            ]
        return CatalogState(document=document, products=products, source=source)

    def _store_cache(self, document: Dict[str, Any]) -> None:
        try:
            self._get_redis().set(
                CATALOG_CACHE_KEY, json.dumps(document), ex=Config.CATALOG_CACHE_TTL_SECONDS
            )
        except RedisConnectionError as e:
            logger.warning(f"Could not cache catalog in Redis: {e}")

    def _read_cache(self) -> Optional[Dict[str, Any]]:
        try:
            cached = self._get_redis().get(CATALOG_CACHE_KEY)
        except RedisConnectionError as e:
            logger.warning(f"Could not read cached catalog from Redis: {e}")
            return None
        if not cached:
            return None
        try:
            document = json.loads(cached)
        except ValueError:
            return None
        return document if isinstance(document, dict) else None

    def _cold_start_state(self) -> CatalogState:
        cached = self._read_cache()
        if cached is not None:
            return self._build(cached, "cache")
        fallback = load_fallback_catalog()
        source = "fallback" if fallback.get("products") else "empty"
        return self._build(fallback, source)

    def refresh(self) -> bool:
        """
        Fetch and normalize the upstream catalog.

        Returns:
            True when the upstream catalog was loaded, False when the previous
            (or fallback) catalog was kept
        """
        try:
            document = self._fetch()
            if not isinstance(document, dict) or not isinstance(document.get("products"), list):
                raise CatalogUnavailableError("Catalog document has no product list")
        except CatalogUnavailableError as e:
            if self._state is None:
                self._state = self._cold_start_state()
            logger.warning(
                f"Catalog refresh failed, keeping {self._state.source} catalog: {e}",
                extra={"catalog_source": self._state.source}
            )
            return False

        self._state = self._build(document, "upstream")
        self._store_cache(document)
        logger.info(
            f"Catalog loaded: {len(self._state.products)} products",
            extra={"catalog_source": "upstream"}
        )
        return True

    def _current(self) -> CatalogState:
        if self._state is None:
            self.refresh()
        return self._state

    @property
    def source(self) -> str:
        return self._current().source

    def get_products(self, category: Optional[str] = None) -> List[DisplayProduct]:
        return filter_by_category(self._current().products, category)

    def get_categories(self) -> List[str]:
        return category_names(self._current().products)

    def get_product(self, product_id: str) -> DisplayProduct:
        for product in self._current().products:
            if product.id == product_id:
                return product
        raise ProductNotFoundError(product_id)

    def get_catalog(self, category: Optional[str] = None) -> CatalogResponse:
        return CatalogResponse(categories=self.get_categories(), products=self.get_products(category))

    def raw_document(self) -> Dict[str, Any]:
        """Last good upstream document, for the JSON proxy route"""
        state = self._current()
        return state.document if state.source != "empty" else empty_catalog()
