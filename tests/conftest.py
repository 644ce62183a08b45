"""Shared test fixtures for the storefront test suite."""

import copy
from typing import Callable, Dict, Optional

import pytest

from storefront.catalog_source import parse_catalog
from storefront.normalizer import normalize


HERBS_DOCUMENT = {
    "categories": [
        {"id": 1, "name": "Herbs", "slug": "herbs"},
        {"id": 2, "name": "Mushrooms", "slug": "mushrooms"},
    ],
    "products": [
        {
            "id": "p1",
            "title": "Basil",
            "price": 5,
            "categoryId": 1,
            "active": True,
            "variants": [
                {"id": "v1", "label": "10g", "price": 5, "active": True},
                {"id": "v2", "label": "20g", "price": 9, "active": True},
            ],
        },
        {
            "id": "p2",
            "title": "Oyster kit",
            "price": "14.90",
            "salePrice": "12.5",
            "categoryId": "2",
            "image": "/uploads/oyster.jpg",
            "shortDesc": "Grow at home",
            "weight": "500g",
            "options": [
                {
                    "name": "extras",
                    "label": "Extras",
                    "kind": "toggle",
                    "choices": [
                        {"label": "Spray bottle", "priceDelta": 3},
                        {"label": "Guide", "priceDelta": 1.5},
                    ],
                }
            ],
        },
        {"id": "p3", "title": "Retired", "price": 4, "active": False},
    ],
}


class FakeRedisClient:
    """In-memory stand-in for RedisClient"""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}

    def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    def set(self, key: str, value, ex: Optional[int] = None) -> bool:
        self.store[key] = value
        self.ttls[key] = ex
        return True

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def update(self, key: str, func: Callable, ttl: Optional[int] = None):
        new_value = func(self.store.get(key))
        if new_value is None:
            self.delete(key)
        else:
            self.set(key, new_value, ex=ttl)
        return new_value

    def ping(self) -> bool:
        return True


@pytest.fixture
def herbs_document():
    """Raw upstream catalog document."""
    return copy.deepcopy(HERBS_DOCUMENT)


@pytest.fixture
def herbs_catalog(herbs_document):
    """Parsed RawCatalog."""
    return parse_catalog(herbs_document)


@pytest.fixture
def products(herbs_catalog):
    """Normalized products keyed by id."""
    return {p.id: p for p in normalize(herbs_catalog)}


@pytest.fixture
def basil(products):
    return products["p1"]


@pytest.fixture
def oyster_kit(products):
    return products["p2"]


@pytest.fixture
def fake_redis():
    return FakeRedisClient()
