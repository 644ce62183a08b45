"""
Catalog normalization: raw upstream catalog -> flat list of display products.

Products with priced variants get a single required "variant" select option
whose choices carry deltas against the cheapest active variant. Everything
else is priced from the product's own sale/base price. Malformed fragments
are dropped, never raised.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from storefront.catalog_source import normalize_image_url
from storefront.config import Config
from storefront.models import Choice, DisplayProduct, Option, RawCatalog, RawProduct, RawVariant
from storefront.money import INFINITY, round2

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "Other"
VARIANT_OPTION_NAME = "variant"
VARIANT_OPTION_LABEL = "Variant"


def _category_lookup(raw: RawCatalog) -> Dict[str, str]:
    lookup: Dict[str, str] = {}
    for category in raw.categories:
        lookup.setdefault(category.key, category.name)
    return lookup


def _resolve_category(product: RawProduct, lookup: Dict[str, str]) -> str:
    if product.category:
        return product.category
    if product.category_id is not None and product.category_id in lookup:
        return lookup[product.category_id]
    return FALLBACK_CATEGORY


def _variant_labels(variants: List[RawVariant]) -> List[str]:
    """Non-empty, unique choice labels; repeats get a (2), (3)... suffix"""
    labels: List[str] = []
    for position, variant in enumerate(variants, start=1):
        label = variant.label or variant.weight or variant.id or f"{VARIANT_OPTION_LABEL} {position}"
        candidate, n = label, 2
        while candidate in labels:
            candidate = f"{label} ({n})"
            n += 1
        labels.append(candidate)
    return labels


def _variant_option(variants: List[RawVariant], min_price: Decimal) -> Option:
    priced = [v for v in variants if v.effective_price is not None]
    choices = [
        Choice(label=label, price_delta=round2(v.effective_price - min_price))
        for v, label in zip(priced, _variant_labels(priced))
    ]
    return Option(
        name=VARIANT_OPTION_NAME,
        label=VARIANT_OPTION_LABEL,
        kind="select",
        required=True,
        choices=choices,
    )


def _priced_from_variants(product: RawProduct):
    """(basePrice, options) derived from active variants, or None to price standalone"""
    active = [v for v in product.variants if v.active is not False]
    if not active:
        return None

    min_price = min(
        (v.effective_price if v.effective_price is not None else INFINITY for v in active),
        default=INFINITY,
    )
    if not min_price.is_finite():
        return None

    return round2(min_price), [_variant_option(active, min_price)]


def _standalone_price(product: RawProduct) -> Decimal:
    if product.sale_price is not None:
        return round2(product.sale_price)
    if product.price is not None:
        return round2(product.price)
    return round2(Decimal(0))


def normalize_product(
    product: RawProduct,
    lookup: Dict[str, str],
    image_origin: Optional[str] = None,
) -> Optional[DisplayProduct]:
    """Normalize one raw product, None when it is inactive"""
    if product.active is False:
        return None

    priced = _priced_from_variants(product) if product.variants else None
    if priced is not None:
        base_price, options = priced
    else:
        base_price, options = _standalone_price(product), list(product.options)

    photo = product.image or ""
    if image_origin and photo:
        photo = normalize_image_url(photo, image_origin)

    return DisplayProduct(
        id=product.id,
        name=product.title,
        photo=photo,
        category=_resolve_category(product, lookup),
        base_price=base_price,
        weight=product.weight or "",
        description=product.short_desc or product.long_desc or "",
        currency=product.currency or Config.DEFAULT_CURRENCY,
        link=product.link or "",
        options=options,
    )


def normalize(raw: RawCatalog, image_origin: Optional[str] = None) -> List[DisplayProduct]:
    """
    Convert a raw catalog into display products, in input order.

    Args:
        raw: Parsed upstream catalog
        image_origin: When given, relative image paths are resolved against it

    Returns:
        List of DisplayProduct with unique ids
    """
    lookup = _category_lookup(raw)
    seen = set()
    products: List[DisplayProduct] = []

    for product in raw.products:
        display = normalize_product(product, lookup, image_origin)
        if display is None:
            continue
        if display.id in seen:
            logger.warning(f"Skipping duplicate product id: {display.id}")
            continue
        seen.add(display.id)
        products.append(display)

    return products


def category_names(products: List[DisplayProduct]) -> List[str]:
    """Distinct category names in first-seen order"""
    names: List[str] = []
    for product in products:
        if product.category not in names:
            names.append(product.category)
    return names


def filter_by_category(products: List[DisplayProduct], category: Optional[str]) -> List[DisplayProduct]:
    if not category or category == "all":
        return list(products)
    return [p for p in products if p.category == category]
