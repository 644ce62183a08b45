"""
Catalog source: fetching the upstream catalog document and parsing it with
defaults into a typed RawCatalog.
"""
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import urlparse

import requests
from pydantic import BaseModel, ValidationError

from storefront.config import Config, DEFAULT_CATALOG_ORIGIN
from storefront.exceptions import CatalogUnavailableError
from storefront.models import RawCatalog, RawCategory, RawProduct

logger = logging.getLogger(__name__)


def empty_catalog() -> Dict[str, List[Any]]:
    return {"categories": [], "products": []}


_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Module-level session for connection reuse
_session: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    """Get or create the module-level session."""
    global _session
    if _session is None:
        _session = requests.Session()
        _session.headers.update({"Accept": "application/json"})
    return _session


def catalog_origin(url: Optional[str] = None) -> str:
    """Scheme and host of the catalog URL, e.g. https://urbfgi.fun"""
    parsed = urlparse(url or Config.CATALOG_URL)
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return DEFAULT_CATALOG_ORIGIN


def normalize_image_url(value: Optional[str], origin: Optional[str] = None) -> str:
    """Resolve an upstream image reference to an absolute URL"""
    if not value:
        return ""
    origin = origin or catalog_origin()
    v = str(value).strip()

    if _ABSOLUTE_URL.match(v):
        return v
    if v.startswith("//"):
        return "https:" + v
    if v.startswith("/"):
        return origin + v
    if v.startswith("uploads/"):
        return f"{origin}/{v}"
    return f"{origin}/uploads/{v}"


def _parse_entries(entries: Any, model: Type[ModelT], kind: str) -> List[ModelT]:
    if not isinstance(entries, list):
        return []

    parsed: List[ModelT] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning(f"Dropping {kind} #{index}: not an object")
            continue
        try:
            parsed.append(model.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"Dropping {kind} #{index}: {e.error_count()} invalid field(s)")
    return parsed


def parse_catalog(data: Any) -> RawCatalog:
    """
    Parse a decoded catalog document with defaults.

    Anything that is not shaped like a catalog degrades to an empty one;
    unusable categories and products are dropped individually.
    """
    if not isinstance(data, dict):
        return RawCatalog()
    return RawCatalog(
        categories=_parse_entries(data.get("categories"), RawCategory, "category"),
        products=_parse_entries(data.get("products"), RawProduct, "product"),
    )


def fetch_catalog(url: Optional[str] = None, session: Optional[requests.Session] = None) -> Any:
    """
    Fetch the upstream catalog JSON, bypassing HTTP caches.

    Raises:
        CatalogUnavailableError: On transport error, non-2xx status or invalid JSON
    """
    base = (url or Config.CATALOG_URL).strip()
    separator = "&" if "?" in base else "?"
    target = f"{base}{separator}t={int(time.time() * 1000)}"

    sess = session or _get_session()
    try:
        resp = sess.get(
            target,
            headers={"Cache-Control": "no-store"},
            timeout=Config.CATALOG_TIMEOUT_SECONDS,
        )
    except requests.exceptions.RequestException as e:
        raise CatalogUnavailableError(f"Catalog request failed: {e}") from e

    if not resp.ok:
        raise CatalogUnavailableError(f"Catalog HTTP {resp.status_code}")

    try:
        return resp.json()
    except ValueError as e:
        raise CatalogUnavailableError(f"Catalog is not valid JSON: {e}") from e


def load_fallback_catalog(path: Optional[str] = None) -> Dict[str, Any]:
    """Read a local catalog file, an empty catalog when it cannot be read"""
    path = path or Config.CATALOG_FALLBACK_PATH
    if not path:
        return empty_catalog()
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read fallback catalog {path}: {e}")
        return empty_catalog()
    if not isinstance(data, dict):
        return empty_catalog()
    return data
