"""
Image proxy: relays catalog images from allowed hosts so the Mini-App can
display them inline.
"""
import logging
from typing import Iterable, Optional, Tuple
from urllib.parse import quote, urlparse

import requests

from storefront.config import Config
from storefront.exceptions import ImageProxyError

logger = logging.getLogger(__name__)

PROXY_PATH = "/api/img"
DEFAULT_CONTENT_TYPE = "image/jpeg"

HEADERS = {
    "User-Agent": "Mozilla/5.0 StorefrontImageProxy",
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
}


def _host_matches(hostname: str, allowed: Iterable[str]) -> bool:
    for host in allowed:
        if hostname == host or hostname.endswith("." + host):
            return True
    return False


def is_allowed(url: str, hosts: Optional[Iterable[str]] = None) -> bool:
    """https only, on an allowed host or one of its subdomains"""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme != "https" or not parsed.hostname:
        return False
    return _host_matches(parsed.hostname.lower(), hosts or Config.image_allowed_hosts())


def proxied_image_url(url: str) -> str:
    """Route an absolute image URL through the proxy"""
    return f"{PROXY_PATH}?u={quote(url, safe='')}"


def fetch_image(
    target: Optional[str],
    session: Optional[requests.Session] = None,
) -> Tuple[bytes, str]:
    """
    Fetch an image for relaying.

    Returns:
        (body, content_type)

    Raises:
        ImageProxyError: 400 missing or malformed URL, 403 host not allowed,
            502 upstream error status, 500 transport failure
    """
    if not target:
        raise ImageProxyError("Missing u", status_code=400)

    try:
        parsed = urlparse(target)
    except ValueError:
        raise ImageProxyError("Bad Request", status_code=400)
    if parsed.scheme != "https" or not parsed.hostname:
        raise ImageProxyError("Bad Request", status_code=400)
    if not is_allowed(target):
        raise ImageProxyError("Host not allowed", status_code=403)

    sess = session or requests
    try:
        resp = sess.get(
            target,
            headers=HEADERS,
            timeout=Config.IMAGE_TIMEOUT_SECONDS,
            allow_redirects=True,
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"Image proxy error for {parsed.hostname}: {e}")
        raise ImageProxyError("Proxy error", status_code=500) from e

    if not resp.ok:
        logger.warning(f"Image upstream returned {resp.status_code} for {parsed.hostname}")
        raise ImageProxyError(f"Upstream error: {resp.status_code}", status_code=502)

    content_type = resp.headers.get("content-type") or DEFAULT_CONTENT_TYPE
    return resp.content, content_type


def response_headers(content_type: str) -> dict:
    return {
        "Content-Type": content_type,
        "Content-Disposition": "inline",
        "Cache-Control": Config.IMAGE_CACHE_CONTROL,
    }
