"""
Configuration management for the storefront application.
Loads settings from environment variables and AWS Secrets Manager.
"""
import os
import json
import logging
from typing import List, Optional
from urllib.parse import urlparse

import boto3

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_URL = "https://urbfgi.fun/api/catalog.php"
DEFAULT_CATALOG_ORIGIN = "https://urbfgi.fun"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


class Config:
    """Application configuration"""

    # Application settings
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "storefront")
    REGION: str = os.getenv("REGION", "eu-west-3")

    # Catalog settings
    CATALOG_URL: str = (os.getenv("CATALOG_URL") or DEFAULT_CATALOG_URL).strip()
    CATALOG_TIMEOUT_SECONDS: float = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "10"))
    CATALOG_FALLBACK_PATH: Optional[str] = os.getenv("CATALOG_FALLBACK_PATH")
    CATALOG_CACHE_TTL_SECONDS: int = int(os.getenv("CATALOG_CACHE_TTL_SECONDS", str(24 * 60 * 60)))
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "EUR")

    # Image proxy settings
    IMAGE_ALLOWED_HOSTS: List[str] = _env_list("IMAGE_ALLOWED_HOSTS")
    IMAGE_PROXY_ENABLED: bool = _env_bool("IMAGE_PROXY_ENABLED", "False")
    IMAGE_CACHE_CONTROL: str = os.getenv("IMAGE_CACHE_CONTROL", "no-store")
    IMAGE_TIMEOUT_SECONDS: float = float(os.getenv("IMAGE_TIMEOUT_SECONDS", "10"))

    # Redis settings
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_AUTH_TOKEN: Optional[str] = os.getenv("REDIS_AUTH_TOKEN")
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_SSL: bool = _env_bool("REDIS_SSL", "False")

    # Cart settings
    CART_TTL_SECONDS: int = int(os.getenv("CART_TTL_SECONDS", str(1 * 24 * 60 * 60)))  # 1 day, one mini-app session
    MAX_ITEMS_PER_CART: int = int(os.getenv("MAX_ITEMS_PER_CART", "50"))
    MAX_QUANTITY_PER_ITEM: int = int(os.getenv("MAX_QUANTITY_PER_ITEM", "99"))

    # Order hand-off
    ORDER_ENDPOINT_URL: Optional[str] = os.getenv("ORDER_ENDPOINT_URL")
    ORDER_TIMEOUT_SECONDS: float = float(os.getenv("ORDER_TIMEOUT_SECONDS", "10"))
    TELEGRAM_BOT_TOKEN: Optional[str] = os.getenv("TELEGRAM_BOT_TOKEN")
    TELEGRAM_ORDER_CHAT_ID: Optional[str] = os.getenv("TELEGRAM_ORDER_CHAT_ID")

    # Redis connection settings
    REDIS_SOCKET_CONNECT_TIMEOUT: int = 5
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_RETRY_ON_TIMEOUT: bool = True
    REDIS_MAX_CONNECTIONS: int = 50

    @classmethod
    def image_allowed_hosts(cls) -> List[str]:
        """Hosts the image proxy may fetch from; defaults to the catalog host"""
        if cls.IMAGE_ALLOWED_HOSTS:
            return cls.IMAGE_ALLOWED_HOSTS
        host = urlparse(cls.CATALOG_URL).hostname or urlparse(DEFAULT_CATALOG_ORIGIN).hostname
        return [host.lower()]

    @classmethod
    def load_redis_secrets(cls) -> None:
        """Load Redis authentication token from AWS Secrets Manager"""
        if cls.REDIS_AUTH_TOKEN:
            return  # Already loaded from environment

        secret_name = os.getenv("REDIS_SECRET_NAME")
        if not secret_name:
            return  # No secret name provided, use no auth

        try:
            client = boto3.client("secretsmanager", region_name=cls.REGION)
            response = client.get_secret_value(SecretId=secret_name)
            secret_data = json.loads(response["SecretString"])

            cls.REDIS_AUTH_TOKEN = secret_data.get("auth_token")
            if "endpoint" in secret_data:
                cls.REDIS_HOST = secret_data["endpoint"]
            cls.REDIS_SSL = True
        except Exception as e:
            logger.warning(f"Could not load Redis secrets from Secrets Manager: {e}")
            # Continue without auth token (may fail on connection)


# Load secrets at module import
Config.load_redis_secrets()
