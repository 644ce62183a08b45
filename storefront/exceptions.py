"""
Custom exceptions for the storefront application.
"""
from typing import Optional


class StorefrontException(Exception):
    """Base exception for storefront operations"""
    pass


class ValidationError(StorefrontException):
    """Raised when validation fails"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class LimitExceededError(StorefrontException):
    """Raised when cart limits are exceeded"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ProductNotFoundError(StorefrontException):
    """Raised when a product is not in the catalog"""
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class RedisConnectionError(StorefrontException):
    """Raised when Redis connection fails"""
    pass


class CatalogUnavailableError(StorefrontException):
    """Raised when the upstream catalog cannot be fetched or parsed"""
    pass


class ImageProxyError(StorefrontException):
    """Raised when an image cannot be proxied"""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class OrderSubmissionError(StorefrontException):
    """Raised when the order cannot be handed off"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class HostBridgeError(StorefrontException):
    """Raised when the host bridge rejects a call"""
    pass
