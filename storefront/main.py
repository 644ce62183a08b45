"""
FastAPI application for the Telegram Mini-App storefront.
"""
import time
import logging
from typing import Optional
from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware

from storefront.config import Config
from storefront.models import (
    AddItemRequest,
    CartResponse,
    CatalogResponse,
    CheckoutRequest,
    CheckoutResponse,
    DisplayProduct,
)
from storefront.cart_service import CartService
from storefront.catalog_service import CatalogService
from storefront.checkout_service import CheckoutService
from storefront.exceptions import (
    ImageProxyError,
    LimitExceededError,
    OrderSubmissionError,
    ProductNotFoundError,
    RedisConnectionError,
    ValidationError,
)
from storefront.image_proxy import fetch_image, response_headers
from storefront.middleware import RequestLoggingMiddleware
from storefront.pricing import compute_unit_price, initial_selection
from storefront.redis_client import get_redis_client

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Storefront API",
    description="Catalog, cart and checkout for a Telegram Mini-App storefront",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


# Service dependencies (singletons, overridable in tests)
_catalog_service: Optional[CatalogService] = None
_cart_service: Optional[CartService] = None
_checkout_service: Optional[CheckoutService] = None


def get_catalog_service() -> CatalogService:
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service


def get_cart_service() -> CartService:
    global _cart_service
    if _cart_service is None:
        _cart_service = CartService()
    return _cart_service


def get_checkout_service(cart_service: CartService = Depends(get_cart_service)) -> CheckoutService:
    global _checkout_service
    if _checkout_service is None:
        _checkout_service = CheckoutService(cart_service=cart_service)
    return _checkout_service


def require_cart_id(
    cart_id: str = Header(..., alias="X-Cart-ID", description="Cart identifier")
) -> str:
    if not cart_id or not cart_id.strip():
        raise HTTPException(status_code=400, detail="Cart ID is required")
    return cart_id.strip()


# Health check endpoint
@app.get("/health")
def health_check():
    """
    Health check endpoint.
    Always returns HTTP 200 if the application is running.
    Checks Redis connectivity but does not fail if Redis is unavailable.
    """
    redis_status = "healthy"
    redis_latency_ms = None

    try:
        redis_client = get_redis_client()
        ping_start = time.time()
        ping_result = redis_client.ping()
        redis_latency_ms = round((time.time() - ping_start) * 1000, 2)

        if not ping_result:
            redis_status = "unhealthy"
    except RedisConnectionError:
        redis_status = "unhealthy"

    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "service": "storefront-api",
            "redis": {
                "status": redis_status,
                "latency_ms": redis_latency_ms
            },
            "timestamp": time.time()
        }
    )


# Pass-through routes
@app.get("/api/catalog")
def catalog_proxy(catalog_service: CatalogService = Depends(get_catalog_service)):
    """Relay the last good upstream catalog document"""
    return JSONResponse(
        status_code=200,
        content=catalog_service.raw_document(),
        headers={"Cache-Control": "no-store"}
    )


@app.get("/api/img")
def image_proxy(u: Optional[str] = Query(None, description="Absolute image URL")):
    """Relay an image from an allowed host"""
    try:
        content, content_type = fetch_image(u)
    except ImageProxyError as e:
        return Response(content=e.message, status_code=e.status_code, media_type="text/plain")
    return Response(content=content, status_code=200, headers=response_headers(content_type))


# Catalog endpoints
@app.get("/catalog", response_model=CatalogResponse, response_model_exclude_none=True)
def get_catalog(
    category: Optional[str] = Query(None, description="Category name, or 'all'"),
    catalog_service: CatalogService = Depends(get_catalog_service)
):
    """Normalized catalog, optionally filtered by category"""
    return catalog_service.get_catalog(category)


@app.post("/catalog/refresh")
def refresh_catalog(catalog_service: CatalogService = Depends(get_catalog_service)):
    """Fetch the upstream catalog again; the previous one is kept on failure"""
    refreshed = catalog_service.refresh()
    return {
        "refreshed": refreshed,
        "source": catalog_service.source,
        "products": len(catalog_service.get_products())
    }


@app.get("/products/{product_id}", response_model=DisplayProduct, response_model_exclude_none=True)
def get_product(product_id: str, catalog_service: CatalogService = Depends(get_catalog_service)):
    return catalog_service.get_product(product_id)


@app.get("/products/{product_id}/initial-selection")
def get_initial_selection(product_id: str, catalog_service: CatalogService = Depends(get_catalog_service)):
    """Selection an option picker opens with, and the price it yields"""
    product = catalog_service.get_product(product_id)
    selection = initial_selection(product)
    return {
        "productId": product.id,
        "selectedOptions": selection,
        "unitPrice": float(compute_unit_price(product, selection))
    }


# Cart endpoints
@app.get("/cart", response_model=CartResponse)
def get_cart(
    cart_id: str = Depends(require_cart_id),
    cart_service: CartService = Depends(get_cart_service)
):
    """Cart contents; an unknown cart is empty"""
    return cart_service.to_response(cart_id, cart_service.get_cart(cart_id))


@app.post("/cart/items", response_model=CartResponse)
def add_cart_item(
    request: AddItemRequest,
    cart_id: str = Depends(require_cart_id),
    cart_service: CartService = Depends(get_cart_service),
    catalog_service: CatalogService = Depends(get_catalog_service)
):
    """
    Add one unit of a configured product.
    Identical configurations merge into one line.
    """
    product = catalog_service.get_product(request.product_id)
    cart = cart_service.add_item(cart_id, product, request.selected_options)
    return cart_service.to_response(cart_id, cart)


@app.post("/cart/lines/{key:path}/increment", response_model=CartResponse)
def increment_cart_line(
    key: str,
    cart_id: str = Depends(require_cart_id),
    cart_service: CartService = Depends(get_cart_service)
):
    return cart_service.to_response(cart_id, cart_service.increment_line(cart_id, key))


@app.post("/cart/lines/{key:path}/decrement", response_model=CartResponse)
def decrement_cart_line(
    key: str,
    cart_id: str = Depends(require_cart_id),
    cart_service: CartService = Depends(get_cart_service)
):
    return cart_service.to_response(cart_id, cart_service.decrement_line(cart_id, key))


@app.delete("/cart/lines/{key:path}", response_model=CartResponse)
def remove_cart_line(
    key: str,
    cart_id: str = Depends(require_cart_id),
    cart_service: CartService = Depends(get_cart_service)
):
    return cart_service.to_response(cart_id, cart_service.remove_line(cart_id, key))


@app.delete("/cart")
def clear_cart(
    cart_id: str = Depends(require_cart_id),
    cart_service: CartService = Depends(get_cart_service)
):
    cleared = cart_service.clear_cart(cart_id)
    return {"success": True, "cleared": cleared}


@app.post("/checkout/start", response_model=CheckoutResponse)
def start_checkout(
    request: CheckoutRequest,
    user_id: Optional[str] = Header(None, alias="X-User-ID", description="User identifier"),
    checkout_service: CheckoutService = Depends(get_checkout_service)
):
    """
    Start checkout process.
    Hands the order off and clears the cart.
    """
    return checkout_service.start_checkout(
        cart_id=request.cart_id,
        user_id=user_id or request.user_id
    )


# Error handlers
@app.exception_handler(ValidationError)
async def validation_error_handler(request, exc):
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "message": str(exc)}
    )


@app.exception_handler(LimitExceededError)
async def limit_exceeded_handler(request, exc):
    return JSONResponse(
        status_code=400,
        content={"error": "Limit exceeded", "message": str(exc)}
    )


@app.exception_handler(ProductNotFoundError)
async def product_not_found_handler(request, exc):
    return JSONResponse(
        status_code=404,
        content={"error": "Product not found", "message": str(exc)}
    )


@app.exception_handler(OrderSubmissionError)
async def order_submission_handler(request, exc):
    return JSONResponse(
        status_code=502,
        content={"error": "Order failed", "message": str(exc)}
    )


@app.exception_handler(RedisConnectionError)
async def redis_error_handler(request, exc):
    return JSONResponse(
        status_code=503,
        content={"error": "Service unavailable", "message": "Redis connection failed"}
    )


# Generic exception handler for unhandled errors
@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc),
            "type": type(exc).__name__
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Config.APP_PORT)
