"""
Checkout service: builds the order hand-off payload from a cart and submits it.
"""
import uuid
import logging
from typing import Any, Dict, Optional

import requests

from storefront.cart_service import CartService
from storefront.config import Config
from storefront.exceptions import HostBridgeError, OrderSubmissionError, ValidationError
from storefront.host_bridge import HostBridge, get_host_bridge
from storefront.middleware import hash_identifier
from storefront.models import CheckoutResponse
from storefront.pricing import build_checkout_payload

logger = logging.getLogger(__name__)


class CheckoutService:
    """Service for checkout operations"""

    def __init__(
        self,
        cart_service: Optional[CartService] = None,
        host_bridge: Optional[HostBridge] = None,
        session: Optional[requests.Session] = None,
    ):
        self.cart_service = cart_service or CartService()
        self.host_bridge = host_bridge if host_bridge is not None else get_host_bridge()
        self.session = session or requests.Session()

    def start_checkout(self, cart_id: str, user_id: Optional[str] = None) -> CheckoutResponse:
        """
        Start checkout process:
        1. Get cart contents
        2. Build the hand-off payload
        3. Submit it to the order endpoint, or through the host bridge
        4. Take the ordered lines out of the cart once the order was accepted

        The cart is kept when submission fails; lines added while the order
        was being submitted stay in the cart.

        Args:
            cart_id: Cart identifier
            user_id: User identifier (optional)

        Returns:
            CheckoutResponse with order details
        """
        cart = self.cart_service.get_cart(cart_id)
        if not cart.lines:
            raise ValidationError("Cannot checkout empty cart")

        payload = build_checkout_payload(cart)
        body = payload.model_dump(mode="json", by_alias=True)

        order_id = self._submit(body, user_id)

        logger.info(
            f"Order submitted: {order_id}, Total: {payload.total_eur}",
            extra={
                "order_id": order_id,
                "hashed_cart_id": hash_identifier(cart_id),
                "line_count": len(payload.items)
            }
        )

        self.cart_service.remove_ordered(cart_id, cart)

        return CheckoutResponse(
            order_id=order_id,
            cart_id=cart_id,
            total=payload.total_eur,
            items=payload.items,
            message="Order placed successfully. Ordered items have been removed from the cart."
        )

    def _submit(self, body: Dict[str, Any], user_id: Optional[str]) -> str:
        if Config.ORDER_ENDPOINT_URL:
            return self._post_order(body, user_id)

        if self.host_bridge is not None:
            try:
                self.host_bridge.send_data(body)
            except HostBridgeError as e:
                logger.error(f"Host bridge rejected order: {e}")
                raise OrderSubmissionError(f"Order could not be sent: {e}") from e
            return str(uuid.uuid4())

        raise OrderSubmissionError("No order endpoint or host bridge configured")

    def _post_order(self, body: Dict[str, Any], user_id: Optional[str]) -> str:
        headers = {"X-User-ID": user_id} if user_id else {}
        try:
            resp = self.session.post(
                Config.ORDER_ENDPOINT_URL,
                json=body,
                headers=headers,
                timeout=Config.ORDER_TIMEOUT_SECONDS,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Order endpoint unreachable: {e}")
            raise OrderSubmissionError(f"Order endpoint unreachable: {e}") from e

        if not resp.ok:
            logger.error(f"Order endpoint returned {resp.status_code}")
            raise OrderSubmissionError(
                f"Order endpoint returned {resp.status_code}", status_code=resp.status_code
            )

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if isinstance(data, dict):
            order_id = data.get("orderId") or data.get("id")
            if order_id:
                return str(order_id)
        return str(uuid.uuid4())
