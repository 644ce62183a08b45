"""
Cart service for managing per-session carts stored in Redis.
"""
import json
import logging
from typing import List, Mapping, Optional, Union

from pydantic import ValidationError as ModelValidationError

from storefront import pricing
from storefront.config import Config
from storefront.exceptions import LimitExceededError, ValidationError
from storefront.middleware import hash_identifier
from storefront.models import Cart, CartResponse, DisplayProduct, Selection
from storefront.redis_client import RedisClient, get_redis_client

logger = logging.getLogger(__name__)


def validate_selection(product: DisplayProduct, selected_options: Mapping[str, Union[str, List[str]]]) -> Selection:
    """
    Complete a user selection with the initial defaults and check that every
    selected label exists on the product.

    Raises:
        ValidationError: Unknown option, unknown label or missing required choice
    """
    selection: Selection = pricing.initial_selection(product)

    for name, value in selected_options.items():
        option = product.get_option(name)
        if option is None:
            raise ValidationError(f"Unknown option '{name}' for product {product.id}")

        if option.kind == "select":
            if not isinstance(value, str):
                raise ValidationError(f"Option '{name}' takes a single choice")
            if value and option.find_choice(value) is None:
                raise ValidationError(f"Unknown choice '{value}' for option '{name}'")
            selection[name] = value
        else:
            labels = [value] if isinstance(value, str) else list(value)
            for label in labels:
                if option.find_choice(label) is None:
                    raise ValidationError(f"Unknown choice '{label}' for option '{name}'")
            selection[name] = labels

    for option in product.options:
        if option.required and option.kind == "select" and not selection.get(option.name):
            raise ValidationError(f"Option '{option.name}' is required")

    return selection


class CartService:
    """Service for cart operations"""

    def __init__(self, redis_client: Optional[RedisClient] = None):
        self.redis = redis_client or get_redis_client()

    def _get_cart_key(self, cart_id: str) -> str:
        """Generate Redis key for cart"""
        return f"cart:{cart_id}"

    @staticmethod
    def _load(raw: Optional[str]) -> Cart:
        if not raw:
            return Cart()
        try:
            return Cart.model_validate(json.loads(raw))
        except (ValueError, ModelValidationError) as e:
            logger.warning(f"Discarding unreadable cart: {e}")
            return Cart()

    @staticmethod
    def _dump(cart: Cart) -> Optional[str]:
        if not cart.lines:
            return None
        return json.dumps(cart.model_dump(by_alias=True), default=str)

    def _mutate(self, cart_id: str, change) -> Cart:
        """Apply change(cart) -> cart as one atomic update of the stored cart"""
        def _apply(raw: Optional[str]) -> Optional[str]:
            return self._dump(change(self._load(raw)))

        written = self.redis.update(self._get_cart_key(cart_id), _apply, ttl=Config.CART_TTL_SECONDS)
        return self._load(written)

    @staticmethod
    def _check_limits(cart: Cart, key: str) -> None:
        if len(cart.lines) > Config.MAX_ITEMS_PER_CART:
            raise LimitExceededError(f"Cart exceeds maximum items {Config.MAX_ITEMS_PER_CART}")
        line = cart.find(key)
        if line is not None and line.quantity > Config.MAX_QUANTITY_PER_ITEM:
            raise LimitExceededError(
                f"Quantity {line.quantity} exceeds maximum {Config.MAX_QUANTITY_PER_ITEM}"
            )

    def add_item(
        self,
        cart_id: str,
        product: DisplayProduct,
        selected_options: Mapping[str, Union[str, List[str]]],
    ) -> Cart:
        """
        Add one unit of a configured product, merging with an identical line.

        Returns:
            The updated cart
        """
        selection = validate_selection(product, selected_options)
        key = pricing.key_for(product.id, selection)

        def _add(cart: Cart) -> Cart:
            updated = pricing.add_or_merge(cart, product, selection)
            self._check_limits(updated, key)
            return updated

        cart = self._mutate(cart_id, _add)
        logger.info(
            f"Added {product.id} to cart",
            extra={"hashed_cart_id": hash_identifier(cart_id), "line_key": key}
        )
        return cart

    def increment_line(self, cart_id: str, key: str) -> Cart:
        def _inc(cart: Cart) -> Cart:
            updated = pricing.increment(cart, key)
            self._check_limits(updated, key)
            return updated

        return self._mutate(cart_id, _inc)

    def decrement_line(self, cart_id: str, key: str) -> Cart:
        """Remove one unit; unknown keys leave the cart unchanged"""
        return self._mutate(cart_id, lambda cart: pricing.decrement(cart, key))

    def remove_line(self, cart_id: str, key: str) -> Cart:
        return self._mutate(cart_id, lambda cart: pricing.remove_line(cart, key))

    def remove_ordered(self, cart_id: str, ordered: Cart) -> Cart:
        """Take an ordered snapshot out of the stored cart, keeping later additions"""
        return self._mutate(cart_id, lambda cart: pricing.subtract(cart, ordered))

    def get_cart(self, cart_id: str) -> Cart:
        """Get cart contents; a missing cart is empty"""
        return self._load(self.redis.get(self._get_cart_key(cart_id)))

    def clear_cart(self, cart_id: str) -> bool:
        """Clear all items from cart"""
        deleted = self.redis.delete(self._get_cart_key(cart_id))
        return deleted > 0

    @staticmethod
    def to_response(cart_id: str, cart: Cart) -> CartResponse:
        return CartResponse(
            cart_id=cart_id,
            lines=list(cart.lines),
            total_items=pricing.item_count(cart),
            total_price=pricing.total(cart),
        )
