"""
Cart pricing: unit prices for configured products and copy-on-write cart
operations keyed by product and selected options.
"""
import json
from decimal import Decimal
from typing import Callable, List, Mapping, Optional, Union

from storefront.models import (
    Cart,
    CartLine,
    CheckoutItem,
    CheckoutPayload,
    DisplayProduct,
    Selection,
)
from storefront.money import round2


def compute_unit_price(product: DisplayProduct, selected_options: Mapping[str, Union[str, List[str]]]) -> Decimal:
    """
    Effective unit price of a product for a selection.

    Delta choices add to the running price, absolute choices replace it.
    Selections that match no choice contribute nothing.
    """
    price = product.base_price
    for option in product.options:
        selection = selected_options.get(option.name)
        if not selection:
            continue

        if option.kind == "select":
            if not isinstance(selection, str):
                continue
            choice = option.find_choice(selection)
            if choice is None:
                continue
            if choice.is_absolute:
                price = choice.price
            else:
                price += choice.price_delta
        else:
            labels = [selection] if isinstance(selection, str) else selection
            for choice in option.choices:
                if choice.label in labels:
                    price += choice.price_delta

    return round2(price)


def canonical_selection(selected_options: Mapping[str, Union[str, List[str]]]) -> Selection:
    """Sorted keys, sorted toggle labels, empty selections dropped"""
    canonical: Selection = {}
    for name in sorted(selected_options):
        value = selected_options[name]
        if isinstance(value, str):
            if value:
                canonical[name] = value
        elif value:
            canonical[name] = sorted(set(value))
    return canonical


def key_for(product_id: str, selected_options: Mapping[str, Union[str, List[str]]]) -> str:
    """Line key: identical for selections that differ only in ordering"""
    serialized = json.dumps(
        canonical_selection(selected_options),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return f"{product_id}::{serialized}"


def _update_line(cart: Cart, key: str, update: Callable[[CartLine], Optional[CartLine]]) -> Cart:
    if cart.find(key) is None:
        return cart
    lines = []
    for line in cart.lines:
        if line.key == key:
            line = update(line)
            if line is None:
                continue
        lines.append(line)
    return cart.model_copy(update={"lines": tuple(lines)})


def add_or_merge(cart: Cart, product: DisplayProduct, selected_options: Mapping[str, Union[str, List[str]]]) -> Cart:
    """
    Add one unit of a configured product.

    An existing line with the same key gets its quantity bumped and keeps the
    unit price it was first added with.
    """
    selection = canonical_selection(selected_options)
    key = key_for(product.id, selection)

    if cart.find(key) is not None:
        return increment(cart, key)

    line = CartLine(
        key=key,
        product_id=product.id,
        name=product.name,
        unit_price=compute_unit_price(product, selection),
        selected_options=selection,
        quantity=1,
    )
    return cart.model_copy(update={"lines": cart.lines + (line,)})


def increment(cart: Cart, key: str) -> Cart:
    return _update_line(cart, key, lambda line: line.model_copy(update={"quantity": line.quantity + 1}))


def decrement(cart: Cart, key: str) -> Cart:
    """Remove one unit; the line disappears when it reaches zero"""
    def _dec(line: CartLine) -> Optional[CartLine]:
        if line.quantity <= 1:
            return None
        return line.model_copy(update={"quantity": line.quantity - 1})

    return _update_line(cart, key, _dec)


def remove_line(cart: Cart, key: str) -> Cart:
    return _update_line(cart, key, lambda line: None)


def subtract(cart: Cart, ordered: Cart) -> Cart:
    """Remove the quantities of ordered's lines from cart, matching by key"""
    for ordered_line in ordered.lines:
        def _sub(line: CartLine, taken: int = ordered_line.quantity) -> Optional[CartLine]:
            if line.quantity <= taken:
                return None
            return line.model_copy(update={"quantity": line.quantity - taken})

        cart = _update_line(cart, ordered_line.key, _sub)
    return cart


def total(cart: Cart) -> Decimal:
    return round2(sum((line.unit_price * line.quantity for line in cart.lines), Decimal(0)))


def item_count(cart: Cart) -> int:
    return sum(line.quantity for line in cart.lines)


def initial_selection(product: DisplayProduct) -> Selection:
    """
    Selection to open an option picker with: required selects preselect their
    first choice, toggles start empty, optional selects stay unset.
    """
    selection: Selection = {}
    for option in product.options:
        if option.kind == "toggle":
            selection[option.name] = []
        elif option.required and option.choices:
            selection[option.name] = option.choices[0].label
    return selection


def build_checkout_payload(cart: Cart) -> CheckoutPayload:
    """Order hand-off payload derived from the cart lines"""
    return CheckoutPayload(
        total_eur=total(cart),
        items=[
            CheckoutItem(
                id=line.product_id,
                name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                selected_options=line.selected_options,
            )
            for line in cart.lines
        ],
    )
