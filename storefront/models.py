"""
Pydantic models for the raw catalog, display products, cart and checkout.
"""
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
    field_validator,
    model_validator,
)

from storefront.money import to_price

# Prices travel as JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

Selection = Dict[str, Union[str, List[str]]]


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    return None


class StorefrontModel(BaseModel):
    """Base model: snake_case attributes, camelCase JSON"""
    model_config = ConfigDict(populate_by_name=True)


# Catalog option shapes

class Choice(StorefrontModel):
    """One choice of an option, priced either as a delta or as an absolute price"""
    label: str
    price_delta: Optional[Money] = Field(None, alias="priceDelta")
    price: Optional[Money] = None

    @field_validator("label", mode="before")
    @classmethod
    def coerce_label(cls, v: Any) -> Any:
        return _as_text(v) if v is not None else v

    @field_validator("price_delta", "price", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Optional[Decimal]:
        if v is None:
            return None
        amount = to_price(v)
        if amount is None:
            raise ValueError(f"Invalid amount: {v!r}")
        return amount

    @model_validator(mode="after")
    def check_single_mode(self) -> "Choice":
        if (self.price_delta is None) == (self.price is None):
            raise ValueError("Choice needs exactly one of priceDelta or price")
        return self

    @property
    def is_absolute(self) -> bool:
        return self.price is not None


class Option(StorefrontModel):
    """User-facing option attached to a product"""
    name: str
    label: str
    kind: Literal["select", "toggle"] = "select"
    required: bool = False
    choices: List[Choice] = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def default_label(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("label") and data.get("name"):
            data = {**data, "label": data["name"]}
        return data

    @model_validator(mode="after")
    def check_modes(self) -> "Option":
        modes = {choice.is_absolute for choice in self.choices}
        if len(modes) > 1:
            raise ValueError(f"Option {self.name} mixes priceDelta and price choices")
        if self.kind == "toggle" and True in modes:
            raise ValueError(f"Toggle option {self.name} must use priceDelta choices")
        return self

    def find_choice(self, label: str) -> Optional[Choice]:
        for choice in self.choices:
            if choice.label == label:
                return choice
        return None


# Raw upstream catalog

class RawCategory(StorefrontModel):
    id: Optional[str] = None
    name: str
    slug: Optional[str] = None

    @field_validator("id", "name", "slug", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return _as_text(v) if v is not None else v

    @property
    def key(self) -> str:
        """Identity of the category: its id, or its name when it has none"""
        return self.id if self.id is not None else self.name


class RawVariant(StorefrontModel):
    id: Optional[str] = None
    label: Optional[str] = None
    weight: Optional[str] = None
    price: Optional[Decimal] = None
    sale_price: Optional[Decimal] = Field(None, alias="salePrice")
    active: Optional[bool] = None

    @field_validator("id", "label", "weight", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        return _as_text(v)

    @field_validator("price", "sale_price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Optional[Decimal]:
        return to_price(v)

    @field_validator("active", mode="before")
    @classmethod
    def coerce_active(cls, v: Any) -> Optional[bool]:
        # only a literal false deactivates
        return v if isinstance(v, bool) else None

    @property
    def effective_price(self) -> Optional[Decimal]:
        return self.sale_price if self.sale_price is not None else self.price


class RawProduct(StorefrontModel):
    id: str
    title: str
    category: Optional[str] = None
    category_id: Optional[str] = Field(None, alias="categoryId")
    price: Optional[Decimal] = None
    sale_price: Optional[Decimal] = Field(None, alias="salePrice")
    weight: Optional[str] = None
    image: Optional[str] = None
    short_desc: Optional[str] = Field(None, alias="shortDesc")
    long_desc: Optional[str] = Field(None, alias="longDesc")
    link: Optional[str] = None
    currency: Optional[str] = None
    active: Optional[bool] = None
    options: List[Option] = Field(default_factory=list)
    variants: List[RawVariant] = Field(default_factory=list)

    @field_validator("id", "title", mode="before")
    @classmethod
    def coerce_identity(cls, v: Any) -> Any:
        return _as_text(v) if v is not None else v

    @field_validator(
        "category_id", "weight", "image", "short_desc", "long_desc", "link", "currency",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        return _as_text(v)

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v: Any) -> Optional[str]:
        if isinstance(v, str) and v.strip():
            return v
        return None

    @field_validator("price", "sale_price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Optional[Decimal]:
        return to_price(v)

    @field_validator("active", mode="before")
    @classmethod
    def coerce_active(cls, v: Any) -> Optional[bool]:
        return v if isinstance(v, bool) else None

    @field_validator("variants", mode="before")
    @classmethod
    def coerce_variants(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        return [entry for entry in v if isinstance(entry, dict)]

    @field_validator("options", mode="before")
    @classmethod
    def coerce_options(cls, v: Any) -> List[Any]:
        # all or nothing: a malformed entry empties the field
        if not isinstance(v, list):
            return []
        try:
            return [Option.model_validate(entry) for entry in v]
        except ValidationError:
            return []


class RawCatalog(StorefrontModel):
    categories: List[RawCategory] = Field(default_factory=list)
    products: List[RawProduct] = Field(default_factory=list)


# Normalized, UI-facing shapes

class DisplayProduct(StorefrontModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    name: str
    photo: str = ""
    category: str
    base_price: Money = Field(..., alias="basePrice")
    weight: str = ""
    description: str = ""
    currency: str = "EUR"
    link: str = ""
    options: List[Option] = Field(default_factory=list)

    def get_option(self, name: str) -> Optional[Option]:
        for option in self.options:
            if option.name == name:
                return option
        return None


# Cart

class CartLine(StorefrontModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    key: str
    product_id: str = Field(..., alias="productId")
    name: str
    unit_price: Money = Field(..., alias="unitPrice")
    selected_options: Selection = Field(default_factory=dict, alias="selectedOptions")
    quantity: int = Field(1, ge=1)


class Cart(StorefrontModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    lines: Tuple[CartLine, ...] = ()

    def find(self, key: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.key == key:
                return line
        return None


# Checkout hand-off

class CheckoutItem(StorefrontModel):
    id: str
    name: str
    quantity: int
    unit_price: Money = Field(..., alias="unitPrice")
    selected_options: Selection = Field(default_factory=dict, alias="selectedOptions")


class CheckoutPayload(StorefrontModel):
    total_eur: Money = Field(..., alias="totalEur")
    items: List[CheckoutItem] = Field(default_factory=list)


# API requests and responses

class CatalogResponse(StorefrontModel):
    """Response model for the normalized catalog"""
    categories: List[str] = Field(default_factory=list, description="Category names in display order")
    products: List[DisplayProduct] = Field(default_factory=list, description="Products to list")


class AddItemRequest(StorefrontModel):
    """Request model for adding a configured product to the cart"""
    product_id: str = Field(..., alias="productId", description="Product identifier")
    selected_options: Selection = Field(
        default_factory=dict, alias="selectedOptions", description="Selected option labels"
    )


class CartResponse(StorefrontModel):
    """Response model for cart retrieval"""
    cart_id: str = Field(..., description="Cart identifier")
    lines: List[CartLine] = Field(default_factory=list, description="Cart lines in insertion order")
    total_items: int = Field(0, description="Total number of items")
    total_price: Money = Field(Decimal("0.00"), description="Total cart price")


class CheckoutRequest(StorefrontModel):
    """Request model for checkout"""
    cart_id: str = Field(..., description="Cart identifier")
    user_id: Optional[str] = Field(None, description="User identifier")


class CheckoutResponse(StorefrontModel):
    """Response model for checkout"""
    order_id: str = Field(..., description="Order identifier")
    cart_id: str = Field(..., description="Cart identifier that was checked out")
    total: Money = Field(..., description="Order total")
    items: List[CheckoutItem] = Field(..., description="Ordered items")
    message: str = Field(..., description="Checkout status message")
