"""
Database Schemas

Pydantic models for the store. Each stored model maps to a MongoDB collection
whose name is the lowercase class name:
- User -> "user" collection
- Product -> "product" collection
- Cart -> "cart", Wishlist -> "wishlist", Order -> "order", Review -> "review"

Fields are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Users

class User(ApiModel):
    """
    Users collection schema
    Collection name: "user"
    """
    id: Optional[str] = None
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, stored lower-cased")
    password_hash: str = Field(..., description="BCrypt hashed password")
    role: Literal["user", "admin"] = "user"
    addresses: List["Address"] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class PublicUser(ApiModel):
    id: str
    name: str
    email: EmailStr
    role: Literal["user", "admin"]
    addresses: List["Address"] = Field(default_factory=list)


class RegisterInput(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginInput(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: PublicUser


# Products

class Color(ApiModel):
    name: str
    code: str


class ProductIn(ApiModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    price: int = Field(..., ge=0, description="Price in cents")
    original_price: Optional[int] = Field(None, ge=0, description="Pre-sale price in cents")
    category: str
    sub_category: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)
    colors: List[Color] = Field(default_factory=list)
    inventory: int = Field(0, ge=0)
    featured: bool = False
    new_arrival: bool = False
    on_sale: bool = False


class ProductUpdate(ApiModel):
    """Partial product edit. Only fields the client sends are applied; ``originalPrice``
    and ``subCategory`` may be cleared with null, the rest may not."""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    original_price: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    sub_category: Optional[str] = None
    images: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    colors: Optional[List[Color]] = None
    inventory: Optional[int] = Field(None, ge=0)
    featured: Optional[bool] = None
    new_arrival: Optional[bool] = None
    on_sale: Optional[bool] = None

    @field_validator("title", "description", "price", "category", "images", "sizes", "colors", "inventory",
                     "featured", "new_arrival", "on_sale")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class Product(ProductIn):
    """
    Products collection schema
    Collection name: "product"

    ``rating`` and ``review_count`` are only written by the review aggregator.
    """
    id: Optional[str] = None
    rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)

    @computed_field(alias="discountPercent")
    @property
    def discount_percent(self) -> Optional[int]:
        if not self.original_price or self.original_price <= self.price:
            return None
        return round_half_up(100 - self.price / self.original_price * 100)

    @computed_field(alias="ratingDisplay")
    @property
    def rating_display(self) -> int:
        return round_half_up(self.rating)


# Cart and wishlist

class CartItem(ApiModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    size: Optional[str] = None
    color: Optional[str] = None

    def line_key(self):
        return (self.product_id, self.size, self.color)


class Cart(ApiModel):
    """
    Carts collection schema
    Collection name: "cart" (one per user, created on first mutation)
    """
    id: Optional[str] = None
    user_id: str
    items: List[CartItem] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)


class CartItemsIn(ApiModel):
    items: List[CartItem]


class Wishlist(ApiModel):
    """
    Wishlists collection schema
    Collection name: "wishlist"
    """
    id: Optional[str] = None
    user_id: str
    product_ids: List[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)


class WishlistIn(ApiModel):
    product_ids: List[str]


class WishlistToggle(ApiModel):
    product_id: str


# Orders

class Address(ApiModel):
    full_name: str = Field(..., min_length=1)
    street_address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class OrderStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class OrderItem(ApiModel):
    """Snapshot of a product line at purchase time."""
    product_id: str
    quantity: int = Field(..., ge=1)
    size: Optional[str] = None
    color: Optional[str] = None
    price: int = Field(..., ge=0)
    title: str
    image: Optional[str] = None


class Order(ApiModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    id: Optional[str] = None
    user_id: str
    items: List[OrderItem]
    subtotal: int = Field(..., ge=0)
    shipping_fee: int = Field(..., ge=0)
    total_amount: int = Field(..., ge=0)
    shipping_address: Address
    status: OrderStatus = OrderStatus.pending
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class PlaceOrderIn(ApiModel):
    shipping_address: Address


class StatusChange(ApiModel):
    status: OrderStatus


# Reviews

class Review(ApiModel):
    """
    Reviews collection schema
    Collection name: "review"
    """
    id: Optional[str] = None
    user_id: str
    product_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    created_at: datetime = Field(default_factory=utcnow)


class ReviewIn(ApiModel):
    product_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


# Trend analysis and recommendations

class TrendRecommendations(ApiModel):
    for_users: str
    for_inventory: str


class TrendAnalysis(ApiModel):
    trending_categories: List[str]
    trending_colors: List[str]
    trending_styles: List[str]
    consumer_insights: str
    recommendations: TrendRecommendations


class ProductRecommendation(ApiModel):
    product_id: str
    title: str
    reason: str
    score: int = Field(..., ge=0, le=100)


# Virtual try-on

class TryOnIn(ApiModel):
    product_id: Optional[str] = None
    image_base64: Optional[str] = None


class TryOnProduct(ApiModel):
    title: str
    image: str
    category: str


class TryOnResult(ApiModel):
    success: bool = True
    message: str = "Virtual try-on processed successfully"
    product_id: str
    image_url: str
    try_on_id: str
    product: TryOnProduct


User.model_rebuild()
PublicUser.model_rebuild()
