# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, EmailStr
from typing import List, Literal, Optional
from decimal import Decimal
from datetime import datetime


# =====================================================
# Users
# =====================================================
class UserCreate(BaseModel):
    """Schema dla tworzenia użytkownika."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    role: Literal["user", "admin"] = "user"


class UserRead(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    role: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =====================================================
# Categories
# =====================================================
class CategoryIn(BaseModel):
    name: str = Field(..., min_length=3, max_length=32, description="Nazwa kategorii (unikalna)")
    image: Optional[str] = None
    image_url: Optional[str] = None


class CategoryNameIn(BaseModel):
    name: str = Field(..., min_length=3, max_length=32)


class CategoryImageIn(BaseModel):
    image: str = Field(..., min_length=1)
    image_url: Optional[str] = None


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str
    image: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =====================================================
# Products
# =====================================================
class ProductIn(BaseModel):
    title: str = Field(..., min_length=3, max_length=100)
    description: str = ""
    quantity: int = Field(0, ge=0)
    price: Decimal = Field(..., gt=0)
    price_after_discount: Optional[Decimal] = Field(None, gt=0)
    image_cover: Optional[str] = None
    image_cover_url: Optional[str] = None
    category_id: Optional[int] = None


class ProductUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    price: Optional[Decimal] = Field(None, gt=0)
    price_after_discount: Optional[Decimal] = Field(None, gt=0)
    image_cover: Optional[str] = None
    image_cover_url: Optional[str] = None
    category_id: Optional[int] = None


class ProductOut(BaseModel):
    id: int
    title: str
    slug: str
    description: str
    quantity: int
    sold: int
    price: Decimal
    price_after_discount: Optional[Decimal] = None
    image_cover: Optional[str] = None
    image_cover_url: Optional[str] = None
    category_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# =====================================================
# Carts
# =====================================================
class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    quantity: int = Field(1, gt=0, description="Ilość produktu (musi być > 0)")
    color: Optional[str] = None


class QuantityIn(BaseModel):
    quantity: int = Field(..., gt=0)


class CreateCartIn(BaseModel):
    user_id: int = Field(..., gt=0, description="ID użytkownika (musi być > 0)")


class CartItemOut(BaseModel):
    product_id: int
    quantity: int
    price: Decimal
    color: Optional[str] = None


class CartOut(BaseModel):
    cart_id: int
    user_id: int
    items: List[CartItemOut]
    total_cart_price: Decimal
    total_price_after_discount: Optional[Decimal] = None
    version: int


# =====================================================
# Orders
# =====================================================
class ShippingAddress(BaseModel):
    details: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None


class CashOrderIn(BaseModel):
    shipping_address: Optional[ShippingAddress] = None


class CheckoutSessionIn(BaseModel):
    shipping_address: Optional[ShippingAddress] = None


class CheckoutSessionOut(BaseModel):
    status: str
    url: str
    session_id: str


class OrderItemOut(BaseModel):
    product_id: int
    quantity: int
    price: Decimal
    color: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    """Schema dla zamówienia (response)."""

    id: int
    user_id: int
    cart_id: Optional[int] = None
    items: List[OrderItemOut]
    shipping_address: Optional[dict] = None
    tax_price: Decimal
    shipping_price: Decimal
    total_order_price: Decimal
    payment_method_type: str
    is_paid: bool
    paid_at: Optional[datetime] = None
    is_delivered: bool
    delivered_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
