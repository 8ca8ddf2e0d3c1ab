"""
Database Schemas for the storefront

Collections:
- user: customers and admins, with embedded addresses and wishlist refs
- product: catalog entries
- cart: one row per (user, product), denormalized from the catalog
- order: order aggregates with item/address snapshots and a status timeline

Request bodies for the REST surface live at the bottom of this module.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class OrderStatus(str, Enum):
    pending = "Pending"
    ordered = "Ordered"
    packed = "Packed"
    shipped = "Shipped"
    delivered = "Delivered"
    cancelled = "Cancelled"


ORDER_STATUSES = [s.value for s in OrderStatus]


class Address(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, alias="_id")
    name: str
    phone: str
    address: str
    city: str
    pincode: str
    is_default: bool = False


class User(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., description="Full name")
    phone: str = Field(..., description="Phone number, unique")
    email: Optional[EmailStr] = Field(None, description="Email address, unique when present")
    password_hash: str = Field(..., description="bcrypt hash")
    is_admin: bool = False
    addresses: List[dict] = Field(default_factory=list)
    wishlist: List[ObjectId] = Field(default_factory=list, description="Product ids")
    profile_image: str = "/images/default_user.png"
    is_verified: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Product(BaseModel):
    name: str = Field(..., description="Product name, unique")
    category: str
    price: float = Field(..., ge=0, description="Tax-inclusive price")
    original_price: float = 0
    description: str
    full_description: Optional[str] = None
    benefits: List[str] = Field(default_factory=list)
    usage: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)
    size: Optional[str] = None
    images: List[str] = Field(default_factory=list, description="Image URLs")
    in_stock: bool = True
    count_in_stock: int = 0
    sku: Optional[str] = None
    rating: float = 0
    reviews: int = 0
    tags: List[str] = Field(default_factory=list)
    is_featured: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderItem(BaseModel):
    name: str
    qty: int = Field(..., ge=1)
    image: Optional[str] = None
    price: float = Field(..., ge=0)
    product: str = Field(..., description="Product id")


class ShippingAddress(BaseModel):
    full_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None


class PaymentResult(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    update_time: Optional[str] = None
    email_address: Optional[str] = None


# ----------------------- Request bodies -----------------------
class RegisterBody(BaseModel):
    name: str = ""
    phone: str = ""
    password: str = ""
    email: Optional[EmailStr] = None
    firebase_token: Optional[str] = None


class LoginBody(BaseModel):
    phone_or_email: str = ""
    password: str = ""


class ForgotPasswordBody(BaseModel):
    phone_or_email: str


class ResetPasswordBody(BaseModel):
    password: str = Field(..., min_length=1)


class PhoneResetBody(BaseModel):
    phone: str
    firebase_token: str
    password: str = Field(..., min_length=1)


class VerifyEmailBody(BaseModel):
    token: str


class ProfileUpdateBody(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    profile_image: Optional[str] = None
    addresses: Optional[List[Address]] = None


class CartAddBody(BaseModel):
    product_id: str
    quantity: int = 1


class CartQuantityBody(BaseModel):
    quantity: int


class ProductUpdateBody(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = None
    description: Optional[str] = None
    full_description: Optional[str] = None
    benefits: Optional[List[str]] = None
    usage: Optional[str] = None
    ingredients: Optional[List[str]] = None
    size: Optional[str] = None
    images: Optional[List[str]] = None
    in_stock: Optional[bool] = None
    count_in_stock: Optional[int] = None
    sku: Optional[str] = None
    tags: Optional[List[str]] = None
    is_featured: Optional[bool] = None


class OrderCreateBody(BaseModel):
    order_items: List[OrderItem] = Field(default_factory=list)
    shipping_address: ShippingAddress = Field(default_factory=ShippingAddress)
    payment_method: Optional[str] = None
    payment_result: Optional[PaymentResult] = None
    shipping_price: float = Field(0, ge=0)


class OrderStatusBody(BaseModel):
    status: str
    note: Optional[str] = None


class GatewayOrderBody(BaseModel):
    total_price: float = Field(..., gt=0)


class PaymentVerifyBody(BaseModel):
    order_id: str
    payment_id: str
    signature: str
