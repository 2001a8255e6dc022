"""
Database Schemas for the Textila garment ordering API

Each collection (users, products, orders, tracking) has an input model
here. Fields are snake_case in Python and camelCase on the wire and in
MongoDB, which is what the web client sends and reads back.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    buyer = "buyer"
    manager = "manager"
    admin = "admin"


class UserStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    suspended = "suspended"


class OrderStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class PaymentStatus(str, Enum):
    unpaid = "Unpaid"
    paid = "Paid"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        """Dump to the stored (camelCase) shape, leaving out unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class OpenModel(WireModel):
    """Accepts arbitrary extra fields from the caller and stores them as-is."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class PatchModel(WireModel):
    """Allow-listed partial update; unknown fields are rejected."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    def changes(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True, mode="json")


def _coerce_flag(v):
    if v is None or v == "":
        return False
    return v


# Users
class UserIn(OpenModel):
    email: str = Field(..., min_length=3, description="Email address, unique per user")
    name: Optional[str] = None
    photo_url: Optional[str] = None
    role: Role = Role.buyer

    @field_validator("email")
    @classmethod
    def strip_email(cls, v: str) -> str:
        return v.strip()


class RoleChange(PatchModel):
    role: Role


class SuspendRequest(PatchModel):
    suspend_reason: str = Field(..., min_length=1)


# Products
class ProductIn(OpenModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0, description="Unit price in major currency units")
    available_quantity: Optional[int] = Field(None, ge=0)
    minimum_order_quantity: Optional[int] = Field(None, ge=1)
    images: Optional[List[str]] = None
    demo_video: Optional[str] = None
    payment_options: Optional[List[str]] = None
    created_by: Optional[str] = None
    show_on_home: bool = False

    @field_validator("show_on_home", mode="before")
    @classmethod
    def coerce_show_on_home(cls, v):
        return _coerce_flag(v)


class ProductUpdate(PatchModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    available_quantity: Optional[int] = Field(None, ge=0)
    minimum_order_quantity: Optional[int] = Field(None, ge=1)
    images: Optional[List[str]] = None
    demo_video: Optional[str] = None
    payment_options: Optional[List[str]] = None
    show_on_home: Optional[bool] = None


# Orders
class OrderIn(OpenModel):
    product_id: str
    buyer_email: str
    quantity: int
    order_total: float


class OrderStatusUpdate(PatchModel):
    status: Optional[OrderStatus] = None
    note: Optional[str] = None


# Payments
class CheckoutRequest(WireModel):
    product_id: str
    product_name: str = Field(..., min_length=1)
    price: float = Field(..., gt=0, description="Unit price in major currency units")
    quantity: int = Field(..., ge=1)
    buyer_email: str


class ConfirmPaymentRequest(WireModel):
    session_id: str = Field(..., min_length=1)


# Tracking
class TrackingStepIn(OpenModel):
    stage: Optional[str] = None
    location: Optional[str] = None
    note: Optional[str] = None
