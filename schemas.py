"""
Schemas for the Storefront

Each Pydantic model describes one entry of a named collection. The collection
names are fixed (see COLLECTION_NAMES) and every collection is stored whole,
both in the local cache and on the remote store.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Literal, Callable
from datetime import datetime
from enum import Enum

from errors import PreconditionError

COLLECTION_NAMES = ("products", "orders", "banners", "settings", "coupons", "cart")


class Language(str, Enum):
    EN = "EN"
    TE = "TE"


class CouponType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAYMENT_UPLOADED = "PAYMENT_UPLOADED"
    CONFIRMED = "CONFIRMED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


PaymentMethod = Literal["COD", "UPI"]


class Variant(BaseModel):
    id: str
    weight: str = Field(..., description="Pack size label, e.g. 100g")
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)


class Product(BaseModel):
    id: str
    name: str
    name_te: Optional[str] = Field(None, description="Telugu name")
    description: str = ""
    description_te: Optional[str] = None
    image: str = Field("", description="Opaque image reference (data URL or link)")
    variants: List[Variant] = Field(..., min_length=1)
    active: bool = True

    @field_validator("variants")
    @classmethod
    def unique_variant_ids(cls, variants: List[Variant]) -> List[Variant]:
        ids = [v.id for v in variants]
        if len(ids) != len(set(ids)):
            raise ValueError("variant ids must be unique within a product")
        return variants

    def variant(self, variant_id: str) -> Optional[Variant]:
        return next((v for v in self.variants if v.id == variant_id), None)

    def display_name(self, language: Language = Language.EN) -> str:
        if language == Language.TE and self.name_te:
            return self.name_te
        return self.name


class CartItem(BaseModel):
    product_id: str
    variant_id: str
    qty: int = Field(..., gt=0)


class Coupon(BaseModel):
    id: str
    code: str
    type: CouponType
    value: float = Field(..., ge=0)
    max_uses: int = Field(0, ge=0)
    used_count: int = Field(0, ge=0)
    active: bool = True
    is_one_time: bool = False

    @field_validator("code")
    @classmethod
    def upper_code(cls, code: str) -> str:
        return code.strip().upper()


class Banner(BaseModel):
    id: str
    image: str
    alt: str = ""
    order: int = 0
    active: bool = True


class StoreSettings(BaseModel):
    """Singleton record; every field is required so that an empty ``{}`` never
    decodes into a silently reset store."""
    gst_percent: float = Field(..., ge=0)
    delivery_charge: float = Field(..., ge=0)
    free_delivery_threshold: float = Field(..., ge=0)
    merchant_vpa: str
    merchant_name: str
    admin_username: str
    admin_password: str
    allow_cod: bool


class UserDetails(BaseModel):
    name: str
    mobile: str
    email: str = ""
    house_no: str
    address: str
    landmark: str = ""
    city: str
    mandal: str
    district: str
    pincode: str
    state: str = "Telangana"


class OrderItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    product_name: str
    variant: str
    price: float = Field(..., ge=0)
    qty: int = Field(..., gt=0)


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    date: datetime
    items: List[OrderItem]
    subtotal: float = Field(..., ge=0)
    gst: float = Field(..., ge=0)
    delivery_charge: float = Field(..., ge=0)
    discount: float = Field(..., ge=0)
    total: float = Field(..., ge=0)
    customer: UserDetails
    payment_method: PaymentMethod
    status: OrderStatus = OrderStatus.PENDING
    payment_screenshot: Optional[str] = None


# ---------------------- Drafts ----------------------
# Partial form state for the admin console. Nothing is stored until build()
# turns a draft into a complete entity.

class ProductDraft(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    name_te: Optional[str] = None
    description: str = ""
    description_te: Optional[str] = None
    image: str = ""
    variants: List[Variant] = []
    active: bool = True

    def build(self, new_id: Callable[[], str]) -> Product:
        if not (self.name or "").strip() or not self.variants:
            raise PreconditionError("Name and at least one variant are required.")
        if len({v.id for v in self.variants}) != len(self.variants):
            raise PreconditionError("Each variant needs its own id.")
        data = self.model_dump()
        data["id"] = self.id or new_id()
        data["name"] = self.name.strip()
        return Product(**data)


class CouponDraft(BaseModel):
    code: Optional[str] = None
    type: CouponType = CouponType.PERCENTAGE
    value: float = 0
    max_uses: int = 100
    is_one_time: bool = False

    def build(self, new_id: Callable[[], str]) -> Coupon:
        code = (self.code or "").strip().upper()
        if not code:
            raise PreconditionError("Coupon code is required.")
        if self.value < 0 or self.max_uses < 0:
            raise PreconditionError("Coupon value and max uses cannot be negative.")
        return Coupon(
            id=new_id(),
            code=code,
            type=self.type,
            value=self.value,
            max_uses=self.max_uses,
            used_count=0,
            active=True,
            is_one_time=self.is_one_time,
        )


class BannerDraft(BaseModel):
    image: Optional[str] = None
    alt: str = ""
    order: int = 0

    def build(self, new_id: Callable[[], str]) -> Banner:
        if not self.image:
            raise PreconditionError("Banner image is required.")
        return Banner(id=new_id(), image=self.image, alt=self.alt, order=self.order, active=True)
