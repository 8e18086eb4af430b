"""
Cart pricing.

``price_cart`` is a pure function of the cart, catalog, coupons and settings.
Every monetary figure is rounded to 2 decimals with ``round`` as soon as it is
produced; the next step works from the rounded value.
"""
from typing import List, Optional, Tuple

from pydantic import BaseModel

from coupons import find_coupon
from schemas import CartItem, Coupon, CouponType, Product, StoreSettings, Variant


class PricingBreakdown(BaseModel):
    subtotal: float
    discount: float
    delivery: float
    gst: float
    total: float
    coupon: Optional[Coupon] = None

    @property
    def taxable(self) -> float:
        return round(max(0.0, self.subtotal - self.discount), 2)


def resolve_line(products: List[Product], item: CartItem) -> Optional[Tuple[Product, Variant]]:
    product = next((p for p in products if p.id == item.product_id), None)
    if product is None:
        return None
    variant = product.variant(item.variant_id)
    if variant is None:
        return None
    return product, variant


def cart_subtotal(cart: List[CartItem], products: List[Product]) -> float:
    subtotal = 0.0
    for item in cart:
        resolved = resolve_line(products, item)
        # stale lines (product or variant deleted) count as zero
        if resolved:
            subtotal += resolved[1].price * item.qty
    return round(subtotal, 2)


def coupon_discount(coupon: Coupon, subtotal: float) -> float:
    if coupon.type == CouponType.PERCENTAGE:
        return round(subtotal * coupon.value / 100, 2)
    return round(coupon.value, 2)


def price_cart(
    cart: List[CartItem],
    products: List[Product],
    coupons: List[Coupon],
    settings: StoreSettings,
    coupon_code: Optional[str] = None,
) -> PricingBreakdown:
    subtotal = cart_subtotal(cart, products)

    coupon = find_coupon(coupons, coupon_code)
    discount = coupon_discount(coupon, subtotal) if coupon else 0.0

    delivery = 0.0 if subtotal > settings.free_delivery_threshold else float(settings.delivery_charge)
    taxable = round(max(0.0, subtotal - discount), 2)
    gst = round(taxable * settings.gst_percent / 100, 2)
    total = round(max(0.0, taxable + gst + delivery), 2)

    return PricingBreakdown(
        subtotal=subtotal,
        discount=discount,
        delivery=delivery,
        gst=gst,
        total=total,
        coupon=coupon,
    )
