"""
Coupon accounting.

Codes are upper-cased by the Coupon model itself; lookups compare
exactly. ``max_uses`` and ``is_one_time`` are stored for the admin console but
nothing here refuses a coupon because of them, and cancelling an order never
gives a use back.
"""
from typing import List, Optional

from schemas import Coupon


def normalize_code(code: str) -> str:
    return code.strip().upper()


def is_applicable(coupon: Coupon, code: Optional[str]) -> bool:
    return bool(code) and coupon.active and coupon.code == code


def find_coupon(coupons: List[Coupon], code: Optional[str]) -> Optional[Coupon]:
    if not code:
        return None
    return next((c for c in coupons if is_applicable(c, code)), None)


def record_redemption(coupons: List[Coupon], coupon_id: str) -> List[Coupon]:
    """Return a new coupon list with one more use on ``coupon_id``."""
    return [
        c.model_copy(update={"used_count": c.used_count + 1}) if c.id == coupon_id else c
        for c in coupons
    ]
