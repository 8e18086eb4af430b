"""
Starting data used when neither the local cache nor the remote store has a
collection yet.
"""
import os
from typing import List

from schemas import Banner, Coupon, CouponType, Product, StoreSettings, Variant

INITIAL_SETTINGS = StoreSettings(
    gst_percent=5,
    delivery_charge=40,
    free_delivery_threshold=500,
    merchant_vpa=os.getenv("MERCHANT_VPA", "ahaamasala@upi"),
    merchant_name=os.getenv("MERCHANT_NAME", "Ahaa! Masala"),
    admin_username=os.getenv("ADMIN_USERNAME", "admin"),
    admin_password=os.getenv("ADMIN_PASSWORD", "admin123"),
    allow_cod=True,
)

INITIAL_PRODUCTS = [
    Product(
        id="p1",
        name="Turmeric Powder",
        name_te="పసుపు",
        description="Stone-ground turmeric from Nizamabad.",
        variants=[
            Variant(id="v1", weight="100g", price=50, stock=100),
            Variant(id="v2", weight="250g", price=110, stock=100),
        ],
    ),
    Product(
        id="p2",
        name="Red Chilli Powder",
        name_te="కారం",
        description="Guntur chillies, sun dried and ground.",
        variants=[
            Variant(id="v1", weight="100g", price=60, stock=100),
            Variant(id="v2", weight="500g", price=260, stock=50),
        ],
    ),
    Product(
        id="p3",
        name="Garam Masala",
        name_te="గరం మసాలా",
        description="House blend of whole spices.",
        variants=[Variant(id="v1", weight="50g", price=45, stock=100)],
    ),
]

INITIAL_COUPONS = [
    Coupon(id="c1", code="WELCOME50", type=CouponType.FIXED, value=50, max_uses=100),
]

INITIAL_BANNERS: List[Banner] = []
