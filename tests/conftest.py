import copy

import pytest

from coordinator import StoreCoordinator
from local_cache import LocalCache
from remote import Reconciler
from schemas import Coupon, CouponType, Product, StoreSettings, UserDetails, Variant


class FakeRemote(Reconciler):
    """In-memory stand-in for the store API."""

    def __init__(self, data=None, online=True):
        self.data = copy.deepcopy(data or {})
        self.online = online
        self.pushed = []
        self.pulled = []

    async def pull(self, name, fallback=None):
        self.pulled.append(name)
        if not self.online or self.data.get(name) is None:
            return fallback
        return copy.deepcopy(self.data[name])

    async def push(self, name, value):
        self.pushed.append((name, copy.deepcopy(value)))
        if not self.online:
            return False
        self.data[name] = copy.deepcopy(value)
        return True

    def pushes_of(self, name):
        return [value for pushed_name, value in self.pushed if pushed_name == name]


@pytest.fixture
def settings():
    return StoreSettings(
        gst_percent=5,
        delivery_charge=40,
        free_delivery_threshold=500,
        merchant_vpa="shop@upi",
        merchant_name="Test Masala",
        admin_username="admin",
        admin_password="secret",
        allow_cod=True,
    )


@pytest.fixture
def products():
    return [
        Product(
            id="p1",
            name="Turmeric",
            variants=[
                Variant(id="v1", weight="100g", price=50, stock=10),
                Variant(id="v2", weight="250g", price=110, stock=10),
            ],
        ),
        Product(id="p2", name="Chilli", variants=[Variant(id="v1", weight="100g", price=60, stock=5)]),
    ]


@pytest.fixture
def coupons():
    return [
        Coupon(id="c1", code="WELCOME50", type=CouponType.FIXED, value=50, max_uses=100),
        Coupon(id="c2", code="TENOFF", type=CouponType.PERCENTAGE, value=10, max_uses=5),
        Coupon(id="c3", code="OLD", type=CouponType.FIXED, value=20, active=False),
    ]


@pytest.fixture
def customer():
    return UserDetails(
        name="Lakshmi",
        mobile="9876543210",
        email="lakshmi@example.com",
        house_no="4-12",
        address="Main Road",
        city="Warangal",
        mandal="Hanamkonda",
        district="Warangal",
        pincode="506001",
        state="Telangana",
    )


@pytest.fixture
def cache(tmp_path):
    return LocalCache(str(tmp_path / "cache"))


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def make_store(cache, remote, products, coupons, settings):
    """Coordinator seeded (through the cache) with the test catalog."""

    def factory(seed=True, **kwargs):
        if seed:
            cache.set("products", _json("products", products))
            cache.set("coupons", _json("coupons", coupons))
            cache.set("settings", _json("settings", settings))
            cache.set("orders", b"[]")
            cache.set("banners", b"[]")
            cache.set("cart", b"[]")
        kwargs.setdefault("sync_interval", 0.01)
        kwargs.setdefault("observer_interval", 0.01)
        kwargs.setdefault("remote", remote)
        return StoreCoordinator(cache=cache, **kwargs)

    return factory


def _json(name, value):
    import json
    return json.dumps(StoreCoordinator.encode(name, value)).encode("utf-8")
