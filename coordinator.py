"""
Store state coordinator.

One StoreCoordinator per running app owns the in-memory copy of every
collection. All changes go through its actions, and each action follows the
same path:

    new value -> memory -> local cache -> push to the server (not awaited)

Reads are served from memory. Memory is seeded from the local cache when the
coordinator is built, refined by a pull of every collection on start(), then
by a pull of the collections other sessions edit every SYNC_INTERVAL seconds.
Changes made by other processes on this device arrive through the
cross-context observer and replace memory as-is.

Merging a pulled value: for products, an empty remote list never replaces a
non-empty local catalog; the local catalog is pushed back instead. Everything
else is adopted when it differs from what we hold.
"""
import asyncio
import inspect
import json
import logging
import os
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import TypeAdapter, ValidationError

from coupons import normalize_code, record_redemption
from defaults import INITIAL_BANNERS, INITIAL_COUPONS, INITIAL_PRODUCTS, INITIAL_SETTINGS
from errors import PreconditionError
from local_cache import LocalCache
from observer import CrossContextObserver
from orders import build_order, find_order, remove_payment_proof, search_orders, set_status, time_id
from pricing import PricingBreakdown, price_cart
from remote import Reconciler, RemoteClient
from schemas import (
    Banner, BannerDraft, CartItem, Coupon, CouponDraft, Language, Order, OrderStatus,
    PaymentMethod, Product, ProductDraft, StoreSettings, UserDetails,
)

logger = logging.getLogger(__name__)

SYNC_INTERVAL = float(os.getenv("SYNC_INTERVAL", 5))

# collections another session (admin on another device, a customer ordering)
# is likely to change
POLLED_COLLECTIONS = ("orders", "products", "settings", "banners", "coupons")

ADMIN_KEY = "is_admin"
CUSTOMER_KEY = "customer_details"

COLLECTIONS: Dict[str, TypeAdapter] = {
    "products": TypeAdapter(List[Product]),
    "orders": TypeAdapter(List[Order]),
    "banners": TypeAdapter(List[Banner]),
    "settings": TypeAdapter(StoreSettings),
    "coupons": TypeAdapter(List[Coupon]),
    "cart": TypeAdapter(List[CartItem]),
}

DEFAULTS: Dict[str, Callable[[], Any]] = {
    "products": lambda: list(INITIAL_PRODUCTS),
    "orders": list,
    "banners": lambda: list(INITIAL_BANNERS),
    "settings": lambda: INITIAL_SETTINGS,
    "coupons": lambda: list(INITIAL_COUPONS),
    "cart": list,
}

Listener = Callable[[str], None]


def _dumps(data: Any) -> bytes:
    return json.dumps(data, ensure_ascii=False).encode("utf-8")


class StoreCoordinator:
    def __init__(
        self,
        cache: Optional[LocalCache] = None,
        remote: Optional[Reconciler] = None,
        notifier: Optional[Callable[[Order], Any]] = None,
        sync_interval: Optional[float] = None,
        observer_interval: Optional[float] = None,
    ):
        self.cache = cache or LocalCache()
        self.remote = remote or RemoteClient()
        self.notifier = notifier
        self.sync_interval = SYNC_INTERVAL if sync_interval is None else sync_interval
        self.language = Language.EN
        self.is_admin = bool(self.cache.get_json(ADMIN_KEY, False))

        self._state: Dict[str, Any] = {name: self._load_local(name) for name in COLLECTIONS}
        self._listeners: List[Listener] = []
        self._pushes: Set[asyncio.Task] = set()
        self._unsynced: Set[str] = set()
        self._tasks: List[asyncio.Task] = []
        self.observer = CrossContextObserver(self.cache, self.apply_external, interval=observer_interval)

    # ---------------------- Collections ----------------------

    @property
    def products(self) -> List[Product]:
        return self._state["products"]

    @property
    def orders(self) -> List[Order]:
        return self._state["orders"]

    @property
    def banners(self) -> List[Banner]:
        return self._state["banners"]

    @property
    def settings(self) -> StoreSettings:
        return self._state["settings"]

    @property
    def coupons(self) -> List[Coupon]:
        return self._state["coupons"]

    @property
    def cart(self) -> List[CartItem]:
        return self._state["cart"]

    @staticmethod
    def encode(name: str, value: Any) -> Any:
        return COLLECTIONS[name].dump_python(value, mode="json")

    @staticmethod
    def decode(name: str, data: Any) -> Any:
        return COLLECTIONS[name].validate_python(data)

    def _load_local(self, name: str) -> Any:
        raw = self.cache.get(name)
        if raw is None:
            return DEFAULTS[name]()
        try:
            return COLLECTIONS[name].validate_json(raw)
        except ValidationError as e:
            logger.warning("Error loading local %s (%d errors), using defaults", name, e.error_count())
            return DEFAULTS[name]()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(name)`` after every in-memory change."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _publish(self, name: str) -> None:
        for listener in list(self._listeners):
            listener(name)

    def _commit(self, name: str, value: Any) -> None:
        self._state[name] = value
        data = self.encode(name, value)
        self.cache.set(name, _dumps(data))
        self._schedule_push(name, data)
        self._publish(name)

    def _schedule_push(self, name: str, data: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no loop yet; start() pushes it
            self._unsynced.add(name)
            return
        task = loop.create_task(self.remote.push(name, data))
        self._pushes.add(task)
        task.add_done_callback(self._pushes.discard)

    # ---------------------- Sync ----------------------

    def merge_remote(self, name: str, data: Any) -> bool:
        """Apply a pulled value. Returns True when memory changed."""
        local = self.encode(name, self._state[name])
        if name == "products" and data == [] and local:
            logger.info("Server has no %s, syncing local data to server", name)
            self._schedule_push(name, local)
            return False
        try:
            value = self.decode(name, data)
        except ValidationError as e:
            logger.warning("Ignoring remote %s (%d errors)", name, e.error_count())
            return False
        data = self.encode(name, value)
        if data == local:
            return False
        self._state[name] = value
        self.cache.set(name, _dumps(data))
        self._publish(name)
        return True

    async def reconcile(self, name: str) -> bool:
        data = await self.remote.pull(name, None)
        if data is None:
            return False
        return self.merge_remote(name, data)

    async def sync_once(self, names=POLLED_COLLECTIONS) -> List[str]:
        """Pull ``names`` once; returns the collections that changed."""
        results = await asyncio.gather(*(self.reconcile(name) for name in names))
        return [name for name, changed in zip(names, results) if changed]

    def apply_external(self, name: str, raw: Optional[bytes]) -> None:
        """Take a value another process wrote to the shared cache."""
        if name not in COLLECTIONS:
            return
        value = DEFAULTS[name]()
        if raw is not None:
            try:
                value = COLLECTIONS[name].validate_json(raw)
            except ValidationError:
                logger.warning("Malformed %s from another window, using defaults", name)
        self._state[name] = value
        self._publish(name)

    async def flush(self) -> None:
        """Wait for pushes already in flight."""
        if self._pushes:
            await asyncio.gather(*list(self._pushes), return_exceptions=True)

    async def start(self) -> None:
        if self._tasks:
            return
        pending, self._unsynced = self._unsynced, set()
        for name in sorted(pending):
            self._schedule_push(name, self.encode(name, self._state[name]))
        # local changes must reach the server before the first pull reads it
        await self.flush()
        await self.sync_once(tuple(COLLECTIONS))
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._poll_forever()),
            loop.create_task(self.observer.run()),
        ]

    async def _poll_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sync_interval)
            try:
                await self.sync_once()
            except Exception:
                logger.exception("Periodic sync failed")

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.flush()

    async def aclose(self) -> None:
        await self.stop()
        await self.remote.aclose()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    # ---------------------- Session ----------------------

    def toggle_language(self) -> Language:
        self.language = Language.TE if self.language == Language.EN else Language.EN
        return self.language

    def login(self, username: str, password: str) -> bool:
        if username == self.settings.admin_username and password == self.settings.admin_password:
            self.is_admin = True
            self.cache.set_json(ADMIN_KEY, True)
            return True
        logger.info("Admin login failed for %r", username)
        return False

    def logout(self) -> None:
        self.is_admin = False
        self.cache.remove(ADMIN_KEY)

    def remember_customer(self, details: UserDetails) -> None:
        self.cache.set_json(CUSTOMER_KEY, details.model_dump(mode="json"))

    def saved_customer(self) -> Optional[UserDetails]:
        data = self.cache.get_json(CUSTOMER_KEY)
        if data is None:
            return None
        try:
            return UserDetails.model_validate(data)
        except ValidationError:
            logger.warning("Failed to load saved details")
            return None

    # ---------------------- Cart ----------------------

    def add_to_cart(self, product_id: str, variant_id: str, qty: int = 1) -> None:
        cart = []
        merged = False
        for item in self.cart:
            if item.product_id == product_id and item.variant_id == variant_id:
                merged = True
                if item.qty + qty > 0:
                    cart.append(item.model_copy(update={"qty": item.qty + qty}))
            else:
                cart.append(item)
        if not merged:
            if qty <= 0:
                return
            cart.append(CartItem(product_id=product_id, variant_id=variant_id, qty=qty))
        self._commit("cart", cart)

    def remove_from_cart(self, product_id: str, variant_id: str) -> None:
        cart = [i for i in self.cart if not (i.product_id == product_id and i.variant_id == variant_id)]
        self._commit("cart", cart)

    def update_cart_qty(self, product_id: str, variant_id: str, qty: int) -> None:
        if qty <= 0:
            self.remove_from_cart(product_id, variant_id)
            return
        cart = [
            i.model_copy(update={"qty": qty}) if i.product_id == product_id and i.variant_id == variant_id else i
            for i in self.cart
        ]
        self._commit("cart", cart)

    def clear_cart(self) -> None:
        self._commit("cart", [])

    def cart_totals(self, coupon_code: Optional[str] = None) -> PricingBreakdown:
        return price_cart(self.cart, self.products, self.coupons, self.settings, coupon_code)

    # ---------------------- Catalog ----------------------

    def active_products(self) -> List[Product]:
        return [p for p in self.products if p.active]

    def add_product(self, product: Product) -> None:
        if any(p.id == product.id for p in self.products):
            raise PreconditionError(f"Product {product.id} already exists")
        self._commit("products", self.products + [product])

    def update_product(self, product: Product) -> None:
        self._commit("products", [product if p.id == product.id else p for p in self.products])

    def delete_product(self, product_id: str) -> None:
        self._commit("products", [p for p in self.products if p.id != product_id])

    def save_product_draft(self, draft: ProductDraft) -> Product:
        product = draft.build(lambda: time_id(p.id for p in self.products))
        if draft.id and any(p.id == draft.id for p in self.products):
            self.update_product(product)
        else:
            self.add_product(product)
        return product

    # ---------------------- Settings ----------------------

    def update_settings(self, settings: StoreSettings) -> None:
        self._commit("settings", settings)

    # ---------------------- Coupons ----------------------

    def add_coupon(self, coupon: Coupon) -> None:
        if any(normalize_code(c.code) == normalize_code(coupon.code) for c in self.coupons):
            raise PreconditionError(f"Coupon {coupon.code} already exists")
        self._commit("coupons", self.coupons + [coupon])

    def create_coupon(self, draft: CouponDraft) -> Coupon:
        coupon = draft.build(lambda: time_id(c.id for c in self.coupons))
        self.add_coupon(coupon)
        return coupon

    def toggle_coupon(self, coupon_id: str) -> None:
        self._commit("coupons", [
            c.model_copy(update={"active": not c.active}) if c.id == coupon_id else c
            for c in self.coupons
        ])

    # ---------------------- Banners ----------------------

    def active_banners(self) -> List[Banner]:
        return sorted((b for b in self.banners if b.active), key=lambda b: b.order)

    def add_banner(self, banner: Banner) -> None:
        self._commit("banners", self.banners + [banner])

    def create_banner(self, draft: BannerDraft) -> Banner:
        banner = draft.build(lambda: time_id(b.id for b in self.banners))
        self.add_banner(banner)
        return banner

    def delete_banner(self, banner_id: str) -> None:
        self._commit("banners", [b for b in self.banners if b.id != banner_id])

    def toggle_banner(self, banner_id: str) -> None:
        self._commit("banners", [
            b.model_copy(update={"active": not b.active}) if b.id == banner_id else b
            for b in self.banners
        ])

    # ---------------------- Orders ----------------------

    def update_order_status(self, order_id: str, status: OrderStatus) -> None:
        self._commit("orders", [set_status(o, status) if o.id == order_id else o for o in self.orders])

    def delete_order_screenshot(self, order_id: str) -> None:
        self._commit("orders", [remove_payment_proof(o) if o.id == order_id else o for o in self.orders])

    def track_order(self, order_id: str, mobile: str) -> Optional[Order]:
        return find_order(self.orders, order_id, mobile)

    def search_orders(
        self,
        status: Optional[OrderStatus] = None,
        term: str = "",
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Order]:
        return search_orders(self.orders, status, term, start, end)

    def place_order(
        self,
        details: UserDetails,
        payment_method: PaymentMethod,
        screenshot: Optional[str] = None,
        coupon_code: Optional[str] = None,
    ) -> Order:
        pricing = self.cart_totals(coupon_code)
        order = build_order(
            time_id(o.id for o in self.orders),
            self.cart,
            self.products,
            pricing,
            self.settings,
            details,
            payment_method,
            screenshot,
        )
        self._commit("orders", [order] + self.orders)
        if pricing.coupon:
            self._commit("coupons", record_redemption(self.coupons, pricing.coupon.id))
        self.clear_cart()
        self.remember_customer(details)
        logger.info("Order %s placed: %s %.2f", order.id, payment_method, order.total)
        self._notify(order)
        return order

    def _notify(self, order: Order) -> None:
        if self.notifier is None:
            return
        try:
            result = self.notifier(order)
            if inspect.isawaitable(result):
                try:
                    asyncio.get_running_loop()
                except RuntimeError:
                    logger.warning("No event loop, order notification for %s dropped", order.id)
                    if inspect.iscoroutine(result):
                        result.close()
                    return
                task = asyncio.ensure_future(result)
                self._pushes.add(task)
                task.add_done_callback(self._notified)
        except Exception:
            logger.exception("Order notification failed for %s", order.id)

    def _notified(self, task: asyncio.Task) -> None:
        self._pushes.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Order notification failed: %s", task.exception())
