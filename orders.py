"""
Order lifecycle.

    PENDING -> PAYMENT_UPLOADED -> CONFIRMED -> DELIVERED
    PENDING | PAYMENT_UPLOADED | CONFIRMED -> CANCELLED

COD orders start PENDING, UPI orders start PAYMENT_UPLOADED. The operator may
set any status on any order; the only system-driven move is removing the
payment proof, which always sends the order back to PENDING.

Orders are frozen models: status and proof change through model_copy, every
other field is fixed when the order is built.
"""
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from errors import PreconditionError
from pricing import PricingBreakdown, resolve_line
from schemas import CartItem, Order, OrderItem, OrderStatus, PaymentMethod, Product, StoreSettings, UserDetails

CANCELLABLE = {OrderStatus.PENDING, OrderStatus.PAYMENT_UPLOADED, OrderStatus.CONFIRMED}


def now_utc():
    return datetime.now(timezone.utc)


def time_id(existing: Iterable[str], now: Optional[datetime] = None) -> str:
    """Milliseconds since the epoch, bumped until it is not in ``existing``."""
    taken = set(existing)
    stamp = int((now or now_utc()).timestamp() * 1000)
    while str(stamp) in taken:
        stamp += 1
    return str(stamp)


def initial_status(payment_method: PaymentMethod) -> OrderStatus:
    return OrderStatus.PENDING if payment_method == "COD" else OrderStatus.PAYMENT_UPLOADED


def check_order_request(
    cart: List[CartItem],
    settings: StoreSettings,
    payment_method: PaymentMethod,
    screenshot: Optional[str],
) -> None:
    if not cart:
        raise PreconditionError("Cart is empty")
    if payment_method == "UPI" and not screenshot:
        raise PreconditionError("Please upload payment screenshot")
    if payment_method == "COD" and not settings.allow_cod:
        raise PreconditionError("Cash on delivery is not available")


def order_lines(cart: List[CartItem], products: List[Product]) -> List[OrderItem]:
    lines = []
    for item in cart:
        resolved = resolve_line(products, item)
        if resolved is None:
            continue
        product, variant = resolved
        lines.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            variant=variant.weight,
            price=variant.price,
            qty=item.qty,
        ))
    return lines


def build_order(
    order_id: str,
    cart: List[CartItem],
    products: List[Product],
    pricing: PricingBreakdown,
    settings: StoreSettings,
    customer: UserDetails,
    payment_method: PaymentMethod,
    screenshot: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Order:
    check_order_request(cart, settings, payment_method, screenshot)
    items = order_lines(cart, products)
    if not items:
        raise PreconditionError("None of the items in the cart are available any more")
    return Order(
        id=order_id,
        date=created_at or now_utc(),
        items=items,
        subtotal=pricing.subtotal,
        gst=pricing.gst,
        delivery_charge=pricing.delivery,
        discount=pricing.discount,
        total=pricing.total,
        customer=customer,
        payment_method=payment_method,
        status=initial_status(payment_method),
        payment_screenshot=screenshot,
    )


def set_status(order: Order, status: OrderStatus) -> Order:
    return order.model_copy(update={"status": OrderStatus(status)})


def remove_payment_proof(order: Order) -> Order:
    return order.model_copy(update={"payment_screenshot": None, "status": OrderStatus.PENDING})


def can_cancel(order: Order) -> bool:
    return order.status in CANCELLABLE


def tracking_step(status: OrderStatus) -> Optional[int]:
    """Progress step shown to the customer; None for a cancelled order."""
    if status == OrderStatus.CANCELLED:
        return None
    if status == OrderStatus.DELIVERED:
        return 3
    if status == OrderStatus.CONFIRMED:
        return 2
    return 1


def find_order(orders: List[Order], order_id: str, mobile: str) -> Optional[Order]:
    order_id, mobile = order_id.strip(), mobile.strip()
    return next((o for o in orders if o.id == order_id and o.customer.mobile.strip() == mobile), None)


def search_orders(
    orders: List[Order],
    status: Optional[OrderStatus] = None,
    term: str = "",
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Order]:
    """Admin console filter: status, free text over id/name/mobile/email, and
    an inclusive date range. Newest first."""
    term = term.strip().lower()
    out = []
    for o in orders:
        if status is not None and o.status != status:
            continue
        if term and not (
            term in o.id.lower()
            or term in o.customer.name.lower()
            or term in o.customer.mobile
            or term in o.customer.email.lower()
        ):
            continue
        day = o.date.date()
        if start and day < start:
            continue
        if end and day > end:
            continue
        out.append(o)
    return sorted(out, key=lambda o: o.date, reverse=True)
