"""
Outbound order messages.

Only composition lives here; sending is left to whoever opens the link.
"""
from typing import Optional
from urllib.parse import quote

from schemas import Order, PaymentMethod, StoreSettings

RULE = "----------------"


def _amount(amount: float) -> str:
    return f"{amount:.2f}".rstrip("0").rstrip(".")


def _money(amount: float) -> str:
    return "₹" + _amount(amount)


def compose_order_message(order: Order, merchant_name: str) -> str:
    lines = [
        f"*New Order #{order.id}*",
        f"Store: {merchant_name}",
        f"Date: {order.date:%d/%m/%Y} at {order.date:%H:%M:%S}",
        RULE,
    ]
    for i in order.items:
        lines.append(f"{i.product_name} ({i.variant}) x{i.qty}: {_money(i.price * i.qty)}")
    lines.append(RULE)
    if order.discount:
        lines.append(f"Discount: -{_money(order.discount)}")
    lines.append(
        f"Sub: {_money(order.subtotal)} | GST: {_money(order.gst)} | Del: {_money(order.delivery_charge)}"
    )
    lines.append(f"*Total: {_money(order.total)}*")
    lines.append(RULE)
    c = order.customer
    lines.append(f"Customer: {c.name}, {c.mobile}")
    lines.append(f"{c.address}, {c.city}")
    lines.append(f"Mandal: {c.mandal}, Dist: {c.district}")
    lines.append("")
    lines.append(payment_note(order.payment_method))
    return "\n".join(lines)


def payment_note(method: PaymentMethod) -> str:
    if method == "UPI":
        return "✅ *Online Payment* (Screenshot Uploaded to Website)"
    return "📦 *COD Order* - Please confirm"


def order_status_message(order: Order) -> str:
    return f"Update on Order #{order.id}: Your order is now {order.status.value.replace('_', ' ')}."


def whatsapp_link(phone: str, text: str) -> str:
    return f"https://wa.me/{phone}?text={quote(text, safe='')}"


def customer_whatsapp_link(order: Order, country_code: str = "91") -> str:
    return whatsapp_link(f"{country_code}{order.customer.mobile.strip()}", order_status_message(order))


def upi_payment_link(settings: StoreSettings, amount: float, note: Optional[str] = "Order") -> str:
    link = f"upi://pay?pa={settings.merchant_vpa}&pn={quote(settings.merchant_name, safe='')}&am={_amount(amount)}"
    if note:
        link += f"&tn={quote(note, safe='')}"
    return link
