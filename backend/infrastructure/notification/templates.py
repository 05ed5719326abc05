"""주문 알림 메일 본문"""
from dataclasses import dataclass
from decimal import Decimal
from html import escape
from typing import Iterable, List, Tuple

from domain.entities.stock import StockShortfall


@dataclass
class EmailLine:
    product_name: str
    plan_name: str
    price: Decimal


def order_confirmation(
    customer_name: str,
    order_number: str,
    total: Decimal,
    currency: str,
    lines: Iterable[EmailLine],
) -> Tuple[str, str, str]:
    lines = list(lines)
    subject = f"Order Confirmed - {order_number}"
    text_lines = "\n".join(f"- {l.product_name} - {l.plan_name}: {l.price} {currency}" for l in lines)
    text = (
        f"Your order {order_number} has been confirmed and is being processed.\n\n"
        f"{text_lines}\n\nOrder Total: {total} {currency}"
    )
    rows = "".join(
        f"<tr><td>{escape(l.product_name)} - {escape(l.plan_name)}</td>"
        f"<td style=\"text-align: right;\">{l.price} {escape(currency)}</td></tr>"
        for l in lines
    )
    html = (
        "<h2>Order Confirmed</h2>"
        f"<p>Dear {escape(customer_name or 'Customer')},</p>"
        f"<p>Your order <strong>{escape(order_number)}</strong> has been confirmed and is being processed.</p>"
        f"<table style=\"width: 100%;\">{rows}</table>"
        f"<p>Order Total: {total} {escape(currency)}</p>"
        "<p>You can track your order status in your dashboard.</p>"
    )
    return subject, text, html


def stock_cancellation(
    customer_name: str,
    order_number: str,
    shortfalls: List[StockShortfall],
) -> Tuple[str, str, str]:
    subject = "Order Cancelled - Stock Unavailable"
    text = (
        f"Your order {order_number} has been cancelled because some items are no longer in stock. "
        "Your payment has been processed and a refund will be issued."
    )
    items = "".join(
        f"<li>{escape(s.product_name)} - Requested: {s.requested}, Available: {s.available}</li>"
        for s in shortfalls
    )
    html = (
        "<h2>Order Cancelled - Stock Unavailable</h2>"
        f"<p>Dear {escape(customer_name or 'Customer')},</p>"
        f"<p>Your order <strong>{escape(order_number)}</strong> has been cancelled because the "
        "following items are no longer in stock:</p>"
        f"<ul>{items}</ul>"
        "<p>Your payment has been processed and a refund will be issued within 3-5 business days.</p>"
        "<p>We apologize for the inconvenience.</p>"
    )
    return subject, text, html


def refund_notice(
    customer_name: str,
    order_number: str,
    order_status: str,
    amount: Decimal,
    currency: str,
) -> Tuple[str, str, str]:
    """이미 종결된 주문에 결제가 들어온 경우"""
    subject = f"Payment Received - Refund Pending ({order_number})"
    text = (
        f"We received a payment of {amount} {currency} for order {order_number}, "
        f"but the order is already {order_status}. A refund will be issued."
    )
    html = (
        "<h2>Payment Received - Refund Pending</h2>"
        f"<p>Dear {escape(customer_name or 'Customer')},</p>"
        f"<p>We received a payment of {amount} {escape(currency)} for order "
        f"<strong>{escape(order_number)}</strong>, but the order is already {escape(order_status)}.</p>"
        "<p>A refund will be issued within 3-5 business days.</p>"
        "<p>We apologize for the inconvenience.</p>"
    )
    return subject, text, html
