# storefront/services/email_templates.py
"""Tresci maili. Kazda funkcja zwraca (subject, html, text)."""
from html import escape
from typing import Any, Dict, List, Tuple

from storefront.utils.settings import FRONTEND_URL

Rendered = Tuple[str, str, str]


def _page(title: str, body: str) -> str:
    return (
        "<html><body style='font-family: Arial, sans-serif'>"
        f"<h1>{escape(title)}</h1>{body}"
        "<p>Thanks,<br>The Storefront Team</p>"
        "</body></html>"
    )


def welcome(name: str) -> Rendered:
    subject = "Welcome to Storefront!"
    text = (
        f"Hello {name},\n\n"
        "Your account has been created. You can start shopping now:\n"
        f"{FRONTEND_URL}/products\n\n"
        "Thanks,\nThe Storefront Team"
    )
    html = _page(
        f"Welcome, {name}!",
        "<p>Your account has been created.</p>"
        f"<p><a href='{FRONTEND_URL}/products'>Start shopping</a></p>",
    )
    return subject, html, text


def order_confirmation(name: str, order: Dict[str, Any]) -> Rendered:
    subject = f"Order #{order['id']} confirmed"

    text = f"Hello {name},\n\nThank you for your order! Your order ID is {order['id']}.\n\nItems:\n"
    for item in order["items"]:
        text += f"- {item['name']} (x{item['quantity']}): ${item['line_total']}\n"
    text += f"\nTotal: ${order['total_amount']}\n\nWe'll notify you when your order ships.\n"

    rows = "".join(
        f"<tr><td>{escape(item['name'])}</td><td>{item['quantity']}</td><td>${item['line_total']}</td></tr>"
        for item in order["items"]
    )
    html = _page(
        f"Hello, {name}!",
        f"<p>Thank you for your order! Your order ID is <strong>{order['id']}</strong>.</p>"
        "<table border='1' cellpadding='5' cellspacing='0'>"
        f"<tr><th>Item</th><th>Quantity</th><th>Price</th></tr>{rows}</table>"
        f"<p><strong>Total:</strong> ${order['total_amount']}</p>",
    )
    return subject, html, text


def order_status(name: str, order_id: int, status: str) -> Rendered:
    subject = f"Order #{order_id} is now {status}"
    text = (
        f"Hello {name},\n\nThe status of your order #{order_id} changed to: {status}.\n"
        f"Details: {FRONTEND_URL}/orders/{order_id}\n"
    )
    html = _page(
        f"Order #{order_id} update",
        f"<p>The status of your order changed to <strong>{escape(status)}</strong>.</p>"
        f"<p><a href='{FRONTEND_URL}/orders/{order_id}'>View order</a></p>",
    )
    return subject, html, text


def shipping(name: str, order_id: int, address: str) -> Rendered:
    subject = f"Order #{order_id} has shipped"
    text = f"Hello {name},\n\nGood news! Your order #{order_id} is on its way to:\n{address}\n"
    html = _page(
        "Your order has shipped",
        f"<p>Your order <strong>#{order_id}</strong> is on its way to:</p><p>{escape(address)}</p>",
    )
    return subject, html, text


def low_stock(products: List[Dict[str, Any]]) -> Rendered:
    subject = f"Low stock alert: {len(products)} product(s)"
    text = "The following products are running low:\n\n" + "".join(
        f"- {p['name']} (id {p['id']}): {p['stock']} left\n" for p in products
    )
    rows = "".join(
        f"<tr><td>{escape(p['name'])}</td><td>{p['id']}</td><td>{p['stock']}</td></tr>" for p in products
    )
    html = _page(
        "Low stock alert",
        "<table border='1' cellpadding='5' cellspacing='0'>"
        f"<tr><th>Product</th><th>ID</th><th>Stock</th></tr>{rows}</table>",
    )
    return subject, html, text


def abandoned_cart(name: str, items: List[Dict[str, Any]], total) -> Rendered:
    subject = "You left something in your cart"
    text = f"Hello {name},\n\nYou still have items waiting in your cart:\n" + "".join(
        f"- {i['name']} (x{i['quantity']})\n" for i in items
    )
    text += f"\nTotal: ${total}\nFinish checkout: {FRONTEND_URL}/cart\n"
    listing = "".join(f"<li>{escape(i['name'])} (x{i['quantity']})</li>" for i in items)
    html = _page(
        f"Hello, {name}!",
        f"<p>You still have items waiting in your cart:</p><ul>{listing}</ul>"
        f"<p><strong>Total:</strong> ${total}</p>"
        f"<p><a href='{FRONTEND_URL}/cart'>Finish checkout</a></p>",
    )
    return subject, html, text


def promotional(name: str, subject: str, content: str) -> Rendered:
    text = f"Hello {name},\n\n{content}\n\nShop now: {FRONTEND_URL}\n"
    html = _page(
        subject,
        f"<p>Hello {escape(name)},</p><p>{escape(content)}</p><p><a href='{FRONTEND_URL}'>Shop now</a></p>",
    )
    return subject, html, text
