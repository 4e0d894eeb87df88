# app/core/notifications.py
"""
Notification collaborator: render a named template and email it.

`notify(...)` never raises. Callers get a NotificationResult back and the
outcome is logged; a failed email must never fail the business operation
that triggered it.
"""
import logging
from dataclasses import dataclass
from html import escape
from typing import Any, Callable

from app.core.email_client import send_email, smtp_configured

logger = logging.getLogger(__name__)

STORE_NAME = "Cobra Market"


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    error: str | None = None


# ---------------------------------------------------------------------------
# Templates: each returns (text_body, html_body)
# ---------------------------------------------------------------------------


def _items_lines(data: dict[str, Any]) -> list[str]:
    lines = []
    for item in data.get("items", []):
        colour = f" / {item['color']}" if item.get("color") else ""
        lines.append(
            f"- {item['name']} (Size: {item['size']}{colour}) "
            f"x{item['quantity']}: ${item['line_total']:.2f}"
        )
    return lines


def _shipping_lines(data: dict[str, Any]) -> list[str]:
    addr = data.get("shipping") or {}
    if not addr:
        return []
    return [
        addr.get("full_name", ""),
        addr.get("address", ""),
        f"{addr.get('city', '')}, {addr.get('postal_code', '')}",
        addr.get("country", ""),
    ]


def _wrap_html(title: str, paragraphs: list[str]) -> str:
    body = "".join(f"<p>{escape(p)}</p>" for p in paragraphs if p)
    return (
        "<!DOCTYPE html><html><body>"
        f"<h1>{escape(title)}</h1>{body}"
        f"<p>Best regards,<br><strong>{STORE_NAME} Team</strong></p>"
        "</body></html>"
    )


def _order_confirmation(data: dict[str, Any]) -> tuple[str, str]:
    lines = [
        f"Hi {data['customer_name']},",
        "Your order has been confirmed and is being processed.",
        f"Order Number: #{data['order_id']}",
        f"Payment Method: {data['payment_method']}",
        "Order Details:",
        *_items_lines(data),
        f"Total: ${data['total_price']:.2f}",
        "Shipping Address:",
        *_shipping_lines(data),
    ]
    return "\n".join(lines), _wrap_html("Order Confirmed!", lines)


def _order_shipped(data: dict[str, Any]) -> tuple[str, str]:
    lines = [
        f"Hi {data['customer_name']},",
        f"Good news! Order #{data['order_id']} is on its way.",
        *_items_lines(data),
    ]
    return "\n".join(lines), _wrap_html("Your Order Has Been Shipped!", lines)


def _order_delivered(data: dict[str, Any]) -> tuple[str, str]:
    lines = [
        f"Hi {data['customer_name']},",
        f"Order #{data['order_id']} has been delivered.",
        "We hope you love it. Reviews help other shoppers, so tell us what you think!",
    ]
    return "\n".join(lines), _wrap_html("Your Order Has Been Delivered!", lines)


def _order_cancelled(data: dict[str, Any]) -> tuple[str, str]:
    lines = [
        f"Hi {data['customer_name']},",
        f"Order #{data['order_id']} has been cancelled.",
        f"Reason: {data.get('reason') or 'Cancelled by user request'}",
        f"Amount: ${data['total_price']:.2f}",
    ]
    return "\n".join(lines), _wrap_html("Order Cancellation Confirmation", lines)


def _contact_message(data: dict[str, Any]) -> tuple[str, str]:
    lines = [
        f"From: {data['name']} <{data['email']}>",
        f"Phone: {data.get('phone') or 'Not provided'}",
        f"Subject: {data['subject']}",
        "",
        data["message"],
    ]
    return "\n".join(lines), _wrap_html("New Contact Message", lines)


def _contact_reply(data: dict[str, Any]) -> tuple[str, str]:
    lines = [
        f"Hi {data['name']},",
        data["message"],
        "",
        f"> {data['original_message']}" if data.get("original_message") else "",
    ]
    return "\n".join(lines), _wrap_html(data["subject"], lines)


TEMPLATES: dict[str, Callable[[dict[str, Any]], tuple[str, str]]] = {
    "order_confirmation": _order_confirmation,
    "order_shipped": _order_shipped,
    "order_delivered": _order_delivered,
    "order_cancelled": _order_cancelled,
    "contact_message": _contact_message,
    "contact_reply": _contact_reply,
}


def notify(
    recipient_email: str,
    subject: str,
    template_name: str,
    template_data: dict[str, Any],
    reply_to: str | None = None,
) -> NotificationResult:
    """
    Render `template_name` with `template_data` and send it.

    Returns a failed result (never raises) when:
      - SMTP is not configured
      - the template does not exist or cannot be rendered
      - the SMTP send fails
    """
    if not smtp_configured():
        logger.warning("Email not configured; skipping %r to %s", subject, recipient_email)
        return NotificationResult(success=False, error="Email not configured")

    template = TEMPLATES.get(template_name)
    if template is None:
        logger.error("Email template %r not found", template_name)
        return NotificationResult(success=False, error=f"Unknown template '{template_name}'")

    try:
        text_body, html_body = template(template_data)
        send_email(
            to_email=recipient_email,
            subject=subject,
            text_body=text_body,
            html_body=html_body,
            reply_to=reply_to,
        )
    except Exception as exc:
        logger.error("Email sending failed (%s to %s): %s", subject, recipient_email, exc)
        return NotificationResult(success=False, error=str(exc) or "Email sending failed")

    logger.info("Email sent: %s to %s", subject, recipient_email)
    return NotificationResult(success=True)
