"""
Notification Service for Zule Mesh Store
Renders and sends the order confirmation email
"""
import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from typing import Any, Dict, Optional
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

from jinja2 import Environment

from config import (
    EMAIL_PASS,
    EMAIL_TIMEZONE,
    EMAIL_USER,
    SMTP_HOST,
    SMTP_PORT,
    SMTP_TIMEOUT_SECONDS,
    TRACKING_URL,
)
from errors import UpstreamError
from order_service import order_total

logger = logging.getLogger(__name__)

STORE_NAME = "Zule Mesh Solutions"
CONFIRMATION_SUBJECT = f"{STORE_NAME} - Order Confirmation"

CONFIRMATION_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ store_name }} - Order Confirmation</title>
</head>
<body style="margin: 0; padding: 0; font-family: 'Helvetica Neue', Arial, Helvetica, sans-serif; background-color: #000000; color: #ffffff;">
  <table role="presentation" style="width: 100%; max-width: 600px; margin: 40px auto; background-color: #0a0a0a; border-collapse: collapse; border-radius: 12px;">
    <tr>
      <td style="padding: 20px; text-align: center; background-color: #000000; border-radius: 12px 12px 0 0;">
        <h1 style="color: #ffffff; font-size: 24px; font-weight: 700; margin: 0;">Order Confirmation</h1>
      </td>
    </tr>
    <tr>
      <td style="padding: 40px 30px; background-color: #0a0a0a;">
        <p style="font-size: 16px; line-height: 1.5; color: #e0e0e0; margin: 0 0 20px;">Dear {{ customer_name }},</p>
        <p style="font-size: 16px; line-height: 1.5; color: #e0e0e0; margin: 0 0 20px;">
          Your order (#{{ order_id }}) was confirmed on {{ confirmed_at }}. Review your order details below:
        </p>
        <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">
          <tr>
            <td style="padding: 12px 0; font-weight: 600; color: #00b7eb; font-size: 14px;">Order ID</td>
            <td style="padding: 12px 0; color: #ffffff; font-size: 14px; text-align: right;">{{ order_id }}</td>
          </tr>
          <tr>
            <td style="padding: 12px 0; font-weight: 600; color: #00b7eb; font-size: 14px;">Tracking Number</td>
            <td style="padding: 12px 0; color: #ffffff; font-size: 14px; text-align: right;">{{ tracking_number }}</td>
          </tr>
          <tr>
            <td style="padding: 12px 0; font-weight: 600; color: #00b7eb; font-size: 14px;">Estimated Delivery</td>
            <td style="padding: 12px 0; color: #ffffff; font-size: 14px; text-align: right;">{{ estimated_delivery }}</td>
          </tr>
          <tr>
            <td style="padding: 12px 0; font-weight: 600; color: #00b7eb; font-size: 14px;">Total</td>
            <td style="padding: 12px 0; color: #ffffff; font-size: 14px; text-align: right;">{{ "%.3f"|format(total) }} SOL</td>
          </tr>
        </table>
        <p style="text-align: center; margin: 30px 0;">
          <a href="{{ tracking_link }}" style="display: inline-block; padding: 12px 24px; background-color: #00b7eb; color: #000000; text-decoration: none; font-weight: 600; font-size: 14px; border-radius: 6px;">Track Your Order</a>
        </p>
        <p style="font-size: 16px; line-height: 1.5; color: #e0e0e0; margin: 0;">Thank you for choosing {{ store_name }}.</p>
      </td>
    </tr>
    <tr>
      <td style="padding: 20px; text-align: center; background-color: #000000; border-radius: 0 0 12px 12px; font-size: 12px; color: #999999;">
        <p style="margin: 0;">{{ store_name }} &copy; {{ year }}</p>
      </td>
    </tr>
  </table>
</body>
</html>
"""

_confirmation_template = Environment(autoescape=True).from_string(CONFIRMATION_TEMPLATE)


class SmtpMailer:
    """Sends HTML mail over SMTP with implicit TLS"""

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        user: str = EMAIL_USER,
        password: str = EMAIL_PASS,
        timeout: float = SMTP_TIMEOUT_SECONDS,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout

    def send(self, to: str, subject: str, html: str) -> None:
        message = EmailMessage()
        message["From"] = self.user
        message["To"] = to
        message["Subject"] = subject
        message.set_content("Your order has been confirmed.")
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.login(self.user, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.exception("Failed to send email to %s via %s", to, self.host)
            raise UpstreamError("Failed to send email") from e


def tracking_link(order: Dict[str, Any]) -> str:
    query = urlencode({"orderId": order["orderId"], "email": order["email"]})
    return f"{TRACKING_URL}?{query}"


def render_confirmation(order: Dict[str, Any], now: Optional[datetime] = None) -> str:
    now = now or datetime.now(ZoneInfo(EMAIL_TIMEZONE))
    return _confirmation_template.render(
        store_name=STORE_NAME,
        customer_name=(order.get("shippingAddress") or {}).get("fullName") or "Customer",
        order_id=order["orderId"],
        confirmed_at=now.strftime("%m/%d/%Y, %I:%M:%S %p %Z"),
        tracking_number=order["trackingNumber"],
        estimated_delivery=order["estimatedDelivery"],
        total=order_total(order),
        tracking_link=tracking_link(order),
        year=now.year,
    )


def send_confirmation(mailer, order: Dict[str, Any]) -> None:
    """Email the order confirmation; delivery failures propagate"""
    html = render_confirmation(order)
    mailer.send(order["email"], CONFIRMATION_SUBJECT, html)
    logger.info("Confirmation for order %s sent to %s", order["orderId"], order["email"])
