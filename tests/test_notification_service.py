import smtplib
from datetime import datetime, timezone

import pytest

import notification_service
from conftest import FakeMailer
from errors import UpstreamError
from notification_service import (
    CONFIRMATION_SUBJECT,
    SmtpMailer,
    render_confirmation,
    send_confirmation,
    tracking_link,
)

ORDER = {
    "orderId": "ZULEABC123",
    "email": "buyer+1@example.com",
    "trackingNumber": "ZLXYZ98765",
    "estimatedDelivery": "10/25/2026",
    "items": [
        {"name": "Shirt", "quantity": 2, "price": 0.01},
        {"name": "Cap", "quantity": 1, "price": 0.003},
    ],
    "shippingAddress": {"fullName": "Ada <Admin>"},
}


def test_tracking_link_escapes_email():
    link = tracking_link(ORDER)
    assert link.startswith(notification_service.TRACKING_URL + "?")
    assert "orderId=ZULEABC123" in link
    assert "email=buyer%2B1%40example.com" in link


def test_render_confirmation():
    html = render_confirmation(ORDER, now=datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc))

    assert "ZULEABC123" in html
    assert "ZLXYZ98765" in html
    assert "10/25/2026" in html
    assert "0.023 SOL" in html
    assert "10/18/2026, 09:30:00 AM UTC" in html
    assert "Ada &lt;Admin&gt;" in html
    assert "buyer%2B1%40example.com" in html


def test_send_confirmation_uses_order_email():
    mailer = FakeMailer()
    send_confirmation(mailer, ORDER)

    assert len(mailer.sent) == 1
    to, subject, html = mailer.sent[0]
    assert to == ORDER["email"]
    assert subject == CONFIRMATION_SUBJECT


def test_send_confirmation_propagates_failure():
    with pytest.raises(UpstreamError):
        send_confirmation(FakeMailer(fail=True), ORDER)


class _FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port, self.timeout = host, port, timeout
        self.logged_in = None
        self.messages = []
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, message):
        self.messages.append(message)


def test_smtp_mailer_sends_html(monkeypatch):
    _FakeSMTP.instances.clear()
    monkeypatch.setattr(notification_service.smtplib, "SMTP_SSL", _FakeSMTP)

    mailer = SmtpMailer(host="smtp.test", port=465, user="store@test", password="pw", timeout=3)
    mailer.send("buyer@test", "Hello", "<p>Hi</p>")

    smtp = _FakeSMTP.instances[0]
    assert (smtp.host, smtp.port, smtp.timeout) == ("smtp.test", 465, 3)
    assert smtp.logged_in == ("store@test", "pw")
    message = smtp.messages[0]
    assert message["To"] == "buyer@test"
    assert message["From"] == "store@test"
    assert message.get_body(("html",)).get_content().strip() == "<p>Hi</p>"


def test_smtp_mailer_wraps_transport_errors(monkeypatch):
    def refuse(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, b"busy")

    monkeypatch.setattr(notification_service.smtplib, "SMTP_SSL", refuse)

    with pytest.raises(UpstreamError):
        SmtpMailer(host="smtp.test").send("buyer@test", "Hello", "<p>Hi</p>")
