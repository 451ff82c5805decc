"""
Order Service for Zule Mesh Store
Checkout, order tracking and the payment-success transition
"""
import logging
import random
import string
import threading
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from database import OrderStore
from errors import NotFoundError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

ORDER_ID_PREFIX = "ZULE"
TRACKING_PREFIX = "ZL"
DELIVERY_DAYS = 7
CHECKOUT_ATTEMPTS = 3

DEFAULT_LOCATION = "Distribution Center - Los Angeles, CA"
DEFAULT_SHIPPING_METHOD = "Standard Shipping (7-10 business days)"
DEFAULT_CARRIER = "ZULE Express"

_BASE36 = string.digits + string.ascii_uppercase


class OrderStatus(str, Enum):
    CONFIRMED = "confirmed"
    PROCESSING = "processing"


class TimelineStage(Enum):
    """Fixed milestones of every order, in timeline order"""
    ORDER_CONFIRMED = (
        "Order Confirmed", 0, None,
        "Your order has been confirmed and payment processing initiated",
    )
    PROCESSING = ("Processing", 1, "10:00 AM", "Order is being prepared and packaged")
    SHIPPED = ("Shipped", 2, "8:00 AM", "Package has been shipped and is in transit")
    OUT_FOR_DELIVERY = (
        "Out for Delivery", 6, "Expected", "Package is out for delivery to your address",
    )
    DELIVERED = ("Delivered", DELIVERY_DAYS, "Expected", "Package delivered to your address")

    def __init__(self, label: str, day_offset: int, default_time: Optional[str], description: str):
        self.label = label
        self.day_offset = day_offset
        self.default_time = default_time
        self.description = description

    @property
    def index(self) -> int:
        return list(TimelineStage).index(self)


def format_date(moment: datetime) -> str:
    return f"{moment.month}/{moment.day}/{moment.year}"


def format_time(moment: datetime) -> str:
    hour = moment.hour % 12 or 12
    return f"{hour}:{moment:%M:%S} {moment:%p}"


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


_order_id_lock = threading.Lock()
_last_order_ms = 0


def generate_order_id() -> str:
    """Millisecond timestamp in base 36, bumped so ids never repeat in-process"""
    global _last_order_ms

    with _order_id_lock:
        now_ms = int(time.time() * 1000)
        if now_ms <= _last_order_ms:
            now_ms = _last_order_ms + 1
        _last_order_ms = now_ms
    return ORDER_ID_PREFIX + _base36(now_ms)


def generate_tracking_number() -> str:
    return TRACKING_PREFIX + "".join(random.choices(string.ascii_uppercase + string.digits, k=8))


def build_timeline(now: datetime) -> List[Dict[str, Any]]:
    timeline = []
    for stage in TimelineStage:
        timeline.append({
            "status": stage.label,
            "date": format_date(now + timedelta(days=stage.day_offset)),
            "time": stage.default_time or format_time(now),
            "completed": stage is TimelineStage.ORDER_CONFIRMED,
            "description": stage.description,
        })
    return timeline


def order_total(order: Dict[str, Any]) -> float:
    return sum(
        (item.get("price") or 0) * (item.get("quantity") or 0)
        for item in order.get("items", [])
    )


def checkout(
    store: OrderStore,
    full_name: Optional[str],
    email: Optional[str],
    address: Optional[str],
    total: Optional[float],
    items: Optional[List[Dict[str, Any]]],
    city: Optional[str] = None,
    state: Optional[str] = None,
    postal_code: Optional[str] = None,
    country: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a confirmed order and return its document.

    Name, email, address, a non-zero total and at least one item are
    required; nothing is written when any is missing.
    """
    if not full_name or not email or not address or not total or not items:
        raise ValidationError("Missing required checkout data")

    now = datetime.now()
    for attempt in range(CHECKOUT_ATTEMPTS):
        order = {
            "orderId": generate_order_id(),
            "email": email,
            "status": OrderStatus.CONFIRMED.value,
            "trackingNumber": generate_tracking_number(),
            "estimatedDelivery": format_date(now + timedelta(days=DELIVERY_DAYS)),
            "currentLocation": DEFAULT_LOCATION,
            "orderDate": format_date(now),
            "shippingMethod": DEFAULT_SHIPPING_METHOD,
            "carrier": DEFAULT_CARRIER,
            "items": items,
            "timeline": build_timeline(now),
            "shippingAddress": {
                "fullName": full_name,
                "address": address,
                "city": city,
                "state": state,
                "postalCode": postal_code,
                "country": country,
            },
            "txHash": None,
        }
        try:
            store.insert_order(order)
        except DuplicateKeyError:
            logger.warning("Order id collision on attempt %d, regenerating", attempt + 1)
            continue

        logger.info("Order %s created for %s", order["orderId"], email)
        return order

    raise PersistenceError("Could not allocate a unique order id")


def track(store: OrderStore, email: Optional[str], order_id: Optional[str]) -> Dict[str, Any]:
    """Look up an order; both the email and the orderId must match"""
    if not email or not order_id:
        raise ValidationError("Missing email or orderId")

    order = store.find_order(order_id, email=email)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def mark_paid(store: OrderStore, order_id: str, tx_reference: str) -> Dict[str, Any]:
    """
    Move an order to processing and record its payment reference.

    The reference is stored as given. Whether it was actually verified
    is the caller's responsibility.
    """
    if store.find_order(order_id) is None:
        raise NotFoundError("Order not found")

    now = datetime.now()
    confirmed = TimelineStage.ORDER_CONFIRMED.index
    processing = TimelineStage.PROCESSING.index
    matched = store.update_order(order_id, {
        "status": OrderStatus.PROCESSING.value,
        "txHash": tx_reference,
        f"timeline.{confirmed}.completed": True,
        f"timeline.{processing}.completed": True,
        f"timeline.{processing}.date": format_date(now),
        f"timeline.{processing}.time": format_time(now),
    })
    if not matched:
        raise NotFoundError("Order not found")

    logger.info("Order %s marked paid with reference %s", order_id, tx_reference)
    return store.find_order(order_id)
