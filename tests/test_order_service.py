import re
from datetime import datetime

import pytest

import order_service
from errors import NotFoundError, PersistenceError, ValidationError
from order_service import (
    TimelineStage,
    build_timeline,
    checkout,
    format_date,
    format_time,
    mark_paid,
    order_total,
    track,
)

ITEMS = [{"name": "Shirt", "size": "M", "color": "Black", "quantity": 2, "price": 0.01}]


def _checkout(store, **overrides):
    fields = dict(full_name="A", email="a@b.com", address="X", total=0.02, items=ITEMS)
    fields.update(overrides)
    return checkout(store, **fields)


def test_order_ids_are_unique_and_well_formed(order_store):
    orders = [_checkout(order_store) for _ in range(25)]

    order_ids = [o["orderId"] for o in orders]
    tracking = [o["trackingNumber"] for o in orders]
    assert len(set(order_ids)) == 25
    assert len(set(tracking)) == 25
    assert all(re.fullmatch(r"ZULE[A-Z0-9]+", oid) for oid in order_ids)
    assert all(re.fullmatch(r"ZL[A-Z0-9]{8}", tn) for tn in tracking)


def test_order_ids_increase():
    first = order_service.generate_order_id()
    second = order_service.generate_order_id()
    assert int(second[4:], 36) > int(first[4:], 36)


def test_checkout_builds_confirmed_order(order_store):
    order = _checkout(order_store, city="LA", country="US")

    assert order["status"] == "confirmed"
    assert order["txHash"] is None
    assert order["carrier"] == "ZULE Express"
    assert order["shippingAddress"]["fullName"] == "A"
    assert order["shippingAddress"]["city"] == "LA"
    assert order["items"] == ITEMS
    assert order["estimatedDelivery"] == order["timeline"][-1]["date"]

    stored = order_store.find_order(order["orderId"])
    assert stored["trackingNumber"] == order["trackingNumber"]
    assert "_id" not in stored


def test_timeline_has_fixed_stages():
    now = datetime(2026, 10, 18, 15, 5, 9)
    timeline = build_timeline(now)

    assert [t["status"] for t in timeline] == [
        "Order Confirmed", "Processing", "Shipped", "Out for Delivery", "Delivered"
    ]
    assert [t["date"] for t in timeline] == [
        "10/18/2026", "10/19/2026", "10/20/2026", "10/24/2026", "10/25/2026"
    ]
    assert [t["completed"] for t in timeline] == [True, False, False, False, False]
    assert timeline[0]["time"] == "3:05:09 PM"
    assert timeline[1]["time"] == "10:00 AM"


def test_stage_index():
    assert TimelineStage.ORDER_CONFIRMED.index == 0
    assert TimelineStage.PROCESSING.index == 1
    assert TimelineStage.DELIVERED.index == 4


def test_date_and_time_formats():
    assert format_date(datetime(2026, 1, 5)) == "1/5/2026"
    assert format_time(datetime(2026, 1, 5, 0, 7, 3)) == "12:07:03 AM"
    assert format_time(datetime(2026, 1, 5, 12, 30, 0)) == "12:30:00 PM"


@pytest.mark.parametrize("overrides", [
    {"full_name": None},
    {"email": ""},
    {"address": None},
    {"total": None},
    {"total": 0},
    {"items": []},
    {"items": None},
])
def test_checkout_rejects_missing_fields(order_store, overrides):
    with pytest.raises(ValidationError):
        _checkout(order_store, **overrides)
    assert order_store.count() == 0


def test_checkout_retries_on_id_collision(order_store, monkeypatch):
    ids = iter(["ZULEDUP", "ZULEDUP", "ZULENEW"])
    monkeypatch.setattr(order_service, "generate_order_id", lambda: next(ids))

    assert _checkout(order_store)["orderId"] == "ZULEDUP"
    assert _checkout(order_store)["orderId"] == "ZULENEW"
    assert order_store.count() == 2


def test_checkout_gives_up_after_repeated_collisions(order_store, monkeypatch):
    monkeypatch.setattr(order_service, "generate_order_id", lambda: "ZULEDUP")
    _checkout(order_store)

    with pytest.raises(PersistenceError):
        _checkout(order_store)


def test_track_requires_both_fields_to_match(order_store):
    order = _checkout(order_store)

    assert track(order_store, "a@b.com", order["orderId"])["orderId"] == order["orderId"]
    with pytest.raises(NotFoundError):
        track(order_store, "someone@else.com", order["orderId"])
    with pytest.raises(NotFoundError):
        track(order_store, "a@b.com", "ZULEUNKNOWN")
    with pytest.raises(NotFoundError):
        track(order_store, "A@B.COM", order["orderId"])


def test_track_requires_both_fields(order_store):
    with pytest.raises(ValidationError):
        track(order_store, None, "ZULE1")
    with pytest.raises(ValidationError):
        track(order_store, "a@b.com", "")


def test_mark_paid(order_store):
    order = _checkout(order_store)

    paid = mark_paid(order_store, order["orderId"], "ref-123")

    assert paid["status"] == "processing"
    assert paid["txHash"] == "ref-123"
    assert [t["completed"] for t in paid["timeline"]] == [True, True, False, False, False]
    assert paid["timeline"][1]["date"] == format_date(datetime.now())
    assert paid["timeline"][1]["time"] != "10:00 AM"
    assert paid["timeline"][2] == order["timeline"][2]


def test_mark_paid_unknown_order(order_store):
    with pytest.raises(NotFoundError):
        mark_paid(order_store, "ZULEUNKNOWN", "ref-123")


def test_order_total():
    order = {"items": [{"price": 0.5, "quantity": 2}, {"price": 0.25, "quantity": 1}]}
    assert order_total(order) == pytest.approx(1.25)
    assert order_total({"items": []}) == 0
