"""Shared BDD fixtures and step definitions for the dispatch domain."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from dispatch.errors import DispatchError
from dispatch.order.events import OrderCancelled, OrderPlaced, OrderStatusAdvanced, PartnerBound, PaymentSettled
from dispatch.order.order import Order
from dispatch.partner.partner import Partner
from dispatch.shared.location import GeoPoint

_ORDER_EVENT_CLASSES = {
    "OrderPlaced": OrderPlaced,
    "OrderStatusAdvanced": OrderStatusAdvanced,
    "PartnerBound": PartnerBound,
    "OrderCancelled": OrderCancelled,
    "PaymentSettled": PaymentSettled,
}

_DEFAULT_ITEMS = [
    {"medicine_id": "med-amox", "name": "Amoxicillin 250mg", "unit_price": 10.0, "quantity": 2},
    {"medicine_id": "med-ors", "name": "ORS Sachet", "unit_price": 5.0, "quantity": 1},
]

_ADDRESS = {
    "address": "Block A, Connaught Place",
    "city": "New Delhi",
    "postal_code": "110001",
    "country": "India",
    "longitude": 77.2167,
    "latitude": 28.6315,
}


@pytest.fixture()
def error():
    """Container for captured dispatch errors."""
    return {"exc": None}


@pytest.fixture()
def attempt(error):
    """Run an action and keep the dispatch error it raises, if any."""

    def _attempt(action, *args, **kwargs):
        try:
            return action(*args, **kwargs)
        except DispatchError as exc:
            error["exc"] = exc
            return None

    return _attempt


@pytest.fixture()
def make_partner():
    """Factory for an in-memory partner standing near Janpath."""

    def _make(name="Ravi Kumar"):
        partner = Partner.register(
            user_id=f"user-{name.lower().replace(' ', '-')}",
            name=name,
            phone="9876543210",
            email="rider@example.com",
            vehicle_number="DL-1234",
            location=GeoPoint(longitude=77.2090, latitude=28.6139),
        )
        partner._events.clear()
        return partner

    return _make


def _new_order(payment_method):
    order = Order.place(
        customer_id="cust-bdd",
        items_data=_DEFAULT_ITEMS,
        shipping_address=_ADDRESS,
        payment_method=payment_method,
    )
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a pending "{payment_method}" order'), target_fixture="order")
def pending_order(payment_method):
    return _new_order(payment_method)


@given("a packed order", target_fixture="order")
def packed_order():
    order = _new_order("cod")
    for status in ("confirmed", "preparing", "packed"):
        order.advance_to(status)
    order._events.clear()
    return order


@given(parsers.cfparse('the medicine "{name}" with {stock:d} units in stock'), target_fixture="medicine_id")
def medicine_in_stock(catalog, name, stock):
    return catalog.add_medicine(name, price=25.0, stock=stock)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then(parsers.cfparse('the stored order status is "{status}"'))
def stored_order_status_is(order_id, status):
    assert current_domain.repository_for(Order).get(order_id).status == status


@then(parsers.cfparse("the action fails with {kind}"))
def action_fails_with(error, kind):
    assert error["exc"] is not None, f"Expected {kind} but nothing was raised"
    assert error["exc"].kind == kind


@then(parsers.cfparse("a {event_type} event is raised"))
def order_event_raised(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in order._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in order._events]}"


@then("no event is raised")
def no_event_raised(order):
    assert order._events == []


@then(parsers.cfparse("the order has {count:d} tracking entries"))
def order_has_n_tracking_entries(order, count):
    assert len(order.delivery_tracking) == count


@then(parsers.cfparse('the latest tracking entry reads "{message}"'))
def latest_tracking_reads(order, message):
    assert order.latest_tracking().message == message


@then(parsers.cfparse('"{name}" has {stock:d} units in stock'))
def units_in_stock(catalog, medicine_id, name, stock):
    assert catalog.stock_of(medicine_id) == stock
