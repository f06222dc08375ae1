"""BDD tests for the order lifecycle."""

import pytest
from pytest_bdd import parsers, scenarios, then, when

from dispatch.errors import TerminalState

scenarios("features/order_lifecycle.feature")


@when(parsers.cfparse('the order is advanced to "{status}"'), target_fixture="order")
def advance_order(order, status, attempt):
    attempt(order.advance_to, status)
    return order


@when(parsers.cfparse('the order is advanced through "{statuses}"'), target_fixture="order")
def advance_through(order, statuses):
    for status in statuses.split(", "):
        order.advance_to(status)
    return order


@when(parsers.cfparse('"{name}" is bound to the order'), target_fixture="order")
def bind_partner(order, name, make_partner):
    order.bind_partner(make_partner(name))
    return order


@when("the customer cancels the order", target_fixture="order")
def cancel_order(order, attempt):
    attempt(order.cancel, "cust-bdd")
    return order


@then(parsers.cfparse("the order totals {total:f} and is unpaid"))
def order_totals(order, total):
    assert order.total_price == total
    assert order.items_price == total
    assert order.is_paid is False


@then("the order is paid with a delivery estimate")
def order_is_paid(order):
    assert order.is_paid is True
    assert order.payment_status == "completed"
    assert order.estimated_delivery_time is not None


@then("the delivery time is recorded")
def delivery_time_recorded(order):
    assert order.actual_delivery_time is not None


@then("the order cannot progress any further")
def order_is_terminal(order):
    with pytest.raises(TerminalState):
        order.next_status()
