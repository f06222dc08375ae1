"""Integration tests for the order board and dashboard projections."""

from datetime import UTC, datetime

from protean import current_domain

from dispatch.assignment.assignment import AssignPartner
from dispatch.order.cancellation import CancelOrder
from dispatch.order.payment import SettlePayment
from dispatch.order.progression import AutoAdvanceOrder
from dispatch.projections.dashboard import current_stats
from dispatch.projections.order_board import OrderBoard


def _auto(order_id, times):
    for _ in range(times):
        current_domain.process(AutoAdvanceOrder(order_id=order_id), asynchronous=False)


def _deliver(order_id, partner_id):
    _auto(order_id, 3)
    current_domain.process(AssignPartner(order_id=order_id, partner_id=partner_id), asynchronous=False)
    _auto(order_id, 4)


class TestOrderBoard:
    def test_row_created_on_placement(self, catalog, paracetamol, place_order):
        order_id = place_order(items=[{"medicine_id": paracetamol, "quantity": 3}])

        row = current_domain.repository_for(OrderBoard).get(order_id)
        assert row.status == "pending"
        assert row.customer_id == "cust-1"
        assert row.item_count == 3
        assert row.total_price == 75.0
        assert row.is_paid is False

    def test_row_follows_status_and_partner(self, place_order, register_partner):
        order_id = place_order()
        partner_id = register_partner(name="Ravi Kumar")
        _auto(order_id, 3)
        current_domain.process(AssignPartner(order_id=order_id, partner_id=partner_id), asynchronous=False)

        row = current_domain.repository_for(OrderBoard).get(order_id)
        assert row.status == "assigned"
        assert row.partner_id == partner_id
        assert row.partner_name == "Ravi Kumar"
        assert row.estimated_delivery_time is not None

    def test_cancellation(self, place_order):
        order_id = place_order()
        current_domain.process(CancelOrder(order_id=order_id, requester_id="cust-1"), asynchronous=False)
        assert current_domain.repository_for(OrderBoard).get(order_id).status == "cancelled"

    def test_payment(self, place_order):
        order_id = place_order()
        current_domain.process(SettlePayment(order_id=order_id), asynchronous=False)

        row = current_domain.repository_for(OrderBoard).get(order_id)
        assert row.is_paid is True
        assert row.payment_status == "completed"


class TestDashboardStats:
    def test_empty_dashboard(self):
        stats = current_stats()
        assert stats.total_orders == 0
        assert stats.total_profit == 0.0
        assert stats.counts() == {}

    def test_counts_follow_the_lifecycle(self, place_order, register_partner):
        delivered = place_order()
        place_order()
        cancelled = place_order()
        current_domain.process(CancelOrder(order_id=cancelled, requester_id="cust-1"), asynchronous=False)
        _deliver(delivered, register_partner())

        stats = current_stats()
        assert stats.total_orders == 3
        assert stats.delivered_orders == 1
        assert stats.cancelled_orders == 1
        assert stats.counts() == {"pending": 1, "cancelled": 1, "delivered": 1}

    def test_revenue_and_profit_from_delivered_orders(self, catalog, paracetamol, place_order, register_partner):
        order_id = place_order(items=[{"medicine_id": paracetamol, "quantity": 4}])
        _deliver(order_id, register_partner())

        stats = current_stats()
        assert stats.total_revenue == 100.0
        assert stats.total_profit == 30.0
        month = datetime.now(UTC).strftime("%Y-%m")
        assert stats.monthly() == {month: {"total": 100.0, "count": 1}}
