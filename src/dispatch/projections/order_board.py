"""Order board — admin-facing list of orders with their delivery state."""

import json

from protean.core.projector import on
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusAdvanced,
    PartnerBound,
    PaymentSettled,
)
from dispatch.order.order import Order


@dispatch.projection
class OrderBoard:
    order_id = Identifier(identifier=True, required=True)
    customer_id = Identifier(required=True)
    status = String(required=True)
    payment_method = String()
    payment_status = String()
    is_paid = Boolean(default=False)
    total_price = Float(default=0.0)
    item_count = Integer(default=0)
    partner_id = Identifier()
    partner_name = String()
    estimated_delivery_time = DateTime()
    placed_at = DateTime()
    updated_at = DateTime()


@dispatch.projector(projector_for=OrderBoard, aggregates=[Order])
class OrderBoardProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        items = json.loads(event.items)
        current_domain.repository_for(OrderBoard).add(
            OrderBoard(
                order_id=event.order_id,
                customer_id=event.customer_id,
                status=event.status,
                payment_method=event.payment_method,
                payment_status=event.payment_status,
                is_paid=event.is_paid,
                total_price=event.total_price,
                item_count=sum(i["quantity"] for i in items),
                placed_at=event.placed_at,
                updated_at=event.placed_at,
            )
        )

    @on(OrderStatusAdvanced)
    def on_status_advanced(self, event):
        repo = current_domain.repository_for(OrderBoard)
        row = repo.get(event.order_id)
        row.status = event.status
        row.estimated_delivery_time = event.estimated_delivery_time
        row.updated_at = event.occurred_at
        repo.add(row)

    @on(PartnerBound)
    def on_partner_bound(self, event):
        repo = current_domain.repository_for(OrderBoard)
        row = repo.get(event.order_id)
        row.status = "assigned"
        row.partner_id = event.partner_id
        row.partner_name = event.partner_name
        row.estimated_delivery_time = event.estimated_delivery_time
        row.updated_at = event.bound_at
        repo.add(row)

    @on(OrderCancelled)
    def on_order_cancelled(self, event):
        repo = current_domain.repository_for(OrderBoard)
        row = repo.get(event.order_id)
        row.status = "cancelled"
        row.updated_at = event.cancelled_at
        repo.add(row)

    @on(PaymentSettled)
    def on_payment_settled(self, event):
        repo = current_domain.repository_for(OrderBoard)
        row = repo.get(event.order_id)
        row.payment_status = "completed"
        row.is_paid = True
        row.updated_at = event.paid_at
        repo.add(row)
