"""Dashboard statistics — admin totals, status distribution and revenue."""

import json
from datetime import datetime

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer, Text
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.events import OrderCancelled, OrderPlaced, OrderStatusAdvanced, PartnerBound
from dispatch.order.order import Order

# Single row holding platform-wide totals.
DASHBOARD_ID = "all"

# Share of delivered revenue reported as profit.
PROFIT_MARGIN = 0.3


@dispatch.projection
class DashboardStats:
    id = Identifier(identifier=True)
    total_orders = Integer(default=0)
    delivered_orders = Integer(default=0)
    cancelled_orders = Integer(default=0)
    total_revenue = Float(default=0.0)
    status_counts = Text()  # JSON object status -> count
    monthly_revenue = Text()  # JSON object YYYY-MM -> {total, count}
    updated_at = DateTime()

    @property
    def total_profit(self) -> float:
        return round((self.total_revenue or 0.0) * PROFIT_MARGIN, 2)

    def counts(self) -> dict:
        return json.loads(self.status_counts) if self.status_counts else {}

    def monthly(self) -> dict:
        return json.loads(self.monthly_revenue) if self.monthly_revenue else {}


def current_stats() -> DashboardStats:
    repo = current_domain.repository_for(DashboardStats)
    try:
        return repo.get(DASHBOARD_ID)
    except ObjectNotFoundError:
        return DashboardStats(
            id=DASHBOARD_ID,
            total_orders=0,
            delivered_orders=0,
            cancelled_orders=0,
            total_revenue=0.0,
            status_counts=json.dumps({}),
            monthly_revenue=json.dumps({}),
        )


def _move(view: DashboardStats, old_status: str | None, new_status: str) -> None:
    counts = view.counts()
    if old_status:
        counts[old_status] = max(0, counts.get(old_status, 0) - 1)
        if counts[old_status] == 0:
            del counts[old_status]
    counts[new_status] = counts.get(new_status, 0) + 1
    view.status_counts = json.dumps(counts)


def _month_key(dt: datetime) -> str:
    return dt.strftime("%Y-%m") if dt else ""


@dispatch.projector(projector_for=DashboardStats, aggregates=[Order])
class DashboardStatsProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        view = current_stats()
        view.total_orders = (view.total_orders or 0) + 1
        _move(view, None, event.status)
        view.updated_at = event.placed_at
        current_domain.repository_for(DashboardStats).add(view)

    @on(OrderStatusAdvanced)
    def on_status_advanced(self, event):
        view = current_stats()
        _move(view, event.previous_status, event.status)
        if event.status == "delivered":
            order = current_domain.repository_for(Order).get(event.order_id)
            view.delivered_orders = (view.delivered_orders or 0) + 1
            view.total_revenue = round((view.total_revenue or 0.0) + order.total_price, 2)

            # Revenue is bucketed by the month the order was placed.
            monthly = view.monthly()
            bucket = monthly.setdefault(_month_key(order.created_at), {"total": 0.0, "count": 0})
            bucket["total"] = round(bucket["total"] + order.total_price, 2)
            bucket["count"] += 1
            view.monthly_revenue = json.dumps(monthly)
        view.updated_at = event.occurred_at
        current_domain.repository_for(DashboardStats).add(view)

    @on(PartnerBound)
    def on_partner_bound(self, event):
        view = current_stats()
        _move(view, event.previous_status, "assigned")
        view.updated_at = event.bound_at
        current_domain.repository_for(DashboardStats).add(view)

    @on(OrderCancelled)
    def on_order_cancelled(self, event):
        view = current_stats()
        _move(view, "pending", "cancelled")
        view.cancelled_orders = (view.cancelled_orders or 0) + 1
        view.updated_at = event.cancelled_at
        current_domain.repository_for(DashboardStats).add(view)
