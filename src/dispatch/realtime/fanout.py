"""Realtime fan-out — turns order and partner events into push frames.

The order group ``order:<id>`` receives tracking detail; the ``admin`` group
receives status deltas with the current total order count. A failure here is
logged and swallowed: the change that raised the event is already committed.
"""

import json

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from dispatch.domain import dispatch
from dispatch.geo import distance_km, estimate_eta_minutes, format_duration
from dispatch.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusAdvanced,
    PartnerBound,
    PaymentSettled,
)
from dispatch.order.order import Order
from dispatch.partner.events import PartnerLocationUpdated
from dispatch.partner.partner import Partner
from dispatch.realtime import get_realtime
from dispatch.realtime.port import ADMIN_GROUP, order_group

logger = structlog.get_logger(__name__)


def _iso(value):
    return value.isoformat() if value is not None else None


def _point(longitude, latitude):
    if longitude is None or latitude is None:
        return None
    return {"type": "Point", "coordinates": [longitude, latitude]}


def publish(group: str, event_name: str, payload: dict) -> None:
    try:
        get_realtime().publish(group, event_name, payload)
    except Exception as exc:
        logger.error("Realtime publish failed", group=group, event_name=event_name, error=str(exc))


def total_orders() -> int | None:
    try:
        return current_domain.repository_for(Order).count_all()
    except Exception as exc:
        logger.error("Order count unavailable", error=str(exc))
        return None


@dispatch.event_handler(part_of=Order)
class OrderFanout:
    """Publishes order lifecycle changes to customers and admins."""

    @handle(OrderPlaced)
    def order_placed(self, event: OrderPlaced) -> None:
        publish(
            ADMIN_GROUP,
            "orderCreated",
            {
                "order": {
                    "_id": str(event.order_id),
                    "user": str(event.customer_id),
                    "status": event.status,
                    "paymentMethod": event.payment_method,
                    "paymentStatus": event.payment_status,
                    "isPaid": event.is_paid,
                    "items": json.loads(event.items),
                    "itemsPrice": event.items_price,
                    "totalPrice": event.total_price,
                    "createdAt": _iso(event.placed_at),
                },
                "totalOrders": total_orders(),
            },
        )

    @handle(OrderStatusAdvanced)
    def status_advanced(self, event: OrderStatusAdvanced) -> None:
        publish(
            order_group(event.order_id),
            "orderTrackingUpdate",
            {
                "orderId": str(event.order_id),
                "status": event.status,
                "tracking": {
                    "status": event.status,
                    "timestamp": _iso(event.occurred_at),
                    "location": _point(event.longitude, event.latitude),
                    "message": event.message,
                },
                "estimatedDeliveryTime": _iso(event.estimated_delivery_time),
                "actualDeliveryTime": _iso(event.actual_delivery_time),
            },
        )
        self._status_changed(event.order_id, event.previous_status, event.status)

    @handle(PartnerBound)
    def partner_bound(self, event: PartnerBound) -> None:
        publish(
            order_group(event.order_id),
            "deliveryPartnerAssigned",
            {
                "orderId": str(event.order_id),
                "deliveryPartner": {
                    "_id": str(event.partner_id),
                    "name": event.partner_name,
                    "phone": event.partner_phone,
                    "profilePhoto": event.profile_photo,
                    "vehicleType": event.vehicle_type,
                    "vehicleNumber": event.vehicle_number,
                    "rating": event.rating,
                    "currentLocation": _point(event.longitude, event.latitude),
                },
                "estimatedDeliveryTime": _iso(event.estimated_delivery_time),
            },
        )
        self._status_changed(event.order_id, event.previous_status, "assigned")

    @handle(OrderCancelled)
    def order_cancelled(self, event: OrderCancelled) -> None:
        publish(
            order_group(event.order_id),
            "orderUpdate",
            {
                "orderId": str(event.order_id),
                "updates": {"status": "cancelled", "updatedAt": _iso(event.cancelled_at)},
            },
        )
        publish(ADMIN_GROUP, "orderCancelled", {"orderId": str(event.order_id), "totalOrders": total_orders()})

    @handle(PaymentSettled)
    def payment_settled(self, event: PaymentSettled) -> None:
        publish(
            order_group(event.order_id),
            "orderUpdate",
            {
                "orderId": str(event.order_id),
                "updates": {
                    "paymentStatus": "completed",
                    "isPaid": True,
                    "paidAt": _iso(event.paid_at),
                    "paymentReference": event.payment_reference,
                },
            },
        )

    def _status_changed(self, order_id, old_status, new_status) -> None:
        publish(
            ADMIN_GROUP,
            "orderStatusChanged",
            {
                "orderId": str(order_id),
                "oldStatus": old_status,
                "newStatus": new_status,
                "totalOrders": total_orders(),
            },
        )


def _eta_minutes(order_id: str, event: PartnerLocationUpdated) -> int | None:
    """Minutes from the partner's new position to the order's delivery point."""
    try:
        order = current_domain.repository_for(Order).get(order_id)
    except Exception as exc:
        logger.warning("ETA skipped, order unavailable", order_id=order_id, error=str(exc))
        return None
    destination = order.shipping_address.point if order.shipping_address else None
    if destination is None:
        return None
    distance = distance_km(event.latitude, event.longitude, destination.latitude, destination.longitude)
    return estimate_eta_minutes(distance, event.vehicle_type)


@dispatch.event_handler(part_of=Partner)
class PartnerFanout:
    """Forwards partner position updates to every order the partner carries."""

    @handle(PartnerLocationUpdated)
    def location_updated(self, event: PartnerLocationUpdated) -> None:
        order_ids = json.loads(event.current_orders) if event.current_orders else []
        for order_id in order_ids:
            eta = _eta_minutes(order_id, event)
            publish(
                order_group(order_id),
                "deliveryPartnerLocationUpdate",
                {
                    "orderId": order_id,
                    "location": {"latitude": event.latitude, "longitude": event.longitude},
                    "timestamp": _iso(event.updated_at),
                    "partnerName": event.name,
                    "etaMinutes": eta,
                    "etaText": format_duration(eta) if eta is not None else None,
                },
            )
