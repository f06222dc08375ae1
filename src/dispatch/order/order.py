"""Order aggregate (CQRS) — one checkout and its delivery lifecycle.

State Machine:
    PENDING → CONFIRMED → PREPARING → PACKED → ASSIGNED → PICKED_UP →
    IN_TRANSIT → OUT_FOR_DELIVERY → DELIVERED
    PENDING → CANCELLED

Every status change appends exactly one tracking entry carrying the new
status; tracking entries are never edited or reordered. Item names and prices
are snapshots taken at checkout and do not follow later catalog edits.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from dispatch.domain import dispatch
from dispatch.errors import Conflict, InvalidState, InvalidTransition, TerminalState
from dispatch.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusAdvanced,
    PartnerBound,
    PaymentSettled,
)
from dispatch.shared.location import GeoPoint


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    PACKED = "packed"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(Enum):
    COD = "cod"
    UPI = "upi"
    CARD = "card"


class PaymentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING},
    OrderStatus.PREPARING: {OrderStatus.PACKED},
    OrderStatus.PACKED: {OrderStatus.ASSIGNED},
    OrderStatus.ASSIGNED: {OrderStatus.PICKED_UP},
    OrderStatus.PICKED_UP: {OrderStatus.IN_TRANSIT},
    OrderStatus.IN_TRANSIT: {OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
}

# Forward-only table used by auto-advance. Cancellation is never scripted.
_NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.CONFIRMED,
    OrderStatus.CONFIRMED: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.PACKED,
    OrderStatus.PACKED: OrderStatus.ASSIGNED,
    OrderStatus.ASSIGNED: OrderStatus.PICKED_UP,
    OrderStatus.PICKED_UP: OrderStatus.IN_TRANSIT,
    OrderStatus.IN_TRANSIT: OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.OUT_FOR_DELIVERY: OrderStatus.DELIVERED,
}

# Statuses in which the order occupies a slot in its partner's workload.
ACTIVE_DELIVERY_STATUSES = {
    OrderStatus.ASSIGNED,
    OrderStatus.PICKED_UP,
    OrderStatus.IN_TRANSIT,
    OrderStatus.OUT_FOR_DELIVERY,
}

# Minutes until delivery promised on entering these statuses.
_ETA_MINUTES = {
    OrderStatus.CONFIRMED: 30,
    OrderStatus.ASSIGNED: 25,
    OrderStatus.OUT_FOR_DELIVERY: 15,
}


def describe_status(status: str) -> str:
    """``out_for_delivery`` → ``out for delivery``."""
    return status.replace("_", " ")


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@dispatch.value_object(part_of="Order")
class ShippingAddress:
    """Where the order is delivered, captured at checkout.

    The optional coordinates are the delivery point used for proximity
    dispatch and ETA estimates.
    """

    address = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    longitude = Float(min_value=-180.0, max_value=180.0)
    latitude = Float(min_value=-90.0, max_value=90.0)

    @property
    def point(self) -> GeoPoint | None:
        if self.longitude is None or self.latitude is None:
            return None
        return GeoPoint(longitude=self.longitude, latitude=self.latitude)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@dispatch.entity(part_of="Order")
class OrderItem:
    """One order line with the name and unit price frozen at checkout."""

    position = Integer(required=True, min_value=0)
    medicine_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)


@dispatch.entity(part_of="Order")
class TrackingEntry:
    """One immutable record in the order's status history."""

    sequence = Integer(required=True, min_value=0)
    status = String(required=True, choices=OrderStatus)
    timestamp = DateTime(required=True)
    location = ValueObject(GeoPoint)
    message = String(max_length=500)

    def to_payload(self) -> dict:
        return {
            "status": self.status,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "location": self.location.to_payload() if self.location else None,
            "message": self.message,
        }


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@dispatch.aggregate
class Order:
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)
    delivery_instructions = String(max_length=500)
    payment_method = String(required=True, choices=PaymentMethod)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_reference = String(max_length=100)
    is_paid = Boolean(default=False)
    paid_at = DateTime()
    items_price = Float(default=0.0, min_value=0.0)
    tax_price = Float(default=0.0, min_value=0.0)
    shipping_price = Float(default=0.0, min_value=0.0)
    total_price = Float(default=0.0, min_value=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    delivery_partner_id = Identifier()
    delivery_tracking = HasMany(TrackingEntry)
    estimated_delivery_time = DateTime()
    actual_delivery_time = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def assigned_orders_have_a_partner(self):
        if self.status in {s.value for s in ACTIVE_DELIVERY_STATUSES} and not self.delivery_partner_id:
            raise ValidationError({"delivery_partner_id": ["An order in delivery must have a partner"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id: str,
        items_data: list[dict],
        shipping_address: dict,
        payment_method: str,
        delivery_instructions: str | None = None,
    ):
        """Create an order from priced line snapshots.

        ``items_data`` entries carry ``medicine_id``, ``name``, ``unit_price``
        and ``quantity``. Prepaid UPI orders start ``confirmed``.
        """
        now = datetime.now(UTC)
        items_price = round(sum(i["unit_price"] * i["quantity"] for i in items_data), 2)
        tax_price = 0.0
        shipping_price = 0.0
        prepaid = payment_method == PaymentMethod.UPI.value

        order = cls(
            customer_id=customer_id,
            shipping_address=ShippingAddress(**shipping_address),
            delivery_instructions=delivery_instructions,
            payment_method=payment_method,
            payment_status=(PaymentStatus.COMPLETED if prepaid else PaymentStatus.PENDING).value,
            is_paid=prepaid,
            items_price=items_price,
            tax_price=tax_price,
            shipping_price=shipping_price,
            total_price=round(items_price + tax_price + shipping_price, 2),
            status=(OrderStatus.CONFIRMED if prepaid else OrderStatus.PENDING).value,
            estimated_delivery_time=now + timedelta(minutes=_ETA_MINUTES[OrderStatus.CONFIRMED]) if prepaid else None,
            created_at=now,
            updated_at=now,
        )
        for position, item_data in enumerate(items_data):
            order.add_items(OrderItem(position=position, **item_data))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_id=str(customer_id),
                status=order.status,
                payment_method=payment_method,
                payment_status=order.payment_status,
                is_paid=order.is_paid,
                items=json.dumps(items_data),
                items_price=order.items_price,
                total_price=order.total_price,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_owned_by(self, user_id: str | None) -> bool:
        return user_id is not None and str(self.customer_id) == str(user_id)

    def ordered_items(self) -> list[OrderItem]:
        return sorted(self.items or [], key=lambda i: i.position)

    def tracking_history(self) -> list[TrackingEntry]:
        return sorted(self.delivery_tracking or [], key=lambda e: e.sequence)

    def latest_tracking(self) -> TrackingEntry | None:
        history = self.tracking_history()
        return history[-1] if history else None

    def next_status(self) -> OrderStatus:
        """The status auto-advance would move to next."""
        current = OrderStatus(self.status)
        if current not in _NEXT_STATUS:
            raise TerminalState(f"Cannot progress from status: {current.value}")
        return _NEXT_STATUS[current]

    @property
    def is_in_delivery(self) -> bool:
        return OrderStatus(self.status) in ACTIVE_DELIVERY_STATUSES

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(f"Cannot transition from {current.value} to {target_status.value}")
        if target_status == OrderStatus.ASSIGNED and not self.delivery_partner_id:
            raise InvalidTransition("A delivery partner must be bound before the order is assigned")

    def _apply_transition(self, target_status: OrderStatus, message: str, location: GeoPoint | None, now: datetime):
        """Move to ``target_status``, apply its side effects and log it."""
        self.status = target_status.value
        self.updated_at = now

        minutes = _ETA_MINUTES.get(target_status)
        if target_status == OrderStatus.CONFIRMED:
            if self.estimated_delivery_time is None:
                self.estimated_delivery_time = now + timedelta(minutes=minutes)
        elif minutes is not None:
            self.estimated_delivery_time = now + timedelta(minutes=minutes)
        if target_status == OrderStatus.DELIVERED:
            self.actual_delivery_time = now

        entry = TrackingEntry(
            sequence=len(self.delivery_tracking or []),
            status=target_status.value,
            timestamp=now,
            location=location,
            message=message,
        )
        self.add_delivery_tracking(entry)
        return entry

    # -------------------------------------------------------------------
    # Status progression
    # -------------------------------------------------------------------
    def advance_to(
        self,
        status: str,
        message: str | None = None,
        location: GeoPoint | None = None,
        automatic: bool = False,
    ) -> TrackingEntry:
        """Move one permitted step forward and record it."""
        try:
            target = OrderStatus(status)
        except ValueError:
            raise InvalidTransition(f"Unknown order status: {status}") from None
        if target == OrderStatus.CANCELLED:
            raise InvalidTransition("Orders are cancelled through cancellation, not status updates")
        self._assert_can_transition(target)

        previous = self.status
        now = datetime.now(UTC)
        if message is None:
            suffix = " automatically" if automatic else ""
            message = f"Order {describe_status(target.value)}{suffix}"
        entry = self._apply_transition(target, message, location, now)

        self.raise_(
            OrderStatusAdvanced(
                order_id=str(self.id),
                previous_status=previous,
                status=self.status,
                message=message,
                longitude=location.longitude if location else None,
                latitude=location.latitude if location else None,
                automatic=automatic,
                delivery_partner_id=str(self.delivery_partner_id) if self.delivery_partner_id else None,
                estimated_delivery_time=self.estimated_delivery_time,
                actual_delivery_time=self.actual_delivery_time,
                occurred_at=now,
            )
        )
        return entry

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    def assert_can_bind_partner(self) -> None:
        """Fail before any partner is resolved or created."""
        if self.delivery_partner_id:
            raise Conflict("A delivery partner is already assigned to this order")
        current = OrderStatus(self.status)
        if OrderStatus.ASSIGNED not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(f"Cannot transition from {current.value} to {OrderStatus.ASSIGNED.value}")

    def bind_partner(self, partner) -> TrackingEntry:
        """Bind ``partner`` and move to ``assigned`` in one step."""
        self.assert_can_bind_partner()

        previous = self.status
        now = datetime.now(UTC)
        self.delivery_partner_id = str(partner.id)
        location = partner.current_location
        message = f"Assigned to {partner.name}"
        entry = self._apply_transition(OrderStatus.ASSIGNED, message, location, now)

        self.raise_(
            PartnerBound(
                order_id=str(self.id),
                previous_status=previous,
                partner_id=str(partner.id),
                partner_name=partner.name,
                partner_phone=partner.phone,
                profile_photo=partner.profile_photo,
                vehicle_type=partner.vehicle_type,
                vehicle_number=partner.vehicle_number,
                rating=partner.rating,
                message=message,
                longitude=location.longitude if location else None,
                latitude=location.latitude if location else None,
                estimated_delivery_time=self.estimated_delivery_time,
                bound_at=now,
            )
        )
        return entry

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, cancelled_by: str) -> None:
        """Cancel a pending order. Stock release is the caller's job."""
        current = OrderStatus(self.status)
        if current != OrderStatus.PENDING:
            raise InvalidState(f"Cannot cancel order in {current.value} status")

        now = datetime.now(UTC)
        self._apply_transition(OrderStatus.CANCELLED, "Order cancelled", None, now)
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                customer_id=str(self.customer_id),
                cancelled_by=str(cancelled_by),
                items=json.dumps([{"medicine_id": str(i.medicine_id), "quantity": i.quantity} for i in self.ordered_items()]),
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def settle_payment(self, payment_reference: str) -> bool:
        """Record the gateway callback. Returns False when already settled."""
        if self.paid_at is not None:
            return False
        if OrderStatus(self.status) == OrderStatus.CANCELLED:
            raise InvalidState("Cannot settle payment for a cancelled order")

        now = datetime.now(UTC)
        self.is_paid = True
        self.payment_status = PaymentStatus.COMPLETED.value
        self.paid_at = now
        self.payment_reference = payment_reference
        self.updated_at = now
        self.raise_(
            PaymentSettled(
                order_id=str(self.id),
                payment_method=self.payment_method,
                payment_reference=payment_reference,
                paid_at=now,
            )
        )
        return True
