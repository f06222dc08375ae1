"""Order domain events — immutable facts about order lifecycle changes.

The realtime fan-out and the admin projections are driven entirely by these
events; neither reads the command that caused them.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from dispatch.domain import dispatch


@dispatch.event(part_of="Order")
class OrderPlaced:
    """A customer checked out and stock was reserved for every line."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    status = String(required=True)
    payment_method = String(required=True)
    payment_status = String(required=True)
    is_paid = Boolean(default=False)
    items = Text(required=True)  # JSON list of item snapshots
    items_price = Float(required=True)
    total_price = Float(required=True)
    placed_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderStatusAdvanced:
    """The order moved one step along its delivery lifecycle."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    message = String(max_length=500)
    longitude = Float()
    latitude = Float()
    automatic = Boolean(default=False)
    delivery_partner_id = Identifier()
    estimated_delivery_time = DateTime()
    actual_delivery_time = DateTime()
    occurred_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class PartnerBound:
    """A delivery partner was bound to the order, moving it to ``assigned``."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    partner_id = Identifier(required=True)
    partner_name = String(required=True)
    partner_phone = String()
    profile_photo = String()
    vehicle_type = String()
    vehicle_number = String()
    rating = Float()
    message = String(max_length=500)
    longitude = Float()
    latitude = Float()
    estimated_delivery_time = DateTime()
    bound_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    cancelled_by = Identifier(required=True)
    items = Text(required=True)  # JSON list of {medicine_id, quantity}
    cancelled_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class PaymentSettled:
    """The payment gateway confirmed the payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_method = String(required=True)
    payment_reference = String(required=True)
    paid_at = DateTime(required=True)
