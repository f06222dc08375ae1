"""Partner domain events — facts about delivery partner state changes."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from dispatch.domain import dispatch


@dispatch.event(part_of="Partner")
class PartnerRegistered:
    """A delivery partner was registered against a user account."""

    __version__ = 1

    partner_id = Identifier(required=True)
    code = String(required=True)
    user_id = Identifier(required=True)
    name = String(required=True)
    vehicle_type = String(required=True)
    zone = String()
    registered_at = DateTime(required=True)


@dispatch.event(part_of="Partner")
class PartnerLocationUpdated:
    """A partner reported a new position.

    ``current_orders`` lets subscribers of those orders be notified without a
    second lookup.
    """

    __version__ = 1

    partner_id = Identifier(required=True)
    name = String(required=True)
    vehicle_type = String()
    longitude = Float(required=True)
    latitude = Float(required=True)
    current_orders = Text()  # JSON list of order ids
    updated_at = DateTime(required=True)


@dispatch.event(part_of="Partner")
class PartnerAvailabilityChanged:
    __version__ = 1

    partner_id = Identifier(required=True)
    is_available = Boolean(required=True)
    active_orders = Integer(required=True)
    changed_at = DateTime(required=True)


@dispatch.event(part_of="Partner")
class PartnerRated:
    __version__ = 1

    partner_id = Identifier(required=True)
    score = Integer(required=True)
    rating = Float(required=True)
    total_deliveries = Integer(required=True)
    rated_at = DateTime(required=True)


@dispatch.event(part_of="Partner")
class PartnerDeactivated:
    __version__ = 1

    partner_id = Identifier(required=True)
    deactivated_at = DateTime(required=True)
