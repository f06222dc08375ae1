"""Partner aggregate (CQRS) — a delivery agent and its current workload.

A Partner is distinct from the user account backing it. Its availability is
derived from its workload: ``is_available`` is recomputed every time an order
is added to or removed from ``current_orders``, and both ``is_active`` and
``is_available`` must hold for the partner to receive new orders.
"""

import json
import secrets
import time
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, List, String, ValueObject

from dispatch.config import MAX_CONCURRENT_ORDERS
from dispatch.domain import dispatch
from dispatch.errors import InvalidInput
from dispatch.partner.events import (
    PartnerAvailabilityChanged,
    PartnerDeactivated,
    PartnerLocationUpdated,
    PartnerRated,
    PartnerRegistered,
)
from dispatch.shared.location import GeoPoint

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class VehicleType(Enum):
    BIKE = "bike"
    SCOOTER = "scooter"
    BICYCLE = "bicycle"
    CAR = "car"


def _to_base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_partner_code() -> str:
    """Short human-readable code, e.g. ``SPLZ8K2M1QA3F09B1C``."""
    timestamp = _to_base36(int(time.time() * 1000))
    return f"SP{timestamp}{secrets.token_hex(4)}".upper()


@dispatch.aggregate
class Partner:
    user_id = Identifier(required=True, unique=True)
    code = String(required=True, max_length=50, unique=True)
    name = String(required=True, max_length=100)
    phone = String(required=True, max_length=20)
    email = String(required=True, max_length=255)
    profile_photo = String(max_length=500, default="https://via.placeholder.com/150")
    vehicle_type = String(choices=VehicleType, default=VehicleType.BIKE.value)
    vehicle_number = String(required=True, max_length=50)
    zone = String(max_length=50, default="central")
    current_location = ValueObject(GeoPoint)
    last_location_update = DateTime()
    is_active = Boolean(default=True)
    is_available = Boolean(default=True)
    current_orders = List(content_type=String, default=list)
    rating = Float(min_value=1.0, max_value=5.0, default=5.0)
    total_deliveries = Integer(min_value=0, default=0)
    joined_at = DateTime()

    @invariant.post
    def workload_cannot_exceed_capacity(self):
        if len(self.current_orders or []) > MAX_CONCURRENT_ORDERS:
            raise ValidationError(
                {"current_orders": [f"A partner can carry at most {MAX_CONCURRENT_ORDERS} orders"]}
            )

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def register(
        cls,
        user_id: str,
        name: str,
        phone: str,
        email: str,
        vehicle_number: str,
        vehicle_type: str | None = None,
        zone: str | None = None,
        location: GeoPoint | None = None,
        rating: float = 5.0,
    ):
        """Create a partner with a freshly generated code."""
        now = datetime.now(UTC)
        partner = cls(
            user_id=user_id,
            code=generate_partner_code(),
            name=name,
            phone=phone,
            email=email,
            vehicle_type=vehicle_type or VehicleType.BIKE.value,
            vehicle_number=vehicle_number,
            zone=zone or "central",
            current_location=location,
            last_location_update=now if location else None,
            rating=rating,
            total_deliveries=0,
            joined_at=now,
        )
        partner.raise_(
            PartnerRegistered(
                partner_id=str(partner.id),
                code=partner.code,
                user_id=str(user_id),
                name=name,
                vehicle_type=partner.vehicle_type,
                zone=partner.zone,
                registered_at=now,
            )
        )
        return partner

    @property
    def is_eligible(self) -> bool:
        return bool(self.is_active and self.is_available)

    @property
    def has_capacity(self) -> bool:
        return len(self.current_orders or []) < MAX_CONCURRENT_ORDERS

    # -------------------------------------------------------------------
    # Location
    # -------------------------------------------------------------------
    def update_location(self, location: GeoPoint) -> None:
        """Overwrite the last known position. No staleness or jump checks."""
        now = datetime.now(UTC)
        self.current_location = location
        self.last_location_update = now
        self.raise_(
            PartnerLocationUpdated(
                partner_id=str(self.id),
                name=self.name,
                vehicle_type=self.vehicle_type,
                longitude=location.longitude,
                latitude=location.latitude,
                current_orders=json.dumps(list(self.current_orders or [])),
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Availability and workload
    # -------------------------------------------------------------------
    def set_availability(self, is_available: bool) -> None:
        """Direct override of the availability flag."""
        self.is_available = bool(is_available)
        self._announce_availability()

    def record_order_assigned(self, order_id: str) -> None:
        orders = list(self.current_orders or [])
        if order_id not in orders:
            orders.append(order_id)
        self.current_orders = orders
        self._recompute_availability()

    def record_order_completed(self, order_id: str) -> None:
        self.current_orders = [o for o in (self.current_orders or []) if o != order_id]
        self._recompute_availability()

    def _recompute_availability(self) -> None:
        was_available = self.is_available
        self.is_available = self.has_capacity
        if was_available != self.is_available:
            self._announce_availability()

    def _announce_availability(self) -> None:
        self.raise_(
            PartnerAvailabilityChanged(
                partner_id=str(self.id),
                is_available=self.is_available,
                active_orders=len(self.current_orders or []),
                changed_at=datetime.now(UTC),
            )
        )

    def deactivate(self) -> None:
        self.is_active = False
        self.raise_(PartnerDeactivated(partner_id=str(self.id), deactivated_at=datetime.now(UTC)))

    # -------------------------------------------------------------------
    # Rating
    # -------------------------------------------------------------------
    def apply_rating(self, score: int) -> None:
        """Fold one delivery score into the running average."""
        if isinstance(score, bool) or not isinstance(score, int | float) or not 1 <= score <= 5:
            raise InvalidInput("Rating must be between 1 and 5")

        count = self.total_deliveries or 0
        current = self.rating if self.rating is not None else 5.0
        new_rating = round((current * count + score) / (count + 1), 1)
        self.rating = min(5.0, max(1.0, new_rating))
        self.total_deliveries = count + 1
        self.raise_(
            PartnerRated(
                partner_id=str(self.id),
                score=int(score),
                rating=self.rating,
                total_deliveries=self.total_deliveries,
                rated_at=datetime.now(UTC),
            )
        )

    def to_summary(self) -> dict:
        """Customer-facing partner details shown on the tracking screen."""
        return {
            "name": self.name,
            "phone": self.phone,
            "profilePhoto": self.profile_photo,
            "vehicleType": self.vehicle_type,
            "vehicleNumber": self.vehicle_number,
            "rating": self.rating,
            "currentLocation": self.current_location.to_payload() if self.current_location else None,
        }
