"""Partner assignment — manual, proximity-based and quick-create dispatch.

All three modes share one sequence of checks:

1. the order exists;
2. it has no partner yet;
3. it is allowed to enter ``assigned`` (it must be ``packed``);
4. a partner is resolved (looked up, searched for, or created);
5. the partner is active, available and has a free slot;
6. the order is bound and the partner's workload updated.

No partner is created and no workload is touched before checks 1-3 pass.
"""

import re
import time

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from dispatch.accounts import get_accounts
from dispatch.config import (
    auto_assign_radius_km,
    dispatch_center,
    partner_email_domain,
    partner_search_timeout_seconds,
    placeholder_password,
    quick_create_start_location,
    upstream_timeout_seconds,
)
from dispatch.domain import dispatch
from dispatch.errors import Conflict, NoPartnerAvailable, NotFound
from dispatch.order.order import Order
from dispatch.partner.partner import Partner
from dispatch.partner.registration import validate_vehicle_type
from dispatch.shared.location import GeoPoint

logger = structlog.get_logger(__name__)


@dispatch.command(part_of="Order")
class AssignPartner:
    """Bind a named partner, given by id or by partner code."""

    order_id = Identifier(required=True)
    partner_id = String(required=True, max_length=100)


@dispatch.command(part_of="Order")
class AutoAssignPartner:
    """Bind the nearest eligible partner to the order's delivery point."""

    order_id = Identifier(required=True)


@dispatch.command(part_of="Order")
class QuickCreateAndAssignPartner:
    """Create a placeholder account and partner on the spot, then bind it."""

    order_id = Identifier(required=True)
    name = String(required=True, max_length=100)
    phone = String(required=True, max_length=20)
    email = String(max_length=255)
    vehicle_type = String(max_length=20)
    vehicle_number = String(max_length=50)


# ---------------------------------------------------------------------------
# Partner resolution
# ---------------------------------------------------------------------------
def _load_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        raise NotFound("Order not found") from None


def find_partner(reference: str) -> Partner:
    """Look a partner up by id, falling back to its code."""
    repo = current_domain.repository_for(Partner)
    try:
        return repo.get(reference)
    except ObjectNotFoundError:
        partner = repo.find_by_code(reference)
        if partner is None:
            raise NotFound("Delivery partner not found") from None
        return partner


def nearest_partner(order: Order) -> Partner:
    """Nearest active partner with a free slot around the delivery point."""
    point = order.shipping_address.point if order.shipping_address else None
    if point is None:
        longitude, latitude = dispatch_center()
        point = GeoPoint(longitude=longitude, latitude=latitude)

    repo = current_domain.repository_for(Partner)
    for partner in repo.find_nearby(point, auto_assign_radius_km() * 1000, timeout=partner_search_timeout_seconds()):
        if partner.has_capacity:
            return partner
    raise NoPartnerAvailable("No available delivery partners found nearby")


def placeholder_email(name: str) -> str:
    """``Ravi Kumar`` → ``ravikumar@<partner email domain>``."""
    local = re.sub(r"\s+", "", name).lower()
    return f"{local}@{partner_email_domain()}"


def create_partner_on_the_fly(command: QuickCreateAndAssignPartner) -> Partner:
    validate_vehicle_type(command.vehicle_type)
    email = command.email or placeholder_email(command.name)
    user_id = get_accounts().create_placeholder_account(
        {"name": command.name, "email": email, "phone": command.phone},
        placeholder_password(),
        timeout=upstream_timeout_seconds(),
    )

    longitude, latitude = quick_create_start_location()
    partner = Partner.register(
        user_id=user_id,
        name=command.name,
        phone=command.phone,
        email=email,
        vehicle_type=command.vehicle_type,
        vehicle_number=command.vehicle_number or f"DL-{str(int(time.time() * 1000))[-4:]}",
        location=GeoPoint(longitude=longitude, latitude=latitude),
        rating=5.0,
    )
    logger.info("Partner created for assignment", partner_id=str(partner.id), code=partner.code)
    return partner


# ---------------------------------------------------------------------------
# Binding
# ---------------------------------------------------------------------------
def bind(order: Order, partner: Partner) -> str:
    if not partner.is_active:
        raise Conflict("Delivery partner is not active")
    if not partner.has_capacity:
        raise Conflict("Delivery partner is at maximum capacity")
    if not partner.is_eligible:
        raise Conflict("Delivery partner is not available")

    order.bind_partner(partner)
    partner.record_order_assigned(str(order.id))
    current_domain.repository_for(Order).add(order)
    current_domain.repository_for(Partner).add(partner)

    logger.info(
        "Partner assigned",
        order_id=str(order.id),
        partner_id=str(partner.id),
        active_orders=len(partner.current_orders),
    )
    return str(partner.id)


@dispatch.command_handler(part_of=Order)
class DispatchHandler:
    @handle(AssignPartner)
    def assign_partner(self, command):
        order = _load_order(command.order_id)
        order.assert_can_bind_partner()
        return bind(order, find_partner(command.partner_id))

    @handle(AutoAssignPartner)
    def auto_assign_partner(self, command):
        order = _load_order(command.order_id)
        order.assert_can_bind_partner()
        return bind(order, nearest_partner(order))

    @handle(QuickCreateAndAssignPartner)
    def quick_create_and_assign(self, command):
        order = _load_order(command.order_id)
        order.assert_can_bind_partner()
        return bind(order, create_partner_on_the_fly(command))
