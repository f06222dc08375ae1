"""Order-scoped location pings and the live tracking helpers.

A delivery app reports its position against the order it is carrying; the
position is stored on the bound partner, whose ``PartnerLocationUpdated``
event reaches every order the partner is currently delivering.
"""

from datetime import UTC, datetime

from protean import handle
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.errors import InvalidInput, NotFound
from dispatch.geo import is_valid_coordinate
from dispatch.order.order import Order, OrderStatus
from dispatch.partner.partner import Partner
from dispatch.shared.location import GeoPoint


@dispatch.command(part_of="Order")
class ReportDeliveryLocation:
    order_id = Identifier(required=True)
    longitude = Float(required=True)
    latitude = Float(required=True)


def time_remaining_seconds(order: Order, now: datetime | None = None) -> int | None:
    """Seconds until the promised delivery time, floored at zero.

    None once the order is delivered or when no estimate exists.
    """
    if order.estimated_delivery_time is None or order.status == OrderStatus.DELIVERED.value:
        return None
    now = now or datetime.now(UTC)
    eta = order.estimated_delivery_time
    if eta.tzinfo is None:
        eta = eta.replace(tzinfo=UTC)
    return max(0, int((eta - now).total_seconds()))


@dispatch.command_handler(part_of=Order)
class DeliveryLocationHandler:
    @handle(ReportDeliveryLocation)
    def report_location(self, command):
        if not is_valid_coordinate(command.longitude, command.latitude):
            raise InvalidInput("Longitude and latitude must be valid coordinates")

        order = current_domain.repository_for(Order).get(command.order_id)
        if not order.delivery_partner_id:
            raise NotFound("Order or delivery partner not found")

        partner_repo = current_domain.repository_for(Partner)
        partner = partner_repo.get(order.delivery_partner_id)
        partner.update_location(GeoPoint(longitude=command.longitude, latitude=command.latitude))
        partner_repo.add(partner)
        return str(partner.id)
