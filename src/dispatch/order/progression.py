"""Status progression — manual and automatic advance commands and handler."""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.order import Order, OrderStatus
from dispatch.partner.partner import Partner
from dispatch.shared.location import point_from

logger = structlog.get_logger(__name__)


@dispatch.command(part_of="Order")
class AdvanceOrderStatus:
    """Move an order to an explicitly named next status."""

    order_id = Identifier(required=True)
    status = String(required=True, max_length=30)
    message = String(max_length=500)
    longitude = Float()
    latitude = Float()


@dispatch.command(part_of="Order")
class AutoAdvanceOrder:
    """Move an order to whatever status follows its current one."""

    order_id = Identifier(required=True)


def _release_partner_slot(order: Order) -> None:
    """Free the bound partner's slot once the order is delivered."""
    if order.status != OrderStatus.DELIVERED.value or not order.delivery_partner_id:
        return
    partner_repo = current_domain.repository_for(Partner)
    partner = partner_repo.get(order.delivery_partner_id)
    partner.record_order_completed(str(order.id))
    partner_repo.add(partner)


@dispatch.command_handler(part_of=Order)
class OrderProgressionHandler:
    @handle(AdvanceOrderStatus)
    def advance_status(self, command):
        location = point_from(command.longitude, command.latitude)
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.status

        order.advance_to(command.status, message=command.message, location=location)
        repo.add(order)
        _release_partner_slot(order)

        logger.info("Order status advanced", order_id=str(order.id), previous=previous, status=order.status)
        return order.status

    @handle(AutoAdvanceOrder)
    def auto_advance(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.status

        order.advance_to(order.next_status().value, automatic=True)
        repo.add(order)
        _release_partner_slot(order)

        logger.info("Order auto-advanced", order_id=str(order.id), previous=previous, status=order.status)
        return order.status
