"""Order cancellation — command, handler and stock release.

Only the owner or an admin may cancel, and only while the order is still
pending. Stock goes back to the catalog from the ``OrderCancelled`` handler,
which runs only once the cancellation has been committed; a writer that loses
the version check returns nothing. Release is best effort: a line that cannot
be returned is logged and the cancellation still stands.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from dispatch.catalog import get_catalog
from dispatch.config import upstream_timeout_seconds
from dispatch.domain import dispatch
from dispatch.errors import Forbidden
from dispatch.order.creation import release_stock
from dispatch.order.events import OrderCancelled
from dispatch.order.order import Order

logger = structlog.get_logger(__name__)

ADMIN_ROLE = "admin"


@dispatch.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    requester_role = String(max_length=20, default="user")


@dispatch.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if command.requester_role != ADMIN_ROLE and not order.is_owned_by(str(command.requester_id)):
            raise Forbidden("Not authorized to cancel this order")

        order.cancel(cancelled_by=str(command.requester_id))
        repo.add(order)


@dispatch.event_handler(part_of=Order)
class StockReleaseHandler:
    """Returns the stock of a cancelled order to the catalog."""

    @handle(OrderCancelled)
    def release_cancelled_stock(self, event: OrderCancelled) -> None:
        lines = json.loads(event.items)
        failures = release_stock(get_catalog(), lines, upstream_timeout_seconds())
        if failures:
            logger.warning("Stock partially released", order_id=str(event.order_id), failed_lines=failures)
        else:
            logger.info("Order cancelled and stock released", order_id=str(event.order_id), lines=len(lines))
