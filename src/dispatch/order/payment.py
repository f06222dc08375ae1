"""Payment settlement — command and handler.

The gateway callback (or the UPI settlement task) records the transaction
reference and ``paid_at``. Settling an already settled order is a no-op, so
the callback may be delivered more than once.
"""

import time

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.order import Order

logger = structlog.get_logger(__name__)


def generate_transaction_reference() -> str:
    return f"TXN{int(time.time() * 1000)}"


@dispatch.command(part_of="Order")
class SettlePayment:
    order_id = Identifier(required=True)
    payment_reference = String(max_length=100)


def settle_order_payment(order_id: str, payment_reference: str | None = None) -> bool:
    """Settle ``order_id`` through its repository. Returns False if already settled."""
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)
    settled = order.settle_payment(payment_reference or generate_transaction_reference())
    if settled:
        repo.add(order)
        logger.info("Payment settled", order_id=str(order_id), payment_reference=order.payment_reference)
    else:
        logger.info("Payment already settled", order_id=str(order_id))
    return settled


@dispatch.command_handler(part_of=Order)
class SettlePaymentHandler:
    @handle(SettlePayment)
    def settle_payment(self, command):
        settle_order_payment(str(command.order_id), command.payment_reference)
