"""Order placement — command and handler.

Everything that can be validated is validated before the first stock
decrement. Stock is then reserved line by line; if any line cannot be
reserved, the lines already reserved by this request are returned to stock
before the error propagates.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from dispatch.catalog import get_catalog
from dispatch.config import upi_settlement_delay_seconds, upstream_timeout_seconds
from dispatch.domain import dispatch
from dispatch.errors import InvalidInput, NotFound
from dispatch.geo import is_valid_coordinate
from dispatch.order.order import Order, PaymentMethod
from dispatch.scheduling.task import ScheduledTask, TaskKind

logger = structlog.get_logger(__name__)

_PAYMENT_METHODS = [m.value for m in PaymentMethod]
_ADDRESS_FIELDS = ("address", "city", "postal_code", "country")


@dispatch.command(part_of="Order")
class PlaceOrder:
    """Check out a cart of medicines."""

    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON list of {medicine_id, quantity}
    shipping_address = Text(required=True)  # JSON object
    payment_method = String(required=True, max_length=20)
    delivery_instructions = String(max_length=500)


def _load_json(raw, field_name):
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        raise InvalidInput(f"Malformed {field_name}") from None


def validate_payment_method(payment_method: str) -> None:
    if payment_method not in _PAYMENT_METHODS:
        raise InvalidInput(f"Invalid payment method. Must be one of: {', '.join(_PAYMENT_METHODS)}")


def validate_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise InvalidInput("No order items")
    lines = []
    for item in items:
        if not isinstance(item, dict) or not item.get("medicine_id"):
            raise InvalidInput("Each item must name a medicine")
        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidInput("Item quantities must be positive whole numbers")
        lines.append({"medicine_id": str(item["medicine_id"]), "quantity": quantity})
    return lines


def validate_shipping_address(address) -> dict:
    if not isinstance(address, dict):
        raise InvalidInput("Shipping address is required")
    missing = [f for f in _ADDRESS_FIELDS if not address.get(f)]
    if missing:
        raise InvalidInput(f"Missing required shipping address fields: {', '.join(missing)}")

    cleaned = {f: str(address[f]) for f in _ADDRESS_FIELDS}
    longitude, latitude = address.get("longitude"), address.get("latitude")
    if longitude is not None or latitude is not None:
        if not is_valid_coordinate(longitude, latitude):
            raise InvalidInput("Shipping address coordinates are invalid")
        cleaned["longitude"], cleaned["latitude"] = float(longitude), float(latitude)
    return cleaned


def reserve_stock(catalog, lines: list[dict], timeout: float | None = None) -> None:
    """Decrement stock for every line, or for none of them."""
    reserved = []
    try:
        for line in lines:
            catalog.decrement_stock(line["medicine_id"], line["quantity"], timeout=timeout)
            reserved.append(line)
    except Exception:
        release_stock(catalog, reserved, timeout)
        raise


def release_stock(catalog, lines: list[dict], timeout: float | None = None) -> int:
    """Return stock for each line, best effort. Returns how many lines failed."""
    failures = 0
    for line in lines:
        try:
            catalog.increment_stock(line["medicine_id"], line["quantity"], timeout=timeout)
        except Exception as exc:
            failures += 1
            logger.error(
                "Stock release failed",
                medicine_id=line["medicine_id"],
                quantity=line["quantity"],
                error=str(exc),
            )
    return failures


@dispatch.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        validate_payment_method(command.payment_method)
        lines = validate_items(_load_json(command.items, "items"))
        address = validate_shipping_address(_load_json(command.shipping_address, "shipping address"))

        catalog = get_catalog()
        timeout = upstream_timeout_seconds()
        snapshots = {}
        for line in lines:
            medicine = catalog.find_by_id(line["medicine_id"], timeout=timeout)
            if medicine is None:
                raise NotFound(f"Medicine not found: {line['medicine_id']}")
            snapshots[line["medicine_id"]] = medicine

        reserve_stock(catalog, lines, timeout)

        items_data = [
            {
                "medicine_id": line["medicine_id"],
                "name": snapshots[line["medicine_id"]].name,
                "unit_price": snapshots[line["medicine_id"]].price,
                "quantity": line["quantity"],
            }
            for line in lines
        ]
        try:
            order = Order.place(
                customer_id=str(command.customer_id),
                items_data=items_data,
                shipping_address=address,
                payment_method=command.payment_method,
                delivery_instructions=command.delivery_instructions,
            )
            current_domain.repository_for(Order).add(order)
        except Exception:
            release_stock(catalog, lines, timeout)
            raise

        if command.payment_method == PaymentMethod.UPI.value:
            task = ScheduledTask.schedule(
                TaskKind.SETTLE_UPI_PAYMENT,
                target_id=str(order.id),
                delay_seconds=upi_settlement_delay_seconds(),
            )
            current_domain.repository_for(ScheduledTask).add(task)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            customer_id=str(command.customer_id),
            payment_method=command.payment_method,
            total_price=order.total_price,
        )
        return str(order.id)
