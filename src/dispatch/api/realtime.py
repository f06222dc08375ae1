"""WebSocket endpoint — clients join order or admin groups and receive frames.

Inbound messages:
    {"action": "joinOrderRoom", "orderId": "..."}
    {"action": "leaveOrderRoom", "orderId": "..."}
    {"action": "joinAdminRoom"}            (requires X-User-Role: admin)

Outbound frames are ``{"type", "payload", "ts"}`` as produced by the hub,
plus ``{"type": "error", "payload": {"message"}}`` for rejected requests.
"""

import asyncio
import contextlib
import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from dispatch.config import realtime_queue_size
from dispatch.order.cancellation import ADMIN_ROLE
from dispatch.realtime import get_realtime
from dispatch.realtime.hub import QueueSubscriber
from dispatch.realtime.port import ADMIN_GROUP, order_group

logger = structlog.get_logger(__name__)

realtime_router = APIRouter(tags=["realtime"])


async def _pump(websocket: WebSocket, subscriber: QueueSubscriber) -> None:
    while True:
        frame = await subscriber.next_frame()
        await websocket.send_json(frame)


def _error(message: str) -> dict:
    return {"type": "error", "payload": {"message": message}}


def _handle_message(subscriber: QueueSubscriber, message: dict, role: str | None) -> None:
    hub = get_realtime()
    action = message.get("action") if isinstance(message, dict) else None

    if action == "joinOrderRoom" and message.get("orderId"):
        hub.subscribe(order_group(message["orderId"]), subscriber)
        subscriber.deliver({"type": "joined", "payload": {"room": order_group(message["orderId"])}})
    elif action == "leaveOrderRoom" and message.get("orderId"):
        hub.unsubscribe(order_group(message["orderId"]), subscriber)
        subscriber.deliver({"type": "left", "payload": {"room": order_group(message["orderId"])}})
    elif action == "joinAdminRoom":
        if role != ADMIN_ROLE:
            subscriber.deliver(_error("Admin access required"))
            return
        hub.subscribe(ADMIN_GROUP, subscriber)
        subscriber.deliver({"type": "joined", "payload": {"room": ADMIN_GROUP}})
    else:
        subscriber.deliver(_error("Unknown action"))


@realtime_router.websocket("/ws")
async def realtime_socket(websocket: WebSocket):
    await websocket.accept()
    role = websocket.headers.get("x-user-role")
    subscriber = QueueSubscriber(maxsize=realtime_queue_size())
    pump = asyncio.create_task(_pump(websocket, subscriber))
    logger.info("Realtime client connected", role=role)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                subscriber.deliver(_error("Malformed message"))
                continue
            _handle_message(subscriber, message, role)
    except WebSocketDisconnect:
        logger.info("Realtime client disconnected")
    finally:
        get_realtime().unsubscribe_all(subscriber)
        pump.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await pump
