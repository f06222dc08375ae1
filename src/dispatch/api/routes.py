"""FastAPI routes for the dispatch engine.

Thin adapters that translate HTTP requests into domain commands. The caller's
identity arrives in ``X-User-Id`` / ``X-User-Role`` headers set by the auth
gateway in front of this service.
"""

import json
import math

from fastapi import APIRouter, Header, Query
from protean.utils.globals import current_domain

from dispatch.api.schemas import (
    AdvanceStatusRequest,
    AssignmentRequest,
    AssignmentResponse,
    AutoAssignment,
    DashboardResponse,
    DeliveryLocationRequest,
    LiveTrackingResponse,
    ManualAssignment,
    OrderBoardResponse,
    OrderBoardRow,
    OrderIdResponse,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    PartnerAvailabilityRequest,
    PartnerIdResponse,
    PartnerListResponse,
    PartnerLocationRequest,
    PartnerOrderResponse,
    PartnerResponse,
    PlaceOrderRequest,
    RatePartnerRequest,
    RegisterPartnerRequest,
    SettlePaymentRequest,
    StatusResponse,
    TrackingEntryResponse,
)
from dispatch.assignment.assignment import (
    AssignPartner,
    AutoAssignPartner,
    QuickCreateAndAssignPartner,
    find_partner,
)
from dispatch.config import partner_search_timeout_seconds
from dispatch.errors import Forbidden
from dispatch.order.cancellation import ADMIN_ROLE, CancelOrder
from dispatch.order.creation import PlaceOrder
from dispatch.order.order import Order
from dispatch.order.payment import SettlePayment
from dispatch.order.progression import AdvanceOrderStatus, AutoAdvanceOrder
from dispatch.order.tracking import ReportDeliveryLocation, time_remaining_seconds
from dispatch.partner.availability import DeactivatePartner, SetPartnerAvailability
from dispatch.partner.location import UpdatePartnerLocation
from dispatch.partner.partner import Partner
from dispatch.partner.rating import RatePartner
from dispatch.partner.registration import RegisterPartner
from dispatch.projections.dashboard import current_stats
from dispatch.projections.order_board import OrderBoard
from dispatch.shared.location import point_from


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _iso(value):
    return value.isoformat() if value is not None else None


def _pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def _require_admin(role: str | None) -> None:
    if role != ADMIN_ROLE:
        raise Forbidden("Admin access required")


def _load_order(order_id: str, user_id: str | None, role: str | None) -> Order:
    order = current_domain.repository_for(Order).get(order_id)
    if role != ADMIN_ROLE and not order.is_owned_by(user_id):
        raise Forbidden("Not authorized to view this order")
    return order


def _items(order: Order) -> list[OrderItemResponse]:
    return [
        OrderItemResponse(
            medicine_id=str(item.medicine_id),
            name=item.name,
            unit_price=item.unit_price,
            quantity=item.quantity,
        )
        for item in order.ordered_items()
    ]


def _tracking(order: Order) -> list[TrackingEntryResponse]:
    return [TrackingEntryResponse(**entry.to_payload()) for entry in order.tracking_history()]


def _address(order: Order) -> dict | None:
    return order.shipping_address.to_dict() if order.shipping_address else None


def order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        customer_id=str(order.customer_id),
        status=order.status,
        items=_items(order),
        shipping_address=_address(order),
        delivery_instructions=order.delivery_instructions,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        payment_reference=order.payment_reference,
        is_paid=bool(order.is_paid),
        paid_at=_iso(order.paid_at),
        items_price=order.items_price,
        tax_price=order.tax_price,
        shipping_price=order.shipping_price,
        total_price=order.total_price,
        delivery_partner_id=str(order.delivery_partner_id) if order.delivery_partner_id else None,
        delivery_tracking=_tracking(order),
        estimated_delivery_time=_iso(order.estimated_delivery_time),
        actual_delivery_time=_iso(order.actual_delivery_time),
        created_at=_iso(order.created_at),
    )


def partner_response(partner: Partner) -> PartnerResponse:
    return PartnerResponse(
        partner_id=str(partner.id),
        code=partner.code,
        user_id=str(partner.user_id),
        name=partner.name,
        phone=partner.phone,
        email=partner.email,
        profile_photo=partner.profile_photo,
        vehicle_type=partner.vehicle_type,
        vehicle_number=partner.vehicle_number,
        zone=partner.zone,
        current_location=partner.current_location.to_payload() if partner.current_location else None,
        last_location_update=_iso(partner.last_location_update),
        is_active=bool(partner.is_active),
        is_available=bool(partner.is_available),
        current_orders=list(partner.current_orders or []),
        rating=partner.rating,
        total_deliveries=partner.total_deliveries or 0,
        joined_at=_iso(partner.joined_at),
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(body: PlaceOrderRequest, x_user_id: str = Header()) -> OrderIdResponse:
    """Check out: validate, reserve stock and create the order."""
    command = PlaceOrder(
        customer_id=x_user_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        shipping_address=json.dumps(body.shipping_address.model_dump(exclude_none=True)),
        payment_method=body.payment_method,
        delivery_instructions=body.delivery_instructions,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=result)


@order_router.get("/mine", response_model=OrderListResponse)
async def list_my_orders(
    x_user_id: str = Header(),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> OrderListResponse:
    orders, total = current_domain.repository_for(Order).find_for_customer(x_user_id, page=page, limit=limit)
    return OrderListResponse(
        orders=[order_response(o) for o in orders],
        total=total,
        page=page,
        pages=_pages(total, limit),
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> OrderResponse:
    return order_response(_load_order(order_id, x_user_id, x_user_role))


@order_router.get("/{order_id}/tracking", response_model=LiveTrackingResponse)
async def live_tracking(
    order_id: str,
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> LiveTrackingResponse:
    """Current status, partner, tracking history and seconds to the promised time."""
    order = _load_order(order_id, x_user_id, x_user_role)
    partner = None
    if order.delivery_partner_id:
        partner = current_domain.repository_for(Partner).get(order.delivery_partner_id).to_summary()
    return LiveTrackingResponse(
        order_id=str(order.id),
        status=order.status,
        created_at=_iso(order.created_at),
        estimated_delivery_time=_iso(order.estimated_delivery_time),
        actual_delivery_time=_iso(order.actual_delivery_time),
        time_remaining=time_remaining_seconds(order),
        total_price=order.total_price,
        items=_items(order),
        delivery_partner=partner,
        tracking=_tracking(order),
        shipping_address=_address(order),
    )


@order_router.put("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(
    order_id: str,
    x_user_id: str = Header(),
    x_user_role: str | None = Header(None),
) -> StatusResponse:
    command = CancelOrder(order_id=order_id, requester_id=x_user_id, requester_role=x_user_role or "user")
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="cancelled")


@order_router.put("/{order_id}/status", response_model=StatusResponse)
async def advance_status(
    order_id: str,
    body: AdvanceStatusRequest,
    x_user_role: str | None = Header(None),
) -> StatusResponse:
    """Move the order to the named next status (admin)."""
    _require_admin(x_user_role)
    command = AdvanceOrderStatus(
        order_id=order_id,
        status=body.status,
        message=body.message,
        longitude=body.longitude,
        latitude=body.latitude,
    )
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@order_router.put("/{order_id}/auto-advance", response_model=StatusResponse)
async def auto_advance(order_id: str, x_user_role: str | None = Header(None)) -> StatusResponse:
    """Move the order one step along the forward sequence (admin)."""
    _require_admin(x_user_role)
    command = AutoAdvanceOrder(order_id=order_id)
    return StatusResponse(status=current_domain.process(command, asynchronous=False))


@order_router.post("/{order_id}/assign", response_model=AssignmentResponse)
async def assign_partner(
    order_id: str,
    body: AssignmentRequest,
    x_user_role: str | None = Header(None),
) -> AssignmentResponse:
    """Bind a delivery partner: named, nearest, or created on the spot (admin)."""
    _require_admin(x_user_role)
    request = body.root
    if isinstance(request, ManualAssignment):
        command = AssignPartner(order_id=order_id, partner_id=request.partner_id)
    elif isinstance(request, AutoAssignment):
        command = AutoAssignPartner(order_id=order_id)
    else:
        command = QuickCreateAndAssignPartner(
            order_id=order_id,
            name=request.name,
            phone=request.phone,
            email=request.email,
            vehicle_type=request.vehicle_type,
            vehicle_number=request.vehicle_number,
        )
    partner_id = current_domain.process(command, asynchronous=False)
    return AssignmentResponse(order_id=order_id, partner_id=partner_id, status="assigned")


@order_router.put("/{order_id}/location", response_model=PartnerIdResponse)
async def report_delivery_location(order_id: str, body: DeliveryLocationRequest) -> PartnerIdResponse:
    """Position ping from the delivery app for the order it is carrying."""
    command = ReportDeliveryLocation(order_id=order_id, longitude=body.longitude, latitude=body.latitude)
    return PartnerIdResponse(partner_id=current_domain.process(command, asynchronous=False))


@order_router.post("/{order_id}/payment/settle", response_model=StatusResponse)
async def settle_payment(order_id: str, body: SettlePaymentRequest) -> StatusResponse:
    """Payment gateway callback."""
    command = SettlePayment(order_id=order_id, payment_reference=body.payment_reference)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="paid")


# ---------------------------------------------------------------------------
# Partner Router
# ---------------------------------------------------------------------------
partner_router = APIRouter(prefix="/partners", tags=["partners"])


@partner_router.post("", status_code=201, response_model=PartnerIdResponse)
async def register_partner(body: RegisterPartnerRequest, x_user_role: str | None = Header(None)) -> PartnerIdResponse:
    _require_admin(x_user_role)
    command = RegisterPartner(**body.model_dump())
    return PartnerIdResponse(partner_id=current_domain.process(command, asynchronous=False))


@partner_router.get("", response_model=PartnerListResponse)
async def list_partners(
    x_user_role: str | None = Header(None),
    status: str | None = Query(None, pattern="^(active|inactive)$"),
    zone: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> PartnerListResponse:
    """All partners, newest first (admin)."""
    _require_admin(x_user_role)
    is_active = None if status is None else status == "active"
    partners, total = current_domain.repository_for(Partner).list_partners(
        is_active=is_active, zone=zone, page=page, limit=limit
    )
    return PartnerListResponse(
        partners=[partner_response(p) for p in partners],
        total=total,
        page=page,
        pages=_pages(total, limit),
    )


@partner_router.get("/available", response_model=list[PartnerResponse])
async def available_partners() -> list[PartnerResponse]:
    return [partner_response(p) for p in current_domain.repository_for(Partner).find_available()]


@partner_router.get("/nearby", response_model=list[PartnerResponse])
async def nearby_partners(
    longitude: float,
    latitude: float,
    max_distance: float = Query(5000, gt=0),
) -> list[PartnerResponse]:
    """Eligible partners within ``max_distance`` metres, nearest first."""
    point = point_from(longitude, latitude)
    repo = current_domain.repository_for(Partner)
    return [
        partner_response(p) for p in repo.find_nearby(point, max_distance, timeout=partner_search_timeout_seconds())
    ]


@partner_router.get("/{partner_ref}", response_model=PartnerResponse)
async def get_partner(partner_ref: str) -> PartnerResponse:
    return partner_response(find_partner(partner_ref))


@partner_router.get("/{partner_ref}/orders", response_model=list[PartnerOrderResponse])
async def partner_current_orders(partner_ref: str) -> list[PartnerOrderResponse]:
    """Orders the partner is currently delivering, for the delivery app."""
    partner = find_partner(partner_ref)
    orders = current_domain.repository_for(Order).find_in_delivery_for_partner(str(partner.id))
    orders.sort(key=lambda o: o.created_at, reverse=True)
    return [
        PartnerOrderResponse(
            order_id=str(o.id),
            customer_id=str(o.customer_id),
            shipping_address=_address(o),
            items=[{"name": i.name, "quantity": i.quantity} for i in o.ordered_items()],
            total_price=o.total_price,
            status=o.status,
            estimated_delivery_time=_iso(o.estimated_delivery_time),
            created_at=_iso(o.created_at),
        )
        for o in orders
    ]


@partner_router.put("/{partner_ref}/location", response_model=StatusResponse)
async def update_partner_location(partner_ref: str, body: PartnerLocationRequest) -> StatusResponse:
    partner = find_partner(partner_ref)
    command = UpdatePartnerLocation(partner_id=str(partner.id), longitude=body.longitude, latitude=body.latitude)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="location_updated")


@partner_router.put("/{partner_ref}/availability", response_model=StatusResponse)
async def set_partner_availability(partner_ref: str, body: PartnerAvailabilityRequest) -> StatusResponse:
    partner = find_partner(partner_ref)
    command = SetPartnerAvailability(partner_id=str(partner.id), is_available=body.is_available)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="available" if body.is_available else "unavailable")


@partner_router.put("/{partner_ref}/deactivate", response_model=StatusResponse)
async def deactivate_partner(partner_ref: str, x_user_role: str | None = Header(None)) -> StatusResponse:
    _require_admin(x_user_role)
    partner = find_partner(partner_ref)
    current_domain.process(DeactivatePartner(partner_id=str(partner.id)), asynchronous=False)
    return StatusResponse(status="deactivated")


@partner_router.post("/{partner_ref}/rating", response_model=PartnerResponse)
async def rate_partner(partner_ref: str, body: RatePartnerRequest) -> PartnerResponse:
    partner = find_partner(partner_ref)
    command = RatePartner(partner_id=str(partner.id), score=body.score, order_id=body.order_id)
    current_domain.process(command, asynchronous=False)
    return partner_response(current_domain.repository_for(Partner).get(str(partner.id)))


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/orders", response_model=OrderBoardResponse)
async def order_board(
    x_user_role: str | None = Header(None),
    status: str | None = None,
) -> OrderBoardResponse:
    _require_admin(x_user_role)
    repo = current_domain.repository_for(OrderBoard)
    query = repo._dao.query.filter(status=status) if status else repo._dao.query
    rows = query.order_by("-placed_at").all().items
    return OrderBoardResponse(
        orders=[
            OrderBoardRow(
                order_id=str(r.order_id),
                customer_id=str(r.customer_id),
                status=r.status,
                payment_method=r.payment_method,
                payment_status=r.payment_status,
                is_paid=bool(r.is_paid),
                total_price=r.total_price or 0.0,
                item_count=r.item_count or 0,
                partner_id=str(r.partner_id) if r.partner_id else None,
                partner_name=r.partner_name,
                estimated_delivery_time=_iso(r.estimated_delivery_time),
                placed_at=_iso(r.placed_at),
            )
            for r in rows
        ],
        total=len(rows),
    )


@admin_router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(x_user_role: str | None = Header(None)) -> DashboardResponse:
    _require_admin(x_user_role)
    stats = current_stats()
    return DashboardResponse(
        total_orders=stats.total_orders or 0,
        delivered_orders=stats.delivered_orders or 0,
        cancelled_orders=stats.cancelled_orders or 0,
        total_revenue=stats.total_revenue or 0.0,
        total_profit=stats.total_profit,
        status_distribution=stats.counts(),
        monthly_revenue=stats.monthly(),
    )
