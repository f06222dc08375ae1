"""Pydantic API schemas for the dispatch engine.

These are the external API contracts — separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field, RootModel


# ---------------------------------------------------------------------------
# Request schemas: orders
# ---------------------------------------------------------------------------
class OrderItemRequest(BaseModel):
    medicine_id: str
    quantity: int


class ShippingAddressRequest(BaseModel):
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None
    longitude: float | None = None
    latitude: float | None = None


class PlaceOrderRequest(BaseModel):
    items: list[OrderItemRequest]
    shipping_address: ShippingAddressRequest
    payment_method: str
    delivery_instructions: str | None = None


class AdvanceStatusRequest(BaseModel):
    status: str
    message: str | None = None
    longitude: float | None = None
    latitude: float | None = None


class DeliveryLocationRequest(BaseModel):
    longitude: float
    latitude: float


class SettlePaymentRequest(BaseModel):
    payment_reference: str | None = None


# ---------------------------------------------------------------------------
# Request schemas: assignment (tagged by ``mode``)
# ---------------------------------------------------------------------------
class ManualAssignment(BaseModel):
    mode: Literal["manual"]
    partner_id: str


class AutoAssignment(BaseModel):
    mode: Literal["auto"]


class QuickCreateAssignment(BaseModel):
    mode: Literal["quick_create"]
    name: str
    phone: str
    email: str | None = None
    vehicle_type: str | None = None
    vehicle_number: str | None = None


class AssignmentRequest(
    RootModel[
        Annotated[
            ManualAssignment | AutoAssignment | QuickCreateAssignment,
            Field(discriminator="mode"),
        ]
    ]
):
    """One of the three assignment modes, selected by ``mode``."""


# ---------------------------------------------------------------------------
# Request schemas: partners
# ---------------------------------------------------------------------------
class RegisterPartnerRequest(BaseModel):
    user_id: str
    name: str
    phone: str
    email: str
    vehicle_number: str
    vehicle_type: str | None = None
    zone: str | None = None
    longitude: float | None = None
    latitude: float | None = None


class PartnerLocationRequest(BaseModel):
    longitude: float
    latitude: float


class PartnerAvailabilityRequest(BaseModel):
    is_available: bool


class RatePartnerRequest(BaseModel):
    score: int
    order_id: str | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class PartnerIdResponse(BaseModel):
    partner_id: str


class StatusResponse(BaseModel):
    status: str


class TrackingEntryResponse(BaseModel):
    status: str
    timestamp: str | None = None
    location: dict | None = None
    message: str | None = None


class OrderItemResponse(BaseModel):
    medicine_id: str
    name: str
    unit_price: float
    quantity: int


class OrderResponse(BaseModel):
    order_id: str
    customer_id: str
    status: str
    items: list[OrderItemResponse]
    shipping_address: dict | None = None
    delivery_instructions: str | None = None
    payment_method: str
    payment_status: str
    payment_reference: str | None = None
    is_paid: bool
    paid_at: str | None = None
    items_price: float
    tax_price: float
    shipping_price: float
    total_price: float
    delivery_partner_id: str | None = None
    delivery_tracking: list[TrackingEntryResponse]
    estimated_delivery_time: str | None = None
    actual_delivery_time: str | None = None
    created_at: str | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    pages: int


class PartnerResponse(BaseModel):
    partner_id: str
    code: str
    user_id: str
    name: str
    phone: str
    email: str
    profile_photo: str | None = None
    vehicle_type: str
    vehicle_number: str
    zone: str | None = None
    current_location: dict | None = None
    last_location_update: str | None = None
    is_active: bool
    is_available: bool
    current_orders: list[str]
    rating: float
    total_deliveries: int
    joined_at: str | None = None


class PartnerListResponse(BaseModel):
    partners: list[PartnerResponse]
    total: int
    page: int
    pages: int


class LiveTrackingResponse(BaseModel):
    order_id: str
    status: str
    created_at: str | None = None
    estimated_delivery_time: str | None = None
    actual_delivery_time: str | None = None
    time_remaining: int | None = None
    total_price: float
    items: list[OrderItemResponse]
    delivery_partner: dict | None = None
    tracking: list[TrackingEntryResponse]
    shipping_address: dict | None = None


class PartnerOrderResponse(BaseModel):
    order_id: str
    customer_id: str
    shipping_address: dict | None = None
    items: list[dict]
    total_price: float
    status: str
    estimated_delivery_time: str | None = None
    created_at: str | None = None


class AssignmentResponse(BaseModel):
    order_id: str
    partner_id: str
    status: str


class OrderBoardRow(BaseModel):
    order_id: str
    customer_id: str
    status: str
    payment_method: str | None = None
    payment_status: str | None = None
    is_paid: bool
    total_price: float
    item_count: int
    partner_id: str | None = None
    partner_name: str | None = None
    estimated_delivery_time: str | None = None
    placed_at: str | None = None


class OrderBoardResponse(BaseModel):
    orders: list[OrderBoardRow]
    total: int


class DashboardResponse(BaseModel):
    total_orders: int
    delivered_orders: int
    cancelled_orders: int
    total_revenue: float
    total_profit: float
    status_distribution: dict
    monthly_revenue: dict
