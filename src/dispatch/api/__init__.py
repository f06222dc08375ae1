"""Dispatch engine API package."""

from dispatch.api.realtime import realtime_router
from dispatch.api.routes import admin_router, order_router, partner_router

__all__ = ["order_router", "partner_router", "admin_router", "realtime_router"]
