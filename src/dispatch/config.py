"""Engine settings read from the environment.

Protean's own configuration (databases, brokers, processing modes) lives in
``domain.toml`` next to this module; these are the dispatch-specific knobs.
"""

import os

# Max orders a partner may carry at once; availability is derived from it.
MAX_CONCURRENT_ORDERS = 3


def _float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return float(raw)


def auto_assign_radius_km() -> float:
    """Search radius for proximity-based auto-assignment."""
    return _float("AUTO_ASSIGN_RADIUS_KM", 10.0)


def upi_settlement_delay_seconds() -> float:
    """Delay before a simulated UPI gateway callback settles the payment."""
    return _float("UPI_SETTLEMENT_DELAY_SECONDS", 3.0)


def dispatch_center() -> tuple[float, float]:
    """(longitude, latitude) used when an order's address has no coordinates."""
    return (
        _float("DISPATCH_CENTER_LONGITUDE", 77.1025),
        _float("DISPATCH_CENTER_LATITUDE", 28.7041),
    )


def quick_create_start_location() -> tuple[float, float]:
    """(longitude, latitude) given to partners created on the fly."""
    return (
        _float("QUICK_CREATE_START_LONGITUDE", 77.2090),
        _float("QUICK_CREATE_START_LATITUDE", 28.6139),
    )


def partner_email_domain() -> str:
    return os.environ.get("PARTNER_EMAIL_DOMAIN", "delivery.sara.com")


def placeholder_password() -> str:
    return os.environ.get("PLACEHOLDER_PASSWORD", "delivery123")


def task_poll_interval_seconds() -> float:
    return _float("TASK_POLL_INTERVAL_SECONDS", 1.0)


def realtime_queue_size() -> int:
    """Outbound frames buffered per WebSocket connection before dropping."""
    return int(_float("REALTIME_QUEUE_SIZE", 100))


def upstream_timeout_seconds() -> float:
    """Per-call budget for catalog and identity service requests."""
    return _float("UPSTREAM_TIMEOUT_SECONDS", 5.0)


def partner_search_timeout_seconds() -> float:
    return _float("PARTNER_SEARCH_TIMEOUT_SECONDS", 2.0)
