"""Dispatch bounded context — Order Lifecycle and Delivery Dispatch.

Advances pharmacy orders through their delivery lifecycle, reconciles stock
reservations against cancellations, binds delivery partners to orders and
fans out lifecycle and location changes to realtime subscribers. Uses CQRS
(not event sourcing): orders and partners are persisted as current state, and
domain events drive the realtime fan-out and the admin projections.
"""

import structlog
from protean.domain import Domain

dispatch = Domain(name="dispatch")

logger = structlog.get_logger(__name__)
