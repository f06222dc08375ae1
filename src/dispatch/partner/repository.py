"""Repository for the Partner aggregate — lookups and the proximity query."""

import time

import structlog

from dispatch.domain import dispatch
from dispatch.errors import UpstreamFailure
from dispatch.geo import bounding_box, distance_km, meters_to_km
from dispatch.partner.partner import Partner
from dispatch.shared.location import GeoPoint

logger = structlog.get_logger(__name__)

# Upper bound on candidates scanned by a single query.
_SCAN_LIMIT = 1000


@dispatch.repository(part_of=Partner)
class PartnerRepository:
    def find_by_code(self, code: str) -> Partner | None:
        return self._dao.query.filter(code=code).all().first

    def find_by_user(self, user_id: str) -> Partner | None:
        return self._dao.query.filter(user_id=user_id).all().first

    def _eligible(self, **filters) -> list[Partner]:
        results = self._dao.query.filter(is_active=True, is_available=True, **filters).limit(_SCAN_LIMIT).all()
        if results.total > len(results.items):
            logger.warning("Partner scan truncated", scanned=len(results.items), matching=results.total)
        return results.items

    def find_available(self) -> list[Partner]:
        return self._eligible()

    def find_nearby(self, point: GeoPoint, max_distance_m: float, timeout: float | None = None) -> list[Partner]:
        """Active and available partners within ``max_distance_m``, nearest first.

        Only partners inside the bounding box of the search circle are loaded.
        Partners that have never reported a location are skipped. When
        ``timeout`` seconds pass before the scan completes the search is
        abandoned with ``UpstreamFailure``.
        """
        deadline = time.monotonic() + timeout if timeout is not None else None
        radius_km = meters_to_km(max_distance_m)
        min_lon, min_lat, max_lon, max_lat = bounding_box(point.longitude, point.latitude, radius_km)

        candidates = []
        for partner in self._eligible(
            current_location_longitude__gte=min_lon,
            current_location_longitude__lte=max_lon,
            current_location_latitude__gte=min_lat,
            current_location_latitude__lte=max_lat,
        ):
            if deadline is not None and time.monotonic() >= deadline:
                raise UpstreamFailure("Partner search timed out")
            location = partner.current_location
            if location is None:
                continue
            distance = distance_km(point.latitude, point.longitude, location.latitude, location.longitude)
            if distance <= radius_km:
                candidates.append((distance, partner))

        candidates.sort(key=lambda pair: pair[0])
        return [partner for _, partner in candidates]

    def list_partners(
        self,
        is_active: bool | None = None,
        zone: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Partner], int]:
        """One page of partners, newest first, with the total match count."""
        filters = {}
        if is_active is not None:
            filters["is_active"] = is_active
        if zone:
            filters["zone"] = zone

        query = self._dao.query.filter(**filters) if filters else self._dao.query
        results = query.order_by("-joined_at").offset((page - 1) * limit).limit(limit).all()
        return results.items, results.total
