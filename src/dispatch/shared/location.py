"""GeoPoint value object shared by orders and partners."""

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Float

from dispatch.domain import dispatch
from dispatch.errors import InvalidInput
from dispatch.geo import is_valid_coordinate


@dispatch.value_object
class GeoPoint:
    """A longitude/latitude pair in GeoJSON order.

    Both coordinates are required; partial points are rejected.
    """

    longitude = Float(min_value=-180.0, max_value=180.0)
    latitude = Float(min_value=-90.0, max_value=90.0)

    @invariant.post
    def both_coordinates_required(self):
        if self.longitude is None or self.latitude is None:
            raise ValidationError({"location": ["Both longitude and latitude are required"]})

    @classmethod
    def from_pair(cls, coordinates):
        """Build from a ``[longitude, latitude]`` sequence."""
        longitude, latitude = coordinates
        return cls(longitude=float(longitude), latitude=float(latitude))

    def as_pair(self) -> list[float]:
        return [self.longitude, self.latitude]

    def to_payload(self) -> dict:
        return {"type": "Point", "coordinates": self.as_pair()}


def point_from(longitude, latitude) -> GeoPoint | None:
    """Validate raw request coordinates. Both absent means no location."""
    if longitude is None and latitude is None:
        return None
    if not is_valid_coordinate(longitude, latitude):
        raise InvalidInput("Longitude and latitude must be valid coordinates")
    return GeoPoint(longitude=longitude, latitude=latitude)
