"""Partner location pings — command and handler.

A ping overwrites the partner's last known position. Order subscribers are
informed through the fan-out reacting to ``PartnerLocationUpdated``.
"""

from protean import handle
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.errors import InvalidInput
from dispatch.geo import is_valid_coordinate
from dispatch.partner.partner import Partner
from dispatch.shared.location import GeoPoint


@dispatch.command(part_of="Partner")
class UpdatePartnerLocation:
    partner_id = Identifier(required=True)
    longitude = Float(required=True)
    latitude = Float(required=True)


@dispatch.command_handler(part_of=Partner)
class PartnerLocationHandler:
    @handle(UpdatePartnerLocation)
    def update_location(self, command):
        if not is_valid_coordinate(command.longitude, command.latitude):
            raise InvalidInput("Longitude and latitude must be valid coordinates")

        repo = current_domain.repository_for(Partner)
        partner = repo.get(command.partner_id)
        partner.update_location(GeoPoint(longitude=command.longitude, latitude=command.latitude))
        repo.add(partner)
