"""Partner registration — command and handler."""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from dispatch.accounts import get_accounts
from dispatch.config import upstream_timeout_seconds
from dispatch.domain import dispatch
from dispatch.errors import Conflict, InvalidInput, NotFound
from dispatch.partner.partner import Partner, VehicleType
from dispatch.shared.location import point_from

_VEHICLE_TYPES = {v.value for v in VehicleType}


@dispatch.command(part_of="Partner")
class RegisterPartner:
    """Register an existing user as a delivery partner."""

    user_id = Identifier(required=True)
    name = String(required=True, max_length=100)
    phone = String(required=True, max_length=20)
    email = String(required=True, max_length=255)
    vehicle_number = String(required=True, max_length=50)
    vehicle_type = String(max_length=20)
    zone = String(max_length=50)
    longitude = Float()
    latitude = Float()


def validate_vehicle_type(vehicle_type: str | None) -> None:
    if vehicle_type and vehicle_type not in _VEHICLE_TYPES:
        raise InvalidInput(f"Unknown vehicle type: {vehicle_type}")


@dispatch.command_handler(part_of=Partner)
class RegisterPartnerHandler:
    @handle(RegisterPartner)
    def register_partner(self, command):
        validate_vehicle_type(command.vehicle_type)
        location = point_from(command.longitude, command.latitude)

        if get_accounts().find_by_id(str(command.user_id), timeout=upstream_timeout_seconds()) is None:
            raise NotFound("User not found")

        repo = current_domain.repository_for(Partner)
        if repo.find_by_user(str(command.user_id)) is not None:
            raise Conflict("Delivery partner already exists for this user")

        partner = Partner.register(
            user_id=str(command.user_id),
            name=command.name,
            phone=command.phone,
            email=command.email,
            vehicle_number=command.vehicle_number,
            vehicle_type=command.vehicle_type,
            zone=command.zone,
            location=location,
        )
        repo.add(partner)
        return str(partner.id)
