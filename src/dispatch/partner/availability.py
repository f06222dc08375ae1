"""Partner availability and deactivation — commands and handler."""

from protean import handle
from protean.fields import Boolean, Identifier
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.partner.partner import Partner


@dispatch.command(part_of="Partner")
class SetPartnerAvailability:
    """Manually override a partner's availability flag."""

    partner_id = Identifier(required=True)
    is_available = Boolean(required=True)


@dispatch.command(part_of="Partner")
class DeactivatePartner:
    partner_id = Identifier(required=True)


@dispatch.command_handler(part_of=Partner)
class PartnerAvailabilityHandler:
    @handle(SetPartnerAvailability)
    def set_availability(self, command):
        repo = current_domain.repository_for(Partner)
        partner = repo.get(command.partner_id)
        partner.set_availability(command.is_available)
        repo.add(partner)

    @handle(DeactivatePartner)
    def deactivate(self, command):
        repo = current_domain.repository_for(Partner)
        partner = repo.get(command.partner_id)
        partner.deactivate()
        repo.add(partner)
