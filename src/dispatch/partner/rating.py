"""Partner rating — command and handler."""

from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.partner.partner import Partner


@dispatch.command(part_of="Partner")
class RatePartner:
    """Fold a 1-5 delivery score into the partner's running average."""

    partner_id = Identifier(required=True)
    score = Integer(required=True)
    order_id = Identifier()


@dispatch.command_handler(part_of=Partner)
class RatePartnerHandler:
    @handle(RatePartner)
    def rate_partner(self, command):
        repo = current_domain.repository_for(Partner)
        partner = repo.get(command.partner_id)
        partner.apply_rating(command.score)
        repo.add(partner)
