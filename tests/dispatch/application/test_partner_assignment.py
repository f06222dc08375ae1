"""Application tests for manual, automatic and quick-create assignment."""

import pytest
from protean import current_domain
from protean.exceptions import ExpectedVersionError

from dispatch.assignment.assignment import AssignPartner, AutoAssignPartner, QuickCreateAndAssignPartner
from dispatch.errors import Conflict, InvalidTransition, NoPartnerAvailable, NotFound
from dispatch.order.order import Order
from dispatch.order.progression import AutoAdvanceOrder
from dispatch.partner.availability import DeactivatePartner, SetPartnerAvailability
from dispatch.partner.partner import Partner

NEAR_CP = {
    "address": "Block A, Connaught Place",
    "city": "New Delhi",
    "postal_code": "110001",
    "country": "India",
    "longitude": 77.2167,
    "latitude": 28.6315,
}


def _packed_order(place_order, **kwargs):
    order_id = place_order(**kwargs)
    for _ in range(3):
        current_domain.process(AutoAdvanceOrder(order_id=order_id), asynchronous=False)
    return order_id


def _assign(order_id, partner_id):
    return current_domain.process(AssignPartner(order_id=order_id, partner_id=partner_id), asynchronous=False)


def _partner_count():
    return current_domain.repository_for(Partner)._dao.query.all().total


class TestManualAssignment:
    def test_binds_partner_and_assigns_order(self, place_order, register_partner):
        order_id = _packed_order(place_order)
        partner_id = register_partner(name="Ravi Kumar")

        assert _assign(order_id, partner_id) == partner_id

        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == "assigned"
        assert order.delivery_partner_id == partner_id
        entry = order.latest_tracking()
        assert entry.message == "Assigned to Ravi Kumar"
        assert entry.location.as_pair() == [77.2090, 28.6139]

        partner = current_domain.repository_for(Partner).get(partner_id)
        assert partner.current_orders == [order_id]

    def test_partner_can_be_named_by_code(self, place_order, register_partner):
        order_id = _packed_order(place_order)
        partner = current_domain.repository_for(Partner).get(register_partner())

        assert _assign(order_id, partner.code) == str(partner.id)

    def test_unknown_partner(self, place_order):
        order_id = _packed_order(place_order)
        with pytest.raises(NotFound):
            _assign(order_id, "no-such-partner")

    def test_unknown_order(self, register_partner):
        with pytest.raises(NotFound):
            _assign("no-such-order", register_partner())

    def test_order_must_be_packed(self, place_order, register_partner):
        order_id = place_order()
        partner_id = register_partner()

        with pytest.raises(InvalidTransition):
            _assign(order_id, partner_id)
        assert current_domain.repository_for(Partner).get(partner_id).current_orders == []

    def test_second_assignment_is_rejected(self, place_order, register_partner):
        order_id = _packed_order(place_order)
        first = register_partner(name="Ravi Kumar")
        second = register_partner(name="Anita Sharma")
        _assign(order_id, first)

        with pytest.raises(Conflict):
            _assign(order_id, second)

        assert current_domain.repository_for(Order).get(order_id).delivery_partner_id == first
        assert current_domain.repository_for(Partner).get(second).current_orders == []

    def test_inactive_partner_is_rejected(self, place_order, register_partner):
        order_id = _packed_order(place_order)
        partner_id = register_partner()
        current_domain.process(DeactivatePartner(partner_id=partner_id), asynchronous=False)

        with pytest.raises(Conflict, match="not active"):
            _assign(order_id, partner_id)

    def test_partner_marked_unavailable_is_rejected(self, place_order, register_partner):
        order_id = _packed_order(place_order)
        partner_id = register_partner()
        current_domain.process(SetPartnerAvailability(partner_id=partner_id, is_available=False), asynchronous=False)

        with pytest.raises(Conflict, match="not available"):
            _assign(order_id, partner_id)

        partner = current_domain.repository_for(Partner).get(partner_id)
        assert partner.is_available is False
        assert partner.current_orders == []
        assert current_domain.repository_for(Order).get(order_id).status == "packed"

    def test_fourth_concurrent_order_is_rejected(self, paracetamol, place_order, register_partner):
        partner_id = register_partner()
        order_ids = [_packed_order(place_order) for _ in range(4)]
        for order_id in order_ids[:3]:
            _assign(order_id, partner_id)

        assert current_domain.repository_for(Partner).get(partner_id).is_available is False
        with pytest.raises(Conflict, match="maximum capacity"):
            _assign(order_ids[3], partner_id)
        assert current_domain.repository_for(Order).get(order_ids[3]).status == "packed"


    def test_concurrent_assignment_binds_one_partner(self, place_order, register_partner, serve_stale_order):
        order_id = _packed_order(place_order)
        first = register_partner(name="Ravi Kumar")
        second = register_partner(name="Anita Sharma")
        stale = current_domain.repository_for(Order).get(order_id)
        _assign(order_id, first)

        serve_stale_order(stale)
        with pytest.raises((ExpectedVersionError, Conflict)):
            _assign(order_id, second)

        order = current_domain.repository_for(Order).get(order_id)
        assert order.delivery_partner_id == first
        assert [e.status for e in order.delivery_tracking].count("assigned") == 1
        assert current_domain.repository_for(Partner).get(second).current_orders == []


class TestAutoAssignment:
    def _auto(self, order_id):
        return current_domain.process(AutoAssignPartner(order_id=order_id), asynchronous=False)

    def test_nearest_partner_is_chosen(self, place_order, register_partner):
        order_id = _packed_order(place_order, address=NEAR_CP)
        register_partner(name="Far Away", longitude=77.30, latitude=28.55)
        near = register_partner(name="Close By", longitude=77.2170, latitude=28.6320)

        assert self._auto(order_id) == near
        assert current_domain.repository_for(Order).get(order_id).status == "assigned"

    def test_partners_outside_radius_are_ignored(self, place_order, register_partner):
        order_id = _packed_order(place_order, address=NEAR_CP)
        register_partner(name="Mumbai Rider", longitude=72.8777, latitude=19.0760)

        with pytest.raises(NoPartnerAvailable):
            self._auto(order_id)

    def test_unavailable_partners_are_skipped(self, place_order, register_partner):
        order_id = _packed_order(place_order, address=NEAR_CP)
        busy = register_partner(name="Busy", longitude=77.2167, latitude=28.6315)
        current_domain.process(DeactivatePartner(partner_id=busy), asynchronous=False)
        free = register_partner(name="Free", longitude=77.2300, latitude=28.6400)

        assert self._auto(order_id) == free

    def test_address_without_coordinates_searches_around_dispatch_center(self, place_order, register_partner):
        order_id = _packed_order(place_order)
        partner_id = register_partner(longitude=77.1030, latitude=28.7045)

        assert self._auto(order_id) == partner_id

    def test_no_partners_at_all(self, place_order):
        order_id = _packed_order(place_order, address=NEAR_CP)
        with pytest.raises(NoPartnerAvailable):
            self._auto(order_id)


class TestQuickCreateAssignment:
    def _quick(self, order_id, **fields):
        fields.setdefault("name", "Suresh Yadav")
        fields.setdefault("phone", "9812345678")
        return current_domain.process(QuickCreateAndAssignPartner(order_id=order_id, **fields), asynchronous=False)

    def test_creates_partner_and_account(self, accounts, place_order):
        order_id = _packed_order(place_order)

        partner_id = self._quick(order_id)

        partner = current_domain.repository_for(Partner).get(partner_id)
        assert partner.rating == 5.0
        assert partner.total_deliveries == 0
        assert partner.email == "sureshyadav@delivery.sara.com"
        assert partner.vehicle_number.startswith("DL-")
        assert partner.current_orders == [order_id]

        user = accounts.find_by_id(partner.user_id)
        assert user["email"] == "sureshyadav@delivery.sara.com"
        assert accounts.check_password(partner.user_id, "delivery123")

        assert current_domain.repository_for(Order).get(order_id).delivery_partner_id == partner_id

    def test_explicit_profile_is_used(self, place_order):
        order_id = _packed_order(place_order)

        partner_id = self._quick(order_id, email="suresh@example.com", vehicle_type="scooter", vehicle_number="DL-9999")

        partner = current_domain.repository_for(Partner).get(partner_id)
        assert (partner.email, partner.vehicle_type, partner.vehicle_number) == (
            "suresh@example.com",
            "scooter",
            "DL-9999",
        )

    def test_nothing_is_created_for_an_unready_order(self, accounts, place_order):
        order_id = place_order()

        with pytest.raises(InvalidTransition):
            self._quick(order_id)

        assert _partner_count() == 0
        assert accounts.users == {}

    def test_nothing_is_created_for_an_assigned_order(self, accounts, place_order, register_partner):
        order_id = _packed_order(place_order)
        _assign(order_id, register_partner())
        users_before = len(accounts.users)

        with pytest.raises(Conflict):
            self._quick(order_id)

        assert _partner_count() == 1
        assert len(accounts.users) == users_before

    def test_duplicate_email_is_a_conflict(self, accounts, place_order):
        accounts.add_user(name="Suresh", email="sureshyadav@delivery.sara.com")
        order_id = _packed_order(place_order)

        with pytest.raises(Conflict):
            self._quick(order_id)
        assert current_domain.repository_for(Order).get(order_id).status == "packed"
