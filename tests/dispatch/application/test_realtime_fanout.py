"""Application tests for the realtime fan-out of order and partner events."""

import asyncio

from protean import current_domain

from dispatch.assignment.assignment import AssignPartner
from dispatch.order.cancellation import CancelOrder
from dispatch.order.order import Order
from dispatch.order.payment import SettlePayment
from dispatch.order.progression import AdvanceOrderStatus, AutoAdvanceOrder
from dispatch.order.tracking import ReportDeliveryLocation
from dispatch.partner.location import UpdatePartnerLocation
from dispatch.realtime import configure_realtime
from dispatch.realtime.hub import QueueSubscriber
from dispatch.realtime.port import RealtimePort, Subscriber, order_group

ADDRESS_WITH_POINT = {
    "address": "12 Janpath",
    "city": "New Delhi",
    "postal_code": "110001",
    "country": "India",
    "longitude": 77.2197,
    "latitude": 28.6213,
}


class DeadSocket(Subscriber):
    def deliver(self, frame):
        raise ConnectionResetError("socket closed")


class BrokenTransport(RealtimePort):
    def publish(self, group, event_name, payload):
        raise ConnectionError("transport down")

    def subscribe(self, group, subscriber):
        pass

    def unsubscribe(self, group, subscriber):
        pass

    def unsubscribe_all(self, subscriber):
        pass


def _packed(order_id):
    for _ in range(3):
        current_domain.process(AutoAdvanceOrder(order_id=order_id), asynchronous=False)


class TestAdminFeed:
    def test_new_order_is_announced_once(self, admin_feed, place_order):
        order_id = place_order()

        created = admin_feed.of_type("orderCreated")
        assert len(created) == 1
        payload = created[0]["payload"]
        assert payload["order"]["_id"] == order_id
        assert payload["order"]["status"] == "pending"
        assert payload["order"]["totalPrice"] == 25.0
        assert payload["totalOrders"] == 1

    def test_status_change_carries_delta_and_count(self, admin_feed, place_order):
        order_id = place_order()
        place_order()
        current_domain.process(AdvanceOrderStatus(order_id=order_id, status="confirmed"), asynchronous=False)

        changes = admin_feed.of_type("orderStatusChanged")
        assert len(changes) == 1
        assert changes[0]["payload"] == {
            "orderId": order_id,
            "oldStatus": "pending",
            "newStatus": "confirmed",
            "totalOrders": 2,
        }

    def test_cancellation_is_announced(self, admin_feed, place_order):
        order_id = place_order()
        current_domain.process(CancelOrder(order_id=order_id, requester_id="cust-1"), asynchronous=False)

        assert [f["payload"]["orderId"] for f in admin_feed.of_type("orderCancelled")] == [order_id]


class TestOrderFeed:
    def test_tracking_update_on_advance(self, order_feed, place_order):
        order_id = place_order()
        feed = order_feed(order_id)

        current_domain.process(
            AdvanceOrderStatus(order_id=order_id, status="confirmed", longitude=77.2, latitude=28.6),
            asynchronous=False,
        )

        assert feed.types() == ["orderTrackingUpdate"]
        payload = feed.frames[0]["payload"]
        assert payload["status"] == "confirmed"
        assert payload["tracking"]["message"] == "Order confirmed"
        assert payload["tracking"]["location"] == {"type": "Point", "coordinates": [77.2, 28.6]}
        assert payload["estimatedDeliveryTime"] is not None

    def test_other_orders_are_not_seen(self, order_feed, place_order):
        watched = place_order()
        other = place_order()
        feed = order_feed(watched)

        current_domain.process(AdvanceOrderStatus(order_id=other, status="confirmed"), asynchronous=False)

        assert feed.frames == []

    def test_assignment_sends_partner_details(self, admin_feed, order_feed, place_order, register_partner):
        order_id = place_order()
        _packed(order_id)
        feed = order_feed(order_id)
        partner_id = register_partner(name="Ravi Kumar")

        current_domain.process(AssignPartner(order_id=order_id, partner_id=partner_id), asynchronous=False)

        assert feed.types() == ["deliveryPartnerAssigned"]
        partner = feed.frames[0]["payload"]["deliveryPartner"]
        assert partner["_id"] == partner_id
        assert partner["name"] == "Ravi Kumar"
        assert partner["currentLocation"] == {"type": "Point", "coordinates": [77.2090, 28.6139]}
        assert admin_feed.of_type("orderStatusChanged")[-1]["payload"]["newStatus"] == "assigned"

    def test_cancellation_update(self, order_feed, place_order):
        order_id = place_order()
        feed = order_feed(order_id)

        current_domain.process(CancelOrder(order_id=order_id, requester_id="cust-1"), asynchronous=False)

        assert feed.types() == ["orderUpdate"]
        assert feed.frames[0]["payload"]["updates"]["status"] == "cancelled"

    def test_payment_update(self, order_feed, place_order):
        order_id = place_order(payment_method="upi")
        feed = order_feed(order_id)

        current_domain.process(SettlePayment(order_id=order_id, payment_reference="TXN42"), asynchronous=False)
        current_domain.process(SettlePayment(order_id=order_id, payment_reference="TXN43"), asynchronous=False)

        assert feed.types() == ["orderUpdate"]
        assert feed.frames[0]["payload"]["updates"]["paymentReference"] == "TXN42"


class TestPartnerLocationFeed:
    def test_location_reaches_every_carried_order(self, order_feed, place_order, register_partner):
        partner_id = register_partner()
        first = place_order(address=ADDRESS_WITH_POINT)
        second = place_order()
        for order_id in (first, second):
            _packed(order_id)
            current_domain.process(AssignPartner(order_id=order_id, partner_id=partner_id), asynchronous=False)
        feeds = {order_id: order_feed(order_id) for order_id in (first, second)}

        current_domain.process(
            UpdatePartnerLocation(partner_id=partner_id, longitude=77.2150, latitude=28.6180), asynchronous=False
        )

        with_point = feeds[first].of_type("deliveryPartnerLocationUpdate")[0]["payload"]
        assert with_point["location"] == {"latitude": 28.6180, "longitude": 77.2150}
        assert 20 <= with_point["etaMinutes"] <= 45
        assert with_point["etaText"].endswith("mins")

        without_point = feeds[second].of_type("deliveryPartnerLocationUpdate")[0]["payload"]
        assert without_point["etaMinutes"] is None
        assert without_point["etaText"] is None

    def test_order_scoped_ping_moves_the_bound_partner(self, order_feed, place_order, register_partner):
        order_id = place_order(address=ADDRESS_WITH_POINT)
        _packed(order_id)
        partner_id = register_partner()
        current_domain.process(AssignPartner(order_id=order_id, partner_id=partner_id), asynchronous=False)
        feed = order_feed(order_id)

        result = current_domain.process(
            ReportDeliveryLocation(order_id=order_id, longitude=77.2180, latitude=28.6200), asynchronous=False
        )

        assert result == partner_id
        assert feed.types() == ["deliveryPartnerLocationUpdate"]


class TestPublishFailures:
    def test_state_change_survives_a_broken_transport(self, place_order):
        configure_realtime(BrokenTransport())

        order_id = place_order()
        current_domain.process(AdvanceOrderStatus(order_id=order_id, status="confirmed"), asynchronous=False)

        assert current_domain.repository_for(Order).get(order_id).status == "confirmed"

    def test_state_change_survives_a_failing_subscriber(self, hub, order_feed, place_order):
        order_id = place_order()
        hub.subscribe(order_group(order_id), DeadSocket())
        healthy = order_feed(order_id)

        current_domain.process(AdvanceOrderStatus(order_id=order_id, status="confirmed"), asynchronous=False)

        assert current_domain.repository_for(Order).get(order_id).status == "confirmed"
        assert healthy.types() == ["orderTrackingUpdate"]

    def test_failing_subscriber_is_not_counted(self, hub):
        hub.subscribe(order_group("ord-1"), DeadSocket())

        assert hub.publish(order_group("ord-1"), "orderUpdate", {"orderId": "ord-1"}) == 0


class TestSlowConsumers:
    def test_full_queue_drops_the_new_frame(self, hub):
        async def scenario():
            subscriber = QueueSubscriber(maxsize=1)
            hub.subscribe(order_group("ord-1"), subscriber)
            first = hub.publish(order_group("ord-1"), "orderUpdate", {"n": 1})
            second = hub.publish(order_group("ord-1"), "orderUpdate", {"n": 2})
            frame = await subscriber.next_frame()
            return first, second, subscriber.dropped, frame

        first, second, dropped, frame = asyncio.run(scenario())

        assert (first, second) == (1, 0)
        assert dropped == 1
        assert frame["payload"] == {"n": 1}

    def test_advance_survives_a_full_client_queue(self, hub, place_order):
        order_id = place_order()

        async def scenario():
            subscriber = QueueSubscriber(maxsize=1)
            hub.subscribe(order_group(order_id), subscriber)
            for status in ("confirmed", "preparing"):
                current_domain.process(AdvanceOrderStatus(order_id=order_id, status=status), asynchronous=False)
            return subscriber.dropped

        assert asyncio.run(scenario()) == 1
        assert current_domain.repository_for(Order).get(order_id).status == "preparing"
