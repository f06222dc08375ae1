import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

from dispatch.accounts import get_accounts, reset_accounts
from dispatch.catalog import get_catalog, reset_catalog
from dispatch.order.creation import PlaceOrder
from dispatch.order.order import Order
import dispatch.partner.repository  # noqa: F401  (bound on the package so tests can monkeypatch it by dotted path)
from dispatch.partner.registration import RegisterPartner
from dispatch.realtime import configure_realtime, reset_realtime
from dispatch.realtime.hub import RealtimeHub
from dispatch.realtime.port import ADMIN_GROUP, Subscriber, order_group

DELHI = {"longitude": 77.2090, "latitude": 28.6139}

ADDRESS = {
    "address": "12 Janpath",
    "city": "New Delhi",
    "postal_code": "110001",
    "country": "India",
}


class RecordingSubscriber(Subscriber):
    """Keeps every frame it receives."""

    def __init__(self):
        self.frames = []

    def deliver(self, frame):
        self.frames.append(frame)
        return True

    def of_type(self, event_name):
        return [f for f in self.frames if f["type"] == event_name]

    def types(self):
        return [f["type"] for f in self.frames]


@pytest.fixture(scope="session")
def dispatch_bed():
    from dispatch.domain import dispatch

    bed = DomainFixture(dispatch)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(dispatch_bed):
    reset_catalog()
    reset_accounts()
    reset_realtime()
    with dispatch_bed.domain_context():
        yield
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()
    reset_realtime()


@pytest.fixture()
def catalog():
    return get_catalog()


@pytest.fixture()
def accounts():
    return get_accounts()


@pytest.fixture()
def hub():
    return configure_realtime(RealtimeHub())


@pytest.fixture()
def admin_feed(hub):
    subscriber = RecordingSubscriber()
    hub.subscribe(ADMIN_GROUP, subscriber)
    return subscriber


@pytest.fixture()
def order_feed(hub):
    """Factory subscribing a fresh recorder to one order's group."""

    def _subscribe(order_id):
        subscriber = RecordingSubscriber()
        hub.subscribe(order_group(order_id), subscriber)
        return subscriber

    return _subscribe


@pytest.fixture()
def paracetamol(catalog):
    return catalog.add_medicine("Paracetamol 500mg", price=25.0, stock=7, medicine_id="med-para")


@pytest.fixture()
def place_order(paracetamol):
    """Factory placing an order through the command handler."""

    def _place(items=None, payment_method="cod", customer_id="cust-1", address=None):
        command = PlaceOrder(
            customer_id=customer_id,
            items=json.dumps(items or [{"medicine_id": paracetamol, "quantity": 1}]),
            shipping_address=json.dumps(address or ADDRESS),
            payment_method=payment_method,
        )
        return current_domain.process(command, asynchronous=False)

    return _place


@pytest.fixture()
def register_partner(accounts):
    """Factory registering a partner backed by a fresh user account."""

    counter = {"n": 0}

    def _register(name="Ravi Kumar", longitude=DELHI["longitude"], latitude=DELHI["latitude"], **overrides):
        counter["n"] += 1
        user_id = accounts.add_user(name=name, email=f"partner{counter['n']}@example.com", role="delivery")
        fields = {
            "user_id": user_id,
            "name": name,
            "phone": "9876543210",
            "email": f"partner{counter['n']}@example.com",
            "vehicle_number": f"DL-{1000 + counter['n']}",
            "longitude": longitude,
            "latitude": latitude,
        }
        fields.update(overrides)
        return current_domain.process(RegisterPartner(**fields), asynchronous=False)

    return _register


@pytest.fixture()
def serve_stale_order(monkeypatch):
    """Make the next Order lookup return a copy read earlier by a concurrent writer.

    Lookups after that one read the stored order again, as a handler retried
    after a version conflict would.
    """

    def _serve(stale):
        repo_cls = type(current_domain.repository_for(Order))
        fresh_get = repo_cls.get
        pending = [stale]

        def get(self, identifier):
            return pending.pop() if pending else fresh_get(self, identifier)

        monkeypatch.setattr(repo_cls, "get", get)

    return _serve
