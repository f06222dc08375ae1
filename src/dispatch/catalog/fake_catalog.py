"""In-memory catalog adapter for development and tests."""

import threading
from uuid import uuid4

from dispatch.catalog.port import CatalogPort, MedicineSnapshot
from dispatch.errors import InsufficientStock, NotFound, UpstreamFailure


class FakeCatalog(CatalogPort):
    """Catalog held in a dict; a single lock makes stock updates atomic."""

    def __init__(self):
        self._lock = threading.Lock()
        self._medicines: dict[str, dict] = {}
        self.should_succeed = True
        self.failing_ids: set[str] = set()
        self.latency = 0.0

    def configure(self, should_succeed: bool = True, failing_ids: set[str] | None = None, latency: float = 0.0):
        """Make every call, or only calls for ``failing_ids``, raise UpstreamFailure.

        ``latency`` is the simulated response time in seconds; calls whose
        timeout is shorter fail as timed out.
        """
        self.should_succeed = should_succeed
        self.failing_ids = set(failing_ids or ())
        self.latency = latency

    def add_medicine(self, name: str, price: float, stock: int, medicine_id: str | None = None) -> str:
        medicine_id = medicine_id or f"med-{uuid4().hex[:8]}"
        with self._lock:
            self._medicines[medicine_id] = {"name": name, "price": float(price), "stock": int(stock)}
        return medicine_id

    def set_price(self, medicine_id: str, price: float) -> None:
        with self._lock:
            self._medicines[medicine_id]["price"] = float(price)

    def stock_of(self, medicine_id: str) -> int:
        return self._medicines[medicine_id]["stock"]

    def _check_upstream(self, medicine_id: str, timeout: float | None) -> None:
        if not self.should_succeed or medicine_id in self.failing_ids:
            raise UpstreamFailure("Catalog unavailable")
        if timeout is not None and self.latency > timeout:
            raise UpstreamFailure("Catalog timed out")

    def find_by_id(self, medicine_id, timeout=None):
        self._check_upstream(medicine_id, timeout)
        record = self._medicines.get(medicine_id)
        if record is None:
            return None
        return MedicineSnapshot(medicine_id=medicine_id, **record)

    def decrement_stock(self, medicine_id, quantity, timeout=None):
        self._check_upstream(medicine_id, timeout)
        with self._lock:
            record = self._medicines.get(medicine_id)
            if record is None:
                raise NotFound(f"Medicine not found: {medicine_id}")
            if record["stock"] < quantity:
                raise InsufficientStock(medicine_id, record["name"], quantity, record["stock"])
            record["stock"] -= quantity
            return record["stock"]

    def increment_stock(self, medicine_id, quantity, timeout=None):
        self._check_upstream(medicine_id, timeout)
        with self._lock:
            record = self._medicines.get(medicine_id)
            if record is None:
                raise NotFound(f"Medicine not found: {medicine_id}")
            record["stock"] += quantity
            return record["stock"]

    def reset(self):
        with self._lock:
            self._medicines.clear()
        self.should_succeed = True
        self.failing_ids = set()
        self.latency = 0.0
