"""Catalog port — stock and price lookups owned by the medicine catalog.

The dispatch engine never writes catalog documents directly. Adapters must
make ``decrement_stock`` an atomic check-and-decrement so two concurrent
orders cannot both take the last unit.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class MedicineSnapshot:
    medicine_id: str
    name: str
    price: float
    stock: int


class CatalogPort(ABC):
    """Abstract interface for catalog adapters."""

    @abstractmethod
    def find_by_id(self, medicine_id: str, timeout: float | None = None) -> MedicineSnapshot | None:
        """Return the current name, price and stock, or None when unknown."""
        ...

    @abstractmethod
    def decrement_stock(self, medicine_id: str, quantity: int, timeout: float | None = None) -> int:
        """Atomically take ``quantity`` units.

        Returns:
            the remaining stock

        Raises:
            InsufficientStock: when fewer than ``quantity`` units remain
            NotFound: when the medicine does not exist
        """
        ...

    @abstractmethod
    def increment_stock(self, medicine_id: str, quantity: int, timeout: float | None = None) -> int:
        """Return ``quantity`` units to stock. Returns the new stock level."""
        ...
