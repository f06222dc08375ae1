"""Repository for the Order aggregate."""

from dispatch.domain import dispatch
from dispatch.order.order import ACTIVE_DELIVERY_STATUSES, Order


@dispatch.repository(part_of=Order)
class OrderRepository:
    def count_all(self) -> int:
        return self._dao.query.all().total

    def find_for_customer(self, customer_id: str, page: int = 1, limit: int = 10) -> tuple[list[Order], int]:
        results = (
            self._dao.query.filter(customer_id=customer_id)
            .order_by("-created_at")
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return results.items, results.total

    def find_all(self, status: str | None = None, page: int = 1, limit: int = 10) -> tuple[list[Order], int]:
        query = self._dao.query.filter(status=status) if status else self._dao.query
        results = query.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()
        return results.items, results.total

    def find_in_delivery_for_partner(self, partner_id: str) -> list[Order]:
        statuses = [s.value for s in ACTIVE_DELIVERY_STATUSES]
        return self._dao.query.filter(delivery_partner_id=partner_id, status__in=statuses).all().items
