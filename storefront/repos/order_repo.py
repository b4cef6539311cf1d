# storefront/repos/order_repo.py
from sqlalchemy import bindparam, select, update
from sqlalchemy.orm import Session

from storefront.data.models import OrderModel, ProductModel, ProcessedWebhookEventModel

_products = ProductModel.__table__

# jeden batch executemany, kazdy wiersz atomowy per produkt
_INVENTORY_UPDATE = (
    update(_products)
    .where(_products.c.id == bindparam("b_product_id"))
    .values(
        quantity=_products.c.quantity - bindparam("b_quantity"),
        sold=_products.c.sold + bindparam("b_quantity"),
    )
)


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        # bez commita - commit robi serwis po calej transakcji
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_order_by_payment_session(self, session_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.payment_session_id == session_id)
        ).scalar_one_or_none()

    def bulk_update_inventory(self, items: list[tuple[int, int]]) -> None:
        """items: (product_id, quantity) - quantity -= q, sold += q."""
        if not items:
            return
        self.db.execute(
            _INVENTORY_UPDATE,
            [{"b_product_id": pid, "b_quantity": qty} for pid, qty in items],
        )

    def is_event_processed(self, event_id: str) -> bool:
        return self.db.get(ProcessedWebhookEventModel, event_id) is not None

    def record_event(self, event: ProcessedWebhookEventModel) -> None:
        self.db.add(event)
        self.db.flush()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
