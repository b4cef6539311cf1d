# storefront/services/order_service.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models import (
    CartModel,
    OrderItemModel,
    OrderModel,
    ProcessedWebhookEventModel,
)
from storefront.domain.query import Equality
from storefront.domain.schemas import OrderOut
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.query_composer import fetch_page
from storefront.repos.user_repo import UserRepo
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.utils.errors import ConflictError, ExternalServiceError, NotFoundError, ValidationFailure
from storefront.utils.settings import SHIPPING_PRICE, TAX_PRICE
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def order_price(cart: CartModel) -> Decimal:
    """Cena koszyka (po rabacie jesli jest) + podatek + wysylka."""
    cart_price = (
        cart.total_price_after_discount
        if cart.total_price_after_discount
        else cart.total_cart_price
    )
    return Decimal(cart_price or 0) + TAX_PRICE + SHIPPING_PRICE


class OrderService:
    """
    Domena zamowien: checkout gotowka, zamowienie z webhooka karty,
    reczna zmiana statusu i odczyt.

    Zapis zamowienia, zmiana stanow magazynowych i usuniecie koszyka
    ida w jednej transakcji - albo wszystko, albo nic.
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService | None = None,
        notification_service: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)
        self.user_repo = UserRepo(db)
        self.lock_service = lock_service
        self.notification_service = notification_service or NotificationService()

    # =====================================================
    # COMMANDS
    # =====================================================
    def create_cash_order(
        self,
        cart_id: int,
        user_id: int,
        shipping_address: Mapping[str, Any] | None = None,
    ) -> Dict[str, Any]:
        cart = self.cart_repo.get_cart(cart_id)

        if not cart:
            raise NotFoundError(f"Nie znaleziono koszyka o id {cart_id}")

        if cart.user_id != user_id:
            raise PermissionError("Brak dostępu do koszyka")

        if not cart.items:
            raise ValidationFailure("Koszyk jest pusty")

        if self.lock_service and self.lock_service.is_checkout_pending(cart_id):
            raise ConflictError("Dla koszyka trwa płatność kartą")

        total = order_price(cart)

        order = OrderModel(
            user_id=user_id,
            cart_id=cart.id,
            shipping_address=dict(shipping_address) if shipping_address else None,
            tax_price=TAX_PRICE,
            shipping_price=SHIPPING_PRICE,
            total_order_price=total,
            payment_method_type="cash",
            is_paid=False,
        )

        self._place_order(cart, order)

        logger.info(f"Order {order.id} (cash) created from cart {cart_id}, total {total}")
        self.notification_service.send_order_notification(user_id, order.id, "cash")

        return self._to_dict(order)

    def create_card_order(self, event: Mapping[str, Any]) -> Dict[str, Any] | None:
        """
        Zamowienie po opłaconej sesji checkout (wolane z taska celery).

        Kwota pochodzi od dostawcy platnosci, nie z koszyka. Event o tym samym
        id przetwarzamy tylko raz; brak koszyka albo usera to cichy no-op.
        """
        event_id = event["event_id"]
        session_id = event.get("session_id")

        if self.repo.is_event_processed(event_id):
            logger.info(f"Event {event_id} already processed, skipping")
            return None

        processed = ProcessedWebhookEventModel(
            event_id=event_id,
            event_type=event.get("event_type", "checkout.session.completed"),
        )

        if session_id and self.repo.get_order_by_payment_session(session_id):
            logger.info(f"Order for payment session {session_id} already exists, skipping")
            self._record_only(processed)
            return None

        cart_id = _as_int(event.get("cart_id"))
        processed.cart_id = cart_id
        cart = self.cart_repo.get_cart(cart_id) if cart_id else None
        email = event.get("customer_email")
        user = self.user_repo.get_user_by_email(email) if email else None

        if not cart or not user:
            logger.warning(
                f"Event {event_id}: cart {cart_id} or user {email} not found "
                f"(cart already cleared?), nothing to do"
            )
            self._record_only(processed)
            return None

        paid_amount = Decimal(int(event.get("amount_total") or 0)) / 100
        expected = order_price(cart)
        if paid_amount != expected:
            logger.warning(f"Cart {cart_id}: paid {paid_amount} differs from cart price {expected}")

        order = OrderModel(
            user_id=user.id,
            cart_id=cart.id,
            shipping_address=event.get("shipping_address") or None,
            tax_price=TAX_PRICE,
            shipping_price=SHIPPING_PRICE,
            total_order_price=paid_amount,
            payment_method_type="card",
            payment_session_id=session_id,
            is_paid=True,
            paid_at=datetime.now(timezone.utc),
        )

        try:
            self._place_order(cart, order, processed)
        except (ConflictError, IntegrityError) as e:
            # rownolegle doreczenie tego samego eventu wygralo wyscig
            logger.info(f"Event {event_id}: cart {cart_id} already ordered ({e})")
            return None

        logger.info(f"Order {order.id} (card) created from cart {cart_id}, paid {paid_amount}")
        self._release_checkout_lock(cart_id, event.get("lock_token"))
        self.notification_service.send_order_notification(user.id, order.id, "card")

        return self._to_dict(order)

    def mark_paid(self, order_id: int) -> Dict[str, Any]:
        order = self._get_or_404(order_id)

        if not order.is_paid:
            order.is_paid = True
            order.paid_at = datetime.now(timezone.utc)
            self.repo.commit()
            logger.info(f"Order {order_id} marked as paid")

        return self._to_dict(order)

    def mark_delivered(self, order_id: int) -> Dict[str, Any]:
        order = self._get_or_404(order_id)

        if not order.is_delivered:
            order.is_delivered = True
            order.delivered_at = datetime.now(timezone.utc)
            self.repo.commit()
            logger.info(f"Order {order_id} marked as delivered")

        return self._to_dict(order)

    # =====================================================
    # QUERY
    # =====================================================
    def get_order(self, order_id: int, user_id: int) -> Dict[str, Any]:
        order = self._get_or_404(order_id)

        if order.user_id != user_id:
            user = self.user_repo.get_user(user_id)
            if not user or user.role != "admin":
                raise PermissionError("Brak dostępu do zamówienia")

        return self._to_dict(order)

    def list_orders(self, user_id: int, params: Mapping[str, Any]) -> Dict[str, Any]:
        user = self.user_repo.get_user(user_id)
        if not user:
            raise NotFoundError(f"Nie znaleziono użytkownika o id {user_id}")

        # zwykly user widzi tylko swoje zamowienia
        base = [Equality("user_id", user.id)] if user.role == "user" else []
        docs, pagination = fetch_page(self.db, OrderModel, params, base)

        return {
            "results": len(docs),
            "paginationResult": pagination.as_dict(),
            "data": docs,
        }

    # =====================================================
    # helpers
    # =====================================================
    def _place_order(
        self,
        cart: CartModel,
        order: OrderModel,
        processed: ProcessedWebhookEventModel | None = None,
    ) -> OrderModel:
        lines = [(i.product_id, i.quantity, i.price, i.color) for i in cart.items]
        cart_version = cart.version

        for product_id, quantity, price, color in lines:
            order.items.append(
                OrderItemModel(product_id=product_id, quantity=quantity, price=price, color=color)
            )

        try:
            self.repo.add_order(order)
            self.repo.bulk_update_inventory([(pid, qty) for pid, qty, _, _ in lines])

            if self.cart_repo.delete_cart(cart.id, cart_version) == 0:
                raise ConflictError("Koszyk został zmieniony lub już zamówiony")

            if processed is not None:
                processed.order_id = order.id
                self.repo.record_event(processed)

            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Inventory updated for {len(lines)} products, cart {cart.id} deleted")
        return order

    def _release_checkout_lock(self, cart_id: int, token: str | None) -> None:
        if not self.lock_service or not token:
            return
        try:
            self.lock_service.release_checkout_lock(cart_id, token)
        except ExternalServiceError as e:
            # zamowienie juz zapisane, lock i tak wygasnie sam
            logger.warning(f"Could not release checkout lock for cart {cart_id}: {e}")

    def _record_only(self, processed: ProcessedWebhookEventModel) -> None:
        try:
            self.repo.record_event(processed)
            self.repo.commit()
        except IntegrityError:
            self.repo.rollback()

    def _get_or_404(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError(f"Nie znaleziono zamówienia o id {order_id}")
        return order

    @staticmethod
    def _to_dict(order: OrderModel) -> Dict[str, Any]:
        return OrderOut.model_validate(order).model_dump()


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
