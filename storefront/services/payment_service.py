# storefront/services/payment_service.py
import json
import time
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Mapping

from sqlalchemy.orm import Session

from storefront.data.models import CartItemModel
from storefront.repos.cart_repo import CartRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.lock_service import LockService
from storefront.services.order_service import order_price
from storefront.services.payment_client import PaymentClient
from storefront.tasks.payments import create_card_order_task
from storefront.utils.errors import ConflictError, ExternalServiceError, NotFoundError, ValidationFailure
from storefront.utils.settings import CHECKOUT_CURRENCY, CHECKOUT_SESSION_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
SESSION_EXPIRED = "checkout.session.expired"

# lock trzyma troche dluzej niz sama sesja u dostawcy
_LOCK_MARGIN_SECONDS = 60


def unit_amount(price: Decimal) -> int:
    """Cena w groszach/piastrach, zaokraglenie polowek w gore."""
    return int((Decimal(price) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_line_item(item: CartItemModel) -> Dict[str, Any]:
    product = item.product
    product_data: Dict[str, Any] = {"name": product.title}
    if product.image_cover_url:
        product_data["images"] = [product.image_cover_url]

    return {
        "price_data": {
            "currency": CHECKOUT_CURRENCY,
            "unit_amount": unit_amount(product.price_after_discount or product.price),
            "product_data": product_data,
        },
        "quantity": item.quantity,
    }


class PaymentService:
    """
    Platnosc karta:
    - tworzy hostowana sesje checkout (koszyk zostaje, ale jest zablokowany)
    - obsluguje webhook dostawcy, zamowienie tworzy task celery
    """

    def __init__(self, db: Session, payment_client: PaymentClient, lock_service: LockService):
        self.cart_repo = CartRepo(db)
        self.user_repo = UserRepo(db)
        self.payment_client = payment_client
        self.lock_service = lock_service

    def create_checkout_session(
        self,
        cart_id: int,
        user_id: int,
        shipping_address: Mapping[str, Any] | None,
        base_url: str,
    ) -> Dict[str, Any]:
        cart = self.cart_repo.get_cart_with_products(cart_id)
        if not cart:
            raise NotFoundError(f"Nie znaleziono koszyka o id {cart_id}")

        user = self.user_repo.get_user(user_id)
        if not user:
            raise NotFoundError(f"Nie znaleziono użytkownika o id {user_id}")

        if cart.user_id != user.id:
            raise PermissionError("Brak dostępu do koszyka")

        if not cart.items:
            raise ValidationFailure("Koszyk jest pusty")

        total = order_price(cart)
        line_items = [build_line_item(item) for item in cart.items]
        base_url = base_url.rstrip("/")

        token = uuid.uuid4().hex
        ttl = CHECKOUT_SESSION_TTL_SECONDS
        if not self.lock_service.acquire_checkout_lock(cart.id, token, ttl + _LOCK_MARGIN_SECONDS):
            raise ConflictError("Dla koszyka trwa już płatność kartą")

        try:
            session = self.payment_client.create_checkout_session(
                line_items=line_items,
                mode="payment",
                success_url=f"{base_url}/orders",
                cancel_url=f"{base_url}/cart",
                customer_email=user.email,
                client_reference_id=str(cart.id),
                metadata={
                    "shippingAddress": json.dumps(dict(shipping_address or {})),
                    "totalPrice": f"{total:.2f}",
                    "lockToken": token,
                },
                expires_at=int(time.time()) + ttl,
            )
        except Exception:
            self.lock_service.release_checkout_lock(cart.id, token)
            raise

        logger.info(f"Checkout session {session['id']} created for cart {cart.id}, total {total}")
        return {"status": "success", "url": session["url"], "session_id": session["id"]}

    def handle_webhook(self, payload: bytes, sig_header: str | None) -> Dict[str, Any]:
        # SignatureVerificationFailure leci dalej -> 400, nic nie dotykamy
        event = self.payment_client.construct_event(payload, sig_header)

        event_type = event.get("type")
        session = (event.get("data") or {}).get("object") or {}
        logger.info(f"Webhook event {event.get('id')} type {event_type}")

        if event_type == SESSION_COMPLETED:
            self._dispatch_card_order(event, session)
        elif event_type == SESSION_EXPIRED:
            self._release_expired(session)
        else:
            logger.info(f"Ignoring webhook event type {event_type}")

        return {"received": True}

    def _dispatch_card_order(self, event: Mapping[str, Any], session: Mapping[str, Any]) -> None:
        metadata = session.get("metadata") or {}
        customer_details = session.get("customer_details") or {}

        payload = {
            "event_id": event.get("id"),
            "event_type": event.get("type"),
            "session_id": session.get("id"),
            "cart_id": session.get("client_reference_id"),
            "customer_email": session.get("customer_email") or customer_details.get("email"),
            "amount_total": session.get("amount_total") or 0,
            "shipping_address": _load_json(metadata.get("shippingAddress")),
            "lock_token": metadata.get("lockToken"),
        }

        try:
            create_card_order_task.delay(payload)
        except Exception as e:
            # dostawca dostaje 200 niezaleznie od naszych bledow
            logger.exception(f"Could not queue card order for event {payload['event_id']}: {e}")

    def _release_expired(self, session: Mapping[str, Any]) -> None:
        cart_id = session.get("client_reference_id")
        token = (session.get("metadata") or {}).get("lockToken")
        if not cart_id or not token:
            return

        try:
            released = self.lock_service.release_checkout_lock(int(cart_id), token)
        except (ExternalServiceError, ValueError) as e:
            logger.error(f"Could not release checkout lock for cart {cart_id}: {e}")
            return

        logger.info(f"Checkout session expired for cart {cart_id}, lock released={released}")


def _load_json(raw: Any) -> Dict[str, Any] | None:
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) and value else None
