# storefront/tasks/payments.py
from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.services.lock_service import get_lock_service
from storefront.services.order_service import OrderService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="storefront.tasks.payments.create_card_order_task")
def create_card_order_task(event: dict):
    """
    Tworzy zamowienie po checkout.session.completed.
    Webhook juz odpowiedzial 200, wiec bledy tylko logujemy - bez retry.
    """
    logger.info(f"Card order task started for event {event.get('event_id')}")

    db = SessionLocal()
    try:
        order = OrderService(db, lock_service=get_lock_service()).create_card_order(event)
        return order["id"] if order else None
    except Exception as e:
        db.rollback()
        logger.exception(f"Error creating card order for event {event.get('event_id')}: {e}")
        return None
    finally:
        db.close()
