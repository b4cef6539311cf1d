# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Powiadomienia o zamowieniach przez Celery.
    Samo wysylanie maili jest poza serwisem, task tylko loguje.
    """

    @staticmethod
    def send_order_notification(user_id: int, order_id: int, payment_method: str):
        try:
            send_order_notification_task.delay(user_id, order_id, payment_method)
        except Exception as e:
            # zamowienie juz zapisane, brak brokera nie moze go cofnac
            logger.warning(f"Nie udalo sie zakolejkowac powiadomienia dla order {order_id}: {e}")


@celery_app.task(name="storefront.services.notification_service.send_order_notification_task")
def send_order_notification_task(user_id: int, order_id: int, payment_method: str):
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_id} ({payment_method}) created")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}
