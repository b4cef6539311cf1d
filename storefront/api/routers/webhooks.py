# storefront/api/routers/webhooks.py
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from storefront.data.database import get_db
from storefront.services.lock_service import LockService, get_lock_service
from storefront.services.payment_client import PaymentClient, get_payment_client
from storefront.services.payment_service import PaymentService
from storefront.utils.errors import SignatureVerificationFailure
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/webhook-checkout")
async def webhook_checkout(
    request: Request,
    db: Session = Depends(get_db),
    payment_client: PaymentClient = Depends(get_payment_client),
    lock_service: LockService = Depends(get_lock_service),
):
    """Webhook dostawcy platnosci - surowe body jest potrzebne do weryfikacji podpisu."""
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    svc = PaymentService(db, payment_client, lock_service)
    try:
        return await run_in_threadpool(svc.handle_webhook, payload, sig_header)
    except SignatureVerificationFailure as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        return PlainTextResponse(f"Webhook Error: {e}", status_code=400)
