# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.schemas import CashOrderIn, CheckoutSessionIn, CheckoutSessionOut, OrderOut
from storefront.services.lock_service import LockService, get_lock_service
from storefront.services.order_service import OrderService
from storefront.services.payment_client import PaymentClient, get_payment_client
from storefront.services.payment_service import PaymentService
from storefront.utils.errors import StoreError

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
) -> OrderService:
    return OrderService(db, lock_service=lock_service)


def get_payment_service(
    db: Session = Depends(get_db),
    payment_client: PaymentClient = Depends(get_payment_client),
    lock_service: LockService = Depends(get_lock_service),
) -> PaymentService:
    return PaymentService(db, payment_client, lock_service)


@router.post("/checkout-session/{cart_id}", response_model=CheckoutSessionOut)
def checkout_session(
    cart_id: int,
    request: Request,
    payload: CheckoutSessionIn | None = None,
    user_id: int = Query(...),
    svc: PaymentService = Depends(get_payment_service),
):
    """
    Tworzy hostowana sesje platnosci i zwraca url do przekierowania.
    Zamowienie powstaje dopiero po webhooku.
    """
    shipping = payload.shipping_address.model_dump() if payload and payload.shipping_address else None
    try:
        return svc.create_checkout_session(cart_id, user_id, shipping, str(request.base_url))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{cart_id}", response_model=OrderOut, status_code=201)
def create_cash_order(
    cart_id: int,
    payload: CashOrderIn | None = None,
    user_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    """
    Zamowienie platne gotowka z koszyka: zapis zamowienia, stany magazynowe
    i usuniecie koszyka w jednej transakcji.
    """
    shipping = payload.shipping_address.model_dump() if payload and payload.shipping_address else None
    try:
        return svc.create_cash_order(cart_id, user_id, shipping)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/")
def list_orders(
    request: Request,
    user_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    params = {k: v for k, v in request.query_params.items() if k != "user_id"}
    try:
        return svc.list_orders(user_id, params)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.get_order(order_id, user_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.put("/{order_id}/pay", response_model=OrderOut)
def mark_order_paid(order_id: int, svc: OrderService = Depends(get_service)):
    try:
        return svc.mark_paid(order_id)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.put("/{order_id}/deliver", response_model=OrderOut)
def mark_order_delivered(order_id: int, svc: OrderService = Depends(get_service)):
    try:
        return svc.mark_delivered(order_id)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
