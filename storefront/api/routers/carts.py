#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.schemas import (
    CreateCartIn,
    ItemIn,
    QuantityIn,
    CartOut,
)
from storefront.services.cart_service import CartService
from storefront.services.lock_service import LockService, get_lock_service
from storefront.utils.errors import StoreError

router = APIRouter(prefix="/carts", tags=["carts"])


def get_service(
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
) -> CartService:
    return CartService(db=db, lock_service=lock_service)


@router.post("/", response_model=CartOut)
def create_cart(payload: CreateCartIn, svc: CartService = Depends(get_service)):
    return svc.create_cart(payload.user_id)


@router.get("/{cart_id}", response_model=CartOut)
def get_cart(
    cart_id: int,
    user_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        cart = svc.get_cart(cart_id, user_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    if not cart:
        raise HTTPException(status_code=404, detail="Koszyk nie znaleziony")
    return cart


@router.post("/{cart_id}/items", response_model=CartOut)
def add_item(
    cart_id: int,
    payload: ItemIn,
    user_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.add_product(
            user_id=user_id,
            cart_id=cart_id,
            product_id=payload.product_id,
            quantity=payload.quantity,
            color=payload.color,
        )
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{cart_id}/items/{product_id}", response_model=CartOut)
def remove_item(
    cart_id: int,
    product_id: int,
    user_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.remove_product(user_id, cart_id, product_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.put("/{cart_id}/items/{product_id}", response_model=CartOut)
def update_item_quantity(
    cart_id: int,
    product_id: int,
    payload: QuantityIn,
    user_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.update_quantity(user_id, cart_id, product_id, payload.quantity)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{cart_id}/items", response_model=CartOut)
def clear_cart(
    cart_id: int,
    user_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.clear_cart(user_id, cart_id)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
