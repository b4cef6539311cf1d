# storefront/api/routers/products.py
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.schemas import ProductIn, ProductUpdate, ProductOut
from storefront.services.product_service import ProductService
from storefront.utils.errors import StoreError

router = APIRouter(prefix="/products", tags=["products"])


@router.post("/", response_model=ProductOut, status_code=201)
def create_product(payload: ProductIn, db: Session = Depends(get_db)):
    svc = ProductService(db)
    try:
        return svc.create(payload.model_dump())
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/")
def list_products(request: Request, db: Session = Depends(get_db)):
    # np. /products?price[gte]=100&sort=-sold,title&fields=title,price&keyword=phone
    svc = ProductService(db)
    try:
        return svc.get_all(dict(request.query_params))
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    svc = ProductService(db)
    try:
        return svc.get_one(product_id)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.put("/{product_id}", response_model=ProductOut)
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)):
    svc = ProductService(db)
    try:
        return svc.update(product_id, payload.model_dump(exclude_unset=True))
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{product_id}", status_code=204)
def delete_product(product_id: int, db: Session = Depends(get_db)):
    svc = ProductService(db)
    try:
        svc.delete(product_id)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return Response(status_code=204)
