# storefront/api/routers/categories.py
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.schemas import CategoryIn, CategoryNameIn, CategoryImageIn, CategoryOut
from storefront.services.category_service import CategoryService
from storefront.utils.errors import StoreError

router = APIRouter(prefix="/categories", tags=["categories"])


@router.post("/", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryIn, db: Session = Depends(get_db)):
    svc = CategoryService(db)
    try:
        return svc.create(payload.model_dump())
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/")
def list_categories(request: Request, db: Session = Depends(get_db)):
    """
    Lista kategorii z filtrami, sortowaniem, wyborem pol, szukaniem po nazwie
    i paginacja, np. /categories?keyword=phone&sort=name&page=2&limit=10
    """
    svc = CategoryService(db)
    try:
        return svc.get_all(dict(request.query_params))
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{category_id}", response_model=CategoryOut)
def get_category(category_id: int, db: Session = Depends(get_db)):
    svc = CategoryService(db)
    try:
        return svc.get_one(category_id)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.put("/{category_id}", response_model=CategoryOut)
def update_category(category_id: int, payload: CategoryIn, db: Session = Depends(get_db)):
    svc = CategoryService(db)
    try:
        return svc.update(category_id, payload.model_dump())
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{category_id}/name", response_model=CategoryOut)
def update_category_name(category_id: int, payload: CategoryNameIn, db: Session = Depends(get_db)):
    svc = CategoryService(db)
    try:
        return svc.update_name(category_id, payload.name)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{category_id}/image", response_model=CategoryOut)
def update_category_image(category_id: int, payload: CategoryImageIn, db: Session = Depends(get_db)):
    svc = CategoryService(db)
    try:
        return svc.update_image(category_id, payload.image, payload.image_url)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{category_id}", status_code=204)
def delete_category(category_id: int, db: Session = Depends(get_db)):
    svc = CategoryService(db)
    try:
        svc.delete(category_id)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return Response(status_code=204)
