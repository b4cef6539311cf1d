from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from storefront.data.database import get_db
from storefront.services.user_service import UserService
from storefront.domain.schemas import UserCreate, UserRead
from storefront.utils.errors import StoreError

router = APIRouter(prefix="/users", tags=["users"])

@router.post("/", response_model=UserRead, status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return service.create_user(payload)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

@router.get("/")
def list_users(request: Request, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return service.list_users(dict(request.query_params))
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return service.get_user(user_id)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
