from typing import Any, Dict, Mapping

from sqlalchemy.orm import Session
from storefront.data.models import UserModel
from storefront.repos.query_composer import fetch_page
from storefront.repos.user_repo import UserRepo
from storefront.domain.schemas import UserCreate, UserRead
from storefront.utils.errors import NotFoundError, ValidationFailure


class UserService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = UserRepo(db)

    def create_user(self, payload: UserCreate) -> UserRead:
        if self.repo.get_user_by_email(payload.email):
            raise ValidationFailure("Email jest już zajęty")

        user = UserModel(
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            role=payload.role,
        )
        created = self.repo.create_user(user)
        return UserRead.model_validate(created)

    def get_user(self, user_id: int) -> UserRead:
        user = self.repo.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        return UserRead.model_validate(user)

    def list_users(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        docs, pagination = fetch_page(self.db, UserModel, params)
        return {
            "results": len(docs),
            "paginationResult": pagination.as_dict(),
            "data": docs,
        }
