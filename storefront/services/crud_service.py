# storefront/services/crud_service.py
from typing import Any, Dict, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.repos.crud_repo import CrudRepo
from storefront.repos.query_composer import fetch_page
from storefront.utils.errors import ConflictError, NotFoundError, ValidationFailure
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CrudService:
    """
    Wspolne use case'y dla prostych encji: lista z filtrami, odczyt,
    tworzenie, aktualizacja, usuwanie. Podklasy ustawiaja model i schema.
    """

    model = None
    schema = None
    label = "dokument"

    def __init__(self, db: Session):
        self.db = db
        self.repo = CrudRepo(db, self.model)

    def get_all(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        docs, pagination = fetch_page(self.db, self.model, params)
        return {
            "results": len(docs),
            "paginationResult": pagination.as_dict(),
            "data": docs,
        }

    def get_one(self, obj_id: int) -> Dict[str, Any]:
        return self._dump(self._get_or_404(obj_id))

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        obj = self.model(**self.prepare(data))
        try:
            created = self.repo.create(obj)
        except IntegrityError:
            self.repo.rollback()
            raise ValidationFailure(f"Taki {self.label} już istnieje")

        logger.info(f"Created {self.model.__tablename__} {created.id}")
        return self._dump(created)

    def update(self, obj_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        obj = self._get_or_404(obj_id)
        try:
            updated = self.repo.update(obj, self.prepare(data))
        except IntegrityError:
            self.repo.rollback()
            raise ValidationFailure(f"Taki {self.label} już istnieje")

        logger.info(f"Updated {self.model.__tablename__} {obj_id}")
        return self._dump(updated)

    def delete(self, obj_id: int) -> None:
        obj = self._get_or_404(obj_id)
        try:
            self.repo.delete(obj)
        except IntegrityError:
            # np. produkt wciaz lezy w czyims koszyku
            self.repo.rollback()
            raise ConflictError(f"Nie mozna usunac: {self.label} o id {obj_id} jest jeszcze uzywany")
        logger.info(f"Deleted {self.model.__tablename__} {obj_id}")

    def prepare(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return data

    def _get_or_404(self, obj_id: int):
        obj = self.repo.get(obj_id)
        if not obj:
            raise NotFoundError(f"Nie znaleziono: {self.label} o id {obj_id}")
        return obj

    def _dump(self, obj) -> Dict[str, Any]:
        return self.schema.model_validate(obj).model_dump()
