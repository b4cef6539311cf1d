# storefront/repos/crud_repo.py
from sqlalchemy.orm import Session


class CrudRepo:
    """Wspolne operacje CRUD dla prostych encji (kategorie, produkty)."""

    def __init__(self, db: Session, model):
        self.db = db
        self.model = model

    def get(self, obj_id: int):
        return self.db.get(self.model, obj_id)

    def create(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def update(self, obj, data: dict):
        for key, value in data.items():
            setattr(obj, key, value)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def delete(self, obj) -> None:
        self.db.delete(obj)
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
