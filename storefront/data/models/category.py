from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime

from storefront.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class CategoryModel(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(32), nullable=False, unique=True)
    slug = Column(String(64), nullable=False, index=True)

    # referencja do obrazka w zewnetrznym hostingu (upload poza serwisem)
    image = Column(String(255), nullable=True)
    image_url = Column(String(512), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)
