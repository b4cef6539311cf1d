from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, Text, DateTime, Numeric

from storefront.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class ProductModel(Base):
    __tablename__ = "products"
    __search_fields__ = ("title", "description")

    id = Column(Integer, primary_key=True)
    title = Column(String(100), nullable=False)
    slug = Column(String(128), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")

    # stan magazynowy i licznik sprzedazy, zmieniane przy tworzeniu zamowienia
    quantity = Column(Integer, nullable=False, default=0)
    sold = Column(Integer, nullable=False, default=0)

    price = Column(Numeric(10, 2), nullable=False)
    price_after_discount = Column(Numeric(10, 2), nullable=True)

    image_cover = Column(String(255), nullable=True)
    image_cover_url = Column(String(512), nullable=True)

    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)
