from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime

from storefront.data.database import Base


class ProcessedWebhookEventModel(Base):
    __tablename__ = "processed_webhook_events"

    # id eventu od dostawcy platnosci (evt_...)
    event_id = Column(String(255), primary_key=True)
    event_type = Column(String(64), nullable=False)
    cart_id = Column(Integer, nullable=True)
    order_id = Column(Integer, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
