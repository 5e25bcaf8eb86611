"""In-app notification record: what the user was told, independent of push delivery.

type: same values as the dispatch category ('order_update', 'delivery_assignment', ...).
data: structured payload (orderId, url, ...) for deep links from the notification center.
"""
from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, Text, false
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from marketplace_push.db.base import Base


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_id_created_at", "user_id", "created_at"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    title = Column(String(256), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(32), nullable=False, default="generic", index=True)
    is_read = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    data = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict)
