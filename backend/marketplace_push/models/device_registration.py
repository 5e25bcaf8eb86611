"""Device registration: one push delivery handle (FCM token, OneSignal subscription id, Web Push subscription) per user device.

(user_id, provider, handle) is unique; re-registration refreshes last_seen_at instead of adding a row.
invalid: soft flag set when a provider permanently rejects the handle. Rows are never deleted here.
"""
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, UniqueConstraint, false
from sqlalchemy.sql import func

from marketplace_push.db.base import Base


class DeviceRegistration(Base):
    __tablename__ = "device_registrations"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", "handle", name="uq_device_registrations_user_provider_handle"),
        Index("ix_device_registrations_user_id_invalid", "user_id", "invalid"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    provider = Column(String(16), nullable=False)  # 'fcm' | 'onesignal' | 'webpush'
    handle = Column(String(2048), nullable=False)
    device_type = Column(String(16), nullable=False, server_default="web")  # 'web' | 'android' | 'ios'
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_seen_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    invalid = Column(Boolean, nullable=False, default=False, server_default=false())
    invalid_reason = Column(String(256), nullable=True)
