"""
Device registry: (user, device) -> provider delivery handle.

Upsert by (user_id, provider, handle); lookups by user return only handles not marked invalid.
Each operation runs in its own short session so concurrent dispatches never share one.
"""
import logging
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from marketplace_push.core.constants import mask_handle
from marketplace_push.models.device_registration import DeviceRegistration
from marketplace_push.services.push.types import DeviceType, Provider

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeviceRegistry:
    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def register(
        self,
        user_id: int,
        provider: Provider | str,
        handle: str,
        device_type: DeviceType | str = DeviceType.WEB,
    ) -> DeviceRegistration:
        """
        Upsert a registration. Same (user, provider, handle) refreshes last_seen_at and clears invalid.
        If the handle is registered to another user (device changed owner), those rows are invalidated
        so only the newest owner gets it on lookup.
        """
        provider = Provider(provider)
        device_type = DeviceType(device_type)
        handle = handle.strip()
        if not handle:
            raise ValueError("handle must not be empty")
        try:
            return self._upsert(user_id, provider, handle, device_type)
        except IntegrityError:
            # lost an insert race with a concurrent registration of the same handle; it exists now
            logger.debug("Registration insert raced for user=%s provider=%s; retrying as update", user_id, provider.value)
            return self._upsert(user_id, provider, handle, device_type)

    def _upsert(self, user_id: int, provider: Provider, handle: str, device_type: DeviceType) -> DeviceRegistration:
        now = self._clock()
        with self._session_factory() as db:
            row = db.execute(
                select(DeviceRegistration).where(
                    DeviceRegistration.user_id == user_id,
                    DeviceRegistration.provider == provider.value,
                    DeviceRegistration.handle == handle,
                )
            ).scalar_one_or_none()
            created = row is None
            if row is None:
                row = DeviceRegistration(
                    user_id=user_id,
                    provider=provider.value,
                    handle=handle,
                    device_type=device_type.value,
                    created_at=now,
                    last_seen_at=now,
                    invalid=False,
                )
                db.add(row)
            else:
                row.last_seen_at = now
                row.device_type = device_type.value
                row.invalid = False
                row.invalid_reason = None
            taken_over = db.execute(
                update(DeviceRegistration)
                .where(
                    DeviceRegistration.provider == provider.value,
                    DeviceRegistration.handle == handle,
                    DeviceRegistration.user_id != user_id,
                    DeviceRegistration.invalid.is_(False),
                )
                .values(invalid=True, invalid_reason="re-registered by another user")
                .execution_options(synchronize_session=False)
            ).rowcount
            db.commit()
            db.refresh(row)
        if taken_over:
            logger.info(
                "Handle %s (%s) moved to user=%s; invalidated %s previous registration(s)",
                mask_handle(handle), provider.value, user_id, taken_over,
            )
        logger.info(
            "%s push registration id=%s user=%s provider=%s device_type=%s",
            "Created" if created else "Refreshed", row.id, user_id, provider.value, device_type.value,
        )
        return row

    def list_handles(self, user_id: int) -> list[DeviceRegistration]:
        """Valid registrations for the user, most recently seen first."""
        with self._session_factory() as db:
            return list(
                db.execute(
                    select(DeviceRegistration)
                    .where(DeviceRegistration.user_id == user_id, DeviceRegistration.invalid.is_(False))
                    .order_by(DeviceRegistration.last_seen_at.desc(), DeviceRegistration.id.desc())
                ).scalars()
            )

    def get(self, registration_id: int) -> DeviceRegistration | None:
        with self._session_factory() as db:
            return db.get(DeviceRegistration, registration_id)

    def mark_invalid(self, registration_id: int, reason: str | None = None) -> bool:
        """Set invalid on one registration (single atomic UPDATE; idempotent). Returns False if it does not exist."""
        with self._session_factory() as db:
            matched = db.execute(
                update(DeviceRegistration)
                .where(DeviceRegistration.id == registration_id)
                .values(invalid=True, invalid_reason=(reason or "")[:256] or None)
                .execution_options(synchronize_session=False)
            ).rowcount
            db.commit()
        if matched:
            logger.info("Marked push registration id=%s invalid: %s", registration_id, reason or "")
        return bool(matched)

