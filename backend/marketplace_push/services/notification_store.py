"""
Notification record store: the in-app log of what each user was told.

Records are written by dispatch regardless of push outcome; the read flag is the only mutation.
Any database failure surfaces as PersistenceError.
"""
import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from marketplace_push.core.constants import NOTIFICATIONS_DEFAULT_LIMIT
from marketplace_push.core.errors import PersistenceError
from marketplace_push.models.notification import Notification
from marketplace_push.services.push.types import NotificationCategory

logger = logging.getLogger(__name__)


class NotificationStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def create(
        self,
        user_id: int,
        title: str,
        message: str,
        type: NotificationCategory | str = NotificationCategory.GENERIC,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        try:
            with self._session_factory() as db:
                row = Notification(
                    user_id=user_id,
                    title=title,
                    message=message,
                    type=NotificationCategory(type).value,
                    is_read=False,
                    data=dict(data or {}),
                )
                db.add(row)
                db.commit()
                db.refresh(row)
        except SQLAlchemyError as e:
            logger.error("Notification record write failed for user=%s: %s", user_id, e)
            raise PersistenceError(f"could not save notification for user {user_id}") from e
        return row

    def list_by_user(
        self,
        user_id: int,
        *,
        limit: int = NOTIFICATIONS_DEFAULT_LIMIT,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Newest first."""
        q = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            q = q.where(Notification.is_read.is_(False))
        q = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        try:
            with self._session_factory() as db:
                return list(db.execute(q).scalars())
        except SQLAlchemyError as e:
            raise PersistenceError(f"could not list notifications for user {user_id}") from e

    def unread_count(self, user_id: int) -> int:
        try:
            with self._session_factory() as db:
                return db.execute(
                    select(func.count())
                    .select_from(Notification)
                    .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                ).scalar_one()
        except SQLAlchemyError as e:
            raise PersistenceError(f"could not count notifications for user {user_id}") from e

    def mark_read(self, notification_id: int, user_id: int | None = None) -> bool:
        """Mark one record read. With user_id, only that user's record matches. False if nothing matched."""
        q = update(Notification).where(Notification.id == notification_id)
        if user_id is not None:
            q = q.where(Notification.user_id == user_id)
        try:
            with self._session_factory() as db:
                matched = db.execute(q.values(is_read=True).execution_options(synchronize_session=False)).rowcount
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"could not mark notification {notification_id} read") from e
        return bool(matched)

    def mark_all_read(self, user_id: int) -> int:
        """Mark every unread record of the user read. Returns how many changed."""
        try:
            with self._session_factory() as db:
                updated = db.execute(
                    update(Notification)
                    .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                    .values(is_read=True)
                    .execution_options(synchronize_session=False)
                ).rowcount
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"could not mark notifications read for user {user_id}") from e
        return updated
