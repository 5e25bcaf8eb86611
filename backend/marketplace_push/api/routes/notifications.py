"""
User notifications API: the in-app notification center plus the dispatch entry point.

User identified by X-User-Id header or ?user_id=.
Supports: dispatch (record + push), list (with unread filter), mark one read, mark all read.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from marketplace_push.api.deps import current_user_id, get_dispatcher, get_store
from marketplace_push.core.constants import NOTIFICATIONS_DEFAULT_LIMIT, NOTIFICATIONS_MAX_LIMIT
from marketplace_push.core.errors import MSG_PUSH_PARTIAL, dispatch_error_to_http
from marketplace_push.models.notification import Notification
from marketplace_push.services.dispatch import Dispatcher
from marketplace_push.services.notification_store import NotificationStore
from marketplace_push.services.push.types import DispatchOutcome, NotificationIntent

router = APIRouter()
logger = logging.getLogger(__name__)


def outcome_out(outcome: DispatchOutcome) -> dict[str, Any]:
    """Dispatch result as returned by every sending route."""
    out: dict[str, Any] = {"ok": True, **outcome.model_dump(mode="json")}
    if outcome.push_partial:
        out["warning"] = MSG_PUSH_PARTIAL
    return out


def _notification_out(r: Notification) -> dict[str, Any]:
    return {
        "id": r.id,
        "title": r.title,
        "message": r.message,
        "type": r.type,
        "read": bool(r.is_read),
        "created_at": r.created_at.isoformat() if r.created_at else None,
        "data": r.data or {},
    }


# --- Dispatch ---


@router.post("/notifications/dispatch")
async def dispatch_notification(
    intent: NotificationIntent,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """
    Save an in-app notification for the recipient and push it to every registered device.
    Push failures never fail the request; they show up per provider in the response.
    """
    try:
        outcome = await dispatcher.dispatch(intent)
    except Exception as e:
        raise dispatch_error_to_http(e)
    return outcome_out(outcome)


# --- List ---


@router.get("/notifications")
def list_notifications(
    user_id: int = Depends(current_user_id),
    store: NotificationStore = Depends(get_store),
    limit: int = Query(NOTIFICATIONS_DEFAULT_LIMIT, ge=1, le=NOTIFICATIONS_MAX_LIMIT),
    unread_only: bool = Query(False),
) -> dict[str, Any]:
    """
    List notifications for the user, newest first.
    Use unread_only=true to only return unread (e.g. for badge count or filtered view).
    """
    rows = store.list_by_user(user_id, limit=limit, unread_only=unread_only)
    return {
        "notifications": [_notification_out(r) for r in rows],
        "unread_count": store.unread_count(user_id),
    }


# --- Mark one read ---


@router.patch("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    user_id: int = Depends(current_user_id),
    store: NotificationStore = Depends(get_store),
) -> dict[str, Any]:
    """Mark a single notification as read."""
    if not store.mark_read(notification_id, user_id=user_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"ok": True, "id": notification_id}


# --- Mark all read ---


@router.post("/notifications/mark-all-read")
def mark_all_read(
    user_id: int = Depends(current_user_id),
    store: NotificationStore = Depends(get_store),
) -> dict[str, Any]:
    """Mark all notifications for the user as read (e.g. 'Clear all' in UI)."""
    updated = store.mark_all_read(user_id)
    return {"ok": True, "user_id": user_id, "marked_count": updated}
