"""Request dependencies: services built at start-up live on app.state; the user comes from header or query."""
from fastapi import Header, HTTPException, Query, Request

from marketplace_push.services.device_registry import DeviceRegistry
from marketplace_push.services.dispatch import Dispatcher
from marketplace_push.services.notification_store import NotificationStore
from marketplace_push.services.push.credentials import CredentialResolver


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_registry(request: Request) -> DeviceRegistry:
    return request.app.state.device_registry


def get_store(request: Request) -> NotificationStore:
    return request.app.state.notification_store


def get_resolver(request: Request) -> CredentialResolver:
    return request.app.state.credential_resolver


def current_user_id(
    x_user_id: int | None = Header(None, alias="X-User-Id"),
    user_id: int | None = Query(None),
) -> int:
    uid = x_user_id if x_user_id is not None else user_id
    if uid is None or uid <= 0:
        raise HTTPException(status_code=400, detail="X-User-Id header or user_id query parameter is required")
    return uid
