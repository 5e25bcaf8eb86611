"""Push device registration: delivery handles (FCM token, OneSignal subscription id, Web Push subscription)."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator

from marketplace_push.api.deps import current_user_id, get_dispatcher, get_registry, get_resolver
from marketplace_push.api.routes.notifications import outcome_out
from marketplace_push.config import settings
from marketplace_push.core.errors import dispatch_error_to_http
from marketplace_push.models.device_registration import DeviceRegistration
from marketplace_push.services.device_registry import DeviceRegistry
from marketplace_push.services.dispatch import Dispatcher
from marketplace_push.services.push.credentials import CredentialResolver, VapidCredentials
from marketplace_push.services.push.types import DeviceType, Provider
from marketplace_push.services.push.webpush import serialize_subscription
from marketplace_push.services.templates import push_test_intent

router = APIRouter()
logger = logging.getLogger(__name__)


class RegisterDeviceBody(BaseModel):
    user_id: int = Field(..., gt=0)
    provider: Provider
    handle: str | None = Field(None, max_length=2048, description="FCM token, OneSignal subscription id, or serialized subscription")
    subscription: dict[str, Any] | None = Field(None, description="Browser PushSubscription (webpush only)")
    device_type: DeviceType = DeviceType.WEB

    @model_validator(mode="after")
    def one_handle(self) -> "RegisterDeviceBody":
        if self.subscription is not None:
            if self.provider != Provider.WEBPUSH:
                raise ValueError("subscription is only accepted for provider 'webpush'")
            keys = self.subscription.get("keys") or {}
            if not self.subscription.get("endpoint") or not keys.get("p256dh") or not keys.get("auth"):
                raise ValueError("subscription needs endpoint and keys.p256dh/keys.auth")
            self.handle = serialize_subscription(self.subscription)
        if not (self.handle or "").strip():
            raise ValueError("handle or subscription is required")
        return self


def _registration_out(r: DeviceRegistration) -> dict[str, Any]:
    return {
        "id": r.id,
        "user_id": r.user_id,
        "provider": r.provider,
        "device_type": r.device_type,
        "created_at": r.created_at.isoformat() if r.created_at else None,
        "last_seen_at": r.last_seen_at.isoformat() if r.last_seen_at else None,
        "invalid": bool(r.invalid),
    }


@router.post("/push/register")
def register_device(body: RegisterDeviceBody, registry: DeviceRegistry = Depends(get_registry)) -> dict[str, Any]:
    """
    Register a device for push notifications.
    Call this from the client after permission is granted and the provider handle is acquired.
    Idempotent: the same (user, provider, handle) is upserted (last_seen_at refreshed, invalid cleared).
    """
    row = registry.register(body.user_id, body.provider, body.handle, body.device_type)
    return {"ok": True, "registration": _registration_out(row)}


@router.get("/push/devices")
def list_devices(
    user_id: int = Depends(current_user_id),
    registry: DeviceRegistry = Depends(get_registry),
) -> dict[str, Any]:
    """Active (not invalid) registrations for the user."""
    rows = registry.list_handles(user_id)
    return {"devices": [_registration_out(r) for r in rows], "count": len(rows)}


@router.get("/push/providers")
def provider_status(resolver: CredentialResolver = Depends(get_resolver)) -> dict[str, Any]:
    """Which providers have usable credentials (diagnostics; never returns secrets)."""
    return {"providers": resolver.status()}


@router.get("/push/vapid-public-key")
def vapid_public_key(resolver: CredentialResolver = Depends(get_resolver)) -> dict[str, str]:
    """applicationServerKey for pushManager.subscribe in the browser."""
    state = resolver.resolve(Provider.WEBPUSH)
    creds: VapidCredentials | None = state.credentials
    if creds is None or not creds.public_key:
        raise HTTPException(status_code=404, detail="Web Push is not configured")
    return {"public_key": creds.public_key}


@router.post("/push/test")
async def send_test_push(
    user_id: int = Depends(current_user_id),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Send a test notification to all of the user's devices (also saved in the notification center)."""
    try:
        outcome = await dispatcher.dispatch(push_test_intent(user_id, settings.app_name))
    except Exception as e:
        raise dispatch_error_to_http(e)
    if not outcome.deliveries:
        logger.info("Test push for user=%s: no registered devices", user_id)
    return outcome_out(outcome)
