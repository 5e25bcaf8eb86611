"""
Send push notifications via the OneSignal REST API.

Handle: a OneSignal player/subscription id, or `external_id:<id>` to target the external user id.
If OneSignal is not configured (ONESIGNAL_APP_ID / ONESIGNAL_REST_API_KEY), send reports skipped_unconfigured.
"""
import logging
from typing import Any

import httpx

from marketplace_push.config import Settings
from marketplace_push.core.constants import ONESIGNAL_API_URL, ONESIGNAL_EXTERNAL_ID_PREFIX, mask_handle
from marketplace_push.core.errors import (
    DeliveryFailure,
    PermanentDeliveryFailure,
    TransientDeliveryFailure,
    UnconfiguredProviderError,
)
from marketplace_push.services.push.credentials import CredentialResolver, OneSignalCredentials
from marketplace_push.services.push.types import (
    AdapterResult,
    NotificationIntent,
    Provider,
    result_from_failure,
)

logger = logging.getLogger(__name__)


def build_onesignal_payload(
    handle: str,
    intent: NotificationIntent,
    app_id: str,
    settings: Settings,
) -> dict[str, Any]:
    """OneSignal create-notification body addressed to a single player id or external user id."""
    payload: dict[str, Any] = {
        "app_id": app_id,
        "headings": {"en": intent.title},
        "contents": {"en": intent.body},
        "data": {**intent.data, "type": intent.category.value},
        "priority": 10,
    }
    if handle.startswith(ONESIGNAL_EXTERNAL_ID_PREFIX):
        payload["include_external_user_ids"] = [handle[len(ONESIGNAL_EXTERNAL_ID_PREFIX):]]
    else:
        payload["include_player_ids"] = [handle]
    if settings.android_channel_id:
        payload["android_channel_id"] = settings.android_channel_id
    return payload


def _error_messages(errors: Any) -> list[str]:
    if isinstance(errors, list):
        return [str(e) for e in errors]
    if isinstance(errors, str):
        return [errors]
    return []


def classify_onesignal_response(resp: httpx.Response, handle: str) -> str | None:
    """
    Return the notification id on success; raise DeliveryFailure otherwise.
    OneSignal reports dead recipients either as errors.invalid_player_ids (HTTP 200)
    or as "All included players are not subscribed" (HTTP 200 with empty id, or 400).
    """
    try:
        body = resp.json() or {}
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    errors = body.get("errors")
    if isinstance(errors, dict):
        invalid = errors.get("invalid_player_ids") or errors.get("invalid_external_user_ids") or []
        target = handle[len(ONESIGNAL_EXTERNAL_ID_PREFIX):] if handle.startswith(ONESIGNAL_EXTERNAL_ID_PREFIX) else handle
        if target in invalid:
            raise PermanentDeliveryFailure(f"OneSignal {resp.status_code}: invalid recipient", status_code=resp.status_code)
        messages: list[str] = []
    else:
        messages = _error_messages(errors)
    if any("not subscribed" in m.lower() for m in messages):
        raise PermanentDeliveryFailure(f"OneSignal {resp.status_code}: {'; '.join(messages)}", status_code=resp.status_code)
    if resp.status_code == 200 and body.get("id"):
        return body["id"]
    detail = "; ".join(messages) or (resp.text[:200] if resp.text else "no notification id")
    raise TransientDeliveryFailure(f"OneSignal {resp.status_code}: {detail}", status_code=resp.status_code)


class OneSignalAdapter:
    """OneSignal REST sender. One instance per process; shares the app's httpx client."""

    provider = Provider.ONESIGNAL

    def __init__(self, resolver: CredentialResolver, client: httpx.AsyncClient, settings: Settings) -> None:
        self._resolver = resolver
        self._client = client
        self._settings = settings

    async def send(self, handle: str, intent: NotificationIntent) -> AdapterResult:
        try:
            creds = self._resolver.resolve(Provider.ONESIGNAL).require()
        except UnconfiguredProviderError as e:
            return AdapterResult.unconfigured(e.reason)
        try:
            notification_id = await self._send(creds, handle, intent)
        except DeliveryFailure as e:
            logger.warning("OneSignal send failed for %s: %s", mask_handle(handle), e.reason)
            return result_from_failure(e)
        logger.debug("OneSignal sent to %s: %s", mask_handle(handle), notification_id)
        return AdapterResult.sent(notification_id)

    async def _send(self, creds: OneSignalCredentials, handle: str, intent: NotificationIntent) -> str | None:
        payload = build_onesignal_payload(handle, intent, creds.app_id, self._settings)
        try:
            resp = await self._client.post(
                ONESIGNAL_API_URL,
                json=payload,
                headers={
                    "Authorization": f"Basic {creds.rest_api_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.TimeoutException:
            raise TransientDeliveryFailure("OneSignal request timed out")
        except httpx.HTTPError as e:
            raise TransientDeliveryFailure(f"OneSignal request failed: {e}")
        return classify_onesignal_response(resp, handle)
