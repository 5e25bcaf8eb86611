"""
Send push notifications directly to a browser push service (Web Push, VAPID).

Handle: the browser PushSubscription serialized as JSON ({endpoint, keys: {p256dh, auth}}).
The payload is encrypted with aes128gcm (pywebpush) and authorized with a VAPID JWT (py_vapid).
404/410 from the push service means the subscription is gone (permanent); anything else is transient.
"""
import json
import logging
import time
from typing import Any
from urllib.parse import urlsplit

import httpx
from py_vapid import Vapid
from pywebpush import WebPusher, WebPushException

from marketplace_push.config import Settings
from marketplace_push.core.constants import VAPID_CLAIM_LIFETIME_SECONDS, mask_handle
from marketplace_push.core.errors import (
    DeliveryFailure,
    PermanentDeliveryFailure,
    TransientDeliveryFailure,
    UnconfiguredProviderError,
)
from marketplace_push.services.push.credentials import CredentialResolver, VapidCredentials
from marketplace_push.services.push.types import (
    AdapterResult,
    NotificationIntent,
    Provider,
    result_from_failure,
)

logger = logging.getLogger(__name__)

_GONE_STATUSES = frozenset({404, 410})
_OK_STATUSES = frozenset({200, 201, 202})


def serialize_subscription(subscription: dict[str, Any]) -> str:
    """Canonical handle string for a PushSubscription, so re-registration of the same subscription upserts."""
    keys = subscription.get("keys") or {}
    canonical = {
        "endpoint": subscription.get("endpoint"),
        "keys": {"auth": keys.get("auth"), "p256dh": keys.get("p256dh")},
    }
    return json.dumps(canonical, separators=(",", ":"), sort_keys=True)


def parse_subscription(handle: str) -> dict[str, Any]:
    """Parse a stored handle. A malformed subscription can never succeed, so it is a permanent failure."""
    try:
        sub = json.loads(handle)
    except ValueError:
        raise PermanentDeliveryFailure("Web Push handle is not a JSON subscription")
    if not isinstance(sub, dict):
        raise PermanentDeliveryFailure("Web Push handle is not a JSON subscription")
    endpoint = sub.get("endpoint")
    keys = sub.get("keys")
    if not isinstance(endpoint, str) or not endpoint.startswith("https://"):
        raise PermanentDeliveryFailure("Web Push subscription has no https endpoint")
    if not isinstance(keys, dict) or not keys.get("p256dh") or not keys.get("auth"):
        raise PermanentDeliveryFailure("Web Push subscription is missing keys")
    return sub


def build_webpush_payload(intent: NotificationIntent, settings: Settings) -> dict[str, Any]:
    """JSON the service worker reads: notification fields plus data (url for click-through)."""
    return {
        "title": intent.title,
        "body": intent.body,
        "icon": settings.notification_icon,
        "badge": settings.notification_badge,
        "data": {**intent.data, "type": intent.category.value},
        "url": intent.data.get("url") or "/",
    }


def _audience(endpoint: str) -> str:
    parts = urlsplit(endpoint)
    return f"{parts.scheme}://{parts.netloc}"


class WebPushAdapter:
    """Web Push (VAPID) sender. One instance per process; shares the app's httpx client."""

    provider = Provider.WEBPUSH

    def __init__(self, resolver: CredentialResolver, client: httpx.AsyncClient, settings: Settings) -> None:
        self._resolver = resolver
        self._client = client
        self._settings = settings
        self._vapid: Vapid | None = None

    async def send(self, handle: str, intent: NotificationIntent) -> AdapterResult:
        try:
            creds = self._resolver.resolve(Provider.WEBPUSH).require()
        except UnconfiguredProviderError as e:
            return AdapterResult.unconfigured(e.reason)
        try:
            status_code = await self._send(creds, handle, intent)
        except DeliveryFailure as e:
            logger.warning("Web Push send failed for %s: %s", mask_handle(handle), e.reason)
            return result_from_failure(e)
        logger.debug("Web Push sent to %s (%s)", mask_handle(handle), status_code)
        return AdapterResult.sent()

    def _signer(self, creds: VapidCredentials) -> Vapid:
        if self._vapid is None:
            try:
                self._vapid = Vapid.from_string(private_key=creds.private_key)
            except Exception as e:
                # py_vapid raises several types for a bad key; all mean misconfiguration
                raise TransientDeliveryFailure(f"VAPID private key could not be loaded: {e}")
        return self._vapid

    def _encrypt(self, subscription: dict[str, Any], payload: dict[str, Any]) -> bytes:
        try:
            encoded = WebPusher(subscription).encode(json.dumps(payload).encode("utf-8"), "aes128gcm")
        except (WebPushException, ValueError, TypeError) as e:
            # bad p256dh/auth keys: the subscription itself is unusable
            raise PermanentDeliveryFailure(f"Web Push subscription keys rejected: {e}")
        return encoded["body"]

    async def _send(self, creds: VapidCredentials, handle: str, intent: NotificationIntent) -> int:
        subscription = parse_subscription(handle)
        endpoint = subscription["endpoint"]
        body = self._encrypt(subscription, build_webpush_payload(intent, self._settings))
        claims = {
            "sub": creds.subject,
            "aud": _audience(endpoint),
            "exp": int(time.time()) + VAPID_CLAIM_LIFETIME_SECONDS,
        }
        try:
            vapid_headers = self._signer(creds).sign(claims)
        except TransientDeliveryFailure:
            raise
        except Exception as e:
            raise TransientDeliveryFailure(f"VAPID signing failed: {e}")
        headers = {
            **vapid_headers,
            "TTL": str(self._settings.push_ttl_seconds),
            "Content-Encoding": "aes128gcm",
            "Content-Type": "application/octet-stream",
            "Urgency": "high",
        }
        try:
            resp = await self._client.post(endpoint, content=body, headers=headers)
        except httpx.TimeoutException:
            raise TransientDeliveryFailure("Web Push request timed out")
        except httpx.HTTPError as e:
            raise TransientDeliveryFailure(f"Web Push request failed: {e}")
        if resp.status_code in _OK_STATUSES:
            return resp.status_code
        detail = resp.text[:200] if resp.text else ""
        if resp.status_code in _GONE_STATUSES:
            raise PermanentDeliveryFailure(f"Web Push {resp.status_code}: subscription gone {detail}".strip(), status_code=resp.status_code)
        raise TransientDeliveryFailure(f"Web Push {resp.status_code}: {detail}".strip(), status_code=resp.status_code)
