"""
Send push notifications via Firebase Cloud Messaging (HTTP v1 API).

Auth: an OAuth2 access token minted from the service account (JWT bearer grant, RS256),
cached until shortly before it expires. If FCM credentials are not configured, send reports
skipped_unconfigured without touching the network.
"""
import asyncio
import logging
import time
from typing import Any

import httpx
import jwt

from marketplace_push.config import Settings
from marketplace_push.core.constants import (
    FCM_ACCESS_TOKEN_LIFETIME_SECONDS,
    FCM_ACCESS_TOKEN_REFRESH_MARGIN_SECONDS,
    FCM_SCOPE,
    FCM_SEND_URL,
    mask_handle,
)
from marketplace_push.core.errors import (
    DeliveryFailure,
    PermanentDeliveryFailure,
    TransientDeliveryFailure,
    UnconfiguredProviderError,
)
from marketplace_push.services.push.credentials import CredentialResolver, FcmCredentials
from marketplace_push.services.push.types import (
    AdapterResult,
    NotificationIntent,
    Provider,
    result_from_failure,
)

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

# FCM error codes meaning the token will never work again.
# SENDER_ID_MISMATCH is not one: it means our project/service account is wrong, not the token.
_DEAD_TOKEN_CODES = frozenset({"UNREGISTERED"})


def build_fcm_message(handle: str, intent: NotificationIntent, settings: Settings) -> dict[str, Any]:
    """FCM v1 message for one registration token. data values are all strings (wire format)."""
    return {
        "token": handle,
        "notification": {"title": intent.title, "body": intent.body},
        "data": {**intent.string_data(), "type": intent.category.value},
        "android": {
            "priority": "high",
            "notification": {
                "channel_id": settings.android_channel_id,
                "icon": "ic_notification",
                "color": "#FF6B35",
                "sound": "default",
            },
        },
        "webpush": {
            "headers": {"TTL": str(settings.push_ttl_seconds)},
            "notification": {
                "icon": settings.notification_icon,
                "badge": settings.notification_badge,
                "requireInteraction": True,
                "actions": [{"action": "open", "title": "Open App"}],
            },
        },
    }


def classify_fcm_error(resp: httpx.Response) -> DeliveryFailure:
    """Map an FCM v1 error response to a permanent (dead token) or transient failure."""
    try:
        error = (resp.json() or {}).get("error") or {}
    except ValueError:
        error = {}
    if not isinstance(error, dict):
        error = {}
    status = error.get("status") or ""
    message = error.get("message") or (resp.text[:200] if resp.text else "")
    codes = {
        d.get("errorCode")
        for d in error.get("details") or []
        if isinstance(d, dict) and d.get("errorCode")
    }
    label = ",".join(sorted(codes)) or status or "error"
    reason = f"FCM {resp.status_code} {label}: {message}".strip()
    if codes & _DEAD_TOKEN_CODES:
        return PermanentDeliveryFailure(reason, status_code=resp.status_code)
    if "INVALID_ARGUMENT" in (codes | {status}) and "registration token" in message.lower():
        return PermanentDeliveryFailure(reason, status_code=resp.status_code)
    return TransientDeliveryFailure(reason, status_code=resp.status_code)


class FcmAdapter:
    """FCM HTTP v1 sender. One instance per process; shares the app's httpx client."""

    provider = Provider.FCM

    def __init__(self, resolver: CredentialResolver, client: httpx.AsyncClient, settings: Settings) -> None:
        self._resolver = resolver
        self._client = client
        self._settings = settings
        # (access_token, refresh_after_epoch)
        self._token_cache: tuple[str, float] | None = None
        self._token_lock = asyncio.Lock()

    async def send(self, handle: str, intent: NotificationIntent) -> AdapterResult:
        try:
            creds = self._resolver.resolve(Provider.FCM).require()
        except UnconfiguredProviderError as e:
            return AdapterResult.unconfigured(e.reason)
        try:
            message_id = await self._send(creds, handle, intent)
        except DeliveryFailure as e:
            logger.warning("FCM send failed for token %s: %s", mask_handle(handle), e.reason)
            return result_from_failure(e)
        logger.debug("FCM sent to token %s: %s", mask_handle(handle), message_id)
        return AdapterResult.sent(message_id)

    async def _send(self, creds: FcmCredentials, handle: str, intent: NotificationIntent) -> str | None:
        access_token = await self._access_token(creds)
        url = FCM_SEND_URL.format(project_id=creds.project_id)
        message = build_fcm_message(handle, intent, self._settings)
        try:
            resp = await self._client.post(
                url,
                json={"message": message},
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.TimeoutException:
            raise TransientDeliveryFailure("FCM request timed out")
        except httpx.HTTPError as e:
            raise TransientDeliveryFailure(f"FCM request failed: {e}")
        if resp.status_code == 200:
            try:
                return (resp.json() or {}).get("name")
            except ValueError:
                return None
        if resp.status_code == 401:
            # token revoked or expired early; mint a new one next time
            self._token_cache = None
        raise classify_fcm_error(resp)

    async def _access_token(self, creds: FcmCredentials) -> str:
        """Cached OAuth2 access token for the service account. Raises TransientDeliveryFailure."""
        cached = self._token_cache
        if cached and cached[1] > time.time():
            return cached[0]
        async with self._token_lock:
            cached = self._token_cache
            now = time.time()
            if cached and cached[1] > now:
                return cached[0]
            try:
                assertion = jwt.encode(
                    {
                        "iss": creds.client_email,
                        "scope": FCM_SCOPE,
                        "aud": creds.token_uri,
                        "iat": int(now),
                        "exp": int(now) + FCM_ACCESS_TOKEN_LIFETIME_SECONDS,
                    },
                    creds.private_key,
                    algorithm="RS256",
                )
            except (jwt.PyJWTError, ValueError, TypeError) as e:
                raise TransientDeliveryFailure(f"FCM credential misconfiguration: {e}")
            try:
                resp = await self._client.post(
                    creds.token_uri,
                    data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
                )
            except httpx.HTTPError as e:
                raise TransientDeliveryFailure(f"FCM token request failed: {e}")
            if resp.status_code != 200:
                raise TransientDeliveryFailure(
                    f"FCM token endpoint returned {resp.status_code}: {resp.text[:200]}",
                    status_code=resp.status_code,
                )
            try:
                body = resp.json() or {}
            except ValueError:
                body = {}
            token = body.get("access_token")
            if not token:
                raise TransientDeliveryFailure("FCM token endpoint returned no access_token")
            expires_in = int(body.get("expires_in") or FCM_ACCESS_TOKEN_LIFETIME_SECONDS)
            self._token_cache = (token, now + expires_in - FCM_ACCESS_TOKEN_REFRESH_MARGIN_SECONDS)
            return token
