"""Registry of push adapters keyed by provider. Built explicitly at start-up; no import-time side effects."""
import logging

import httpx

from marketplace_push.config import Settings
from marketplace_push.services.push.base import PushAdapter
from marketplace_push.services.push.credentials import CredentialResolver
from marketplace_push.services.push.fcm import FcmAdapter
from marketplace_push.services.push.onesignal import OneSignalAdapter
from marketplace_push.services.push.types import Provider
from marketplace_push.services.push.webpush import WebPushAdapter

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Provider -> adapter. Tests register fakes in place of the HTTP adapters."""

    def __init__(self, adapters: dict[Provider, PushAdapter] | None = None) -> None:
        self._adapters: dict[Provider, PushAdapter] = dict(adapters or {})

    def register(self, provider: Provider, adapter: PushAdapter) -> None:
        self._adapters[Provider(provider)] = adapter
        logger.info("Registered push adapter: %s", Provider(provider).value)

    def get(self, provider: Provider) -> PushAdapter | None:
        return self._adapters.get(Provider(provider))


def build_adapter_registry(
    resolver: CredentialResolver,
    client: httpx.AsyncClient,
    settings: Settings,
) -> AdapterRegistry:
    """Built-in adapters for FCM, OneSignal and Web Push, sharing one resolver and HTTP client."""
    registry = AdapterRegistry()
    registry.register(Provider.FCM, FcmAdapter(resolver, client, settings))
    registry.register(Provider.ONESIGNAL, OneSignalAdapter(resolver, client, settings))
    registry.register(Provider.WEBPUSH, WebPushAdapter(resolver, client, settings))
    return registry
