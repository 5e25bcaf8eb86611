"""
Push providers: FCM, OneSignal, Web Push.
Each adapter speaks its provider's wire format but takes the same NotificationIntent and returns the
same AdapterResult, so dispatch stays provider-agnostic.
"""
from marketplace_push.services.push.base import PushAdapter
from marketplace_push.services.push.credentials import CredentialResolver, CredentialState
from marketplace_push.services.push.registry import AdapterRegistry, build_adapter_registry
from marketplace_push.services.push.types import (
    AdapterResult,
    DeliveryStatus,
    DeviceType,
    DispatchOutcome,
    NotificationCategory,
    NotificationIntent,
    Provider,
)

__all__ = [
    "AdapterRegistry",
    "AdapterResult",
    "CredentialResolver",
    "CredentialState",
    "DeliveryStatus",
    "DeviceType",
    "DispatchOutcome",
    "NotificationCategory",
    "NotificationIntent",
    "Provider",
    "PushAdapter",
    "build_adapter_registry",
]
