"""Protocol for push provider adapters. All adapters take the same intent and return the same result shape."""
from typing import Protocol

from marketplace_push.services.push.types import AdapterResult, NotificationIntent, Provider


class PushAdapter(Protocol):
    """Interface for FCM, OneSignal, Web Push. Same contract; only the wire payload and transport differ."""

    @property
    def provider(self) -> Provider:
        """Provider this adapter delivers for; matches DeviceRegistration.provider."""
        ...

    async def send(self, handle: str, intent: NotificationIntent) -> AdapterResult:
        """
        Deliver one intent to one device handle.
        Must classify failures (permanent vs transient) and return them; never raises for transport errors.
        """
        ...
