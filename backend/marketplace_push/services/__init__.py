from marketplace_push.services.device_registry import DeviceRegistry
from marketplace_push.services.dispatch import Dispatcher
from marketplace_push.services.notification_store import NotificationStore

__all__ = ["DeviceRegistry", "Dispatcher", "NotificationStore"]
