from marketplace_push.models.device_registration import DeviceRegistration
from marketplace_push.models.notification import Notification

__all__ = [
    "DeviceRegistration",
    "Notification",
]
