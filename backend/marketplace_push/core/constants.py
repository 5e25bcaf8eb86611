"""
Centralized constants for push dispatch (Encapsulate What Changes).

Change provider endpoints, limits or templates' fixed strings here instead of scattering literals.
"""
# Provider endpoints
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
ONESIGNAL_API_URL = "https://onesignal.com/api/v1/notifications"

# Access token / VAPID JWT lifetimes
FCM_ACCESS_TOKEN_LIFETIME_SECONDS = 3600
FCM_ACCESS_TOKEN_REFRESH_MARGIN_SECONDS = 5 * 60  # refresh a bit before expiry
VAPID_CLAIM_LIFETIME_SECONDS = 12 * 60 * 60  # push services reject exp > 24h

# Characters of a device handle that may appear in logs
HANDLE_LOG_PREFIX = 20

# Promotion broadcast: max concurrent per-user dispatch calls
BROADCAST_CONCURRENCY = 10
BROADCAST_MAX_USERS = 1000

# Notification center list caps
NOTIFICATIONS_DEFAULT_LIMIT = 80
NOTIFICATIONS_MAX_LIMIT = 200

# OneSignal handle prefix that targets the external user id instead of a player id
ONESIGNAL_EXTERNAL_ID_PREFIX = "external_id:"


def mask_handle(handle: str | None) -> str:
    """Log-safe prefix of a device handle."""
    if not handle:
        return ""
    return handle[:HANDLE_LOG_PREFIX] + "..."
