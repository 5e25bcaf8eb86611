"""Shared types for push dispatch: enums, the notification intent, adapter results and the dispatch outcome."""
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from marketplace_push.core.errors import DeliveryFailure


class Provider(str, Enum):
    FCM = "fcm"
    ONESIGNAL = "onesignal"
    WEBPUSH = "webpush"


class DeviceType(str, Enum):
    WEB = "web"
    ANDROID = "android"
    IOS = "ios"


class NotificationCategory(str, Enum):
    ORDER_UPDATE = "order_update"
    DELIVERY_ASSIGNMENT = "delivery_assignment"
    PROMOTION = "promotion"
    TEST = "test"
    GENERIC = "generic"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    SKIPPED_UNCONFIGURED = "skipped_unconfigured"
    FAILED_PERMANENT = "failed_permanent"
    FAILED_TRANSIENT = "failed_transient"


# When one provider has several handles for a user, the best outcome wins the per-provider slot.
STATUS_PRECEDENCE = (
    DeliveryStatus.SENT,
    DeliveryStatus.FAILED_TRANSIENT,
    DeliveryStatus.FAILED_PERMANENT,
    DeliveryStatus.SKIPPED_UNCONFIGURED,
)


class NotificationIntent(BaseModel):
    """What to tell one user. Built per dispatch call; never persisted as-is."""

    recipient_user_id: int = Field(..., gt=0)
    title: str = Field(..., max_length=256)
    body: str
    category: NotificationCategory = NotificationCategory.GENERIC
    data: dict[str, Any] = Field(default_factory=dict, description="Provider-agnostic payload (orderId, url, ...)")

    @field_validator("title", "body")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    def string_data(self) -> dict[str, str]:
        """data with every value coerced to str (FCM data payloads only carry strings)."""
        return {str(k): v if isinstance(v, str) else _to_str(v) for k, v in self.data.items() if v is not None}


def _to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


@dataclass(frozen=True)
class AdapterResult:
    """Outcome of one adapter send to one handle."""

    status: DeliveryStatus
    reason: str | None = None
    provider_message_id: str | None = None

    @classmethod
    def sent(cls, provider_message_id: str | None = None) -> "AdapterResult":
        return cls(DeliveryStatus.SENT, provider_message_id=provider_message_id)

    @classmethod
    def permanent(cls, reason: str) -> "AdapterResult":
        return cls(DeliveryStatus.FAILED_PERMANENT, reason=reason)

    @classmethod
    def transient(cls, reason: str) -> "AdapterResult":
        return cls(DeliveryStatus.FAILED_TRANSIENT, reason=reason)

    @classmethod
    def unconfigured(cls, reason: str | None = None) -> "AdapterResult":
        return cls(DeliveryStatus.SKIPPED_UNCONFIGURED, reason=reason)


class DeliveryReport(BaseModel):
    """Per-handle detail of a dispatch call."""

    registration_id: int
    provider: Provider
    status: DeliveryStatus
    reason: str | None = None


class DispatchOutcome(BaseModel):
    """Returned by dispatch: the record id plus per-provider results. Not persisted."""

    notification_id: int
    per_provider: dict[Provider, DeliveryStatus] = Field(default_factory=dict)
    deliveries: list[DeliveryReport] = Field(default_factory=list)

    @property
    def any_sent(self) -> bool:
        return any(s == DeliveryStatus.SENT for s in self.per_provider.values())

    @property
    def push_partial(self) -> bool:
        """True when at least one attempted provider did not report sent."""
        return any(
            s in (DeliveryStatus.FAILED_PERMANENT, DeliveryStatus.FAILED_TRANSIENT)
            for s in self.per_provider.values()
        )


def collapse_statuses(statuses: list[DeliveryStatus]) -> DeliveryStatus:
    """Best status of several handles of the same provider."""
    for status in STATUS_PRECEDENCE:
        if status in statuses:
            return status
    return DeliveryStatus.SKIPPED_UNCONFIGURED


def result_from_failure(exc: DeliveryFailure) -> AdapterResult:
    """AdapterResult for a classified provider failure."""
    if exc.permanent:
        return AdapterResult.permanent(exc.reason)
    return AdapterResult.transient(exc.reason)


class BroadcastOutcome(BaseModel):
    """Per-user outcomes of a segment send. Users whose record could not be written are listed separately."""

    outcomes: list[DispatchOutcome] = Field(default_factory=list)
    failed_user_ids: list[int] = Field(default_factory=list)
