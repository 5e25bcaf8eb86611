"""
Dispatch orchestrator: one notification intent -> concurrent push fan-out + exactly one in-app record.

Building -> Fetching handles -> Sending (fan-out) -> Recording -> Complete.
Push is best effort: adapter failures are classified and folded into the outcome, never raised.
The notification record is written whatever the push results, including when the call is cancelled
mid-send. Only IntentValidationError (before any side effect) and PersistenceError propagate.
Registry and store calls are synchronous SQLAlchemy; they run in worker threads (asyncio.to_thread).
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from marketplace_push.core.constants import BROADCAST_CONCURRENCY
from marketplace_push.core.errors import IntentValidationError, PersistenceError
from marketplace_push.models.device_registration import DeviceRegistration
from marketplace_push.models.notification import Notification
from marketplace_push.services.device_registry import DeviceRegistry
from marketplace_push.services.notification_store import NotificationStore
from marketplace_push.services.push.credentials import CredentialResolver
from marketplace_push.services.push.registry import AdapterRegistry
from marketplace_push.services.push.types import (
    AdapterResult,
    BroadcastOutcome,
    DeliveryReport,
    DeliveryStatus,
    DispatchOutcome,
    NotificationCategory,
    NotificationIntent,
    Provider,
    collapse_statuses,
)

logger = logging.getLogger(__name__)


def validate_intent(intent: NotificationIntent) -> None:
    """Reject malformed intents (also ones built with model_construct, which skips pydantic validation)."""
    if not isinstance(intent, NotificationIntent):
        raise IntentValidationError("intent must be a NotificationIntent")
    user_id = intent.recipient_user_id
    if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
        raise IntentValidationError("recipient_user_id must be a positive integer")
    if not isinstance(intent.title, str) or not intent.title.strip():
        raise IntentValidationError("title must not be empty")
    if not isinstance(intent.body, str) or not intent.body.strip():
        raise IntentValidationError("body must not be empty")
    try:
        NotificationCategory(intent.category)
    except ValueError:
        raise IntentValidationError(f"unknown category: {intent.category!r}")


class Dispatcher:
    def __init__(
        self,
        registry: DeviceRegistry,
        store: NotificationStore,
        adapters: AdapterRegistry,
        resolver: CredentialResolver,
        *,
        send_timeout: float = 10.0,
    ) -> None:
        self._registry = registry
        self._store = store
        self._adapters = adapters
        self._resolver = resolver
        self._send_timeout = send_timeout

    async def dispatch(self, intent: NotificationIntent) -> DispatchOutcome:
        validate_intent(intent)
        user_id = intent.recipient_user_id
        try:
            registrations = await self._fetch_handles(user_id)
            deliveries = await self._fan_out(intent, registrations)
        except asyncio.CancelledError:
            logger.warning("Dispatch for user=%s cancelled during send; recording notification anyway", user_id)
            # synchronous so a second cancel cannot interrupt it
            self._record(intent)
            raise
        # a cancel while this thread runs still leaves the record written
        record = await asyncio.to_thread(self._record, intent)
        per_provider = self._per_provider(deliveries)
        logger.info(
            "Dispatched notification id=%s user=%s category=%s to %s handle(s): %s",
            record.id,
            user_id,
            NotificationCategory(intent.category).value,
            len(deliveries),
            {p.value: s.value for p, s in per_provider.items()},
        )
        return DispatchOutcome(notification_id=record.id, per_provider=per_provider, deliveries=deliveries)

    async def broadcast(
        self,
        user_ids: list[int],
        title: str,
        body: str,
        *,
        category: NotificationCategory = NotificationCategory.PROMOTION,
        data: dict[str, Any] | None = None,
        concurrency: int = BROADCAST_CONCURRENCY,
    ) -> BroadcastOutcome:
        """
        Per-user dispatch over a list of users (segment send). Every intent is validated before the first send.
        A user whose record cannot be written is reported in failed_user_ids; the others still go out.
        """
        intents = []
        for uid in dict.fromkeys(user_ids):
            try:
                intent = NotificationIntent(
                    recipient_user_id=uid, title=title, body=body, category=category, data=dict(data or {})
                )
            except ValueError as e:
                raise IntentValidationError(str(e)) from e
            validate_intent(intent)
            intents.append(intent)
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def _one(intent: NotificationIntent) -> DispatchOutcome | None:
            async with semaphore:
                try:
                    return await self.dispatch(intent)
                except PersistenceError:
                    logger.error("Broadcast: record for user=%s not saved", intent.recipient_user_id)
                    return None
                except Exception:
                    logger.error("Broadcast: dispatch for user=%s failed", intent.recipient_user_id, exc_info=True)
                    return None

        results = await asyncio.gather(*(_one(i) for i in intents))
        outcome = BroadcastOutcome()
        for intent, result in zip(intents, results):
            if result is None:
                outcome.failed_user_ids.append(intent.recipient_user_id)
            else:
                outcome.outcomes.append(result)
        logger.info(
            "Broadcast %s to %s user(s); %s record failure(s)",
            NotificationCategory(category).value, len(intents), len(outcome.failed_user_ids),
        )
        return outcome

    # --- states ---

    async def _fetch_handles(self, user_id: int) -> list[DeviceRegistration]:
        try:
            registrations = await asyncio.to_thread(self._registry.list_handles, user_id)
        except SQLAlchemyError as e:
            # no handles means no push; the record below is still attempted
            logger.error("Could not load push registrations for user=%s: %s", user_id, e)
            return []
        known = []
        for reg in registrations:
            try:
                Provider(reg.provider)
            except ValueError:
                logger.warning("Skipping registration id=%s with unknown provider %r", reg.id, reg.provider)
                continue
            known.append(reg)
        return known

    async def _fan_out(
        self,
        intent: NotificationIntent,
        registrations: list[DeviceRegistration],
    ) -> list[DeliveryReport]:
        if not registrations:
            return []
        return list(await asyncio.gather(*(self._send_one(reg, intent) for reg in registrations)))

    async def _send_one(self, reg: DeviceRegistration, intent: NotificationIntent) -> DeliveryReport:
        provider = Provider(reg.provider)
        adapter = self._adapters.get(provider)
        state = self._resolver.resolve(provider)
        if adapter is None or not state.configured:
            result = AdapterResult.unconfigured(state.reason or "no adapter registered")
        else:
            try:
                result = await asyncio.wait_for(adapter.send(reg.handle, intent), timeout=self._send_timeout)
            except asyncio.TimeoutError:
                logger.warning("%s send to registration id=%s timed out after %ss", provider.value, reg.id, self._send_timeout)
                result = AdapterResult.transient(f"timed out after {self._send_timeout}s")
            except Exception as e:
                logger.error("%s adapter raised for registration id=%s", provider.value, reg.id, exc_info=True)
                result = AdapterResult.transient(f"adapter error: {e}")
        if result.status == DeliveryStatus.FAILED_PERMANENT:
            await self._invalidate(reg, result.reason)
        return DeliveryReport(registration_id=reg.id, provider=provider, status=result.status, reason=result.reason)

    async def _invalidate(self, reg: DeviceRegistration, reason: str | None) -> None:
        try:
            await asyncio.to_thread(self._registry.mark_invalid, reg.id, reason)
        except SQLAlchemyError as e:
            logger.warning("Could not mark registration id=%s invalid: %s", reg.id, e)

    def _record(self, intent: NotificationIntent) -> Notification:
        return self._store.create(
            intent.recipient_user_id,
            intent.title,
            intent.body,
            NotificationCategory(intent.category),
            intent.data,
        )

    @staticmethod
    def _per_provider(deliveries: list[DeliveryReport]) -> dict[Provider, DeliveryStatus]:
        by_provider: dict[Provider, list[DeliveryStatus]] = defaultdict(list)
        for d in deliveries:
            by_provider[d.provider].append(d.status)
        return {p: collapse_statuses(statuses) for p, statuses in by_provider.items()}
