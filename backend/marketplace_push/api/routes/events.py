"""
Domain events from the order/delivery layer -> templated notifications.

Each route builds the intent for its event kind and hands it to the dispatcher.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from marketplace_push.api.deps import get_dispatcher
from marketplace_push.api.routes.notifications import outcome_out
from marketplace_push.core.constants import BROADCAST_MAX_USERS
from marketplace_push.core.errors import dispatch_error_to_http
from marketplace_push.services.dispatch import Dispatcher
from marketplace_push.services.push.types import NotificationCategory, NotificationIntent
from marketplace_push.services.templates import (
    PROMOTION_URL,
    DeliveryAssigned,
    NewOrderReceived,
    OrderStatusChanged,
    PromotionAnnounced,
    delivery_assignment_intent,
    new_order_intent,
    order_status_intent,
)

router = APIRouter()
logger = logging.getLogger(__name__)


async def _send(dispatcher: Dispatcher, build, event) -> dict[str, Any]:
    try:
        intent: NotificationIntent = build(event)
        outcome = await dispatcher.dispatch(intent)
    except Exception as e:
        raise dispatch_error_to_http(e)
    return outcome_out(outcome)


@router.post("/events/order-status")
async def order_status_changed(
    event: OrderStatusChanged,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Customer: order moved to a new status (placed, confirmed, out_for_delivery, delivered, ...)."""
    return await _send(dispatcher, order_status_intent, event)


@router.post("/events/delivery-assignment")
async def delivery_assigned(
    event: DeliveryAssigned,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Delivery partner: a delivery is available for pickup."""
    return await _send(dispatcher, delivery_assignment_intent, event)


@router.post("/events/new-order")
async def new_order_received(
    event: NewOrderReceived,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Seller: a customer placed an order at the store."""
    return await _send(dispatcher, new_order_intent, event)


@router.post("/events/promotion")
async def promotion_announced(
    event: PromotionAnnounced,
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict[str, Any]:
    """
    Promotion to a list of users. One record and one push fan-out per user.
    Users whose record could not be saved are returned in failed_user_ids.
    """
    if len(event.user_ids) > BROADCAST_MAX_USERS:
        raise HTTPException(status_code=422, detail=f"At most {BROADCAST_MAX_USERS} users per promotion")
    try:
        outcome = await dispatcher.broadcast(
            event.user_ids,
            event.title,
            event.message,
            category=NotificationCategory.PROMOTION,
            data={"url": PROMOTION_URL},
        )
    except Exception as e:
        raise dispatch_error_to_http(e)
    sent_users = sum(1 for o in outcome.outcomes if o.any_sent)
    logger.info("Promotion: %s record(s), %s user(s) reached by push", len(outcome.outcomes), sent_users)
    return {
        "ok": True,
        "notification_ids": [o.notification_id for o in outcome.outcomes],
        "users_reached": sent_users,
        "failed_user_ids": outcome.failed_user_ids,
    }
