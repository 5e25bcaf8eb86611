"""
Domain event -> notification intent. Title/body templating is a lookup by event kind and status.
"""
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, Field

from marketplace_push.core.errors import IntentValidationError
from marketplace_push.services.push.types import NotificationCategory, NotificationIntent

ORDER_STATUS_MESSAGES: dict[str, str] = {
    "placed": "Your order has been placed successfully!",
    "confirmed": "Your order has been confirmed by the store",
    "preparing": "Your order is being prepared",
    "ready_for_pickup": "Your order is ready for pickup",
    "ready": "Your order is ready for pickup",
    "assigned": "A delivery partner has been assigned to your order",
    "picked_up": "Your order has been picked up for delivery",
    "out_for_delivery": "Your order is out for delivery",
    "on_the_way": "Your order is on the way!",
    "delivered": "Your order has been delivered successfully!",
    "cancelled": "Your order has been cancelled",
}


# --- Events (produced by the order/delivery layer) ---


class OrderStatusChanged(BaseModel):
    recipient_user_id: int = Field(..., gt=0)
    order_id: int
    status: str = Field(..., min_length=1, max_length=64)


class DeliveryAssigned(BaseModel):
    recipient_user_id: int = Field(..., gt=0)
    order_id: int
    pickup_address: str
    delivery_address: str
    earnings: Decimal


class NewOrderReceived(BaseModel):
    """Seller-side: a customer placed an order at the seller's store."""

    recipient_user_id: int = Field(..., gt=0)
    order_id: int
    customer_name: str
    amount: Decimal


class PromotionAnnounced(BaseModel):
    user_ids: list[int] = Field(..., min_length=1)
    title: str
    message: str


def _money(value: Decimal) -> str:
    """₹ amounts without trailing zeros: 150.00 -> 150, 99.50 -> 99.5."""
    return format(value.normalize(), "f")


def _intent(**kwargs) -> NotificationIntent:
    try:
        return NotificationIntent(**kwargs)
    except ValueError as e:
        raise IntentValidationError(str(e)) from e


def order_status_intent(event: OrderStatusChanged) -> NotificationIntent:
    status = event.status.strip().lower()
    body = ORDER_STATUS_MESSAGES.get(status) or f"Your order status has been updated: {event.status}"
    return _intent(
        recipient_user_id=event.recipient_user_id,
        title=f"Order #{event.order_id} Update",
        body=body,
        category=NotificationCategory.ORDER_UPDATE,
        data={
            "orderId": str(event.order_id),
            "status": status,
            "url": f"/orders/{event.order_id}/tracking",
        },
    )


def delivery_assignment_intent(event: DeliveryAssigned) -> NotificationIntent:
    earnings = _money(event.earnings)
    return _intent(
        recipient_user_id=event.recipient_user_id,
        title="New Delivery Available",
        body=f"Pickup from {event.pickup_address}. Earn ₹{earnings}",
        category=NotificationCategory.DELIVERY_ASSIGNMENT,
        data={
            "orderId": str(event.order_id),
            "pickupAddress": event.pickup_address,
            "deliveryAddress": event.delivery_address,
            "earnings": earnings,
            "url": "/delivery-partner/dashboard",
        },
    )


def new_order_intent(event: NewOrderReceived) -> NotificationIntent:
    amount = _money(event.amount)
    return _intent(
        recipient_user_id=event.recipient_user_id,
        title="New Order Received!",
        body=f"Order #{event.order_id} from {event.customer_name} - ₹{amount}",
        category=NotificationCategory.ORDER_UPDATE,
        data={
            "orderId": str(event.order_id),
            "customerName": event.customer_name,
            "amount": amount,
            "url": f"/order-tracking?orderId={event.order_id}",
        },
    )


PROMOTION_URL = "/special-offers"


def push_test_intent(user_id: int, app_name: str) -> NotificationIntent:
    return _intent(
        recipient_user_id=user_id,
        title=f"Test from {app_name}",
        body="Push notifications are working correctly!",
        category=NotificationCategory.TEST,
        data={"timestamp": datetime.now(timezone.utc).isoformat()},
    )
