import pytest
from fastapi.testclient import TestClient

from marketplace_push.api import deps
from marketplace_push.main import app
from marketplace_push.services.push.types import AdapterResult, Provider
from tests.factories import browser_subscription


@pytest.fixture
def client(dispatcher, registry, store, resolver):
    # no lifespan: services come from the test fixtures
    app.dependency_overrides[deps.get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[deps.get_registry] = lambda: registry
    app.dependency_overrides[deps.get_store] = lambda: store
    app.dependency_overrides[deps.get_resolver] = lambda: resolver
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_register_and_list_devices(client):
    resp = client.post("/push/register", json={"user_id": 7, "provider": "fcm", "handle": "token-a", "device_type": "android"})
    assert resp.status_code == 200
    reg = resp.json()["registration"]
    assert reg["provider"] == "fcm"
    again = client.post("/push/register", json={"user_id": 7, "provider": "fcm", "handle": "token-a"})
    assert again.json()["registration"]["id"] == reg["id"]
    listed = client.get("/push/devices", headers={"X-User-Id": "7"}).json()
    assert listed["count"] == 1
    assert "handle" not in listed["devices"][0]


def test_register_webpush_subscription(client, registry):
    sub = browser_subscription()
    resp = client.post("/push/register", json={"user_id": 7, "provider": "webpush", "subscription": sub})
    assert resp.status_code == 200
    rows = registry.list_handles(7)
    assert rows[0].handle.startswith('{"endpoint":"https://')


def test_register_requires_handle(client):
    resp = client.post("/push/register", json={"user_id": 7, "provider": "fcm"})
    assert resp.status_code == 422


def test_register_rejects_subscription_for_fcm(client):
    resp = client.post("/push/register", json={"user_id": 7, "provider": "fcm", "subscription": browser_subscription()})
    assert resp.status_code == 422


def test_devices_requires_user(client):
    assert client.get("/push/devices").status_code == 400


def test_providers_status_has_no_secrets(client):
    body = client.get("/push/providers").json()
    assert set(body["providers"]) == {"fcm", "onesignal", "webpush"}
    assert "os-rest-key" not in str(body)


def test_vapid_public_key(client):
    assert client.get("/push/vapid-public-key").json() == {"public_key": "vapid-public"}


def test_dispatch_and_notification_center(client, registry):
    registry.register(7, Provider.FCM, "token-a")
    resp = client.post(
        "/notifications/dispatch",
        json={"recipient_user_id": 7, "title": "Order #100 Update", "body": "delivered", "category": "order_update"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["per_provider"] == {"fcm": "sent"}
    assert "warning" not in body

    listed = client.get("/notifications", params={"user_id": 7}).json()
    assert listed["unread_count"] == 1
    note = listed["notifications"][0]
    assert note["id"] == body["notification_id"]
    assert note["type"] == "order_update"
    assert note["read"] is False

    assert client.patch(f"/notifications/{note['id']}/read", headers={"X-User-Id": "7"}).json()["ok"] is True
    assert client.get("/notifications", params={"user_id": 7, "unread_only": True}).json()["notifications"] == []


def test_dispatch_partial_push_warns(client, registry, adapters):
    registry.register(7, Provider.ONESIGNAL, "player-1")
    adapters.get(Provider.ONESIGNAL).result = AdapterResult.transient("OneSignal 500")
    body = client.post(
        "/notifications/dispatch",
        json={"recipient_user_id": 7, "title": "Hi", "body": "there"},
    ).json()
    assert body["per_provider"] == {"onesignal": "failed_transient"}
    assert body["warning"] == "notification saved, push delivery partial"


def test_dispatch_rejects_blank_title(client):
    resp = client.post("/notifications/dispatch", json={"recipient_user_id": 7, "title": " ", "body": "x"})
    assert resp.status_code == 422


def test_mark_read_not_found(client):
    assert client.patch("/notifications/999/read", headers={"X-User-Id": "7"}).status_code == 404


def test_mark_all_read(client, store):
    store.create(7, "a", "m")
    store.create(7, "b", "m")
    body = client.post("/notifications/mark-all-read", headers={"X-User-Id": "7"}).json()
    assert body["marked_count"] == 2


def test_push_test_route(client, registry, adapters):
    registry.register(7, Provider.FCM, "token-a")
    body = client.post("/push/test", headers={"X-User-Id": "7"}).json()
    assert body["per_provider"] == {"fcm": "sent"}
    _, intent = adapters.get(Provider.FCM).calls[0]
    assert intent.title.startswith("Test from ")


def test_order_status_event(client, registry, adapters):
    registry.register(7, Provider.FCM, "token-a")
    resp = client.post("/events/order-status", json={"recipient_user_id": 7, "order_id": 100, "status": "delivered"})
    assert resp.status_code == 200
    _, intent = adapters.get(Provider.FCM).calls[0]
    assert intent.title == "Order #100 Update"
    assert intent.body == "Your order has been delivered successfully!"


def test_delivery_assignment_event(client):
    resp = client.post(
        "/events/delivery-assignment",
        json={
            "recipient_user_id": 21,
            "order_id": 100,
            "pickup_address": "Main Road",
            "delivery_address": "Ward 4",
            "earnings": "150.00",
        },
    )
    assert resp.status_code == 200
    assert resp.json()["per_provider"] == {}


def test_new_order_event(client, store):
    resp = client.post(
        "/events/new-order",
        json={"recipient_user_id": 3, "order_id": 77, "customer_name": "Sita", "amount": "99.50"},
    )
    assert resp.status_code == 200
    assert store.list_by_user(3)[0].message == "Order #77 from Sita - ₹99.5"


def test_promotion_event(client, store):
    resp = client.post("/events/promotion", json={"user_ids": [7, 8, 8], "title": "Dashain Sale", "message": "20% off"})
    body = resp.json()
    assert resp.status_code == 200
    assert len(body["notification_ids"]) == 2
    assert body["failed_user_ids"] == []
    assert store.list_by_user(8)[0].data == {"url": "/special-offers"}


def test_push_test_route_takes_user_from_query(client, registry, adapters):
    registry.register(8, Provider.FCM, "token-8")
    resp = client.post("/push/test", params={"user_id": 8})
    assert resp.status_code == 200
    _, intent = adapters.get(Provider.FCM).calls[0]
    assert intent.recipient_user_id == 8


def test_push_test_route_requires_user(client):
    assert client.post("/push/test").status_code == 400
