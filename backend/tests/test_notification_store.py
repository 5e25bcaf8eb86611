import pytest
from sqlalchemy.exc import OperationalError

from marketplace_push.core.errors import PersistenceError
from marketplace_push.services.notification_store import NotificationStore


def test_create_defaults(store):
    row = store.create(7, "Hello", "World")
    assert row.id is not None
    assert row.type == "generic"
    assert row.is_read is False
    assert row.data == {}


def test_create_rejects_unknown_type(store):
    with pytest.raises(ValueError):
        store.create(7, "Hello", "World", type="newsletter")


def test_list_newest_first_and_limit(store):
    ids = [store.create(7, f"t{i}", "m", "order_update", {"i": i}).id for i in range(5)]
    store.create(8, "other", "user")
    rows = store.list_by_user(7, limit=3)
    assert [r.id for r in rows] == list(reversed(ids))[:3]
    assert rows[0].data == {"i": 4}


def test_unread_filter_and_count(store):
    a = store.create(7, "a", "m")
    b = store.create(7, "b", "m")
    assert store.unread_count(7) == 2
    assert store.mark_read(a.id) is True
    assert store.unread_count(7) == 1
    assert [r.id for r in store.list_by_user(7, unread_only=True)] == [b.id]


def test_mark_read_scoped_to_user(store):
    row = store.create(7, "a", "m")
    assert store.mark_read(row.id, user_id=8) is False
    assert store.mark_read(row.id, user_id=7) is True
    assert store.mark_read(12345, user_id=7) is False


def test_mark_all_read(store):
    for i in range(3):
        store.create(7, f"t{i}", "m")
    store.create(8, "other", "m")
    assert store.mark_all_read(7) == 3
    assert store.unread_count(7) == 0
    assert store.unread_count(8) == 1
    assert store.mark_all_read(7) == 0


def test_database_failure_becomes_persistence_error():
    def broken_factory():
        raise OperationalError("INSERT", {}, Exception("connection refused"))

    store = NotificationStore(broken_factory)
    with pytest.raises(PersistenceError):
        store.create(7, "a", "m")
    with pytest.raises(PersistenceError):
        store.list_by_user(7)
