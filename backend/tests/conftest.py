import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Keep a developer's backend/.env database out of module-level settings
os.environ.setdefault("DATABASE_URL", "sqlite://")

from marketplace_push.db.base import Base
from marketplace_push.models import DeviceRegistration, Notification  # noqa: F401
from marketplace_push.services.device_registry import DeviceRegistry
from marketplace_push.services.dispatch import Dispatcher
from marketplace_push.services.notification_store import NotificationStore
from marketplace_push.services.push.credentials import CredentialResolver
from marketplace_push.services.push.registry import AdapterRegistry
from marketplace_push.services.push.types import Provider
from tests.factories import FakeAdapter, make_settings


@pytest.fixture
def session_factory(tmp_path):
    # file database: dispatch reaches it from worker threads, each on its own connection
    engine = create_engine(
        f"sqlite:///{tmp_path / 'push.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def resolver(settings):
    return CredentialResolver(settings)


@pytest.fixture
def registry(session_factory):
    return DeviceRegistry(session_factory)


@pytest.fixture
def store(session_factory):
    return NotificationStore(session_factory)


@pytest.fixture
def adapters():
    return AdapterRegistry(
        {
            Provider.FCM: FakeAdapter(Provider.FCM),
            Provider.ONESIGNAL: FakeAdapter(Provider.ONESIGNAL),
            Provider.WEBPUSH: FakeAdapter(Provider.WEBPUSH),
        }
    )


@pytest.fixture
def dispatcher(registry, store, adapters, resolver):
    return Dispatcher(registry, store, adapters, resolver, send_timeout=1.0)
