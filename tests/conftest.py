import pytest
import pytest_asyncio
from tortoise import Tortoise, timezone

from app.core.db import MODELS_MODULES
from app.models.outbox import OutboxMessage, OutboxMessageType
from app.models.package import PackageStatus
from app.schemas.package import PackageEvent
from app.testing.testing_mocks import FlakyNotificationService, RecordingNotificationService


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory SQLite database per test."""
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODELS_MODULES})
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
def notifier():
    return RecordingNotificationService()


@pytest.fixture
def flaky_notifier():
    return FlakyNotificationService(failures=1)


@pytest.fixture
def message_factory(db):
    """
    Inserts outbox messages directly, bypassing the enqueue path, so tests can
    control occurred_at and write broken payloads.
    """
    async def create(
        tracking_code="CTT-9Z-1000000001",
        status=PackageStatus.IN_TRANSIT,
        message="Arrived at hub",
        occurred_at=None,
        payload=None,
        message_type=OutboxMessageType.UPDATE,
    ):
        if payload is None:
            payload = PackageEvent(tracking_code=tracking_code, status=status, message=message).model_dump_json()
        return await OutboxMessage.create(
            tracking_code=tracking_code,
            type=message_type,
            payload=payload,
            occurred_at=occurred_at or timezone.now(),
        )

    return create
