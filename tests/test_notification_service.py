import logging

import pytest

from app.models.package import PackageStatus
from app.services.notification_service import ConsoleNotificationService


@pytest.mark.asyncio
async def test_console_notification_logs_update(caplog):
    sink = ConsoleNotificationService(min_delay=0, max_delay=0)

    with caplog.at_level(logging.INFO, logger="notification_service"):
        await sink.send_package_update("CTT-9Z-1234567890", PackageStatus.DELIVERED, "Left at the door")

    assert "[NOTIFICATION] Package 'CTT-9Z-1234567890' status changed to 'Delivered' - Left at the door" in caplog.text


@pytest.mark.asyncio
async def test_console_notification_without_message(caplog):
    sink = ConsoleNotificationService(min_delay=0, max_delay=0)

    with caplog.at_level(logging.INFO, logger="notification_service"):
        await sink.send_package_update("CTT-9Z-1234567890", PackageStatus.IN_TRANSIT)

    assert caplog.text.rstrip().endswith("status changed to 'InTransit'")
