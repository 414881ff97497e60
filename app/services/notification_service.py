import asyncio
import logging
import random
from typing import Optional, Protocol

from app.models.package import PackageStatus

log = logging.getLogger("notification_service")


class NotificationService(Protocol):
    """Delivery sink for package updates. Raising means the delivery failed."""

    async def send_package_update(
        self, tracking_code: str, status: PackageStatus, message: Optional[str] = None
    ) -> None: ...


class ConsoleNotificationService:
    """Writes notifications to the log, simulating a slow external call."""

    def __init__(self, min_delay: float = 0.1, max_delay: float = 0.5):
        self.min_delay = min_delay
        self.max_delay = max_delay

    async def send_package_update(
        self, tracking_code: str, status: PackageStatus, message: Optional[str] = None
    ) -> None:
        # Simulate notification delay (network call, email sending, etc.)
        await asyncio.sleep(random.uniform(self.min_delay, self.max_delay))

        notification = f"[NOTIFICATION] Package '{tracking_code}' status changed to '{status.value}'"
        if message:
            notification += f" - {message}"
        log.info(notification)
