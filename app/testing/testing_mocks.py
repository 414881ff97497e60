from typing import List, Optional, Tuple

from app.models.package import PackageStatus


class RecordingNotificationService:
    """NotificationService fake that remembers every delivery it accepted."""

    def __init__(self):
        self.sent: List[Tuple[str, PackageStatus, Optional[str]]] = []

    async def send_package_update(self, tracking_code, status, message=None):
        self.sent.append((tracking_code, status, message))


class FlakyNotificationService(RecordingNotificationService):
    """Fails the first 'failures' deliveries, then behaves like RecordingNotificationService."""

    def __init__(self, failures: int = 1, error: Optional[Exception] = None):
        super().__init__()
        self.failures = failures
        self.error = error or ConnectionError("notification sink unavailable")
        self.calls = 0

    async def send_package_update(self, tracking_code, status, message=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        await super().send_package_update(tracking_code, status, message)
