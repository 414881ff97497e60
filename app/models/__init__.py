# app/models/__init__.py
from .package import Package, PackageStatus
from .outbox import OutboxMessage, OutboxMessageType

# Export all models
__all__ = [
    "OutboxMessage",
    "OutboxMessageType",
    "Package",
    "PackageStatus",
]
