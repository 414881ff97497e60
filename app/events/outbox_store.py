from typing import Any, Optional
from uuid import UUID

from tortoise import timezone
from tortoise.expressions import F

from app.models.outbox import OutboxMessage


class OutboxConcurrencyError(Exception):
    """Raised when a conditional write finds the row changed since it was read."""

    def __init__(self, message_id: UUID, expected_version: int):
        self.message_id = message_id
        self.expected_version = expected_version
        super().__init__(
            f"Outbox message {message_id} is no longer at version {expected_version} "
            f"(already processed or canceled by someone else)"
        )


def _scoped(queryset, conn: Any):
    return queryset.using_db(conn) if conn is not None else queryset


async def get_message(message_id: UUID, conn: Any = None) -> Optional[OutboxMessage]:
    """Reads the current state of a single message, including its version."""
    return await _scoped(OutboxMessage.filter(id=message_id), conn).first()


async def conditional_update(message: OutboxMessage, conn: Any = None, **changes: Any) -> None:
    """
    Applies 'changes' only if the stored row is still pending and still at the
    version held by 'message'. The version bump happens inside the same UPDATE
    statement, so the row is either fully written or not touched at all.

    Raises OutboxConcurrencyError when no row matched. On success the in-memory
    instance mirrors the stored row.
    """
    updated = await _scoped(
        OutboxMessage.filter(
            id=message.id,
            version=message.version,
            is_completed=False,
            is_canceled=False,
        ),
        conn,
    ).update(version=F("version") + 1, **changes)

    if not updated:
        raise OutboxConcurrencyError(message.id, message.version)

    for field_name, value in changes.items():
        setattr(message, field_name, value)
    message.version += 1


async def mark_completed(message: OutboxMessage, conn: Any = None) -> None:
    await conditional_update(message, conn, is_completed=True, processed_at=timezone.now())


async def mark_canceled(message: OutboxMessage, conn: Any = None, reason: Optional[str] = None) -> None:
    changes = {"is_canceled": True, "processed_at": timezone.now()}
    if reason is not None:
        changes["last_error"] = reason
    await conditional_update(message, conn, **changes)


async def record_failed_attempt(message: OutboxMessage, error: str, conn: Any = None) -> None:
    """Bookkeeping for a failed delivery. The message stays pending."""
    await conditional_update(message, conn, attempts=message.attempts + 1, last_error=error)
