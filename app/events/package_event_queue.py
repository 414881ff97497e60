import logging
from typing import Any, List
from uuid import uuid4

from tortoise import timezone

from app.events.outbox_store import OutboxConcurrencyError, get_message, mark_canceled
from app.models.outbox import OutboxMessage, OutboxMessageType
from app.schemas.package import PackageEvent

log = logging.getLogger("package_event_queue")

SUPERSEDED_REASON = "Superseded by a newer request"
CANCEL_ATTEMPTS = 3


async def enqueue_package_event(
    event: PackageEvent,
    message_type: OutboxMessageType,
    conn: Any,
) -> OutboxMessage:
    """
    Adds an outbox message for 'event' using the caller's transaction connection.

    CRITICAL: Passing 'conn' ensures the message is created atomically with the
    package write. Nothing is committed or delivered here; if the caller's
    transaction rolls back, the message disappears with it.
    """
    # Serialization errors propagate so the caller's transaction rolls back
    payload = event.model_dump_json()

    message = await OutboxMessage.create(
        id=uuid4(),
        tracking_code=event.tracking_code,
        type=message_type,
        payload=payload,
        occurred_at=timezone.now(),
        using_db=conn,
    )
    log.info(f"Outbox message {message.id} enqueued for {event.tracking_code} ({event.status.value})")
    return message


async def cancel_if_pending(message: OutboxMessage, conn: Any = None, reason: str = SUPERSEDED_REASON) -> bool:
    """
    Cancels 'message' as read by the caller. Returns False once the row is
    terminal or gone, i.e. someone else (usually the processor) handled it first.

    A failed delivery also bumps the version while the message stays pending,
    so a conflict is followed by a fresh read and another try.
    """
    message_id, tracking_code = message.id, message.tracking_code
    for _ in range(CANCEL_ATTEMPTS):
        try:
            await mark_canceled(message, conn, reason=reason)
        except OutboxConcurrencyError:
            message = await get_message(message_id, conn)
            if message is None or not message.is_pending:
                log.warning(f"Outbox message {message_id} for {tracking_code} was already handled, nothing to cancel.")
                return False
            continue
        log.info(f"Outbox message {message_id} for {tracking_code} canceled.")
        return True

    log.warning(f"Outbox message {message_id} for {tracking_code} kept changing, gave up canceling after {CANCEL_ATTEMPTS} tries.")
    return False


async def try_cancel(tracking_code: str, conn: Any = None) -> bool:
    """
    Cancels the oldest pending message for 'tracking_code' (earliest occurred_at,
    then id). Returns False if there is nothing pending or the message was
    completed or canceled by someone else first.
    """
    query = OutboxMessage.filter(
        tracking_code=tracking_code, is_completed=False, is_canceled=False
    ).order_by("occurred_at", "id")
    if conn is not None:
        query = query.using_db(conn)

    pending = await query.first()
    if pending is None:
        return False

    return await cancel_if_pending(pending, conn)


async def list_messages(tracking_code: str) -> List[OutboxMessage]:
    """All outbox messages for a tracking code, oldest first."""
    return await OutboxMessage.filter(tracking_code=tracking_code).order_by("occurred_at", "id")
