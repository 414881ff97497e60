import asyncio
import contextlib
import logging
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import ValidationError
from tortoise.transactions import in_transaction

from app.core.config import (
    BATCH_SIZE,
    ERROR_BACKOFF,
    LOG_FORMAT,
    LOG_LEVEL,
    MAX_DELIVERY_ATTEMPTS,
    POLLING_INTERVAL,
)
from app.core.db import close_db, init_db
from app.events.outbox_store import (
    OutboxConcurrencyError,
    get_message,
    mark_canceled,
    mark_completed,
    record_failed_attempt,
)
from app.models.outbox import OutboxMessage
from app.schemas.package import PackageEvent
from app.services.notification_service import ConsoleNotificationService, NotificationService

log = logging.getLogger("outbox_poller")


class ProcessingOutcome(str, Enum):
    COMPLETED = "completed"  # Delivered and marked completed
    CANCELED = "canceled"    # Malformed payload or out of attempts, never delivered again
    SKIPPED = "skipped"      # Gone or already terminal when re-read
    CONFLICT = "conflict"    # Another writer got there first
    FAILED = "failed"        # Delivery failed, message stays pending


async def fetch_pending_messages(limit: int = BATCH_SIZE) -> List[OutboxMessage]:
    """Oldest pending messages first, so nothing starves behind newer traffic."""
    return await OutboxMessage.filter(
        is_completed=False, is_canceled=False
    ).order_by("occurred_at", "id").limit(limit)


async def process_outbox_message(
    message_id: UUID,
    notifier: NotificationService,
    max_attempts: int = MAX_DELIVERY_ATTEMPTS,
) -> ProcessingOutcome:
    """
    Claims, delivers and finalizes a single message inside one transaction.

    Never raises for per-message problems: conflicts, malformed payloads and
    delivery failures are all turned into an outcome so the batch carries on.
    """
    try:
        async with in_transaction() as conn:
            # Re-read: the batch snapshot may be stale relative to other processors
            message = await get_message(message_id, conn)
            if message is None or not message.is_pending:
                return ProcessingOutcome.SKIPPED

            try:
                event = PackageEvent.model_validate_json(message.payload)
            except ValidationError as e:
                log.error(f"JSON error processing the message '{message_id}': {e}")
                await mark_canceled(message, conn, reason=f"Malformed payload: {e}")
                return ProcessingOutcome.CANCELED

            await notifier.send_package_update(event.tracking_code, event.status, event.message)
            await mark_completed(message, conn)

        log.info(f"Processed outbox message '{message_id}' for package '{event.tracking_code}'")
        return ProcessingOutcome.COMPLETED

    except OutboxConcurrencyError:
        log.warning(f"Concurrency conflict. The outbox message '{message_id}' might have been already canceled/processed.")
        return ProcessingOutcome.CONFLICT
    except Exception as e:
        log.exception(f"Error processing the message '{message_id}'")
        await _record_failure(message_id, e, max_attempts)
        return ProcessingOutcome.FAILED


async def _record_failure(message_id: UUID, error: Exception, max_attempts: int) -> None:
    try:
        async with in_transaction() as conn:
            message = await get_message(message_id, conn)
            if message is None or not message.is_pending:
                return

            attempts = message.attempts + 1
            if max_attempts and attempts >= max_attempts:
                await mark_canceled(message, conn, reason=f"Gave up after {attempts} attempts: {error}")
                log.warning(f"Outbox message '{message_id}' canceled after {attempts} failed attempts.")
            else:
                await record_failed_attempt(message, str(error), conn)
    except OutboxConcurrencyError:
        # Someone else moved the message on; the attempt count no longer matters
        log.warning(f"Outbox message '{message_id}' changed while recording a failed attempt.")
    except Exception:
        log.exception(f"Could not record the failed attempt for message '{message_id}'")


async def poll_outbox_for_new_events(
    notifier: NotificationService,
    batch_size: int = BATCH_SIZE,
    stop_event: Optional[asyncio.Event] = None,
    max_attempts: int = MAX_DELIVERY_ATTEMPTS,
) -> List[ProcessingOutcome]:
    """
    Reads one batch of pending messages and processes them one by one.
    Storage errors while reading the batch propagate to the caller.
    """
    messages = await fetch_pending_messages(batch_size)

    outcomes = []
    for message in messages:
        if stop_event is not None and stop_event.is_set():
            break
        outcomes.append(await process_outbox_message(message.id, notifier, max_attempts))
    return outcomes


class OutboxProcessor:
    """
    Background loop delivering outbox messages to a NotificationService.

    Several processors (in one or many processes) may run against the same
    database; the conditional writes in app.events.outbox_store are the only
    coordination between them.
    """

    def __init__(
        self,
        notifier: NotificationService,
        *,
        batch_size: int = BATCH_SIZE,
        poll_interval: float = POLLING_INTERVAL,
        error_backoff: float = ERROR_BACKOFF,
        max_attempts: int = MAX_DELIVERY_ATTEMPTS,
    ):
        self.notifier = notifier
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.error_backoff = error_backoff
        self.max_attempts = max_attempts

        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Runs the loop as a background task."""
        if self.is_running:
            log.warning("Outbox processor already running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self.run())

    async def stop(self, timeout: float = 30.0) -> None:
        """
        Signals the loop to stop and waits for it. A delivery that is already in
        flight is allowed to finish; the task is only cancelled after 'timeout'.
        """
        self._stop_event.set()
        if self._task is None:
            return

        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            log.warning("Outbox processor shutdown timed out, cancelling")
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None

    async def run(self) -> None:
        """Main loop. Only returns once stop() has been requested."""
        log.info(
            f"--- Outbox Processor Started (batch_size={self.batch_size}, "
            f"poll_interval={self.poll_interval}s, error_backoff={self.error_backoff}s) ---"
        )

        while not self._stop_event.is_set():
            try:
                outcomes = await self.run_once()
            except Exception:
                log.exception("An error occurred processing outbox messages")
                await self._wait(self.error_backoff)
                continue

            if not outcomes:
                await self._wait(self.poll_interval)
            elif all(outcome == ProcessingOutcome.FAILED for outcome in outcomes):
                log.warning(f"All {len(outcomes)} deliveries in the batch failed, backing off")
                await self._wait(self.error_backoff)
            else:
                # More messages may be waiting; yield before polling again
                await asyncio.sleep(0)

        log.info("--- Outbox Processor Stopped ---")

    async def run_once(self) -> List[ProcessingOutcome]:
        """A single poll iteration."""
        return await poll_outbox_for_new_events(
            self.notifier,
            batch_size=self.batch_size,
            stop_event=self._stop_event,
            max_attempts=self.max_attempts,
        )

    async def _wait(self, seconds: float) -> None:
        # Sleeps up to 'seconds', waking early when stop is requested
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)


async def start_outbox_poller():
    """Entry point for running the processor as its own service."""
    await init_db()
    processor = OutboxProcessor(ConsoleNotificationService())
    try:
        await processor.run()
    finally:
        await close_db()


if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    try:
        asyncio.run(start_outbox_poller())
    except KeyboardInterrupt:
        log.info("Poller service stopped.")
