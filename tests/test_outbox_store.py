import pytest

from app.events.outbox_store import (
    OutboxConcurrencyError,
    conditional_update,
    get_message,
    mark_canceled,
    mark_completed,
    record_failed_attempt,
)
from app.models.outbox import OutboxMessage


@pytest.mark.asyncio
async def test_successful_write_bumps_version(message_factory):
    message = await message_factory()
    assert message.version == 1

    await mark_completed(message)

    stored = await get_message(message.id)
    assert stored.is_completed is True
    assert stored.is_canceled is False
    assert stored.processed_at is not None
    assert stored.version == 2
    # In-memory instance mirrors the row after the write
    assert message.version == 2
    assert message.is_completed is True


@pytest.mark.asyncio
async def test_stale_write_is_rejected_in_full(message_factory):
    """Two readers hold version 1; only the first writer wins, the second changes nothing."""
    created = await message_factory()
    first = await get_message(created.id)
    second = await get_message(created.id)

    await mark_completed(first)

    with pytest.raises(OutboxConcurrencyError) as excinfo:
        await mark_canceled(second, reason="superseded")
    assert excinfo.value.message_id == created.id
    assert excinfo.value.expected_version == 1

    stored = await get_message(created.id)
    assert stored.is_completed is True
    assert stored.is_canceled is False
    assert stored.last_error is None
    assert stored.version == 2


@pytest.mark.asyncio
async def test_terminal_message_cannot_change_even_with_current_version(message_factory):
    message = await message_factory()
    await mark_canceled(message, reason="superseded")

    fresh = await get_message(message.id)
    with pytest.raises(OutboxConcurrencyError):
        await mark_completed(fresh)
    with pytest.raises(OutboxConcurrencyError):
        await record_failed_attempt(fresh, "boom")

    stored = await get_message(message.id)
    assert stored.is_canceled is True
    assert stored.is_completed is False
    assert stored.attempts == 0


@pytest.mark.asyncio
async def test_failed_attempt_keeps_message_pending(message_factory):
    message = await message_factory()

    await record_failed_attempt(message, "sink timeout")

    stored = await get_message(message.id)
    assert stored.is_pending
    assert stored.processed_at is None
    assert stored.attempts == 1
    assert stored.last_error == "sink timeout"
    assert stored.version == 2


@pytest.mark.asyncio
async def test_conditional_update_on_missing_row_conflicts(message_factory):
    message = await message_factory()
    await OutboxMessage.filter(id=message.id).delete()

    with pytest.raises(OutboxConcurrencyError):
        await conditional_update(message, attempts=3)
    assert await get_message(message.id) is None
