from enum import Enum
from tortoise import fields, models
import uuid


class OutboxMessageType(str, Enum):
    CREATE = "Create"
    UPDATE = "Update"


class OutboxMessage(models.Model):
    """
    The Outbox table stores package events atomically with the database transaction.
    This is the core of the Transactional Outbox Pattern.

    A message is pending until it is either completed (delivered) or canceled
    (superseded, unprocessable or out of attempts). Terminal messages never
    become pending again.

    Every write after the insert must go through app.events.outbox_store so
    that 'version' is checked and bumped in the same UPDATE statement.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    tracking_code = fields.CharField(max_length=64) # Correlation key, not unique
    type = fields.CharEnumField(OutboxMessageType, max_length=16)
    payload = fields.TextField() # Serialized PackageEvent (JSON)
    occurred_at = fields.DatetimeField()
    processed_at = fields.DatetimeField(null=True)
    is_completed = fields.BooleanField(default=False)
    is_canceled = fields.BooleanField(default=False)
    version = fields.IntField(default=1) # Conflict token
    attempts = fields.IntField(default=0)
    last_error = fields.TextField(null=True)

    class Meta:
        table = "outbox_messages"
        indexes = [
            ("tracking_code", "is_completed", "is_canceled"),  # Cancel lookups
            ("is_completed", "is_canceled", "occurred_at"),    # Polling
        ]

    @property
    def is_pending(self) -> bool:
        return not self.is_completed and not self.is_canceled
