from enum import Enum
from tortoise import fields, models
import uuid


class PackageStatus(str, Enum):
    CREATED = "Created"  # Initial state, registered at the parcel shop
    AWAITING_PICKUP = "AwaitingPickup"
    IN_TRANSIT = "InTransit"
    OUT_FOR_DELIVERY = "OutForDelivery"
    DELIVERY_ATTEMPTED = "DeliveryAttempted"
    DELIVERED = "Delivered"
    RETURNED_TO_SENDER = "ReturnedToSender"
    LOST_IN_TRANSIT = "LostInTransit"
    DAMAGED = "Damaged"


class Package(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    tracking_code = fields.CharField(max_length=32, unique=True)
    parcel_shop_id = fields.UUIDField()
    sender_id = fields.UUIDField()
    origin_address_id = fields.UUIDField()
    destination_address_id = fields.UUIDField()
    weight_kg = fields.DecimalField(max_digits=10, decimal_places=3)
    current_status = fields.CharEnumField(PackageStatus, max_length=32, default=PackageStatus.CREATED)
    current_hub_id = fields.UUIDField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "packages"
        indexes = [
            ("current_status",),         # Status-based filtering
            ("parcel_shop_id",),         # Parcel shop intake queries
        ]
