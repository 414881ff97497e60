from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
import uuid

from app.models.package import PackageStatus
from app.models.outbox import OutboxMessageType


class PackageEvent(BaseModel):
    """Snapshot of a package change, serialized into the outbox payload."""
    tracking_code: str
    status: PackageStatus
    location: Optional[uuid.UUID] = None
    message: Optional[str] = None


class CreatePackageRequest(BaseModel):
    """Schema for registering a new package at a parcel shop."""
    parcel_shop_id: uuid.UUID
    sender_id: uuid.UUID
    origin_address_id: uuid.UUID
    destination_address_id: uuid.UUID
    weight_kg: Decimal = Field(..., gt=0, description="Weight must be greater than zero.")

class CreatePackageResponse(BaseModel):
    tracking_code: str
    created_at: datetime

class UpdatePackageRequest(BaseModel):
    """Schema for a package status change."""
    status: PackageStatus
    current_hub_id: uuid.UUID
    message: Optional[str] = None
    replace_pending: bool = Field(False, description="Cancel the oldest pending event for this package first.")

class UpdatePackageResponse(BaseModel):
    tracking_code: str
    requested_status: PackageStatus
    enqueued: bool
    replaced_pending: bool
    enqueued_at: datetime

class PackageDetailResponse(BaseModel):
    tracking_code: str
    current_status: PackageStatus
    parcel_shop_id: uuid.UUID
    current_hub_id: Optional[uuid.UUID] = None
    weight_kg: Decimal
    created_at: datetime
    updated_at: datetime

class OutboxMessageResponse(BaseModel):
    """Schema for one outbox record as seen by operators."""
    id: uuid.UUID
    type: OutboxMessageType
    occurred_at: datetime
    processed_at: Optional[datetime] = None
    is_completed: bool
    is_canceled: bool
    attempts: int
    last_error: Optional[str] = None

class CancelEventResponse(BaseModel):
    tracking_code: str
    canceled: bool

class PackageEventsResponse(BaseModel):
    tracking_code: str
    events: List[OutboxMessageResponse]
