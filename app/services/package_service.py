import logging
import random
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from tortoise.transactions import in_transaction

from app.events.package_event_queue import enqueue_package_event, list_messages, try_cancel
from app.models.outbox import OutboxMessage, OutboxMessageType
from app.models.package import Package, PackageStatus
from app.schemas.package import PackageEvent

log = logging.getLogger("package_service")


class PackageNotFound(ValueError):
    def __init__(self, tracking_code: str):
        self.tracking_code = tracking_code
        super().__init__(f"Package {tracking_code} not found")


def generate_tracking_code() -> str:
    return f"CTT-9Z-{random.randint(1000000000, 1999999999)}"


async def create_package(
    parcel_shop_id: UUID,
    sender_id: UUID,
    origin_address_id: UUID,
    destination_address_id: UUID,
    weight_kg: Decimal,
) -> Package:
    """
    Registers the package and its 'created' outbox message atomically.
    The notification itself is sent later by the outbox processor.
    """
    async with in_transaction() as conn:
        package = await Package.create(
            tracking_code=generate_tracking_code(),
            parcel_shop_id=parcel_shop_id,
            sender_id=sender_id,
            origin_address_id=origin_address_id,
            destination_address_id=destination_address_id,
            weight_kg=weight_kg,
            current_status=PackageStatus.CREATED,
            using_db=conn,
        )

        # ATOMIC EVENT: same transaction as the package insert
        await enqueue_package_event(
            PackageEvent(
                tracking_code=package.tracking_code,
                status=PackageStatus.CREATED,
                location=parcel_shop_id,
                message="Package created",
            ),
            OutboxMessageType.CREATE,
            conn=conn,
        )

    log.info(f"Package created: {package.tracking_code}")
    return package


async def update_package_status(
    tracking_code: str,
    status: PackageStatus,
    current_hub_id: UUID,
    message: Optional[str] = None,
    replace_pending: bool = False,
) -> Tuple[Package, bool]:
    """
    Updates the package and enqueues an 'update' outbox message in one transaction.

    With 'replace_pending' the oldest undelivered message for the package is
    canceled first. Returns the package and whether a pending message was replaced.
    """
    async with in_transaction() as conn:
        package = await Package.filter(tracking_code=tracking_code).using_db(conn).first()
        if not package:
            raise PackageNotFound(tracking_code)

        package.current_status = status
        package.current_hub_id = current_hub_id
        await package.save(using_db=conn)

        replaced = False
        if replace_pending:
            replaced = await try_cancel(tracking_code, conn=conn)

        await enqueue_package_event(
            PackageEvent(
                tracking_code=tracking_code,
                status=status,
                location=current_hub_id,
                message=message,
            ),
            OutboxMessageType.UPDATE,
            conn=conn,
        )

    log.info(f"Package updated: {tracking_code} to {status.value}")
    return package, replaced


async def get_package_by_tracking_code(tracking_code: str) -> Optional[Package]:
    return await Package.get_or_none(tracking_code=tracking_code)


async def cancel_pending_event(tracking_code: str) -> bool:
    """Manual cancellation of the oldest pending notification for a package."""
    async with in_transaction() as conn:
        return await try_cancel(tracking_code, conn=conn)


async def list_package_events(tracking_code: str) -> List[OutboxMessage]:
    if not await Package.filter(tracking_code=tracking_code).exists():
        raise PackageNotFound(tracking_code)
    return await list_messages(tracking_code)
