import logging
from fastapi import APIRouter, HTTPException, status
from tortoise import timezone
from app.schemas.response import SuccessResponse
from app.services.package_service import (
    PackageNotFound,
    cancel_pending_event,
    create_package,
    get_package_by_tracking_code,
    list_package_events,
    update_package_status,
)
from app.schemas.package import (
    CancelEventResponse,
    CreatePackageRequest,
    CreatePackageResponse,
    OutboxMessageResponse,
    PackageDetailResponse,
    PackageEventsResponse,
    UpdatePackageRequest,
    UpdatePackageResponse,
)

router = APIRouter()
log = logging.getLogger("uvicorn")


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_package_endpoint(request_data: CreatePackageRequest):
    """
    Registers a new package. The 'created' notification is queued in the outbox.
    """
    try:
        package = await create_package(
            parcel_shop_id=request_data.parcel_shop_id,
            sender_id=request_data.sender_id,
            origin_address_id=request_data.origin_address_id,
            destination_address_id=request_data.destination_address_id,
            weight_kg=request_data.weight_kg,
        )
        data = CreatePackageResponse(
            tracking_code=package.tracking_code,
            created_at=package.created_at,
        ).model_dump(mode="json")
        return SuccessResponse(data=data)
    except ValueError as e:
        log.error(f"Value error creating package: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log.error(f"Error creating package: {e}")
        raise HTTPException(status_code=500, detail="Failed to create package.")


@router.patch("/{tracking_code}/status", status_code=status.HTTP_202_ACCEPTED, response_model=SuccessResponse)
async def update_status_endpoint(tracking_code: str, payload: UpdatePackageRequest):
    """
    Updates the package status and queues the notification (e.g. 'InTransit', 'Delivered').
    """
    try:
        package, replaced = await update_package_status(
            tracking_code,
            payload.status,
            payload.current_hub_id,
            message=payload.message,
            replace_pending=payload.replace_pending,
        )
        data = UpdatePackageResponse(
            tracking_code=package.tracking_code,
            requested_status=payload.status,
            enqueued=True,
            replaced_pending=replaced,
            enqueued_at=timezone.now(),
        ).model_dump(mode="json")
        return SuccessResponse(data=data)
    except PackageNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        log.error(f"Value error updating package status: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log.error(f"Error updating package {tracking_code}: {e}")
        raise HTTPException(status_code=500, detail="Failed to enqueue update event.")


@router.get("/{tracking_code}", response_model=SuccessResponse)
async def get_package_endpoint(tracking_code: str):
    """Fetches the current state of a package."""
    try:
        package = await get_package_by_tracking_code(tracking_code)
    except Exception as e:
        log.error(f"Error fetching package {tracking_code}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get package.")

    if not package:
        raise HTTPException(status_code=404, detail="Package not found.")

    data = PackageDetailResponse(
        tracking_code=package.tracking_code,
        current_status=package.current_status,
        parcel_shop_id=package.parcel_shop_id,
        current_hub_id=package.current_hub_id,
        weight_kg=package.weight_kg,
        created_at=package.created_at,
        updated_at=package.updated_at,
    ).model_dump(mode="json")
    return SuccessResponse(data=data)


@router.post("/{tracking_code}/events/cancel", response_model=SuccessResponse)
async def cancel_pending_event_endpoint(tracking_code: str):
    """
    Cancels the oldest notification still waiting in the outbox.
    'canceled' is false when there was nothing left to cancel.
    """
    try:
        canceled = await cancel_pending_event(tracking_code)
    except Exception as e:
        log.error(f"Error cancelling pending event for {tracking_code}: {e}")
        raise HTTPException(status_code=500, detail="Failed to cancel pending event.")

    data = CancelEventResponse(tracking_code=tracking_code, canceled=canceled).model_dump()
    return SuccessResponse(data=data)


@router.get("/{tracking_code}/events", response_model=SuccessResponse)
async def list_events_endpoint(tracking_code: str):
    """Lists the outbox messages recorded for a package, oldest first."""
    try:
        messages = await list_package_events(tracking_code)
    except PackageNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        log.error(f"Error listing events for {tracking_code}: {e}")
        raise HTTPException(status_code=500, detail="Failed to list package events.")

    data = PackageEventsResponse(
        tracking_code=tracking_code,
        events=[
            OutboxMessageResponse(
                id=m.id,
                type=m.type,
                occurred_at=m.occurred_at,
                processed_at=m.processed_at,
                is_completed=m.is_completed,
                is_canceled=m.is_canceled,
                attempts=m.attempts,
                last_error=m.last_error,
            )
            for m in messages
        ],
    ).model_dump(mode="json")
    return SuccessResponse(data=data)
