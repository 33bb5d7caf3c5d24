from typing import List

from fastapi import APIRouter, HTTPException, status

from pushgate.api.deps import PushServiceDep
from pushgate.schemas import DeleteResponse, DeviceSummaryRead, ErrorResponse, PushResultRead

router = APIRouter()


@router.get("", response_model=List[DeviceSummaryRead], summary="List devices")
async def list_devices(service: PushServiceDep) -> List[DeviceSummaryRead]:
    """List registered devices. Key material is never included."""
    summaries = await service.list_devices()
    return [DeviceSummaryRead.from_summary(summary) for summary in summaries]


@router.delete(
    "/{device_id}",
    response_model=DeleteResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Remove device",
)
async def remove_device(device_id: str, service: PushServiceDep) -> DeleteResponse:
    if not await service.remove_device(device_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    return DeleteResponse(success=True)


@router.post(
    "/{device_id}/validate",
    response_model=PushResultRead,
    responses={404: {"model": ErrorResponse}},
    summary="Validate Web Push subscription",
)
async def validate_device(device_id: str, service: PushServiceDep) -> PushResultRead:
    """Send an empty zero-TTL push to check that the subscription is still accepted."""
    result = await service.validate_subscription(device_id)
    return PushResultRead.from_result(result)
