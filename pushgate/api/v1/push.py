from typing import List

from fastapi import APIRouter

from pushgate.api.deps import PushServiceDep, SettingsDep
from pushgate.models import PushMessage
from pushgate.schemas import (
    BroadcastRequest,
    ErrorResponse,
    PushResultRead,
    RegisterRequest,
    RegisterResponse,
    SendRequest,
    SubscribeRequest,
    SubscribeResponse,
)

router = APIRouter()


@router.post(
    "/register",
    response_model=RegisterResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Register WNS device",
)
async def register_device(payload: RegisterRequest, service: PushServiceDep) -> RegisterResponse:
    """Register a device for WNS raw notifications."""
    record = await service.register_device(payload.device_id, payload.channel_uri, payload.user_id)
    return RegisterResponse(device_id=record.device_id, registered_at=record.registered_at)


@router.post(
    "/subscribe",
    response_model=SubscribeResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Register VAPID device",
)
async def subscribe_device(payload: SubscribeRequest, service: PushServiceDep) -> SubscribeResponse:
    """Register a device for Web Push with its channel URI and VAPID private key."""
    record = await service.subscribe_device(
        payload.device_id,
        payload.channel_uri,
        payload.private_key,
        p256dh=payload.p256dh,
        auth=payload.auth,
    )
    return SubscribeResponse(device_id=record.device_id)


@router.post(
    "/send",
    response_model=PushResultRead,
    responses={404: {"model": ErrorResponse}},
    summary="Send notification",
)
async def send_notification(
    payload: SendRequest,
    service: PushServiceDep,
    app_settings: SettingsDep,
) -> PushResultRead:
    """Send a notification to one device over the protocol its channel requires."""
    message = PushMessage(
        body=payload.message,
        title=payload.title,
        ttl=payload.ttl if payload.ttl is not None else app_settings.DEFAULT_TTL,
        urgency=payload.urgency,
        toast=payload.toast,
    )
    result = await service.send(payload.device_id, message)
    return PushResultRead.from_result(result)


@router.post("/broadcast", response_model=List[PushResultRead], summary="Send to many devices")
async def broadcast_notification(
    payload: BroadcastRequest,
    service: PushServiceDep,
    app_settings: SettingsDep,
) -> List[PushResultRead]:
    """Send a notification to the listed devices, or to every registered device."""
    message = PushMessage(
        body=payload.message,
        title=payload.title,
        ttl=payload.ttl if payload.ttl is not None else app_settings.DEFAULT_TTL,
        toast=payload.toast,
    )
    results = await service.send_bulk(message, payload.device_ids)
    return [PushResultRead.from_result(result) for result in results]
