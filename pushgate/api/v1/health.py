from datetime import datetime, timezone

from fastapi import APIRouter

from pushgate.api.deps import PushServiceDep, SettingsDep
from pushgate.models import ProtocolKind
from pushgate.schemas import ServerStatus

router = APIRouter()


@router.get("/", response_model=ServerStatus, summary="Server status")
async def read_status(service: PushServiceDep, app_settings: SettingsDep) -> ServerStatus:
    """Service status with registered device counts."""
    counts = await service.status()
    return ServerStatus(
        service=app_settings.PROJECT_NAME,
        timestamp=datetime.now(timezone.utc),
        wns_devices=counts[ProtocolKind.VENDOR_RAW.value],
        vapid_devices=counts[ProtocolKind.WEB_PUSH_VAPID.value],
        wns_configured=app_settings.wns_configured,
    )


@router.get("/health", summary="Health check", tags=["health"])
def read_health() -> dict[str, str]:
    """Return basic service health information."""
    return {"status": "ok"}
