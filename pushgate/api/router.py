from fastapi import APIRouter

from pushgate.api.v1 import devices, health, push, vapid


api_router = APIRouter()
api_router.include_router(health.router, prefix="", tags=["status"])
api_router.include_router(push.router, prefix="", tags=["push"])
api_router.include_router(devices.router, prefix="/devices", tags=["devices"])
api_router.include_router(vapid.router, prefix="/vapid", tags=["vapid"])
