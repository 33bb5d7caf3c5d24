from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from pushgate.core.config import Settings
from pushgate.services.push_service import PushDispatchService


def get_push_service(request: Request) -> PushDispatchService:
    return request.app.state.push_service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


PushServiceDep = Annotated[PushDispatchService, Depends(get_push_service)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
