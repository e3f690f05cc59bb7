from __future__ import annotations

from fastapi import Depends

from app.config import Settings, get_settings
from app.services.credentials import CredentialResolver
from app.services.gateway import AIGateway
from app.services.project_service import ProjectService, project_service
from app.services.task_manager import TaskManager, task_manager
from app.ws.manager import ConnectionManager, ws_manager


async def get_app_settings() -> Settings:
    return get_settings()


async def get_ws_manager() -> ConnectionManager:
    return ws_manager


async def get_project_service() -> ProjectService:
    return project_service


async def get_task_manager() -> TaskManager:
    return task_manager


async def get_credential_resolver(settings: Settings = Depends(get_app_settings)) -> CredentialResolver:
    return CredentialResolver(settings)


async def get_gateway(
    settings: Settings = Depends(get_app_settings),
    credentials: CredentialResolver = Depends(get_credential_resolver),
) -> AIGateway:
    return AIGateway(settings, credentials)


SettingsDep = Depends(get_app_settings)
WsManagerDep = Depends(get_ws_manager)
ProjectServiceDep = Depends(get_project_service)
TaskManagerDep = Depends(get_task_manager)
CredentialsDep = Depends(get_credential_resolver)
GatewayDep = Depends(get_gateway)
