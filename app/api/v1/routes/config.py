from __future__ import annotations

import logging

from fastapi import APIRouter, status

from app.api.deps import CredentialsDep, ProjectServiceDep
from app.exceptions import AppException
from app.schemas.project import CredentialStatus, CredentialUpdate
from app.services.credentials import CredentialResolver
from app.services.project_service import ProjectService

router = APIRouter()
logger = logging.getLogger(__name__)


def _status(credentials: CredentialResolver) -> CredentialStatus:
    resolved = credentials.resolve()
    if resolved is None:
        return CredentialStatus(configured=False)
    return CredentialStatus(configured=True, source=resolved.source, masked=resolved.masked())


@router.get("/credential", response_model=CredentialStatus)
async def get_credential(credentials: CredentialResolver = CredentialsDep):
    """当前生效的凭证来源（只返回脱敏值）"""
    return _status(credentials)


@router.put("/credential", response_model=CredentialStatus, status_code=status.HTTP_200_OK)
async def set_credential(
    payload: CredentialUpdate,
    credentials: CredentialResolver = CredentialsDep,
    projects: ProjectService = ProjectServiceDep,
):
    """保存用户输入的凭证，优先于平台提供的凭证"""
    try:
        credentials.store.save(payload.api_key)
    except ValueError as exc:
        raise AppException(str(exc), code="INVALID_CREDENTIAL", status_code=422) from exc
    except OSError as exc:
        logger.error("Failed to persist credential to %s: %s", credentials.store.path, exc)
        raise AppException("凭证保存失败", code="CREDENTIAL_SAVE_FAILED", status_code=500) from exc
    projects.clear_credential_flags()
    logger.info("User credential updated")
    return _status(credentials)


@router.delete("/credential", response_model=CredentialStatus)
async def clear_credential(credentials: CredentialResolver = CredentialsDep):
    """删除用户输入的凭证，回退到平台凭证（如果有）"""
    if credentials.store.clear():
        logger.info("User credential removed")
    return _status(credentials)
