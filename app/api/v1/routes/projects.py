from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import APIRouter, File, UploadFile, status
from fastapi.responses import Response

from app.agents.orchestrator import GenerationOrchestrator
from app.api.deps import (
    GatewayDep,
    ProjectServiceDep,
    SettingsDep,
    TaskManagerDep,
    WsManagerDep,
)
from app.config import Settings
from app.exceptions import AppException, CorruptProject, PhaseConflict
from app.models.entities import Character, PipelineState, Scene
from app.models.project import Project
from app.schemas.project import ProjectCreate, ProjectRead, ProjectSummaryRead
from app.services import project_codec
from app.services.gateway import AIGateway
from app.services.project_service import ProjectService
from app.services.task_manager import TaskManager
from app.ws.manager import ConnectionManager

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def attachment_headers(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"}


async def _read_upload(file: UploadFile) -> bytes:
    content = await file.read(MAX_UPLOAD_BYTES + 1)
    if len(content) > MAX_UPLOAD_BYTES:
        raise AppException("上传文件过大", code="UPLOAD_TOO_LARGE", status_code=413)
    return content


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project(payload: ProjectCreate, projects: ProjectService = ProjectServiceDep):
    project = Project(
        script_text=payload.script,
        chapter_count=payload.chapter_count,
        style=payload.style,
        era=payload.era,
        aspect_ratio=payload.aspect_ratio,
    )
    projects.create(project)
    return ProjectRead.from_project(project)


@router.get("", response_model=list[ProjectSummaryRead])
async def list_projects(projects: ProjectService = ProjectServiceDep):
    return [ProjectSummaryRead.from_project(p) for p in projects.list()]


@router.post("/import", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def import_project(
    file: UploadFile = File(...),
    projects: ProjectService = ProjectServiceDep,
):
    """上传项目快照，创建一个直接处于 complete 阶段的新项目"""
    content = await _read_upload(file)
    project = project_codec.deserialize(content)
    projects.create(project)
    logger.info(
        "Imported project %s from %s: %d characters, %d scenes",
        project.id,
        file.filename,
        len(project.characters),
        len(project.scenes),
    )
    return ProjectRead.from_project(project)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(project_id: str, projects: ProjectService = ProjectServiceDep):
    return ProjectRead.from_project(projects.require(project_id))


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    projects: ProjectService = ProjectServiceDep,
    tasks: TaskManager = TaskManagerDep,
):
    """删除项目，并取消它所有仍在运行的后台任务"""
    projects.require(project_id)
    cancelled = tasks.cancel_all(project_id)
    if cancelled:
        logger.info("Cancelled %d running task(s) of project %s", cancelled, project_id)
    projects.delete(project_id)
    return None


@router.get("/{project_id}/characters", response_model=list[Character])
async def list_characters(project_id: str, projects: ProjectService = ProjectServiceDep):
    return projects.require(project_id).characters


@router.get("/{project_id}/scenes", response_model=list[Scene])
async def list_scenes(project_id: str, projects: ProjectService = ProjectServiceDep):
    return projects.require(project_id).scenes


@router.post("/{project_id}/script", response_model=ProjectRead)
async def upload_script(
    project_id: str,
    file: UploadFile = File(...),
    projects: ProjectService = ProjectServiceDep,
):
    """导入纯文本剧本，原样写入剧本字段"""
    project = projects.require(project_id)
    if project.phase not in {PipelineState.IDLE, PipelineState.ERRORED}:
        raise PhaseConflict(
            "当前阶段不允许修改剧本",
            details={"phase": project.phase.value, "action": "upload_script"},
        )
    content = await _read_upload(file)
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise AppException(
            "剧本文件必须是 UTF-8 编码的纯文本",
            code="INVALID_SCRIPT_FILE",
            status_code=422,
            details={"reason": str(exc)},
        ) from exc
    project.script_text = text
    project.touch()
    return ProjectRead.from_project(project)


@router.get("/{project_id}/export")
async def export_project(project_id: str, projects: ProjectService = ProjectServiceDep):
    project = projects.require(project_id)
    body = project_codec.dumps(project)
    return Response(
        content=body.encode("utf-8"),
        media_type="application/json",
        headers=attachment_headers(project_codec.snapshot_filename()),
    )


@router.post("/{project_id}/load", response_model=ProjectRead)
async def load_project(
    project_id: str,
    file: UploadFile = File(...),
    projects: ProjectService = ProjectServiceDep,
    settings: Settings = SettingsDep,
    ws: ConnectionManager = WsManagerDep,
    gateway: AIGateway = GatewayDep,
):
    """用快照替换已有项目的全部内容"""
    project = projects.require(project_id)
    content = await _read_upload(file)
    orchestrator = GenerationOrchestrator(settings=settings, ws=ws, project=project, gateway=gateway)
    try:
        await orchestrator.load_snapshot(content)
    except CorruptProject:
        logger.warning("Rejected corrupt snapshot %s for project %s", file.filename, project_id)
        raise
    return ProjectRead.from_project(project)
