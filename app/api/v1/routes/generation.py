from __future__ import annotations

import logging

from fastapi import APIRouter, status

from app.agents.orchestrator import GenerationOrchestrator
from app.api.deps import (
    GatewayDep,
    ProjectServiceDep,
    SettingsDep,
    TaskManagerDep,
    WsManagerDep,
)
from app.config import Settings
from app.models.project import Project
from app.schemas.project import ActionAccepted, GenerateRequest, ProjectRead
from app.services.gateway import AIGateway
from app.services.project_service import ProjectService
from app.services.task_manager import TaskManager
from app.ws.manager import ConnectionManager

router = APIRouter(prefix="/projects")
logger = logging.getLogger(__name__)


def _accepted(project: Project, entity_id: str | None = None) -> ActionAccepted:
    return ActionAccepted(project_id=project.id, phase=project.phase, entity_id=entity_id)


@router.post("/{project_id}/generate", response_model=ActionAccepted, status_code=status.HTTP_202_ACCEPTED)
async def generate_project(
    project_id: str,
    payload: GenerateRequest,
    projects: ProjectService = ProjectServiceDep,
    settings: Settings = SettingsDep,
    ws: ConnectionManager = WsManagerDep,
    gateway: AIGateway = GatewayDep,
    tasks: TaskManager = TaskManagerDep,
):
    """提交剧本：分析 + 角色出图在后台执行，进度通过 WebSocket 推送"""
    project = projects.require(project_id)
    orchestrator = GenerationOrchestrator(settings=settings, ws=ws, project=project, gateway=gateway)
    script = payload.script if payload.script is not None else project.script_text
    await orchestrator.begin_submit(
        script,
        chapter_count=payload.chapter_count,
        style=payload.style,
        era=payload.era,
        aspect_ratio=payload.aspect_ratio,
    )
    logger.info("Project %s: script submitted (%d chars)", project_id, len(script))
    tasks.spawn(project_id, orchestrator.run_submit(), name=f"submit:{project_id}")
    return _accepted(project)


@router.post("/{project_id}/storyboard", response_model=ActionAccepted, status_code=status.HTTP_202_ACCEPTED)
async def start_storyboard(
    project_id: str,
    projects: ProjectService = ProjectServiceDep,
    settings: Settings = SettingsDep,
    ws: ConnectionManager = WsManagerDep,
    gateway: AIGateway = GatewayDep,
    tasks: TaskManager = TaskManagerDep,
):
    """确认角色形象，开始绘制高潮场景"""
    project = projects.require(project_id)
    orchestrator = GenerationOrchestrator(settings=settings, ws=ws, project=project, gateway=gateway)
    await orchestrator.begin_storyboard()
    tasks.spawn(project_id, orchestrator.run_storyboard(), name=f"storyboard:{project_id}")
    return _accepted(project)


@router.post(
    "/{project_id}/characters/{character_id}/regenerate",
    response_model=ActionAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def regenerate_character(
    project_id: str,
    character_id: str,
    projects: ProjectService = ProjectServiceDep,
    settings: Settings = SettingsDep,
    ws: ConnectionManager = WsManagerDep,
    gateway: AIGateway = GatewayDep,
    tasks: TaskManager = TaskManagerDep,
):
    project = projects.require(project_id)
    orchestrator = GenerationOrchestrator(settings=settings, ws=ws, project=project, gateway=gateway)
    orchestrator.begin_character(character_id)
    tasks.spawn(project_id, orchestrator.run_character(character_id), name=f"character:{character_id}")
    return _accepted(project, character_id)


@router.post(
    "/{project_id}/scenes/{scene_id}/generate",
    response_model=ActionAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
async def generate_scene(
    project_id: str,
    scene_id: str,
    projects: ProjectService = ProjectServiceDep,
    settings: Settings = SettingsDep,
    ws: ConnectionManager = WsManagerDep,
    gateway: AIGateway = GatewayDep,
    tasks: TaskManager = TaskManagerDep,
):
    """按需生成 / 重试 / 重绘单个场景"""
    project = projects.require(project_id)
    orchestrator = GenerationOrchestrator(settings=settings, ws=ws, project=project, gateway=gateway)
    orchestrator.begin_scene(scene_id)
    tasks.spawn(project_id, orchestrator.run_scene(scene_id), name=f"scene:{scene_id}")
    return _accepted(project, scene_id)


@router.post("/{project_id}/dismiss-error", response_model=ProjectRead)
async def dismiss_error(
    project_id: str,
    projects: ProjectService = ProjectServiceDep,
    settings: Settings = SettingsDep,
    ws: ConnectionManager = WsManagerDep,
    gateway: AIGateway = GatewayDep,
):
    project = projects.require(project_id)
    orchestrator = GenerationOrchestrator(settings=settings, ws=ws, project=project, gateway=gateway)
    await orchestrator.dismiss_error()
    return ProjectRead.from_project(project)


@router.post("/{project_id}/reset", response_model=ProjectRead)
async def reset_project(
    project_id: str,
    projects: ProjectService = ProjectServiceDep,
    settings: Settings = SettingsDep,
    ws: ConnectionManager = WsManagerDep,
    gateway: AIGateway = GatewayDep,
):
    """新建：清空角色和场景，回到剧本输入阶段"""
    project = projects.require(project_id)
    orchestrator = GenerationOrchestrator(settings=settings, ws=ws, project=project, gateway=gateway)
    await orchestrator.reset()
    return ProjectRead.from_project(project)
