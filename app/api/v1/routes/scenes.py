from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from app.api.deps import ProjectServiceDep
from app.api.v1.routes.projects import attachment_headers
from app.exceptions import AppException, EntityNotFound
from app.models.entities import Scene
from app.services.media_service import decode_data_uri, is_data_uri, scene_image_filename
from app.services.project_service import ProjectService

router = APIRouter(prefix="/projects")


def _get_scene(projects: ProjectService, project_id: str, scene_id: str) -> Scene:
    scene = projects.require(project_id).store.scenes.get(scene_id)
    if scene is None:
        raise EntityNotFound(f"场景 {scene_id} 不存在", details={"scene_id": scene_id})
    return scene


def image_response(image_url: str | None, filename_for: Callable[[str], str], entity_id: str) -> Response:
    if not image_url:
        raise AppException(
            "该项还没有生成图片",
            code="IMAGE_NOT_READY",
            status_code=404,
            details={"entity_id": entity_id},
        )
    if not is_data_uri(image_url):
        # 服务商返回的是远程地址，直接跳转
        return RedirectResponse(image_url)
    try:
        image = decode_data_uri(image_url)
    except ValueError as exc:
        raise AppException(str(exc), code="IMAGE_DECODE_FAILED", status_code=500) from exc
    return Response(
        content=image.content,
        media_type=image.media_type,
        headers=attachment_headers(filename_for(image.extension)),
    )


@router.get("/{project_id}/scenes/{scene_id}", response_model=Scene)
async def get_scene(project_id: str, scene_id: str, projects: ProjectService = ProjectServiceDep):
    return _get_scene(projects, project_id, scene_id)


@router.get("/{project_id}/scenes/{scene_id}/image")
async def download_scene_image(project_id: str, scene_id: str, projects: ProjectService = ProjectServiceDep):
    scene = _get_scene(projects, project_id, scene_id)
    return image_response(scene.image_url, lambda ext: scene_image_filename(scene, ext), scene.id)


@router.get("/{project_id}/scenes/{scene_id}/script", response_class=PlainTextResponse)
async def get_scene_script(project_id: str, scene_id: str, projects: ProjectService = ProjectServiceDep):
    """场景对应的剧本片段（前端“复制剧本”按钮使用）"""
    scene = _get_scene(projects, project_id, scene_id)
    if not scene.script_segment:
        raise AppException(
            "该场景没有剧本片段",
            code="SCRIPT_SEGMENT_MISSING",
            status_code=404,
            details={"scene_id": scene_id},
        )
    return PlainTextResponse(scene.script_segment)
