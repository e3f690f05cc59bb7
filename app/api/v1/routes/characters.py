from __future__ import annotations

from fastapi import APIRouter

from app.api.deps import ProjectServiceDep
from app.api.v1.routes.scenes import image_response
from app.exceptions import EntityNotFound
from app.models.entities import Character
from app.services.media_service import character_image_filename
from app.services.project_service import ProjectService

router = APIRouter(prefix="/projects")


def _get_character(projects: ProjectService, project_id: str, character_id: str) -> Character:
    character = projects.require(project_id).store.characters.get(character_id)
    if character is None:
        raise EntityNotFound(f"角色 {character_id} 不存在", details={"character_id": character_id})
    return character


@router.get("/{project_id}/characters/{character_id}", response_model=Character)
async def get_character(project_id: str, character_id: str, projects: ProjectService = ProjectServiceDep):
    return _get_character(projects, project_id, character_id)


@router.get("/{project_id}/characters/{character_id}/image")
async def download_character_image(
    project_id: str,
    character_id: str,
    projects: ProjectService = ProjectServiceDep,
):
    character = _get_character(projects, project_id, character_id)
    return image_response(
        character.image_url,
        lambda ext: character_image_filename(character, ext),
        character.id,
    )
