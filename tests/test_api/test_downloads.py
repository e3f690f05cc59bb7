from __future__ import annotations

import base64

import pytest

from app.models.entities import PipelineState
from tests.factories import create_project

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"
PNG_URI = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode("ascii")


@pytest.mark.asyncio
async def test_get_scene(async_client, projects):
    project = create_project(projects, phase=PipelineState.COMPLETE)
    res = await async_client.get(f"/api/v1/projects/{project.id}/scenes/chapter-0")
    assert res.status_code == 200
    assert res.json()["title"] == "1장"

    res = await async_client.get(f"/api/v1/projects/{project.id}/scenes/nope")
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_download_climax_image(async_client, projects):
    project = create_project(projects, phase=PipelineState.COMPLETE)
    project.store.scenes.set_result("climax", PNG_URI)

    res = await async_client.get(f"/api/v1/projects/{project.id}/scenes/climax/image")
    assert res.status_code == 200
    assert res.content == PNG_BYTES
    assert res.headers["content-type"] == "image/png"
    assert "0.climax_" in res.headers["content-disposition"]
    assert res.headers["content-disposition"].endswith(".png")


@pytest.mark.asyncio
async def test_download_chapter_image_jpeg(async_client, projects):
    project = create_project(projects, phase=PipelineState.COMPLETE)
    project.store.scenes.set_result("chapter-1", "data:image/jpeg;base64," + base64.b64encode(b"jpg").decode())

    res = await async_client.get(f"/api/v1/projects/{project.id}/scenes/chapter-1/image")
    assert res.status_code == 200
    assert res.content == b"jpg"
    assert "filename*=UTF-8''2." in res.headers["content-disposition"]
    assert res.headers["content-disposition"].endswith(".jpg")


@pytest.mark.asyncio
async def test_download_image_not_ready(async_client, projects):
    project = create_project(projects, phase=PipelineState.COMPLETE)
    res = await async_client.get(f"/api/v1/projects/{project.id}/scenes/chapter-0/image")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "IMAGE_NOT_READY"


@pytest.mark.asyncio
async def test_download_remote_image_redirects(async_client, projects):
    project = create_project(projects, phase=PipelineState.COMPLETE)
    project.store.scenes.set_result("chapter-0", "http://cdn.test/scene.png")

    res = await async_client.get(f"/api/v1/projects/{project.id}/scenes/chapter-0/image")
    assert res.status_code == 307
    assert res.headers["location"] == "http://cdn.test/scene.png"


@pytest.mark.asyncio
async def test_scene_script_segment(async_client, projects):
    project = create_project(projects, phase=PipelineState.COMPLETE)

    res = await async_client.get(f"/api/v1/projects/{project.id}/scenes/climax/script")
    assert res.status_code == 200
    assert res.text == "A: 네가 그랬어?"


@pytest.mark.asyncio
async def test_scene_script_segment_missing(async_client, projects):
    project = create_project(projects, phase=PipelineState.COMPLETE)
    scenes = project.store.scenes
    scenes._items["chapter-0"] = scenes.get("chapter-0").model_copy(update={"script_segment": None})

    res = await async_client.get(f"/api/v1/projects/{project.id}/scenes/chapter-0/script")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "SCRIPT_SEGMENT_MISSING"


@pytest.mark.asyncio
async def test_character_detail_and_image(async_client, projects):
    project = create_project(projects, phase=PipelineState.CHARACTER_CONFIRM)
    project.store.characters.set_result("char-0", PNG_URI)

    res = await async_client.get(f"/api/v1/projects/{project.id}/characters/char-0")
    assert res.status_code == 200
    assert res.json()["name"] == "인물0"
    assert res.json()["imageUrl"] == PNG_URI

    res = await async_client.get(f"/api/v1/projects/{project.id}/characters/char-0/image")
    assert res.status_code == 200
    assert res.content == PNG_BYTES
    assert "_profile.png" in res.headers["content-disposition"]


@pytest.mark.asyncio
async def test_character_not_found(async_client, projects):
    project = create_project(projects, phase=PipelineState.CHARACTER_CONFIRM)
    res = await async_client.get(f"/api/v1/projects/{project.id}/characters/char-9/image")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "ENTITY_NOT_FOUND"
