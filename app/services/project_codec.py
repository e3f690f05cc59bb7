"""项目快照的导出 / 导入

导出的 JSON 与浏览器端“保存项目”按钮生成的文件格式一致：

    {script, chapterCount, selectedStyle, selectedEra, selectedAspectRatio,
     scenes, characters, headline, styleGuide, timestamp}

导入时对每个字段做兜底：缺失或非法的值回退到默认值，多余字段忽略。
只有当文档根本不是 JSON 对象时才抛出 CorruptProject。
"""
from __future__ import annotations

import json
import logging
import time
from datetime import datetime, UTC
from typing import Any

from pydantic import ValidationError

from app.exceptions import CorruptProject
from app.models.entities import (
    ASPECT_RATIOS,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_CHAPTER_COUNT,
    DEFAULT_ERA,
    DEFAULT_STYLE,
    ERAS,
    CLIMAX_SCENE_ID,
    IMAGE_STYLES,
    Character,
    Headline,
    PipelineState,
    Scene,
)
from app.models.project import Project

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME_PREFIX = "lifedrama_project_"


def snapshot_filename(now: datetime | None = None) -> str:
    millis = int(now.timestamp() * 1000) if now is not None else int(time.time() * 1000)
    return f"{SNAPSHOT_FILENAME_PREFIX}{millis}.json"


def serialize(project: Project, *, now: datetime | None = None) -> dict[str, Any]:
    timestamp = (now or datetime.now(UTC)).isoformat()
    headline = project.headline
    return {
        "script": project.script_text,
        "chapterCount": project.chapter_count,
        "selectedStyle": project.style,
        "selectedEra": project.era,
        "selectedAspectRatio": project.aspect_ratio,
        "scenes": [s.model_dump(by_alias=True) for s in project.scenes],
        "characters": [c.model_dump(by_alias=True) for c in project.characters],
        "headline": headline.model_dump() if headline is not None else None,
        "styleGuide": project.style_guide,
        "timestamp": timestamp,
    }


def dumps(project: Project) -> str:
    return json.dumps(serialize(project), ensure_ascii=False, indent=2)


def _choice(value: Any, choices: tuple[str, ...], default: str) -> str:
    return value if isinstance(value, str) and value in choices else default


def _chapter_count(value: Any) -> int:
    # bool 是 int 的子类，需要单独排除
    if isinstance(value, bool):
        return DEFAULT_CHAPTER_COUNT
    if isinstance(value, int) and value >= 1:
        return value
    if isinstance(value, float) and value.is_integer() and value >= 1:
        return int(value)
    return DEFAULT_CHAPTER_COUNT


def _entities(items: Any, model: type[Character] | type[Scene]) -> list[Any]:
    if not isinstance(items, list):
        return []
    entities = []
    seen: set[str] = set()
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("Skipping non-object %s entry at index %d", model.__name__, idx)
            continue
        try:
            entity = model.model_validate(item)
        except ValidationError as exc:
            logger.warning("Skipping invalid %s entry at index %d: %s", model.__name__, idx, exc)
            continue
        if entity.id in seen:
            logger.warning("Skipping duplicate %s id %s", model.__name__, entity.id)
            continue
        seen.add(entity.id)
        entities.append(_normalize_state(entity))
    return entities


def _normalize_state(entity: Any) -> Any:
    """保证 图片 / loading / 错误 三者至多其一"""
    update: dict[str, Any] = {}
    # 快照中不会有仍在进行的请求
    if entity.is_loading:
        update["is_loading"] = False
    if entity.image_url is not None and entity.error is not None:
        logger.warning("Entity %s has both image and error; keeping the image", entity.id)
        update["error"] = None
    return entity.model_copy(update=update) if update else entity


def _normalize_climax(scenes: list[Scene]) -> list[Scene]:
    """只有 id 为 climax 的场景是高潮场景，且没有章节号"""
    normalized = []
    for scene in scenes:
        is_climax = scene.id == CLIMAX_SCENE_ID
        if is_climax and (not scene.is_climax or scene.chapter_number is not None):
            scene = scene.model_copy(update={"is_climax": True, "chapter_number": None})
        elif not is_climax and scene.is_climax:
            logger.warning("Scene %s is marked as climax but its id is not %s", scene.id, CLIMAX_SCENE_ID)
            scene = scene.model_copy(update={"is_climax": False})
        normalized.append(scene)
    return normalized


def _headline(value: Any) -> Headline | None:
    if not isinstance(value, dict):
        return None
    try:
        return Headline.model_validate(value)
    except ValidationError:
        return None


def deserialize(document: str | bytes | dict[str, Any]) -> Project:
    """把快照恢复成项目，阶段直接设为 complete（不重放分析和出图）"""
    if isinstance(document, (str, bytes)):
        try:
            data = json.loads(document)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise CorruptProject(details={"reason": str(exc)}) from exc
    else:
        data = document

    if not isinstance(data, dict):
        raise CorruptProject(details={"reason": "snapshot root must be a JSON object"})

    script = data.get("script")
    style_guide = data.get("styleGuide")

    project = Project(
        script_text=script if isinstance(script, str) else "",
        chapter_count=_chapter_count(data.get("chapterCount")),
        style=_choice(data.get("selectedStyle"), IMAGE_STYLES, DEFAULT_STYLE),  # type: ignore[arg-type]
        era=_choice(data.get("selectedEra"), ERAS, DEFAULT_ERA),  # type: ignore[arg-type]
        aspect_ratio=_choice(data.get("selectedAspectRatio"), ASPECT_RATIOS, DEFAULT_ASPECT_RATIO),  # type: ignore[arg-type]
        phase=PipelineState.COMPLETE,
    )
    scenes = _normalize_climax(_entities(data.get("scenes"), Scene))
    headline = _headline(data.get("headline"))
    if headline is not None and not any(s.is_climax for s in scenes):
        # 标题只在存在高潮场景时才有意义
        headline = None

    project.store.replace_all(
        characters=_entities(data.get("characters"), Character),
        scenes=scenes,
        headline=headline,
        style_guide=style_guide if isinstance(style_guide, str) else "",
    )
    return project
