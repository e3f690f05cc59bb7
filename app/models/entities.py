"""角色 / 场景实体及枚举类型

实体字段使用 snake_case，序列化时通过 camelCase 别名与前端及项目快照保持一致。
"""
from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


ImageStyle = Literal[
    "cinematic",
    "webtoon_action",
    "webtoon_romance",
    "webtoon_thriller",
    "webtoon_yadam",
]
Era = Literal["modern", "joseon"]
AspectRatio = Literal["16:9", "9:16"]

IMAGE_STYLES: tuple[str, ...] = (
    "cinematic",
    "webtoon_action",
    "webtoon_romance",
    "webtoon_thriller",
    "webtoon_yadam",
)
ERAS: tuple[str, ...] = ("modern", "joseon")
ASPECT_RATIOS: tuple[str, ...] = ("16:9", "9:16")

DEFAULT_CHAPTER_COUNT = 6
DEFAULT_STYLE: ImageStyle = "cinematic"
DEFAULT_ERA: Era = "modern"
DEFAULT_ASPECT_RATIO: AspectRatio = "16:9"

CLIMAX_SCENE_ID = "climax"


def character_id(index: int) -> str:
    return f"char-{index}"


def chapter_scene_id(index: int) -> str:
    return f"chapter-{index}"


class PipelineState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    CHARACTER_GENERATING = "character_generating"
    CHARACTER_CONFIRM = "character_confirm"
    IMAGE_GENERATING = "image_generating"
    COMPLETE = "complete"
    ERRORED = "errored"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImageEntity(CamelModel):
    """带独立 加载/结果/错误 状态的实体"""

    id: str
    image_prompt: str = ""
    image_url: str | None = None
    is_loading: bool = False
    error: str | None = None

    @property
    def status(self) -> str:
        if self.is_loading:
            return "loading"
        if self.error is not None:
            return "error"
        if self.image_url is not None:
            return "ready"
        return "idle"


class Character(ImageEntity):
    name: str = ""
    description: str = ""


class Scene(ImageEntity):
    chapter_number: int | None = None
    title: str = ""
    summary: str = ""
    script_segment: str | None = None
    is_climax: bool = False


class Headline(CamelModel):
    line1: str = ""
    line2: str = ""
