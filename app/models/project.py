from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, UTC

from app.models.entities import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_CHAPTER_COUNT,
    DEFAULT_ERA,
    DEFAULT_STYLE,
    AspectRatio,
    Character,
    Era,
    Headline,
    ImageStyle,
    PipelineState,
    Scene,
)
from app.services.entity_store import EntityStore


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def new_project_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Project:
    """一次创作会话：表单输入 + 实体仓库 + 流水线阶段

    保存/加载的基本单位，也是 GenerationOrchestrator 的工作状态。
    """

    id: str = field(default_factory=new_project_id)
    script_text: str = ""
    chapter_count: int = DEFAULT_CHAPTER_COUNT
    style: ImageStyle = DEFAULT_STYLE
    era: Era = DEFAULT_ERA
    aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO
    store: EntityStore = field(default_factory=EntityStore)
    phase: PipelineState = PipelineState.IDLE
    error: str | None = None  # 阶段级错误（仅 analyzing 失败时设置）
    credential_required: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def characters(self) -> list[Character]:
        return self.store.characters.list()

    @property
    def scenes(self) -> list[Scene]:
        return self.store.scenes.list()

    @property
    def headline(self) -> Headline | None:
        return self.store.headline

    @property
    def style_guide(self) -> str:
        return self.store.style_guide

    def touch(self) -> None:
        self.updated_at = utcnow()
