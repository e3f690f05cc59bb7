from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

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
from app.models.project import Project

MAX_CHAPTER_COUNT = 20


class ProjectCreate(BaseModel):
    script: str = ""
    chapter_count: int = Field(default=DEFAULT_CHAPTER_COUNT, ge=1, le=MAX_CHAPTER_COUNT)
    style: ImageStyle = DEFAULT_STYLE
    era: Era = DEFAULT_ERA
    aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO


class GenerateRequest(BaseModel):
    """提交剧本；未提供的选项沿用项目当前值"""

    script: str | None = None
    chapter_count: int | None = Field(default=None, ge=1, le=MAX_CHAPTER_COUNT)
    style: ImageStyle | None = None
    era: Era | None = None
    aspect_ratio: AspectRatio | None = None


class ProjectRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    script: str
    chapter_count: int
    style: ImageStyle
    era: Era
    aspect_ratio: AspectRatio
    phase: PipelineState
    error: str | None
    credential_required: bool
    headline: Headline | None
    style_guide: str
    characters: list[Character]
    scenes: list[Scene]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_project(cls, project: Project) -> "ProjectRead":
        return cls(
            id=project.id,
            script=project.script_text,
            chapter_count=project.chapter_count,
            style=project.style,
            era=project.era,
            aspect_ratio=project.aspect_ratio,
            phase=project.phase,
            error=project.error,
            credential_required=project.credential_required,
            headline=project.headline,
            style_guide=project.style_guide,
            characters=project.characters,
            scenes=project.scenes,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class ProjectSummaryRead(BaseModel):
    id: str
    phase: PipelineState
    title: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_project(cls, project: Project) -> "ProjectSummaryRead":
        headline = project.headline
        return cls(
            id=project.id,
            phase=project.phase,
            title=f"{headline.line1} {headline.line2}".strip() if headline else None,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class ActionAccepted(BaseModel):
    status: str = "accepted"
    project_id: str
    phase: PipelineState
    entity_id: str | None = None


class CredentialUpdate(BaseModel):
    api_key: str = Field(min_length=1)


class CredentialStatus(BaseModel):
    configured: bool
    source: str | None = None
    masked: str | None = None
