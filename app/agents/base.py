from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from app.config import Settings
from app.exceptions import GatewayError, UnauthorizedCredential
from app.models.entities import ImageEntity
from app.models.project import Project
from app.schemas.analysis import Analysis

logger = logging.getLogger(__name__)

EntityKind = Literal["character", "scene"]


class GatewayProtocol(Protocol):
    async def analyze(self, script_text: str, chapter_count: int, style: str, era: str) -> Analysis: ...

    async def render_image(
        self,
        prompt: str,
        style: str,
        style_guide: str,
        era: str,
        aspect_ratio: str,
        is_portrait: bool,
    ) -> str: ...


class EventSink(Protocol):
    async def send_event(self, project_id: str, event: dict[str, Any]) -> None: ...


@dataclass
class AgentContext:
    settings: Settings
    ws: EventSink
    project: Project
    gateway: GatewayProtocol


@dataclass(slots=True)
class RenderOutcome:
    """单个实体一次出图的结果：image 与 error 二选一"""

    entity_id: str
    image: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.image is not None


class BaseAgent:
    name: str = "base"

    async def send_message(
        self, ctx: AgentContext, content: str, progress: float | None = None, is_loading: bool = False
    ) -> None:
        """发送进度消息

        Args:
            ctx: Agent 上下文
            content: 消息内容
            progress: 进度值（0-1 之间）
            is_loading: 是否显示加载动画
        """
        data: dict[str, Any] = {
            "agent": self.name,
            "role": "assistant",
            "content": content,
        }
        if progress is not None:
            data["progress"] = max(0.0, min(1.0, progress))
        if is_loading:
            data["isLoading"] = True

        await ctx.ws.send_event(ctx.project.id, {"type": "run_message", "data": data})

    async def send_entity_event(self, ctx: AgentContext, kind: EntityKind, entity_id: str) -> None:
        """推送单个实体的最新状态"""
        collection = ctx.project.store.characters if kind == "character" else ctx.project.store.scenes
        entity = collection.get(entity_id)
        if entity is None:
            return
        await ctx.ws.send_event(
            ctx.project.id,
            {"type": f"{kind}_updated", "data": {kind: entity.model_dump(by_alias=True)}},
        )

    async def flag_credential_required(self, ctx: AgentContext, exc: UnauthorizedCredential) -> None:
        """凭证问题只提示用户重新设置，不会自动重试原请求"""
        ctx.project.credential_required = True
        await ctx.ws.send_event(
            ctx.project.id,
            {
                "type": "credential_required",
                "data": {"message": exc.message, "upstream_code": exc.upstream_code},
            },
        )

    async def generate_entity_image(
        self,
        ctx: AgentContext,
        kind: EntityKind,
        entity: ImageEntity,
        *,
        is_portrait: bool,
    ) -> RenderOutcome:
        """单实体出图协议：loading -> 成功写入图片 / 失败写入错误，只影响该实体

        错误不会向上抛出，而是记录在实体上并通过返回值告知调用方。
        """
        project = ctx.project
        collection = project.store.characters if kind == "character" else project.store.scenes

        if not collection.set_loading(entity.id):
            return RenderOutcome(entity.id, error=KeyError(entity.id))
        await self.send_entity_event(ctx, kind, entity.id)

        try:
            image = await ctx.gateway.render_image(
                entity.image_prompt,
                project.style,
                project.store.style_guide,
                project.era,
                project.aspect_ratio,
                is_portrait,
            )
        except UnauthorizedCredential as exc:
            logger.warning("Credential rejected while rendering %s %s: %s", kind, entity.id, exc.details)
            collection.set_error(entity.id, exc.message)
            await self.send_entity_event(ctx, kind, entity.id)
            await self.flag_credential_required(ctx, exc)
            return RenderOutcome(entity.id, error=exc)
        except GatewayError as exc:
            logger.warning("Image generation failed for %s %s: %s", kind, entity.id, exc.message)
            collection.set_error(entity.id, exc.message)
            await self.send_entity_event(ctx, kind, entity.id)
            return RenderOutcome(entity.id, error=exc)
        except Exception as exc:
            # 单个失败不影响其他实体
            logger.exception("Unexpected error while rendering %s %s", kind, entity.id)
            collection.set_error(entity.id, f"图片生成失败: {str(exc)[:100]}")
            await self.send_entity_event(ctx, kind, entity.id)
            return RenderOutcome(entity.id, error=exc)

        collection.set_result(entity.id, image)
        project.touch()
        await self.send_entity_event(ctx, kind, entity.id)
        return RenderOutcome(entity.id, image=image)

    async def run(self, ctx: AgentContext) -> None:  # pragma: no cover
        raise NotImplementedError
