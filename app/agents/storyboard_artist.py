from __future__ import annotations

import logging

from app.agents.base import AgentContext, BaseAgent, RenderOutcome

logger = logging.getLogger(__name__)


class StoryboardArtistAgent(BaseAgent):
    """确认角色后只为高潮场景出图；章节场景由用户逐个触发"""

    name = "storyboard_artist"

    async def run(self, ctx: AgentContext) -> list[RenderOutcome]:
        climax = ctx.project.store.climax()
        if climax is None:
            logger.warning("Project %s has no climax scene; nothing to render", ctx.project.id)
            return []

        await self.send_message(ctx, f"🖼️ 正在绘制高潮场景：{climax.title}", progress=0.0, is_loading=True)
        outcome = await self.generate_entity_image(ctx, "scene", climax, is_portrait=False)
        if outcome.ok:
            await self.send_message(ctx, "✅ 高潮场景绘制完成，可以按需生成各章节画面。", progress=1.0)
        else:
            await self.send_message(ctx, "⚠️ 高潮场景图片生成失败，可稍后重试。", progress=1.0)
        return [outcome]


class SingleSceneArtistAgent(StoryboardArtistAgent):
    """按需生成 / 重新生成指定场景"""

    def __init__(self, scene_id: str):
        super().__init__()
        self.scene_id = scene_id

    async def run(self, ctx: AgentContext) -> list[RenderOutcome]:
        scene = ctx.project.store.scenes.get(self.scene_id)
        if scene is None:
            await self.send_message(ctx, "未找到指定场景，无法生成。")
            return []

        label = "高潮场景" if scene.is_climax else f"第 {scene.chapter_number} 章"
        await self.send_message(ctx, f"🖼️ 正在绘制{label}：{scene.title}", is_loading=True)
        outcome = await self.generate_entity_image(ctx, "scene", scene, is_portrait=False)
        if not outcome.ok:
            await self.send_message(ctx, f"⚠️ {label} 图片生成失败")
        return [outcome]
