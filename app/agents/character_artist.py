from __future__ import annotations

import logging

from app.agents.base import AgentContext, BaseAgent, RenderOutcome

logger = logging.getLogger(__name__)


class CharacterArtistAgent(BaseAgent):
    """按角色顺序依次生成单人立绘"""

    name = "character_artist"

    async def run(self, ctx: AgentContext) -> list[RenderOutcome]:
        characters = ctx.project.store.characters.list()
        total = len(characters)
        if not total:
            await self.send_message(ctx, "剧本中没有识别出主要角色。")
            return []

        await self.send_message(ctx, f"🎨 开始为 {total} 个角色生成形象图...", progress=0.0, is_loading=True)

        outcomes: list[RenderOutcome] = []
        # 严格串行：一个请求结束后才发出下一个，失败不会中断后续角色
        for i, char in enumerate(characters):
            await self.send_message(
                ctx,
                f"   正在绘制：{char.name} ({i + 1}/{total})",
                progress=i / total,
                is_loading=True,
            )
            outcome = await self.generate_entity_image(ctx, "character", char, is_portrait=True)
            outcomes.append(outcome)
            if not outcome.ok:
                await self.send_message(ctx, f"⚠️ 角色 {char.name} 图片生成失败")

        succeeded = sum(1 for o in outcomes if o.ok)
        logger.info("Character batch for project %s: %d/%d succeeded", ctx.project.id, succeeded, total)
        await self.send_message(
            ctx,
            f"✅ 已为 {succeeded}/{total} 个角色生成形象图，请确认角色形象后开始绘制分镜。",
            progress=1.0,
        )
        return outcomes


class SingleCharacterArtistAgent(CharacterArtistAgent):
    """重新生成指定角色的形象图"""

    def __init__(self, character_id: str):
        super().__init__()
        self.character_id = character_id

    async def run(self, ctx: AgentContext) -> list[RenderOutcome]:
        character = ctx.project.store.characters.get(self.character_id)
        if character is None:
            await self.send_message(ctx, "未找到指定角色，无法重新生成。")
            return []

        await self.send_message(ctx, f"🎨 重新生成角色 {character.name} 的形象图...", is_loading=True)
        outcome = await self.generate_entity_image(ctx, "character", character, is_portrait=True)
        if outcome.ok:
            await self.send_message(ctx, f"✅ 已为角色 {character.name} 生成形象图。")
        else:
            await self.send_message(ctx, f"⚠️ 角色 {character.name} 图片生成失败")
        return [outcome]
