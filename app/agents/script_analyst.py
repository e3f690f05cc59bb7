from __future__ import annotations

import logging

from app.agents.base import AgentContext, BaseAgent
from app.models.entities import (
    CLIMAX_SCENE_ID,
    Character,
    Headline,
    Scene,
    chapter_scene_id,
    character_id,
)
from app.schemas.analysis import Analysis

logger = logging.getLogger(__name__)


def build_characters(analysis: Analysis) -> list[Character]:
    """按分析顺序创建角色，初始即为 loading（随后立即逐个出图）"""
    return [
        Character(
            id=character_id(idx),
            name=item.name,
            description=item.description,
            image_prompt=item.imagePrompt,
            is_loading=True,
        )
        for idx, item in enumerate(analysis.characters)
    ]


def build_scenes(analysis: Analysis) -> list[Scene]:
    """高潮场景在前，其后为按返回顺序编号（从 1 开始）的章节场景"""
    climax = Scene(
        id=CLIMAX_SCENE_ID,
        title=analysis.climax.title,
        summary=analysis.climax.summary,
        script_segment=analysis.climax.scriptSegment,
        image_prompt=analysis.climax.imagePrompt,
        is_climax=True,
    )
    chapters = [
        Scene(
            id=chapter_scene_id(idx),
            chapter_number=idx + 1,
            title=item.title,
            summary=item.summary,
            script_segment=item.scriptSegment,
            image_prompt=item.imagePrompt,
            is_climax=False,
        )
        for idx, item in enumerate(analysis.chapters)
    ]
    return [climax, *chapters]


class ScriptAnalystAgent(BaseAgent):
    """调用文本模型分析剧本，并用结果整体替换实体仓库"""

    name = "script_analyst"

    async def run(self, ctx: AgentContext) -> None:
        project = ctx.project
        await self.send_message(ctx, "📖 正在分析剧本的时代背景和核心冲突...", progress=0.0, is_loading=True)

        # 失败时异常直接抛给编排器，由其进入 errored；实体仓库保持不变
        analysis = await ctx.gateway.analyze(
            project.script_text,
            project.chapter_count,
            project.style,
            project.era,
        )

        characters = build_characters(analysis)
        scenes = build_scenes(analysis)
        project.store.replace_all(
            characters=characters,
            scenes=scenes,
            headline=Headline(line1=analysis.headline.line1, line2=analysis.headline.line2),
            style_guide=analysis.visualStyleGuide,
        )
        project.touch()
        logger.info(
            "Analysis applied to project %s: %d characters, %d scenes",
            project.id,
            len(characters),
            len(scenes),
        )

        await ctx.ws.send_event(
            project.id,
            {
                "type": "analysis_completed",
                "data": {
                    "headline": project.store.headline.model_dump(by_alias=True),
                    "style_guide": project.store.style_guide,
                    "characters": [c.model_dump(by_alias=True) for c in project.characters],
                    "scenes": [s.model_dump(by_alias=True) for s in project.scenes],
                },
            },
        )
        await self.send_message(
            ctx,
            f"✅ 剧本分析完成：{len(characters)} 个角色，1 个高潮场景，{len(scenes) - 1} 个章节。",
            progress=1.0,
        )
