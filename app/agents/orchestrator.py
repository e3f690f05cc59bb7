from __future__ import annotations

import logging
from typing import Any

from app.agents.base import AgentContext, EventSink, GatewayProtocol, RenderOutcome
from app.agents.character_artist import CharacterArtistAgent, SingleCharacterArtistAgent
from app.agents.script_analyst import ScriptAnalystAgent
from app.agents.storyboard_artist import SingleSceneArtistAgent, StoryboardArtistAgent
from app.config import Settings
from app.exceptions import (
    AppException,
    EmptyInput,
    EntityBusy,
    EntityNotFound,
    PhaseConflict,
    UnauthorizedCredential,
)
from app.models.entities import AspectRatio, Era, ImageStyle, PipelineState
from app.models.project import Project
from app.services import project_codec

logger = logging.getLogger(__name__)

# 可以重新提交剧本的阶段
SUBMIT_PHASES = frozenset({PipelineState.IDLE, PipelineState.ERRORED})
# 角色确认之后（含）才允许单独重绘角色
CHARACTER_REGENERATE_PHASES = frozenset(
    {PipelineState.CHARACTER_CONFIRM, PipelineState.IMAGE_GENERATING, PipelineState.COMPLETE}
)
# 没有进行中的阶段性任务，可以整体替换实体
SETTLED_PHASES = frozenset(
    {
        PipelineState.IDLE,
        PipelineState.ERRORED,
        PipelineState.CHARACTER_CONFIRM,
        PipelineState.COMPLETE,
    }
)

# 阶段完成后发给前端的提示
PHASE_HINTS = {
    PipelineState.ANALYZING: "正在分析剧本...",
    PipelineState.CHARACTER_GENERATING: "正在生成角色形象...",
    PipelineState.CHARACTER_CONFIRM: "请确认角色形象，满意后开始绘制分镜。",
    PipelineState.IMAGE_GENERATING: "正在绘制高潮场景...",
    PipelineState.COMPLETE: "分镜已就绪，可以按需生成各章节画面。",
}


class GenerationOrchestrator:
    """流水线控制器：驱动 剧本 -> 分析 -> 角色出图 -> 确认 -> 高潮场景 -> 完成

    全局阶段保存在 Project.phase 上，单个实体的 加载/图片/错误 状态由实体仓库维护，
    两者互相独立：单张图片失败只记录在对应实体上，不会让流水线进入 errored。

    每个用户操作分为两步：
    - begin_*: 同步完成校验并占用状态（阶段或实体的 loading），不合法时抛出异常；
    - run_*: 实际调用 AI 服务，可放到后台任务中执行。
    直接调用 submit / start_storyboard / generate_scene / regenerate_character 会依次执行两步。
    """

    def __init__(
        self,
        *,
        settings: Settings,
        ws: EventSink,
        project: Project,
        gateway: GatewayProtocol,
    ):
        self.settings = settings
        self.ws = ws
        self.project = project
        self.ctx = AgentContext(settings=settings, ws=ws, project=project, gateway=gateway)
        self.analyst = ScriptAnalystAgent()
        self.character_artist = CharacterArtistAgent()
        self.storyboard_artist = StoryboardArtistAgent()

    @property
    def phase(self) -> PipelineState:
        return self.project.phase

    async def _set_phase(self, phase: PipelineState) -> None:
        logger.info("Project %s phase %s -> %s", self.project.id, self.project.phase.value, phase.value)
        self.project.phase = phase
        self.project.touch()
        data: dict[str, Any] = {"phase": phase.value, "error": self.project.error}
        hint = PHASE_HINTS.get(phase)
        if hint:
            data["message"] = hint
        await self.ws.send_event(self.project.id, {"type": "phase_changed", "data": data})

    def _require_phase(self, allowed: frozenset[PipelineState], action: str) -> None:
        if self.project.phase not in allowed:
            raise PhaseConflict(
                f"当前阶段（{self.project.phase.value}）不允许{action}",
                details={"phase": self.project.phase.value, "action": action},
            )

    def _require_no_inflight(self, action: str) -> None:
        if self.project.phase not in SETTLED_PHASES or self.project.store.is_any_loading():
            raise PhaseConflict(
                f"仍有图片正在生成，暂时无法{action}",
                details={"phase": self.project.phase.value, "action": action},
            )

    # ------------------------------------------------------------------
    # 1. 提交剧本 -> 分析 -> 角色批量出图 -> 等待确认
    # ------------------------------------------------------------------

    async def begin_submit(
        self,
        script_text: str,
        *,
        chapter_count: int | None = None,
        style: ImageStyle | None = None,
        era: Era | None = None,
        aspect_ratio: AspectRatio | None = None,
    ) -> None:
        if not script_text or not script_text.strip():
            raise EmptyInput()
        if chapter_count is not None and chapter_count < 1:
            raise AppException("章节数必须大于 0", code="INVALID_CHAPTER_COUNT", status_code=422)
        self._require_phase(SUBMIT_PHASES, "提交剧本")
        self._require_no_inflight("提交剧本")

        project = self.project
        project.script_text = script_text
        if chapter_count is not None:
            project.chapter_count = chapter_count
        if style is not None:
            project.style = style
        if era is not None:
            project.era = era
        if aspect_ratio is not None:
            project.aspect_ratio = aspect_ratio
        project.error = None
        await self._set_phase(PipelineState.ANALYZING)

    async def run_submit(self) -> None:
        """分析剧本；成功后自动进入角色出图，全部尝试结束后停在 character_confirm"""
        try:
            await self.analyst.run(self.ctx)
        except UnauthorizedCredential as exc:
            logger.warning("Credential rejected during analysis for project %s", self.project.id)
            await self.analyst.flag_credential_required(self.ctx, exc)
            await self._fail_analysis(exc.message)
            return
        except AppException as exc:
            logger.warning("Analysis failed for project %s: %s %s", self.project.id, exc.code, exc.details)
            await self._fail_analysis(exc.message)
            return
        except Exception as exc:
            logger.exception("Unexpected analysis failure for project %s", self.project.id)
            await self._fail_analysis(f"剧本分析失败: {str(exc)[:200]}")
            return

        await self._set_phase(PipelineState.CHARACTER_GENERATING)
        await self.run_character_batch()

    async def _fail_analysis(self, message: str) -> None:
        self.project.error = message
        await self._set_phase(PipelineState.ERRORED)

    async def run_character_batch(self) -> list[RenderOutcome]:
        outcomes = await self.character_artist.run(self.ctx)
        await self._set_phase(PipelineState.CHARACTER_CONFIRM)
        return outcomes

    async def submit(self, script_text: str, **options: Any) -> None:
        await self.begin_submit(script_text, **options)
        await self.run_submit()

    # ------------------------------------------------------------------
    # 2. 用户确认角色 -> 高潮场景 -> 完成
    # ------------------------------------------------------------------

    async def begin_storyboard(self) -> None:
        self._require_phase(frozenset({PipelineState.CHARACTER_CONFIRM}), "开始绘制分镜")
        if self.project.store.characters.is_any_loading():
            raise PhaseConflict(
                "角色形象仍在生成中，请稍后再开始绘制分镜",
                details={"phase": self.project.phase.value, "action": "start_storyboard"},
            )
        await self._set_phase(PipelineState.IMAGE_GENERATING)

    async def run_storyboard(self) -> list[RenderOutcome]:
        try:
            return await self.storyboard_artist.run(self.ctx)
        finally:
            # 高潮场景无论成功失败都进入 complete，失败记录在场景上
            await self._set_phase(PipelineState.COMPLETE)

    async def start_storyboard(self) -> list[RenderOutcome]:
        await self.begin_storyboard()
        return await self.run_storyboard()

    # ------------------------------------------------------------------
    # 3. 单个实体按需生成 / 重试 / 重绘
    # ------------------------------------------------------------------

    def begin_scene(self, scene_id: str) -> None:
        self._require_phase(frozenset({PipelineState.COMPLETE}), "生成场景图片")
        scenes = self.project.store.scenes
        scene = scenes.get(scene_id)
        if scene is None:
            raise EntityNotFound(f"场景 {scene_id} 不存在", details={"scene_id": scene_id})
        if scene.is_loading:
            raise EntityBusy(details={"scene_id": scene_id})
        scenes.set_loading(scene_id)

    async def run_scene(self, scene_id: str) -> RenderOutcome | None:
        outcomes = await SingleSceneArtistAgent(scene_id).run(self.ctx)
        return outcomes[0] if outcomes else None

    async def generate_scene(self, scene_id: str) -> RenderOutcome | None:
        self.begin_scene(scene_id)
        return await self.run_scene(scene_id)

    def begin_character(self, char_id: str) -> None:
        self._require_phase(CHARACTER_REGENERATE_PHASES, "重新生成角色")
        characters = self.project.store.characters
        character = characters.get(char_id)
        if character is None:
            raise EntityNotFound(f"角色 {char_id} 不存在", details={"character_id": char_id})
        if character.is_loading:
            raise EntityBusy(details={"character_id": char_id})
        characters.set_loading(char_id)

    async def run_character(self, char_id: str) -> RenderOutcome | None:
        outcomes = await SingleCharacterArtistAgent(char_id).run(self.ctx)
        return outcomes[0] if outcomes else None

    async def regenerate_character(self, char_id: str) -> RenderOutcome | None:
        self.begin_character(char_id)
        return await self.run_character(char_id)

    # ------------------------------------------------------------------
    # 4. 其他操作
    # ------------------------------------------------------------------

    async def dismiss_error(self) -> None:
        """只清除错误提示，不改变阶段和实体"""
        if self.project.error is None:
            return
        self.project.error = None
        self.project.touch()
        await self._set_phase(self.project.phase)

    async def reset(self) -> None:
        """新建：清空实体并回到 idle，保留表单输入"""
        self._require_no_inflight("新建项目")
        self.project.store.clear()
        self.project.error = None
        await self._set_phase(PipelineState.IDLE)
        await self.ws.send_event(self.project.id, {"type": "project_reset", "data": {}})

    async def load_snapshot(self, document: str | bytes | dict[str, Any]) -> None:
        """用快照整体替换当前项目状态，直接进入 complete"""
        self._require_no_inflight("加载项目")
        # 先完整解析，解析失败时当前项目保持不变
        loaded = project_codec.deserialize(document)

        project = self.project
        project.script_text = loaded.script_text
        project.chapter_count = loaded.chapter_count
        project.style = loaded.style
        project.era = loaded.era
        project.aspect_ratio = loaded.aspect_ratio
        project.store = loaded.store
        project.error = None
        await self._set_phase(PipelineState.COMPLETE)
        await self.ws.send_event(
            project.id,
            {
                "type": "project_loaded",
                "data": {"characters": len(project.characters), "scenes": len(project.scenes)},
            },
        )
