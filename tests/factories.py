from __future__ import annotations

from app.agents.script_analyst import build_characters, build_scenes
from app.models.entities import Headline, PipelineState
from app.models.project import Project
from app.schemas.analysis import Analysis
from app.services.project_service import ProjectService
from tests.agent_fixtures import make_analysis


def create_project(
    projects: ProjectService | None = None,
    *,
    script_text: str = "A: 안녕\nB: 안녕",
    phase: PipelineState = PipelineState.IDLE,
    analysis: Analysis | None = None,
    chapter_count: int = 3,
    characters_loading: bool = False,
) -> Project:
    """创建项目；给出 analysis 或 phase 不是 idle 时，直接填充分析结果"""
    project = Project(script_text=script_text, chapter_count=chapter_count, phase=phase)
    if analysis is None and phase not in (PipelineState.IDLE, PipelineState.ERRORED):
        analysis = make_analysis(chapters=chapter_count)
    if analysis is not None:
        characters = build_characters(analysis)
        if not characters_loading:
            characters = [c.model_copy(update={"is_loading": False}) for c in characters]
        project.store.replace_all(
            characters=characters,
            scenes=build_scenes(analysis),
            headline=Headline(line1=analysis.headline.line1, line2=analysis.headline.line2),
            style_guide=analysis.visualStyleGuide,
        )
    if projects is not None:
        projects.create(project)
    return project
