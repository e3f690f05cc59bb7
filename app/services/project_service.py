from __future__ import annotations

import logging

from app.exceptions import ProjectNotFound
from app.models.project import Project, utcnow

logger = logging.getLogger(__name__)


class ProjectService:
    """进程内的项目注册表（不做持久化，保存/恢复只通过快照导出导入）"""

    def __init__(self) -> None:
        self._projects: dict[str, Project] = {}

    def create(self, project: Project | None = None) -> Project:
        project = project or Project()
        project.created_at = utcnow()
        project.updated_at = utcnow()
        self._projects[project.id] = project
        logger.info("Project %s created (phase=%s)", project.id, project.phase.value)
        return project

    def get(self, project_id: str) -> Project | None:
        return self._projects.get(project_id)

    def require(self, project_id: str) -> Project:
        project = self.get(project_id)
        if project is None:
            raise ProjectNotFound(details={"project_id": project_id})
        return project

    def list(self) -> list[Project]:
        return sorted(self._projects.values(), key=lambda p: p.created_at, reverse=True)

    def delete(self, project_id: str) -> bool:
        return self._projects.pop(project_id, None) is not None

    def clear_credential_flags(self) -> None:
        for project in self._projects.values():
            project.credential_required = False


project_service = ProjectService()
