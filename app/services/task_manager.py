"""任务管理器 - 跟踪和取消后台任务"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)


class TaskManager:
    """按项目管理后台任务

    同一项目可以同时有多个任务（例如用户分别触发的场景重绘），
    项目被删除时全部取消。
    """

    def __init__(self) -> None:
        # project_id -> tasks
        self._tasks: Dict[str, Set[asyncio.Task]] = {}

    def spawn(self, project_id: str, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task:
        """创建并注册任务，任务结束后自动移除"""
        task = asyncio.create_task(coro, name=name)
        self.register(project_id, task)
        return task

    def register(self, project_id: str, task: asyncio.Task) -> None:
        """注册一个任务"""
        self._tasks.setdefault(project_id, set()).add(task)
        task.add_done_callback(lambda t: self._on_done(project_id, t))

    def _on_done(self, project_id: str, task: asyncio.Task) -> None:
        self.remove(project_id, task)
        if task.cancelled():
            logger.info("Background task %s for project %s cancelled", task.get_name(), project_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %s for project %s failed",
                task.get_name(),
                project_id,
                exc_info=exc,
            )

    def remove(self, project_id: str, task: asyncio.Task) -> None:
        """移除任务记录"""
        tasks = self._tasks.get(project_id)
        if tasks is None:
            return
        tasks.discard(task)
        if not tasks:
            self._tasks.pop(project_id, None)

    def cancel_all(self, project_id: str) -> int:
        """取消指定项目的所有任务，返回取消的数量"""
        cancelled = 0
        for task in list(self._tasks.get(project_id, ())):
            if not task.done():
                task.cancel()
                cancelled += 1
        return cancelled

    def is_running(self, project_id: str) -> bool:
        """检查项目是否有运行中的任务"""
        return any(not t.done() for t in self._tasks.get(project_id, ()))

    async def join(self, project_id: str) -> None:
        """等待项目当前的所有任务结束（测试和关闭时使用）"""
        while True:
            pending = [t for t in self._tasks.get(project_id, ()) if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        project_ids = list(self._tasks)
        for project_id in project_ids:
            self.cancel_all(project_id)
        for project_id in project_ids:
            await self.join(project_id)


# 全局单例
task_manager = TaskManager()
