from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel


WsEventType = Literal[
    "connected",
    "pong",
    "echo",
    "error",
    "run_message",          # 进度消息
    "phase_changed",        # 流水线阶段变化
    "analysis_completed",   # 剧本分析完成，实体已创建
    "character_updated",    # 角色状态更新（加载/图片/错误）
    "scene_updated",        # 场景状态更新（加载/图片/错误）
    "credential_required",  # 凭证无效，需要用户重新设置
    "project_loaded",       # 从快照加载项目
    "project_reset",        # 项目重置为空白
]


class WsEvent(BaseModel):
    type: WsEventType
    data: dict[str, Any] = {}
