"""应用异常定义

所有异常都携带 code/message/status_code/details，由 main.py 中的全局处理器
统一转换为 {"error": {...}} 响应。

实体级错误（NoImageReturned / UpstreamRejected）只会被写入对应实体的 error 字段，
阶段级错误（MalformedResponse）使流水线进入 errored。
"""
from __future__ import annotations

from typing import Any


class AppException(Exception):
    code: str = "APP_ERROR"
    status_code: int = 500
    default_message: str = "应用错误"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class EmptyInput(AppException):
    code = "EMPTY_INPUT"
    status_code = 422
    default_message = "剧本内容为空"


class PhaseConflict(AppException):
    code = "PHASE_CONFLICT"
    status_code = 409
    default_message = "当前阶段不允许该操作"


class EntityBusy(AppException):
    code = "ENTITY_BUSY"
    status_code = 409
    default_message = "该项正在生成中"


class ProjectNotFound(AppException):
    code = "PROJECT_NOT_FOUND"
    status_code = 404
    default_message = "项目不存在"


class EntityNotFound(AppException):
    code = "ENTITY_NOT_FOUND"
    status_code = 404
    default_message = "角色或场景不存在"


class CorruptProject(AppException):
    code = "CORRUPT_PROJECT"
    status_code = 400
    default_message = "项目文件无法解析"


class GatewayError(AppException):
    """AI 服务调用失败的基类"""

    code = "GATEWAY_ERROR"
    status_code = 502
    default_message = "AI 服务调用失败"


class MalformedResponse(GatewayError):
    code = "MALFORMED_RESPONSE"
    default_message = "AI 返回的分析结果格式不正确"


class NoImageReturned(GatewayError):
    code = "NO_IMAGE_RETURNED"
    default_message = "未能从响应中找到图片数据"


class UpstreamRejected(GatewayError):
    code = "UPSTREAM_REJECTED"
    default_message = "AI 服务拒绝了请求"

    def __init__(
        self,
        message: str | None = None,
        *,
        upstream_code: str | int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.upstream_code = upstream_code
        if upstream_code is not None:
            self.details.setdefault("upstream_code", upstream_code)


class UnauthorizedCredential(UpstreamRejected):
    """凭证缺失/无效/无权使用该模型，需要用户重新选择凭证"""

    code = "UNAUTHORIZED_CREDENTIAL"
    default_message = "API 凭证无效或无权访问该模型，请重新设置凭证"
