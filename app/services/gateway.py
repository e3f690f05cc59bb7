"""AI Gateway：剧本分析 + 图像生成的契约封装

- analyze: 强制工具调用返回结构化结果，失败时回退到从文本中提取 JSON，
  最后用 Analysis 模型校验；任何一步失败都抛出 MalformedResponse。
- render_image: 拼接最终 prompt，请求指定画幅的图片；
  无图片 -> NoImageReturned，凭证问题 -> UnauthorizedCredential，其他 -> UpstreamRejected。

不做缓存，每次调用都会重新请求远程服务。
"""
from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from app.agents.prompts.analysis import SYSTEM_PROMPT, build_analysis_prompt
from app.agents.prompts.image import build_image_prompt
from app.agents.utils import extract_json
from app.config import Settings
from app.exceptions import (
    MalformedResponse,
    NoImageReturned,
    UnauthorizedCredential,
    UpstreamRejected,
)
from app.schemas.analysis import Analysis, analysis_input_schema
from app.services.credentials import CredentialResolver
from app.services.image import ImageService
from app.services.llm import LLMResponse, LLMService

logger = logging.getLogger(__name__)

ANALYSIS_TOOL_NAME = "submit_analysis"

# 凭证无效/无权访问该模型时远程服务返回的状态码
UNAUTHORIZED_STATUS_CODES = frozenset({401, 403, 404})
ENTITY_NOT_FOUND_MARKERS = (
    "requested entity was not found",
    "entity was not found",
    "not_found_error",
    "model_not_found",
)


def _status_code_of(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def is_unauthorized_error(exc: BaseException) -> bool:
    """判断远程错误是否属于“凭证无权使用该模型/凭证无效”一类"""
    status = _status_code_of(exc)
    if status in UNAUTHORIZED_STATUS_CODES:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in ENTITY_NOT_FOUND_MARKERS)


def translate_upstream_error(exc: Exception) -> UpstreamRejected:
    status = _status_code_of(exc)
    upstream_code: str | int | None = status if status is not None else type(exc).__name__
    message = str(exc) or type(exc).__name__
    if is_unauthorized_error(exc):
        return UnauthorizedCredential(upstream_code=upstream_code, details={"reason": message[:300]})
    return UpstreamRejected(f"AI 服务错误: {message[:200]}", upstream_code=upstream_code)


class AIGateway:
    def __init__(
        self,
        settings: Settings,
        credentials: CredentialResolver,
        *,
        image_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.credentials = credentials
        self._image_transport = image_transport

    def _api_key(self) -> str:
        credential = self.credentials.resolve()
        if credential is None:
            raise UnauthorizedCredential("尚未设置 API 凭证", upstream_code="missing_credential")
        return credential.value

    def _llm(self, api_key: str) -> LLMService:
        return LLMService(self.settings, api_key=api_key)

    def _image(self, api_key: str) -> ImageService:
        return ImageService(self.settings, api_key=api_key, transport=self._image_transport)

    async def analyze(self, script_text: str, chapter_count: int, style: str, era: str) -> Analysis:
        if chapter_count < 1:
            raise ValueError("chapter_count must be >= 1")

        llm = self._llm(self._api_key())
        instructions = build_analysis_prompt(
            chapter_count=chapter_count,
            era=era,
            language=self.settings.narrative_language,
        )
        messages: list[dict[str, Any]] = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": instructions},
                    {"type": "text", "text": script_text},
                ],
            }
        ]
        tool = {
            "name": ANALYSIS_TOOL_NAME,
            "description": "Submit the complete storyboard analysis of the script.",
            "input_schema": analysis_input_schema(),
        }

        logger.info(
            "Analyzing script: chars=%d chapters=%d style=%s era=%s",
            len(script_text),
            chapter_count,
            style,
            era,
        )
        try:
            resp = await llm.generate(
                messages=messages,
                system=SYSTEM_PROMPT,
                tools=[tool],
                tool_choice={"type": "tool", "name": ANALYSIS_TOOL_NAME},
                max_tokens=self.settings.analysis_max_tokens,
            )
        except Exception as exc:
            raise translate_upstream_error(exc) from exc

        analysis = self.parse_analysis(resp)
        if len(analysis.chapters) != chapter_count:
            raise MalformedResponse(
                f"AI 返回了 {len(analysis.chapters)} 个章节，期望 {chapter_count} 个",
                details={"expected": chapter_count, "actual": len(analysis.chapters)},
            )
        return analysis

    @staticmethod
    def parse_analysis(resp: LLMResponse) -> Analysis:
        payload: dict[str, Any] | None = None
        for call in resp.tool_calls:
            if call.name == ANALYSIS_TOOL_NAME:
                payload = call.input
                break

        if payload is None:
            if not resp.text.strip():
                raise MalformedResponse("AI 未返回任何分析结果")
            try:
                payload = extract_json(resp.text)
            except ValueError as exc:
                raise MalformedResponse(details={"reason": str(exc)}) from exc

        try:
            return Analysis.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponse(
                details={"errors": exc.errors(include_url=False, include_input=False)}
            ) from exc

    async def render_image(
        self,
        prompt: str,
        style: str,
        style_guide: str,
        era: str,
        aspect_ratio: str,
        is_portrait: bool,
    ) -> str:
        image = self._image(self._api_key())
        final_prompt = build_image_prompt(
            prompt,
            style=style,
            style_guide=style_guide,
            era=era,
            is_portrait=is_portrait,
        )
        try:
            result = await image.generate_image(prompt=final_prompt, aspect_ratio=aspect_ratio)
        except Exception as exc:
            raise translate_upstream_error(exc) from exc

        if not result:
            raise NoImageReturned()
        return result
