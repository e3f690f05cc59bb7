from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from app.config import Settings

logger = logging.getLogger(__name__)

# OpenAI 兼容接口的尺寸参数
ASPECT_RATIO_SIZES: dict[str, str] = {
    "16:9": "1536x1024",
    "9:16": "1024x1536",
}


class ImageService:
    """图像生成服务（OpenAI 兼容 /images/generations 接口）

    成功时返回 data URI（b64_json）或远程 URL；响应中没有图片时返回 None，
    由调用方决定如何处理。HTTP 错误原样抛出（httpx.HTTPStatusError 等）。
    """

    def __init__(
        self,
        settings: Settings,
        *,
        api_key: str | None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.api_key = api_key
        self.max_retries = settings.image_max_retries if max_retries is None else max_retries
        self._transport = transport

    def _is_retryable_status(self, status_code: int) -> bool:
        return status_code in {408, 429, 500, 502, 503, 504}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.request_timeout_s, transport=self._transport)

    async def _post_json_with_retry(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        delay_s = 0.5
        last_exc: Exception | None = None

        async with self._client() as client:
            for attempt in range(self.max_retries + 1):
                try:
                    res = await client.post(
                        url, headers=self.settings.image_headers(self.api_key), json=payload
                    )
                    if self._is_retryable_status(res.status_code) and attempt < self.max_retries:
                        await asyncio.sleep(delay_s)
                        delay_s = min(delay_s * 2, 8.0)
                        continue
                    res.raise_for_status()
                    return res.json()
                except (httpx.TimeoutException, httpx.NetworkError, httpx.HTTPStatusError) as exc:
                    last_exc = exc
                    if attempt >= self.max_retries:
                        break
                    status = getattr(getattr(exc, "response", None), "status_code", None)
                    if isinstance(status, int) and not self._is_retryable_status(status):
                        break
                    await asyncio.sleep(delay_s)
                    delay_s = min(delay_s * 2, 8.0)

        assert last_exc is not None
        raise last_exc

    def build_payload(self, *, prompt: str, aspect_ratio: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.settings.image_model,
            "prompt": prompt,
            "size": ASPECT_RATIO_SIZES.get(aspect_ratio, ASPECT_RATIO_SIZES["16:9"]),
            "n": 1,
        }
        if self.settings.image_response_format:
            payload["response_format"] = self.settings.image_response_format
        return payload

    @staticmethod
    def extract_image(data: dict[str, Any]) -> str | None:
        """从响应中取出第一张图片：b64_json 优先，其次 url"""
        items = data.get("data") or []
        if not isinstance(items, list):
            return None
        for item in items:
            if not isinstance(item, dict):
                continue
            b64 = item.get("b64_json")
            if isinstance(b64, str) and b64:
                return f"data:image/png;base64,{b64}"
            url = item.get("url")
            if isinstance(url, str) and url:
                return url
        return None

    async def generate_image(self, *, prompt: str, aspect_ratio: str) -> str | None:
        payload = self.build_payload(prompt=prompt, aspect_ratio=aspect_ratio)
        logger.debug("Requesting image: model=%s size=%s", payload["model"], payload["size"])
        data = await self._post_json_with_retry(self.settings.image_url(), payload)
        return self.extract_image(data)
