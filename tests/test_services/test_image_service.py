from __future__ import annotations

import json

import httpx
import pytest

from app.config import Settings
from app.services.image import ImageService


def _service(handler, **settings_kwargs) -> ImageService:
    settings = Settings(image_base_url="http://image.test/v1", image_model="img-model", **settings_kwargs)
    return ImageService(settings, api_key="secret", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_generate_image_returns_data_uri():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [{"b64_json": "aGVsbG8="}]})

    image = await _service(handler).generate_image(prompt="a cat", aspect_ratio="9:16")

    assert image == "data:image/png;base64,aGVsbG8="
    request = seen[0]
    assert str(request.url) == "http://image.test/v1/images/generations"
    assert request.headers["Authorization"] == "Bearer secret"
    body = json.loads(request.content)
    assert body == {"model": "img-model", "prompt": "a cat", "size": "1024x1536", "n": 1}


@pytest.mark.asyncio
async def test_generate_image_falls_back_to_url():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"url": "http://cdn.test/1.png"}]})

    assert await _service(handler).generate_image(prompt="x", aspect_ratio="16:9") == "http://cdn.test/1.png"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"data": []}, {"data": [{"revised_prompt": "x"}]}, {"data": "oops"}])
async def test_generate_image_without_payload_returns_none(payload):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload)

    assert await _service(handler).generate_image(prompt="x", aspect_ratio="16:9") is None


@pytest.mark.asyncio
async def test_http_error_is_raised_without_retry():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503, json={"error": {"message": "busy"}})

    with pytest.raises(httpx.HTTPStatusError):
        await _service(handler).generate_image(prompt="x", aspect_ratio="16:9")
    assert calls == 1


@pytest.mark.asyncio
async def test_retries_when_configured(monkeypatch):
    calls = 0

    async def no_sleep(_):
        return None

    monkeypatch.setattr("app.services.image.asyncio.sleep", no_sleep)

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"data": [{"b64_json": "eA=="}]})

    image = await _service(handler, image_max_retries=2).generate_image(prompt="x", aspect_ratio="16:9")
    assert image == "data:image/png;base64,eA=="
    assert calls == 2


def test_build_payload_response_format():
    service = _service(lambda r: httpx.Response(200), image_response_format="b64_json")
    payload = service.build_payload(prompt="x", aspect_ratio="unknown")
    assert payload["response_format"] == "b64_json"
    assert payload["size"] == "1536x1024"
