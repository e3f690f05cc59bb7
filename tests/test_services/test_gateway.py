from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest

from app.agents.prompts.image import ERA_CONTEXT, PORTRAIT_HINT, STYLE_PROMPTS, build_image_prompt
from app.config import Settings
from app.exceptions import MalformedResponse, NoImageReturned, UnauthorizedCredential, UpstreamRejected
from app.services.credentials import CredentialResolver
from app.services.gateway import (
    ANALYSIS_TOOL_NAME,
    AIGateway,
    is_unauthorized_error,
    translate_upstream_error,
)
from app.services.llm import LLMResponse, ToolCall
from tests.agent_fixtures import make_analysis


class StubLLM:
    def __init__(self, response: LLMResponse | None = None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: list[dict] = []

    async def generate(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _analysis_payload(chapters: int = 3) -> dict:
    return make_analysis(chapters=chapters).model_dump()


def _gateway(test_settings: Settings, llm: StubLLM | None = None, handler=None) -> AIGateway:
    transport = httpx.MockTransport(handler) if handler is not None else None
    gateway = AIGateway(test_settings, CredentialResolver(test_settings), image_transport=transport)
    if llm is not None:
        gateway._llm = lambda api_key: llm  # type: ignore[method-assign]
    return gateway


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_tool_call_payload(self, test_settings):
        llm = StubLLM(
            LLMResponse(
                text="",
                tool_calls=[ToolCall(id="1", name=ANALYSIS_TOOL_NAME, input=_analysis_payload())],
                raw=None,
            )
        )
        gateway = _gateway(test_settings, llm)

        analysis = await gateway.analyze("A: 대사", 3, "cinematic", "joseon")

        assert len(analysis.chapters) == 3
        call = llm.calls[0]
        assert call["tool_choice"] == {"type": "tool", "name": ANALYSIS_TOOL_NAME}
        assert call["tools"][0]["name"] == ANALYSIS_TOOL_NAME
        parts = call["messages"][0]["content"]
        assert "exactly 3" in parts[0]["text"]
        assert "JOSEON" in parts[0]["text"]
        assert "Korean" in parts[0]["text"]
        assert parts[1]["text"] == "A: 대사"

    @pytest.mark.asyncio
    async def test_text_fallback_with_fence(self, test_settings):
        text = "```json\n" + json.dumps(_analysis_payload(), ensure_ascii=False) + "\n```"
        gateway = _gateway(test_settings, StubLLM(LLMResponse(text=text, tool_calls=[], raw=None)))

        analysis = await gateway.analyze("A", 3, "cinematic", "modern")

        assert analysis.climax.title == "클라이맥스"

    @pytest.mark.asyncio
    async def test_empty_response_is_malformed(self, test_settings):
        gateway = _gateway(test_settings, StubLLM(LLMResponse(text="  ", tool_calls=[], raw=None)))
        with pytest.raises(MalformedResponse):
            await gateway.analyze("A", 3, "cinematic", "modern")

    @pytest.mark.asyncio
    async def test_schema_violation_is_malformed(self, test_settings):
        payload = _analysis_payload()
        del payload["climax"]
        llm = StubLLM(
            LLMResponse(text="", tool_calls=[ToolCall(id="1", name=ANALYSIS_TOOL_NAME, input=payload)], raw=None)
        )
        with pytest.raises(MalformedResponse):
            await _gateway(test_settings, llm).analyze("A", 3, "cinematic", "modern")

    @pytest.mark.asyncio
    async def test_unparseable_text_is_malformed(self, test_settings):
        gateway = _gateway(test_settings, StubLLM(LLMResponse(text="sorry, no", tool_calls=[], raw=None)))
        with pytest.raises(MalformedResponse):
            await gateway.analyze("A", 3, "cinematic", "modern")

    @pytest.mark.asyncio
    async def test_wrong_chapter_count_is_malformed(self, test_settings):
        llm = StubLLM(
            LLMResponse(
                text="",
                tool_calls=[ToolCall(id="1", name=ANALYSIS_TOOL_NAME, input=_analysis_payload(chapters=2))],
                raw=None,
            )
        )
        with pytest.raises(MalformedResponse) as exc_info:
            await _gateway(test_settings, llm).analyze("A", 3, "cinematic", "modern")
        assert exc_info.value.details == {"expected": 3, "actual": 2}

    @pytest.mark.asyncio
    async def test_upstream_error_translated(self, test_settings):
        err = RuntimeError("overloaded")
        with pytest.raises(UpstreamRejected) as exc_info:
            await _gateway(test_settings, StubLLM(error=err)).analyze("A", 3, "cinematic", "modern")
        assert not isinstance(exc_info.value, UnauthorizedCredential)

    @pytest.mark.asyncio
    async def test_missing_credential(self, tmp_path):
        settings = Settings(api_key=None, credentials_path=tmp_path / "none.json")
        gateway = _gateway(settings, StubLLM())
        with pytest.raises(UnauthorizedCredential):
            await gateway.analyze("A", 3, "cinematic", "modern")

    @pytest.mark.asyncio
    async def test_invalid_chapter_count(self, test_settings):
        with pytest.raises(ValueError):
            await _gateway(test_settings, StubLLM()).analyze("A", 0, "cinematic", "modern")


class TestRenderImage:
    @pytest.mark.asyncio
    async def test_render_composes_prompt_and_size(self, test_settings):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"data": [{"b64_json": "eA=="}]})

        gateway = _gateway(test_settings, handler=handler)
        image = await gateway.render_image("a detective", "webtoon_thriller", "grey coat", "modern", "9:16", True)

        assert image == "data:image/png;base64,eA=="
        prompt = seen[0]["prompt"]
        assert prompt.startswith("a detective")
        assert "ONE SINGLE PERSON" in prompt
        assert "Dark manhwa style" in prompt
        assert "grey coat" in prompt
        assert "modern day" in prompt
        assert seen[0]["size"] == "1024x1536"

    @pytest.mark.asyncio
    async def test_no_image_returned(self, test_settings):
        gateway = _gateway(test_settings, handler=lambda r: httpx.Response(200, json={"data": []}))
        with pytest.raises(NoImageReturned):
            await gateway.render_image("x", "cinematic", "", "modern", "16:9", False)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403, 404])
    async def test_unauthorized_statuses(self, test_settings, status):
        gateway = _gateway(test_settings, handler=lambda r: httpx.Response(status, json={}))
        with pytest.raises(UnauthorizedCredential) as exc_info:
            await gateway.render_image("x", "cinematic", "", "modern", "16:9", False)
        assert exc_info.value.upstream_code == status

    @pytest.mark.asyncio
    async def test_other_status_is_upstream_rejected(self, test_settings):
        gateway = _gateway(test_settings, handler=lambda r: httpx.Response(500, json={}))
        with pytest.raises(UpstreamRejected) as exc_info:
            await gateway.render_image("x", "cinematic", "", "modern", "16:9", False)
        assert not isinstance(exc_info.value, UnauthorizedCredential)
        assert exc_info.value.details["upstream_code"] == 500


class TestPromptComposition:
    def test_portrait_clause_only_for_portraits(self):
        portrait = build_image_prompt("p", style="cinematic", style_guide="", era="modern", is_portrait=True)
        scene = build_image_prompt("p", style="cinematic", style_guide="", era="modern", is_portrait=False)
        assert PORTRAIT_HINT.rstrip(".") in portrait
        assert PORTRAIT_HINT.rstrip(".") not in scene

    @pytest.mark.parametrize("style", list(STYLE_PROMPTS))
    def test_each_style_has_distinct_clause(self, style):
        prompt = build_image_prompt("p", style=style, style_guide="", era="modern", is_portrait=False)
        assert STYLE_PROMPTS[style].rstrip(".") in prompt
        others = [v for k, v in STYLE_PROMPTS.items() if k != style]
        assert all(other.rstrip(".") not in prompt for other in others)

    @pytest.mark.parametrize("era", list(ERA_CONTEXT))
    def test_era_clause(self, era):
        prompt = build_image_prompt("p", style="cinematic", style_guide="", era=era, is_portrait=False)
        assert ERA_CONTEXT[era] in prompt

    def test_unknown_style_falls_back_to_cinematic(self):
        prompt = build_image_prompt("p", style="??", style_guide="", era="??", is_portrait=False)
        assert STYLE_PROMPTS["cinematic"].rstrip(".") in prompt
        assert ERA_CONTEXT["modern"] in prompt


class TestErrorClassification:
    def test_entity_not_found_message(self):
        assert is_unauthorized_error(RuntimeError("Requested entity was not found."))

    def test_status_code_attribute(self):
        exc = RuntimeError("nope")
        exc.status_code = 403  # type: ignore[attr-defined]
        assert is_unauthorized_error(exc)

    def test_response_status_code(self):
        exc = RuntimeError("x")
        exc.response = SimpleNamespace(status_code=404)  # type: ignore[attr-defined]
        assert isinstance(translate_upstream_error(exc), UnauthorizedCredential)

    def test_generic_error(self):
        translated = translate_upstream_error(RuntimeError("timeout"))
        assert type(translated) is UpstreamRejected
        assert translated.upstream_code == "RuntimeError"
