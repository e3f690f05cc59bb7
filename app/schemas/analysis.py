"""剧本分析结果的响应结构

既用于校验模型返回的 JSON，也用于生成强制工具调用的 input_schema。
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Strict(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AnalysisHeadline(_Strict):
    line1: str = Field(description="Concise, impactful first headline line (narrative language).")
    line2: str = Field(description="Concise, impactful second headline line (narrative language).")


class AnalysisCharacter(_Strict):
    name: str = Field(description="Character name (narrative language).")
    description: str = Field(description="Character traits (narrative language).")
    imagePrompt: str = Field(description="Detailed ENGLISH prompt for a solo portrait of this character.")


class AnalysisScene(_Strict):
    title: str = Field(description="Scene title (narrative language).")
    summary: str = Field(description="Scene summary (narrative language).")
    scriptSegment: str = Field(description="Excerpt of the script for this scene (narrative language).")
    imagePrompt: str = Field(description="ENGLISH visual prompt for this scene.")


class Analysis(_Strict):
    headline: AnalysisHeadline
    visualStyleGuide: str = Field(description="Guide for keeping characters consistent (narrative language).")
    characters: list[AnalysisCharacter]
    climax: AnalysisScene
    chapters: list[AnalysisScene]


def analysis_input_schema() -> dict[str, Any]:
    """工具调用使用的 JSON Schema（内联 $defs，部分代理不支持 $ref）"""
    schema = Analysis.model_json_schema()
    defs = schema.pop("$defs", {})

    def _inline(node: Any) -> Any:
        if isinstance(node, dict):
            ref = node.get("$ref")
            if isinstance(ref, str) and ref.startswith("#/$defs/"):
                return _inline(defs[ref.split("/")[-1]])
            return {k: _inline(v) for k, v in node.items()}
        if isinstance(node, list):
            return [_inline(v) for v in node]
        return node

    return _inline(schema)
