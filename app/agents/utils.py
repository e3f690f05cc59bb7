"""Agent 工具函数。"""
from __future__ import annotations

import json
import re
from collections.abc import Callable

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```\s*$", re.DOTALL)


def extract_json(text: str) -> dict:
    """从模型文本响应中提取 JSON 对象（兼容代码块、前后说明文字、被截断的结尾）。"""
    text = _strip_code_fence(text.strip())

    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    if start == -1:
        raise ValueError("响应中未找到 JSON 对象")

    end = text.rfind("}")
    candidate = text[start:] if end <= start else text[start : end + 1]

    repairs: list[Callable[[str], str]] = [
        lambda s: s,
        _repair_common_errors,
        _close_open_structures,
        lambda s: _close_open_structures(_repair_common_errors(s)),
    ]
    for repair in repairs:
        try:
            data = json.loads(repair(candidate))
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(data, dict):
            return data

    raise ValueError(f"无法解析响应中的 JSON: {candidate[:200]}...")


def _strip_code_fence(text: str) -> str:
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    if text.startswith("```"):
        # 只有开头的 ``` 没有结尾（输出被截断）
        return text.split("\n", 1)[1].strip() if "\n" in text else ""
    return text


def _repair_common_errors(text: str) -> str:
    """去掉注释和尾随逗号，补上换行处遗漏的逗号。"""
    text = re.sub(r"/\*.*?\*/", "", text, flags=re.DOTALL)
    text = re.sub(r"(?m)^\s*//[^\n]*$", "", text)
    text = re.sub(r",\s*([\]}])", r"\1", text)
    # "a"\n"b"  }\n{  ]\n[  }\n"  ]\n"  1\n"  true\n"
    text = re.sub(r'(["}\]\d]|true|false|null)\s*\n\s*(["{\[])', r"\1,\n\2", text)
    return text


def _close_open_structures(text: str) -> str:
    """补全被截断的字符串和括号。"""
    stack: list[str] = []
    in_string = False
    escaped = False

    for char in text:
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]" and stack:
            stack.pop()

    if in_string:
        text += '"'
    return text + "".join(reversed(stack))
