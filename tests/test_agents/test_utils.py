from __future__ import annotations

import pytest

from app.agents.utils import _close_open_structures, _repair_common_errors, _strip_code_fence, extract_json


class TestExtractJson:
    def test_valid_json(self):
        text = '{"headline": {"line1": "a", "line2": "b"}, "chapters": []}'
        result = extract_json(text)
        assert result == {"headline": {"line1": "a", "line2": "b"}, "chapters": []}

    def test_json_with_markdown_fence(self):
        text = '```json\n{"styleGuide": "grey", "characters": []}\n```'
        assert extract_json(text) == {"styleGuide": "grey", "characters": []}

    def test_json_with_surrounding_text(self):
        text = 'Here is the analysis:\n{"styleGuide": "grey"}\nDone.'
        assert extract_json(text) == {"styleGuide": "grey"}

    def test_json_with_unicode(self):
        text = '{"title": "그날 밤", "summary": "진실"}'
        assert extract_json(text) == {"title": "그날 밤", "summary": "진실"}

    def test_truncated_fence(self):
        text = '```json\n{"chapters": [1, 2'
        assert extract_json(text) == {"chapters": [1, 2]}

    def test_trailing_comma(self):
        assert extract_json('{"a": 1, "b": [1, 2,],}') == {"a": 1, "b": [1, 2]}

    def test_missing_comma_between_lines(self):
        assert extract_json('{"a": 1\n"b": "x"\n}') == {"a": 1, "b": "x"}

    def test_no_json_raises(self):
        with pytest.raises(ValueError, match="未找到 JSON"):
            extract_json("This is just plain text without any JSON")

    def test_array_raises(self):
        with pytest.raises(ValueError, match="未找到 JSON 对象"):
            extract_json("[1, 2, 3]")

    def test_hopeless_text_raises(self):
        with pytest.raises(ValueError, match="无法解析"):
            extract_json('{"a": :: }')


class TestStripCodeFence:
    def test_plain_text_unchanged(self):
        assert _strip_code_fence('{"a": 1}') == '{"a": 1}'

    def test_fence_without_language(self):
        assert _strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_unterminated_fence(self):
        assert _strip_code_fence('```json\n{"a": 1') == '{"a": 1'


class TestRepairCommonErrors:
    def test_strips_comments(self):
        text = '{\n// note\n"a": 1 /* inline */\n}'
        assert '"a": 1' in _repair_common_errors(text)
        assert "note" not in _repair_common_errors(text)
        assert "inline" not in _repair_common_errors(text)

    def test_removes_trailing_commas(self):
        assert _repair_common_errors('{"a": [1,], }') == '{"a": [1]}'


class TestCloseOpenStructures:
    def test_missing_closing_brace(self):
        assert _close_open_structures('{"name": "A"') == '{"name": "A"}'

    def test_missing_multiple_braces(self):
        assert _close_open_structures('{"outer": {"inner": "value"') == '{"outer": {"inner": "value"}}'

    def test_missing_bracket(self):
        assert _close_open_structures('{"items": [1, 2, 3') == '{"items": [1, 2, 3]}'

    def test_truncated_string(self):
        assert _close_open_structures('{"summary": "hello wor') == '{"summary": "hello wor"}'

    def test_complete_json_unchanged(self):
        assert _close_open_structures('{"complete": true}') == '{"complete": true}'

    def test_escaped_quotes(self):
        text = '{"text": "say \\"hello\\""}'
        assert _close_open_structures(text) == text

    def test_brackets_inside_strings_ignored(self):
        assert _close_open_structures('{"a": "{[') == '{"a": "{["}'
