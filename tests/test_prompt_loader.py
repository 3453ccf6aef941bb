"""Tests for livepage.prompts — Prompt template loading and rendering."""

import pytest

from livepage.prompts import optimize_prompt, render_prompt, system_prompt


class TestRenderPrompt:
    def test_system_prompt_asks_for_single_file(self):
        result = system_prompt()
        assert "SINGLE HTML FILE" in result
        assert "<!DOCTYPE html>" in result

    def test_language_block_omitted_without_language(self):
        assert "visible page text" not in system_prompt()
        assert "rewritten prompt in" not in optimize_prompt()

    def test_chinese_language_block(self):
        assert "Write all visible page text in Simplified Chinese." in system_prompt("zh")

    def test_other_language_code(self):
        assert 'language with code "fr"' in system_prompt("fr")

    def test_optimize_prompt(self):
        assert "Do not write any code" in optimize_prompt()

    def test_optimize_language_names_its_subject(self):
        result = optimize_prompt("de")
        assert 'Write the rewritten prompt in the language with code "de".' in result
        assert "visible page text" not in result

    def test_no_template_syntax_left(self):
        for result in (system_prompt("zh"), optimize_prompt("fr")):
            assert "{%" not in result
            assert "{{" not in result

    def test_result_is_stripped(self):
        result = optimize_prompt("de")
        assert result == result.strip()

    def test_render_by_name(self):
        assert render_prompt("system", language="zh") == system_prompt("zh")

    def test_missing_template_raises(self):
        with pytest.raises(FileNotFoundError, match="not found"):
            render_prompt("nonexistent")
