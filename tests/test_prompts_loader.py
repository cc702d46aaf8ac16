"""Tests for the prompt template loader."""

from __future__ import annotations

import pytest

from regtruth.prompts.loader import load_prompt, render_prompt


class TestLoadPrompt:
    def test_loads_extraction_template(self) -> None:
        template = load_prompt("extraction_v1")
        assert "{{DOCUMENT}}" in template
        assert "{{CONCEPTS}}" in template

    def test_missing_template_lists_available(self) -> None:
        with pytest.raises(FileNotFoundError, match="extraction_v1"):
            load_prompt("does_not_exist")


class TestRenderPrompt:
    def test_fills_placeholders(self) -> None:
        rendered = render_prompt("extraction_v1", CONCEPTS="- pdv-prag: prag", DOCUMENT="Članak 1.")
        assert "- pdv-prag: prag" in rendered
        assert "Članak 1." in rendered
        assert "{{" not in rendered

    def test_unfilled_placeholder_raises(self) -> None:
        with pytest.raises(ValueError, match="DOCUMENT"):
            render_prompt("extraction_v1", CONCEPTS="- pdv-prag")
