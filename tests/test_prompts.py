from pathlib import Path

import pytest

from agent.exceptions import PromptTemplateError
from prompts.template_engine import SYSTEM_TEMPLATE, PromptTemplateEngine


def _profile(tmp_path: Path, files: dict[str, str]) -> Path:
    profile_dir = tmp_path / "custom"
    profile_dir.mkdir()
    for name, text in files.items():
        (profile_dir / name).write_text(text, encoding="utf-8")
    return tmp_path


def test_variables_and_nested_includes(tmp_path: Path):
    root = _profile(tmp_path, {
        "main.md": "Now: {{current_time}}\n{{include:tables.md}}",
        "tables.md": "Tables:\n{{include:auth.md}}",
        "auth.md": "- Auth ({{region}})",
    })
    engine = PromptTemplateEngine(str(root), profile="custom")

    text = engine.render("main.md", {"current_time": "2024-01-01", "region": "ap-southeast-1"})

    assert text == "Now: 2024-01-01\nTables:\n- Auth (ap-southeast-1)"


def test_unknown_variables_are_left_in_place():
    assert PromptTemplateEngine.render_string("{{a}} {{b}}", {"a": 1}) == "1 {{b}}"


def test_missing_include_raises(tmp_path: Path):
    root = _profile(tmp_path, {"main.md": "{{include:nope.md}}"})
    with pytest.raises(PromptTemplateError, match="nope.md"):
        PromptTemplateEngine(str(root), profile="custom").render("main.md", {})


def test_circular_include_raises(tmp_path: Path):
    root = _profile(tmp_path, {"loop.md": "{{include:loop.md}}"})
    with pytest.raises(PromptTemplateError, match="Include depth"):
        PromptTemplateEngine(str(root), profile="custom").render("loop.md", {})


def test_unknown_profile_raises(tmp_path: Path):
    with pytest.raises(PromptTemplateError):
        PromptTemplateEngine(str(tmp_path), profile="missing")


def test_default_profile_describes_both_tables():
    text = PromptTemplateEngine().render(SYSTEM_TEMPLATE, {
        "current_time": "2024-01-01 00:00:00 UTC",
        "tool_descriptions": "### get_item",
    })
    assert "Auth" in text and "Shield" in text
    assert "{{" not in text
