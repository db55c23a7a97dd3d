"""Tests for the preset catalog."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from taskloop import presets as presets_module
from taskloop.presets import (
    PRESET_NAMES,
    PresetError,
    PresetErrorCode,
    get_preset_descriptions,
    get_preset_path,
    is_file_path,
    is_valid_preset,
    load_custom_prompt,
    load_preset,
    resolve_prompt,
)


class TestPresetNames:
    """Tests for the preset name enumeration."""

    def test_contains_all_five_presets(self) -> None:
        assert PRESET_NAMES == ("default", "test-coverage", "linting", "duplication", "entropy")

    @pytest.mark.parametrize("name", PRESET_NAMES)
    def test_valid_names(self, name: str) -> None:
        assert is_valid_preset(name) is True

    @pytest.mark.parametrize(
        "name",
        ["invalid", "custom", "", "Default", "DEFAULT", "Test-Coverage", "default.md", "./default"],
    )
    def test_invalid_names(self, name: str) -> None:
        """Test that near-misses are not presets."""
        assert is_valid_preset(name) is False

    @pytest.mark.parametrize("name", PRESET_NAMES)
    def test_preset_path(self, name: str) -> None:
        assert get_preset_path(name) == f"{name}.md"

    def test_descriptions_cover_every_preset(self) -> None:
        descriptions = get_preset_descriptions()

        assert [d["name"] for d in descriptions] == list(PRESET_NAMES)
        assert all(d["description"] for d in descriptions)


class TestPresetContent:
    """Tests for the structure of built-in preset templates."""

    @pytest.mark.parametrize("name", PRESET_NAMES)
    def test_required_sections(self, name: str) -> None:
        """Test that every preset carries the shared structure."""
        content = load_preset(name)

        assert content.strip()
        assert "<loop-complete>" in content
        assert re.search(r"@\.taskmaster/|@\./", content)
        assert re.search(r"^\d+\.", content, re.MULTILINE)
        assert re.search(r"## Important|## Completion", content)
        assert "## Process" in content
        assert "## Files Available" in content
        assert "progress" in content.lower()

    @pytest.mark.parametrize("name", PRESET_NAMES)
    def test_single_unit_of_work_constraint(self, name: str) -> None:
        content = load_preset(name).lower()

        assert any(
            phrase in content
            for phrase in ("one task", "one test", "one fix", "one refactor", "one cleanup", "only one")
        )

    def test_default_preset_has_both_markers(self) -> None:
        content = load_preset("default")

        assert "Task Master Loop" in content
        assert re.search(r"<loop-complete>.*</loop-complete>", content)
        assert re.search(r"<loop-blocked>.*</loop-blocked>", content)


class TestLoadPreset:
    """Tests for load_preset."""

    def test_unknown_preset(self) -> None:
        with pytest.raises(PresetError) as exc_info:
            load_preset("nope")

        assert exc_info.value.code == PresetErrorCode.PRESET_NOT_FOUND
        for name in PRESET_NAMES:
            assert name in exc_info.value.message

    def test_blank_template(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a blank built-in template is rejected."""
        monkeypatch.setitem(presets_module.PRESET_TEMPLATES, "linting", "   \n")

        with pytest.raises(PresetError) as exc_info:
            load_preset("linting")

        assert exc_info.value.code == PresetErrorCode.EMPTY_PROMPT_CONTENT


class TestLoadCustomPrompt:
    """Tests for load_custom_prompt."""

    def test_reads_file_verbatim(self, tmp_path: Path) -> None:
        """Test that no templating is applied to custom prompts."""
        content = "# Custom\n\nUse {{ tag }} and @.taskmaster/tasks/tasks.json\n"
        prompt_file = tmp_path / "custom.md"
        prompt_file.write_text(content, encoding="utf-8")

        assert load_custom_prompt(str(prompt_file)) == content

    def test_missing_file(self, tmp_path: Path) -> None:
        missing = tmp_path / "missing.md"

        with pytest.raises(PresetError) as exc_info:
            load_custom_prompt(str(missing))

        assert exc_info.value.code == PresetErrorCode.CUSTOM_PROMPT_NOT_FOUND
        assert str(missing) in str(exc_info.value)

    @pytest.mark.parametrize("content", ["", "   \n\t\n"])
    def test_blank_file(self, tmp_path: Path, content: str) -> None:
        prompt_file = tmp_path / "blank.md"
        prompt_file.write_text(content)

        with pytest.raises(PresetError) as exc_info:
            load_custom_prompt(prompt_file)

        assert exc_info.value.code == PresetErrorCode.EMPTY_PROMPT_CONTENT


class TestResolvePrompt:
    """Tests for resolve_prompt."""

    @pytest.mark.parametrize("name", PRESET_NAMES)
    def test_resolves_presets(self, name: str) -> None:
        assert resolve_prompt(name) == load_preset(name)

    def test_resolves_file_path(self, tmp_path: Path) -> None:
        prompt_file = tmp_path / "mine.txt"
        prompt_file.write_text("Do the thing.\n")

        assert resolve_prompt(str(prompt_file)) == "Do the thing.\n"

    def test_preset_preferred_over_file_with_same_name(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that an exact preset name never reads a file."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "default").write_text("file content")

        assert resolve_prompt("default") == load_preset("default")

    def test_near_miss_is_treated_as_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a differently-cased preset name is read as a file."""
        monkeypatch.chdir(tmp_path)

        with pytest.raises(PresetError) as exc_info:
            resolve_prompt("Default")

        assert exc_info.value.code == PresetErrorCode.CUSTOM_PROMPT_NOT_FOUND

    def test_relative_path_resolves_against_cwd(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "prompts").mkdir()
        (tmp_path / "prompts" / "p.md").write_text("relative prompt")

        assert resolve_prompt("prompts/p.md") == "relative prompt"


class TestIsFilePath:
    """Tests for the is_file_path heuristic."""

    @pytest.mark.parametrize(
        "value",
        [
            "/path/to/file.md",
            "./relative/path.txt",
            "../parent/file.md",
            "folder/prompt",
            "C:\\path\\file.md",
            ".\\relative\\path.txt",
            "prompt.md",
            "PROMPT.MD",
            "prompt.Markdown",
            "/path/with spaces/file.md",
        ],
    )
    def test_paths(self, value: str) -> None:
        assert is_file_path(value) is True

    @pytest.mark.parametrize("value", ["default", "simple-name", "prompt", "", "file.js", "file.json"])
    def test_non_paths(self, value: str) -> None:
        assert is_file_path(value) is False
