"""Tests for docqa.config — settings sources, precedence, caching, discovery."""

from __future__ import annotations

import pytest

from docqa.config import (
    DocQASettings,
    find_config_file,
    find_project_root,
    get_settings,
    load_toml_config,
)
from docqa.errors import ConfigError


class TestDefaults:
    def test_defaults(self):
        s = DocQASettings()
        assert s.extensions == [".md", ".markdown"]
        assert s.max_heading_skip == 1
        assert s.example_timeout == 30.0
        assert s.example_max_lines == 8
        assert s.example_commands["dub"] == ["dub", "run", "--single", "{file}"]
        assert s.hyperlinks == "auto"

    def test_extensions_normalized(self):
        assert DocQASettings(extensions=["MD", ".Rst"]).extensions == [".md", ".rst"]

    def test_log_level_upper(self):
        assert DocQASettings(log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize(
        "field, value",
        [("log_level", "loud"), ("example_max_lines", 1), ("max_heading_skip", 0), ("example_timeout", 0)],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValueError):
            DocQASettings(**{field: value})


class TestDiscovery:
    def test_root_from_docqa_toml(self, tmp_path):
        (tmp_path / "docqa.toml").touch()
        nested = tmp_path / "docs" / "deep"
        nested.mkdir(parents=True)
        assert find_project_root(nested) == tmp_path.resolve()

    def test_root_from_file_start(self, tmp_path):
        (tmp_path / ".git").mkdir()
        doc = tmp_path / "a.md"
        doc.write_text("# A\n")
        assert find_project_root(doc) == tmp_path.resolve()

    def test_docqa_toml_preferred(self, tmp_path):
        (tmp_path / "docqa.toml").write_text("max_heading_skip = 2\n")
        (tmp_path / "pyproject.toml").write_text("[tool.docqa]\nmax_heading_skip = 3\n")
        assert find_config_file(tmp_path) == tmp_path / "docqa.toml"

    def test_pyproject_without_table_ignored(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text("[project]\nname = 'x'\n")
        assert find_config_file(tmp_path) is None

    def test_hyphenated_keys(self, tmp_path):
        path = tmp_path / "pyproject.toml"
        path.write_text("[tool.docqa]\nmax-heading-skip = 2\n")
        assert load_toml_config(path) == {"max_heading_skip": 2}

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "docqa.toml"
        path.write_text("this is = = not toml\n")
        with pytest.raises(ConfigError) as exc:
            load_toml_config(path)
        assert exc.value.context.path == str(path)


class TestGetSettings:
    def test_file_values(self, tmp_path):
        (tmp_path / "docqa.toml").write_text('ignore = ["I"]\nexample-timeout = 5\n')
        s = get_settings(project_root=tmp_path)
        assert s.ignore == ["I"]
        assert s.example_timeout == 5.0
        assert s._config_file == tmp_path.resolve() / "docqa.toml"
        assert s._project_root == tmp_path.resolve()

    def test_pyproject_table(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text("[tool.docqa]\norphan_exempt = ['START.md']\n")
        assert get_settings(project_root=tmp_path).orphan_exempt == ["START.md"]

    def test_env_beats_file(self, tmp_path, monkeypatch):
        (tmp_path / "docqa.toml").write_text("example_jobs = 2\n")
        monkeypatch.setenv("DOCQA_EXAMPLE_JOBS", "4")
        assert get_settings(project_root=tmp_path).example_jobs == 4

    def test_dotenv_beats_file(self, tmp_path):
        (tmp_path / "docqa.toml").write_text("example_jobs = 2\n")
        (tmp_path / ".env").write_text("DOCQA_EXAMPLE_JOBS=3\n")
        assert get_settings(project_root=tmp_path).example_jobs == 3

    def test_overrides_beat_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DOCQA_EXAMPLE_JOBS", "4")
        s = get_settings(project_root=tmp_path, overrides={"example_jobs": 8, "example_timeout": None})
        assert s.example_jobs == 8
        assert s.example_timeout == 30.0

    def test_cached_per_root(self, tmp_path):
        assert get_settings(project_root=tmp_path) is get_settings(project_root=tmp_path)

    def test_overrides_not_cached(self, tmp_path):
        base = get_settings(project_root=tmp_path)
        assert get_settings(project_root=tmp_path, overrides={"example_jobs": 2}) is not base
        assert get_settings(project_root=tmp_path) is base

    def test_force_reload(self, tmp_path):
        first = get_settings(project_root=tmp_path)
        assert get_settings(project_root=tmp_path, _force_reload=True) is not first

    def test_relative_root_resolved_against_project(self, tmp_path):
        (tmp_path / "docqa.toml").write_text('root = "docs"\n')
        assert get_settings(project_root=tmp_path).root == (tmp_path / "docs").resolve()

    def test_invalid_file_value_is_config_error(self, tmp_path):
        (tmp_path / "docqa.toml").write_text("max_heading_skip = 99\n")
        with pytest.raises(ConfigError) as exc:
            get_settings(project_root=tmp_path)
        assert exc.value.context.path == str(tmp_path.resolve() / "docqa.toml")

    def test_unknown_keys_ignored(self, tmp_path):
        (tmp_path / "docqa.toml").write_text("not_a_setting = 1\n")
        assert not hasattr(get_settings(project_root=tmp_path), "not_a_setting")

