"""Tests for the docqa CLI — lint, rules, stats, links, orphans, examples, config."""

from __future__ import annotations

import json
import sys
import textwrap

import pytest
from typer.testing import CliRunner

from docqa import __version__
from docqa.cli.app import app
from docqa.linter import register_lint_rule

runner = CliRunner()

PY = sys.executable


def _examples_doc(write_docs, *bodies: str):
    blocks = []
    for body in bodies:
        blocks.append(f"```python\n#!{PY}\n{textwrap.dedent(body).strip()}\n```\n")
    docs = write_docs({"handlers.md": "# Handlers\n\n" + "\n".join(blocks)})
    return docs / "handlers.md"


# ── root ─────────────────────────────────────────────────────────────


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"docqa {__version__}" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "lint" in result.output

    def test_log_level_flag_accepted(self, clean_docs):
        result = runner.invoke(app, ["--log-level", "debug", "lint", str(clean_docs)])
        assert result.exit_code == 0

    def test_info_level_runs_cleanly(self, clean_docs):
        result = runner.invoke(app, ["--log-level", "INFO", "--log-json", "lint", str(clean_docs)])
        assert result.exit_code == 0
        assert "PASS" in result.output
        assert "corpus_linted" in result.output


# ── docqa lint ───────────────────────────────────────────────────────


class TestLintCommand:
    def test_clean_corpus(self, clean_docs):
        result = runner.invoke(app, ["lint", str(clean_docs)])
        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_broken_corpus(self, broken_docs):
        result = runner.invoke(app, ["lint", str(broken_docs)])
        assert result.exit_code == 1
        for code in ("E001", "E002", "E003", "E004", "W001", "W002", "W003", "W004", "I002"):
            assert code in result.output
        assert "FAIL" in result.output

    def test_json_output(self, broken_docs):
        result = runner.invoke(app, ["lint", str(broken_docs), "--json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["passed"] is False
        assert data["documents_checked"] == 2
        assert data["error_count"] == 4
        assert {d["path"] for d in data["diagnostics"]} == {"index.md", "other.md"}

    def test_strict_fails_on_warnings(self, write_docs):
        docs = write_docs({"a.md": "## Dup\n\n## Dup\n"})
        assert runner.invoke(app, ["lint", str(docs)]).exit_code == 0
        assert runner.invoke(app, ["lint", str(docs), "--strict"]).exit_code == 1

    def test_select_and_ignore(self, broken_docs):
        result = runner.invoke(app, ["lint", str(broken_docs), "--json", "--select", "W", "--ignore", "W001"])
        codes = {d["code"] for d in json.loads(result.stdout)["diagnostics"]}
        assert codes == {"W002", "W003", "W004"}
        assert result.exit_code == 0

    def test_no_infos(self, write_docs):
        docs = write_docs({"README.md": "# R\n", "lonely.md": "# L\n"})
        with_infos = json.loads(runner.invoke(app, ["lint", str(docs), "--json"]).stdout)
        without = json.loads(runner.invoke(app, ["lint", str(docs), "--json", "--no-infos"]).stdout)
        assert with_infos["info_count"] == 1
        assert without["info_count"] == 0

    def test_single_file(self, broken_docs):
        result = runner.invoke(app, ["lint", str(broken_docs / "other.md"), "--json"])
        data = json.loads(result.stdout)
        assert data["documents_checked"] == 1
        assert {d["code"] for d in data["diagnostics"]} == {"E004", "W001"}

    def test_missing_path(self, tmp_path):
        result = runner.invoke(app, ["lint", str(tmp_path / "nope")])
        assert result.exit_code == 1
        assert "Error (IO)" in result.output

    def test_config_file_applies(self, write_docs, tmp_path):
        docs = write_docs({"a.md": "# A\n\n### C\n"})
        (tmp_path / "docqa.toml").write_text("max_heading_skip = 2\n")
        data = json.loads(runner.invoke(app, ["lint", str(docs), "--json"]).stdout)
        assert data["warning_count"] == 0

    def test_raising_rule_logged_and_reported(self, clean_docs):
        def explode(document, corpus):
            raise RuntimeError("boom")

        register_lint_rule("explode", explode)
        result = runner.invoke(app, ["lint", str(clean_docs)])
        assert result.exit_code == 0
        assert "X001" in result.output
        assert "lint_rule_failed" in result.output

    def test_unreadable_linked_document_warns(self, write_docs):
        docs = write_docs({"sub/a.md": "[b](../b.md#top-x)\n"})
        (docs / "b.md").write_bytes(b"# \xff\xfe\n")
        result = runner.invoke(app, ["lint", str(docs / "sub")])
        assert result.exit_code == 0
        assert "linked_document_unreadable" in result.output

    def test_root_relative_exclude_applies_to_subdirectory(self, write_docs, tmp_path):
        docs = write_docs({"a.md": "# A\n", "drafts/wip.md": "[x](missing.md)\n"})
        (tmp_path / "docqa.toml").write_text('exclude = ["docs/drafts/*"]\n')
        result = runner.invoke(app, ["lint", str(docs), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["documents_checked"] == 1

    def test_invalid_config_exit_2(self, write_docs, tmp_path):
        docs = write_docs({"a.md": "# A\n"})
        (tmp_path / "docqa.toml").write_text("max_heading_skip = 99\n")
        result = runner.invoke(app, ["lint", str(docs)])
        assert result.exit_code == 2
        assert "Error (CONFIG)" in result.output


# ── docqa rules ──────────────────────────────────────────────────────


class TestRulesCommand:
    def test_table(self):
        result = runner.invoke(app, ["rules"])
        assert result.exit_code == 0
        assert "E001" in result.output
        assert "I002" in result.output

    def test_json(self):
        rows = json.loads(runner.invoke(app, ["rules", "--json"]).stdout)
        assert rows[0] == {
            "code": "E001",
            "name": "check_broken_links",
            "description": "Relative link target does not exist.",
        }
        assert len(rows) == 10


# ── docqa stats / links / orphans ────────────────────────────────────


class TestStatsCommand:
    def test_table(self, clean_docs):
        result = runner.invoke(app, ["stats", str(clean_docs)])
        assert result.exit_code == 0
        assert "guide.md" in result.output
        assert "3 documents" in result.output

    def test_json(self, clean_docs):
        data = json.loads(runner.invoke(app, ["stats", str(clean_docs), "--json"]).stdout)
        assert data["totals"]["documents"] == 3
        assert data["totals"]["tables"] == 1


class TestLinksCommand:
    def test_json(self, clean_docs):
        result = runner.invoke(app, ["links", str(clean_docs / "guide.md"), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["document"] == "guide.md"
        assert [(o["target"], o["exists"]) for o in data["outbound"]] == [("README.md", True), ("#usage", True)]
        assert sorted(b["source"] for b in data["backlinks"]) == ["README.md", "papers.md"]

    def test_table(self, broken_docs):
        result = runner.invoke(app, ["links", str(broken_docs / "index.md")])
        assert result.exit_code == 0
        assert "missing" in result.output
        assert "No backlinks." in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["links", str(tmp_path / "nope.md")])
        assert result.exit_code == 1
        assert "Error (IO)" in result.output


class TestOrphansCommand:
    def test_none(self, clean_docs):
        result = runner.invoke(app, ["orphans", str(clean_docs)])
        assert result.exit_code == 0
        assert "No orphan documents" in result.output

    def test_json(self, write_docs):
        docs = write_docs({"README.md": "[a](a.md)\n", "a.md": "# A\n", "lonely.md": "# L\n"})
        data = json.loads(runner.invoke(app, ["orphans", str(docs), "--json"]).stdout)
        assert data["orphans"] == ["lonely.md"]


# ── docqa examples ───────────────────────────────────────────────────


class TestExamplesList:
    def test_json(self, write_docs):
        doc = _examples_doc(write_docs, "# name: first\nprint(1)", "print(2)")
        data = json.loads(runner.invoke(app, ["examples", "list", str(doc), "--json"]).stdout)
        assert [e["name"] for e in data] == ["first", "unnamed"]
        assert data[0]["interpreter"] == [PY]

    def test_none(self, write_docs):
        docs = write_docs({"plain.md": "# Nothing runnable\n"})
        result = runner.invoke(app, ["examples", "list", str(docs / "plain.md")])
        assert result.exit_code == 0
        assert "No runnable examples" in result.output


@pytest.mark.integration
class TestExamplesRun:
    def test_all_pass(self, write_docs):
        doc = _examples_doc(write_docs, "# name: greet\nprint('hello')", "print('world')")
        result = runner.invoke(app, ["examples", "run", str(doc)])
        assert result.exit_code == 0
        assert "2 runnable examples" in result.output
        assert "greet" in result.output
        assert "hello" in result.output
        assert "passed" in result.output
        assert "2 passed" in result.output

    def test_failure_exit_1(self, write_docs):
        doc = _examples_doc(write_docs, "print('ok')", "import sys\nprint('bad')\nsys.exit(2)")
        result = runner.invoke(app, ["examples", "run", str(doc)])
        assert result.exit_code == 1
        assert "FAILED" in result.output
        assert "1 failed" in result.output

    def test_no_output_marker(self, write_docs):
        doc = _examples_doc(write_docs, "x = 1")
        result = runner.invoke(app, ["examples", "run", str(doc)])
        assert "(no output)" in result.output

    def test_truncation(self, write_docs):
        doc = _examples_doc(write_docs, "for i in range(10):\n    print(f'line{i}')")
        result = runner.invoke(app, ["examples", "run", str(doc), "--max-lines", "3"])
        assert "line1" in result.output
        assert "line2" not in result.output
        assert "..." in result.output

    def test_json_and_jobs(self, write_docs):
        doc = _examples_doc(write_docs, "print('a')", "print('b')", "print('c')")
        result = runner.invoke(app, ["examples", "run", str(doc), "--json", "--jobs", "3"])
        data = json.loads(result.stdout)
        assert [r["output"] for r in data["results"]] == [["a"], ["b"], ["c"]]
        assert data["passed"] is True

    def test_name_filter(self, write_docs):
        doc = _examples_doc(write_docs, "# name: one\nprint(1)", "# name: two\nprint(2)")
        data = json.loads(runner.invoke(app, ["examples", "run", str(doc), "--json", "--name", "two"]).stdout)
        assert [r["name"] for r in data["results"]] == ["two"]

    def test_unknown_name_is_error(self, write_docs):
        doc = _examples_doc(write_docs, "# name: one\nprint(1)")
        result = runner.invoke(app, ["examples", "run", str(doc), "--name", "nope"])
        assert result.exit_code == 1
        assert "Error (EXECUTION)" in result.output
        assert "No runnable example named 'nope'" in result.output

    def test_document_without_examples(self, write_docs):
        docs = write_docs({"plain.md": "# Nothing runnable\n"})
        result = runner.invoke(app, ["examples", "run", str(docs / "plain.md")])
        assert result.exit_code == 0
        assert "No runnable examples found" in result.output
        assert "Results" not in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["examples", "run", str(tmp_path / "nope.md")])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_invalid_max_lines_is_config_error(self, write_docs):
        doc = _examples_doc(write_docs, "print(1)")
        result = runner.invoke(app, ["examples", "run", str(doc), "--max-lines", "1"])
        assert result.exit_code == 2


# ── docqa config ─────────────────────────────────────────────────────


class TestConfigShow:
    @pytest.fixture(autouse=True)
    def _project(self, tmp_path, monkeypatch):
        (tmp_path / "docqa.toml").write_text("max_heading_skip = 3\n")
        monkeypatch.chdir(tmp_path)

    def test_json(self):
        result = runner.invoke(app, ["config", "show", "--format", "json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["max_heading_skip"] == 3

    def test_env(self, monkeypatch):
        monkeypatch.setenv("DOCQA_EXAMPLE_JOBS", "4")
        result = runner.invoke(app, ["config", "show", "--format", "env"])
        assert "DOCQA_MAX_HEADING_SKIP=3" in result.stdout
        assert "DOCQA_EXAMPLE_JOBS=4" in result.stdout
        assert 'DOCQA_EXTENSIONS=[".md", ".markdown"]' in result.stdout

    def test_table(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "Config File" in result.output
        assert "max_heading_skip" in result.output

    def test_unknown_format(self):
        result = runner.invoke(app, ["config", "show", "--format", "yaml"])
        assert result.exit_code == 1
