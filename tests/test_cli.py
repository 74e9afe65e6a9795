"""End-to-end tests for the archgraph command line."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from archgraph import __version__
from archgraph.cli import cli
from archgraph.utils.error_handler import error_log_path


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def scanned(runner, sample_project):
    """Sample project with one stored scan."""
    result = runner.invoke(cli, ["scan", "--root", str(sample_project), "--json"])
    assert result.exit_code == 0, result.output
    return sample_project


def invoke_json(runner, args):
    result = runner.invoke(cli, args)
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestHelp:
    def test_grouped_help(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for heading in ("BUILD", "QUERY", "CHECK", "HISTORY"):
            assert heading in result.output
        for command in ("scan", "impact", "trace", "subgraph", "summary", "rules", "coverage", "timeline", "diff"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestScanCommand:
    def test_json_output(self, runner, sample_project):
        data = invoke_json(runner, ["scan", "--root", str(sample_project), "--json"])

        assert data["stats"]["files_scanned"] == 2
        assert data["stats"]["components_found"] > 0
        assert data["timeline_entry"]["significance"] == "major"
        assert (sample_project / ".archgraph" / "components.json").exists()
        assert (sample_project / ".archgraph" / "timeline.json").exists()

    def test_quick_scan(self, runner, sample_project):
        data = invoke_json(runner, ["scan", "--root", str(sample_project), "--quick", "--json"])

        assert data["stats"]["files_scanned"] == 0
        assert data["stats"]["connections_found"] == 0

    def test_human_output(self, runner, sample_project):
        result = runner.invoke(cli, ["scan", "--root", str(sample_project)])

        assert result.exit_code == 0, result.output
        assert "Components" in result.output
        assert "Results stored in" in result.output

    def test_missing_root(self, runner, tmp_path):
        result = runner.invoke(cli, ["scan", "--root", str(tmp_path / "nope")])

        assert result.exit_code == 2


class TestQueries:
    def test_query_before_scan_fails(self, runner, sample_project):
        result = runner.invoke(cli, ["impact", "openai", "--root", str(sample_project)])

        assert result.exit_code == 1
        assert "Run 'archgraph scan' first" in result.output

    def test_impact_json(self, runner, scanned):
        data = invoke_json(runner, ["impact", "openai", "--root", str(scanned), "--json"])

        assert data["component"]["n"] == "openai"
        assert data["severity"] in {"critical", "high", "medium", "low"}
        assert data["summary"].startswith(data["severity"].upper())

    def test_impact_human(self, runner, scanned):
        result = runner.invoke(cli, ["impact", "stripe", "--root", str(scanned)])

        assert result.exit_code == 0, result.output
        assert "impact: stripe" in result.output.lower()
        assert "Severity:" in result.output

    def test_unknown_component_suggests(self, runner, scanned):
        result = runner.invoke(cli, ["impact", "openia", "--root", str(scanned)])

        assert result.exit_code == 1
        assert "Component not found" in result.output
        assert "Did you mean:" in result.output
        assert "  - openai" in result.output

    def test_trace_json(self, runner, scanned):
        data = invoke_json(runner, ["trace", "openai", "--root", str(scanned), "--direction", "backward", "--json"])

        assert data["query"] == "openai"
        assert data["components_touched"]

    def test_trace_text(self, runner, scanned):
        result = runner.invoke(cli, ["trace", "openai", "--root", str(scanned)])

        assert result.exit_code == 0, result.output
        assert result.output.startswith("Dataflow trace: openai")

    def test_trace_rejects_negative_depth(self, runner, scanned):
        result = runner.invoke(cli, ["trace", "openai", "--root", str(scanned), "--depth", "-1"])

        assert result.exit_code == 2

    def test_subgraph_json(self, runner, scanned):
        data = invoke_json(runner, ["subgraph", "--root", str(scanned), "--layer", "external"])

        assert data["stats"]["nodes"] == len(data["components"])
        assert {c["l"] for c in data["components"]} == {"external"}

    def test_subgraph_mermaid(self, runner, scanned):
        result = runner.invoke(cli, ["subgraph", "--root", str(scanned), "--format", "mermaid", "--max-nodes", "3"])

        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0] == "graph TD"
        assert sum(1 for line in lines if '["' in line) == 3


class TestHistoryCommands:
    def test_timeline_newest_first(self, runner, scanned):
        runner.invoke(cli, ["scan", "--root", str(scanned), "--json"])

        entries = invoke_json(runner, ["timeline", "--root", str(scanned), "--json"])

        assert [e["significance"] for e in entries] == ["patch", "major"]
        assert invoke_json(runner, ["timeline", "--root", str(scanned), "--json", "--limit", "1"])[0] == entries[0]
        assert invoke_json(
            runner, ["timeline", "--root", str(scanned), "--json", "--significance", "major"]
        ) == [entries[1]]

    def test_timeline_text(self, runner, scanned):
        result = runner.invoke(cli, ["timeline", "--root", str(scanned)])

        assert result.exit_code == 0, result.output
        assert "Architecture Timeline" in result.output
        assert "[MAJOR]" in result.output

    def test_diff_latest(self, runner, scanned):
        result = runner.invoke(cli, ["diff", "--root", str(scanned)])

        assert result.exit_code == 0, result.output
        assert "Added Components:" in result.output
        assert "  + openai v4.20.0" in result.output

    def test_diff_without_history(self, runner, sample_project):
        result = runner.invoke(cli, ["diff", "--root", str(sample_project), "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) is None


class TestCheckCommands:
    def test_rules_json(self, runner, scanned):
        violations = invoke_json(runner, ["rules", "--root", str(scanned), "--json"])

        assert all({"rule_id", "severity", "message"} <= set(v) for v in violations)
        info = invoke_json(runner, ["rules", "--root", str(scanned), "--json", "--severity", "info"])
        assert info == [v for v in violations if v["severity"] == "info"]

    def test_rules_text(self, runner, scanned):
        result = runner.invoke(cli, ["rules", "--root", str(scanned)])

        assert result.exit_code == 0, result.output
        assert "violation" in result.output

    def test_coverage_json(self, runner, scanned):
        data = invoke_json(runner, ["coverage", "--root", str(scanned), "--json"])

        assert data["total_files"] == 2
        assert data["mapped_files"] == 2
        assert data["total_connections"] > 0
        assert 0 < data["overall_score"] <= 1

    def test_coverage_gaps_only(self, runner, scanned):
        data = invoke_json(runner, ["coverage", "--root", str(scanned), "--json", "--gaps-only"])

        assert list(data) == ["gaps"]

    def test_summary_envelope(self, runner, scanned):
        data = invoke_json(runner, ["summary", "--root", str(scanned)])

        assert data["command"] == "summary"
        assert data["data"]["stats"]["total_components"] == len(data["data"]["components"])
        assert data["data"]["project_path"] == str(scanned.resolve())


class TestErrorLog:
    def test_written_to_configured_storage_dir(self, runner, sample_project, tmp_path, monkeypatch):
        env = {"ARCHGRAPH_PATHS_STORAGE_DIR": "state"}
        monkeypatch.chdir(tmp_path)
        assert runner.invoke(cli, ["scan", "--root", str(sample_project), "--json"], env=env).exit_code == 0
        (sample_project / "state" / "rules.yaml").write_text("- [unclosed\n", encoding="utf-8")

        result = runner.invoke(cli, ["rules", "--root", str(sample_project)], env=env)

        assert result.exit_code == 1
        assert "ConfigError" in result.output
        log = sample_project.resolve() / "state" / "error.log"
        assert log.exists()
        assert "Error in command: rules" in log.read_text(encoding="utf-8")
        assert not (tmp_path / ".archgraph" / "error.log").exists()

    def test_path_falls_back_when_config_is_invalid(self, tmp_project, write_file):
        write_file(".archgraph/config.json", "[1, 2]")

        assert error_log_path(tmp_project) == Path(tmp_project).resolve() / ".archgraph" / "error.log"

    def test_path_follows_storage_dir(self, tmp_project, write_file):
        write_file(".archgraph/config.json", '{"paths": {"storage_dir": "graph-data"}}')

        assert error_log_path(tmp_project) == Path(tmp_project).resolve() / "graph-data" / "error.log"
