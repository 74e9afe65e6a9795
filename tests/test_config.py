"""Tests for layered runtime configuration."""

import json

import pytest

from archgraph.config import DEFAULTS, load_config_sections, load_runtime_config
from archgraph.exceptions import ConfigError


@pytest.fixture
def write_config(write_file):
    def _write(data):
        return write_file(".archgraph/config.json", json.dumps(data))

    return _write


class TestDefaults:
    def test_defaults(self, tmp_project):
        config = load_runtime_config(tmp_project)

        assert config.root == tmp_project.resolve()
        assert config.storage_dir == tmp_project.resolve() / ".archgraph"
        assert config.max_results == 20
        assert config.history_limit == 100
        assert config.confidence_threshold == 0.6
        assert config.include_tests is False
        assert config.trace_max_depth == 5
        assert config.subgraph_depth == 2
        assert config.subgraph_max_nodes == 50
        assert config.candidate_limit == 5

    def test_defaults_are_not_mutated(self, tmp_project, write_config):
        write_config({"limits": {"max_results": 3}})

        load_config_sections(tmp_project)

        assert DEFAULTS["limits"]["max_results"] == 20


class TestConfigFile:
    def test_file_overrides(self, tmp_project, write_config):
        write_config({"scan": {"include_tests": True, "confidence_threshold": 0.8}, "query": {"trace_max_depth": 3}})

        config = load_runtime_config(tmp_project)

        assert config.include_tests is True
        assert config.confidence_threshold == 0.8
        assert config.trace_max_depth == 3

    def test_wrong_types_and_unknown_keys_are_ignored(self, tmp_project, write_config):
        write_config({"limits": {"max_results": "many", "history_limit": True, "bogus": 1}})

        config = load_runtime_config(tmp_project)

        assert config.max_results == 20
        assert config.history_limit == 100

    def test_int_accepted_for_float(self, tmp_project, write_config):
        write_config({"scan": {"confidence_threshold": 1}})

        assert load_runtime_config(tmp_project).confidence_threshold == 1.0

    def test_values_are_clamped(self, tmp_project, write_config):
        write_config({"scan": {"confidence_threshold": 4.0}, "limits": {"read_workers": 0, "history_limit": -5}})

        config = load_runtime_config(tmp_project)

        assert config.confidence_threshold == 1.0
        assert config.read_workers == 1
        assert config.history_limit == 1

    def test_absolute_storage_dir(self, tmp_project, tmp_path, write_config):
        elsewhere = tmp_path / "state"
        write_config({"paths": {"storage_dir": str(elsewhere)}})

        assert load_runtime_config(tmp_project).storage_dir == elsewhere

    def test_non_object_raises(self, tmp_project, write_config):
        write_config([1, 2, 3])

        with pytest.raises(ConfigError, match="must contain a JSON object"):
            load_runtime_config(tmp_project)

    def test_invalid_json_falls_back_to_defaults(self, tmp_project, write_file):
        write_file(".archgraph/config.json", "{broken")

        assert load_runtime_config(tmp_project).max_results == 20


class TestEnvironment:
    def test_env_beats_file(self, tmp_project, write_config, monkeypatch):
        write_config({"limits": {"max_results": 7}})
        monkeypatch.setenv("ARCHGRAPH_LIMITS_MAX_RESULTS", "9")
        monkeypatch.setenv("ARCHGRAPH_SCAN_INCLUDE_TESTS", "yes")

        config = load_runtime_config(tmp_project)

        assert config.max_results == 9
        assert config.include_tests is True

    def test_invalid_env_is_ignored(self, tmp_project, monkeypatch):
        monkeypatch.setenv("ARCHGRAPH_QUERY_TRACE_MAX_DEPTH", "deep")
        monkeypatch.setenv("ARCHGRAPH_SCAN_INCLUDE_TESTS", "maybe")

        config = load_runtime_config(tmp_project)

        assert config.trace_max_depth == 5
        assert config.include_tests is False
