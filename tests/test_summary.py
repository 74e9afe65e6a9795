"""Tests for the executive summary and JSON envelope."""

import json

import pytest

from archgraph.storage import SCHEMA_VERSION
from archgraph.summary import build_executive_summary, is_major_update, wrap_in_envelope
from archgraph.types import ComponentHealth, ComponentStatus, ComponentType, ConnectionType
from conftest import make_component, make_connection


def _pkg(name, status, version="1.0.0", latest=None, type=ComponentType.NPM):
    health = ComponentHealth(latest_version=latest, update_available=latest is not None) if latest else None
    return make_component(name, type=type, status=status, version=version, health=health)


class TestEnvelope:
    def test_sorted_keys(self):
        data = json.loads(wrap_in_envelope("scan", {"foo": "bar"}))

        assert list(data) == ["command", "data", "schema_version", "timestamp"]
        assert data["schema_version"] == SCHEMA_VERSION
        assert data["command"] == "scan"
        assert data["data"] == {"foo": "bar"}
        assert data["timestamp"] > 0

    def test_metadata(self):
        data = json.loads(wrap_in_envelope("scan", {}, {"git": {"branch": "main"}}))

        assert list(data) == ["command", "data", "metadata", "schema_version", "timestamp"]
        assert data["metadata"] == {"git": {"branch": "main"}}

    @pytest.mark.parametrize("metadata", [None, {}])
    def test_empty_metadata_omitted(self, metadata):
        assert "metadata" not in json.loads(wrap_in_envelope("scan", {}, metadata))


class TestExecutiveSummary:
    def test_risks_by_status(self):
        components = [
            _pkg("axios", ComponentStatus.VULNERABLE),
            _pkg("request", ComponentStatus.DEPRECATED),
            _pkg("react", ComponentStatus.OUTDATED, version="17.0.2", latest="18.2.0"),
            _pkg("lodash", ComponentStatus.OUTDATED, version="4.17.0", latest="4.17.21"),
            _pkg("zod", ComponentStatus.ACTIVE),
        ]

        risks = build_executive_summary(components, [], "/work/app")["risks"]

        assert [(r["type"], r["severity"], r["component"]) for r in risks] == [
            ("vulnerability", "critical", "axios"),
            ("deprecated", "high", "request"),
            ("outdated", "high", "react"),
            ("outdated", "medium", "lodash"),
        ]
        assert risks[2]["message"] == "react has a major update available (18.2.0)"
        assert risks[3]["message"] == "lodash has an update available (4.17.21)"

    @pytest.mark.parametrize(
        ("version", "latest", "expected"),
        [("1.2.3", "2.0.0", True), ("^4.1.0", "4.9.0", False), (None, "2.0.0", False), ("1.0.0", None, False)],
    )
    def test_major_update(self, version, latest, expected):
        comp = make_component("x", version=version, health=ComponentHealth(latest_version=latest))

        assert is_major_update(comp) is expected

    def test_blockers_and_actions(self):
        components = [
            _pkg("axios", ComponentStatus.VULNERABLE),
            _pkg("requests", ComponentStatus.OUTDATED, type=ComponentType.PIP),
            _pkg("left-pad", ComponentStatus.UNUSED),
            _pkg("moment", ComponentStatus.UNUSED),
        ]

        summary = build_executive_summary(components, [], "/work/app")

        assert [b["component"] for b in summary["blockers"]] == ["left-pad", "moment"]
        assert summary["next_actions"] == [
            {"action": "Fix 1 vulnerable package", "reason": "Security vulnerabilities detected",
             "command": "npm audit fix"},
            {"action": "Update 1 outdated package", "reason": "Newer versions available",
             "command": "pip list --outdated"},
            {"action": "Review 2 unused components", "reason": "Unused dependencies add weight and attack surface"},
        ]

    def test_stats_and_compact_records(self):
        api = make_component("api", version="1.0.0")
        db = make_component("db", status=ComponentStatus.OUTDATED)
        conn = make_connection(api.component_id, db.component_id, ConnectionType.API_CALLS_DB,
                               file="src/orders.ts", symbol="listOrders")

        summary = build_executive_summary([api, db], [conn], "/work/app", git={"branch": "main"})

        assert summary["project_path"] == "/work/app"
        assert summary["git"] == {"branch": "main"}
        assert summary["stats"] == {
            "total_components": 2,
            "total_connections": 1,
            "outdated_count": 1,
            "vulnerable_count": 0,
        }
        assert summary["components"][0] == {
            "id": api.component_id, "n": "api", "t": "service", "v": "1.0.0", "l": "backend", "s": "active",
        }
        assert summary["connections"][0]["ct"] == "api-calls-db"
        assert summary["connections"][0]["sym"] == "listOrders"

    def test_clean_graph(self):
        summary = build_executive_summary([_pkg("zod", ComponentStatus.ACTIVE)], [], "/work/app")

        assert summary["risks"] == summary["blockers"] == summary["next_actions"] == []
        assert "git" not in summary
