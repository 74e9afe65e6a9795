"""Tests for the data model and identifier helpers."""

import re

import pytest

from archgraph.identity import (
    link_references,
    new_component_id,
    new_connection_id,
    normalize_name,
    to_compact_component,
    to_compact_connection,
)
from archgraph.types import (
    ArchitectureLayer,
    Component,
    ComponentStatus,
    ComponentType,
    Connection,
    ConnectionType,
    ScanResult,
    ScanWarning,
    SemanticClassification,
    SemanticInfo,
    Source,
    WarningType,
    is_placeholder_id,
)
from conftest import make_component, make_connection


class TestEnums:
    def test_coerce_open_enums(self):
        assert ComponentType.coerce("npm") is ComponentType.NPM
        assert ComponentType.coerce("rocket") is ComponentType.OTHER
        assert ConnectionType.coerce("telepathy") is ConnectionType.OTHER
        assert SemanticClassification.coerce("weird") is SemanticClassification.UNKNOWN

    def test_closed_enums_reject_unknown(self):
        with pytest.raises(ValueError):
            ArchitectureLayer("middleware")
        with pytest.raises(ValueError):
            ComponentStatus("sleeping")


class TestValidation:
    @pytest.mark.parametrize("value", [-0.1, 1.5])
    def test_confidence_bounds(self, value):
        with pytest.raises(ValueError):
            Source("auto", confidence=value)
        with pytest.raises(ValueError):
            SemanticInfo(SemanticClassification.TEST, value)
        with pytest.raises(ValueError):
            make_connection("a", "b", confidence=value)

    def test_placeholders(self):
        assert is_placeholder_id("FILE:src/a.ts")
        assert is_placeholder_id("EXTERNAL:stripe")
        assert not is_placeholder_id("COMP_npm_openai_ab12")


class TestSerialization:
    def test_component_from_dict_tolerates_unknown_type(self):
        data = make_component("api", version="1.2.0", tags=["core"]).to_dict()
        data["type"] = "quantum"

        loaded = Component.from_dict(data)

        assert loaded.type is ComponentType.OTHER
        assert loaded.version == "1.2.0"
        assert loaded.tags == ["core"]
        assert loaded.role == make_component("api").role

    def test_connection_dict_shape(self):
        conn = make_connection("FILE:a.ts", "B", classification=SemanticClassification.ADMIN)

        data = conn.to_dict()

        assert data["from"] == {"component_id": "FILE:a.ts", "location": {"file": "src/app.ts", "line": 1}}
        assert data["to"] == {"component_id": "B", "location": None}
        assert data["semantic"] == {"classification": "admin", "confidence": 0.9}
        assert Connection.from_dict(data).classification is SemanticClassification.ADMIN

    def test_scan_result_merge(self):
        first = ScanResult([make_component("a")], [], [ScanWarning(WarningType.DEPRECATED, "old")])
        second = ScanResult([make_component("b")], [make_connection("a", "b")])

        merged = first.merge(second)

        assert [c.name for c in merged.components] == ["a", "b"]
        assert len(merged.connections) == 1
        assert len(merged.warnings) == 1
        assert first.components == [first.components[0]]


class TestIdentity:
    def test_normalize_name(self):
        assert normalize_name("@Anthropic-AI/SDK") == "_anthropic_ai_sdk"
        assert len(normalize_name("x" * 50)) == 20

    def test_id_formats(self):
        assert re.fullmatch(r"COMP_npm_openai_[0-9a-z]{4}", new_component_id(ComponentType.NPM, "openai"))
        assert re.fullmatch(r"CONN_service-call_[0-9a-z]{6}", new_connection_id(ConnectionType.SERVICE_CALL))
        assert new_component_id("pip", "requests").startswith("COMP_pip_requests_")

    def test_link_references_copies(self):
        api = make_component("api")
        db = make_component("db")
        conn = make_connection(api.component_id, db.component_id)

        linked_api, linked_db = link_references([api, db], [conn])

        assert api.connects_to == []
        assert [r.target_component_id for r in linked_api.connects_to] == [db.component_id]
        assert [r.target_component_id for r in linked_db.connected_from] == [api.component_id]
        assert to_compact_component(linked_db).to_dict()["ci"] == 1

    def test_compact_projection_omits_missing_fields(self):
        compact = to_compact_component(make_component("api")).to_dict()

        assert compact == {"id": "COMP_service_api", "n": "api", "t": "service", "l": "backend", "s": "active", "ci": 0, "co": 0}
        assert list(compact)[:3] == ["id", "n", "t"]

    def test_compact_connection(self):
        conn = make_connection("a", "b", file="src/x.ts", line=4, symbol="run")

        assert to_compact_connection(conn).to_dict() == {
            "id": "CONN_a_b",
            "f": "a",
            "t": "b",
            "ct": "service-call",
            "file": "src/x.ts",
            "sym": "run",
            "st": "function",
            "line": 4,
        }
