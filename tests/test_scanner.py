"""Tests for the scan orchestrator."""

import json

import pytest

from archgraph.exceptions import GraphIntegrityError
from archgraph.graph import ImpactType, compute_impact, trace_dataflow
from archgraph.scanner import (
    apply_confidence_threshold,
    deduplicate_components,
    rewrite_endpoints,
    scan,
    validate_connections,
)
from archgraph.types import ComponentType, ConnectionType, WarningType, is_placeholder_id
from conftest import make_component, make_connection


class TestDeduplicate:
    def test_higher_confidence_wins(self):
        low = make_component("openai", component_id="A", confidence=0.5)
        high = make_component("openai", component_id="B", confidence=0.9)

        survivors, replaced = deduplicate_components([low, high])

        assert [c.component_id for c in survivors] == ["B"]
        assert replaced == {"A": "B"}

    def test_first_wins_ties(self):
        first = make_component("openai", component_id="A")
        second = make_component("openai", component_id="B")
        other = make_component("stripe", component_id="C")

        survivors, replaced = deduplicate_components([first, other, second])

        assert [c.component_id for c in survivors] == ["A", "C"]
        assert replaced == {"B": "A"}

    def test_rewrite_endpoints(self):
        conn = make_connection("FILE:a.ts", "B")

        [rewritten] = rewrite_endpoints([conn], {"B": "A"})

        assert rewritten.to_id == "A"
        assert conn.to_id == "B"


class TestThreshold:
    def test_low_confidence_becomes_warning(self):
        keep = make_connection("a", "b", confidence=0.8)
        drop = make_connection("a", "c", confidence=0.4, file="src/x.ts", line=7)

        kept, warnings = apply_confidence_threshold([keep, drop], 0.6)

        assert kept == [keep]
        [warning] = warnings
        assert warning.type is WarningType.LOW_CONFIDENCE
        assert warning.file == "src/x.ts"
        assert warning.line == 7

    def test_threshold_is_inclusive(self):
        conn = make_connection("a", "b", confidence=0.6)

        kept, warnings = apply_confidence_threshold([conn], 0.6)

        assert kept == [conn]
        assert warnings == []


class TestValidateConnections:
    def test_placeholders_are_allowed(self):
        comp = make_component("openai")
        conn = make_connection("FILE:src/a.ts", comp.component_id)

        validate_connections([comp], [conn])

    def test_dangling_edge_raises(self):
        comp = make_component("openai")
        conn = make_connection(comp.component_id, "COMP_service_missing")

        with pytest.raises(GraphIntegrityError) as exc:
            validate_connections([comp], [conn])

        assert exc.value.details["component_id"] == "COMP_service_missing"


class TestScan:
    def test_quick_scan_reads_manifests_only(self, sample_project, config):
        outcome = scan(config, quick=True)

        names = {c.name for c in outcome.components}
        assert {"openai", "stripe", "pg", "react", "typescript"} <= names
        assert outcome.connections == []
        assert outcome.llm_calls == []
        assert outcome.stats.files_scanned == 0
        assert outcome.stats.components_found == len(outcome.components)

    def test_full_scan(self, sample_project, config):
        outcome = scan(config)

        assert outcome.stats.files_scanned == 2
        assert outcome.stats.connections_found == len(outcome.connections)
        assert len(outcome.llm_calls) == 1

        by_id = {c.component_id: c for c in outcome.components}
        assert len({c.name for c in outcome.components}) == len(outcome.components)
        for conn in outcome.connections:
            assert conn.semantic is not None
            assert conn.confidence >= config.confidence_threshold
            for endpoint in (conn.from_id, conn.to_id):
                assert endpoint in by_id or is_placeholder_id(endpoint)

    def test_llm_calls_point_at_surviving_component(self, sample_project, config):
        outcome = scan(config)

        [openai] = [c for c in outcome.components if c.name == "openai"]
        traced = [c for c in outcome.connections if c.description.startswith("openai.chat.completions.create")]

        assert traced
        assert all(c.to_id == openai.component_id for c in traced)
        assert any(ref.connection_id == traced[0].connection_id for ref in openai.connected_from)

    def test_stripe_calls_are_linked(self, sample_project, config):
        outcome = scan(config)

        stripe_services = [c for c in outcome.components if c.type is ComponentType.SERVICE and c.name == "Stripe"]

        assert len(stripe_services) == 1
        assert len(stripe_services[0].connected_from) == 1

    def test_empty_project(self, tmp_project, config):
        outcome = scan(config)

        assert outcome.components == []
        assert outcome.connections == []
        assert outcome.stats.files_scanned == 0

    def test_prompt_usage_links_prompt_to_provider(self, sample_project, config):
        outcome = scan(config)
        by_id = {c.component_id: c for c in outcome.components}

        [usage] = [c for c in outcome.connections if c.connection_type is ConnectionType.PROMPT_USAGE]

        assert by_id[usage.from_id].name == "answer_prompt"
        assert by_id[usage.to_id].name == "openai"
        assert usage.confidence == 0.85


class TestDataFlowScan:
    @pytest.fixture
    def next_project(self, tmp_project, write_file):
        write_file(
            "package.json",
            json.dumps({"name": "shop", "dependencies": {"next": "^14.0.0", "@prisma/client": "^5.0.0"}}),
        )
        write_file(
            "app/page.tsx",
            "export default async function Home() {\n"
            "  const res = await fetch('/api/users');\n"
            "  return res.json();\n"
            "}\n",
        )
        write_file(
            "app/api/users/route.ts",
            "import { prisma } from '@/lib/prisma';\n"
            "\n"
            "export async function GET() {\n"
            "  return Response.json(await prisma.user.findMany());\n"
            "}\n",
        )
        return tmp_project

    def test_frontend_api_and_database_edges(self, next_project, config):
        outcome = scan(config)
        by_name = {c.name: c for c in outcome.components}
        kinds = {c.connection_type for c in outcome.connections}

        assert {ConnectionType.FRONTEND_CALLS_API, ConnectionType.API_CALLS_DB} <= kinds
        assert by_name["/api/users"].type is ComponentType.API_ENDPOINT
        assert by_name["user"].type is ComponentType.DB_TABLE
        assert [r.target_component_id for r in by_name["page:/"].connects_to] == [by_name["/api/users"].component_id]
        assert [r.target_component_id for r in by_name["/api/users"].connects_to] == [by_name["user"].component_id]

    def test_impact_and_trace_cross_layers(self, next_project, config):
        outcome = scan(config)
        table = next(c for c in outcome.components if c.name == "user")

        impact = compute_impact(table, outcome.components, outcome.connections)
        trace = trace_dataflow(table, outcome.components, outcome.connections)

        assert [(a.component.name, a.impact_type) for a in impact.affected] == [
            ("/api/users", ImpactType.DIRECT),
            ("page:/", ImpactType.TRANSITIVE),
        ]
        assert [step.component.n for step in trace.paths[0].steps] == ["user", "/api/users", "page:/"]
        assert [layer.value for layer in trace.layers_crossed] == ["database", "backend", "frontend"]
