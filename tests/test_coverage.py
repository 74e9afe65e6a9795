"""Tests for graph coverage reporting."""

import pytest

from archgraph.coverage import (
    MAX_UNMAPPED_GAPS,
    CoverageGap,
    compute_coverage,
    confidence_bucket,
    format_coverage_output,
)
from archgraph.types import ArchitectureLayer, ComponentType, SemanticClassification
from conftest import make_component, make_connection


@pytest.fixture
def project(tmp_project, write_file):
    for path in ("src/api.ts", "src/web.tsx", "src/db.py", "scripts/seed.ts", "src/api.test.ts"):
        write_file(path, "export {};\n")
    return tmp_project


@pytest.fixture
def graph():
    web = make_component("web", layer=ArchitectureLayer.FRONTEND)
    api = make_component("api")
    db = make_component("db", layer=ArchitectureLayer.DATABASE)
    openai = make_component("openai", type=ComponentType.LLM, layer=ArchitectureLayer.EXTERNAL)
    components = [web, api, db, openai]
    connections = [
        make_connection(web.component_id, api.component_id, confidence=0.9),
        make_connection(api.component_id, db.component_id, confidence=0.6,
                        classification=SemanticClassification.PRODUCTION),
        make_connection(api.component_id, openai.component_id, confidence=0.4),
    ]
    file_map = {
        "src/api.ts": api.component_id,
        "src/web.tsx": web.component_id,
        "deleted.ts": api.component_id,
    }
    return components, connections, file_map


class TestComputeCoverage:
    @pytest.mark.parametrize(("confidence", "bucket"), [(0.8, "high"), (0.79, "medium"), (0.5, "medium"), (0.49, "low")])
    def test_buckets(self, confidence, bucket):
        assert confidence_bucket(confidence) == bucket

    def test_report(self, project, graph):
        components, connections, file_map = graph

        report = compute_coverage(components, connections, project, file_map)

        assert (report.total_files, report.mapped_files, report.file_coverage) == (4, 2, 50.0)
        assert report.total_components == 4
        assert report.by_confidence == {"high": 1, "medium": 1, "low": 1}
        assert report.by_classification == {"production": 1, "unclassified": 2}
        assert report.overall_score == 0.58
        assert report.gaps == [
            CoverageGap("unmapped-file", "scripts/seed.ts", "No component attributed to this file"),
            CoverageGap("unmapped-file", "src/db.py", "No component attributed to this file"),
            CoverageGap("zero-consumers", "web", "Nothing connects to this component"),
            CoverageGap("low-confidence-connection", "api -> openai", "Confidence 0.40"),
        ]

    def test_include_tests_counts_test_files(self, project, graph):
        components, connections, file_map = graph

        report = compute_coverage(components, connections, project, file_map, include_tests=True)

        assert report.total_files == 5

    def test_no_connections_scores_zero(self, project):
        report = compute_coverage([make_component("api")], [], project, {})

        assert report.overall_score == 0.0
        assert [g.type for g in report.gaps if g.target == "api"] == ["zero-consumers", "no-outgoing"]

    def test_unmapped_gaps_are_capped(self, tmp_project, write_file):
        for i in range(MAX_UNMAPPED_GAPS + 5):
            write_file(f"src/m{i:02d}.py", "x = 1\n")

        report = compute_coverage([], [], tmp_project, {})

        assert report.total_files == MAX_UNMAPPED_GAPS + 5
        assert len(report.gaps) == MAX_UNMAPPED_GAPS

    def test_placeholders_are_not_components(self, project):
        db = make_component("db", layer=ArchitectureLayer.DATABASE)
        file_comp = make_component("seed", component_id="FILE:scripts/seed.ts")

        report = compute_coverage([db, file_comp], [make_connection(file_comp.component_id, db.component_id)], project, {})

        assert report.total_components == 1


class TestFormat:
    def test_full_report(self, project, graph):
        text = format_coverage_output(compute_coverage(*graph[:2], project, graph[2]))

        assert text.startswith("Overall score: 0.58\nFiles: 2/4 mapped (50.0%)")
        assert "Unmapped files (2):" in text
        assert "  - api -> openai: Confidence 0.40" in text

    def test_gaps_only_truncates(self, tmp_project, write_file):
        for i in range(12):
            write_file(f"src/m{i:02d}.py", "x = 1\n")

        text = format_coverage_output(compute_coverage([], [], tmp_project, {}), gaps_only=True)

        assert not text.startswith("Overall score")
        assert text.splitlines()[0] == "Unmapped files (12):"
        assert text.splitlines()[-1] == "  ... and 2 more"

    def test_no_gaps(self, tmp_project):
        text = format_coverage_output(compute_coverage([], [], tmp_project, {}), gaps_only=True)

        assert text == "No coverage gaps found."
