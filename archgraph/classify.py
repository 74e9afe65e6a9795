"""Semantic classification of connections.

A connection is production, admin, analytics, test, dev-only, migration or
unknown. File paths decide first, then component names, then layers.
"""

import re
from dataclasses import replace

from archgraph.types import (
    ArchitectureLayer,
    Component,
    Connection,
    SemanticClassification,
    SemanticInfo,
)

PATH_CONFIDENCE = 0.9
NAME_CONFIDENCE = 0.7
LAYER_CONFIDENCE = 0.5
UNRESOLVED_CONFIDENCE = 0.3

# Checked in order; the first category whose pattern matches any path wins
PATH_PATTERNS = [
    (SemanticClassification.TEST, re.compile(r"(__tests__|\.test\.|\.spec\.|/tests?/|/testing/|/test_[^/]*\.py$|_test\.py$)")),
    (SemanticClassification.MIGRATION, re.compile(r"(/migrations?/|/migrate|\.migration\.|/seeds?/|/alembic/)")),
    (
        SemanticClassification.DEV_ONLY,
        re.compile(
            r"(/scripts/|/dev/|\.dev\.|webpack\.config|vite\.config|rollup\.config|jest\.config"
            r"|eslint|prettier|\.storybook)"
        ),
    ),
    (SemanticClassification.ADMIN, re.compile(r"(/admin/|/dashboard/|/internal/|/backoffice/)")),
    (SemanticClassification.ANALYTICS, re.compile(r"(/analytics/|/tracking/|/telemetry/|/metrics/|/monitoring/)")),
]

PRODUCTION_LAYERS = frozenset({ArchitectureLayer.FRONTEND, ArchitectureLayer.BACKEND, ArchitectureLayer.DATABASE})


def _candidate_paths(conn: Connection, from_comp: Component | None) -> list[str]:
    paths = [conn.code_reference.file, conn.from_location.file]
    if conn.to_location is not None:
        paths.append(conn.to_location.file)
    if from_comp is not None:
        paths.extend(from_comp.source.config_files)
    return [p for p in paths if p]


def classify_by_path(paths: list[str]) -> SemanticInfo | None:
    for path in paths:
        # leading slash so root-level directories match "/dir/" patterns
        lowered = "/" + path.replace("\\", "/").lower().removeprefix("./").lstrip("/")
        for classification, pattern in PATH_PATTERNS:
            if pattern.search(lowered):
                return SemanticInfo(classification, PATH_CONFIDENCE)
    return None


def classify_connection(conn: Connection, from_comp: Component, to_comp: Component) -> SemanticInfo:
    by_path = classify_by_path(_candidate_paths(conn, from_comp))
    if by_path:
        return by_path

    names = (from_comp.name.lower(), to_comp.name.lower())
    if any("test" in n for n in names):
        return SemanticInfo(SemanticClassification.TEST, NAME_CONFIDENCE)
    if any("admin" in n for n in names):
        return SemanticInfo(SemanticClassification.ADMIN, NAME_CONFIDENCE)
    if any("analytics" in n or "metric" in n for n in names):
        return SemanticInfo(SemanticClassification.ANALYTICS, NAME_CONFIDENCE)

    if from_comp.layer in PRODUCTION_LAYERS or to_comp.layer in PRODUCTION_LAYERS:
        return SemanticInfo(SemanticClassification.PRODUCTION, LAYER_CONFIDENCE)
    return SemanticInfo(SemanticClassification.UNKNOWN, LAYER_CONFIDENCE)


def classify_all_connections(
    connections: list[Connection], components: list[Component]
) -> dict[str, SemanticInfo]:
    """Map connection id to its classification.

    Connections with an endpoint that is not a known component (file
    placeholders, unresolved externals) are classified from paths only.
    """
    by_id = {c.component_id: c for c in components}
    result: dict[str, SemanticInfo] = {}
    for conn in connections:
        from_comp = by_id.get(conn.from_id)
        to_comp = by_id.get(conn.to_id)
        if from_comp is not None and to_comp is not None:
            result[conn.connection_id] = classify_connection(conn, from_comp, to_comp)
            continue
        result[conn.connection_id] = classify_by_path(_candidate_paths(conn, from_comp)) or SemanticInfo(
            SemanticClassification.UNKNOWN, UNRESOLVED_CONFIDENCE
        )
    return result


def apply_classifications(
    connections: list[Connection], classifications: dict[str, SemanticInfo]
) -> list[Connection]:
    """Copies of ``connections`` with ``semantic`` filled in where known."""
    return [
        replace(conn, semantic=classifications[conn.connection_id])
        if conn.connection_id in classifications
        else conn
        for conn in connections
    ]
