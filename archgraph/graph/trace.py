"""Dataflow trace: follow a component across layers via breadth-first search."""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from archgraph.graph.assembly import ArchitectureGraph
from archgraph.identity import CompactComponent, CompactConnection, to_compact_component, to_compact_connection
from archgraph.types import ArchitectureLayer, Component, Connection, SemanticClassification


class TraceDirection(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"
    BOTH = "both"


@dataclass
class TraceOptions:
    max_depth: int = 5
    direction: TraceDirection = TraceDirection.BOTH
    filter_classification: SemanticClassification | None = None


@dataclass(frozen=True)
class TraceStep:
    component: CompactComponent
    connection: CompactConnection | None = None
    file: str | None = None
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"component": self.component.to_dict()}
        if self.connection is not None:
            data["connection"] = self.connection.to_dict()
        if self.file is not None:
            data["file"] = self.file
        if self.line is not None:
            data["line"] = self.line
        return data


@dataclass
class TracePath:
    steps: list[TraceStep]
    classification: SemanticClassification | None = None

    @property
    def component_ids(self) -> tuple[str, ...]:
        return tuple(step.component.id for step in self.steps)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"steps": [s.to_dict() for s in self.steps]}
        if self.classification is not None:
            data["classification"] = self.classification.value
        return data


@dataclass
class TraceResult:
    query: str
    paths: list[TracePath] = field(default_factory=list)
    components_touched: list[str] = field(default_factory=list)
    layers_crossed: list[ArchitectureLayer] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "paths": [p.to_dict() for p in self.paths],
            "components_touched": list(self.components_touched),
            "layers_crossed": [layer.value for layer in self.layers_crossed],
        }


@dataclass
class _Partial:
    component_id: str
    steps: list[TraceStep]
    visited: frozenset[str]

    @property
    def depth(self) -> int:
        return len(self.steps) - 1


def _next_hops(
    graph: ArchitectureGraph, current: _Partial, options: TraceOptions
) -> list[tuple[Connection, Component]]:
    candidates: list[tuple[Connection, str]] = []
    if options.direction in (TraceDirection.FORWARD, TraceDirection.BOTH):
        candidates.extend((c, c.to_id) for c in graph.outgoing_of(current.component_id))
    if options.direction in (TraceDirection.BACKWARD, TraceDirection.BOTH):
        candidates.extend((c, c.from_id) for c in graph.incoming_of(current.component_id))

    hops = []
    for conn, next_id in candidates:
        if next_id in current.visited:
            continue
        if options.filter_classification is not None and conn.classification != options.filter_classification:
            continue
        next_comp = graph.get(next_id)
        if next_comp is None:
            continue
        hops.append((conn, next_comp))
    return hops


def _dominant_classification(
    path: TracePath, by_connection: dict[str, Connection]
) -> SemanticClassification | None:
    counts: dict[SemanticClassification, int] = {}
    for step in path.steps:
        if step.connection is None:
            continue
        conn = by_connection.get(step.connection.id)
        if conn is None or conn.classification is None:
            continue
        counts[conn.classification] = counts.get(conn.classification, 0) + 1
    if not counts:
        return None
    # max() keeps the first-seen entry on ties
    return max(counts, key=counts.get)


def trace_dataflow(
    start: Component,
    components: list[Component],
    connections: list[Connection],
    options: TraceOptions | None = None,
    graph: ArchitectureGraph | None = None,
) -> TraceResult:
    """Enumerate paths leaving ``start`` up to ``options.max_depth`` hops.

    Each partial path carries its own visited set, so a component may appear
    on several paths but never twice on one. A path is emitted when it
    reaches max depth or has nowhere left to go, provided it left the start.
    Paths with the same component sequence are reported once.
    """
    options = options or TraceOptions()
    if isinstance(options.max_depth, bool) or not isinstance(options.max_depth, int):
        raise ValueError(f"max_depth must be an integer, got {options.max_depth!r}")
    if options.max_depth < 0:
        raise ValueError(f"max_depth must be >= 0, got {options.max_depth}")

    graph = graph or ArchitectureGraph.build(components, connections)

    touched: dict[str, None] = {start.component_id: None}
    layers: dict[ArchitectureLayer, None] = {start.layer: None}
    finished: list[TracePath] = []

    queue = deque(
        [_Partial(start.component_id, [TraceStep(to_compact_component(start))], frozenset({start.component_id}))]
    )
    while queue:
        current = queue.popleft()
        if current.depth >= options.max_depth:
            if len(current.steps) > 1:
                finished.append(TracePath(current.steps))
            continue

        hops = _next_hops(graph, current, options)
        if not hops:
            if len(current.steps) > 1:
                finished.append(TracePath(current.steps))
            continue

        for conn, next_comp in hops:
            touched[next_comp.component_id] = None
            layers[next_comp.layer] = None
            step = TraceStep(
                component=to_compact_component(next_comp),
                connection=to_compact_connection(conn),
                file=conn.code_reference.file or None,
                line=conn.code_reference.line_start,
            )
            queue.append(
                _Partial(next_comp.component_id, [*current.steps, step], current.visited | {next_comp.component_id})
            )

    seen: set[tuple[str, ...]] = set()
    paths: list[TracePath] = []
    for path in finished:
        if path.component_ids in seen:
            continue
        seen.add(path.component_ids)
        paths.append(path)

    by_connection = {c.connection_id: c for c in graph.connections}
    for path in paths:
        path.classification = _dominant_classification(path, by_connection)

    return TraceResult(
        query=start.name,
        paths=paths,
        components_touched=list(touched),
        layers_crossed=list(layers),
    )


def format_trace_output(result: TraceResult) -> str:
    lines = [
        f"Dataflow trace: {result.query}",
        "",
        f"Components touched: {len(result.components_touched)}",
        f"Layers crossed: {' → '.join(layer.value for layer in result.layers_crossed)}",
        f"Paths found: {len(result.paths)}",
        "",
    ]
    for i, path in enumerate(result.paths, 1):
        tag = f" [{path.classification.value}]" if path.classification else ""
        lines.append(f"Path {i}{tag}:")
        for j, step in enumerate(path.steps):
            prefix = "  " if j == 0 else "  → "
            file_ref = ""
            if step.file:
                file_ref = f" ({step.file}:{step.line})" if step.line else f" ({step.file})"
            lines.append(f"{prefix}{step.component.n} [{step.component.l}]{file_ref}")
        lines.append("")
    return "\n".join(lines)
