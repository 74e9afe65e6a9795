"""Focused graph slices for export (JSON or Mermaid)."""

import re
from dataclasses import dataclass, field
from typing import Any

from archgraph.graph.assembly import ArchitectureGraph
from archgraph.identity import CompactComponent, CompactConnection, to_compact_component, to_compact_connection
from archgraph.resolve import resolve_component
from archgraph.types import ArchitectureLayer, Component, Connection, SemanticClassification

_MERMAID_UNSAFE = re.compile(r"[^a-zA-Z0-9_]")
MERMAID_LABEL_CHARS = 40


@dataclass
class SubgraphOptions:
    focus: list[str] = field(default_factory=list)
    layers: list[ArchitectureLayer] = field(default_factory=list)
    classification: SemanticClassification | None = None
    depth: int = 2
    max_nodes: int = 50


@dataclass
class SubgraphResult:
    components: list[CompactComponent] = field(default_factory=list)
    connections: list[CompactConnection] = field(default_factory=list)

    @property
    def stats(self) -> dict[str, int]:
        return {"nodes": len(self.components), "edges": len(self.connections)}

    def to_dict(self) -> dict[str, Any]:
        return {
            "components": [c.to_dict() for c in self.components],
            "connections": [c.to_dict() for c in self.connections],
            "stats": self.stats,
        }


def _neighbourhood(graph: ArchitectureGraph, seeds: list[str], depth: int) -> set[str]:
    visited = set(seeds)
    frontier = list(seeds)
    for _ in range(depth):
        next_frontier: list[str] = []
        for component_id in frontier:
            for conn in graph.outgoing_of(component_id):
                if conn.to_id not in visited:
                    visited.add(conn.to_id)
                    next_frontier.append(conn.to_id)
            for conn in graph.incoming_of(component_id):
                if conn.from_id not in visited:
                    visited.add(conn.from_id)
                    next_frontier.append(conn.from_id)
        frontier = next_frontier
    return visited


def extract_subgraph(
    components: list[Component],
    connections: list[Connection],
    options: SubgraphOptions | None = None,
    graph: ArchitectureGraph | None = None,
) -> SubgraphResult:
    """Slice the graph around ``options.focus`` (or all of it).

    Filters apply in order: neighbourhood, layers, endpoints present,
    classification, then ``max_nodes`` truncation in component order.
    Unresolvable focus names give an empty result.
    """
    options = options or SubgraphOptions()
    graph = graph or ArchitectureGraph.build(components, connections)

    if options.focus:
        seeds: list[str] = []
        for query in options.focus:
            resolved = resolve_component(query, components)
            if resolved is not None and resolved.component_id not in seeds:
                seeds.append(resolved.component_id)
        if not seeds:
            return SubgraphResult()
        selected = _neighbourhood(graph, seeds, options.depth)
    else:
        selected = {c.component_id for c in components}

    if options.layers:
        allowed = set(options.layers)
        selected = {
            cid for cid in selected if cid not in graph.by_id or graph.by_id[cid].layer in allowed
        }

    kept_connections = [c for c in connections if c.from_id in selected and c.to_id in selected]
    if options.classification is not None:
        kept_connections = [c for c in kept_connections if c.classification == options.classification]

    kept_components = [c for c in components if c.component_id in selected][: options.max_nodes]
    kept_ids = {c.component_id for c in kept_components}
    kept_connections = [c for c in kept_connections if c.from_id in kept_ids and c.to_id in kept_ids]

    return SubgraphResult(
        components=[to_compact_component(c) for c in kept_components],
        connections=[to_compact_connection(c) for c in kept_connections],
    )


def _mermaid_id(component_id: str) -> str:
    return _MERMAID_UNSAFE.sub("_", component_id)


def subgraph_to_mermaid(result: SubgraphResult) -> str:
    lines = ["graph TD", ""]
    for comp in result.components:
        label = comp.n.replace('"', "'")[:MERMAID_LABEL_CHARS]
        lines.append(f'  {_mermaid_id(comp.id)}["{label}"]')
    lines.append("")
    for conn in result.connections:
        lines.append(f"  {_mermaid_id(conn.f)} --> {_mermaid_id(conn.t)}")
    return "\n".join(lines)
