"""Indexed, read-only view over a flat component and connection list."""

from collections import defaultdict
from dataclasses import dataclass, field

from archgraph.types import Component, Connection


@dataclass
class ArchitectureGraph:
    """Id lookup plus outgoing/incoming adjacency.

    Adjacency lists keep the input order of ``connections`` so that every
    traversal over the graph is reproducible. Nothing here mutates the
    components or connections it was built from.
    """

    components: list[Component] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    by_id: dict[str, Component] = field(default_factory=dict)
    outgoing: dict[str, list[Connection]] = field(default_factory=dict)
    incoming: dict[str, list[Connection]] = field(default_factory=dict)

    @classmethod
    def build(cls, components: list[Component], connections: list[Connection]) -> "ArchitectureGraph":
        outgoing: dict[str, list[Connection]] = defaultdict(list)
        incoming: dict[str, list[Connection]] = defaultdict(list)
        for conn in connections:
            outgoing[conn.from_id].append(conn)
            incoming[conn.to_id].append(conn)
        return cls(
            components=list(components),
            connections=list(connections),
            by_id={c.component_id: c for c in components},
            outgoing=dict(outgoing),
            incoming=dict(incoming),
        )

    def get(self, component_id: str) -> Component | None:
        return self.by_id.get(component_id)

    def outgoing_of(self, component_id: str) -> list[Connection]:
        return self.outgoing.get(component_id, [])

    def incoming_of(self, component_id: str) -> list[Connection]:
        return self.incoming.get(component_id, [])
