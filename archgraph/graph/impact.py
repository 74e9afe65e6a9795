"""Severity-scored impact analysis with one-hop transitive dependents."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from archgraph.graph.assembly import ArchitectureGraph
from archgraph.identity import to_compact_component, to_compact_connection
from archgraph.types import ArchitectureLayer, Component, Connection


class ImpactSeverity(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ImpactType(Enum):
    DIRECT = "direct"
    TRANSITIVE = "transitive"


@dataclass
class AffectedComponent:
    component: Component
    connection: Connection
    impact_type: ImpactType
    change_required: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": to_compact_component(self.component).to_dict(),
            "connection": to_compact_connection(self.connection).to_dict(),
            "impact_type": self.impact_type.value,
            "change_required": self.change_required,
        }


@dataclass
class ImpactAnalysis:
    component: Component
    severity: ImpactSeverity
    affected: list[AffectedComponent] = field(default_factory=list)
    total_files_affected: int = 0
    summary: str = ""

    @property
    def direct(self) -> list[AffectedComponent]:
        return [a for a in self.affected if a.impact_type is ImpactType.DIRECT]

    @property
    def transitive(self) -> list[AffectedComponent]:
        return [a for a in self.affected if a.impact_type is ImpactType.TRANSITIVE]

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": to_compact_component(self.component).to_dict(),
            "severity": self.severity.value,
            "affected": [a.to_dict() for a in self.affected],
            "total_files_affected": self.total_files_affected,
            "summary": self.summary,
        }


def compute_severity(component: Component, direct_dependent_count: int) -> ImpactSeverity:
    """First matching rule wins:

    - critical: database/infra layer, more than 5 dependents, or marked critical
    - high: backend layer, or 3 to 5 dependents
    - medium: exactly 2 dependents
    - low: otherwise
    """
    layer = component.layer
    if (
        layer in (ArchitectureLayer.DATABASE, ArchitectureLayer.INFRA)
        or direct_dependent_count > 5
        or component.role.critical
    ):
        return ImpactSeverity.CRITICAL
    if layer is ArchitectureLayer.BACKEND or 3 <= direct_dependent_count <= 5:
        return ImpactSeverity.HIGH
    if direct_dependent_count == 2:
        return ImpactSeverity.MEDIUM
    return ImpactSeverity.LOW


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def compute_impact(
    component: Component,
    components: list[Component],
    connections: list[Connection],
    graph: ArchitectureGraph | None = None,
) -> ImpactAnalysis:
    """Who breaks if ``component`` changes.

    Direct dependents have a connection into the component. Transitive
    dependents have a connection into a direct dependent and are neither the
    target nor a direct dependent themselves. Connections whose origin is not
    a known component (file placeholders) are skipped.
    """
    graph = graph or ArchitectureGraph.build(components, connections)
    target_id = component.component_id

    affected: list[AffectedComponent] = []
    files: set[str] = set()
    direct_ids: list[str] = []

    for conn in graph.incoming_of(target_id):
        dependent = graph.get(conn.from_id)
        if dependent is None:
            continue
        if dependent.component_id not in direct_ids:
            direct_ids.append(dependent.component_id)
        affected.append(
            AffectedComponent(
                component=dependent,
                connection=conn,
                impact_type=ImpactType.DIRECT,
                change_required=(
                    f"Uses {component.name} via {conn.connection_type.value} "
                    f"at {conn.code_reference.file or 'unknown'}"
                ),
            )
        )
        if conn.code_reference.file:
            files.add(conn.code_reference.file)

    direct_set = set(direct_ids)
    for direct_id in direct_ids:
        via = graph.get(direct_id)
        for conn in graph.incoming_of(direct_id):
            if conn.from_id in direct_set or conn.from_id == target_id:
                continue
            dependent = graph.get(conn.from_id)
            if dependent is None:
                continue
            affected.append(
                AffectedComponent(
                    component=dependent,
                    connection=conn,
                    impact_type=ImpactType.TRANSITIVE,
                    change_required=f"Indirectly affected via {via.name if via else direct_id}",
                )
            )
            if conn.code_reference.file:
                files.add(conn.code_reference.file)

    severity = compute_severity(component, len(direct_ids))
    transitive_count = sum(1 for a in affected if a.impact_type is ImpactType.TRANSITIVE)
    summary = (
        f"{severity.value.upper()}: {_plural(len(direct_ids), 'direct dependent')}, "
        f"{transitive_count} transitive, {_plural(len(files), 'file')} affected"
    )
    return ImpactAnalysis(component, severity, affected, len(files), summary)
