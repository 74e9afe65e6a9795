"""How much of the project the stored graph actually explains.

A coverage report counts which source files are attributed to a component,
how connection confidence is distributed, and lists the gaps worth a look:
unmapped files, components nothing depends on, components that depend on
nothing, and low-confidence connections.
"""

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from archgraph.scanners.base import collect_source_files
from archgraph.types import ArchitectureLayer, Component, Connection, is_placeholder_id

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5
MAX_UNMAPPED_GAPS = 20
MAX_GAPS_SHOWN = 10
UNCLASSIFIED = "unclassified"

GAP_LABELS = {
    "unmapped-file": "Unmapped files",
    "zero-consumers": "Components with no consumers",
    "no-outgoing": "Components with no outgoing connections",
    "low-confidence-connection": "Low-confidence connections",
}


@dataclass(frozen=True)
class CoverageGap:
    type: str
    target: str
    detail: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "target": self.target, "detail": self.detail}


@dataclass
class CoverageReport:
    total_files: int
    mapped_files: int
    total_components: int
    total_connections: int
    by_confidence: dict[str, int]
    by_classification: dict[str, int]
    overall_score: float
    gaps: list[CoverageGap] = field(default_factory=list)

    @property
    def file_coverage(self) -> float:
        """Percentage of source files attributed to a component, 0-100."""
        if not self.total_files:
            return 0.0
        return round(self.mapped_files / self.total_files * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_files": self.total_files,
            "mapped_files": self.mapped_files,
            "file_coverage": self.file_coverage,
            "total_components": self.total_components,
            "total_connections": self.total_connections,
            "by_confidence": dict(self.by_confidence),
            "by_classification": dict(self.by_classification),
            "overall_score": self.overall_score,
            "gaps": [g.to_dict() for g in self.gaps],
        }


def confidence_bucket(confidence: float) -> str:
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def _gaps(
    components: list[Component], connections: list[Connection], unmapped: list[str]
) -> list[CoverageGap]:
    gaps = [
        CoverageGap("unmapped-file", path, "No component attributed to this file")
        for path in unmapped[:MAX_UNMAPPED_GAPS]
    ]

    targets = {c.to_id for c in connections}
    sources = {c.from_id for c in connections}
    for comp in components:
        if comp.layer is not ArchitectureLayer.EXTERNAL and comp.component_id not in targets:
            gaps.append(CoverageGap("zero-consumers", comp.name, "Nothing connects to this component"))
    for comp in components:
        if comp.layer in (ArchitectureLayer.DATABASE, ArchitectureLayer.EXTERNAL):
            continue
        if comp.component_id not in sources:
            gaps.append(CoverageGap("no-outgoing", comp.name, "This component connects to nothing"))

    names = {c.component_id: c.name for c in components}
    for conn in connections:
        if conn.confidence < MEDIUM_CONFIDENCE:
            label = f"{names.get(conn.from_id, conn.from_id)} -> {names.get(conn.to_id, conn.to_id)}"
            gaps.append(
                CoverageGap("low-confidence-connection", label, f"Confidence {conn.confidence:.2f}")
            )
    return gaps


def compute_coverage(
    components: list[Component],
    connections: list[Connection],
    root: Path,
    file_map: dict[str, str],
    include_tests: bool = False,
) -> CoverageReport:
    """Score how well ``components`` and ``connections`` cover the project at ``root``.

    The overall score blends mean connection confidence (60%) with the
    fraction of mapped source files (40%); a graph without connections
    scores 0.
    """
    files = collect_source_files(Path(root), include_tests)
    mapped = [f for f in files if f in file_map]
    unmapped = [f for f in files if f not in file_map]

    by_confidence = {"high": 0, "medium": 0, "low": 0}
    for conn in connections:
        by_confidence[confidence_bucket(conn.confidence)] += 1

    by_classification = Counter(
        conn.classification.value if conn.classification else UNCLASSIFIED for conn in connections
    )

    if connections:
        mean_confidence = sum(c.confidence for c in connections) / len(connections)
        file_ratio = len(mapped) / len(files) if files else 0.0
        overall = round(mean_confidence * 0.6 + file_ratio * 0.4, 2)
    else:
        overall = 0.0

    real = [c for c in components if not is_placeholder_id(c.component_id)]
    return CoverageReport(
        total_files=len(files),
        mapped_files=len(mapped),
        total_components=len(real),
        total_connections=len(connections),
        by_confidence=by_confidence,
        by_classification=dict(sorted(by_classification.items())),
        overall_score=overall,
        gaps=_gaps(real, connections, unmapped),
    )


def format_coverage_output(report: CoverageReport, gaps_only: bool = False) -> str:
    lines: list[str] = []
    if not gaps_only:
        lines += [
            f"Overall score: {report.overall_score:.2f}",
            f"Files: {report.mapped_files}/{report.total_files} mapped ({report.file_coverage}%)",
            f"Components: {report.total_components}",
            f"Connections: {report.total_connections}",
            "",
            "Confidence:",
        ]
        lines += [f"  {bucket}: {count}" for bucket, count in report.by_confidence.items()]
        if report.by_classification:
            lines.append("Classification:")
            lines += [f"  {name}: {count}" for name, count in report.by_classification.items()]
        lines.append("")

    if not report.gaps:
        lines.append("No coverage gaps found.")
        return "\n".join(lines)

    by_type: dict[str, list[CoverageGap]] = {}
    for gap in report.gaps:
        by_type.setdefault(gap.type, []).append(gap)
    for gap_type, group in by_type.items():
        lines.append(f"{GAP_LABELS.get(gap_type, gap_type)} ({len(group)}):")
        for gap in group[:MAX_GAPS_SHOWN]:
            lines.append(f"  - {gap.target}: {gap.detail}")
        if len(group) > MAX_GAPS_SHOWN:
            lines.append(f"  ... and {len(group) - MAX_GAPS_SHOWN} more")
    return "\n".join(lines)
