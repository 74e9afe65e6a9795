"""Scan orchestrator.

Runs the scanners in a fixed order (packages, infrastructure, then code
connections), merges their output into one consistent graph and reports
timing and counts.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Any

from archgraph.classify import apply_classifications, classify_all_connections
from archgraph.config import RuntimeConfig
from archgraph.exceptions import GraphIntegrityError
from archgraph.identity import link_references
from archgraph.scanners import (
    detect_package_managers,
    load_project_files,
    scan_infrastructure,
    scan_npm_packages,
    scan_pip_packages,
    link_prompt_usage,
    scan_data_flow,
    scan_prompt_locations,
    scan_service_calls,
    scan_swift_packages,
    trace_llm_calls,
)
from archgraph.scanners.llm_tracer import SDKS, TracedLLMCall
from archgraph.scanners.packages import declared_version
from archgraph.types import (
    Component,
    ComponentType,
    Connection,
    ScanResult,
    ScanWarning,
    WarningType,
    is_placeholder_id,
)
from archgraph.utils.logging import logger

PACKAGE_SCANNERS = {
    "npm": scan_npm_packages,
    "pip": scan_pip_packages,
    "spm": scan_swift_packages,
}


@dataclass
class ScanStats:
    scan_duration_ms: int = 0
    components_found: int = 0
    connections_found: int = 0
    warnings_count: int = 0
    files_scanned: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "scan_duration_ms": self.scan_duration_ms,
            "components_found": self.components_found,
            "connections_found": self.connections_found,
            "warnings_count": self.warnings_count,
            "files_scanned": self.files_scanned,
        }


@dataclass
class ScanOutcome:
    components: list[Component] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    warnings: list[ScanWarning] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)
    llm_calls: list[TracedLLMCall] = field(default_factory=list)


def deduplicate_components(components: list[Component]) -> tuple[list[Component], dict[str, str]]:
    """Keep one component per name; higher source confidence wins, first wins ties.

    Returns the survivors in first-seen name order and a mapping from every
    dropped component id to the id that replaced it.
    """
    by_name: dict[str, Component] = {}
    for component in components:
        existing = by_name.get(component.name)
        if existing is None or component.source.confidence > existing.source.confidence:
            by_name[component.name] = component

    survivors = list(by_name.values())
    replaced = {
        c.component_id: by_name[c.name].component_id
        for c in components
        if by_name[c.name].component_id != c.component_id
    }
    return survivors, replaced


def rewrite_endpoints(connections: list[Connection], replaced: dict[str, str]) -> list[Connection]:
    if not replaced:
        return list(connections)
    return [
        replace(conn, from_id=replaced.get(conn.from_id, conn.from_id), to_id=replaced.get(conn.to_id, conn.to_id))
        for conn in connections
    ]


def apply_confidence_threshold(
    connections: list[Connection], threshold: float
) -> tuple[list[Connection], list[ScanWarning]]:
    kept: list[Connection] = []
    warnings: list[ScanWarning] = []
    for conn in connections:
        if conn.confidence >= threshold:
            kept.append(conn)
            continue
        warnings.append(
            ScanWarning(
                WarningType.LOW_CONFIDENCE,
                f"Dropped {conn.connection_type.value} connection ({conn.confidence:.2f} < {threshold:.2f}): "
                f"{conn.description}",
                file=conn.code_reference.file or None,
                line=conn.code_reference.line_start,
            )
        )
    return kept, warnings


def validate_connections(components: list[Component], connections: list[Connection]) -> None:
    """Raise GraphIntegrityError if a connection names an unknown component."""
    known = {c.component_id for c in components}
    for conn in connections:
        for endpoint in (conn.from_id, conn.to_id):
            if endpoint in known or is_placeholder_id(endpoint):
                continue
            raise GraphIntegrityError(
                f"Connection {conn.connection_id} references unknown component {endpoint}",
                details={"connection_id": conn.connection_id, "component_id": endpoint},
            )


def _annotate_llm_versions(config: RuntimeConfig, components: list[Component]) -> None:
    package_names = {sdk.provider: list(sdk.package_names) for sdk in SDKS}
    for component in components:
        if component.type is ComponentType.LLM and component.version is None:
            component.version = declared_version(config.root, package_names.get(component.name, []))


def scan(config: RuntimeConfig, quick: bool = False) -> ScanOutcome:
    """Run every scanner over ``config.root`` and merge the results.

    ``quick`` limits the scan to manifests and infrastructure markers.
    """
    start = time.monotonic()
    root = config.root
    merged = ScanResult()
    llm_calls: list[TracedLLMCall] = []
    files_scanned = 0

    logger.info("Scanning packages in {root}", root=root)
    for manager in detect_package_managers(root):
        merged = merged.merge(PACKAGE_SCANNERS[manager](root))

    logger.info("Scanning infrastructure")
    merged = merged.merge(scan_infrastructure(root))

    if not quick:
        logger.info("Scanning code connections")
        file_set = load_project_files(config)
        files_scanned = len(file_set.files)
        merged = merged.merge(ScanResult(warnings=file_set.warnings))
        merged = merged.merge(scan_service_calls(file_set))

        traced = trace_llm_calls(file_set, config)
        _annotate_llm_versions(config, traced.scan_result.components)
        llm_calls = traced.calls
        merged = merged.merge(traced.scan_result)

        merged = merged.merge(scan_data_flow(file_set))

        prompts = scan_prompt_locations(file_set)
        provider_ids = {c.name: c.component_id for c in traced.scan_result.components}
        usage = link_prompt_usage(prompts, traced.calls, provider_ids, file_set)
        merged = merged.merge(prompts).merge(ScanResult(connections=usage))

    components, replaced = deduplicate_components(merged.components)
    connections = rewrite_endpoints(merged.connections, replaced)

    connections = apply_classifications(connections, classify_all_connections(connections, components))
    connections, dropped = apply_confidence_threshold(connections, config.confidence_threshold)
    warnings = merged.warnings + dropped

    components = link_references(components, connections)
    validate_connections(components, connections)

    stats = ScanStats(
        scan_duration_ms=int((time.monotonic() - start) * 1000),
        components_found=len(components),
        connections_found=len(connections),
        warnings_count=len(warnings),
        files_scanned=files_scanned,
    )
    logger.info(
        "Scan complete: {c} components, {n} connections, {w} warnings in {ms}ms",
        c=stats.components_found,
        n=stats.connections_found,
        w=stats.warnings_count,
        ms=stats.scan_duration_ms,
    )
    return ScanOutcome(components, connections, warnings, stats, llm_calls)
