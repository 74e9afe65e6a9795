"""Line-level detection of calls to known external services."""

import re

from archgraph.identity import new_component_id, new_connection_id
from archgraph.scanners.base import FileSet, find_containing_function, truncate_snippet
from archgraph.signature_registry import SERVICE_SIGNATURES
from archgraph.types import (
    FILE_PLACEHOLDER_PREFIX,
    ArchitectureLayer,
    CodeLocation,
    CodeReference,
    Component,
    ComponentType,
    Connection,
    ConnectionType,
    Role,
    ScanResult,
    Source,
    now_ms,
)
from archgraph.utils.logging import logger

SERVICE_SNIPPET_CHARS = 100

# Compiled once at import
_COMPILED = {
    name: [re.compile(p) for p in signature["patterns"]] for name, signature in SERVICE_SIGNATURES.items()
}


def _service_component(name: str, signature: dict, timestamp: int) -> Component:
    component_type = ComponentType.coerce(signature["type"])
    layer = ArchitectureLayer(signature["layer"])
    return Component(
        component_id=new_component_id(component_type, name),
        name=name,
        type=component_type,
        role=Role(signature["purpose"], layer, critical=True),
        source=Source("auto", (), 0.9),
        tags=[component_type.value, layer.value],
        timestamp=timestamp,
        last_updated=timestamp,
    )


def scan_service_calls(file_set: FileSet) -> ScanResult:
    """One component per detected service, one connection per matching line.

    Only the first matching pattern of a service counts on a given line.
    """
    timestamp = now_ms()
    services: dict[str, Component] = {}
    connections: list[Connection] = []

    for source in file_set.files:
        lines = source.lines
        for name, patterns in _COMPILED.items():
            for i, line in enumerate(lines):
                regex = next((p for p in patterns if p.search(line)), None)
                if regex is None:
                    continue

                if name not in services:
                    services[name] = _service_component(name, SERVICE_SIGNATURES[name], timestamp)

                function_name = find_containing_function(lines, i)
                connections.append(
                    Connection(
                        connection_id=new_connection_id(ConnectionType.SERVICE_CALL),
                        from_id=f"{FILE_PLACEHOLDER_PREFIX}{source.path}",
                        from_location=CodeLocation(source.path, i + 1, function=function_name),
                        to_id=services[name].component_id,
                        connection_type=ConnectionType.SERVICE_CALL,
                        code_reference=CodeReference(
                            file=source.path,
                            symbol=function_name or f"anonymous_{i + 1}",
                            symbol_type="function" if function_name else None,
                            line_start=i + 1,
                            code_snippet=truncate_snippet(line, SERVICE_SNIPPET_CHARS),
                        ),
                        description=f"Calls {name}",
                        detected_from=f"Pattern: {regex.pattern}",
                        confidence=0.85,
                        timestamp=timestamp,
                        last_verified=timestamp,
                    )
                )

    logger.debug(
        "service calls: {s} services, {c} call sites", s=len(services), c=len(connections)
    )
    return ScanResult(list(services.values()), connections, [])
