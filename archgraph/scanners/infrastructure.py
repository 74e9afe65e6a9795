"""Infrastructure scanner: deployment platforms, containers, CI/CD and IaC.

Platforms are detected from marker files in the project root, falling back
to environment variables. docker-compose services become components of
their own, linked to the Docker component and to each other.
"""

import os
from collections.abc import Mapping
from pathlib import Path

from archgraph.identity import new_component_id, new_connection_id
from archgraph.manifest_parser import ManifestParser
from archgraph.signature_registry import INFRA_SIGNATURES
from archgraph.types import (
    ArchitectureLayer,
    CodeLocation,
    CodeReference,
    Component,
    ComponentType,
    Connection,
    ConnectionType,
    Role,
    ScanResult,
    ScanWarning,
    Source,
    WarningType,
    now_ms,
)
from archgraph.utils.logging import logger

COMPOSE_FILES = ("docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml")

# image name fragment -> (type, layer)
COMPOSE_IMAGE_KINDS = {
    "postgres": (ComponentType.DATABASE, ArchitectureLayer.DATABASE),
    "mysql": (ComponentType.DATABASE, ArchitectureLayer.DATABASE),
    "mariadb": (ComponentType.DATABASE, ArchitectureLayer.DATABASE),
    "mongo": (ComponentType.DATABASE, ArchitectureLayer.DATABASE),
    "redis": (ComponentType.DATABASE, ArchitectureLayer.DATABASE),
    "rabbitmq": (ComponentType.QUEUE, ArchitectureLayer.QUEUE),
    "kafka": (ComponentType.QUEUE, ArchitectureLayer.QUEUE),
    "nats": (ComponentType.QUEUE, ArchitectureLayer.QUEUE),
}


def detect_infra(root: Path, signature: dict, environ: Mapping[str, str] | None = None) -> list[str] | None:
    """Config files (or ``ENV:NAME``) proving the platform is in use, else None."""
    environ = os.environ if environ is None else environ
    found: list[str] = []

    for marker in signature["files"]:
        if marker.startswith("*"):
            suffix = marker[1:]
            try:
                found.extend(sorted(p.name for p in root.iterdir() if p.name.endswith(suffix)))
            except OSError as e:
                logger.debug("Cannot list {root}: {err}", root=root, err=e)
        elif (root / marker).exists():
            found.append(marker)

    if found:
        return found

    for env_var in signature.get("env_vars", []):
        if environ.get(env_var):
            return [f"ENV:{env_var}"]

    return None


def _infra_component(name: str, purpose: str, config_files: list[str], timestamp: int) -> Component:
    return Component(
        component_id=new_component_id(ComponentType.INFRA, name.lower()),
        name=name,
        type=ComponentType.INFRA,
        role=Role(purpose, ArchitectureLayer.INFRA, critical=True),
        source=Source("auto", tuple(config_files), 1.0),
        tags=["infra", name.lower()],
        timestamp=timestamp,
        last_updated=timestamp,
    )


def parse_docker_compose(root: Path, parser: ManifestParser) -> tuple[str | None, dict[str, dict]]:
    """Return (compose file name, {service name: service definition})."""
    for filename in COMPOSE_FILES:
        path = root / filename
        if not path.exists():
            continue
        data = parser.parse_yaml(path)
        services = data.get("services") or {}
        if not isinstance(services, dict):
            return filename, {}
        return filename, {
            str(name): (spec if isinstance(spec, dict) else {}) for name, spec in services.items()
        }
    return None, {}


def parse_railway_config(root: Path, parser: ManifestParser) -> dict[str, str] | None:
    """Builder and start command from railway.toml, if present."""
    path = root / "railway.toml"
    if not path.exists():
        return None
    data = parser.parse_toml(path)
    info = {}
    builder = parser.extract_nested_value(data, ["build", "builder"])
    start = parser.extract_nested_value(data, ["deploy", "startCommand"])
    if isinstance(builder, str):
        info["build"] = builder
    if isinstance(start, str):
        info["start"] = start
    return info


def _compose_service_kind(spec: dict) -> tuple[ComponentType, ArchitectureLayer]:
    image = str(spec.get("image", "")).lower()
    for fragment, kind in COMPOSE_IMAGE_KINDS.items():
        if fragment in image:
            return kind
    return ComponentType.SERVICE, ArchitectureLayer.BACKEND


def _depends_on(spec: dict) -> list[str]:
    deps = spec.get("depends_on") or []
    if isinstance(deps, dict):
        return [str(d) for d in deps]
    if isinstance(deps, list):
        return [str(d) for d in deps]
    return []


def _compose_result(
    compose_file: str, services: dict[str, dict], docker: Component | None, timestamp: int
) -> tuple[list[Component], list[Connection]]:
    components: dict[str, Component] = {}
    for name, spec in services.items():
        component_type, layer = _compose_service_kind(spec)
        components[name] = Component(
            component_id=new_component_id(component_type, name),
            name=name,
            version=str(spec["image"]).rsplit(":", 1)[1] if ":" in str(spec.get("image", "")) else None,
            type=component_type,
            role=Role(f"docker-compose service ({spec.get('image', 'build')})", layer, critical=False),
            source=Source("auto", (compose_file,), 0.9),
            tags=["docker-compose", component_type.value, layer.value],
            metadata={"image": spec["image"]} if spec.get("image") else {},
            timestamp=timestamp,
            last_updated=timestamp,
        )

    connections: list[Connection] = []

    def link(src: Component, dst: Component, kind: ConnectionType, description: str) -> None:
        connections.append(
            Connection(
                connection_id=new_connection_id(kind),
                from_id=src.component_id,
                from_location=CodeLocation(compose_file, 0),
                to_id=dst.component_id,
                connection_type=kind,
                code_reference=CodeReference(compose_file, src.name, symbol_type="service"),
                description=description,
                detected_from="docker-compose",
                confidence=0.9,
                timestamp=timestamp,
                last_verified=timestamp,
            )
        )

    for name, spec in services.items():
        if docker is not None:
            link(components[name], docker, ConnectionType.DEPLOYS_TO, f"{name} runs in Docker")
        for dep in _depends_on(spec):
            if dep in components:
                link(components[name], components[dep], ConnectionType.SERVICE_CALL, f"{name} depends on {dep}")

    return list(components.values()), connections


def scan_infrastructure(root: Path, environ: Mapping[str, str] | None = None) -> ScanResult:
    timestamp = now_ms()
    parser = ManifestParser()
    components: list[Component] = []
    connections: list[Connection] = []

    by_name: dict[str, Component] = {}
    for name, signature in INFRA_SIGNATURES.items():
        config_files = detect_infra(root, signature, environ)
        if config_files:
            component = _infra_component(name, signature["purpose"], config_files, timestamp)
            by_name[name] = component
            components.append(component)

    railway = by_name.get("Railway")
    if railway is not None:
        info = parse_railway_config(root, parser)
        if info:
            railway.metadata.update(info)

    compose_file, services = parse_docker_compose(root, parser)
    if compose_file and services:
        extra_components, extra_connections = _compose_result(compose_file, services, by_name.get("Docker"), timestamp)
        components.extend(extra_components)
        connections.extend(extra_connections)

    warnings = [
        ScanWarning(WarningType.PARSE_ERROR, message, file=path.name) for path, message in parser.errors
    ]
    logger.debug("infrastructure: {n} components", n=len(components))
    return ScanResult(components, connections, warnings)
