"""Executive summary and stable JSON envelope for machine consumers.

``build_executive_summary`` condenses a stored graph into risks, blockers,
suggested next actions and compact component/connection records with short
keys. ``wrap_in_envelope`` gives any command payload the same top-level
shape: ``command``, ``data``, ``schema_version``, ``timestamp`` and, when
given, ``metadata``, with keys sorted.
"""

import json
import re
from collections import Counter
from typing import Any

from archgraph.storage import SCHEMA_VERSION
from archgraph.types import Component, ComponentStatus, ComponentType, Connection, now_ms

_MAJOR = re.compile(r"(\d+)")

AUDIT_COMMANDS = {ComponentType.NPM: "npm audit fix", ComponentType.PIP: "pip-audit --fix"}
OUTDATED_COMMANDS = {ComponentType.NPM: "npm outdated", ComponentType.PIP: "pip list --outdated"}


def wrap_in_envelope(command: str, data: Any, metadata: dict[str, Any] | None = None) -> str:
    envelope: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "command": command,
        "timestamp": now_ms(),
        "data": data,
    }
    if metadata:
        envelope["metadata"] = metadata
    return json.dumps(dict(sorted(envelope.items())), indent=2)


def compact_component(component: Component) -> dict[str, Any]:
    return {
        "id": component.component_id,
        "n": component.name,
        "t": component.type.value,
        "v": component.version,
        "l": component.layer.value,
        "s": component.status.value,
    }


def compact_connection(connection: Connection) -> dict[str, Any]:
    return {
        "id": connection.connection_id,
        "f": connection.from_id,
        "t": connection.to_id,
        "ct": connection.connection_type.value,
        "file": connection.code_reference.file,
        "sym": connection.code_reference.symbol,
    }


def _major(version: str | None) -> int | None:
    match = _MAJOR.search(version or "")
    return int(match.group(1)) if match else None


def is_major_update(component: Component) -> bool:
    """True when the latest known version has a higher major number than the installed one."""
    if component.health is None:
        return False
    current, latest = _major(component.version), _major(component.health.latest_version)
    return current is not None and latest is not None and latest > current


def _risks(components: list[Component]) -> list[dict[str, str]]:
    risks = []
    for c in components:
        if c.status is ComponentStatus.VULNERABLE:
            risks.append({
                "type": "vulnerability",
                "severity": "critical",
                "component": c.name,
                "message": f"{c.name} has known vulnerabilities",
            })
        elif c.status is ComponentStatus.DEPRECATED:
            risks.append({
                "type": "deprecated",
                "severity": "high",
                "component": c.name,
                "message": f"{c.name} is deprecated",
            })
        elif c.status is ComponentStatus.OUTDATED:
            major = is_major_update(c)
            latest = c.health.latest_version if c.health else None
            kind = "a major" if major else "an"
            message = f"{c.name} has {kind} update available"
            if latest:
                message += f" ({latest})"
            risks.append({
                "type": "outdated",
                "severity": "high" if major else "medium",
                "component": c.name,
                "message": message,
            })
    return risks


def _blockers(components: list[Component]) -> list[dict[str, str]]:
    return [
        {"type": "unused", "component": c.name, "message": f"{c.name} is detected but unused, consider removing it"}
        for c in components
        if c.status is ComponentStatus.UNUSED
    ]


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _ecosystem_command(components: list[Component], status: ComponentStatus, commands: dict) -> str | None:
    """Command for the package ecosystem most of the ``status`` components belong to."""
    types = Counter(c.type for c in components if c.status is status and c.type in commands)
    if not types:
        return None
    return commands[types.most_common(1)[0][0]]


def _next_actions(
    components: list[Component], risks: list[dict[str, str]], blockers: list[dict[str, str]]
) -> list[dict[str, str]]:
    counts = Counter(r["type"] for r in risks)
    actions = []

    def add(action: str, reason: str, command: str | None = None):
        entry = {"action": action, "reason": reason}
        if command:
            entry["command"] = command
        actions.append(entry)

    if counts["vulnerability"]:
        add(
            f"Fix {_plural(counts['vulnerability'], 'vulnerable package')}",
            "Security vulnerabilities detected",
            _ecosystem_command(components, ComponentStatus.VULNERABLE, AUDIT_COMMANDS),
        )
    if counts["outdated"]:
        add(
            f"Update {_plural(counts['outdated'], 'outdated package')}",
            "Newer versions available",
            _ecosystem_command(components, ComponentStatus.OUTDATED, OUTDATED_COMMANDS),
        )
    if counts["deprecated"]:
        add(
            f"Replace {_plural(counts['deprecated'], 'deprecated package')}",
            "Deprecated packages may lose support",
        )
    if blockers:
        add(
            f"Review {_plural(len(blockers), 'unused component')}",
            "Unused dependencies add weight and attack surface",
        )
    return actions


def build_executive_summary(
    components: list[Component],
    connections: list[Connection],
    project_path: str,
    git: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Orientation summary of a stored graph for an automated consumer."""
    risks = _risks(components)
    blockers = _blockers(components)
    summary: dict[str, Any] = {
        "project_path": project_path,
        "timestamp": now_ms(),
        "risks": risks,
        "blockers": blockers,
        "next_actions": _next_actions(components, risks, blockers),
        "stats": {
            "total_components": len(components),
            "total_connections": len(connections),
            "outdated_count": sum(1 for c in components if c.status is ComponentStatus.OUTDATED),
            "vulnerable_count": sum(1 for c in components if c.status is ComponentStatus.VULNERABLE),
        },
        "components": [compact_component(c) for c in components],
        "connections": [compact_connection(c) for c in connections],
    }
    if git:
        summary["git"] = git
    return summary
