"""Architecture rules: structural checks over a stored graph.

Built-in rules cover orphans, layering violations, dependency status and
single points of failure. Projects add their own forbidden-connection rules
in ``<storage_dir>/rules.yaml``:

    - id: no-frontend-llm
      name: Frontend must not call AI providers
      severity: error
      description: Route AI calls through the backend
      forbidden:
        from: {layer: frontend}
        to: {type: llm}

Rules are pure functions of the component and connection lists.
"""

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from archgraph.exceptions import ConfigError
from archgraph.types import ArchitectureLayer, Component, ComponentStatus, Connection
from archgraph.utils.logging import logger

RULES_FILE = "rules.yaml"
SINGLE_POINT_THRESHOLD = 5


class RuleSeverity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


SEVERITY_ORDER = (RuleSeverity.ERROR, RuleSeverity.WARNING, RuleSeverity.INFO)
SEVERITY_LABELS = {RuleSeverity.ERROR: "ERROR", RuleSeverity.WARNING: "WARN", RuleSeverity.INFO: "INFO"}


@dataclass(frozen=True)
class RuleViolation:
    rule_id: str
    severity: RuleSeverity
    message: str
    component: str | None = None
    suggestion: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.component is not None:
            data["component"] = self.component
        if self.suggestion:
            data["suggestion"] = self.suggestion
        return data


Check = Callable[[list[Component], list[Connection]], list[RuleViolation]]


@dataclass(frozen=True)
class ArchitectureRule:
    id: str
    name: str
    description: str
    severity: RuleSeverity
    check: Check


# ---------------------------------------------------------------------------
# Built-in rules
# ---------------------------------------------------------------------------


def _orphans(components: list[Component], connections: list[Connection]) -> list[RuleViolation]:
    connected = {c.from_id for c in connections} | {c.to_id for c in connections}
    return [
        RuleViolation(
            "orphan-component",
            RuleSeverity.WARNING,
            f"{c.name} has no connections, it may be unused or untracked",
            component=c.name,
            suggestion="Verify this component is used, or remove it if not needed",
        )
        for c in components
        if c.component_id not in connected
    ]


def _database_without_backend(components: list[Component], connections: list[Connection]) -> list[RuleViolation]:
    backend = {c.component_id for c in components if c.layer is ArchitectureLayer.BACKEND}
    fed = {conn.to_id for conn in connections if conn.from_id in backend}
    return [
        RuleViolation(
            "database-no-backend",
            RuleSeverity.WARNING,
            f"{c.name} (database) has no incoming connections from the backend layer",
            component=c.name,
            suggestion="Ensure backend services connect to this database, or verify it is accessed another way",
        )
        for c in components
        if c.layer is ArchitectureLayer.DATABASE and c.component_id not in fed
    ]


def _frontend_direct_db(components: list[Component], connections: list[Connection]) -> list[RuleViolation]:
    by_id = {c.component_id: c for c in components}
    violations = []
    for conn in connections:
        source, target = by_id.get(conn.from_id), by_id.get(conn.to_id)
        if source is None or target is None:
            continue
        if source.layer is ArchitectureLayer.FRONTEND and target.layer is ArchitectureLayer.DATABASE:
            violations.append(
                RuleViolation(
                    "frontend-direct-db",
                    RuleSeverity.ERROR,
                    f"{source.name} (frontend) connects directly to {target.name} (database)",
                    component=source.name,
                    suggestion="Add a backend API layer between frontend and database",
                )
            )
    return violations


def _status_rule(
    rule_id: str, status: ComponentStatus, severity: RuleSeverity, message: str, suggestion: str
) -> Check:
    def check(components: list[Component], connections: list[Connection]) -> list[RuleViolation]:
        return [
            RuleViolation(
                rule_id,
                severity,
                message.format(name=c.name),
                component=c.name,
                suggestion=suggestion.format(name=c.name),
            )
            for c in components
            if c.status is status
        ]

    return check


def _single_point_of_failure(components: list[Component], connections: list[Connection]) -> list[RuleViolation]:
    dependents = Counter(conn.to_id for conn in connections)
    return [
        RuleViolation(
            "single-point-of-failure",
            RuleSeverity.WARNING,
            f"{c.name} has {dependents[c.component_id]} dependents and is a single point of failure",
            component=c.name,
            suggestion="Consider adding redundancy or splitting responsibilities",
        )
        for c in components
        if c.layer is ArchitectureLayer.BACKEND and dependents[c.component_id] > SINGLE_POINT_THRESHOLD
    ]


def builtin_rules() -> list[ArchitectureRule]:
    return [
        ArchitectureRule(
            "orphan-component",
            "Orphan Component",
            "Component has no incoming or outgoing connections",
            RuleSeverity.WARNING,
            _orphans,
        ),
        ArchitectureRule(
            "database-no-backend",
            "Database Without Backend",
            "Database layer component with no incoming connection from the backend",
            RuleSeverity.WARNING,
            _database_without_backend,
        ),
        ArchitectureRule(
            "frontend-direct-db",
            "Frontend Direct Database Access",
            "Frontend connects directly to the database, skipping the backend",
            RuleSeverity.ERROR,
            _frontend_direct_db,
        ),
        ArchitectureRule(
            "unused-package",
            "Unused Package",
            "Component with status unused",
            RuleSeverity.INFO,
            _status_rule(
                "unused-package",
                ComponentStatus.UNUSED,
                RuleSeverity.INFO,
                "{name} is detected but unused",
                "Remove {name} from the project manifest",
            ),
        ),
        ArchitectureRule(
            "vulnerable-dependency",
            "Vulnerable Dependency",
            "Component with status vulnerable",
            RuleSeverity.ERROR,
            _status_rule(
                "vulnerable-dependency",
                ComponentStatus.VULNERABLE,
                RuleSeverity.ERROR,
                "{name} has known security vulnerabilities",
                "Update {name} to a patched version",
            ),
        ),
        ArchitectureRule(
            "deprecated-dependency",
            "Deprecated Dependency",
            "Component with status deprecated",
            RuleSeverity.WARNING,
            _status_rule(
                "deprecated-dependency",
                ComponentStatus.DEPRECATED,
                RuleSeverity.WARNING,
                "{name} is deprecated",
                "Find a replacement for {name} before it becomes unmaintained",
            ),
        ),
        ArchitectureRule(
            "single-point-of-failure",
            "Single Point of Failure",
            f"Backend component with more than {SINGLE_POINT_THRESHOLD} dependents",
            RuleSeverity.WARNING,
            _single_point_of_failure,
        ),
    ]


# ---------------------------------------------------------------------------
# Custom rules
# ---------------------------------------------------------------------------


def matches_pattern(component: Component, pattern: dict[str, str] | None) -> bool:
    """Layer and type must be equal; name is a case-insensitive substring. No pattern matches all."""
    if not pattern:
        return True
    if "layer" in pattern and component.layer.value != pattern["layer"]:
        return False
    if "type" in pattern and component.type.value != pattern["type"]:
        return False
    if "name" in pattern and pattern["name"].lower() not in component.name.lower():
        return False
    return True


def custom_rule(entry: dict[str, Any]) -> ArchitectureRule:
    """Build a forbidden-connection rule from one rules file entry.

    Raises ValueError if the entry has no id or an unknown severity.
    """
    rule_id = entry.get("id")
    if not rule_id:
        raise ValueError("custom rule is missing an id")
    severity = RuleSeverity(entry.get("severity"))
    name = entry.get("name") or rule_id
    description = entry.get("description") or ""
    forbidden = entry.get("forbidden")

    def check(components: list[Component], connections: list[Connection]) -> list[RuleViolation]:
        if not forbidden:
            return []
        by_id = {c.component_id: c for c in components}
        violations = []
        for conn in connections:
            source, target = by_id.get(conn.from_id), by_id.get(conn.to_id)
            if source is None or target is None:
                continue
            if matches_pattern(source, forbidden.get("from")) and matches_pattern(target, forbidden.get("to")):
                violations.append(
                    RuleViolation(
                        rule_id,
                        severity,
                        f"{source.name} -> {target.name} violates rule: {name}",
                        component=source.name,
                        suggestion=description or None,
                    )
                )
        return violations

    return ArchitectureRule(rule_id, name, description, severity, check)


def load_custom_rules(storage_dir: Path) -> list[ArchitectureRule]:
    """Rules from ``storage_dir/rules.yaml``; a missing file means none.

    Invalid entries are skipped with a warning. A file that is not a YAML
    list raises ConfigError.
    """
    path = Path(storage_dir) / RULES_FILE
    if not path.exists():
        return []

    try:
        with open(path, encoding="utf-8") as f:
            entries = yaml.safe_load(f) or []
    except (yaml.YAMLError, OSError) as e:
        raise ConfigError(f"Failed to read {path}: {e}", details={"path": str(path)}) from e
    if not isinstance(entries, list):
        raise ConfigError(f"{path} must contain a list of rules", details={"path": str(path)})

    rules = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning("Skipping rule #{i} in {path}: not a mapping", i=index, path=path)
            continue
        try:
            rules.append(custom_rule(entry))
        except ValueError as e:
            logger.warning("Skipping rule #{i} in {path}: {err}", i=index, path=path, err=e)
    return rules


def check_rules(
    components: list[Component], connections: list[Connection], rules: list[ArchitectureRule] | None = None
) -> list[RuleViolation]:
    """Run ``rules`` (default: the built-in rules) in order and collect every violation."""
    violations: list[RuleViolation] = []
    for rule in rules if rules is not None else builtin_rules():
        found = rule.check(components, connections)
        logger.debug("rule {id}: {n} violations", id=rule.id, n=len(found))
        violations.extend(found)
    return violations


def format_rules_output(violations: list[RuleViolation], severity: RuleSeverity | None = None) -> str:
    shown = [v for v in violations if severity is None or v.severity is severity]
    if not shown:
        return "No architecture rule violations found."

    lines = [f"Architecture rules: {len(shown)} violation(s)", ""]
    for level in SEVERITY_ORDER:
        group = [v for v in shown if v.severity is level]
        if not group:
            continue
        lines.append(f"{SEVERITY_LABELS[level]} ({len(group)}):")
        for v in group:
            component = f" [{v.component}]" if v.component else ""
            lines.append(f"  - {v.message}{component}")
            if v.suggestion:
                lines.append(f"    -> {v.suggestion}")
        lines.append("")
    return "\n".join(lines)
