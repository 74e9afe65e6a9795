"""Architecture snapshots, structured diffs and the change timeline.

Snapshots match components by (name, type) and connections by
(from name, to name, type) because component ids are regenerated on every
scan. Nothing in this module performs I/O; persistence lives in
``archgraph.storage``.

Snapshot and timeline ids are a UTC timestamp at millisecond resolution plus
a random base36 suffix, e.g. ``SNAP_20240101120000123_k3x9q2``. Two ids made
in the same millisecond collide with probability 1/36**6. The fixed-width
stamp keeps lexicographic order chronological.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from archgraph.identity import random_suffix
from archgraph.types import PACKAGE_TYPES, ArchitectureLayer, Component, ComponentType, Connection, now_ms

SNAPSHOT_VERSION = "2.0"
TIMELINE_VERSION = "1.0"
LEGACY_LAYER = ArchitectureLayer.EXTERNAL.value
UNKNOWN_NAME = "?"
MISSING_VALUE = "—"
HIGH_CHURN_RATIO = 0.2
ID_SUFFIX_LENGTH = 6

_CRITICAL_LAYERS = frozenset({ArchitectureLayer.DATABASE.value, ArchitectureLayer.INFRA.value})
_PACKAGE_TYPE_VALUES = frozenset(t.value for t in PACKAGE_TYPES)
_MAJOR_BUMP = re.compile(r"^version: (\d+)\.\d+\.\d+ → (\d+)\.\d+\.\d+")


class DiffSignificance(Enum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


class DiffTrigger(Enum):
    LAYER_CHANGE = "layer-change"
    HIGH_CHURN = "high-churn"
    NEW_LAYER = "new-layer"
    NEW_PACKAGE = "new-package"
    CONNECTION_CHANGE = "connection-change"
    VERSION_BUMP = "version-bump"
    METADATA_ONLY = "metadata-only"


MAJOR_TRIGGERS = frozenset({DiffTrigger.LAYER_CHANGE, DiffTrigger.HIGH_CHURN, DiffTrigger.NEW_LAYER})
MINOR_TRIGGERS = frozenset({DiffTrigger.NEW_PACKAGE, DiffTrigger.CONNECTION_CHANGE, DiffTrigger.VERSION_BUMP})


def _stamp(timestamp_ms: int) -> str:
    seconds, millis = divmod(timestamp_ms, 1000)
    when = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"{when}{millis:03d}_{random_suffix(ID_SUFFIX_LENGTH)}"


def new_snapshot_id(timestamp_ms: int | None = None) -> str:
    return f"SNAP_{_stamp(now_ms() if timestamp_ms is None else timestamp_ms)}"


def new_timeline_id(timestamp_ms: int | None = None) -> str:
    return f"TL_{_stamp(now_ms() if timestamp_ms is None else timestamp_ms)}"


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SnapshotComponent:
    component_id: str
    name: str
    type: str
    layer: str
    status: str = "active"
    critical: bool = False
    version: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return self.name, self.type

    def to_dict(self) -> dict[str, Any]:
        return {
            "component_id": self.component_id,
            "name": self.name,
            "type": self.type,
            "version": self.version,
            "status": self.status,
            "layer": self.layer,
            "critical": self.critical,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SnapshotComponent":
        return cls(
            component_id=data.get("component_id", ""),
            name=data.get("name", UNKNOWN_NAME),
            type=data.get("type", ComponentType.OTHER.value),
            version=data.get("version"),
            status=data.get("status") or "active",
            layer=data.get("layer") or LEGACY_LAYER,
            critical=bool(data.get("critical", False)),
        )


@dataclass(frozen=True)
class SnapshotConnection:
    connection_id: str
    from_id: str
    to_id: str
    type: str
    from_name: str
    to_name: str
    file: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return self.from_name, self.to_name, self.type

    def to_dict(self) -> dict[str, Any]:
        data = {
            "connection_id": self.connection_id,
            "from": self.from_id,
            "to": self.to_id,
            "type": self.type,
            "from_name": self.from_name,
            "to_name": self.to_name,
        }
        if self.file is not None:
            data["file"] = self.file
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SnapshotConnection":
        return cls(
            connection_id=data.get("connection_id", ""),
            from_id=data.get("from", ""),
            to_id=data.get("to", ""),
            type=data.get("type", "other"),
            from_name=data.get("from_name", UNKNOWN_NAME),
            to_name=data.get("to_name", UNKNOWN_NAME),
            file=data.get("file"),
        )


@dataclass
class Snapshot:
    snapshot_id: str
    timestamp: int
    components: list[SnapshotComponent] = field(default_factory=list)
    connections: list[SnapshotConnection] = field(default_factory=list)
    reason: str | None = None
    snapshot_version: str = SNAPSHOT_VERSION

    @property
    def stats(self) -> dict[str, int]:
        return {"total_components": len(self.components), "total_connections": len(self.connections)}

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot_id": self.snapshot_id,
            "snapshot_version": self.snapshot_version,
            "timestamp": self.timestamp,
            "reason": self.reason,
            "components": [c.to_dict() for c in self.components],
            "connections": [c.to_dict() for c in self.connections],
            "stats": self.stats,
        }


def build_snapshot(
    components: list[Component],
    connections: list[Connection],
    reason: str | None = "post-scan",
    timestamp: int | None = None,
) -> Snapshot:
    timestamp = now_ms() if timestamp is None else timestamp
    names = {c.component_id: c.name for c in components}
    return Snapshot(
        snapshot_id=new_snapshot_id(timestamp),
        timestamp=timestamp,
        reason=reason,
        components=[
            SnapshotComponent(
                component_id=c.component_id,
                name=c.name,
                type=c.type.value,
                version=c.version,
                status=c.status.value,
                layer=c.layer.value,
                critical=c.role.critical,
            )
            for c in components
        ],
        connections=[
            SnapshotConnection(
                connection_id=c.connection_id,
                from_id=c.from_id,
                to_id=c.to_id,
                type=c.connection_type.value,
                from_name=names.get(c.from_id, UNKNOWN_NAME),
                to_name=names.get(c.to_id, UNKNOWN_NAME),
                file=c.code_reference.file or None,
            )
            for c in connections
        ],
    )


def upgrade_legacy_snapshot(raw: dict[str, Any]) -> Snapshot:
    """Lift a v1 snapshot (no layer, criticality or endpoint names) to v2.

    Layers become ``external`` and criticality False; endpoint names are
    looked up from the snapshot's own components. Lossy and one-way.
    """
    components = [
        SnapshotComponent(
            component_id=c.get("component_id", ""),
            name=c.get("name", UNKNOWN_NAME),
            type=c.get("type", ComponentType.OTHER.value),
            version=c.get("version"),
            status=c.get("status") or "active",
            layer=LEGACY_LAYER,
            critical=False,
        )
        for c in raw.get("components") or []
    ]
    names = {c.component_id: c.name for c in components}
    connections = [
        SnapshotConnection(
            connection_id=c.get("connection_id", ""),
            from_id=c.get("from", ""),
            to_id=c.get("to", ""),
            type=c.get("type", "other"),
            from_name=names.get(c.get("from", ""), UNKNOWN_NAME),
            to_name=names.get(c.get("to", ""), UNKNOWN_NAME),
            file=c.get("file"),
        )
        for c in raw.get("connections") or []
    ]
    return Snapshot(
        snapshot_id=raw.get("snapshot_id", ""),
        timestamp=raw.get("timestamp", 0),
        reason=raw.get("reason"),
        components=components,
        connections=connections,
    )


def snapshot_from_dict(raw: dict[str, Any]) -> Snapshot:
    """Load a persisted snapshot; the legacy upgrade runs only when the version is missing."""
    if not raw.get("snapshot_version"):
        return upgrade_legacy_snapshot(raw)
    return Snapshot(
        snapshot_id=raw["snapshot_id"],
        snapshot_version=raw["snapshot_version"],
        timestamp=raw.get("timestamp", 0),
        reason=raw.get("reason"),
        components=[SnapshotComponent.from_dict(c) for c in raw.get("components") or []],
        connections=[SnapshotConnection.from_dict(c) for c in raw.get("connections") or []],
    )


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComponentChange:
    name: str
    type: str
    layer: str
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type, "layer": self.layer, "version": self.version}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ComponentChange":
        return cls(data["name"], data["type"], data.get("layer", LEGACY_LAYER), data.get("version"))


@dataclass(frozen=True)
class ComponentModification:
    name: str
    type: str
    changes: tuple[str, ...]
    layer: str = LEGACY_LAYER

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type, "layer": self.layer, "changes": list(self.changes)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ComponentModification":
        return cls(data["name"], data["type"], tuple(data.get("changes", ())), data.get("layer", LEGACY_LAYER))


@dataclass(frozen=True)
class ConnectionChange:
    from_name: str
    to_name: str
    type: str
    file: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"from_name": self.from_name, "to_name": self.to_name, "type": self.type, "file": self.file}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConnectionChange":
        return cls(data["from_name"], data["to_name"], data["type"], data.get("file"))


@dataclass
class DiffStats:
    total_changes: int = 0
    components_before: int = 0
    components_after: int = 0
    connections_before: int = 0
    connections_after: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_changes": self.total_changes,
            "components_before": self.components_before,
            "components_after": self.components_after,
            "connections_before": self.connections_before,
            "connections_after": self.connections_after,
        }


@dataclass
class DiffResult:
    added_components: list[ComponentChange] = field(default_factory=list)
    removed_components: list[ComponentChange] = field(default_factory=list)
    modified_components: list[ComponentModification] = field(default_factory=list)
    added_connections: list[ConnectionChange] = field(default_factory=list)
    removed_connections: list[ConnectionChange] = field(default_factory=list)
    stats: DiffStats = field(default_factory=DiffStats)

    def to_dict(self) -> dict[str, Any]:
        return {
            "components": {
                "added": [c.to_dict() for c in self.added_components],
                "removed": [c.to_dict() for c in self.removed_components],
                "modified": [c.to_dict() for c in self.modified_components],
            },
            "connections": {
                "added": [c.to_dict() for c in self.added_connections],
                "removed": [c.to_dict() for c in self.removed_connections],
            },
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DiffResult":
        comps = data.get("components", {})
        conns = data.get("connections", {})
        return cls(
            added_components=[ComponentChange.from_dict(c) for c in comps.get("added", [])],
            removed_components=[ComponentChange.from_dict(c) for c in comps.get("removed", [])],
            modified_components=[ComponentModification.from_dict(c) for c in comps.get("modified", [])],
            added_connections=[ConnectionChange.from_dict(c) for c in conns.get("added", [])],
            removed_connections=[ConnectionChange.from_dict(c) for c in conns.get("removed", [])],
            stats=DiffStats(**data.get("stats", {})),
        )


def _modifications(prev: SnapshotComponent, curr: SnapshotComponent) -> list[str]:
    changes = []
    if prev.version != curr.version and (prev.version or curr.version):
        changes.append(f"version: {prev.version or MISSING_VALUE} → {curr.version or MISSING_VALUE}")
    if prev.status != curr.status:
        changes.append(f"status: {prev.status} → {curr.status}")
    if prev.layer != curr.layer:
        changes.append(f"layer: {prev.layer} → {curr.layer}")
    return changes


def compute_architecture_diff(previous: Snapshot | None, current: Snapshot) -> DiffResult:
    """Added/removed/modified components and added/removed connections.

    A missing previous snapshot means everything current is new. Changed
    connections show up as a removal plus an addition.
    """
    prev_components = {c.key: c for c in previous.components} if previous else {}
    prev_connections = {c.key: c for c in previous.connections} if previous else {}
    curr_components = {c.key: c for c in current.components}
    curr_connections = {c.key: c for c in current.connections}

    result = DiffResult()
    for key, curr in curr_components.items():
        prev = prev_components.get(key)
        if prev is None:
            result.added_components.append(ComponentChange(curr.name, curr.type, curr.layer, curr.version))
            continue
        changes = _modifications(prev, curr)
        if changes:
            result.modified_components.append(ComponentModification(curr.name, curr.type, tuple(changes), curr.layer))

    for key, prev in prev_components.items():
        if key not in curr_components:
            result.removed_components.append(ComponentChange(prev.name, prev.type, prev.layer, prev.version))

    for key, curr in curr_connections.items():
        if key not in prev_connections:
            result.added_connections.append(ConnectionChange(curr.from_name, curr.to_name, curr.type, curr.file))
    for key, prev in prev_connections.items():
        if key not in curr_connections:
            result.removed_connections.append(ConnectionChange(prev.from_name, prev.to_name, prev.type, prev.file))

    result.stats = DiffStats(
        total_changes=(
            len(result.added_components)
            + len(result.removed_components)
            + len(result.modified_components)
            + len(result.added_connections)
            + len(result.removed_connections)
        ),
        components_before=len(previous.components) if previous else 0,
        components_after=len(current.components),
        connections_before=len(previous.connections) if previous else 0,
        connections_after=len(current.connections),
    )
    return result


def classify_significance(diff: DiffResult) -> tuple[DiffSignificance, list[DiffTrigger]]:
    triggers: list[DiffTrigger] = []

    if any(c.layer in _CRITICAL_LAYERS for c in diff.added_components + diff.removed_components):
        triggers.append(DiffTrigger.LAYER_CHANGE)

    changed = len(diff.added_components) + len(diff.removed_components) + len(diff.modified_components)
    if changed / (diff.stats.components_before or 1) > HIGH_CHURN_RATIO:
        triggers.append(DiffTrigger.HIGH_CHURN)

    added_layers = [c.layer for c in diff.added_components]
    if added_layers and diff.stats.components_before > 0:
        known_layers = {c.layer for c in diff.removed_components} | {m.layer for m in diff.modified_components}
        if any(layer not in known_layers for layer in added_layers):
            triggers.append(DiffTrigger.NEW_LAYER)

    if any(c.type in _PACKAGE_TYPE_VALUES for c in diff.added_components):
        triggers.append(DiffTrigger.NEW_PACKAGE)

    if diff.added_connections or diff.removed_connections:
        triggers.append(DiffTrigger.CONNECTION_CHANGE)

    for mod in diff.modified_components:
        bumps = [m for m in map(_MAJOR_BUMP.match, mod.changes) if m and m.group(1) != m.group(2)]
        if bumps:
            triggers.append(DiffTrigger.VERSION_BUMP)
            break

    if not triggers and diff.stats.total_changes > 0:
        triggers.append(DiffTrigger.METADATA_ONLY)

    if any(t in MAJOR_TRIGGERS for t in triggers):
        return DiffSignificance.MAJOR, triggers
    if any(t in MINOR_TRIGGERS for t in triggers):
        return DiffSignificance.MINOR, triggers
    return DiffSignificance.PATCH, triggers


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------


@dataclass
class TimelineEntry:
    id: str
    timestamp: int
    significance: DiffSignificance
    triggers: list[DiffTrigger]
    diff: DiffResult
    snapshot_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "timestamp": self.timestamp,
            "significance": self.significance.value,
            "triggers": [t.value for t in self.triggers],
            "diff": self.diff.to_dict(),
        }
        if self.snapshot_id is not None:
            data["snapshot_id"] = self.snapshot_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimelineEntry":
        return cls(
            id=data["id"],
            timestamp=data.get("timestamp", 0),
            significance=DiffSignificance(data["significance"]),
            triggers=[DiffTrigger(t) for t in data.get("triggers", [])],
            diff=DiffResult.from_dict(data.get("diff", {})),
            snapshot_id=data.get("snapshot_id"),
        )


@dataclass
class Timeline:
    project_path: str
    entries: list[TimelineEntry] = field(default_factory=list)
    version: str = TIMELINE_VERSION

    def append(self, entry: TimelineEntry, limit: int) -> None:
        """Append, then drop the oldest entries beyond ``limit``."""
        self.entries.append(entry)
        if limit >= 0 and len(self.entries) > limit:
            del self.entries[: len(self.entries) - limit]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "project_path": self.project_path,
            "entries": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Timeline":
        return cls(
            project_path=data.get("project_path", ""),
            entries=[TimelineEntry.from_dict(e) for e in data.get("entries", [])],
            version=data.get("version", TIMELINE_VERSION),
        )


def make_timeline_entry(
    previous: Snapshot | None, current: Snapshot, timestamp: int | None = None
) -> TimelineEntry:
    timestamp = now_ms() if timestamp is None else timestamp
    diff = compute_architecture_diff(previous, current)
    significance, triggers = classify_significance(diff)
    return TimelineEntry(
        id=new_timeline_id(timestamp),
        timestamp=timestamp,
        significance=significance,
        triggers=triggers,
        diff=diff,
        snapshot_id=current.snapshot_id,
    )


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _when(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _badge(significance: DiffSignificance) -> str:
    return f"[{significance.value.upper()}]"


def select_entries(
    timeline: Timeline, limit: int | None = None, significance: DiffSignificance | None = None
) -> list[TimelineEntry]:
    """Newest first, optionally filtered by significance and capped at ``limit``."""
    entries = list(reversed(timeline.entries))
    if significance is not None:
        entries = [e for e in entries if e.significance is significance]
    if limit:
        entries = entries[:limit]
    return entries


def format_timeline(entries: list[TimelineEntry]) -> str:
    if not entries:
        return "No timeline entries found. Run `archgraph scan` to start tracking changes."

    lines = ["Architecture Timeline", "─" * 60]
    for entry in entries:
        diff = entry.diff
        changes = diff.stats.total_changes
        lines.append("")
        lines.append(f"{_badge(entry.significance)}  {_when(entry.timestamp)}  [{entry.id}]")
        lines.append(
            f"   {changes} change{'s' if changes != 1 else ''}: "
            f"+{len(diff.added_components)} components, "
            f"-{len(diff.removed_components)} components, "
            f"~{len(diff.modified_components)} modified, "
            f"+{len(diff.added_connections)}/-{len(diff.removed_connections)} connections"
        )
        if entry.triggers:
            lines.append(f"   triggers: {', '.join(t.value for t in entry.triggers)}")
    return "\n".join(lines)


def format_diff_summary(entry: TimelineEntry) -> str:
    diff = entry.diff
    stats = diff.stats
    lines = [
        f"{_badge(entry.significance)}  {_when(entry.timestamp)}  [{entry.id}]",
        f"Triggers: {', '.join(t.value for t in entry.triggers) or 'none'}",
        f"Components: {stats.components_before} → {stats.components_after}",
        f"Connections: {stats.connections_before} → {stats.connections_after}",
        "",
    ]

    if diff.added_components:
        lines.append("Added Components:")
        for c in diff.added_components:
            version = f" v{c.version}" if c.version else ""
            lines.append(f"  + {c.name}{version} ({c.type}, {c.layer})")
        lines.append("")
    if diff.removed_components:
        lines.append("Removed Components:")
        lines.extend(f"  - {c.name} ({c.type}, {c.layer})" for c in diff.removed_components)
        lines.append("")
    if diff.modified_components:
        lines.append("Modified Components:")
        for m in diff.modified_components:
            lines.append(f"  ~ {m.name} ({m.type})")
            lines.extend(f"      {change}" for change in m.changes)
        lines.append("")
    for title, sign, changes in (
        ("Added Connections:", "+", diff.added_connections),
        ("Removed Connections:", "-", diff.removed_connections),
    ):
        if not changes:
            continue
        lines.append(title)
        for c in changes:
            file = f" ({c.file})" if c.file else ""
            lines.append(f"  {sign} {c.from_name} → {c.to_name} [{c.type}]{file}")
        lines.append("")

    if stats.total_changes == 0:
        lines.append("No changes detected.")
    return "\n".join(lines)
