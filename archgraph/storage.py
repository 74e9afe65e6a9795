"""JSON persistence for scan results, snapshots and the timeline.

Everything lives under the configured storage directory (``.archgraph/`` by
default). Every write replaces the whole file. History files (snapshots,
timeline) that fail to parse are treated as absent.
"""

import json
from pathlib import Path
from typing import Any

from archgraph.config import RuntimeConfig
from archgraph.diff import (
    Snapshot,
    Timeline,
    TimelineEntry,
    build_snapshot,
    make_timeline_entry,
    snapshot_from_dict,
)
from archgraph.types import Component, Connection, now_ms
from archgraph.utils.constants import (
    COMPONENTS_FILE,
    CONNECTIONS_FILE,
    FILE_MAP_FILE,
    SCAN_STATS_FILE,
    SNAPSHOTS_DIR,
    TIMELINE_FILE,
)
from archgraph.utils.logging import logger

SCHEMA_VERSION = "1.0"


def build_file_map(components: list[Component], connections: list[Connection]) -> dict[str, str]:
    """File path -> component id, from config files and connection locations.

    Later sources overwrite earlier ones for the same path.
    """
    file_map: dict[str, str] = {}
    for comp in components:
        for config_file in comp.source.config_files:
            file_map[config_file] = comp.component_id
    for conn in connections:
        if conn.code_reference.file:
            file_map[conn.code_reference.file] = conn.from_id
        if conn.from_location.file:
            file_map[conn.from_location.file] = conn.from_id
        if conn.to_location is not None and conn.to_location.file:
            file_map[conn.to_location.file] = conn.to_id
    return file_map


class ArchitectureStore:
    """Reads and writes one project's persisted architecture state."""

    def __init__(self, config: RuntimeConfig):
        self.config = config
        self.root = config.storage_dir
        self.snapshots_dir = self.root / SNAPSHOTS_DIR

    def ensure_dirs(self) -> None:
        self.snapshots_dir.mkdir(parents=True, exist_ok=True)

    def _write(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def _read(self, path: Path) -> Any | None:
        """Parsed JSON, or None when the file is missing or unreadable."""
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable {path}: {err}", path=path, err=e)
            return None

    # -- current scan ------------------------------------------------------

    def save_scan(
        self,
        components: list[Component],
        connections: list[Connection],
        stats: dict[str, Any] | None = None,
    ) -> None:
        self.ensure_dirs()
        generated_at = now_ms()
        self._write(
            self.root / COMPONENTS_FILE,
            {"schema_version": SCHEMA_VERSION, "components": [c.to_dict() for c in components]},
        )
        self._write(
            self.root / CONNECTIONS_FILE,
            {"schema_version": SCHEMA_VERSION, "connections": [c.to_dict() for c in connections]},
        )
        self._write(
            self.root / FILE_MAP_FILE,
            {
                "schema_version": SCHEMA_VERSION,
                "generated_at": generated_at,
                "files": build_file_map(components, connections),
            },
        )
        if stats is not None:
            self._write(self.root / SCAN_STATS_FILE, {"generated_at": generated_at, **stats})
        logger.debug(
            "Stored {c} components and {n} connections in {root}",
            c=len(components),
            n=len(connections),
            root=self.root,
        )

    def has_scan(self) -> bool:
        return (self.root / COMPONENTS_FILE).exists()

    def load_components(self) -> list[Component]:
        data = self._read(self.root / COMPONENTS_FILE) or {}
        try:
            return [Component.from_dict(c) for c in data.get("components", [])]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed {file}: {err}", file=COMPONENTS_FILE, err=e)
            return []

    def load_connections(self) -> list[Connection]:
        data = self._read(self.root / CONNECTIONS_FILE) or {}
        try:
            return [Connection.from_dict(c) for c in data.get("connections", [])]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed {file}: {err}", file=CONNECTIONS_FILE, err=e)
            return []

    def load_file_map(self) -> dict[str, str]:
        data = self._read(self.root / FILE_MAP_FILE)
        if not isinstance(data, dict) or not isinstance(data.get("files"), dict):
            return {}
        return data["files"]

    def load_scan_stats(self) -> dict[str, Any]:
        data = self._read(self.root / SCAN_STATS_FILE)
        return data if isinstance(data, dict) else {}

    # -- snapshots ---------------------------------------------------------

    def save_snapshot(self, snapshot: Snapshot) -> Path:
        path = self.snapshots_dir / f"{snapshot.snapshot_id}.json"
        self._write(path, snapshot.to_dict())
        return path

    def load_latest_snapshot(self) -> Snapshot | None:
        if not self.snapshots_dir.exists():
            return None
        candidates = sorted(self.snapshots_dir.glob("SNAP_*.json"), reverse=True)
        if not candidates:
            return None
        raw = self._read(candidates[0])
        if not isinstance(raw, dict):
            return None
        try:
            return snapshot_from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed snapshot {path}: {err}", path=candidates[0], err=e)
            return None

    # -- timeline ----------------------------------------------------------

    def load_timeline(self) -> Timeline:
        raw = self._read(self.root / TIMELINE_FILE)
        empty = Timeline(project_path=str(self.config.root))
        if not isinstance(raw, dict):
            return empty
        try:
            return Timeline.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed timeline: {err}", err=e)
            return empty

    def append_timeline_entry(self, entry: TimelineEntry) -> Timeline:
        timeline = self.load_timeline()
        timeline.append(entry, self.config.history_limit)
        timeline.project_path = str(self.config.root)
        self._write(self.root / TIMELINE_FILE, timeline.to_dict())
        return timeline

    def record_scan(
        self, components: list[Component], connections: list[Connection], reason: str = "post-scan"
    ) -> TimelineEntry:
        """Snapshot the new state, diff it against the last one and log it to the timeline."""
        previous = self.load_latest_snapshot()
        current = build_snapshot(components, connections, reason=reason)
        entry = make_timeline_entry(previous, current, timestamp=current.timestamp)
        self.save_snapshot(current)
        self.append_timeline_entry(entry)
        return entry
