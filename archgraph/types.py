"""Core data model for the architecture graph.

This module contains the record types shared by every scanner and query:
- Component: a detected architectural unit (package, service, database, ...)
- Connection: a directed, evidenced relationship between two components
- ScanWarning / ScanResult: non-fatal scan problems and scanner output

Enums are closed. ``ComponentType`` and ``ConnectionType`` map unknown values
to OTHER through ``coerce``; ``ArchitectureLayer`` and ``ComponentStatus``
reject unknown values.

Every record has ``to_dict``/``from_dict`` for the storage layer.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

FILE_PLACEHOLDER_PREFIX = "FILE:"
EXTERNAL_PLACEHOLDER_PREFIX = "EXTERNAL:"


def now_ms() -> int:
    return int(time.time() * 1000)


class ComponentType(Enum):
    NPM = "npm"
    PIP = "pip"
    SPM = "spm"
    CARGO = "cargo"
    GO = "go"
    GEM = "gem"
    COMPOSER = "composer"
    FRAMEWORK = "framework"
    DATABASE = "database"
    QUEUE = "queue"
    INFRA = "infra"
    SERVICE = "service"
    LLM = "llm"
    API_ENDPOINT = "api-endpoint"
    DB_TABLE = "db-table"
    PROMPT = "prompt"
    WORKER = "worker"
    COMPONENT = "component"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: "str | ComponentType") -> "ComponentType":
        """Map a raw value onto the enum, falling back to OTHER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


PACKAGE_TYPES = frozenset({
    ComponentType.NPM,
    ComponentType.PIP,
    ComponentType.SPM,
    ComponentType.CARGO,
    ComponentType.GO,
    ComponentType.GEM,
    ComponentType.COMPOSER,
})


class ArchitectureLayer(Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"
    DATABASE = "database"
    QUEUE = "queue"
    INFRA = "infra"
    EXTERNAL = "external"


class ComponentStatus(Enum):
    ACTIVE = "active"
    OUTDATED = "outdated"
    DEPRECATED = "deprecated"
    VULNERABLE = "vulnerable"
    UNUSED = "unused"
    REMOVED = "removed"


class ConnectionType(Enum):
    API_CALLS_DB = "api-calls-db"
    FRONTEND_CALLS_API = "frontend-calls-api"
    QUEUE_TRIGGERS = "queue-triggers"
    SERVICE_CALL = "service-call"
    IMPORTS = "imports"
    DEPLOYS_TO = "deploys-to"
    PROMPT_LOCATION = "prompt-location"
    PROMPT_USAGE = "prompt-usage"
    USES_PACKAGE = "uses-package"
    OBSERVES = "observes"
    CONFORMS_TO = "conforms-to"
    NOTIFIES = "notifies"
    STORES = "stores"
    NAVIGATES_TO = "navigates-to"
    REQUIRES_ENTITLEMENT = "requires-entitlement"
    TARGET_CONTAINS = "target-contains"
    GENERATES = "generates"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: "str | ConnectionType") -> "ConnectionType":
        """Map a raw value onto the enum, falling back to OTHER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class SemanticClassification(Enum):
    PRODUCTION = "production"
    ADMIN = "admin"
    ANALYTICS = "analytics"
    TEST = "test"
    DEV_ONLY = "dev-only"
    MIGRATION = "migration"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: "str | SemanticClassification") -> "SemanticClassification":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class WarningType(Enum):
    MISSING_FILE = "missing_file"
    PARSE_ERROR = "parse_error"
    LOW_CONFIDENCE = "low_confidence"
    DEPRECATED = "deprecated"


def _check_confidence(value: float, owner: str) -> float:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{owner} confidence must be within [0, 1], got {value}")
    return float(value)


def is_placeholder_id(component_id: str) -> bool:
    """True for file-level pseudo-components and unresolved external endpoints."""
    return component_id.startswith((FILE_PLACEHOLDER_PREFIX, EXTERNAL_PLACEHOLDER_PREFIX))


# ---------------------------------------------------------------------------
# Component
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Role:
    purpose: str
    layer: ArchitectureLayer
    critical: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"purpose": self.purpose, "layer": self.layer.value, "critical": self.critical}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Role":
        return cls(
            purpose=data.get("purpose", ""),
            layer=ArchitectureLayer(data["layer"]),
            critical=bool(data.get("critical", False)),
        )


@dataclass(frozen=True)
class Source:
    detection_method: str
    config_files: tuple[str, ...] = ()
    confidence: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "confidence", _check_confidence(self.confidence, "Source"))
        object.__setattr__(self, "config_files", tuple(self.config_files))

    def to_dict(self) -> dict[str, Any]:
        return {
            "detection_method": self.detection_method,
            "config_files": list(self.config_files),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Source":
        return cls(
            detection_method=data.get("detection_method", "auto"),
            config_files=tuple(data.get("config_files", ())),
            confidence=data.get("confidence", 1.0),
        )


@dataclass(frozen=True)
class ConnectionRef:
    """Weak back-reference from a component to one of its connections."""

    connection_id: str
    target_component_id: str
    connection_type: ConnectionType

    def to_dict(self) -> dict[str, Any]:
        return {
            "connection_id": self.connection_id,
            "target_component_id": self.target_component_id,
            "connection_type": self.connection_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConnectionRef":
        return cls(
            connection_id=data["connection_id"],
            target_component_id=data["target_component_id"],
            connection_type=ConnectionType.coerce(data.get("connection_type", "other")),
        )


@dataclass(frozen=True)
class Vulnerability:
    id: str
    severity: str
    title: str
    fix_available: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "severity": self.severity,
            "title": self.title,
            "fix_available": self.fix_available,
        }


@dataclass(frozen=True)
class ComponentHealth:
    latest_version: str | None = None
    update_available: bool = False
    vulnerabilities: tuple[Vulnerability, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "latest_version": self.latest_version,
            "update_available": self.update_available,
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ComponentHealth":
        return cls(
            latest_version=data.get("latest_version"),
            update_available=bool(data.get("update_available", False)),
            vulnerabilities=tuple(
                Vulnerability(
                    id=v.get("id", ""),
                    severity=v.get("severity", "unknown"),
                    title=v.get("title", ""),
                    fix_available=bool(v.get("fix_available", False)),
                )
                for v in data.get("vulnerabilities", [])
            ),
        )


@dataclass
class Component:
    """A detected architectural unit."""

    component_id: str
    name: str
    type: ComponentType
    role: Role
    source: Source
    version: str | None = None
    connects_to: list[ConnectionRef] = field(default_factory=list)
    connected_from: list[ConnectionRef] = field(default_factory=list)
    status: ComponentStatus = ComponentStatus.ACTIVE
    health: ComponentHealth | None = None
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=now_ms)
    last_updated: int = field(default_factory=now_ms)

    @property
    def layer(self) -> ArchitectureLayer:
        return self.role.layer

    def with_references(
        self, connects_to: list[ConnectionRef], connected_from: list[ConnectionRef]
    ) -> "Component":
        return replace(self, connects_to=list(connects_to), connected_from=list(connected_from))

    def to_dict(self) -> dict[str, Any]:
        return {
            "component_id": self.component_id,
            "name": self.name,
            "version": self.version,
            "type": self.type.value,
            "role": self.role.to_dict(),
            "source": self.source.to_dict(),
            "connects_to": [r.to_dict() for r in self.connects_to],
            "connected_from": [r.to_dict() for r in self.connected_from],
            "status": self.status.value,
            "health": self.health.to_dict() if self.health else None,
            "tags": list(self.tags),
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Component":
        return cls(
            component_id=data["component_id"],
            name=data["name"],
            version=data.get("version"),
            type=ComponentType.coerce(data.get("type", "other")),
            role=Role.from_dict(data["role"]),
            source=Source.from_dict(data.get("source", {})),
            connects_to=[ConnectionRef.from_dict(r) for r in data.get("connects_to", [])],
            connected_from=[ConnectionRef.from_dict(r) for r in data.get("connected_from", [])],
            status=ComponentStatus(data.get("status", "active")),
            health=ComponentHealth.from_dict(data["health"]) if data.get("health") else None,
            tags=list(data.get("tags", [])),
            metadata=dict(data.get("metadata", {})),
            timestamp=data.get("timestamp", 0),
            last_updated=data.get("last_updated", 0),
        )


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CodeLocation:
    file: str
    line: int
    column: int | None = None
    function: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"file": self.file, "line": self.line}
        if self.column is not None:
            data["column"] = self.column
        if self.function is not None:
            data["function"] = self.function
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CodeLocation":
        return cls(
            file=data.get("file", ""),
            line=data.get("line", 0),
            column=data.get("column"),
            function=data.get("function"),
        )


@dataclass(frozen=True)
class CodeReference:
    """Where a connection lives in code.

    ``symbol`` is the stable identifier; line numbers are display-only.
    """

    file: str
    symbol: str
    symbol_type: str | None = None
    line_start: int | None = None
    line_end: int | None = None
    code_snippet: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "symbol": self.symbol,
            "symbol_type": self.symbol_type,
            "line_start": self.line_start,
            "line_end": self.line_end,
            "code_snippet": self.code_snippet,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CodeReference":
        return cls(
            file=data.get("file", ""),
            symbol=data.get("symbol", ""),
            symbol_type=data.get("symbol_type"),
            line_start=data.get("line_start"),
            line_end=data.get("line_end"),
            code_snippet=data.get("code_snippet"),
        )


@dataclass(frozen=True)
class SemanticInfo:
    classification: SemanticClassification
    confidence: float

    def __post_init__(self):
        object.__setattr__(self, "confidence", _check_confidence(self.confidence, "SemanticInfo"))

    def to_dict(self) -> dict[str, Any]:
        return {"classification": self.classification.value, "confidence": self.confidence}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SemanticInfo":
        return cls(
            classification=SemanticClassification.coerce(data.get("classification", "unknown")),
            confidence=data.get("confidence", 0.0),
        )


@dataclass
class Connection:
    """A directed relationship between two components."""

    connection_id: str
    from_id: str
    from_location: CodeLocation
    to_id: str
    connection_type: ConnectionType
    code_reference: CodeReference
    to_location: CodeLocation | None = None
    semantic: SemanticInfo | None = None
    description: str = ""
    detected_from: str = ""
    confidence: float = 1.0
    timestamp: int = field(default_factory=now_ms)
    last_verified: int = field(default_factory=now_ms)

    def __post_init__(self):
        self.confidence = _check_confidence(self.confidence, "Connection")

    @property
    def classification(self) -> SemanticClassification | None:
        return self.semantic.classification if self.semantic else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "connection_id": self.connection_id,
            "from": {"component_id": self.from_id, "location": self.from_location.to_dict()},
            "to": {
                "component_id": self.to_id,
                "location": self.to_location.to_dict() if self.to_location else None,
            },
            "connection_type": self.connection_type.value,
            "code_reference": self.code_reference.to_dict(),
            "semantic": self.semantic.to_dict() if self.semantic else None,
            "description": self.description,
            "detected_from": self.detected_from,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
            "last_verified": self.last_verified,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Connection":
        frm = data.get("from", {})
        to = data.get("to", {})
        return cls(
            connection_id=data["connection_id"],
            from_id=frm["component_id"],
            from_location=CodeLocation.from_dict(frm.get("location") or {}),
            to_id=to["component_id"],
            to_location=CodeLocation.from_dict(to["location"]) if to.get("location") else None,
            connection_type=ConnectionType.coerce(data.get("connection_type", "other")),
            code_reference=CodeReference.from_dict(data.get("code_reference", {})),
            semantic=SemanticInfo.from_dict(data["semantic"]) if data.get("semantic") else None,
            description=data.get("description", ""),
            detected_from=data.get("detected_from", ""),
            confidence=data.get("confidence", 1.0),
            timestamp=data.get("timestamp", 0),
            last_verified=data.get("last_verified", 0),
        )


# ---------------------------------------------------------------------------
# Scan output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScanWarning:
    type: WarningType
    message: str
    file: str | None = None
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "message": self.message, "file": self.file, "line": self.line}


@dataclass
class ScanResult:
    """Output of a single scanner."""

    components: list[Component] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    warnings: list[ScanWarning] = field(default_factory=list)

    def merge(self, other: "ScanResult") -> "ScanResult":
        return ScanResult(
            components=self.components + other.components,
            connections=self.connections + other.connections,
            warnings=self.warnings + other.warnings,
        )
