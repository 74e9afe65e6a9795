"""Identifier generation and compact projections.

Generated ids carry a random base36 suffix and are unique per scan only.
Two same-name components of the same type collide with probability 1/36**4
for component ids and 1/36**6 for connection ids; ids are never used for
cross-scan identity (snapshots key on names instead).
"""

import random
import re
import string
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from archgraph.types import (
    Component,
    ComponentType,
    Connection,
    ConnectionRef,
    ConnectionType,
)

_BASE36 = string.digits + string.ascii_lowercase
_NON_ALNUM = re.compile(r"[^a-z0-9]")

COMPONENT_SUFFIX_LENGTH = 4
CONNECTION_SUFFIX_LENGTH = 6
NAME_SLUG_LENGTH = 20


def random_suffix(length: int) -> str:
    return "".join(random.choices(_BASE36, k=length))


def normalize_name(name: str) -> str:
    """Lowercase, replace non-alphanumerics with '_', truncate to 20 chars."""
    return _NON_ALNUM.sub("_", name.lower())[:NAME_SLUG_LENGTH]


def new_component_id(component_type: ComponentType | str, name: str) -> str:
    type_value = component_type.value if isinstance(component_type, ComponentType) else component_type
    return f"COMP_{type_value}_{normalize_name(name)}_{random_suffix(COMPONENT_SUFFIX_LENGTH)}"


def new_connection_id(connection_type: ConnectionType | str) -> str:
    type_value = (
        connection_type.value if isinstance(connection_type, ConnectionType) else connection_type
    )
    return f"CONN_{type_value}_{random_suffix(CONNECTION_SUFFIX_LENGTH)}"


@dataclass(frozen=True)
class CompactComponent:
    id: str
    n: str
    t: str
    l: str  # noqa: E741
    s: str
    ci: int
    co: int
    v: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "n": self.n, "t": self.t}
        if self.v is not None:
            data["v"] = self.v
        data.update({"l": self.l, "s": self.s, "ci": self.ci, "co": self.co})
        return data


@dataclass(frozen=True)
class CompactConnection:
    id: str
    f: str
    t: str
    ct: str
    file: str
    sym: str
    st: str | None = None
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "f": self.f,
            "t": self.t,
            "ct": self.ct,
            "file": self.file,
            "sym": self.sym,
        }
        if self.st is not None:
            data["st"] = self.st
        if self.line is not None:
            data["line"] = self.line
        return data


def to_compact_component(component: Component) -> CompactComponent:
    return CompactComponent(
        id=component.component_id,
        n=component.name,
        t=component.type.value,
        v=component.version,
        l=component.role.layer.value,
        s=component.status.value,
        ci=len(component.connected_from),
        co=len(component.connects_to),
    )


def to_compact_connection(connection: Connection) -> CompactConnection:
    ref = connection.code_reference
    return CompactConnection(
        id=connection.connection_id,
        f=connection.from_id,
        t=connection.to_id,
        ct=connection.connection_type.value,
        file=ref.file,
        sym=ref.symbol,
        st=ref.symbol_type,
        line=ref.line_start,
    )


def link_references(
    components: list[Component], connections: list[Connection]
) -> list[Component]:
    """Return component copies whose back-references mirror ``connections``.

    The inputs are not modified.
    """
    outgoing: dict[str, list[ConnectionRef]] = defaultdict(list)
    incoming: dict[str, list[ConnectionRef]] = defaultdict(list)
    for conn in connections:
        outgoing[conn.from_id].append(
            ConnectionRef(conn.connection_id, conn.to_id, conn.connection_type)
        )
        incoming[conn.to_id].append(
            ConnectionRef(conn.connection_id, conn.from_id, conn.connection_type)
        )

    return [
        comp.with_references(outgoing.get(comp.component_id, []), incoming.get(comp.component_id, []))
        for comp in components
    ]
