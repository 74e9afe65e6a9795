"""Frontend -> API -> database connection scanner.

Three passes over the already-read source files:
1. Routes: API endpoints from file conventions (Next.js ``route.ts``,
   ``pages/api``) and handler decorators/registrations (FastAPI, Flask,
   Express), plus frontend pages from page file conventions.
2. HTTP client calls (``fetch``, ``axios``) become ``frontend-calls-api``
   connections to the endpoint whose route matches the requested path.
3. ORM calls (Prisma, Django, SQLAlchemy) become ``api-calls-db``
   connections to one ``db-table`` component per table.

A call is attributed to the page or endpoint that owns its line; calls
outside any route fall back to the file placeholder.
"""

import re
from dataclasses import dataclass, field

from archgraph.identity import new_component_id, new_connection_id
from archgraph.scanners.base import FileSet, SourceFile, find_containing_function, is_comment_line, truncate_snippet
from archgraph.signature_registry import (
    HTTP_CLIENT_PATTERNS,
    LOCAL_API_HOSTS,
    ORM_SIGNATURES,
    PAGE_FILE_PATTERNS,
    ROUTE_DEFINITION_PATTERNS,
    ROUTE_FILE_PATTERNS,
)
from archgraph.types import (
    EXTERNAL_PLACEHOLDER_PREFIX,
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

DYNAMIC_SEGMENT = ":param"
DYNAMIC_TARGET = f"{EXTERNAL_PLACEHOLDER_PREFIX}dynamic"
PAGE_PREFIX = "page:"
METHOD_LOOKAHEAD_LINES = 3
DATA_FLOW_SNIPPET_CHARS = 100

_ROUTE_FILES = {name: re.compile(p) for name, p in ROUTE_FILE_PATTERNS.items()}
_PAGE_FILES = {name: re.compile(p) for name, p in PAGE_FILE_PATTERNS.items()}
_ROUTE_DEFINITIONS = {name: re.compile(p) for name, p in ROUTE_DEFINITION_PATTERNS.items()}
_HTTP_CLIENTS = {name: re.compile(p) for name, p in HTTP_CLIENT_PATTERNS.items()}
_ORMS = {name: (re.compile(sig["pattern"]), frozenset(sig["operations"])) for name, sig in ORM_SIGNATURES.items()}

_NEXT_HANDLER = re.compile(r"export\s+(?:async\s+)?(?:function|const)\s+(GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS)\b")
_FETCH_METHOD = re.compile(r"method\s*:\s*['\"`](\w+)['\"`]")
_QUOTED = re.compile(r"^(['\"`])(.*?)\1")
_LEADING_EXPRESSIONS = re.compile(r"^(?:\$\{[^}]*\})+")
_TEMPLATE_EXPRESSION = re.compile(r"\$\{[^}]*\}")
_ABSOLUTE_URL = re.compile(r"^[a-z][a-z0-9+.-]*://(?P<host>[^/:?#]+)(?::\d+)?(?P<path>/[^?#]*)?", re.I)


# ---------------------------------------------------------------------------
# Route paths
# ---------------------------------------------------------------------------


def normalize_route(raw: str) -> str:
    """Canonical ``/a/b`` form: no route groups, parallel slots, ``index`` or trailing slash."""
    segments = [
        s
        for s in raw.replace("\\", "/").split("/")
        if s and not (s.startswith("(") and s.endswith(")")) and not s.startswith("@")
    ]
    if segments and segments[-1] == "index":
        segments.pop()
    return "/" + "/".join(segments)


def _segments(path: str) -> list[str]:
    return [s for s in path.split("/") if s]


def _is_param(segment: str) -> bool:
    return (
        (segment.startswith("[") and segment.endswith("]"))
        or segment.startswith(":")
        or (segment.startswith("{") and segment.endswith("}"))
    )


def _is_catch_all(segment: str) -> bool:
    return segment.startswith(("[...", "[[..."))


def route_matches(route: str, path: str) -> bool:
    """True if a request for ``path`` would be served by ``route``.

    Route parameters (``[id]``, ``:id``, ``{id}``) match one segment, catch-all
    segments match the rest. A ``:param`` segment in ``path`` stands for a
    runtime value and matches anything.
    """
    route_parts, path_parts = _segments(route), _segments(path)
    for i, segment in enumerate(route_parts):
        if _is_catch_all(segment):
            return segment.startswith("[[") or len(path_parts) > i
        if i >= len(path_parts):
            return False
        if _is_param(segment) or DYNAMIC_SEGMENT in path_parts[i]:
            continue
        if segment != path_parts[i]:
            return False
    return len(route_parts) == len(path_parts)


def match_route(path: str, routes: list[str]) -> str | None:
    """Best route for ``path``: most literal segments, then first in order."""
    best, best_score = None, -1
    for route in routes:
        if not route_matches(route, path):
            continue
        score = sum(1 for s in _segments(route) if not _is_param(s) and not _is_catch_all(s))
        if score > best_score:
            best, best_score = route, score
    return best


@dataclass(frozen=True)
class RequestTarget:
    """Where an HTTP client call goes: ``path``, ``external`` host or ``dynamic``."""

    kind: str
    value: str | None = None
    templated: bool = False


def parse_request_target(arg: str) -> RequestTarget:
    match = _QUOTED.match(arg.strip())
    if not match:
        return RequestTarget("dynamic")

    quote, text = match.groups()
    templated = quote == "`" and "${" in text
    if templated:
        # leading expressions are base URLs
        text = _TEMPLATE_EXPRESSION.sub(DYNAMIC_SEGMENT, _LEADING_EXPRESSIONS.sub("", text))

    absolute = _ABSOLUTE_URL.match(text)
    if absolute:
        host = absolute.group("host").lower()
        if host not in LOCAL_API_HOSTS:
            return RequestTarget("external", host, templated)
        text = absolute.group("path") or "/"

    text = re.split(r"[?#]", text, maxsplit=1)[0]
    if not text or text.startswith(DYNAMIC_SEGMENT):
        return RequestTarget("dynamic", templated=templated)
    return RequestTarget("path", normalize_route(text), templated)


# ---------------------------------------------------------------------------
# Pass 1: routes and pages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RouteDefinition:
    route: str
    file: str
    line: int  # 0 when the whole file is the handler
    framework: str
    methods: tuple[str, ...] = ()


@dataclass
class RouteTable:
    """Endpoints and pages found in one scan, plus their components."""

    routes: list[RouteDefinition] = field(default_factory=list)
    pages: list[RouteDefinition] = field(default_factory=list)
    endpoints: dict[str, Component] = field(default_factory=dict)
    page_components: dict[str, Component] = field(default_factory=dict)
    owners: dict[str, list[tuple[int, str]]] = field(default_factory=dict)

    def owner_of(self, file: str, line: int) -> str | None:
        """Component id of the page or endpoint that owns ``file:line``, if any."""
        owner = None
        for start, component_id in self.owners.get(file, []):
            if start > line:
                break
            owner = component_id
        return owner

    def match(self, path: str) -> Component | None:
        route = match_route(path, list(self.endpoints))
        return self.endpoints[route] if route is not None else None

    @property
    def components(self) -> list[Component]:
        return [*self.endpoints.values(), *self.page_components.values()]


def _file_convention(path: str, patterns: dict[str, re.Pattern]) -> tuple[str, str] | None:
    for framework, pattern in patterns.items():
        match = pattern.match(path)
        if match:
            return framework, normalize_route(match.group("route"))
    return None


def find_route_definitions(source: SourceFile) -> list[RouteDefinition]:
    found: list[RouteDefinition] = []

    convention = _file_convention(source.path, _ROUTE_FILES)
    if convention is not None:
        framework, route = convention
        methods = tuple(dict.fromkeys(m.group(1) for m in _NEXT_HANDLER.finditer(source.content)))
        found.append(RouteDefinition(route, source.path, 0, framework, methods))

    for i, line in enumerate(source.lines):
        if is_comment_line(line):
            continue
        for framework, pattern in _ROUTE_DEFINITIONS.items():
            match = pattern.search(line)
            if match is None:
                continue
            method = match.groupdict().get("method")
            found.append(
                RouteDefinition(
                    normalize_route(match.group("route")),
                    source.path,
                    i + 1,
                    framework,
                    (method.upper(),) if method else (),
                )
            )
            break
    return found


def _endpoint_component(route: str, definitions: list[RouteDefinition], timestamp: int) -> Component:
    methods = sorted({m for d in definitions for m in d.methods})
    frameworks = list(dict.fromkeys(d.framework for d in definitions))
    return Component(
        component_id=new_component_id(ComponentType.API_ENDPOINT, route),
        name=route,
        type=ComponentType.API_ENDPOINT,
        role=Role(f"API endpoint {route}", ArchitectureLayer.BACKEND, critical=False),
        source=Source("auto", tuple(dict.fromkeys(d.file for d in definitions)), 0.85),
        tags=["api", *frameworks],
        metadata={"methods": methods} if methods else {},
        timestamp=timestamp,
        last_updated=timestamp,
    )


def _unresolved_endpoint(path: str, file: str, timestamp: int) -> Component:
    return Component(
        component_id=new_component_id(ComponentType.API_ENDPOINT, path),
        name=path,
        type=ComponentType.API_ENDPOINT,
        role=Role(f"API endpoint {path} (no handler found)", ArchitectureLayer.BACKEND, critical=False),
        source=Source("auto", (file,), 0.6),
        tags=["api", "unresolved"],
        timestamp=timestamp,
        last_updated=timestamp,
    )


def _page_component(page: RouteDefinition, timestamp: int) -> Component:
    name = f"{PAGE_PREFIX}{page.route}"
    return Component(
        component_id=new_component_id(ComponentType.COMPONENT, name),
        name=name,
        type=ComponentType.COMPONENT,
        role=Role(f"Page {page.route}", ArchitectureLayer.FRONTEND, critical=False),
        source=Source("auto", (page.file,), 0.85),
        tags=["page", page.framework],
        timestamp=timestamp,
        last_updated=timestamp,
    )


def discover_routes(file_set: FileSet, timestamp: int | None = None) -> RouteTable:
    timestamp = timestamp or now_ms()
    table = RouteTable()

    for source in file_set.files:
        table.routes.extend(find_route_definitions(source))
        page = _file_convention(source.path, _PAGE_FILES)
        if page is not None:
            table.pages.append(RouteDefinition(page[1], source.path, 0, page[0]))

    by_route: dict[str, list[RouteDefinition]] = {}
    for definition in table.routes:
        by_route.setdefault(definition.route, []).append(definition)
    for route, definitions in by_route.items():
        table.endpoints[route] = _endpoint_component(route, definitions, timestamp)
    for definition in table.routes:
        table.owners.setdefault(definition.file, []).append(
            (definition.line, table.endpoints[definition.route].component_id)
        )

    for page in table.pages:
        if page.route not in table.page_components:
            table.page_components[page.route] = _page_component(page, timestamp)
        table.owners.setdefault(page.file, []).append((0, table.page_components[page.route].component_id))

    for owners in table.owners.values():
        owners.sort(key=lambda entry: entry[0])
    return table


# ---------------------------------------------------------------------------
# Pass 2: HTTP client calls
# ---------------------------------------------------------------------------


def _request_method(lines: list[str], index: int, match: re.Match) -> str:
    method = match.groupdict().get("method")
    if method:
        return method.upper()
    window = "\n".join(lines[index : index + METHOD_LOOKAHEAD_LINES + 1])
    found = _FETCH_METHOD.search(window)
    return found.group(1).upper() if found else "GET"


def _connection(
    kind: ConnectionType,
    source: SourceFile,
    index: int,
    from_id: str,
    to_id: str,
    description: str,
    detected_from: str,
    confidence: float,
    timestamp: int,
) -> Connection:
    line = source.lines[index]
    function_name = find_containing_function(source.lines, index)
    return Connection(
        connection_id=new_connection_id(kind),
        from_id=from_id,
        from_location=CodeLocation(source.path, index + 1, function=function_name),
        to_id=to_id,
        connection_type=kind,
        code_reference=CodeReference(
            file=source.path,
            symbol=function_name or f"anonymous_{index + 1}",
            symbol_type="function" if function_name else None,
            line_start=index + 1,
            code_snippet=truncate_snippet(line, DATA_FLOW_SNIPPET_CHARS),
        ),
        description=description,
        detected_from=detected_from,
        confidence=confidence,
        timestamp=timestamp,
        last_verified=timestamp,
    )


def scan_api_calls(file_set: FileSet, table: RouteTable, timestamp: int | None = None) -> ScanResult:
    """``frontend-calls-api`` connections for every HTTP client call.

    Unmatched relative paths get an unresolved endpoint component; absolute
    URLs to other hosts and non-literal targets point at external placeholders.
    """
    timestamp = timestamp or now_ms()
    unresolved: dict[str, Component] = {}
    connections: list[Connection] = []

    for source in file_set.files:
        lines = source.lines
        for i, line in enumerate(lines):
            if is_comment_line(line):
                continue
            for client, pattern in _HTTP_CLIENTS.items():
                match = pattern.search(line)
                if match is None:
                    continue

                arg = match.group("arg")
                if not arg.strip() and i + 1 < len(lines):
                    arg = lines[i + 1]
                target = parse_request_target(arg)
                method = _request_method(lines, i, match)

                if target.kind == "path":
                    endpoint = table.match(target.value)
                    if endpoint is None:
                        if target.value not in unresolved:
                            unresolved[target.value] = _unresolved_endpoint(target.value, source.path, timestamp)
                        endpoint = unresolved[target.value]
                    to_id = endpoint.component_id
                    label = target.value
                    confidence = 0.8 if target.templated else 0.9
                elif target.kind == "external":
                    to_id = f"{EXTERNAL_PLACEHOLDER_PREFIX}{target.value}"
                    label = target.value
                    confidence = 0.8
                else:
                    to_id = DYNAMIC_TARGET
                    label = "(dynamic)"
                    confidence = 0.7

                from_id = table.owner_of(source.path, i + 1) or f"{FILE_PLACEHOLDER_PREFIX}{source.path}"
                if from_id == to_id:
                    continue
                connections.append(
                    _connection(
                        ConnectionType.FRONTEND_CALLS_API,
                        source,
                        i,
                        from_id,
                        to_id,
                        f"API call: {method} {label}",
                        f"Pattern: {client}",
                        confidence,
                        timestamp,
                    )
                )
                break

    return ScanResult(list(unresolved.values()), connections, [])


# ---------------------------------------------------------------------------
# Pass 3: ORM calls
# ---------------------------------------------------------------------------


def _table_component(name: str, orm: str, timestamp: int) -> Component:
    return Component(
        component_id=new_component_id(ComponentType.DB_TABLE, name),
        name=name,
        type=ComponentType.DB_TABLE,
        role=Role(f"Database table: {name}", ArchitectureLayer.DATABASE, critical=True),
        source=Source("auto", (), 0.9),
        tags=["database", orm],
        timestamp=timestamp,
        last_updated=timestamp,
    )


def scan_database_operations(file_set: FileSet, table: RouteTable, timestamp: int | None = None) -> ScanResult:
    """One ``db-table`` component per table and one ``api-calls-db`` connection per ORM call."""
    timestamp = timestamp or now_ms()
    tables: dict[str, Component] = {}
    connections: list[Connection] = []

    for source in file_set.files:
        for i, line in enumerate(source.lines):
            if is_comment_line(line):
                continue
            for orm, (pattern, operations) in _ORMS.items():
                for match in pattern.finditer(line):
                    operation = match.group("operation")
                    if operation not in operations:
                        continue
                    name = match.group("table")
                    if name not in tables:
                        tables[name] = _table_component(name, orm, timestamp)

                    from_id = table.owner_of(source.path, i + 1) or f"{FILE_PLACEHOLDER_PREFIX}{source.path}"
                    connections.append(
                        _connection(
                            ConnectionType.API_CALLS_DB,
                            source,
                            i,
                            from_id,
                            tables[name].component_id,
                            f"{operation} on {name}",
                            f"Pattern: {orm}",
                            ORM_SIGNATURES[orm]["confidence"],
                            timestamp,
                        )
                    )

    return ScanResult(list(tables.values()), connections, [])


def scan_data_flow(file_set: FileSet) -> ScanResult:
    """Run all three passes and merge them into one result."""
    timestamp = now_ms()
    table = discover_routes(file_set, timestamp)
    api = scan_api_calls(file_set, table, timestamp)
    db = scan_database_operations(file_set, table, timestamp)

    logger.debug(
        "data flow: {e} endpoints, {p} pages, {a} api calls, {d} db calls across {t} tables",
        e=len(table.endpoints),
        p=len(table.page_components),
        a=len(api.connections),
        d=len(db.connections),
        t=len(db.components),
    )
    return ScanResult(table.components, [], []).merge(api).merge(db)
