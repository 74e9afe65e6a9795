"""Prompt definition and usage scanner.

Each line is tested together with the lines around it, so multi-line
message arrays are recognised at their opening line. A hit skips the
following context window to avoid reporting one literal several times.

Usage links a prompt to the AI provider of each traced call that holds it
inline or names it among its arguments. A call matching neither is linked
to the only prompt of its file, when there is exactly one.
"""

import re
from collections import defaultdict
from pathlib import PurePosixPath

from archgraph.identity import new_component_id, new_connection_id
from archgraph.scanners.base import FileSet, SourceFile, find_containing_function, truncate_snippet
from archgraph.scanners.llm_tracer import TracedLLMCall
from archgraph.signature_registry import PROMPT_PATTERNS
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
from archgraph.utils.constants import ARGUMENT_WINDOW_LINES, PROMPT_CONTEXT_LINES
from archgraph.utils.logging import logger

PROMPT_NAME_LOOKBACK = 5
PROMPT_SNIPPET_CHARS = 100
INLINE_USAGE_CONFIDENCE = 0.85
REFERENCE_USAGE_CONFIDENCE = 0.8
SAME_FILE_USAGE_CONFIDENCE = 0.6

_PATTERNS = [re.compile(p, re.S) for p in PROMPT_PATTERNS]
_PROMPT_REFERENCE = re.compile(r"(?:const|let|var|PROMPT|prompt)\s*[:=]\s*(\w*[Pp]rompt\w*)", re.I)
_PROMPT_TARGET = re.compile(r"\b(\w*[Pp][Rr][Oo][Mm][Pp][Tt]\w*)\s*[:=]")
_DEFINITION = re.compile(r"\b(?:function|def)\s+(\w+)")


def extract_prompt_name(lines: list[str], index: int, file: str) -> str:
    """Name a prompt from nearby assignments, else from the enclosing function."""
    for i in range(index, max(0, index - PROMPT_NAME_LOOKBACK) - 1, -1):
        line = lines[i]
        for pattern in (_PROMPT_REFERENCE, _PROMPT_TARGET):
            match = pattern.search(line)
            if match:
                return match.group(1)
        match = _DEFINITION.search(line)
        if match:
            return f"{match.group(1)}_prompt"

    return f"{PurePosixPath(file).stem}_prompt_L{index + 1}"


def _scan_file(source: SourceFile, timestamp: int) -> tuple[list[Component], list[Connection]]:
    components: list[Component] = []
    connections: list[Connection] = []
    lines = source.lines
    ctx = PROMPT_CONTEXT_LINES

    i = 0
    while i < len(lines):
        anchor = _match_start_line(lines, i, ctx)
        if anchor is None:
            i += 1
            continue

        i = anchor
        name = extract_prompt_name(lines, i, source.path)
        function_name = find_containing_function(lines, i)
        component = Component(
            component_id=new_component_id(ComponentType.PROMPT, name),
            name=name,
            type=ComponentType.PROMPT,
            role=Role("AI prompt definition", ArchitectureLayer.BACKEND, critical=True),
            source=Source("auto", (source.path,), 0.8),
            tags=["prompt", "ai"],
            timestamp=timestamp,
            last_updated=timestamp,
        )
        components.append(component)
        connections.append(
            Connection(
                connection_id=new_connection_id(ConnectionType.PROMPT_LOCATION),
                from_id=f"{FILE_PLACEHOLDER_PREFIX}{source.path}",
                from_location=CodeLocation(source.path, i + 1, function=function_name),
                to_id=component.component_id,
                connection_type=ConnectionType.PROMPT_LOCATION,
                code_reference=CodeReference(
                    file=source.path,
                    symbol=name,
                    symbol_type="variable",
                    line_start=i + 1,
                    code_snippet=truncate_snippet(lines[i], PROMPT_SNIPPET_CHARS),
                ),
                description=f"Prompt defined: {name}",
                detected_from="Prompt pattern detection",
                confidence=0.75,
                timestamp=timestamp,
                last_verified=timestamp,
            )
        )
        # the context window overlaps the next lines
        i += ctx + 1

    return components, connections


def _match_start_line(lines: list[str], i: int, ctx: int) -> int | None:
    """Line where the earliest match in the window around ``i`` begins, or None."""
    start = max(0, i - ctx)
    context = "\n".join(lines[start : i + ctx + 1])
    offsets = []
    for pattern in _PATTERNS:
        match = pattern.search(context)
        if match:
            offsets.append(match.start())
    if not offsets:
        return None
    return start + context.count("\n", 0, min(offsets))


def scan_prompt_locations(file_set: FileSet) -> ScanResult:
    timestamp = now_ms()
    components: list[Component] = []
    connections: list[Connection] = []
    for source in file_set.files:
        found, links = _scan_file(source, timestamp)
        components.extend(found)
        connections.extend(links)

    logger.debug("prompts: {n} prompt definitions", n=len(components))
    return ScanResult(components, connections, [])


def _prompt_sites(prompts: ScanResult) -> list[tuple[Component, str, int]]:
    by_id = {c.component_id: c for c in prompts.components}
    return [
        (by_id[conn.to_id], conn.code_reference.file, conn.code_reference.line_start or 1)
        for conn in prompts.connections
        if conn.connection_type is ConnectionType.PROMPT_LOCATION and conn.to_id in by_id
    ]


def _usage_connection(
    prompt: Component, file: str, line: int, call: TracedLLMCall, provider_id: str, confidence: float, timestamp: int
) -> Connection:
    anchor = call.anchor
    return Connection(
        connection_id=new_connection_id(ConnectionType.PROMPT_USAGE),
        from_id=prompt.component_id,
        from_location=CodeLocation(file, line),
        to_id=provider_id,
        to_location=CodeLocation(anchor.file, anchor.line, function=anchor.containing_function),
        connection_type=ConnectionType.PROMPT_USAGE,
        code_reference=CodeReference(
            file=anchor.file,
            symbol=call.name,
            symbol_type="function" if anchor.containing_function else None,
            line_start=anchor.line,
            code_snippet=truncate_snippet(anchor.code, PROMPT_SNIPPET_CHARS),
        ),
        description=f"Prompt {prompt.name} sent to {call.provider} via {call.name}",
        detected_from="Prompt usage detection",
        confidence=confidence,
        timestamp=timestamp,
        last_verified=timestamp,
    )


def link_prompt_usage(
    prompts: ScanResult, calls: list[TracedLLMCall], provider_ids: dict[str, str], file_set: FileSet
) -> list[Connection]:
    """``prompt-usage`` connections from prompt components to the providers that receive them.

    ``provider_ids`` maps a provider name to its llm component id; calls to
    providers without a component are skipped.
    """
    timestamp = now_ms()
    sites = _prompt_sites(prompts)
    sites_by_file: dict[str, list[tuple[Component, str, int]]] = defaultdict(list)
    for site in sites:
        sites_by_file[site[1]].append(site)
    by_path = file_set.by_path()

    connections: list[Connection] = []
    for call in calls:
        provider_id = provider_ids.get(call.provider)
        if provider_id is None:
            continue
        file, line = call.anchor.file, call.anchor.line
        window_end = line + ARGUMENT_WINDOW_LINES
        source = by_path.get(file)
        window = "\n".join(source.lines[line - 1 : window_end]) if source else call.anchor.code

        linked = 0
        for prompt, prompt_file, prompt_line in sites:
            if prompt_file == file and line <= prompt_line <= window_end:
                confidence = INLINE_USAGE_CONFIDENCE
            elif re.search(rf"\b{re.escape(prompt.name)}\b", window):
                confidence = REFERENCE_USAGE_CONFIDENCE
            else:
                continue
            connections.append(
                _usage_connection(prompt, prompt_file, prompt_line, call, provider_id, confidence, timestamp)
            )
            linked += 1

        if not linked and len(sites_by_file[file]) == 1:
            prompt, prompt_file, prompt_line = sites_by_file[file][0]
            connections.append(
                _usage_connection(
                    prompt, prompt_file, prompt_line, call, provider_id, SAME_FILE_USAGE_CONFIDENCE, timestamp
                )
            )

    logger.debug("prompts: {n} usage links", n=len(connections))
    return connections
