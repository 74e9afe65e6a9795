"""Anchor-based tracer for AI provider API calls.

Rather than looking for text that resembles a prompt, the tracer starts
from call sites it can verify and only then extracts the call arguments:

    Pass 1: SDK imports (static, dynamic, require, Python import/from)
    Pass 2: client bindings (``x = new OpenAI()``, ``self.client = Anthropic()``)
            plus client variables re-exported from other files
    Pass 3: call anchors (``client.chat.completions.create(`` on a known client)
            and wrapper functions that contain them
    Pass 4: argument extraction (model, prompt shape, config) from a bounded
            window after each anchor

Passes 1-2 are file-local. Cross-file bindings are resolved before the
pass 3/4 fan-out, which then only reads shared state.
"""

import re
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from archgraph.config import RuntimeConfig
from archgraph.identity import new_component_id, new_connection_id
from archgraph.scanners.base import (
    FileSet,
    SourceFile,
    find_containing_function,
    find_enclosing_class,
    is_comment_line,
    truncate_snippet,
)
from archgraph.signature_registry import LLM_SDK_REGISTRY
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
from archgraph.utils.constants import (
    ARGUMENT_WINDOW_LINES,
    CLASS_LOOKBACK_LINES,
    PROMPT_CONTENT_MAX_CHARS,
    VARIABLE_LOOKBACK_LINES,
)
from archgraph.utils.logging import logger

DETECTED_FROM = "LLM call tracer (anchor-based)"

BASE_CONFIDENCE = 0.6
IMPORT_BONUS = 0.15
MODEL_BONUS = 0.10
PROMPT_BONUS = 0.10
CONFIG_BONUS = 0.05


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SDKImport:
    file: str
    line: int
    sdk: str
    provider: str
    imported_names: tuple[str, ...]


@dataclass(frozen=True)
class ClientInit:
    file: str
    line: int
    variable: str
    sdk: str
    provider: str
    class_name: str


@dataclass(frozen=True)
class CallAnchor:
    file: str
    line: int
    code: str
    method: str
    client_variable: str
    provider: str
    sdk: str
    call_type: str
    containing_function: str | None = None


@dataclass
class WrapperFunction:
    """A function that contains one or more verified call anchors."""

    file: str
    function_name: str
    anchors: list[CallAnchor]
    class_name: str | None = None
    exported_as: str | None = None
    has_traceable: bool = False


@dataclass
class ModelInfo:
    value: str | None = None
    is_dynamic: bool = True
    variable_name: str | None = None
    line: int = 0


@dataclass
class PromptInfo:
    type: str = "variable-ref"  # messages-array | string-prompt | template | variable-ref
    content: str | None = None
    system_prompt: str | None = None
    has_user_template: bool = False
    variables: list[str] = field(default_factory=list)


@dataclass
class CallConfig:
    temperature: float | None = None
    max_tokens: int | None = None
    stream: bool | None = None
    tools: list[str] | None = None

    def is_empty(self) -> bool:
        return all(v is None for v in (self.temperature, self.max_tokens, self.stream, self.tools))

    def to_dict(self) -> dict[str, Any]:
        return {
            k: v
            for k, v in (
                ("temperature", self.temperature),
                ("max_tokens", self.max_tokens),
                ("stream", self.stream),
                ("tools", self.tools),
            )
            if v is not None
        }


@dataclass
class TracedLLMCall:
    id: str
    name: str
    anchor: CallAnchor
    import_line: int
    model: ModelInfo
    prompt: PromptInfo
    config: CallConfig
    confidence: float

    @property
    def provider(self) -> str:
        return self.anchor.provider

    @property
    def call_type(self) -> str:
        return self.anchor.call_type

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "anchor": {
                "file": self.anchor.file,
                "line": self.anchor.line,
                "code": self.anchor.code,
                "method": self.anchor.method,
            },
            "provider": {
                "name": self.anchor.provider,
                "sdk": self.anchor.sdk,
                "import_line": self.import_line,
                "client_variable": self.anchor.client_variable,
            },
            "model": {
                "value": self.model.value,
                "is_dynamic": self.model.is_dynamic,
                "variable_name": self.model.variable_name,
                "line": self.model.line,
            },
            "prompt": {
                "type": self.prompt.type,
                "content": self.prompt.content,
                "system_prompt": self.prompt.system_prompt,
                "has_user_template": self.prompt.has_user_template,
                "variables": list(self.prompt.variables),
            },
            "config": self.config.to_dict(),
            "call_type": self.anchor.call_type,
            "confidence": self.confidence,
        }


@dataclass
class LLMTraceResult:
    calls: list[TracedLLMCall]
    wrappers: list[WrapperFunction]
    scan_result: ScanResult


# ---------------------------------------------------------------------------
# Compiled registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _CallPattern:
    regex: re.Pattern
    method: str
    call_type: str
    requires_client: bool


@dataclass(frozen=True)
class _SDK:
    provider: str
    package_names: tuple[str, ...]
    class_names: frozenset[str]
    patterns: tuple[_CallPattern, ...]
    js_imports: tuple[tuple[str, re.Pattern, re.Pattern, re.Pattern], ...]
    py_imports: tuple[tuple[str, re.Pattern, re.Pattern], ...]


def _compile_sdk(provider: str, spec: dict) -> _SDK:
    js_imports = []
    py_imports = []
    for pkg in spec["package_names"]:
        quoted = rf"""['"]{re.escape(pkg)}(?:/[^'"]*)?['"]"""
        js_imports.append((
            pkg,
            re.compile(
                rf"import\s+(?:type\s+)?(?:(\w+)(?:\s*,\s*)?)?(?:\{{([^}}]*)\}}|\*\s*as\s+(\w+))?\s*from\s+{quoted}"
            ),
            re.compile(
                rf"(?:const|let|var)\s+(?:\{{([^}}]+)\}}|(\w+))\s*=\s*(?:await\s+)?import\s*\(\s*{quoted}"
            ),
            re.compile(rf"(?:const|let|var)\s+(?:\{{([^}}]+)\}}|(\w+))\s*=\s*require\s*\(\s*{quoted}"),
        ))
        if re.fullmatch(r"[A-Za-z_][\w.]*", pkg):
            module = re.escape(pkg)
            py_imports.append((
                pkg,
                re.compile(rf"^\s*from\s+{module}(?:\.[\w.]+)?\s+import\s+\(?\s*([^)#]*)"),
                re.compile(rf"^\s*import\s+{module}(?:\s+as\s+(\w+))?\s*(?:#.*)?$"),
            ))
    return _SDK(
        provider=provider,
        package_names=tuple(spec["package_names"]),
        class_names=frozenset(spec["class_names"]),
        patterns=tuple(
            _CallPattern(re.compile(cp["pattern"]), cp["method"], cp["call_type"], cp["requires_client"])
            for cp in spec["call_patterns"]
        ),
        js_imports=tuple(js_imports),
        py_imports=tuple(py_imports),
    )


SDKS: tuple[_SDK, ...] = tuple(_compile_sdk(p, s) for p, s in LLM_SDK_REGISTRY.items())
_SDK_BY_PROVIDER = {sdk.provider: sdk for sdk in SDKS}


def _split_names(raw: str) -> list[str]:
    """Names bound by ``A, B as C, type D`` or ``{ a: b }`` lists."""
    names = []
    for part in raw.split(","):
        part = part.strip().strip("()").strip()
        if not part:
            continue
        part = re.sub(r"^type\s+", "", part)
        if re.search(r"\s+as\s+", part):
            part = re.split(r"\s+as\s+", part)[-1]
        elif ":" in part:
            part = part.split(":")[-1]
        part = part.strip()
        if re.fullmatch(r"[A-Za-z_$][\w$]*", part):
            names.append(part)
    return names


# ---------------------------------------------------------------------------
# Pass 1: imports
# ---------------------------------------------------------------------------


def find_sdk_imports(source: SourceFile) -> list[SDKImport]:
    imports: list[SDKImport] = []

    for i, line in enumerate(source.lines):
        if "import" not in line and "require" not in line:
            continue

        for sdk in SDKS:
            names: list[str] | None = None
            matched_pkg = ""

            if source.is_python:
                for pkg, from_re, import_re in sdk.py_imports:
                    m = from_re.search(line)
                    if m:
                        names, matched_pkg = _split_names(m.group(1)), pkg
                        break
                    m = import_re.search(line)
                    if m:
                        names, matched_pkg = [m.group(1) or pkg.split(".")[-1]], pkg
                        break
            else:
                for pkg, static_re, dynamic_re, require_re in sdk.js_imports:
                    m = static_re.search(line)
                    if m:
                        names = [n for n in (m.group(1), m.group(3)) if n]
                        if m.group(2):
                            names.extend(_split_names(m.group(2)))
                        matched_pkg = pkg
                        break
                    m = dynamic_re.search(line) or require_re.search(line)
                    if m:
                        names = _split_names(m.group(1)) if m.group(1) else [m.group(2)]
                        matched_pkg = pkg
                        break

            if names is not None:
                imports.append(SDKImport(source.path, i + 1, matched_pkg, sdk.provider, tuple(names)))

    return imports


# ---------------------------------------------------------------------------
# Pass 2: client bindings
# ---------------------------------------------------------------------------

_JS_NEW_VAR = re.compile(r"(?:const|let|var)\s+(\w+)(?:\s*:\s*[\w<>.]+)?\s*=\s*new\s+([\w.]+)\s*\(")
_JS_NEW_THIS = re.compile(r"this\.(\w+)\s*=\s*new\s+([\w.]+)\s*\(")
_JS_NEW_FIELD = re.compile(
    r"^\s*(?:(?:private|public|protected|readonly|static)\s+)+(\w+)(?:\s*:\s*[\w<>.]+)?\s*=\s*new\s+([\w.]+)\s*\("
)
_PY_ASSIGN = re.compile(r"^\s*(self\.)?(\w+)(?:\s*:\s*[\w\[\]., |]+)?\s*=\s*(?:await\s+)?([\w.]+)\s*\(")


def _resolve_client_class(
    class_expr: str, imported: dict[str, SDKImport], allow_registry: bool
) -> tuple[str, str, str] | None:
    """Map a constructor expression to (sdk, provider, class_name)."""
    parts = class_expr.split(".")
    cls = parts[-1]

    imp = imported.get(class_expr) or (imported.get(cls) if len(parts) == 1 else None)
    if imp:
        return imp.sdk, imp.provider, cls

    # anthropic.Anthropic(), genai.GenerativeModel(), cohere.Client()
    if len(parts) > 1 and parts[0] in imported and cls[:1].isupper():
        imp = imported[parts[0]]
        return imp.sdk, imp.provider, cls

    if allow_registry:
        for sdk in SDKS:
            if cls in sdk.class_names:
                return sdk.package_names[0], sdk.provider, cls
    return None


def find_client_inits(source: SourceFile, imports: list[SDKImport]) -> list[ClientInit]:
    imported: dict[str, SDKImport] = {}
    for imp in imports:
        for name in imp.imported_names:
            imported.setdefault(name, imp)

    inits: list[ClientInit] = []
    for i, line in enumerate(source.lines):
        if is_comment_line(line):
            continue

        candidates: list[tuple[str, str, bool]] = []
        if source.is_python:
            m = _PY_ASSIGN.search(line)
            if m:
                variable = f"self.{m.group(2)}" if m.group(1) else m.group(2)
                candidates.append((variable, m.group(3), False))
        else:
            m = _JS_NEW_VAR.search(line)
            if m:
                candidates.append((m.group(1), m.group(2), True))
            m = _JS_NEW_THIS.search(line) or _JS_NEW_FIELD.search(line)
            if m:
                candidates.append((f"this.{m.group(1)}", m.group(2), False))

        for variable, class_expr, allow_registry in candidates:
            resolved = _resolve_client_class(class_expr, imported, allow_registry)
            if resolved:
                sdk, provider, cls = resolved
                inits.append(ClientInit(source.path, i + 1, variable, sdk, provider, cls))

    return inits


_JS_NAMED_IMPORT = re.compile(r"import\s+(?:(\w+)\s*,?\s*)?(?:\{([^}]*)\})?\s*from\s+['\"]([^'\"]+)['\"]")
_PY_FROM_IMPORT = re.compile(r"^\s*from\s+([\w.]+)\s+import\s+\(?\s*([^)#]+)")


def _local_name(variable: str) -> str:
    return variable.split(".", 1)[1] if variable.startswith(("this.", "self.")) else variable


def find_imported_client_vars(source: SourceFile, all_inits: list[ClientInit]) -> list[ClientInit]:
    """Client variables this file imports from another file that created them."""
    exported: dict[str, ClientInit] = {}
    for init in all_inits:
        if init.file != source.path and not init.variable.startswith(("this.", "self.")):
            exported.setdefault(init.variable, init)
    if not exported:
        return []

    rebound: list[ClientInit] = []
    seen: set[str] = set()
    for line in source.lines:
        names: list[str] = []
        if source.is_python:
            m = _PY_FROM_IMPORT.search(line)
            if m:
                names = _split_names(m.group(2))
        else:
            m = _JS_NAMED_IMPORT.search(line)
            if m:
                names = ([m.group(1)] if m.group(1) else []) + _split_names(m.group(2) or "")
        for name in names:
            if name in exported and name not in seen:
                seen.add(name)
                init = exported[name]
                rebound.append(
                    ClientInit(source.path, init.line, name, init.sdk, init.provider, init.class_name)
                )
    return rebound


# ---------------------------------------------------------------------------
# Pass 3: anchors
# ---------------------------------------------------------------------------

_RECEIVER = re.compile(r"((?:\w+\.)*\w+)\s*$")


def _lookup_client(client_vars: dict[str, ClientInit], receiver: str) -> ClientInit | None:
    """Resolve ``client``, ``this.client`` or ``client.beta`` to a binding.

    Trailing segments are dropped one at a time until a binding matches.
    """
    parts = receiver.split(".")
    while parts:
        candidate = ".".join(parts)
        init = client_vars.get(candidate) or client_vars.get(_local_name(candidate))
        if init:
            return init
        parts.pop()
    return None


def find_call_anchors(
    source: SourceFile, imports: list[SDKImport], client_inits: list[ClientInit]
) -> list[CallAnchor]:
    client_vars: dict[str, ClientInit] = {}
    for init in client_inits:
        client_vars.setdefault(init.variable, init)
        client_vars.setdefault(_local_name(init.variable), init)

    imported_by_provider: dict[str, set[str]] = defaultdict(set)
    for imp in imports:
        imported_by_provider[imp.provider].update(imp.imported_names)
    langchain_import = next((imp for imp in imports if imp.provider == "langchain"), None)

    anchors: list[CallAnchor] = []
    lines = source.lines

    for i, line in enumerate(lines):
        if is_comment_line(line):
            continue

        for sdk in SDKS:
            for cp in sdk.patterns:
                m = cp.regex.search(line)
                if not m:
                    continue

                if cp.requires_client:
                    receiver_match = _RECEIVER.search(line[: m.start()])
                    if not receiver_match:
                        continue
                    receiver = receiver_match.group(1)
                    init = _lookup_client(client_vars, receiver)
                    if init and init.provider == sdk.provider:
                        sdk_name = init.sdk
                    elif sdk.provider == "langchain" and langchain_import:
                        # Chains and runnables built from LangChain objects
                        sdk_name = langchain_import.sdk
                    else:
                        continue
                    client_variable = receiver
                else:
                    if m.start() > 0 and line[m.start() - 1] == ".":
                        continue
                    function_name = re.match(r"\w+", m.group(0)).group(0)
                    if function_name not in imported_by_provider.get(sdk.provider, ()):
                        continue
                    sdk_name = next(
                        (imp.sdk for imp in imports if imp.provider == sdk.provider),
                        sdk.package_names[0],
                    )
                    client_variable = function_name

                anchors.append(
                    CallAnchor(
                        file=source.path,
                        line=i + 1,
                        code=truncate_snippet(line),
                        method=cp.method,
                        client_variable=client_variable,
                        provider=sdk.provider,
                        sdk=sdk_name,
                        call_type=cp.call_type,
                        containing_function=find_containing_function(lines, i),
                    )
                )
                break

    return anchors


def _is_exported(source: SourceFile, function_name: str) -> bool:
    if source.is_python:
        if function_name.startswith("_"):
            return False
        return bool(re.search(rf"^(?:async\s+)?def\s+{re.escape(function_name)}\b", source.content, re.M))
    return bool(re.search(rf"\bexport\b[^\n]*\b{re.escape(function_name)}\b", source.content))


def map_wrapper_functions(anchors: list[CallAnchor], files: dict[str, SourceFile]) -> list[WrapperFunction]:
    """Group anchors by containing function and describe each wrapper."""
    grouped: dict[tuple[str, str], list[CallAnchor]] = {}
    for anchor in anchors:
        if anchor.containing_function:
            grouped.setdefault((anchor.file, anchor.containing_function), []).append(anchor)

    wrappers = []
    for (file, function_name), fn_anchors in grouped.items():
        source = files.get(file)
        if source is None:
            continue
        wrappers.append(
            WrapperFunction(
                file=file,
                function_name=function_name,
                anchors=fn_anchors,
                class_name=find_enclosing_class(source.lines, fn_anchors[0].line - 1, CLASS_LOOKBACK_LINES),
                exported_as=function_name if _is_exported(source, function_name) else None,
                has_traceable="traceable(" in source.content or "@traceable" in source.content,
            )
        )
    return wrappers


# ---------------------------------------------------------------------------
# Pass 4: arguments
# ---------------------------------------------------------------------------

_MODEL_LITERAL = re.compile(r"\bmodel\s*[:=]\s*(['\"`])([^'\"`\n]+)\1")
_MODEL_VARIABLE = re.compile(r"\bmodel\s*[:=]\s*([A-Za-z_$][\w$]*(?:\.\w+)*)")
_NON_VARIABLES = frozenset({"None", "null", "undefined", "true", "false", "True", "False"})

_MESSAGES_ARRAY = re.compile(r"\bmessages\s*[:=]\s*\[")
_MESSAGES_VARIABLE = re.compile(r"\bmessages\s*[:=]\s*(\w+)")
_ROLE_CONTENT = (
    r"""['"]?role['"]?\s*:\s*['"]{role}['"]\s*,\s*['"]?content['"]?\s*:\s*"""
    r"""(?:f?[`'"]([^`'"]{{0,{limit}}})|(\w+))"""
)
_SYSTEM_ENTRY = re.compile(_ROLE_CONTENT.format(role="system", limit=PROMPT_CONTENT_MAX_CHARS))
_USER_ENTRY = re.compile(_ROLE_CONTENT.format(role="user", limit=PROMPT_CONTENT_MAX_CHARS))
_PROMPT_STRING = re.compile(rf"\bprompt\s*[:=]\s*(f?)[`'\"]([^`'\"]{{0,{PROMPT_CONTENT_MAX_CHARS}}})")
_PROMPT_VARIABLE = re.compile(r"\bprompt\s*[:=]\s*([A-Za-z_]\w*)")
_SYSTEM_STRING = re.compile(rf"\bsystem\s*[:=]\s*f?[`'\"]([^`'\"]{{0,{PROMPT_CONTENT_MAX_CHARS}}})")
_POSITIONAL_STRING = re.compile(rf"^\s*(f?)[`'\"]([^`'\"]{{1,{PROMPT_CONTENT_MAX_CHARS}}})")
_POSITIONAL_VARIABLE = re.compile(r"^\s*([A-Za-z_]\w*)\s*[,)]")

_TEMPLATE_DOLLAR = re.compile(r"\$\{(\w+)\}")
_TEMPLATE_TRIPLE = re.compile(r"\{\{\{\s*(\w+)\s*\}\}\}")
_TEMPLATE_DOUBLE = re.compile(r"\{\{\s*(\w+)\s*\}\}")
_TEMPLATE_FSTRING = re.compile(r"(?<![{$])\{(\w+)(?:[!:][^{}]*)?\}(?!\})")

_TEMPERATURE = re.compile(r"\btemperature\s*[:=]\s*(\d*\.?\d+)")
_MAX_TOKENS = re.compile(r"\b(?:max_tokens|maxTokens|max_output_tokens|maxOutputTokens)\s*[:=]\s*(\d+)")
_STREAM = re.compile(r"\bstream\s*[:=]\s*(true|false|True|False)\b")
_TOOLS = re.compile(r"\b(?:tools|functions)\s*[:=]\s*\[")


def detect_template_vars(text: str, fstring: bool = False) -> list[str]:
    """Template variable names in first-seen order.

    Covers ``${x}``, ``{{x}}``, ``{{{x}}}`` and, for Python f-strings, ``{x}``.
    """
    found: list[tuple[int, str]] = []
    patterns = [_TEMPLATE_DOLLAR, _TEMPLATE_TRIPLE, _TEMPLATE_DOUBLE]
    if fstring:
        patterns.append(_TEMPLATE_FSTRING)
    for pattern in patterns:
        found.extend((m.start(), m.group(1)) for m in pattern.finditer(text))

    names: list[str] = []
    for _, name in sorted(found):
        if name not in names:
            names.append(name)
    return names


def _assignment_regex(name: str) -> re.Pattern:
    escaped = re.escape(name)
    return re.compile(
        rf"(?:(?:const|let|var)\s+|^\s*(?:export\s+const\s+|self\.)?|[{{,]\s*){escaped}"
        rf"(?:\s*:\s*[\w\[\]|. ]+?)?\s*[=:]\s*(['\"`])([^'\"`\n]+)\1"
    )


def resolve_variable(lines: list[str], from_index: int, variable: str) -> str | None:
    """Literal value assigned to ``variable`` before ``from_index``.

    Looks back ``VARIABLE_LOOKBACK_LINES`` first, then falls back to the first
    matching assignment anywhere earlier in the file.
    """
    parts = variable.split(".")
    names = [parts[0]] if len(parts) == 1 else [parts[0], parts[-1]]
    for name in names:
        regex = _assignment_regex(name)
        stop = max(0, from_index - VARIABLE_LOOKBACK_LINES)
        for i in range(from_index, stop - 1, -1):
            m = regex.search(lines[i])
            if m:
                return m.group(2)
        for i in range(0, stop):
            m = regex.search(lines[i])
            if m:
                return m.group(2)
    return None


def extract_model(context: str, lines: list[str], anchor_index: int) -> ModelInfo:
    m = _MODEL_LITERAL.search(context)
    if m:
        return ModelInfo(
            value=m.group(2),
            is_dynamic=False,
            line=anchor_index + 1 + context.count("\n", 0, m.start()),
        )

    m = _MODEL_VARIABLE.search(context)
    if m and m.group(1) not in _NON_VARIABLES:
        variable = m.group(1)
        resolved = resolve_variable(lines, anchor_index, variable)
        return ModelInfo(
            value=resolved,
            is_dynamic=resolved is None,
            variable_name=variable,
            line=anchor_index + 1 + context.count("\n", 0, m.start()),
        )

    return ModelInfo(value=None, is_dynamic=True, line=anchor_index + 1)


def extract_prompt(context: str, call_args: str) -> PromptInfo:
    """Classify the payload shape of a call.

    ``context`` is the forward window; ``call_args`` is the text right after
    the call's opening parenthesis.
    """
    is_fstring_context = bool(re.search(r"\bf['\"]", context))

    if _MESSAGES_ARRAY.search(context):
        system = _SYSTEM_ENTRY.search(context)
        user = _USER_ENTRY.search(context)
        return PromptInfo(
            type="messages-array",
            content=(user.group(1) or user.group(2)) if user else None,
            system_prompt=(system.group(1) or system.group(2)) if system else None,
            has_user_template=user is not None,
            variables=detect_template_vars(context, fstring=is_fstring_context),
        )

    if _MESSAGES_VARIABLE.search(context):
        return PromptInfo(type="variable-ref")

    m = _PROMPT_STRING.search(context) or _POSITIONAL_STRING.search(call_args)
    if m:
        content = m.group(2)
        variables = detect_template_vars(content, fstring=bool(m.group(1)))
        return PromptInfo(
            type="template" if variables else "string-prompt",
            content=content,
            has_user_template=True,
            variables=variables,
        )

    system = _SYSTEM_STRING.search(context)
    if system:
        return PromptInfo(type="string-prompt", system_prompt=system.group(1))

    if _PROMPT_VARIABLE.search(context) or _POSITIONAL_VARIABLE.search(call_args):
        return PromptInfo(type="variable-ref")

    return PromptInfo(type="string-prompt")


def extract_config(context: str) -> CallConfig:
    config = CallConfig()

    m = _TEMPERATURE.search(context)
    if m:
        config.temperature = float(m.group(1))

    m = _MAX_TOKENS.search(context)
    if m:
        config.max_tokens = int(m.group(1))

    m = _STREAM.search(context)
    if m:
        config.stream = m.group(1).lower() == "true"

    if _TOOLS.search(context):
        config.tools = ["detected"]

    return config


def extract_call_arguments(anchor: CallAnchor, lines: list[str]) -> tuple[ModelInfo, PromptInfo, CallConfig]:
    anchor_index = anchor.line - 1
    context = "\n".join(lines[anchor_index : anchor_index + ARGUMENT_WINDOW_LINES])

    anchor_line = lines[anchor_index]
    method_at = anchor_line.find(anchor.method.split(".")[-1])
    paren = anchor_line.find("(", max(method_at, 0))
    call_args = anchor_line[paren + 1 :] if paren >= 0 else ""

    return extract_model(context, lines, anchor_index), extract_prompt(context, call_args), extract_config(context)


def compute_confidence(has_import: bool, model: ModelInfo, prompt: PromptInfo, config: CallConfig) -> float:
    confidence = BASE_CONFIDENCE
    if has_import:
        confidence += IMPORT_BONUS
    if model.value:
        confidence += MODEL_BONUS
    if prompt.content or prompt.system_prompt:
        confidence += PROMPT_BONUS
    if not config.is_empty():
        confidence += CONFIG_BONUS
    return min(round(confidence, 4), 1.0)


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def convert_to_scan_result(calls: list[TracedLLMCall]) -> ScanResult:
    """One llm component per provider, one service-call connection per call."""
    timestamp = now_ms()
    providers: dict[str, Component] = {}

    best: dict[str, float] = {}
    for call in calls:
        best[call.provider] = max(best.get(call.provider, 0.0), call.confidence)

    for call in calls:
        if call.provider in providers:
            continue
        providers[call.provider] = Component(
            component_id=new_component_id(ComponentType.LLM, call.provider),
            name=call.provider,
            type=ComponentType.LLM,
            role=Role(f"{call.provider} AI API", ArchitectureLayer.EXTERNAL, critical=True),
            source=Source("auto", (), best[call.provider]),
            tags=["llm", "external", call.provider],
            timestamp=timestamp,
            last_updated=timestamp,
        )

    connections = []
    for call in calls:
        model_suffix = f" ({call.model.value})" if call.model.value else ""
        connections.append(
            Connection(
                connection_id=new_connection_id(ConnectionType.SERVICE_CALL),
                from_id=f"{FILE_PLACEHOLDER_PREFIX}{call.anchor.file}",
                from_location=CodeLocation(call.anchor.file, call.anchor.line, function=call.name),
                to_id=providers[call.provider].component_id,
                connection_type=ConnectionType.SERVICE_CALL,
                code_reference=CodeReference(
                    file=call.anchor.file,
                    symbol=call.name,
                    symbol_type="function" if call.anchor.containing_function else None,
                    line_start=call.anchor.line,
                    code_snippet=call.anchor.code,
                ),
                description=f"{call.provider}.{call.anchor.method}{model_suffix}",
                detected_from=DETECTED_FROM,
                confidence=call.confidence,
                timestamp=timestamp,
                last_verified=timestamp,
            )
        )

    return ScanResult(list(providers.values()), connections, [])


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _bindings_for(source: SourceFile) -> tuple[list[SDKImport], list[ClientInit]]:
    imports = find_sdk_imports(source)
    return imports, find_client_inits(source, imports)


def trace_llm_calls(file_set: FileSet, config: RuntimeConfig) -> LLMTraceResult:
    """Run all four passes over already-read source files."""
    files = file_set.files
    by_path = file_set.by_path()

    with ThreadPoolExecutor(max_workers=config.read_workers) as executor:
        bindings = list(executor.map(_bindings_for, files))

    imports_by_file: dict[str, list[SDKImport]] = {}
    all_imports: list[SDKImport] = []
    all_inits: list[ClientInit] = []
    for source, (imports, inits) in zip(files, bindings):
        imports_by_file[source.path] = imports
        all_imports.extend(imports)
        all_inits.extend(inits)

    # Cross-file bindings are resolved here so the fan-out below is read-only
    inits_by_file: dict[str, list[ClientInit]] = defaultdict(list)
    for init in all_inits:
        inits_by_file[init.file].append(init)
    for source in files:
        inits_by_file[source.path].extend(find_imported_client_vars(source, all_inits))

    candidates = [s for s in files if imports_by_file.get(s.path) or inits_by_file.get(s.path)]

    def anchors_for(source: SourceFile) -> list[CallAnchor]:
        return find_call_anchors(source, imports_by_file.get(source.path, []), inits_by_file[source.path])

    with ThreadPoolExecutor(max_workers=config.read_workers) as executor:
        anchor_lists = list(executor.map(anchors_for, candidates))

    anchors: list[CallAnchor] = []
    seen: set[tuple[str, int]] = set()
    for file_anchors in anchor_lists:
        for anchor in file_anchors:
            key = (anchor.file, anchor.line)
            if key in seen:
                continue
            seen.add(key)
            anchors.append(anchor)

    wrappers = map_wrapper_functions(anchors, by_path)

    calls: list[TracedLLMCall] = []
    for anchor in anchors:
        model, prompt, call_config = extract_call_arguments(anchor, by_path[anchor.file].lines)
        matching_import = next(
            (i for i in imports_by_file.get(anchor.file, []) if i.provider == anchor.provider),
            None,
        ) or next((i for i in all_imports if i.provider == anchor.provider), None)

        calls.append(
            TracedLLMCall(
                id=f"TRACE_{re.sub(r'[^a-zA-Z0-9]', '_', anchor.file)}_L{anchor.line}",
                name=anchor.containing_function or f"anonymous_{anchor.line}",
                anchor=anchor,
                import_line=matching_import.line if matching_import else 0,
                model=model,
                prompt=prompt,
                config=call_config,
                confidence=compute_confidence(matching_import is not None, model, prompt, call_config),
            )
        )

    logger.info(
        "LLM tracer: {imports} imports, {inits} clients, {calls} calls across {providers} providers",
        imports=len(all_imports),
        inits=len(all_inits),
        calls=len(calls),
        providers=len({c.provider for c in calls}),
    )
    return LLMTraceResult(calls, wrappers, convert_to_scan_result(calls))
