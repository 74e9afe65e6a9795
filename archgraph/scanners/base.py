"""Shared file enumeration, reading and line heuristics for the scanners.

Source files are read once per scan by ``read_source_files`` and handed to
every scanner as ``SourceFile`` records. Reads are size-bounded and run in a
thread pool; unreadable files become warnings, never errors.
"""

import os
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path

from archgraph.config import RuntimeConfig
from archgraph.types import ScanWarning, WarningType
from archgraph.utils.constants import (
    EXCLUDED_DIRS,
    FUNCTION_LOOKBACK_LINES,
    SNIPPET_MAX_CHARS,
    SOURCE_EXTENSIONS,
)
from archgraph.utils.logging import logger

_EXCLUDE_PATTERNS = [
    re.compile(p)
    for p in (
        r"(^|/)__tests__/",
        r"(^|/)tests?/",
        r"(^|/)mocks?/",
        r"(^|/)fixtures?/",
        r"(^|/)generated/",
        r"\.(test|spec|mock)\.(ts|tsx|js|jsx)$",
        r"(^|/)test_[^/]*\.py$",
        r"_test\.py$",
        r"(^|/)conftest\.py$",
        r"\.(d\.ts|map|min\.js)$",
    )
]

_TEST_ONLY_PATTERNS = _EXCLUDE_PATTERNS[:4] + _EXCLUDE_PATTERNS[5:9]

# Function header heuristics, tried in order on each line walking upward
_PY_DEF = re.compile(r"^\s*(?:async\s+)?def\s+(\w+)\s*\(")
_JS_FUNCTION = re.compile(r"\bfunction\s*\*?\s*(\w+)\s*\(")
_JS_ARROW = re.compile(r"(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s*)?(?:\([^)]*\)|\w+)\s*=>")
_JS_FUNC_EXPR = re.compile(r"(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s+)?function\b")
_JS_METHOD = re.compile(
    r"^\s*(?:(?:public|private|protected|static|async|override|readonly)\s+)*\*?(\w+)\s*\([^)]*\)\s*(?::\s*[^{=]+)?\{"
)
_CONTROL_KEYWORDS = frozenset({
    "if", "for", "while", "switch", "catch", "with", "return", "else", "elif",
    "function", "await", "new", "typeof", "try", "do",
})

_CLASS = re.compile(r"^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+(\w+)")


@dataclass
class SourceFile:
    """A project-relative path and its decoded content."""

    path: str
    content: str

    @cached_property
    def lines(self) -> list[str]:
        return self.content.split("\n")

    @property
    def is_python(self) -> bool:
        return self.path.endswith(".py")


@dataclass
class FileSet:
    """Files read for one scan plus the warnings produced while reading."""

    files: list[SourceFile] = field(default_factory=list)
    warnings: list[ScanWarning] = field(default_factory=list)

    def by_path(self) -> dict[str, SourceFile]:
        return {f.path: f for f in self.files}


def should_exclude_file(rel_path: str, include_tests: bool = False) -> bool:
    """True for test files, fixtures, declaration/minified output and generated code."""
    normalized = rel_path.replace("\\", "/")
    patterns = _EXCLUDE_PATTERNS
    if include_tests:
        patterns = [p for p in _EXCLUDE_PATTERNS if p not in _TEST_ONLY_PATTERNS]
    return any(p.search(normalized) for p in patterns)


def collect_source_files(root: Path, include_tests: bool = False) -> list[str]:
    """Enumerate scannable source files as sorted project-relative POSIX paths."""
    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS and not d.startswith(".venv"))
        for name in filenames:
            if not name.endswith(SOURCE_EXTENSIONS):
                continue
            rel = Path(dirpath, name).relative_to(root).as_posix()
            if should_exclude_file(rel, include_tests):
                continue
            found.append(rel)
    found.sort()
    return found


def _read_one(root: Path, rel_path: str, max_size: int) -> tuple[SourceFile | None, ScanWarning | None]:
    full = root / rel_path
    try:
        size = full.stat().st_size
        if size > max_size:
            return None, ScanWarning(
                WarningType.PARSE_ERROR,
                f"Skipped {rel_path}: {size} bytes exceeds limit of {max_size}",
                file=rel_path,
            )
        with open(full, encoding="utf-8") as f:
            return SourceFile(rel_path, f.read(max_size + 1)), None
    except UnicodeDecodeError as e:
        return None, ScanWarning(WarningType.PARSE_ERROR, f"Could not decode {rel_path}: {e}", file=rel_path)
    except OSError as e:
        return None, ScanWarning(WarningType.MISSING_FILE, f"Could not read {rel_path}: {e}", file=rel_path)


def read_source_files(root: Path, rel_paths: list[str], config: RuntimeConfig) -> FileSet:
    """Read files concurrently; each worker returns its own result, merged once here."""
    files: list[SourceFile] = []
    warnings: list[ScanWarning] = []

    with ThreadPoolExecutor(max_workers=config.read_workers) as executor:
        futures = [executor.submit(_read_one, root, p, config.max_file_size) for p in rel_paths]
        for future in as_completed(futures):
            source, warning = future.result()
            if source is not None:
                files.append(source)
            if warning is not None:
                logger.debug(warning.message)
                warnings.append(warning)

    # as_completed order is arbitrary
    files.sort(key=lambda f: f.path)
    warnings.sort(key=lambda w: w.file or "")
    logger.debug("Read {n} source files ({w} skipped)", n=len(files), w=len(warnings))
    return FileSet(files, warnings)


def load_project_files(config: RuntimeConfig) -> FileSet:
    paths = collect_source_files(config.root, config.include_tests)
    return read_source_files(config.root, paths, config)


def is_comment_line(line: str) -> bool:
    trimmed = line.lstrip()
    return trimmed.startswith(("//", "*", "#", "/*"))


def truncate_snippet(line: str, limit: int = SNIPPET_MAX_CHARS) -> str:
    return line.strip()[:limit]


def find_containing_function(
    lines: list[str], index: int, window: int = FUNCTION_LOOKBACK_LINES
) -> str | None:
    """Best-effort name of the function enclosing ``lines[index]``.

    Walks upward at most ``window`` lines looking for a JS/TS function,
    arrow function, method, or Python ``def`` header. This is a textual
    heuristic; nested or multi-line signatures can be misattributed.
    """
    stop = max(0, index - window)
    for i in range(index, stop - 1, -1):
        line = lines[i]
        for pattern in (_PY_DEF, _JS_FUNCTION, _JS_ARROW, _JS_FUNC_EXPR, _JS_METHOD):
            match = pattern.search(line)
            if match and match.group(1) not in _CONTROL_KEYWORDS:
                return match.group(1)
    return None


def find_enclosing_class(lines: list[str], index: int, window: int) -> str | None:
    stop = max(0, index - window)
    for i in range(index, stop - 1, -1):
        match = _CLASS.search(lines[i])
        if match:
            return match.group(1)
    return None
