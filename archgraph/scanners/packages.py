"""Package manifest scanners for npm, Python and Swift projects.

Each dependency becomes a component. Known packages take their type, layer
and purpose from the signature registry; unknown ones get the ecosystem
default. These scanners produce no connections.
"""

import re
from pathlib import Path

from archgraph.identity import new_component_id
from archgraph.manifest_parser import ManifestParser, clean_version, split_requirement
from archgraph.signature_registry import NPM_SIGNATURES, PYTHON_SIGNATURES, SWIFT_SIGNATURES
from archgraph.types import (
    ArchitectureLayer,
    Component,
    ComponentType,
    Role,
    ScanResult,
    ScanWarning,
    Source,
    WarningType,
    now_ms,
)
from archgraph.utils.logging import logger

NPM_LOCKFILES = ("package-lock.json", "yarn.lock", "pnpm-lock.yaml")
PY_MARKERS = ("requirements.txt", "pyproject.toml", "setup.py", "setup.cfg", "Pipfile")
REQUIREMENTS_GLOB = "requirements*.txt"

# Dependency locations inside pyproject.toml
PYPROJECT_DEPENDENCY_PATHS = [
    ["project", "dependencies"],
    ["project", "optional-dependencies", "*"],
    ["tool", "poetry", "dependencies"],
    ["tool", "poetry", "dev-dependencies"],
    ["tool", "poetry", "group", "*", "dependencies"],
]

_SWIFT_PACKAGE = re.compile(
    r"\.package\(\s*(?:name:\s*\"([^\"]*)\",\s*)?url:\s*\"([^\"]*)\",\s*"
    r"(?:from:\s*\"([^\"]*)\""
    r"|\.(?:upToNextMajor|upToNextMinor)\(from:\s*\"([^\"]*)\"\)"
    r"|exact:\s*\"([^\"]*)\""
    r"|branch:\s*\"([^\"]*)\""
    r"|\"([^\"]*)\"\s*\.\.<?\s*\"[^\"]*\")\s*\)"
)
_SWIFT_SYSTEM_LIBRARY = re.compile(r"\.systemLibrary\(\s*name:\s*\"([^\"]*)\"")
_PODFILE_POD = re.compile(r"^\s*pod\s+['\"]([^'\"]+)['\"]\s*(?:,\s*['\"]([^'\"]+)['\"])?", re.M)
_SWIFT_IMPORT = re.compile(r"^\s*(?:@testable\s+)?import\s+(?:struct\s+|class\s+|enum\s+|protocol\s+|func\s+)?(\w+)", re.M)
_REPO_NAME = re.compile(r"/([^/]+?)(?:\.git)?$")


def _package_component(
    name: str,
    version: str | None,
    signature: dict | None,
    default_type: ComponentType,
    default_critical: bool,
    config_file: str,
    tags: list[str],
    timestamp: int,
    confidence: float = 1.0,
) -> Component:
    component_type = ComponentType.coerce(signature["type"]) if signature else default_type
    layer = ArchitectureLayer(signature["layer"]) if signature else ArchitectureLayer.BACKEND
    purpose = signature["purpose"] if signature else f"{default_type.value} package"
    critical = signature["critical"] if signature else default_critical

    return Component(
        component_id=new_component_id(component_type, name),
        name=name,
        version=clean_version(version),
        type=component_type,
        role=Role(purpose, layer, critical),
        source=Source("auto", (config_file,) if config_file else (), confidence),
        tags=[*tags, component_type.value, layer.value],
        timestamp=timestamp,
        last_updated=timestamp,
    )


def _manifest_warnings(parser: ManifestParser, root: Path) -> list[ScanWarning]:
    warnings = []
    for path, message in parser.errors:
        try:
            rel = path.relative_to(root).as_posix()
        except ValueError:
            rel = str(path)
        warnings.append(ScanWarning(WarningType.PARSE_ERROR, message, file=rel))
    return warnings


# ---------------------------------------------------------------------------
# npm
# ---------------------------------------------------------------------------


def detect_npm(root: Path) -> bool:
    return (root / "package.json").exists() or any((root / f).exists() for f in NPM_LOCKFILES)


def detect_package_manager(root: Path) -> str | None:
    """npm, yarn or pnpm, judged by lockfile."""
    if (root / "pnpm-lock.yaml").exists():
        return "pnpm"
    if (root / "yarn.lock").exists():
        return "yarn"
    if (root / "package-lock.json").exists() or (root / "package.json").exists():
        return "npm"
    return None


def scan_npm_packages(root: Path) -> ScanResult:
    """Components for package.json dependencies and devDependencies."""
    manifest = root / "package.json"
    if not manifest.exists():
        return ScanResult()

    parser = ManifestParser()
    data = parser.parse_json(manifest)
    timestamp = now_ms()
    components: list[Component] = []

    seen: set[str] = set()
    for section, category in (("dependencies", "core"), ("devDependencies", "dev"), ("peerDependencies", "peer")):
        deps = data.get(section) or {}
        if not isinstance(deps, dict):
            continue
        for name, version in deps.items():
            if name in seen:
                continue
            seen.add(name)
            components.append(
                _package_component(
                    name,
                    str(version),
                    NPM_SIGNATURES.get(name),
                    ComponentType.NPM,
                    category == "core",
                    "package.json",
                    [category],
                    timestamp,
                )
            )

    logger.debug("npm: {n} packages from package.json", n=len(components))
    return ScanResult(components, [], _manifest_warnings(parser, root))


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------


def detect_pip(root: Path) -> bool:
    return any((root / f).exists() for f in PY_MARKERS)


def _pyproject_requirements(parser: ManifestParser, data: dict) -> list[tuple[str, str | None]]:
    found: list[tuple[str, str | None]] = []
    for key_path in PYPROJECT_DEPENDENCY_PATHS:
        value = parser.extract_nested_value(data, key_path)
        if isinstance(value, list):
            for spec in value:
                if isinstance(spec, str):
                    parsed = split_requirement(spec)
                    if parsed:
                        found.append(parsed)
        elif isinstance(value, dict):
            # Poetry tables: name = "^1.0" or name = {version = "^1.0", ...}
            for name, spec in value.items():
                if name.lower() == "python":
                    continue
                if isinstance(spec, list):
                    # optional-dependencies: group = ["pkg>=1", ...]
                    for item in spec:
                        parsed = split_requirement(item) if isinstance(item, str) else None
                        if parsed:
                            found.append(parsed)
                    continue
                if isinstance(spec, dict):
                    spec = spec.get("version")
                found.append((name, spec if isinstance(spec, str) else None))
    return found


def scan_pip_packages(root: Path) -> ScanResult:
    """Components for requirements*.txt and pyproject.toml dependencies.

    A package listed in several files is reported once, from the first file.
    """
    parser = ManifestParser()
    timestamp = now_ms()
    components: list[Component] = []
    seen: set[str] = set()

    def add(name: str, version: str | None, config_file: str) -> None:
        key = name.lower().replace("_", "-")
        if key in seen:
            return
        seen.add(key)
        components.append(
            _package_component(
                name,
                version,
                PYTHON_SIGNATURES.get(key),
                ComponentType.PIP,
                True,
                config_file,
                ["python"],
                timestamp,
            )
        )

    for req_file in sorted(root.glob(REQUIREMENTS_GLOB)):
        for spec in parser.parse_requirements_txt(req_file):
            parsed = split_requirement(spec)
            if parsed:
                add(parsed[0], parsed[1], req_file.name)

    pyproject = root / "pyproject.toml"
    if pyproject.exists():
        data = parser.parse_toml(pyproject)
        for name, version in _pyproject_requirements(parser, data):
            add(name, version, "pyproject.toml")

    setup_cfg = root / "setup.cfg"
    if setup_cfg.exists():
        install_requires = parser.parse_ini(setup_cfg).get("options", {}).get("install_requires", "")
        for spec in install_requires.splitlines():
            parsed = split_requirement(spec.strip()) if spec.strip() else None
            if parsed:
                add(parsed[0], parsed[1], "setup.cfg")

    logger.debug("pip: {n} packages", n=len(components))
    return ScanResult(components, [], _manifest_warnings(parser, root))


def declared_version(root: Path, package_names: list[str]) -> str | None:
    """Version of the first of ``package_names`` declared in package.json or pyproject.toml."""
    parser = ManifestParser()
    dep_sources: list = []

    if (root / "package.json").exists():
        data = parser.parse_json(root / "package.json")
        dep_sources.extend(data.get(section) for section in ("dependencies", "devDependencies"))
    if (root / "pyproject.toml").exists():
        data = parser.parse_toml(root / "pyproject.toml")
        dep_sources.append(parser.extract_nested_value(data, ["project", "dependencies"]))
        dep_sources.append(parser.extract_nested_value(data, ["tool", "poetry", "dependencies"]))
    for req_file in sorted(root.glob(REQUIREMENTS_GLOB)):
        dep_sources.append(parser.parse_requirements_txt(req_file))

    for name in package_names:
        for deps in dep_sources:
            version = parser.check_package_in_deps(deps, name)
            if version:
                return clean_version(version)
    return None


# ---------------------------------------------------------------------------
# Swift
# ---------------------------------------------------------------------------


def detect_swift(root: Path) -> bool:
    if any((root / f).exists() for f in ("Package.swift", "Podfile", "Cartfile")):
        return True
    try:
        return any(p.suffix in (".xcodeproj", ".xcworkspace") for p in root.iterdir())
    except OSError:
        return False


def _swift_signature(name: str) -> dict | None:
    lowered = name.lower()
    for known, signature in SWIFT_SIGNATURES.items():
        if known.lower() == lowered:
            return signature
    return None


def _swift_component(name: str, version: str | None, config_file: str, timestamp: int) -> Component:
    return _package_component(
        name, version, _swift_signature(name), ComponentType.SPM, True, config_file, ["spm"], timestamp
    )


def parse_package_swift(content: str, config_file: str, timestamp: int) -> list[Component]:
    components = []
    for m in _SWIFT_PACKAGE.finditer(content):
        url = m.group(2)
        repo = _REPO_NAME.search(url)
        name = m.group(1) or (repo.group(1) if repo else url)
        version = next((g for g in m.groups()[2:] if g), None)
        components.append(_swift_component(name, version, config_file, timestamp))
    for m in _SWIFT_SYSTEM_LIBRARY.finditer(content):
        components.append(_swift_component(m.group(1), None, config_file, timestamp))
    return components


def parse_podfile(content: str, config_file: str, timestamp: int) -> list[Component]:
    return [
        _swift_component(m.group(1), m.group(2), config_file, timestamp)
        for m in _PODFILE_POD.finditer(content)
    ]


def scan_swift_packages(root: Path) -> ScanResult:
    """Package.swift and Podfile dependencies, plus known framework imports."""
    timestamp = now_ms()
    components: list[Component] = []
    warnings: list[ScanWarning] = []

    for filename, parse in (("Package.swift", parse_package_swift), ("Podfile", parse_podfile)):
        path = root / filename
        if not path.exists():
            continue
        try:
            components.extend(parse(path.read_text(encoding="utf-8"), filename, timestamp))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read {file}: {err}", file=filename, err=e)
            warnings.append(ScanWarning(WarningType.PARSE_ERROR, f"Failed to parse {filename}: {e}", file=filename))

    # Framework imports from .swift sources
    found = {c.name for c in components}
    imported: list[str] = []
    for swift_file in sorted(root.rglob("*.swift")):
        if any(part in (".build", "DerivedData", ".swiftpm", "Pods", "Carthage") for part in swift_file.parts):
            continue
        try:
            content = swift_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Skipping {file}: {err}", file=swift_file, err=e)
            continue
        for m in _SWIFT_IMPORT.finditer(content):
            if m.group(1) not in imported:
                imported.append(m.group(1))

    for name in imported:
        if name in found:
            continue
        signature = _swift_signature(name)
        if signature:
            components.append(
                _package_component(
                    name, None, signature, ComponentType.SPM, False, "", ["swift", "import"], timestamp, confidence=0.9
                )
            )

    return ScanResult(components, [], warnings)


def detect_package_managers(root: Path) -> list[str]:
    """Ecosystems present in the project root."""
    detected = []
    if detect_npm(root):
        detected.append("npm")
    if detect_pip(root):
        detected.append("pip")
    if detect_swift(root):
        detected.append("spm")
    return detected
