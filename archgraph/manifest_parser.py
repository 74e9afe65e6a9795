"""Parser for the manifest file types read by the package scanners."""

import configparser
import json
import re
import tomllib
from pathlib import Path
from typing import Any

import yaml

from archgraph.utils.logging import logger

_EXTRAS = re.compile(r"\[.*?\]")
_REQUIREMENT = re.compile(r"^([a-zA-Z0-9_.-]+)\s*([@<>=!~]+.*)?$")
_MARKER = re.compile(r"\s*;.*$")


class ManifestParser:
    """Parses manifests and remembers which ones failed.

    Failed parses return an empty value and are recorded in ``errors`` as
    ``(path, message)`` so callers can turn them into scan warnings.
    """

    def __init__(self):
        self.errors: list[tuple[Path, str]] = []

    def _fail(self, path: Path, kind: str, err: Exception) -> None:
        message = f"Failed to parse {kind} {path.name}: {err}"
        logger.warning(message)
        self.errors.append((path, message))

    def parse_toml(self, path: Path) -> dict:
        try:
            with open(path, "rb") as f:
                return tomllib.load(f)
        except (tomllib.TOMLDecodeError, OSError) as e:
            self._fail(path, "TOML", e)
            return {}

    def parse_json(self, path: Path) -> dict:
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            self._fail(path, "JSON", e)
            return {}
        if not isinstance(data, dict):
            self._fail(path, "JSON", ValueError("top-level value is not an object"))
            return {}
        return data

    def parse_yaml(self, path: Path) -> dict:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (yaml.YAMLError, UnicodeDecodeError, OSError) as e:
            self._fail(path, "YAML", e)
            return {}
        if not isinstance(data, dict):
            self._fail(path, "YAML", ValueError("top-level value is not a mapping"))
            return {}
        return data

    def parse_ini(self, path: Path) -> dict:
        """Parse INI/CFG files."""
        config = configparser.ConfigParser()
        try:
            with open(path, encoding="utf-8") as f:
                config.read_file(f)
        except (configparser.Error, UnicodeDecodeError, OSError) as e:
            self._fail(path, "INI/CFG", e)
            return {}
        return {s: dict(config[s]) for s in config.sections()}

    def parse_requirements_txt(self, path: Path) -> list[str]:
        """Parse requirements.txt format, returns list of package specs."""
        try:
            with open(path, encoding="utf-8") as f:
                lines = []
                for line in f:
                    line = line.strip()

                    if not line or line.startswith("#"):
                        continue

                    # -r, -e, --index-url ...
                    if line.startswith("-"):
                        continue

                    if "#" in line:
                        line = line.split("#")[0].strip()
                    if line:
                        lines.append(line)
                return lines
        except (UnicodeDecodeError, OSError) as e:
            self._fail(path, "requirements", e)
            return []

    def extract_nested_value(self, data: dict | list, key_path: list[str]) -> Any:
        """
        Navigate nested dict with key path.
        Handles wildcards (*) for dynamic keys.

        Example: ["tool", "poetry", "group", "*", "dependencies"]
        Returns the value at the path, or None if not found.
        """
        if not key_path:
            return data

        current = data

        for i, key in enumerate(key_path):
            if key == "*":
                if not isinstance(current, dict):
                    return None
                remaining_path = key_path[i + 1 :]
                results: dict | list = {}

                for k, v in current.items():
                    if not remaining_path:
                        if isinstance(results, dict):
                            results[k] = v
                        continue
                    nested_result = self.extract_nested_value(v, remaining_path)
                    if nested_result is None:
                        continue
                    if isinstance(nested_result, dict) and isinstance(results, dict):
                        results.update(nested_result)
                    elif isinstance(nested_result, list):
                        if not results:
                            results = []
                        if isinstance(results, list):
                            results.extend(nested_result)
                    elif isinstance(results, dict):
                        results[k] = nested_result

                return results if results else None

            if isinstance(current, dict):
                current = current.get(key)
                if current is None:
                    return None
            else:
                return None

        return current

    def check_package_in_deps(self, deps: Any, package_name: str) -> str | None:
        """
        Check if a package exists in dependencies and return its version.

        ``deps`` may be a name -> spec mapping (package.json, Poetry), a list
        of requirement strings (PEP 621) or a newline separated string
        (setup.cfg install_requires).
        """
        if deps is None:
            return None

        if isinstance(deps, dict):
            if package_name not in deps:
                return None
            version = deps[package_name]
            if isinstance(version, dict):
                if "git" in version:
                    return f"git:{version.get('branch', version.get('tag', 'HEAD'))}"
                if "path" in version:
                    return f"path:{version['path']}"
                version = version.get("version", "latest")
            return str(version)

        if isinstance(deps, str):
            deps = [line.strip() for line in deps.splitlines() if line.strip()]

        if isinstance(deps, list):
            wanted = package_name.lower().replace("_", "-")
            for spec in deps:
                if not isinstance(spec, str):
                    continue
                parsed = split_requirement(spec)
                if parsed and parsed[0].lower().replace("_", "-") == wanted:
                    return parsed[1] or "latest"

        return None


def split_requirement(spec: str) -> tuple[str, str | None] | None:
    """Split a PEP 508-ish requirement into (name, version).

    Extras and environment markers are dropped. Returns None for lines that
    are not plain named requirements (URLs, paths).

    >>> split_requirement("fastapi[all]>=0.110 ; python_version > '3.8'")
    ('fastapi', '0.110')
    """
    cleaned = _MARKER.sub("", _EXTRAS.sub("", spec)).strip()
    match = _REQUIREMENT.match(cleaned)
    if not match:
        return None
    name, constraint = match.group(1), match.group(2)
    if not constraint:
        return name, None
    if constraint.startswith("@"):
        return name, None
    # First clause of "~=1.2,<2" is the version worth reporting
    first = constraint.split(",")[0]
    version = re.sub(r"^[<>=!~]+", "", first).strip()
    return name, version or None


def clean_version(version: str | None) -> str | None:
    """Strip range operators: '^1.2.3' -> '1.2.3'."""
    if version is None:
        return None
    return re.sub(r"^[\^~>=<]+\s*", "", str(version).strip()) or None
