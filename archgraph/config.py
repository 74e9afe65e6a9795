"""Runtime configuration for archgraph.

Config priority (highest to lowest):
1. Environment variables (ARCHGRAPH_<SECTION>_<KEY>)
2. .archgraph/config.json in the project root
3. Built-in defaults

The resulting RuntimeConfig is passed explicitly to every entry point; there
is no module-level configuration singleton.
"""

import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from archgraph.exceptions import ConfigError
from archgraph.utils.constants import ARCHGRAPH_DIR_NAME, CONFIG_FILE_NAME
from archgraph.utils.logging import logger

DEFAULTS: dict[str, dict[str, Any]] = {
    "paths": {
        "storage_dir": ARCHGRAPH_DIR_NAME,
    },
    "limits": {
        "max_file_size": 2 * 1024 * 1024,
        "read_workers": 8,
        "max_results": 20,
        "history_limit": 100,
    },
    "scan": {
        "confidence_threshold": 0.6,
        "include_tests": False,
    },
    "query": {
        "trace_max_depth": 5,
        "subgraph_depth": 2,
        "subgraph_max_nodes": 50,
        "candidate_limit": 5,
    },
}


@dataclass(frozen=True)
class RuntimeConfig:
    """Immutable, resolved configuration for one invocation."""

    root: Path
    storage_dir: Path
    max_file_size: int = 2 * 1024 * 1024
    read_workers: int = 8
    max_results: int = 20
    history_limit: int = 100
    confidence_threshold: float = 0.6
    include_tests: bool = False
    trace_max_depth: int = 5
    subgraph_depth: int = 2
    subgraph_max_nodes: int = 50
    candidate_limit: int = 5

    @classmethod
    def from_sections(cls, root: Path, cfg: dict[str, dict[str, Any]]) -> "RuntimeConfig":
        storage = Path(cfg["paths"]["storage_dir"])
        if not storage.is_absolute():
            storage = root / storage
        return cls(
            root=root,
            storage_dir=storage,
            max_file_size=cfg["limits"]["max_file_size"],
            read_workers=max(1, cfg["limits"]["read_workers"]),
            max_results=cfg["limits"]["max_results"],
            history_limit=max(1, cfg["limits"]["history_limit"]),
            confidence_threshold=min(1.0, max(0.0, cfg["scan"]["confidence_threshold"])),
            include_tests=cfg["scan"]["include_tests"],
            trace_max_depth=cfg["query"]["trace_max_depth"],
            subgraph_depth=cfg["query"]["subgraph_depth"],
            subgraph_max_nodes=cfg["query"]["subgraph_max_nodes"],
            candidate_limit=cfg["query"]["candidate_limit"],
        )


def _coerce_env(raw: str, default_value: Any) -> Any:
    # bool must be checked before int
    if isinstance(default_value, bool):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"not a boolean: {raw!r}")
    if isinstance(default_value, int):
        return int(raw)
    if isinstance(default_value, float):
        return float(raw)
    return raw


def _accepts(default_value: Any, value: Any) -> bool:
    if isinstance(default_value, bool):
        return isinstance(value, bool)
    if isinstance(default_value, float):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return isinstance(value, type(default_value)) and not (
        isinstance(value, bool) and not isinstance(default_value, bool)
    )


def load_config_sections(root: str | Path = ".") -> dict[str, dict[str, Any]]:
    """Merge defaults, the project config file, and environment overrides.

    Args:
        root: Project root containing the .archgraph directory

    Returns:
        Section dictionary with merged values
    """
    cfg = copy.deepcopy(DEFAULTS)

    path = Path(root) / ARCHGRAPH_DIR_NAME / CONFIG_FILE_NAME
    try:
        if path.exists():
            with open(path, encoding="utf-8") as f:
                user = json.load(f)

            if not isinstance(user, dict):
                raise ConfigError(
                    f"{path} must contain a JSON object, got {type(user).__name__}",
                    details={"path": str(path)},
                )
            for section, values in cfg.items():
                if section in user and isinstance(user[section], dict):
                    for key, value in user[section].items():
                        if key in values and _accepts(values[key], value):
                            values[key] = value
                        elif key in values:
                            logger.warning(
                                "Ignoring {section}.{key} in {path}: expected {expected}",
                                section=section,
                                key=key,
                                path=path,
                                expected=type(values[key]).__name__,
                            )
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Could not load config file from {path}: {err}", path=path, err=e)
        logger.info("Continuing with default configuration")

    for section, values in cfg.items():
        for key in values:
            env_var = f"ARCHGRAPH_{section.upper()}_{key.upper()}"
            if env_var in os.environ:
                raw = os.environ[env_var]
                try:
                    values[key] = _coerce_env(raw, values[key])
                except ValueError as e:
                    logger.warning(
                        "Invalid value for environment variable {var}: '{raw}' - {err}",
                        var=env_var,
                        raw=raw,
                        err=e,
                    )

    return cfg


def load_runtime_config(root: str | Path = ".") -> RuntimeConfig:
    """Resolve the runtime configuration for a project root."""
    root_path = Path(root).resolve()
    return RuntimeConfig.from_sections(root_path, load_config_sections(root_path))
