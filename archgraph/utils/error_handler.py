"""Centralized error handler for archgraph commands."""

import traceback
from collections.abc import Callable
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any

import click

from archgraph.config import load_runtime_config
from archgraph.exceptions import ConfigError
from archgraph.utils.logging import logger

from .constants import ARCHGRAPH_DIR_NAME, ERROR_LOG_NAME


def error_log_path(root: str | Path | None) -> Path:
    """error.log inside the configured storage directory for ``root``.

    Falls back to the default storage directory when the config itself is
    what failed to load.
    """
    root_path = Path(root or ".")
    try:
        return load_runtime_config(root_path).storage_dir / ERROR_LOG_NAME
    except ConfigError:
        return root_path.resolve() / ARCHGRAPH_DIR_NAME / ERROR_LOG_NAME


def handle_exceptions(func: Callable[..., Any]) -> Callable[..., Any]:
    """Log unexpected command failures and surface them as ClickException."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (click.ClickException, click.exceptions.Exit, click.Abort):
            raise
        except Exception as e:
            error_type = type(e).__name__
            error_msg = str(e)

            logger.opt(exception=True).error(
                "Command '{cmd}' failed: {err}",
                cmd=func.__name__,
                err=error_msg,
            )

            log_path = error_log_path(kwargs.get("root"))
            try:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                with open(log_path, "a", encoding="utf-8") as f:
                    f.write("\n" + "=" * 80 + "\n")
                    f.write(f"[{datetime.now().isoformat()}] Error in command: {func.__name__}\n")
                    f.write("=" * 80 + "\n")
                    f.write(f"{error_type}: {error_msg}\n\n")
                    f.write(traceback.format_exc())
                    f.write("=" * 80 + "\n\n")
            except OSError as log_err:
                logger.warning("Could not write error log {path}: {err}", path=log_path, err=log_err)

            raise click.ClickException(
                f"{error_type}: {error_msg}\n\nFull traceback logged to: {log_path}"
            ) from e

    return wrapper
