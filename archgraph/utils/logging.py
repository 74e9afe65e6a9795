"""Centralized logging configuration using Loguru with Pino-compatible output.

Usage:
    from archgraph.utils.logging import logger
    logger.info("Message")
    logger.debug("Debug message")  # Only shows if ARCHGRAPH_LOG_LEVEL=DEBUG

Environment Variables:
    ARCHGRAPH_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: WARNING)
    ARCHGRAPH_LOG_JSON: 0|1 (default: 0, human-readable)
    ARCHGRAPH_LOG_FILE: path to log file (optional)
"""

import json
import os
import sys

from loguru import logger

logger.remove()

PINO_LEVELS = {
    "TRACE": 10,
    "DEBUG": 20,
    "INFO": 30,
    "SUCCESS": 30,
    "WARNING": 40,
    "ERROR": 50,
    "CRITICAL": 60,
}

_log_level = os.environ.get("ARCHGRAPH_LOG_LEVEL", "WARNING").upper()
_json_mode = os.environ.get("ARCHGRAPH_LOG_JSON", "0") == "1"
_log_file = os.environ.get("ARCHGRAPH_LOG_FILE")


def _to_pino(record) -> dict:
    """Project a loguru record onto Pino's NDJSON field names."""
    pino_log = {
        "level": PINO_LEVELS.get(record["level"].name, 30),
        "time": int(record["time"].timestamp() * 1000),
        "msg": record["message"],
        "pid": record["process"].id,
        "module": record["name"],
    }
    for key, value in record["extra"].items():
        pino_log[key] = value
    if record["exception"]:
        exc = record["exception"]
        pino_log["err"] = {
            "type": exc.type.__name__ if exc.type else "Error",
            "message": str(exc.value) if exc.value else "",
        }
    return pino_log


def pino_compatible_sink(message):
    """Write a record to stdout as one NDJSON line."""
    # Never call logger.* inside a sink
    sys.stdout.write(json.dumps(_to_pino(message.record), default=str) + "\n")
    sys.stdout.flush()


_human_format = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan> - "
    "<level>{message}</level>"
)

if _json_mode:
    logger.add(pino_compatible_sink, level=_log_level, colorize=False)
else:
    logger.add(sys.stderr, level=_log_level, format=_human_format, colorize=None)

if _log_file:
    def _file_pino_sink(message):
        with open(_log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(_to_pino(message.record), default=str) + "\n")

    logger.add(_file_pino_sink, level="DEBUG")


def set_level(level: str) -> None:
    """Replace the console handler with one at the given level.

    Used by the CLI ``--verbose`` flag. JSON mode keeps its sink format.
    """
    global _log_level
    _log_level = level.upper()
    logger.remove()
    if _json_mode:
        logger.add(pino_compatible_sink, level=_log_level, colorize=False)
    else:
        logger.add(sys.stderr, level=_log_level, format=_human_format, colorize=None)
    if _log_file:
        logger.add(_file_pino_sink, level="DEBUG")


__all__ = ["logger", "set_level", "pino_compatible_sink"]
