"""Constants shared across archgraph modules."""

ARCHGRAPH_DIR_NAME = ".archgraph"
ERROR_LOG_NAME = "error.log"
CONFIG_FILE_NAME = "config.json"

COMPONENTS_FILE = "components.json"
CONNECTIONS_FILE = "connections.json"
FILE_MAP_FILE = "file_map.json"
TIMELINE_FILE = "timeline.json"
SNAPSHOTS_DIR = "snapshots"
SCAN_STATS_FILE = "scan_stats.json"

# Heuristic windows used by the call tracer (in lines)
FUNCTION_LOOKBACK_LINES = 30
ARGUMENT_WINDOW_LINES = 30
VARIABLE_LOOKBACK_LINES = 50
CLASS_LOOKBACK_LINES = 100
PROMPT_CONTEXT_LINES = 2

SNIPPET_MAX_CHARS = 120
PROMPT_CONTENT_MAX_CHARS = 500

SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".py")

EXCLUDED_DIRS = frozenset({
    "node_modules",
    ".git",
    ".next",
    ".nuxt",
    ".svelte-kit",
    "dist",
    "build",
    "out",
    "coverage",
    "__pycache__",
    ".venv",
    "venv",
    "env",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".archgraph",
    "vendor",
    "Pods",
})
