"""Scan the project and persist its architecture graph."""

import click
from rich.markup import escape
from rich.table import Table

from archgraph.commands._shared import echo_json, json_option, root_option
from archgraph.config import load_runtime_config
from archgraph.scanner import scan as run_scan
from archgraph.storage import ArchitectureStore
from archgraph.ui import console, print_header, print_success, print_warning
from archgraph.utils.error_handler import handle_exceptions

MAX_WARNINGS_SHOWN = 10


@click.command()
@root_option
@click.option("--quick", is_flag=True, help="Only read manifests and infrastructure markers")
@json_option
@handle_exceptions
def scan(root, quick, as_json):
    """Scan the project and store components, connections and a timeline entry.

    Reads package manifests, infrastructure config and (unless --quick) the
    source files, then writes the merged graph under .archgraph/. Each scan is
    snapshotted and diffed against the previous one.

    \b
    Examples:
      archgraph scan
      archgraph scan --quick
      archgraph scan --root ../service --json
    """
    config = load_runtime_config(root)
    outcome = run_scan(config, quick=quick)

    store = ArchitectureStore(config)
    store.save_scan(outcome.components, outcome.connections, outcome.stats.to_dict())
    entry = store.record_scan(outcome.components, outcome.connections)

    if as_json:
        echo_json({
            "stats": outcome.stats.to_dict(),
            "warnings": [w.to_dict() for w in outcome.warnings],
            "timeline_entry": {
                "id": entry.id,
                "significance": entry.significance.value,
                "triggers": [t.value for t in entry.triggers],
                "total_changes": entry.diff.stats.total_changes,
            },
        })
        return

    print_header(f"Scan: {config.root}")
    table = Table(show_header=False, box=None, padding=(0, 2, 0, 0))
    table.add_column("Metric", style="dim")
    table.add_column("Value", justify="right")
    stats = outcome.stats
    table.add_row("Components", str(stats.components_found))
    table.add_row("Connections", str(stats.connections_found))
    table.add_row("Files scanned", str(stats.files_scanned))
    table.add_row("Warnings", str(stats.warnings_count))
    table.add_row("Duration", f"{stats.scan_duration_ms}ms")
    console.print(table)

    for warning in outcome.warnings[:MAX_WARNINGS_SHOWN]:
        location = f" ({warning.file})" if warning.file else ""
        print_warning(escape(f"{warning.message}{location}"))
    if len(outcome.warnings) > MAX_WARNINGS_SHOWN:
        console.print(f"[dim]... and {len(outcome.warnings) - MAX_WARNINGS_SHOWN} more[/dim]")

    significance = entry.significance.value
    console.print(
        f"\nTimeline: [{significance}]{significance.upper()}[/{significance}] "
        f"{entry.diff.stats.total_changes} change(s) recorded as {entry.id}"
    )
    print_success(f"Results stored in {config.storage_dir}")
