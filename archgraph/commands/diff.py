"""Show the most recent architecture change in detail."""

import click

from archgraph.commands._shared import echo_json, json_option, root_option
from archgraph.config import load_runtime_config
from archgraph.diff import format_diff_summary
from archgraph.storage import ArchitectureStore
from archgraph.ui import print_warning
from archgraph.utils.error_handler import handle_exceptions


@click.command()
@root_option
@json_option
@handle_exceptions
def diff(root, as_json):
    """Show what changed in the latest scan compared to the one before it."""
    config = load_runtime_config(root)
    entries = ArchitectureStore(config).load_timeline().entries

    if not entries:
        if as_json:
            echo_json(None)
        else:
            print_warning("No timeline entries found. Run 'archgraph scan' first.")
        return

    latest = entries[-1]
    if as_json:
        echo_json(latest.to_dict())
    else:
        click.echo(format_diff_summary(latest))
