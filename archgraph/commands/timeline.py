"""List recorded architecture changes."""

import click

from archgraph.commands._shared import echo_json, json_option, root_option
from archgraph.config import load_runtime_config
from archgraph.diff import DiffSignificance, format_timeline, select_entries
from archgraph.storage import ArchitectureStore
from archgraph.utils.error_handler import handle_exceptions


@click.command()
@root_option
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Entries to show (default from config)")
@click.option(
    "--significance",
    type=click.Choice([s.value for s in DiffSignificance]),
    default=None,
    help="Only show entries of this significance",
)
@json_option
@handle_exceptions
def timeline(root, limit, significance, as_json):
    """Show the architecture timeline, newest first.

    \b
    Examples:
      archgraph timeline
      archgraph timeline --significance major --limit 5
    """
    config = load_runtime_config(root)
    store = ArchitectureStore(config)
    entries = select_entries(
        store.load_timeline(),
        limit=config.max_results if limit is None else limit,
        significance=DiffSignificance(significance) if significance else None,
    )

    if as_json:
        echo_json([entry.to_dict() for entry in entries])
    else:
        click.echo(format_timeline(entries))
