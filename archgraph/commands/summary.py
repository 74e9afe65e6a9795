"""Executive summary of the stored graph for automated consumers."""

import click

from archgraph.commands._shared import load_graph, root_option
from archgraph.summary import build_executive_summary, wrap_in_envelope
from archgraph.utils.error_handler import handle_exceptions


@click.command()
@root_option
@handle_exceptions
def summary(root):
    """Print risks, blockers and next actions as a JSON envelope.

    Components and connections are listed in compact form with short keys
    (n=name, t=type, l=layer, s=status, f/t=from/to, ct=connection type).

    \b
    Examples:
      archgraph summary > architecture.json
    """
    loaded = load_graph(root)
    data = build_executive_summary(loaded.components, loaded.connections, str(loaded.config.root))
    click.echo(wrap_in_envelope("summary", data, {"storage_dir": str(loaded.config.storage_dir)}))
