"""Trace dataflow paths out of a component."""

import click

from archgraph.commands._shared import echo_json, json_option, load_graph, resolve_or_exit, root_option
from archgraph.graph import TraceDirection, TraceOptions, format_trace_output, trace_dataflow
from archgraph.types import SemanticClassification
from archgraph.utils.error_handler import handle_exceptions


@click.command()
@click.argument("name")
@root_option
@click.option(
    "--direction",
    type=click.Choice([d.value for d in TraceDirection]),
    default=TraceDirection.BOTH.value,
    show_default=True,
    help="Follow outgoing, incoming or both kinds of connection",
)
@click.option("--depth", type=click.IntRange(min=0), default=None, help="Maximum hops (default from config)")
@click.option(
    "--classification",
    type=click.Choice([c.value for c in SemanticClassification]),
    default=None,
    help="Only follow connections with this classification",
)
@json_option
@handle_exceptions
def trace(name, root, direction, depth, classification, as_json):
    """Trace dataflow paths from a component through the graph.

    A path never visits the same component twice. Paths end at max depth or
    where there is nowhere left to go.

    \b
    Examples:
      archgraph trace chat-api
      archgraph trace openai --direction backward --depth 3
      archgraph trace web --classification production --json
    """
    loaded = load_graph(root)
    component = resolve_or_exit(name, loaded)
    options = TraceOptions(
        max_depth=loaded.config.trace_max_depth if depth is None else depth,
        direction=TraceDirection(direction),
        filter_classification=SemanticClassification(classification) if classification else None,
    )
    result = trace_dataflow(component, loaded.components, loaded.connections, options)

    if as_json:
        echo_json(result.to_dict())
    else:
        click.echo(format_trace_output(result))
