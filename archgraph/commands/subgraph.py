"""Export a focused slice of the graph."""

import click

from archgraph.commands._shared import echo_json, load_graph, root_option
from archgraph.graph import SubgraphOptions, extract_subgraph, subgraph_to_mermaid
from archgraph.types import ArchitectureLayer, SemanticClassification
from archgraph.utils.error_handler import handle_exceptions


@click.command()
@root_option
@click.option("--focus", multiple=True, help="Component to center on (repeatable)")
@click.option(
    "--layer",
    "layers",
    multiple=True,
    type=click.Choice([layer.value for layer in ArchitectureLayer]),
    help="Keep only components in this layer (repeatable)",
)
@click.option(
    "--classification",
    type=click.Choice([c.value for c in SemanticClassification]),
    default=None,
    help="Keep only connections with this classification",
)
@click.option("--depth", type=click.IntRange(min=0), default=None, help="Hops around focus (default from config)")
@click.option("--max-nodes", type=click.IntRange(min=1), default=None, help="Component cap (default from config)")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "mermaid"]),
    default="json",
    show_default=True,
)
@handle_exceptions
def subgraph(root, focus, layers, classification, depth, max_nodes, output_format):
    """Extract a subgraph as compact JSON or a Mermaid diagram.

    Without --focus the whole graph is the starting point.

    \b
    Examples:
      archgraph subgraph --focus openai --depth 1
      archgraph subgraph --layer backend --layer database --format mermaid
    """
    loaded = load_graph(root)
    options = SubgraphOptions(
        focus=list(focus),
        layers=[ArchitectureLayer(layer) for layer in layers],
        classification=SemanticClassification(classification) if classification else None,
        depth=loaded.config.subgraph_depth if depth is None else depth,
        max_nodes=loaded.config.subgraph_max_nodes if max_nodes is None else max_nodes,
    )
    result = extract_subgraph(loaded.components, loaded.connections, options)

    if output_format == "mermaid":
        click.echo(subgraph_to_mermaid(result))
    else:
        echo_json(result.to_dict())
