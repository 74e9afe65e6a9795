"""Show what depends on a component and how badly a change would hurt."""

import click
from rich.markup import escape
from rich.table import Table

from archgraph.commands._shared import echo_json, json_option, load_graph, resolve_or_exit, root_option
from archgraph.graph import compute_impact
from archgraph.ui import console, print_header
from archgraph.utils.error_handler import handle_exceptions


@click.command()
@click.argument("name")
@root_option
@json_option
@handle_exceptions
def impact(name, root, as_json):
    """Analyze the blast radius of changing a component.

    NAME may be a component id, a component name, or a file path recorded in
    the file map. Unknown names print the closest matches and exit with 1.

    \b
    Severity:
      critical  database/infra layer, marked critical, or more than 5 dependents
      high      backend layer, or 3 to 5 dependents
      medium    exactly 2 dependents
      low       everything else

    \b
    Examples:
      archgraph impact openai
      archgraph impact src/api/chat.ts --json
    """
    loaded = load_graph(root)
    component = resolve_or_exit(name, loaded)
    analysis = compute_impact(component, loaded.components, loaded.connections)

    if as_json:
        echo_json(analysis.to_dict())
        return

    severity = analysis.severity.value
    print_header(f"Impact: {component.name}")
    console.print(f"Severity: [{severity}]{severity.upper()}[/{severity}]")
    console.print(escape(analysis.summary), highlight=False)

    if not analysis.affected:
        return

    table = Table(show_lines=False)
    table.add_column("Component", style="bold")
    table.add_column("Layer", style="layer")
    table.add_column("Impact")
    table.add_column("Change required", style="dim")
    for affected in analysis.affected:
        table.add_row(
            escape(affected.component.name),
            affected.component.layer.value,
            affected.impact_type.value,
            escape(affected.change_required),
        )
    console.print(table)
