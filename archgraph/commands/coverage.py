"""Report how much of the project the stored graph explains."""

import click

from archgraph.commands._shared import echo_json, json_option, load_graph, root_option
from archgraph.coverage import compute_coverage, format_coverage_output
from archgraph.utils.error_handler import handle_exceptions


@click.command()
@root_option
@click.option("--gaps-only", is_flag=True, help="Only list coverage gaps")
@json_option
@handle_exceptions
def coverage(root, gaps_only, as_json):
    """Measure file coverage, connection confidence and mapping gaps.

    The overall score blends mean connection confidence (60%) with the
    share of source files attributed to a component (40%).

    \b
    Examples:
      archgraph coverage
      archgraph coverage --gaps-only
    """
    loaded = load_graph(root)
    report = compute_coverage(
        loaded.components, loaded.connections, loaded.config.root, loaded.file_map, loaded.config.include_tests
    )

    if as_json:
        data = report.to_dict()
        echo_json({"gaps": data["gaps"]} if gaps_only else data)
    else:
        click.echo(format_coverage_output(report, gaps_only=gaps_only))
