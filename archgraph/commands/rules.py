"""Check the stored graph against architecture rules."""

import click

from archgraph.commands._shared import echo_json, json_option, load_graph, root_option
from archgraph.rules import RuleSeverity, builtin_rules, check_rules, format_rules_output, load_custom_rules
from archgraph.utils.error_handler import handle_exceptions


@click.command()
@root_option
@click.option(
    "--severity",
    type=click.Choice([s.value for s in RuleSeverity]),
    default=None,
    help="Only report violations of this severity",
)
@json_option
@handle_exceptions
def rules(root, severity, as_json):
    """Check the graph against built-in and project architecture rules.

    Custom forbidden-connection rules are read from rules.yaml in the
    storage directory.

    \b
    Built-in rules:
      frontend-direct-db        error    frontend connects straight to a database
      vulnerable-dependency     error    component marked vulnerable
      orphan-component          warning  no connections at all
      database-no-backend       warning  database not fed by the backend
      deprecated-dependency     warning  component marked deprecated
      single-point-of-failure   warning  backend with more than 5 dependents
      unused-package            info     component marked unused

    \b
    Examples:
      archgraph rules
      archgraph rules --severity error --json
    """
    loaded = load_graph(root)
    active = builtin_rules() + load_custom_rules(loaded.config.storage_dir)
    violations = check_rules(loaded.components, loaded.connections, active)
    wanted = RuleSeverity(severity) if severity else None

    if as_json:
        echo_json([v.to_dict() for v in violations if wanted is None or v.severity is wanted])
    else:
        click.echo(format_rules_output(violations, wanted))
