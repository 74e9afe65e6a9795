"""Helpers shared by the query commands."""

import json
from dataclasses import dataclass
from typing import Any

import click
from rich.markup import escape

from archgraph.config import RuntimeConfig, load_runtime_config
from archgraph.resolve import find_candidates, resolve_component
from archgraph.storage import ArchitectureStore
from archgraph.types import Component, Connection
from archgraph.ui import console

root_option = click.option(
    "--root",
    default=".",
    show_default=True,
    type=click.Path(exists=True, file_okay=False),
    help="Project root",
)
json_option = click.option("--json", "as_json", is_flag=True, help="Output results as JSON")


@dataclass
class LoadedGraph:
    config: RuntimeConfig
    store: ArchitectureStore
    components: list[Component]
    connections: list[Connection]
    file_map: dict[str, str]


def load_graph(root: str) -> LoadedGraph:
    """Load the stored graph for ``root``; fail if no scan has been run."""
    config = load_runtime_config(root)
    store = ArchitectureStore(config)
    if not store.has_scan():
        raise click.ClickException(
            f"No scan results in {config.storage_dir}. Run 'archgraph scan' first."
        )
    return LoadedGraph(
        config=config,
        store=store,
        components=store.load_components(),
        connections=store.load_connections(),
        file_map=store.load_file_map(),
    )


def resolve_or_exit(query: str, loaded: LoadedGraph) -> Component:
    """Resolve ``query`` or print suggestions and exit with status 1."""
    component = resolve_component(query, loaded.components, loaded.file_map)
    if component is not None:
        return component

    console.print(f"[error]Component not found:[/error] {escape(query)}", highlight=False)
    candidates = find_candidates(query, loaded.components, loaded.config.candidate_limit)
    if candidates:
        console.print("Did you mean:")
        for name in candidates:
            console.print(f"  - {name}", markup=False, highlight=False)
    raise click.exceptions.Exit(1)


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2))
