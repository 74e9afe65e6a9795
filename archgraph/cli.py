"""archgraph CLI - Main entry point and command registration hub."""
# ruff: noqa: E402 - Intentional lazy loading: commands imported after cli group definition

import click
from rich.table import Table

from archgraph import __version__
from archgraph.ui import console
from archgraph.utils.logging import set_level


class VerboseGroup(click.Group):
    """Help output grouped by what each command is for."""

    def format_commands(self, ctx, formatter):
        """Suppress the default listing; format_help prints the grouped one."""
        pass

    COMMAND_CATEGORIES = {
        "BUILD": {
            "title": "BUILD",
            "description": "Scan the project and persist the graph",
            "commands": ["scan"],
        },
        "QUERY": {
            "title": "QUERY",
            "description": "Questions answered from the stored graph",
            "commands": ["impact", "trace", "subgraph", "summary"],
        },
        "CHECK": {
            "title": "CHECK",
            "description": "Rule violations and coverage gaps in the stored graph",
            "commands": ["rules", "coverage"],
        },
        "HISTORY": {
            "title": "HISTORY",
            "description": "How the architecture changed between scans",
            "commands": ["timeline", "diff"],
        },
    }

    def format_help(self, ctx, formatter):
        super().format_help(ctx, formatter)

        registered = {
            name: cmd
            for name, cmd in self.commands.items()
            if not name.startswith("_") and not getattr(cmd, "hidden", False)
        }

        console.print()
        console.rule("[bold]COMMANDS[/bold]")

        for category in self.COMMAND_CATEGORIES.values():
            console.print(f"\n[bold cyan]{category['title']}[/bold cyan]")
            console.print(f"[dim]{category['description']}[/dim]")

            table = Table(show_header=False, box=None, padding=(0, 2, 0, 0))
            table.add_column("Command", style="cmd", width=12)
            table.add_column("Description", style="white")

            for cmd_name in category["commands"]:
                if cmd_name not in registered:
                    continue
                first_line = (registered[cmd_name].help or "").split("\n")[0].strip()
                period_idx = first_line.find(".")
                short_help = first_line[:period_idx] if period_idx > 0 else first_line
                table.add_row(cmd_name, short_help)

            console.print(table)

        console.print()
        console.rule()
        console.print("For detailed options: [cmd]archgraph <command> --help[/cmd]")


@click.group(cls=VerboseGroup)
@click.version_option(version=__version__, prog_name="archgraph")
@click.help_option("-h", "--help")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
def cli(verbose):
    """archgraph - architecture graph builder and query engine

    \b
    QUICK START:
      archgraph scan                 # Build the graph for the current project
      archgraph impact openai        # Who depends on a component
      archgraph timeline             # How the architecture changed

    \b
    For detailed options: archgraph <command> --help"""
    if verbose:
        set_level("DEBUG")


from archgraph.commands.coverage import coverage
from archgraph.commands.diff import diff
from archgraph.commands.impact import impact
from archgraph.commands.rules import rules
from archgraph.commands.scan import scan
from archgraph.commands.subgraph import subgraph
from archgraph.commands.summary import summary
from archgraph.commands.timeline import timeline
from archgraph.commands.trace import trace

cli.add_command(scan)
cli.add_command(impact)
cli.add_command(trace)
cli.add_command(subgraph)
cli.add_command(summary)
cli.add_command(rules)
cli.add_command(coverage)
cli.add_command(timeline)
cli.add_command(diff)


def main():
    """Main entry point for console script."""
    cli()


if __name__ == "__main__":
    main()
