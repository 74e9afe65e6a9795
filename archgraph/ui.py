"""Central UI handler for archgraph.

Single Rich console shared by every command.

Usage:
    from archgraph.ui import console, print_header, print_warning
"""

import sys

from rich.console import Console
from rich.theme import Theme

ARCHGRAPH_THEME = Theme({
    "info": "bold cyan",
    "warning": "bold yellow",
    "error": "bold red",
    "success": "bold green",
    "critical": "bold red",
    "high": "bold yellow",
    "medium": "bold blue",
    "low": "cyan",
    "major": "bold red",
    "minor": "bold yellow",
    "patch": "cyan",
    "layer": "bold magenta",
    "path": "bold cyan",
    "dim": "dim white",
    "cmd": "bold cyan",
})

console = Console(theme=ARCHGRAPH_THEME, force_terminal=sys.stdout.isatty())


def print_header(title: str) -> None:
    """Print a styled section header with horizontal rules."""
    console.rule(f"[bold]{title}[/bold]")


def print_warning(msg: str) -> None:
    console.print(f"[warning]WARNING:[/warning] {msg}")


def print_success(msg: str) -> None:
    console.print(f"[success]OK:[/success] {msg}")
