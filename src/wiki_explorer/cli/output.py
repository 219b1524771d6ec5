"""Rich output helpers for the CLI."""

from __future__ import annotations

import math
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core.models import FetchBatch, Node

console = Console()


def print_error(message: str) -> None:
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠️  {message}[/yellow]")


def print_success(message: str) -> None:
    console.print(f"[green]✓ {message}[/green]")


def format_limit(limit: float) -> str:
    return "unlimited" if math.isinf(limit) else str(int(limit))


def print_batch(batch: FetchBatch, limit: float) -> None:
    """Print a fetched article and its outbound links."""
    center = batch.center
    if center is None:
        print_warning("Article has no content")
        return

    console.print(
        Panel.fit(
            f"[bold cyan]{center.id}[/bold cyan]\n"
            f"{center.description or '[dim]No description[/dim]'}\n\n"
            f"URL: [dim]{center.url}[/dim]\n"
            f"Links: {len(batch.children)} (limit {format_limit(limit)})",
            title="Article",
            border_style="cyan",
        )
    )

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Linked article")
    table.add_column("URL", style="dim")
    for i, child in enumerate(batch.children, 1):
        table.add_row(str(i), child.id, child.url)
    console.print(table)


def _position(node: dict[str, Any]) -> str:
    if node.get("x") is None or node.get("y") is None:
        return "-"
    return f"({node['x']:.0f}, {node['y']:.0f})"


def print_frame(frame: dict[str, Any], show_sub: bool = True) -> None:
    """Print the visible graph as a node table plus a status summary."""
    nodes = sorted(frame["nodes"], key=lambda n: (n["group"] != "main", n["id"].lower()))
    table = Table(title="Graph", show_header=True, header_style="bold")
    table.add_column("Node")
    table.add_column("Group")
    table.add_column("Origin", style="dim")
    table.add_column("Position", justify="right")

    for node in nodes:
        if not show_sub and node["group"] != "main":
            continue
        group = (
            "[bold magenta]MAIN[/bold magenta]" if node["group"] == "main" else "sub"
        )
        table.add_row(node["id"], group, node.get("origin_id") or "", _position(node))
    console.print(table)

    stats = frame["status"]["stats"]
    transform = frame["transform"]
    console.print(
        f"\n[bold]{stats['nodes']}[/bold] nodes "
        f"({stats['main']} main, {stats['sub']} sub), "
        f"[bold]{stats['links']}[/bold] links"
    )
    console.print(
        f"[dim]View: translate({transform['x']:.1f}, {transform['y']:.1f}) "
        f"scale({transform['k']:.2f}); focus: {frame['focused_id'] or '-'}[/dim]"
    )


def describe_node(node: Node) -> str:
    return f"{node.id} ({node.group.value})"
