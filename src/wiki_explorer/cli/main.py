"""wiki-explorer command line entry point."""

import asyncio
import json
import sys
from pathlib import Path

import typer
from dotenv import load_dotenv
from loguru import logger

from .. import __version__
from ..config import defaults
from ..config.settings import ExplorerSettings, parse_link_limit
from ..core.exceptions import WikiExplorerError
from ..core.session import ExplorerSession
from ..core.wiki_client import WikiClient, extract_title_from_url
from .output import (
    console,
    describe_node,
    format_limit,
    print_batch,
    print_error,
    print_frame,
    print_success,
    print_warning,
)

app = typer.Typer(
    name="wiki-explorer",
    help="🕸️  Explore Wikipedia as a growing knowledge graph",
    add_completion=False,
    no_args_is_help=True,
)


def _load_env_files(root: Path) -> None:
    """Load environment variables from .env and .env.local files.

    Priority (later files override earlier):
    1. .env (base config)
    2. .env.local (local overrides, gitignored)
    """
    for env_file in (root / ".env", root / ".env.local"):
        if env_file.exists():
            load_dotenv(env_file, override=True)
            logger.debug(f"Loaded environment from {env_file}")


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"wiki-explorer version {__version__}")
        raise typer.Exit()


def _settings(ctx: typer.Context) -> ExplorerSettings:
    return ctx.obj["settings"]


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML settings file (fetch, forces, view sections)",
        dir_okay=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """🕸️  Explore Wikipedia as a growing knowledge graph."""
    _configure_logging(verbose)
    _load_env_files(Path.cwd())
    try:
        settings = ExplorerSettings.load(config)
    except WikiExplorerError as e:
        print_error(str(e))
        raise typer.Exit(1)
    ctx.obj = {"settings": settings}


@app.command()
def fetch(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Article title or Wikipedia URL"),
    limit: int | None = typer.Option(
        None, "--limit", "-l", min=1, help="Maximum links to return"
    ),
    unlimited: bool = typer.Option(False, "--unlimited", help="Return every link"),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON"),
) -> None:
    """Fetch one article and list its outbound links.

    [green]Examples:[/green]
        $ wiki-explorer fetch "Graph theory"
        $ wiki-explorer fetch https://en.wikipedia.org/wiki/Felis_catus --limit 20
    """
    settings = _settings(ctx)
    max_links = settings.fetch.link_limit
    try:
        if unlimited:
            max_links = parse_link_limit("unlimited")
        elif limit is not None:
            max_links = parse_link_limit(limit)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    query = extract_title_from_url(title)
    if query is None:
        query = title
    if not query.strip():
        print_error("No article title given")
        raise typer.Exit(1)
    try:
        batch = asyncio.run(WikiClient(settings.fetch).fetch(query, max_links))
    except WikiExplorerError as e:
        logger.error(f"Fetch failed: {e}")
        print_error(f"Fetch failed: {e}")
        raise typer.Exit(1)

    if json_output:
        payload = {
            "center": batch.center.to_dict() if batch.center else None,
            "children": [child.to_dict() for child in batch.children],
            "links": [link.to_dict() for link in batch.links],
        }
        print(json.dumps(payload, indent=2))
    else:
        print_batch(batch, max_links)


async def run_explore(
    session: ExplorerSession,
    titles: list[str],
    expand: list[str],
    delete: list[str],
) -> list[str]:
    """Replay a scripted exploration against a session.

    Args:
        session: Session to drive
        titles: Topics to search, in order
        expand: Nodes to expand (clicked) after the searches
        delete: Nodes to delete after the expansions

    Returns:
        Error statuses encountered along the way
    """
    errors: list[str] = []

    for title in titles:
        await session.search_submit(title)
        if session.error:
            errors.append(f"{title}: {session.error}")

    for title in expand:
        node = session.store.find(title)
        if node is None:
            errors.append(f"{title}: not in graph")
            continue
        await session.node_click(node.id)
        if session.error:
            errors.append(f"{title}: {session.error}")

    for title in delete:
        removed = session.delete_node(title)
        logger.debug(f"Deleting '{title}' removed {sorted(removed)}")

    return errors


@app.command()
def explore(
    ctx: typer.Context,
    titles: list[str] = typer.Argument(..., help="Topics to search"),
    expand: list[str] = typer.Option([], "--expand", "-e", help="Node to expand"),
    delete: list[str] = typer.Option([], "--delete", "-d", help="Node to delete"),
    ticks: int = typer.Option(300, "--ticks", min=0, help="Layout ticks to run"),
    limit: int | None = typer.Option(
        None, "--limit", "-l", min=1, help="Links per fetch (>= 2000 is unlimited)"
    ),
    hide_sub: bool = typer.Option(False, "--hide-sub", help="Hide unexpanded nodes"),
    json_output: bool = typer.Option(False, "--json", help="Output the frame as JSON"),
) -> None:
    """Build a graph headlessly: search, expand, delete, then settle the layout.

    [green]Examples:[/green]
        $ wiki-explorer explore Cat --expand Felidae
        $ wiki-explorer explore Cat Dog --delete Cat --json
    """
    session = ExplorerSession(_settings(ctx))
    if limit is not None:
        session.set_link_limit(limit)
    if hide_sub:
        session.toggle_sub_nodes()

    errors = asyncio.run(run_explore(session, titles, expand, delete))
    taken = session.engine.settle(ticks)
    logger.debug(f"Layout settled after {taken} ticks")

    if json_output:
        print(json.dumps(session.frame(), indent=2))
    else:
        print_frame(session.frame(), show_sub=not hide_sub)
        for error in errors:
            print_warning(error)
        focused = session.focused_id and session.store.get(session.focused_id)
        if focused:
            print_success(
                f"Focused {describe_node(focused)}, "
                f"link limit {format_limit(session.link_limit)}"
            )

    if errors and not len(session.store):
        raise typer.Exit(1)


@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option(defaults.DEFAULT_HOST, "--host", help="Interface to bind"),
    port: int | None = typer.Option(
        None, "--port", "-p", help="Port (first free port from 8080 if omitted)"
    ),
    fps: int = typer.Option(
        defaults.DEFAULT_FPS, "--fps", min=1, max=120, help="Layout frame rate"
    ),
) -> None:
    """Serve an interactive session over a JSON HTTP API."""
    from ..server.app import find_free_port, start_server

    try:
        port = port or find_free_port(defaults.DEFAULT_PORT, defaults.DEFAULT_PORT + 19)
    except OSError as e:
        print_error(str(e))
        raise typer.Exit(1)

    start_server(ExplorerSession(_settings(ctx)), host=host, port=port, fps=fps)


if __name__ == "__main__":
    app()
