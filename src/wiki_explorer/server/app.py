"""HTTP server exposing one explorer session as a JSON API.

A background frame loop advances the layout engine on the same event loop as
the request handlers, so simulation state is only ever touched by one task at
a time. Every mutating endpoint returns the fresh frame.
"""

from __future__ import annotations

import asyncio
import socket
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Literal

import uvicorn
from fastapi import FastAPI, HTTPException
from loguru import logger
from pydantic import BaseModel, Field
from rich.console import Console
from rich.panel import Panel

from .. import __version__
from ..config import defaults
from ..core.session import ExplorerSession

console = Console()


# ── Request bodies ──────────────────────────────────────────────────────


class SearchRequest(BaseModel):
    query: str


class SettingsRequest(BaseModel):
    link_limit: int | Literal["unlimited"] | None = None
    search_term: str | None = None
    show_sub_nodes: bool | None = None


class HoverRequest(BaseModel):
    node_id: str | None = None


class FocusRequest(BaseModel):
    node_id: str | None = None


class ZoomRequest(BaseModel):
    factor: float = Field(gt=0)
    x: float | None = None  # screen point kept fixed, viewport center if omitted
    y: float | None = None


class PanRequest(BaseModel):
    dx: float
    dy: float


class TransformRequest(BaseModel):
    x: float
    y: float
    k: float = Field(gt=0)


class ViewportRequest(BaseModel):
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class DragRequest(BaseModel):
    node_id: str
    x: float | None = None
    y: float | None = None
    screen: bool = False  # coordinates are screen pixels rather than graph units


# ── Application ─────────────────────────────────────────────────────────


def find_free_port(start_port: int = 8080, end_port: int = 8099) -> int:
    """Find a free port in the given range.

    Args:
        start_port: Starting port number to check
        end_port: Ending port number to check

    Returns:
        First available port in the range

    Raises:
        OSError: If no free ports available in range
    """
    for test_port in range(start_port, end_port + 1):
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind(("", test_port))
                return test_port
        except OSError:
            continue
    raise OSError(f"No free ports available in range {start_port}-{end_port}")


async def run_frame_loop(session: ExplorerSession, fps: int) -> None:
    """Advance the layout engine at a fixed frame rate until cancelled."""
    interval = 1.0 / fps
    last = time.perf_counter()
    while True:
        await asyncio.sleep(interval)
        now = time.perf_counter()
        session.engine.advance((now - last) * 1000.0)
        last = now


def create_app(session: ExplorerSession, fps: int = defaults.DEFAULT_FPS) -> FastAPI:
    """Create the FastAPI application for a session.

    Args:
        session: Session every endpoint operates on
        fps: Frame loop rate; 0 disables the loop (frames advance only on demand)

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        task = asyncio.create_task(run_frame_loop(session, fps)) if fps > 0 else None
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    app = FastAPI(title="Wiki Explorer", version=__version__, lifespan=lifespan)
    app.state.session = session

    def require_node(node_id: str) -> str:
        node = session.store.get(node_id)
        if node is None:
            raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")
        return node.id

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "version": __version__, **session.store.stats()}

    @app.get("/api/graph")
    async def graph() -> dict[str, Any]:
        """Current render frame with session status."""
        return session.frame()

    @app.post("/api/search")
    async def search(request: SearchRequest) -> dict[str, Any]:
        await session.search_submit(request.query)
        return session.frame()

    @app.post("/api/nodes/{node_id}/click")
    async def click_node(node_id: str) -> dict[str, Any]:
        await session.node_click(require_node(node_id))
        return session.frame()

    @app.delete("/api/nodes/{node_id}")
    async def delete_node(node_id: str) -> dict[str, Any]:
        removed = session.delete_node(node_id)
        return {**session.frame(), "removed": sorted(removed)}

    @app.post("/api/clear")
    async def clear() -> dict[str, Any]:
        session.clear_all()
        return session.frame()

    @app.post("/api/background-click")
    async def background_click() -> dict[str, Any]:
        await session.node_click(None)
        return session.frame()

    @app.put("/api/settings")
    async def update_settings(request: SettingsRequest) -> dict[str, Any]:
        if request.link_limit is not None:
            try:
                session.set_link_limit(request.link_limit)
            except ValueError as e:
                raise HTTPException(status_code=422, detail=str(e)) from e
        if request.search_term is not None:
            session.set_search_term(request.search_term)
        if (
            request.show_sub_nodes is not None
            and request.show_sub_nodes != session.show_sub_nodes
        ):
            session.toggle_sub_nodes()
        return session.frame()

    @app.post("/api/hover")
    async def hover(request: HoverRequest) -> dict[str, Any]:
        session.hover_node(request.node_id)
        return session.frame()

    @app.post("/api/focus")
    async def focus(request: FocusRequest) -> dict[str, Any]:
        node_id = require_node(request.node_id) if request.node_id else None
        session.focus_node(node_id)
        return session.frame()

    @app.post("/api/view/reset")
    async def reset_view() -> dict[str, Any]:
        session.reset_view()
        return session.frame()

    @app.post("/api/view/zoom")
    async def zoom(request: ZoomRequest) -> dict[str, Any]:
        around = None
        if request.x is not None and request.y is not None:
            around = (request.x, request.y)
        session.zoom_by(request.factor, around)
        return session.frame()

    @app.post("/api/view/pan")
    async def pan(request: PanRequest) -> dict[str, Any]:
        session.pan_by(request.dx, request.dy)
        return session.frame()

    @app.put("/api/view/transform")
    async def set_transform(request: TransformRequest) -> dict[str, Any]:
        session.set_transform(request.x, request.y, request.k)
        return session.frame()

    @app.post("/api/viewport")
    async def viewport(request: ViewportRequest) -> dict[str, Any]:
        session.set_viewport(request.width, request.height)
        return session.frame()

    @app.post("/api/drag/start")
    async def drag_start(request: DragRequest) -> dict[str, Any]:
        return {"ok": session.drag_start(require_node(request.node_id))}

    @app.post("/api/drag/move")
    async def drag_move(request: DragRequest) -> dict[str, Any]:
        if request.x is None or request.y is None:
            raise HTTPException(status_code=422, detail="Drag move needs x and y")
        moved = session.drag_move(
            require_node(request.node_id), request.x, request.y, screen=request.screen
        )
        return {"ok": moved}

    @app.post("/api/drag/end")
    async def drag_end(request: DragRequest) -> dict[str, Any]:
        return {"ok": session.drag_end(require_node(request.node_id))}

    return app


def start_server(
    session: ExplorerSession,
    host: str = defaults.DEFAULT_HOST,
    port: int = defaults.DEFAULT_PORT,
    fps: int = defaults.DEFAULT_FPS,
) -> None:
    """Run the API server until interrupted.

    Args:
        session: Session to serve
        host: Interface to bind
        port: Port number to use
        fps: Layout frame rate

    Raises:
        typer.Exit: If the server fails to start
    """
    try:
        app = create_app(session, fps)
        url = f"http://{host}:{port}"

        console.print()
        console.print(
            Panel.fit(
                f"[green]✓[/green] Wiki explorer API running\n\n"
                f"URL: [cyan]{url}/api/graph[/cyan]\n"
                f"Frame rate: [dim]{fps} fps[/dim]\n\n"
                f"[dim]Press Ctrl+C to stop[/dim]",
                title="Server Started",
                border_style="green",
            )
        )
        logger.info(f"Serving explorer API on {url}")

        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        server = uvicorn.Server(config)
        server.run()

    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping server...[/yellow]")
    except OSError as e:
        if "Address already in use" in str(e):
            console.print(
                f"[red]✗ Port {port} is already in use. Try a different port with --port[/red]"
            )
        else:
            console.print(f"[red]✗ Server error: {e}[/red]")
        import typer

        raise typer.Exit(1)
