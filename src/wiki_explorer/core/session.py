"""Explorer session: the command surface that wires fetches, store and layout.

All commands run on one event loop. A fetch is awaited first and its result
is merged synchronously against whatever graph is committed at that moment;
there is no await between reading the store and committing to it. In-flight
fetches are never cancelled, so a fetch that completes after its node was
deleted (or after ``clear_all``) still merges and may re-create the node.
"""

from __future__ import annotations

import math
import random
from typing import Any, Protocol

from loguru import logger

from ..config.settings import ExplorerSettings, parse_link_limit
from ..layout.engine import LayoutEngine
from ..layout.view import ViewTransform
from .exceptions import EmptyResultError, FetchError, PageNotFoundError
from .graph_store import GraphStore
from .highlight import HighlightState
from .models import FetchBatch, Node
from .wiki_client import WikiClient, extract_title_from_url

NOT_FOUND_MESSAGE = "WIKI PAGE NOT FOUND"
FETCH_FAILED_MESSAGE = "FETCH_FAILED"


class Fetcher(Protocol):
    async def fetch(self, title: str, max_links: float = math.inf) -> FetchBatch: ...


class ExplorerSession:
    """Holds one exploration: graph store, layout engine and UI status."""

    def __init__(
        self,
        settings: ExplorerSettings | None = None,
        fetcher: Fetcher | None = None,
        store: GraphStore | None = None,
        engine: LayoutEngine | None = None,
    ) -> None:
        self.settings = settings or ExplorerSettings()
        rng = random.Random(self.settings.seed)
        self.fetcher: Fetcher = fetcher or WikiClient(self.settings.fetch)
        self.store = store or GraphStore(rng=rng)
        self.engine = engine or LayoutEngine(self.settings, rng=rng)
        self.highlight = HighlightState()

        self.link_limit: float = self.settings.fetch.link_limit
        self.error: str | None = None
        self._pending = 0

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return self._pending > 0

    @property
    def search_term(self) -> str:
        return self.highlight.search_term

    @property
    def show_sub_nodes(self) -> bool:
        return self.engine.show_sub_nodes

    @property
    def focused_id(self) -> str | None:
        return self.engine.focused_id

    def status(self) -> dict[str, Any]:
        return {
            "is_loading": self.is_loading,
            "error": self.error,
            "link_limit": "unlimited" if math.isinf(self.link_limit) else self.link_limit,
            "search_term": self.search_term,
            "hovered_id": self.highlight.hovered_id,
            "show_sub_nodes": self.show_sub_nodes,
            "stats": self.store.stats(),
            "main_nodes": self.store.main_summary(),
        }

    def frame(self) -> dict[str, Any]:
        """Render frame plus session status."""
        return {**self.engine.frame(self.highlight), "status": self.status()}

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def search_submit(self, text: str) -> Node | None:
        """Search a topic: focus or expand it if known, otherwise fetch a new root.

        Args:
            text: Title or Wikipedia article URL typed by the user

        Returns:
            The focused/expanded/created node, or None on empty input or failure
        """
        title = extract_title_from_url(text.strip())
        if title is None:
            title = text
        raw = "_".join(title.split())
        if not raw:
            return None

        existing = self.store.find(raw)
        if existing is not None:
            self.highlight.search_term = ""
            if existing.is_main:
                self.focus_node(existing.id)
                return existing
            return await self.node_click(existing.id)

        self.highlight.search_term = ""
        batch = await self._fetch(raw)
        if batch is None:
            return None

        center = self.store.merge(None, batch, view_center=self._view_center())
        self._commit()
        self.engine.focus(center.id)
        return center

    async def node_click(self, node_id: str | None) -> Node | None:
        """Click a node: focus MAIN nodes, expand SUB nodes; None clears focus."""
        if node_id is None:
            self.engine.clear_focus()
            return None

        node = self.store.get(node_id)
        if node is None:
            logger.debug(f"Click ignored, '{node_id}' is not in the graph")
            return None
        if node.is_main:
            self.focus_node(node.id)
            return node

        batch = await self._fetch(node.id)
        if batch is None:
            return None

        # Merge against the latest committed graph, which may differ from `node`'s
        center = self.store.merge(node.id, batch, view_center=self._view_center())
        self._commit()
        self.engine.focus(node.id if node.id in self.store else center.id)
        return center

    def delete_node(self, node_id: str) -> set[str]:
        removed = self.store.delete_node(node_id)
        self._commit()
        return removed

    def clear_all(self) -> None:
        self.store.clear()
        self._commit()
        self.engine.clear_focus()
        self.error = None
        self.highlight.search_term = ""

    def set_link_limit(self, value: Any) -> float:
        """Set the per-fetch child cap; values at the top of the knob mean unlimited."""
        self.link_limit = parse_link_limit(value)
        return self.link_limit

    def set_search_term(self, term: str) -> None:
        self.highlight.search_term = term

    def toggle_sub_nodes(self) -> bool:
        self.engine.set_show_sub_nodes(not self.engine.show_sub_nodes)
        return self.engine.show_sub_nodes

    def reset_view(self) -> bool:
        self.engine.clear_focus()
        return self.engine.reset_view()

    def hover_node(self, node_id: str | None) -> None:
        self.highlight.hovered_id = node_id

    def focus_node(self, node_id: str | None) -> bool:
        return self.engine.focus(node_id)

    # Pointer and camera input goes straight to the engine.

    def drag_start(self, node_id: str) -> bool:
        return self.engine.grab(node_id)

    def drag_move(self, node_id: str, x: float, y: float, screen: bool = False) -> bool:
        return self.engine.drag(node_id, x, y, screen=screen)

    def drag_end(self, node_id: str) -> bool:
        return self.engine.release(node_id)

    def zoom_by(self, factor: float, around: tuple[float, float] | None = None) -> None:
        self.engine.zoom_by(factor, around)

    def pan_by(self, dx: float, dy: float) -> None:
        self.engine.pan_by(dx, dy)

    def set_transform(self, x: float, y: float, k: float) -> None:
        self.engine.set_transform(ViewTransform(x, y, k))

    def set_viewport(self, width: float, height: float) -> None:
        self.engine.set_viewport(width, height)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch(self, title: str) -> FetchBatch | None:
        """Fetch a batch, turning failures into the user-visible error status."""
        self._pending += 1
        self.error = None
        try:
            batch = await self.fetcher.fetch(title, self.link_limit)
            if batch.is_empty:
                raise EmptyResultError(title)
            return batch
        except PageNotFoundError:
            logger.warning(f"Page not found: '{title}'")
            self.error = NOT_FOUND_MESSAGE
        except FetchError as e:
            logger.warning(f"Fetch failed for '{title}': {e}")
            self.error = str(e) or FETCH_FAILED_MESSAGE
        except Exception as e:
            # Adapter bugs and malformed payloads still leave the session usable
            logger.exception(f"Unexpected error fetching '{title}': {e}")
            self.error = FETCH_FAILED_MESSAGE
        finally:
            self._pending -= 1
        return None

    def _commit(self) -> None:
        self.engine.sync(self.store.snapshot())

    def _view_center(self) -> tuple[float, float]:
        view = self.engine.view
        return view.transform.invert((view.width / 2, view.height / 2))
