"""Layout engine: the single owner of simulation and camera state.

External callers interact only through the command methods (``sync``,
``grab``/``drag``/``release``, ``zoom_by``/``pan_by``/``set_transform``,
``reset_view``, ``focus``/``clear_focus``, ``set_show_sub_nodes``,
``set_viewport``) and read render-ready output from ``frame``.
"""

from __future__ import annotations

import random
from dataclasses import asdict
from typing import Any

from loguru import logger

from ..config.settings import ExplorerSettings
from ..core.highlight import (
    HighlightState,
    StyleAnimator,
    link_style,
    node_style,
)
from ..core.models import GraphSnapshot, Link, Node
from .simulation import ForceSimulation
from .view import ViewController, ViewTransform


class LayoutEngine:
    """Continuous force layout plus view control for one graph."""

    def __init__(
        self, settings: ExplorerSettings | None = None, rng: random.Random | None = None
    ) -> None:
        self.settings = settings or ExplorerSettings()
        self.simulation = ForceSimulation(self.settings.forces, rng)
        self.view = ViewController(self.settings.view)
        self.animator = StyleAnimator(self.settings.view.highlight_ms)
        self.show_sub_nodes = True
        self.focused_id: str | None = None

        self._snapshot = GraphSnapshot(nodes={}, links={}, version=-1)
        self._visible_nodes: list[Node] = []
        self._visible_links: list[Link] = []
        self._dragging: set[str] = set()

    # ------------------------------------------------------------------
    # Graph input
    # ------------------------------------------------------------------

    def sync(self, snapshot: GraphSnapshot) -> None:
        """Adopt a new committed graph snapshot.

        Existing nodes keep their positions and velocities; the simulation is
        reheated so new nodes settle in. The camera is not touched.
        """
        if snapshot.version == self._snapshot.version:
            return
        self._snapshot = snapshot
        self._dragging &= set(snapshot.nodes)
        if self.focused_id is not None and self.focused_id not in snapshot.nodes:
            self.focused_id = None
        self._rebuild()

    def set_show_sub_nodes(self, show: bool) -> None:
        if show == self.show_sub_nodes:
            return
        self.show_sub_nodes = show
        self._rebuild()

    def _rebuild(self) -> None:
        """Apply the visibility filter; hidden nodes leave the simulation entirely."""
        nodes = [
            n for n in self._snapshot.nodes.values() if self.show_sub_nodes or n.is_main
        ]
        visible = {n.id for n in nodes}
        links = [
            link
            for link in self._snapshot.links.values()
            if link.source_id in visible and link.target_id in visible
        ]
        self._visible_nodes = nodes
        self._visible_links = links
        self.simulation.set_graph(nodes, links, reheat=True)

    @property
    def visible_nodes(self) -> list[Node]:
        return list(self._visible_nodes)

    @property
    def visible_links(self) -> list[Link]:
        return list(self._visible_links)

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def advance(self, dt_ms: float) -> bool:
        """Advance one animation frame.

        Ticks the simulation once (while it is warm), steps the camera
        transition and the highlight transitions.

        Returns:
            True while anything is still moving
        """
        ticked = self.simulation.step()
        self.view.advance(dt_ms)
        self.animator.advance(dt_ms)
        return ticked or self.view.animating or self.animator.animating

    def settle(self, max_ticks: int = 300) -> int:
        return self.simulation.settle(max_ticks)

    # ------------------------------------------------------------------
    # Drag protocol
    # ------------------------------------------------------------------

    def grab(self, node_id: str) -> bool:
        """Pin a visible node where it is and keep the simulation warm."""
        if self.simulation.node(node_id) is None:
            return False
        if not self._dragging:
            self.simulation.reheat(self.settings.forces.drag_alpha_target)
        self._dragging.add(node_id)
        self.simulation.pin(node_id)
        return True

    def drag(self, node_id: str, x: float, y: float, screen: bool = False) -> bool:
        """Move a grabbed node's pin exactly to the pointer."""
        if node_id not in self._dragging:
            return False
        if screen:
            x, y = self.view.transform.invert((x, y))
        return self.simulation.pin(node_id, x, y)

    def release(self, node_id: str) -> bool:
        if node_id not in self._dragging:
            return False
        self._dragging.discard(node_id)
        if not self._dragging:
            self.simulation.reheat(0.0)
        # The node may have been hidden mid-drag, so unpin the shared object directly.
        node = self._snapshot.nodes.get(node_id)
        if node is not None:
            node.fx = node.fy = None
        return True

    # ------------------------------------------------------------------
    # View commands
    # ------------------------------------------------------------------

    def set_viewport(self, width: float, height: float) -> None:
        self.view.set_viewport(width, height)

    def set_transform(self, transform: ViewTransform) -> None:
        self.view.set_transform(transform)

    def zoom_by(self, factor: float, around: tuple[float, float] | None = None) -> None:
        self.view.zoom_by(factor, around)

    def pan_by(self, dx: float, dy: float) -> None:
        self.view.pan_by(dx, dy)

    def reset_view(self) -> bool:
        """Animate the camera to fit every visible, positioned node."""
        points = [
            (n.x, n.y) for n in self._visible_nodes if n.x is not None and n.y is not None
        ]
        return self.view.reset(points)

    def focus(self, node_id: str | None) -> bool:
        """Animate to center a node; ``None`` clears focus without moving."""
        if node_id is None:
            self.clear_focus()
            return True
        node = self._snapshot.nodes.get(node_id)
        if node is None:
            logger.debug(f"Focus ignored, '{node_id}' is not in the graph")
            return False
        self.focused_id = node.id
        if node.x is not None and node.y is not None:
            self.view.focus_on(node.x, node.y)
        return True

    def clear_focus(self) -> None:
        self.focused_id = None

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def frame(self, highlight: HighlightState | None = None) -> dict[str, Any]:
        """Render-ready positions and styles for the visible graph."""
        highlight = highlight or HighlightState()
        nodes_by_id = {n.id: n for n in self._visible_nodes}
        keys: set = set()

        nodes = []
        for node in self._visible_nodes:
            key = ("node", node.id)
            keys.add(key)
            style = self.animator.style(
                key, node_style(node, highlight.node_highlighted(node.id))
            )
            label = self.view.label(node.group)
            nodes.append(
                {
                    **node.to_dict(),
                    "highlighted": highlight.node_highlighted(node.id),
                    "style": asdict(style),
                    "label": asdict(label),
                }
            )

        links = []
        for link in self._visible_links:
            source, target = nodes_by_id[link.source_id], nodes_by_id[link.target_id]
            key = ("link", link.key)
            keys.add(key)
            style = self.animator.style(
                key,
                link_style(
                    source.is_main and target.is_main, highlight.link_emphasized(link)
                ),
            )
            links.append(
                {
                    **link.to_dict(),
                    "x1": source.x,
                    "y1": source.y,
                    "x2": target.x,
                    "y2": target.y,
                    "style": asdict(style),
                }
            )

        self.animator.retain(keys)
        return {
            "nodes": nodes,
            "links": links,
            "transform": self.view.transform.to_dict(),
            "viewport": {"width": self.view.width, "height": self.view.height},
            "focused_id": self.focused_id,
            "show_sub_nodes": self.show_sub_nodes,
            "alpha": self.simulation.alpha,
            "version": self._snapshot.version,
        }
