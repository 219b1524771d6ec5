"""Hover and search highlighting.

Highlight state is a pure function of the hovered node id, the search term
and the node. Visual changes are layered on the group baseline and eased in
over a short transition by ``StyleAnimator``.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace

from ..config import defaults
from .models import Link, Node, NodeGroup


def is_highlighted(hovered_id: str | None, search_term: str | None, node_id: str) -> bool:
    """Return True if the node is hovered or matches the search term.

    Example:
        >>> is_highlighted(None, "fel", "Felidae")
        True
        >>> is_highlighted("Cat", "", "Felidae")
        False
    """
    if hovered_id is not None and node_id == hovered_id:
        return True
    if search_term:
        return search_term.lower() in node_id.lower()
    return False


def is_link_emphasized(hovered_id: str | None, link: Link) -> bool:
    """Links react to hover only; search matches never emphasize links."""
    return hovered_id is not None and link.touches(hovered_id)


@dataclass(frozen=True)
class NodeStyle:
    ring_radius: float
    ring_opacity: float
    radius: float
    stroke_width: float


@dataclass(frozen=True)
class LinkStyle:
    opacity: float
    width: float


def node_style(node: Node, highlighted: bool) -> NodeStyle:
    """Target style for a node: solid MAIN with a ring, outlined SUB that grows."""
    if node.group is NodeGroup.MAIN:
        return NodeStyle(
            ring_radius=20.0,
            ring_opacity=1.0 if highlighted else 0.0,
            radius=12.0,
            stroke_width=0.0,
        )
    return NodeStyle(
        ring_radius=0.0,
        ring_opacity=0.0,
        radius=9.0 if highlighted else 5.0,
        stroke_width=3.0 if highlighted else 1.5,
    )


def link_style(main_to_main: bool, emphasized: bool) -> LinkStyle:
    if emphasized:
        return LinkStyle(opacity=1.0, width=3.0)
    if main_to_main:
        return LinkStyle(opacity=0.6, width=2.0)
    return LinkStyle(opacity=0.1, width=0.5)


@dataclass
class HighlightState:
    """Hover id and search term; derives the highlight predicate."""

    hovered_id: str | None = None
    search_term: str = ""

    def node_highlighted(self, node_id: str) -> bool:
        return is_highlighted(self.hovered_id, self.search_term, node_id)

    def link_emphasized(self, link: Link) -> bool:
        return is_link_emphasized(self.hovered_id, link)


def _lerp_style(start, end, t: float):
    values = {
        f.name: getattr(start, f.name) + (getattr(end, f.name) - getattr(start, f.name)) * t
        for f in fields(start)
    }
    return replace(start, **values)


class StyleAnimator:
    """Eases element styles toward their targets over a fixed duration.

    Each element keeps the style it had when its target last changed, so a
    new hover mid-transition starts from the on-screen value.
    """

    def __init__(self, duration_ms: float = defaults.HIGHLIGHT_MS) -> None:
        self.duration_ms = duration_ms
        # key -> (from_style, to_style, elapsed_ms)
        self._tracks: dict[object, list] = {}

    def style(self, key: object, target):
        """Return the current interpolated style for ``key`` given its target."""
        track = self._tracks.get(key)
        if track is None:
            # New elements appear at their baseline without animating in.
            self._tracks[key] = [target, target, self.duration_ms]
            return target
        start, end, elapsed = track
        if end != target:
            current = self._current(start, end, elapsed)
            self._tracks[key] = track = [current, target, 0.0]
            start, end, elapsed = track
        return self._current(start, end, elapsed)

    def advance(self, dt_ms: float) -> None:
        for track in self._tracks.values():
            track[2] = min(self.duration_ms, track[2] + dt_ms)

    def retain(self, keys: set) -> None:
        """Forget tracks for elements no longer rendered."""
        for key in list(self._tracks):
            if key not in keys:
                del self._tracks[key]

    @property
    def animating(self) -> bool:
        return any(
            t[2] < self.duration_ms and t[0] != t[1] for t in self._tracks.values()
        )

    def _current(self, start, end, elapsed: float):
        if self.duration_ms <= 0 or elapsed >= self.duration_ms:
            return end
        return _lerp_style(start, end, ease_cubic_in_out(elapsed / self.duration_ms))


def ease_cubic_in_out(t: float) -> float:
    t *= 2
    if t <= 1:
        return t * t * t / 2
    t -= 2
    return (t * t * t + 2) / 2
