"""Data model for the link graph: nodes, links, fetch batches and snapshots."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

_WHITESPACE = re.compile(r"\s+")


class NodeGroup(str, Enum):
    """Node role in the exploration."""

    MAIN = "main"  # expanded topic of interest
    SUB = "sub"  # discovered but not yet expanded


def normalize_title(title: str) -> str:
    """Normalize an article title for display and deduplication.

    Underscores become spaces, whitespace runs collapse and the first
    character is upper-cased, matching the wiki's own title rules.

    Example:
        >>> normalize_title("  felis_catus ")
        'Felis catus'
    """
    text = _WHITESPACE.sub(" ", title.replace("_", " ")).strip()
    if text:
        text = text[0].upper() + text[1:]
    return text


def title_key(title: str) -> str:
    """Identity key for a title: normalized and case-folded."""
    return normalize_title(title).casefold()


@dataclass
class Node:
    """A graph node. Position fields are written only by the layout engine."""

    id: str  # Canonical article title
    group: NodeGroup = NodeGroup.SUB
    url: str = ""
    origin_id: str | None = None  # "ROOT" or the id of the node that produced it
    description: str | None = None
    x: float | None = None
    y: float | None = None
    vx: float = 0.0
    vy: float = 0.0
    fx: float | None = None  # Pin, set only while dragged
    fy: float | None = None

    @property
    def is_main(self) -> bool:
        return self.group is NodeGroup.MAIN

    @property
    def is_pinned(self) -> bool:
        return self.fx is not None and self.fy is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "group": self.group.value,
            "url": self.url,
            "origin_id": self.origin_id,
            "description": self.description,
            "x": self.x,
            "y": self.y,
            "pinned": self.is_pinned,
        }


@dataclass(frozen=True)
class Link:
    """A directed link between two node ids. Identity is the ordered pair."""

    source_id: str
    target_id: str
    weight: float = 1.0

    @property
    def key(self) -> tuple[str, str]:
        return (self.source_id, self.target_id)

    def touches(self, node_id: str) -> bool:
        return node_id in (self.source_id, self.target_id)

    def other(self, node_id: str) -> str:
        """Return the endpoint opposite ``node_id``."""
        return self.target_id if node_id == self.source_id else self.source_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source_id,
            "target": self.target_id,
            "weight": self.weight,
        }


@dataclass
class FetchBatch:
    """Parsed result of fetching one article: its center node and outbound links."""

    center: Node | None
    children: list[Node] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)

    @property
    def nodes(self) -> list[Node]:
        """Center first, then children; empty when the article had no content."""
        if self.center is None:
            return []
        return [self.center, *self.children]

    @property
    def is_empty(self) -> bool:
        return self.center is None


@dataclass(frozen=True)
class GraphSnapshot:
    """Committed state of the store. Node objects are shared, maps are not."""

    nodes: dict[str, Node]
    links: dict[tuple[str, str], Link]
    version: int = 0

    def node_list(self) -> list[Node]:
        return list(self.nodes.values())

    def link_list(self) -> list[Link]:
        return list(self.links.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "links": [link.to_dict() for link in self.links.values()],
            "version": self.version,
        }
