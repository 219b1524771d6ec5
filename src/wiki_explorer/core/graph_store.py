"""Canonical node/link store and the merge engine.

The store folds freshly fetched link batches into the existing graph and
handles node deletion with promotion/demotion and garbage collection.

Invariants held after every ``merge`` and ``delete_node``:
    - Node ids are unique; titles are matched by normalized, case-folded key
    - Link identity is the ordered (source_id, target_id) pair
    - Every retained link has at least one MAIN endpoint
    - Every SUB node is reachable from some MAIN node through retained links

Every mutating call reads the latest committed state, builds new node and
link maps, and commits them in one step with no suspension point, so merges
triggered by overlapping fetches always apply against current state.
"""

from __future__ import annotations

import random
from collections import deque
from collections.abc import Iterable
from typing import Any

from loguru import logger

from ..config import defaults
from .models import FetchBatch, GraphSnapshot, Link, Node, NodeGroup, title_key


class GraphStore:
    """Owns the canonical node and link collections.

    Example:
        >>> store = GraphStore(rng=random.Random(7))
        >>> center = store.merge(None, batch)
        >>> center.origin_id
        'ROOT'
        >>> store.delete_node(center.id)
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._nodes: dict[str, Node] = {}
        self._links: dict[tuple[str, str], Link] = {}
        self._index: dict[str, str] = {}  # title_key -> node id
        self._version = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, title: object) -> bool:
        return isinstance(title, str) and self.resolve_id(title) is not None

    @property
    def version(self) -> int:
        """Incremented on every committed mutation."""
        return self._version

    def resolve_id(self, title: str) -> str | None:
        """Map any spelling of a title to the id of the node holding it."""
        if title in self._nodes:
            return title
        return self._index.get(title_key(title))

    def get(self, title: str) -> Node | None:
        node_id = self.resolve_id(title)
        return self._nodes.get(node_id) if node_id is not None else None

    # Search input arrives with underscores and arbitrary case; the key handles both.
    find = get

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            nodes=dict(self._nodes), links=dict(self._links), version=self._version
        )

    def main_nodes(self) -> list[Node]:
        return [n for n in self._nodes.values() if n.is_main]

    def neighbors(self, node_id: str) -> list[str]:
        """Ids linked to ``node_id`` in either direction, in link order."""
        result: list[str] = []
        for link in self._links.values():
            if link.touches(node_id):
                other = link.other(node_id)
                if other not in result:
                    result.append(other)
        return result

    def main_summary(self) -> list[dict[str, Any]]:
        """Each MAIN node with how many SUB and other MAIN nodes it links to."""
        summary = []
        for node in self.main_nodes():
            linked = [self._nodes[nid] for nid in self.neighbors(node.id)]
            main_links = sum(1 for n in linked if n.is_main)
            summary.append(
                {
                    "id": node.id,
                    "description": node.description,
                    "sub_links": len(linked) - main_links,
                    "main_links": main_links,
                }
            )
        return summary

    def stats(self) -> dict[str, int]:
        main = sum(1 for n in self._nodes.values() if n.is_main)
        return {
            "nodes": len(self._nodes),
            "main": main,
            "sub": len(self._nodes) - main,
            "links": len(self._links),
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def merge(
        self,
        origin_id: str | None,
        batch: FetchBatch,
        view_center: tuple[float, float] = (0.0, 0.0),
    ) -> Node:
        """Fold a fetched batch into the graph.

        Args:
            origin_id: Id of the node being expanded, or None for a new search root.
                When the batch center is a redirect target, the expanded node is
                promoted in its place.
            batch: Fetched center node, child nodes and links
            view_center: Where an unrelated new root is scattered around

        Returns:
            The committed center node (an existing object when it was already known)

        Raises:
            ValueError: If the batch has no center node
        """
        if batch.center is None:
            raise ValueError("Cannot merge an empty batch")

        nodes = dict(self._nodes)
        index = dict(self._index)
        fetched = batch.center
        fetched_key = title_key(fetched.id)

        origin_node = self.get(origin_id) if origin_id is not None else None
        if origin_node is not None and title_key(origin_node.id) != fetched_key:
            # The expanded title redirected; the clicked node stands for the article
            center_id = origin_node.id
        else:
            center_id = index.get(fetched_key)
        if center_id is not None:
            center = nodes[center_id]
        else:
            center = Node(
                id=fetched.id,
                group=NodeGroup.MAIN,
                url=fetched.url,
                description=fetched.description,
            )
            if not nodes:
                center.origin_id = defaults.ROOT_ORIGIN
            elif origin_id is not None:
                anchor_id = self.resolve_id(origin_id) or origin_id
                # A node deleted mid-fetch can come back as its own center
                if title_key(anchor_id) != title_key(center.id):
                    center.origin_id = anchor_id
                    anchor = nodes.get(anchor_id)
                    if anchor is not None and anchor.x is not None:
                        self._seed(center, anchor.x, anchor.y, defaults.CHILD_JITTER)
            if center.x is None and nodes:
                self._seed(center, *view_center, defaults.ROOT_SCATTER)
            nodes[center.id] = center
            index[title_key(center.id)] = center.id

        center_key = title_key(center.id)
        weights = {title_key(link.target_id): link.weight for link in batch.links}
        child_keys: set[str] = set()
        child_ids: list[str] = []
        added = 0
        for child in batch.children:
            key = title_key(child.id)
            if key in (center_key, fetched_key) or key in child_keys:
                continue
            child_keys.add(key)
            existing_id = index.get(key)
            if existing_id is not None:
                child_ids.append(existing_id)
                continue
            node = Node(
                id=child.id,
                group=NodeGroup.SUB,
                url=child.url,
                origin_id=center.id,
                description=child.description,
            )
            if center.x is not None and center.y is not None:
                self._seed(node, center.x, center.y, defaults.CHILD_JITTER)
            nodes[node.id] = node
            index[key] = node.id
            child_ids.append(node.id)
            added += 1

        main_ids = {nid for nid, n in nodes.items() if n.is_main} | {center.id}

        links: dict[tuple[str, str], Link] = {}
        for key, link in self._links.items():
            if link.source_id in nodes and link.target_id in nodes:
                links[key] = link
        for child_id in child_ids:
            weight = weights.get(title_key(child_id), 1.0)
            links.setdefault((center.id, child_id), Link(center.id, child_id, weight))
        for nid in main_ids:
            if nid != center.id and title_key(nid) in child_keys:
                links.setdefault((center.id, nid), Link(center.id, nid))

        # Commit
        promoted = not center.is_main
        center.group = NodeGroup.MAIN
        center.description = fetched.description
        if not center.url:
            center.url = fetched.url
        self._commit(nodes, self._retained_links(links.values(), nodes, main_ids))

        logger.debug(
            f"Merged '{center.id}' (origin={origin_id}, promoted={promoted}): "
            f"+{added} sub nodes, {len(self._nodes)} nodes / {len(self._links)} links"
        )
        return center

    def delete_node(self, node_id: str) -> set[str]:
        """Delete a node, demoting it instead when it is anchored to another MAIN.

        Args:
            node_id: Id (or any spelling of the title) of the node to delete

        Returns:
            Ids removed from the graph (empty for an unknown id or a pure demotion
            that left every neighbour reachable)
        """
        target = self.get(node_id)
        if target is None:
            logger.debug(f"Delete ignored, '{node_id}' is not in the graph")
            return set()

        other_main = {
            nid for nid, n in self._nodes.items() if n.is_main and nid != target.id
        }
        is_anchored = any(
            link.touches(target.id) and link.other(target.id) in other_main
            for link in self._links.values()
        )
        demote = target.is_main and is_anchored

        survivors = dict(self._nodes)
        if not demote:
            del survivors[target.id]

        candidates = self._retained_links(self._links.values(), survivors, other_main)
        reachable = self._reachable_from(other_main, candidates.values())
        nodes = {
            nid: n
            for nid, n in survivors.items()
            if nid in other_main or nid in reachable
        }
        removed = set(self._nodes) - set(nodes)

        # Commit
        if demote:
            target.group = NodeGroup.SUB
        self._commit(nodes, self._retained_links(candidates.values(), nodes, other_main))

        logger.debug(
            f"{'Demoted' if demote else 'Deleted'} '{target.id}', "
            f"garbage-collected {len(removed - {target.id})} nodes"
        )
        return removed

    def clear(self) -> None:
        """Reset to an empty graph."""
        self._commit({}, {})
        logger.debug("Graph cleared")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _seed(self, node: Node, x: float, y: float, span: float) -> None:
        node.x = x + (self._rng.random() - 0.5) * span
        node.y = y + (self._rng.random() - 0.5) * span
        node.vx = node.vy = 0.0

    @staticmethod
    def _retained_links(
        links: Iterable[Link], nodes: dict[str, Node], main_ids: set[str]
    ) -> dict[tuple[str, str], Link]:
        """Keep links whose endpoints exist and that touch at least one MAIN node."""
        retained: dict[tuple[str, str], Link] = {}
        for link in links:
            if link.source_id not in nodes or link.target_id not in nodes:
                continue
            if link.source_id in main_ids or link.target_id in main_ids:
                retained.setdefault(link.key, link)
        return retained

    @staticmethod
    def _reachable_from(roots: set[str], links: Iterable[Link]) -> set[str]:
        """Breadth-first reachability over links taken as undirected edges."""
        adjacency: dict[str, list[str]] = {}
        for link in links:
            adjacency.setdefault(link.source_id, []).append(link.target_id)
            adjacency.setdefault(link.target_id, []).append(link.source_id)

        seen = set(roots)
        queue = deque(roots)
        while queue:
            current = queue.popleft()
            for neighbour in adjacency.get(current, ()):
                if neighbour not in seen:
                    seen.add(neighbour)
                    queue.append(neighbour)
        return seen

    def _commit(
        self, nodes: dict[str, Node], links: dict[tuple[str, str], Link]
    ) -> None:
        self._nodes = nodes
        self._links = links
        self._index = {title_key(nid): nid for nid in nodes}
        self._version += 1
