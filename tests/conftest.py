"""Shared fixtures for wiki-explorer tests."""

from __future__ import annotations

import math
import random

import pytest

from wiki_explorer.config.settings import ExplorerSettings
from wiki_explorer.core.exceptions import PageNotFoundError
from wiki_explorer.core.graph_store import GraphStore
from wiki_explorer.core.models import FetchBatch, Link, Node, NodeGroup, normalize_title
from wiki_explorer.core.session import ExplorerSession


def make_batch(center: str, children: list[str], description: str | None = None) -> FetchBatch:
    """Build a batch the way the fetch adapter does: center -> each child."""
    center_node = Node(
        id=center,
        group=NodeGroup.MAIN,
        url=f"https://en.wikipedia.org/wiki/{center}",
        description=description,
    )
    child_nodes = [
        Node(id=c, group=NodeGroup.SUB, url=f"https://en.wikipedia.org/wiki/{c}")
        for c in children
    ]
    links = [Link(center, c) for c in children]
    return FetchBatch(center=center_node, children=child_nodes, links=links)


class FakeFetcher:
    """In-memory fetch adapter keyed by normalized title.

    ``pages`` maps a title to ``(children, description)``; titles missing from
    it raise ``PageNotFoundError``. ``redirects`` maps a requested title to
    the canonical title it resolves to.
    """

    def __init__(
        self,
        pages: dict[str, tuple[list[str], str | None]],
        redirects: dict[str, str] | None = None,
    ) -> None:
        self.pages = pages
        self.redirects = redirects or {}
        self.calls: list[tuple[str, float]] = []

    async def fetch(self, title: str, max_links: float = math.inf) -> FetchBatch:
        self.calls.append((title, max_links))
        canonical = normalize_title(title)
        canonical = self.redirects.get(canonical, canonical)
        if canonical not in self.pages:
            raise PageNotFoundError(title)
        children, description = self.pages[canonical]
        if not math.isinf(max_links):
            children = children[: int(max_links)]
        return make_batch(canonical, children, description)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def store(rng: random.Random) -> GraphStore:
    return GraphStore(rng=rng)


@pytest.fixture
def settings() -> ExplorerSettings:
    return ExplorerSettings(seed=42)


@pytest.fixture
def pages() -> dict[str, tuple[list[str], str | None]]:
    return {
        "Cat": (["Felidae", "Mammal", "Dog", "Whiskers"], "Small domesticated carnivore"),
        "Felidae": (["Cat", "Lion", "Tiger"], "Family of cats"),
        "Dog": (["Wolf", "Mammal", "Cat"], "Domesticated canid"),
        "Mammal": (["Vertebrate", "Dog"], "Class of animals"),
        "Lion": (["Felidae", "Africa"], "Large cat"),
    }


@pytest.fixture
def fetcher(pages) -> FakeFetcher:
    return FakeFetcher(pages)


@pytest.fixture
def session(settings, fetcher) -> ExplorerSession:
    return ExplorerSession(settings, fetcher=fetcher)
