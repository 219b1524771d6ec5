"""Typed exception hierarchy for wiki-explorer.

Hierarchy
---------
WikiExplorerError (base)
├── FetchError             – any failure to turn a title into a link batch
│   ├── PageNotFoundError  – the resolved title does not exist
│   ├── NetworkError       – transport, timeout or HTTP status failures
│   └── EmptyResultError   – the fetch succeeded but produced no nodes
└── ConfigError            – configuration / validation errors

Fetch errors are recovered at the session boundary and surfaced as status
strings; the graph store is never touched when one is raised.
"""

from typing import Any


class WikiExplorerError(Exception):
    """Base exception for wiki-explorer."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


# ── Fetch layer ─────────────────────────────────────────────────────────


class FetchError(WikiExplorerError):
    """Fetching link data for a title failed."""

    pass


class PageNotFoundError(FetchError):
    """The requested article does not exist."""

    def __init__(self, title: str) -> None:
        super().__init__("Page not found", context={"title": title})
        self.title = title


class NetworkError(FetchError):
    """Network, timeout or HTTP status failure while talking to the wiki API."""

    pass


class EmptyResultError(FetchError):
    """The fetch succeeded but yielded zero nodes."""

    def __init__(self, title: str) -> None:
        super().__init__("No data found", context={"title": title})
        self.title = title


# ── Configuration layer ─────────────────────────────────────────────────


class ConfigError(WikiExplorerError):
    """Configuration / validation errors."""

    pass
