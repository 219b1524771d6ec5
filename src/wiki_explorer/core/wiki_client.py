"""MediaWiki client that turns an article into a link batch.

The client requests an article's current wikitext and short description,
extracts unique outbound article links in order of appearance, and returns
them as a ``FetchBatch`` (center node first, children capped at the link
limit).
"""

from __future__ import annotations

import math
import re
from typing import Any
from urllib.parse import quote, unquote, urlparse

import httpx
from loguru import logger

from ..config import defaults
from ..config.settings import FetchSettings
from .exceptions import FetchError, NetworkError, PageNotFoundError
from .models import FetchBatch, Link, Node, NodeGroup, normalize_title

# [[Target]], [[Target|label]], [[Target#Section|label]]
LINK_PATTERN = re.compile(r"\[\[([^|\]#\n]+)(?:#[^|\]]*)?(?:\|[^\]]*)?\]\]")

_EXCLUDED_LOWER = {ns.lower() for ns in defaults.EXCLUDED_NAMESPACES}


def extract_title_from_url(url: str) -> str | None:
    """Extract the article title from a Wikipedia URL.

    Args:
        url: URL such as ``https://en.wikipedia.org/wiki/Felis_catus``

    Returns:
        Decoded title (empty when the URL names no article), or None if the
        URL is not a Wikipedia URL
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or "wikipedia.org" not in (parsed.hostname or ""):
        return None
    return unquote(parsed.path.split("/")[-1])


def is_excluded_namespace(title: str) -> bool:
    """Check whether a title belongs to a non-article namespace."""
    prefix, sep, _ = title.partition(":")
    return bool(sep) and prefix.strip().lower() in _EXCLUDED_LOWER


def extract_links(wikitext: str, exclude_title: str) -> list[str]:
    """Extract unique, normalized article links from wikitext.

    Args:
        wikitext: Raw article source
        exclude_title: Canonical title of the article itself (self links dropped)

    Returns:
        Normalized titles in order of first appearance
    """
    seen: dict[str, None] = {}
    for match in LINK_PATTERN.finditer(wikitext):
        target = normalize_title(match.group(1))
        if not target or target == exclude_title or is_excluded_namespace(target):
            continue
        seen.setdefault(target, None)
    return list(seen)


class WikiClient:
    """Fetch adapter for the MediaWiki query API."""

    def __init__(
        self,
        settings: FetchSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: API endpoint, timeout and user agent
            transport: Optional httpx transport (used to stub the API in tests)
        """
        self.settings = settings or FetchSettings()
        self._transport = transport

    def article_url(self, title: str) -> str:
        return f"{self.settings.article_base_url}{quote(title)}"

    async def fetch(self, title: str, max_links: float = math.inf) -> FetchBatch:
        """Fetch an article and its outbound links.

        Args:
            title: Article title (any spelling, redirects are followed)
            max_links: Maximum number of child nodes, ``math.inf`` for no cap

        Returns:
            FetchBatch whose center is the resolved article; empty when the
            article has no content

        Raises:
            PageNotFoundError: If the article does not exist
            NetworkError: On transport failure, timeout or non-2xx status
            FetchError: If the API reports an error or an unexpected payload
        """
        data = await self._query(title)

        if not isinstance(data, dict):
            raise FetchError("Unexpected response from Wikipedia", context={"title": title})
        if "error" in data:
            info = data["error"].get("info", "Unknown API error")
            raise FetchError(info, context={"title": title})

        pages = (data.get("query") or {}).get("pages")
        if not pages:
            raise FetchError("No pages found", context={"title": title})

        page_id, page = next(iter(pages.items()))
        if page_id == "-1" or not page or "missing" in page:
            raise PageNotFoundError(title)

        canonical = page["title"]
        revisions = page.get("revisions") or [{}]
        content = revisions[0].get("*") or ""
        if not content:
            logger.warning(f"Article '{canonical}' has no content")
            return FetchBatch(center=None)

        link_titles = extract_links(content, canonical)
        if not math.isinf(max_links):
            link_titles = link_titles[: int(max_links)]

        center = Node(
            id=canonical,
            group=NodeGroup.MAIN,
            url=self.article_url(canonical),
            description=page.get("description"),
        )
        children = [
            Node(id=t, group=NodeGroup.SUB, url=self.article_url(t))
            for t in link_titles
        ]
        links = [Link(canonical, child.id) for child in children]

        logger.info(f"Fetched '{canonical}' with {len(children)} links")
        return FetchBatch(center=center, children=children, links=links)

    async def _query(self, title: str) -> dict[str, Any]:
        params = {
            "action": "query",
            "titles": title,
            "prop": "revisions|description",
            "rvprop": "content",
            "format": "json",
            "origin": "*",
            "redirects": "1",
        }
        headers = {"User-Agent": self.settings.user_agent}

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    self.settings.api_url, params=params, headers=headers
                )
                response.raise_for_status()
                return response.json()

        except httpx.TimeoutException as e:
            logger.error(f"Wiki API timeout after {self.settings.timeout}s")
            raise NetworkError(
                f"Request timed out after {self.settings.timeout} seconds",
                context={"title": title},
            ) from e

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"Wiki API error (HTTP {status_code}) for '{title}'")
            raise NetworkError(
                "Failed to fetch from Wikipedia",
                context={"title": title, "status_code": status_code},
            ) from e

        except httpx.HTTPError as e:
            logger.error(f"Wiki API request failed: {e}")
            raise NetworkError(
                "Failed to fetch from Wikipedia", context={"title": title}
            ) from e

        except ValueError as e:
            raise FetchError(
                "Invalid JSON from Wikipedia", context={"title": title}
            ) from e
