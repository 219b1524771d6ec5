"""Wiki Explorer - grow an explorable knowledge graph from Wikipedia's link structure."""

__version__ = "0.3.0"

from .core.exceptions import WikiExplorerError

__all__ = ["WikiExplorerError", "__version__"]
