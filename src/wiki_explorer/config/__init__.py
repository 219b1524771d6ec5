"""Configuration for wiki-explorer."""

from .settings import ExplorerSettings, FetchSettings, ForceSettings, ViewSettings

__all__ = ["ExplorerSettings", "FetchSettings", "ForceSettings", "ViewSettings"]
