"""Force layout and view control."""

from .engine import LayoutEngine

__all__ = ["LayoutEngine"]
