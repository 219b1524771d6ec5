"""Runtime settings for the explorer, loadable from YAML and the environment."""

from __future__ import annotations

import math
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from ..core.exceptions import ConfigError
from . import defaults


def parse_link_limit(value: Any) -> float:
    """Parse a link limit, mapping knob values at the top of the range to no cap.

    Args:
        value: Integer-like value, or one of "inf"/"unlimited"/"none"

    Returns:
        Positive integer limit, or ``math.inf`` for no cap

    Raises:
        ValueError: If the value is not a positive number
    """
    if isinstance(value, str) and value.strip().lower() in {"inf", "unlimited", "none"}:
        return math.inf
    limit = float(value)
    if math.isnan(limit) or limit <= 0:
        raise ValueError(f"Link limit must be positive, got {value!r}")
    if limit >= defaults.UNLIMITED_LINK_THRESHOLD:
        return math.inf
    return int(limit)


@dataclass
class FetchSettings:
    """Wiki API access."""

    api_url: str = defaults.WIKI_API_URL
    article_base_url: str = defaults.WIKI_ARTICLE_BASE_URL
    timeout: float = defaults.DEFAULT_FETCH_TIMEOUT
    user_agent: str = defaults.USER_AGENT
    link_limit: float = defaults.DEFAULT_LINK_LIMIT


@dataclass
class ForceSettings:
    """Force parameters, split by node group where the force depends on it."""

    link_distance_main: float = defaults.LINK_DISTANCE_MAIN_MAIN
    link_distance: float = defaults.LINK_DISTANCE_DEFAULT
    charge_main: float = defaults.CHARGE_STRENGTH["main"]
    charge_sub: float = defaults.CHARGE_STRENGTH["sub"]
    collide_main: float = defaults.COLLIDE_RADIUS["main"]
    collide_sub: float = defaults.COLLIDE_RADIUS["sub"]
    center_strength: float = defaults.CENTER_STRENGTH
    velocity_decay: float = defaults.VELOCITY_DECAY
    alpha_min: float = defaults.ALPHA_MIN
    alpha_decay: float = defaults.ALPHA_DECAY
    drag_alpha_target: float = defaults.DRAG_ALPHA_TARGET


@dataclass
class ViewSettings:
    """Camera and label behaviour."""

    width: int = defaults.DEFAULT_VIEWPORT[0]
    height: int = defaults.DEFAULT_VIEWPORT[1]
    min_scale: float = defaults.SCALE_EXTENT[0]
    max_scale: float = defaults.SCALE_EXTENT[1]
    initial_scale: float = defaults.INITIAL_SCALE
    focus_min_scale: float = defaults.FOCUS_MIN_SCALE
    transition_ms: float = defaults.TRANSITION_MS
    highlight_ms: float = defaults.HIGHLIGHT_MS
    sub_label_min_scale: float = defaults.SUB_LABEL_MIN_SCALE


@dataclass
class ExplorerSettings:
    """Complete explorer configuration."""

    fetch: FetchSettings = field(default_factory=FetchSettings)
    forces: ForceSettings = field(default_factory=ForceSettings)
    view: ViewSettings = field(default_factory=ViewSettings)
    seed: int | None = None  # fixes placement jitter for reproducible layouts

    @classmethod
    def load(cls, path: Path | None) -> ExplorerSettings:
        """Load configuration from a YAML file, then apply environment overrides.

        Args:
            path: Path to YAML configuration file (defaults used if missing)

        Returns:
            ExplorerSettings instance

        Raises:
            ConfigError: If the file cannot be parsed or holds unknown keys
        """
        data: dict[str, Any] = {}
        if path is not None and path.exists():
            try:
                with open(path) as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(
                    f"Invalid YAML in {path}: {e}", context={"path": str(path)}
                ) from e
            logger.debug(f"Loaded settings from {path}")

        settings = cls.from_dict(data)
        settings.apply_env()
        return settings

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExplorerSettings:
        """Create settings from a dictionary.

        Args:
            data: Configuration dictionary with optional fetch/forces/view sections

        Returns:
            ExplorerSettings instance
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Settings must be a mapping, got {type(data).__name__}")

        try:
            fetch_data = dict(data.get("fetch") or {})
            if "link_limit" in fetch_data:
                fetch_data["link_limit"] = parse_link_limit(fetch_data["link_limit"])
            return cls(
                fetch=FetchSettings(**fetch_data),
                forces=ForceSettings(**(data.get("forces") or {})),
                view=ViewSettings(**(data.get("view") or {})),
                seed=data.get("seed"),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid settings: {e}") from e

    def apply_env(self) -> None:
        """Apply WIKI_EXPLORER_* environment overrides in place."""
        if api_url := os.getenv("WIKI_EXPLORER_API_URL"):
            self.fetch.api_url = api_url
        try:
            if timeout := os.getenv("WIKI_EXPLORER_TIMEOUT"):
                self.fetch.timeout = float(timeout)
            if limit := os.getenv("WIKI_EXPLORER_LINK_LIMIT"):
                self.fetch.link_limit = parse_link_limit(limit)
            if seed := os.getenv("WIKI_EXPLORER_SEED"):
                self.seed = int(seed)
        except ValueError as e:
            raise ConfigError(f"Invalid environment override: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        if math.isinf(self.fetch.link_limit):
            data["fetch"]["link_limit"] = "unlimited"
        return data
