"""View transform (pan/zoom), animated camera moves and semantic label zoom.

The transform maps graph coordinates to screen coordinates as
``screen = translate + k * graph``. It is owned by ``ViewController`` and
survives graph updates; only explicit commands move the camera.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from loguru import logger

from ..config import defaults
from ..config.settings import ViewSettings
from ..core.highlight import ease_cubic_in_out
from ..core.models import NodeGroup

_RHO = math.sqrt(2)
_EPSILON2 = 1e-12


@dataclass(frozen=True)
class ViewTransform:
    """Uniform scale ``k`` followed by translation ``(x, y)``."""

    x: float = 0.0
    y: float = 0.0
    k: float = 1.0

    def apply(self, point: tuple[float, float]) -> tuple[float, float]:
        return (self.x + self.k * point[0], self.y + self.k * point[1])

    def invert(self, point: tuple[float, float]) -> tuple[float, float]:
        return ((point[0] - self.x) / self.k, (point[1] - self.y) / self.k)

    @classmethod
    def centered_on(
        cls, cx: float, cy: float, k: float, width: float, height: float
    ) -> ViewTransform:
        """Transform that puts graph point (cx, cy) at the viewport center."""
        return cls(x=width / 2 - k * cx, y=height / 2 - k * cy, k=k)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "k": self.k}


@dataclass(frozen=True)
class LabelStyle:
    opacity: float
    font_size: float
    dy: float


def label_style(
    group: NodeGroup, k: float, sub_min_scale: float = defaults.SUB_LABEL_MIN_SCALE
) -> LabelStyle:
    """Label style at scale ``k``.

    Font size and offset are divided by ``k`` so labels keep a constant size
    on screen; SUB labels only show once zoomed in past ``sub_min_scale``.
    """
    if group is NodeGroup.MAIN:
        return LabelStyle(
            opacity=1.0,
            font_size=defaults.LABEL_FONT_SIZE["main"] / k,
            dy=14 + 10 / k,
        )
    return LabelStyle(
        opacity=1.0 if k > sub_min_scale else 0.0,
        font_size=defaults.LABEL_FONT_SIZE["sub"] / k,
        dy=7 + 8 / k,
    )


def interpolate_zoom(
    start: tuple[float, float, float], end: tuple[float, float, float]
) -> Callable[[float], tuple[float, float, float]]:
    """Smooth zoom-and-pan interpolation between two views.

    Views are ``(cx, cy, w)``: the graph point at the viewport center and the
    graph-space width visible. Follows van Wijk & Nuij, "Smooth and efficient
    zooming and panning", the same path d3-zoom animates along.
    """
    ux0, uy0, w0 = start
    ux1, uy1, w1 = end
    dx, dy = ux1 - ux0, uy1 - uy0
    d2 = dx * dx + dy * dy

    if d2 < _EPSILON2:
        s = math.log(w1 / w0) / _RHO

        def zoom_only(t: float) -> tuple[float, float, float]:
            return (ux0 + t * dx, uy0 + t * dy, w0 * math.exp(_RHO * t * s))

        return zoom_only

    d1 = math.sqrt(d2)
    b0 = (w1 * w1 - w0 * w0 + 4 * d2) / (2 * w0 * 2 * d1)
    b1 = (w1 * w1 - w0 * w0 - 4 * d2) / (2 * w1 * 2 * d1)
    r0 = math.log(math.sqrt(b0 * b0 + 1) - b0)
    r1 = math.log(math.sqrt(b1 * b1 + 1) - b1)
    s = (r1 - r0) / _RHO

    def zoom_and_pan(t: float) -> tuple[float, float, float]:
        st = t * s
        cosh_r0 = math.cosh(r0)
        u = w0 / (2 * d1) * (cosh_r0 * math.tanh(_RHO * st + r0) - math.sinh(r0))
        return (ux0 + u * dx, uy0 + u * dy, w0 * cosh_r0 / math.cosh(_RHO * st + r0))

    return zoom_and_pan


class ViewTransition:
    """A timed camera move between two transforms."""

    def __init__(
        self,
        start: ViewTransform,
        end: ViewTransform,
        width: float,
        height: float,
        duration_ms: float,
    ) -> None:
        self.start = start
        self.end = end
        self.duration_ms = duration_ms
        self.elapsed_ms = 0.0
        self._center = (width / 2, height / 2)
        self._span = max(width, height)
        c0 = start.invert(self._center)
        c1 = end.invert(self._center)
        self._interpolate = interpolate_zoom(
            (c0[0], c0[1], self._span / start.k), (c1[0], c1[1], self._span / end.k)
        )

    @property
    def done(self) -> bool:
        return self.elapsed_ms >= self.duration_ms

    def advance(self, dt_ms: float) -> ViewTransform:
        self.elapsed_ms = min(self.duration_ms, self.elapsed_ms + dt_ms)
        return self.current()

    def current(self) -> ViewTransform:
        if self.done or self.duration_ms <= 0:
            return self.end
        cx, cy, w = self._interpolate(ease_cubic_in_out(self.elapsed_ms / self.duration_ms))
        k = self._span / w
        return ViewTransform(x=self._center[0] - cx * k, y=self._center[1] - cy * k, k=k)


class ViewController:
    """Owns the view transform, the viewport size and any active transition."""

    def __init__(self, settings: ViewSettings | None = None) -> None:
        self.settings = settings or ViewSettings()
        self.width = float(self.settings.width)
        self.height = float(self.settings.height)
        self.transform = ViewTransform(
            x=self.width / 2, y=self.height / 2, k=self.settings.initial_scale
        )
        self.transition: ViewTransition | None = None

    @property
    def scale(self) -> float:
        return self.transform.k

    @property
    def animating(self) -> bool:
        return self.transition is not None

    def clamp_scale(self, k: float) -> float:
        return min(self.settings.max_scale, max(self.settings.min_scale, k))

    def set_viewport(self, width: float, height: float) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Viewport must be positive, got {width}x{height}")
        self.width, self.height = float(width), float(height)

    def set_transform(self, transform: ViewTransform) -> None:
        """Jump to a transform (scale clamped), interrupting any transition."""
        self.transition = None
        self.transform = ViewTransform(transform.x, transform.y, self.clamp_scale(transform.k))

    def zoom_by(self, factor: float, around: tuple[float, float] | None = None) -> None:
        """Scale by ``factor`` keeping the screen point ``around`` fixed."""
        if factor <= 0:
            raise ValueError(f"Zoom factor must be positive, got {factor}")
        point = around or (self.width / 2, self.height / 2)
        anchor = self.transform.invert(point)
        k = self.clamp_scale(self.transform.k * factor)
        self.set_transform(
            ViewTransform(x=point[0] - anchor[0] * k, y=point[1] - anchor[1] * k, k=k)
        )

    def pan_by(self, dx: float, dy: float) -> None:
        t = self.transform
        self.set_transform(ViewTransform(t.x + dx, t.y + dy, t.k))

    def animate_to(self, target: ViewTransform, duration_ms: float | None = None) -> None:
        target = ViewTransform(target.x, target.y, self.clamp_scale(target.k))
        duration = self.settings.transition_ms if duration_ms is None else duration_ms
        self.transition = ViewTransition(
            self.transform, target, self.width, self.height, duration
        )

    def fit_transform(self, points: Iterable[tuple[float, float]]) -> ViewTransform | None:
        """Transform that fits all points in the viewport, or None if there are none."""
        points = list(points)
        if not points:
            return None
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        x0, x1, y0, y1 = min(xs), max(xs), min(ys), max(ys)
        dx = (x1 - x0) or 100.0
        dy = (y1 - y0) or 100.0
        pad = defaults.RESET_PADDING
        inner_w = max(1.0, self.width - pad * 2)
        inner_h = max(1.0, self.height - pad * 2)
        k = min(self.settings.max_scale, defaults.RESET_FILL / max(dx / inner_w, dy / inner_h))
        if not k or math.isnan(k):
            k = self.settings.initial_scale
        k = self.clamp_scale(k)
        return ViewTransform.centered_on(
            (x0 + x1) / 2, (y0 + y1) / 2, k, self.width, self.height
        )

    def reset(self, points: Iterable[tuple[float, float]]) -> bool:
        """Animate to fit the given points. Returns False when there is nothing to fit."""
        target = self.fit_transform(points)
        if target is None:
            return False
        logger.debug(f"Reset view to k={target.k:.3f}")
        self.animate_to(target)
        return True

    def focus_on(self, x: float, y: float) -> None:
        """Animate to center (x, y), never ending below the legible floor scale."""
        k = max(self.transform.k, self.settings.focus_min_scale)
        self.animate_to(ViewTransform.centered_on(x, y, k, self.width, self.height))

    def advance(self, dt_ms: float) -> None:
        if self.transition is None:
            return
        self.transform = self.transition.advance(dt_ms)
        if self.transition.done:
            self.transition = None

    def label(self, group: NodeGroup) -> LabelStyle:
        return label_style(group, self.transform.k, self.settings.sub_label_min_scale)
