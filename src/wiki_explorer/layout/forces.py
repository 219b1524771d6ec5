"""Force functions for the layout simulation.

Each force follows the d3-force contract: ``initialize`` is called whenever
the simulated node/link set changes, and ``apply`` adds to the velocity
array in place for the current ``alpha``. Positions and velocities are
``(n, 2)`` float arrays indexed like the simulation's node list.

Forces are vectorized with numpy; pairwise forces are exact O(n²), which is
comfortably fast for the few hundred nodes an exploration reaches.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence

import numpy as np

from ..core.models import Node, NodeGroup

JIGGLE_SPAN = 1e-6


def _jiggle(rng: random.Random, shape: tuple[int, ...]) -> np.ndarray:
    values = np.array([rng.random() for _ in range(int(np.prod(shape)))])
    return (values.reshape(shape) - 0.5) * JIGGLE_SPAN


def _dejitter(diff: np.ndarray, rng: random.Random) -> np.ndarray:
    """Replace exactly-zero offset components with a tiny random nudge."""
    zero = diff == 0
    if zero.any():
        diff = diff.copy()
        diff[zero] = _jiggle(rng, (int(zero.sum()),))
    return diff


class LinkForce:
    """Springs pulling linked nodes toward a rest length.

    Strength defaults to ``1 / min(degree(source), degree(target))`` and the
    correction is split by degree so that hubs move less than leaves.
    """

    def __init__(self, distance: Callable[[Node, Node], float], rng: random.Random) -> None:
        self.distance = distance
        self._rng = rng
        self._pairs = np.zeros((0, 2), dtype=int)
        self._distances = np.zeros(0)
        self._strengths = np.zeros(0)
        self._bias = np.zeros(0)

    def initialize(self, nodes: Sequence[Node], pairs: np.ndarray) -> None:
        self._pairs = pairs
        if len(pairs) == 0:
            self._distances = self._strengths = self._bias = np.zeros(0)
            return
        count = np.bincount(pairs.ravel(), minlength=len(nodes)).astype(float)
        source, target = count[pairs[:, 0]], count[pairs[:, 1]]
        self._strengths = 1.0 / np.minimum(source, target)
        self._bias = source / (source + target)
        self._distances = np.array(
            [self.distance(nodes[s], nodes[t]) for s, t in pairs], dtype=float
        )

    def apply(self, pos: np.ndarray, vel: np.ndarray, alpha: float) -> None:
        if len(self._pairs) == 0:
            return
        s, t = self._pairs[:, 0], self._pairs[:, 1]
        diff = _dejitter((pos[t] + vel[t]) - (pos[s] + vel[s]), self._rng)
        length = np.linalg.norm(diff, axis=1)
        k = (length - self._distances) / length * alpha * self._strengths
        diff *= k[:, None]
        np.add.at(vel, t, -diff * self._bias[:, None])
        np.add.at(vel, s, diff * (1.0 - self._bias)[:, None])


class ManyBodyForce:
    """Inverse-distance repulsion (negative strength) between every node pair."""

    def __init__(
        self,
        strength: Callable[[Node], float],
        rng: random.Random,
        distance_min: float = 1.0,
    ) -> None:
        self.strength = strength
        self._rng = rng
        self._distance_min2 = distance_min * distance_min
        self._strengths = np.zeros(0)

    def initialize(self, nodes: Sequence[Node], pairs: np.ndarray) -> None:
        self._strengths = np.array([self.strength(n) for n in nodes], dtype=float)

    def apply(self, pos: np.ndarray, vel: np.ndarray, alpha: float) -> None:
        n = len(pos)
        if n < 2:
            return
        diff = pos[None, :, :] - pos[:, None, :]  # diff[i, j] = pos[j] - pos[i]
        off_diagonal = ~np.eye(n, dtype=bool)
        coincident = off_diagonal & (np.abs(diff).sum(axis=2) == 0)
        if coincident.any():
            diff[coincident] = _jiggle(self._rng, (int(coincident.sum()), 2))
        dist2 = (diff * diff).sum(axis=2)
        dist2 = np.where(
            dist2 < self._distance_min2, np.sqrt(self._distance_min2 * dist2), dist2
        )
        np.fill_diagonal(dist2, np.inf)
        weight = self._strengths[None, :] * alpha / dist2
        vel += (diff * weight[:, :, None]).sum(axis=1)


class CollideForce:
    """Pushes apart nodes whose collision circles overlap (one pass per tick)."""

    def __init__(
        self, radius: Callable[[Node], float], rng: random.Random, strength: float = 1.0
    ) -> None:
        self.radius = radius
        self.strength = strength
        self._rng = rng
        self._radii = np.zeros(0)

    def initialize(self, nodes: Sequence[Node], pairs: np.ndarray) -> None:
        self._radii = np.array([self.radius(n) for n in nodes], dtype=float)

    def apply(self, pos: np.ndarray, vel: np.ndarray, alpha: float) -> None:
        n = len(pos)
        if n < 2:
            return
        predicted = pos + vel
        diff = predicted[:, None, :] - predicted[None, :, :]  # x_i - x_j
        dist2 = (diff * diff).sum(axis=2)
        reach = self._radii[:, None] + self._radii[None, :]
        overlap = np.triu(dist2 < reach * reach, k=1)
        i, j = np.nonzero(overlap)
        if len(i) == 0:
            return

        d = _dejitter(diff[i, j], self._rng)
        length = np.linalg.norm(d, axis=1)
        r = reach[i, j]
        k = (r - length) / length * self.strength
        d *= k[:, None]
        ri2, rj2 = self._radii[i] ** 2, self._radii[j] ** 2
        share = rj2 / (ri2 + rj2)
        np.add.at(vel, i, d * share[:, None])
        np.add.at(vel, j, -d * (1.0 - share)[:, None])


class PositionForce:
    """Weak uniform pull of every node toward a fixed coordinate on one axis."""

    def __init__(self, axis: int, target: float = 0.0, strength: float = 0.1) -> None:
        self.axis = axis
        self.target = target
        self.strength = strength

    def initialize(self, nodes: Sequence[Node], pairs: np.ndarray) -> None:
        pass

    def apply(self, pos: np.ndarray, vel: np.ndarray, alpha: float) -> None:
        vel[:, self.axis] += (self.target - pos[:, self.axis]) * self.strength * alpha


def group_value(main: float, sub: float) -> Callable[[Node], float]:
    """Accessor returning ``main`` for MAIN nodes and ``sub`` otherwise."""

    def accessor(node: Node) -> float:
        return main if node.group is NodeGroup.MAIN else sub

    return accessor


def link_distance(main_main: float, default: float) -> Callable[[Node, Node], float]:
    """Rest length: long between two MAIN nodes, short otherwise."""

    def accessor(source: Node, target: Node) -> float:
        if source.group is NodeGroup.MAIN and target.group is NodeGroup.MAIN:
            return main_main
        return default

    return accessor
