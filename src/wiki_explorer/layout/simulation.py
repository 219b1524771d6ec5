"""Continuous force simulation with d3-force integration semantics.

The simulation cools ``alpha`` toward ``alpha_target`` on every tick and is
considered running while ``alpha >= alpha_min``. Node objects are shared with
the graph store; only this module writes their position and velocity fields.
"""

from __future__ import annotations

import math
import random
from collections.abc import Sequence

import numpy as np
from loguru import logger

from ..config import defaults
from ..config.settings import ForceSettings
from ..core.models import Link, Node
from .forces import (
    CollideForce,
    LinkForce,
    ManyBodyForce,
    PositionForce,
    group_value,
    link_distance,
)

INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))


class ForceSimulation:
    """Velocity-Verlet style force simulation over a node list."""

    def __init__(
        self, settings: ForceSettings | None = None, rng: random.Random | None = None
    ) -> None:
        self.settings = settings or ForceSettings()
        rng = rng or random.Random()
        s = self.settings

        self.alpha = 1.0
        self.alpha_target = 0.0
        self.alpha_min = s.alpha_min
        self.alpha_decay = s.alpha_decay
        self.velocity_decay = s.velocity_decay

        # Applied in this order on every tick
        self.forces = {
            "link": LinkForce(link_distance(s.link_distance_main, s.link_distance), rng),
            "charge": ManyBodyForce(group_value(s.charge_main, s.charge_sub), rng),
            "collide": CollideForce(group_value(s.collide_main, s.collide_sub), rng),
            "x": PositionForce(axis=0, strength=s.center_strength),
            "y": PositionForce(axis=1, strength=s.center_strength),
        }

        self._nodes: list[Node] = []
        self._index: dict[str, int] = {}
        self._pairs = np.zeros((0, 2), dtype=int)
        self.tick_count = 0

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes)

    @property
    def running(self) -> bool:
        return self.alpha >= self.alpha_min

    def set_graph(
        self, nodes: Sequence[Node], links: Sequence[Link], reheat: bool = True
    ) -> None:
        """Replace the simulated node and link set.

        Nodes keep their positions and velocities; nodes without a position
        are placed on the phyllotaxis spiral. Links whose endpoints are not in
        ``nodes`` are ignored.

        Args:
            nodes: Nodes to simulate
            links: Links between them (by id)
            reheat: Restart cooling from alpha 1
        """
        self._nodes = list(nodes)
        self._index = {n.id: i for i, n in enumerate(self._nodes)}

        for i, node in enumerate(self._nodes):
            if node.fx is not None:
                node.x = node.fx
            if node.fy is not None:
                node.y = node.fy
            if node.x is None or node.y is None:
                radius = defaults.INITIAL_RADIUS * math.sqrt(0.5 + i)
                angle = i * INITIAL_ANGLE
                node.x = radius * math.cos(angle)
                node.y = radius * math.sin(angle)
                node.vx = node.vy = 0.0

        pairs = [
            (self._index[link.source_id], self._index[link.target_id])
            for link in links
            if link.source_id in self._index and link.target_id in self._index
        ]
        self._pairs = np.array(pairs, dtype=int).reshape(-1, 2)

        for force in self.forces.values():
            force.initialize(self._nodes, self._pairs)

        if reheat:
            self.alpha = 1.0
        logger.debug(
            f"Simulation graph set: {len(self._nodes)} nodes, {len(self._pairs)} links"
        )

    def tick(self, iterations: int = 1) -> None:
        """Advance the simulation by ``iterations`` steps regardless of alpha."""
        if not self._nodes:
            return

        pos = np.array([(n.x, n.y) for n in self._nodes], dtype=float)
        vel = np.array([(n.vx, n.vy) for n in self._nodes], dtype=float)
        pinned = np.array([n.is_pinned for n in self._nodes], dtype=bool)
        pins = np.array(
            [(n.fx, n.fy) if n.is_pinned else (0.0, 0.0) for n in self._nodes],
            dtype=float,
        )

        for _ in range(iterations):
            self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay
            for force in self.forces.values():
                force.apply(pos, vel, self.alpha)

            vel *= 1.0 - self.velocity_decay
            pos += vel
            pos[pinned] = pins[pinned]
            vel[pinned] = 0.0
            self.tick_count += 1

        for node, (x, y), (vx, vy) in zip(self._nodes, pos, vel, strict=True):
            node.x, node.y = float(x), float(y)
            node.vx, node.vy = float(vx), float(vy)

    def step(self) -> bool:
        """Tick once if still running. Returns True if a tick happened."""
        if not self.running:
            return False
        self.tick()
        return True

    def settle(self, max_ticks: int = 300) -> int:
        """Tick until cooled or ``max_ticks`` is reached; returns ticks taken."""
        taken = 0
        while self.running and taken < max_ticks:
            self.tick()
            taken += 1
        return taken

    def reheat(self, alpha_target: float) -> None:
        """Set the cooling target; a positive target keeps the simulation warm."""
        self.alpha_target = alpha_target
        if alpha_target > 0 and not self.running:
            self.alpha = max(self.alpha, self.alpha_min)

    # ------------------------------------------------------------------
    # Pins
    # ------------------------------------------------------------------

    def node(self, node_id: str) -> Node | None:
        i = self._index.get(node_id)
        return self._nodes[i] if i is not None else None

    def pin(self, node_id: str, x: float | None = None, y: float | None = None) -> bool:
        """Pin a simulated node at (x, y), or at its current position."""
        node = self.node(node_id)
        if node is None:
            return False
        node.fx = node.x if x is None else x
        node.fy = node.y if y is None else y
        return True

    def unpin(self, node_id: str) -> bool:
        node = self.node(node_id)
        if node is None:
            return False
        node.fx = node.fy = None
        return True
