"""Tests for the force simulation."""

import math
import random

import pytest

from wiki_explorer.config.settings import ForceSettings
from wiki_explorer.core.models import Link, Node, NodeGroup
from wiki_explorer.layout.simulation import ForceSimulation


def make_sim(seed: int = 3) -> ForceSimulation:
    return ForceSimulation(ForceSettings(), rng=random.Random(seed))


def distance(a: Node, b: Node) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


class TestSeeding:
    """Initial positions for nodes entering the simulation."""

    def test_unpositioned_nodes_placed_on_spiral(self):
        sim = make_sim()
        nodes = [Node(id="a"), Node(id="b"), Node(id="c")]

        sim.set_graph(nodes, [])

        assert nodes[0].x == pytest.approx(10 * math.sqrt(0.5))
        assert nodes[0].y == pytest.approx(0.0)
        assert len({(n.x, n.y) for n in nodes}) == 3

    def test_positioned_nodes_keep_position_and_velocity(self):
        sim = make_sim()
        node = Node(id="a", x=40.0, y=-5.0, vx=1.0, vy=2.0)

        sim.set_graph([node], [])

        assert (node.x, node.y, node.vx, node.vy) == (40.0, -5.0, 1.0, 2.0)

    def test_links_to_unknown_nodes_ignored(self):
        sim = make_sim()
        sim.set_graph([Node(id="a")], [Link("a", "ghost")])

        sim.tick()

        assert sim.nodes[0].x is not None


class TestCooling:
    """Alpha schedule."""

    def test_tick_decays_alpha(self):
        sim = make_sim()
        sim.set_graph([Node(id="a")], [])

        sim.tick()

        assert sim.alpha == pytest.approx(1 - sim.alpha_decay)
        assert sim.tick_count == 1

    def test_settle_runs_about_three_hundred_ticks(self):
        sim = make_sim()
        sim.set_graph([Node(id="a"), Node(id="b")], [Link("a", "b")])

        taken = sim.settle(1000)

        assert 299 <= taken <= 301
        assert not sim.running
        assert not sim.step()

    def test_topology_change_reheats(self):
        sim = make_sim()
        nodes = [Node(id="a")]
        sim.set_graph(nodes, [])
        sim.settle()

        sim.set_graph(nodes + [Node(id="b")], [])

        assert sim.alpha == 1.0
        assert sim.running

    def test_reheat_keeps_stopped_simulation_warm(self):
        sim = make_sim()
        sim.set_graph([Node(id="a")], [])
        sim.settle()

        sim.reheat(0.3)
        for _ in range(500):
            sim.tick()

        assert sim.running
        assert sim.alpha == pytest.approx(0.3, rel=1e-3)

    def test_empty_graph_tick_is_noop(self):
        sim = make_sim()
        sim.set_graph([], [])

        sim.tick()

        assert sim.tick_count == 0


class TestForces:
    """Net effect of the force set."""

    def test_unlinked_nodes_repel(self):
        sim = make_sim()
        a, b = Node(id="a", x=-1.0, y=0.0), Node(id="b", x=1.0, y=0.0)
        sim.set_graph([a, b], [])

        sim.tick(10)

        assert distance(a, b) > 2.0

    def test_coincident_nodes_separate(self):
        sim = make_sim()
        a, b = Node(id="a", x=0.0, y=0.0), Node(id="b", x=0.0, y=0.0)
        sim.set_graph([a, b], [])

        sim.tick(20)

        assert distance(a, b) > 1.0

    def test_link_pulls_distant_nodes_together(self):
        sim = make_sim()
        a, b = Node(id="a", x=-500.0, y=0.0), Node(id="b", x=500.0, y=0.0)
        sim.set_graph([a, b], [Link("a", "b")])

        sim.tick(5)

        assert distance(a, b) < 1000.0

    def test_main_pairs_rest_further_apart_than_sub_pairs(self):
        mains = [Node(id="a", group=NodeGroup.MAIN), Node(id="b", group=NodeGroup.MAIN)]
        subs = [Node(id="c"), Node(id="d")]

        for pair, link in ((mains, Link("a", "b")), (subs, Link("c", "d"))):
            sim = make_sim()
            sim.set_graph(pair, [link])
            sim.settle()

        assert distance(*mains) > distance(*subs)
        assert distance(*mains) > 250.0

    def test_centering_pulls_toward_origin(self):
        sim = make_sim()
        node = Node(id="a", x=300.0, y=-300.0)
        sim.set_graph([node], [])

        sim.tick(50)

        assert abs(node.x) < 300.0
        assert abs(node.y) < 300.0

    def test_pinned_node_snaps_to_pin(self):
        sim = make_sim()
        a, b = Node(id="a", x=0.0, y=0.0), Node(id="b", x=5.0, y=0.0)
        sim.set_graph([a, b], [Link("a", "b")])

        assert sim.pin("a", 100.0, 50.0)
        sim.tick(10)

        assert (a.x, a.y) == (100.0, 50.0)
        assert (a.vx, a.vy) == (0.0, 0.0)
        assert b.x != 5.0

        assert sim.unpin("a")
        assert not a.is_pinned

    def test_pin_unknown_node(self):
        sim = make_sim()
        sim.set_graph([Node(id="a")], [])

        assert not sim.pin("ghost")
        assert not sim.unpin("ghost")

    def test_same_seed_same_layout(self):
        layouts = []
        for _ in range(2):
            sim = make_sim(seed=11)
            nodes = [Node(id=str(i), x=0.0, y=0.0) for i in range(4)]
            sim.set_graph(nodes, [Link("0", "1"), Link("0", "2")])
            sim.tick(30)
            layouts.append([(n.x, n.y) for n in nodes])

        assert layouts[0] == layouts[1]
