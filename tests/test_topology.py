"""
Topology Tests
==============

Graph views over dependencies and version lineage.
The topology layer suggests; it never reorders anything itself.
"""

import pytest
import networkx as nx

from manuscript_engine.contracts.base import DependencyCycle
from manuscript_engine.topology import DependencyTopology, common_ancestor, lineage_graph

from tests.fixtures import (
    THREE_ACT_ORDER, chapter, hard, make_version, reveal_table, table, three_act_table
)


class TestDependencyTopology:

    def test_edges_from_hard_references_and_knowledge(self):
        topology = DependencyTopology(three_act_table())
        graph = topology.graph

        assert graph.has_edge("c2", "c3")
        assert graph.has_edge("c1", "c5")
        assert not graph.has_edge("c2", "c4")
        assert nx.is_directed_acyclic_graph(graph)

    def test_shared_fact_adds_no_edge(self):
        chapters = table(
            chapter("A", introduces=["X"]),
            chapter("B", introduces=["X"]),
            chapter("C", requires=["X"]),
        )
        assert DependencyTopology(chapters).graph.number_of_edges() == 0

    def test_suggest_order_keeps_valid_order(self):
        topology = DependencyTopology(three_act_table())
        assert topology.suggest_order(THREE_ACT_ORDER) == THREE_ACT_ORDER

    def test_suggest_order_moves_minimum(self):
        topology = DependencyTopology(reveal_table())
        assert topology.suggest_order(("C", "B", "A")) == ("C", "A", "B")

    def test_cycle_detected(self):
        chapters = table(
            chapter("A", references=[hard("B")]),
            chapter("B", references=[hard("A")]),
            chapter("C"),
        )
        topology = DependencyTopology(chapters)

        assert topology.find_cycles() == [["A", "B"]]
        with pytest.raises(DependencyCycle):
            topology.suggest_order(("A", "B", "C"))


class TestLineage:

    def test_common_ancestor_of_forks(self):
        chapters = reveal_table()
        root = make_version("v1", "ABC", chapters)
        left = make_version("v2", "ACB", chapters, parent="v1")
        right = make_version("v3", "CAB", chapters, parent="v1")
        deeper = make_version("v4", "CBA", chapters, parent="v3")

        graph = lineage_graph([root, left, right, deeper])

        assert common_ancestor(graph, "v2", "v4") == "v1"
        assert common_ancestor(graph, "v3", "v4") == "v3"

    def test_separate_roots_share_nothing(self):
        chapters = reveal_table()
        graph = lineage_graph([
            make_version("v1", "ABC", chapters),
            make_version("v2", "CBA", chapters),
        ])
        assert common_ancestor(graph, "v1", "v2") is None
