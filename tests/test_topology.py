"""Tests for adversarial_gap.topology."""

import networkx as nx
from absl.testing import absltest

from adversarial_gap.errors import ConfigurationError
from adversarial_gap.topology import Topology

from tests.fixtures import diamond_topology, triangle_topology, two_node_topology


class TopologyTest(absltest.TestCase):

    def test_node_pairs(self):
        topology = diamond_topology()
        pairs = topology.get_node_pairs()
        self.assertLen(pairs, 12)
        self.assertNotIn(("a", "a"), pairs)

    def test_capacity_stats(self):
        topology = triangle_topology()
        self.assertEqual(topology.capacity("a", "c"), 5.0)
        self.assertEqual(topology.total_capacity(), 25.0)
        self.assertEqual(topology.min_capacity(), 5.0)
        self.assertEqual(topology.max_capacity(), 10.0)

    def test_k_shortest_paths(self):
        paths = triangle_topology().compute_paths(max_num_paths=2)
        self.assertEqual(paths[("a", "c")], [("a", "c"), ("a", "b", "c")])
        self.assertEqual(paths[("a", "b")], [("a", "b")])
        self.assertEqual(paths[("c", "a")], [])

    def test_max_num_paths_limits(self):
        paths = triangle_topology().compute_paths(max_num_paths=1)
        self.assertEqual(paths[("a", "c")], [("a", "c")])
        with self.assertRaises(ConfigurationError):
            triangle_topology().compute_paths(max_num_paths=0)

    def test_selected_paths_override(self):
        selected = {("a", "c"): [["a", "b", "c"]]}
        paths = triangle_topology().compute_paths(max_num_paths=2, selected_paths=selected)
        self.assertEqual(paths[("a", "c")], [("a", "b", "c")])
        self.assertEqual(paths[("a", "b")], [("a", "b")])

    def test_edges_of_path(self):
        self.assertEqual(Topology.edges_of_path(("a", "b", "c")), [("a", "b"), ("b", "c")])

    def test_random_partition(self):
        topology = diamond_topology()
        first = topology.random_partition(3, seed=7)
        second = topology.random_partition(3, seed=7)
        self.assertEqual(first, second)
        self.assertEqual(set(first), set(topology.get_node_pairs()))
        self.assertTrue(all(0 <= pid < 3 for pid in first.values()))
        self.assertEqual(set(topology.random_partition(1).values()), {0})
        with self.assertRaises(ConfigurationError):
            topology.random_partition(0)

    def test_split_capacity(self):
        topology = two_node_topology()
        split = topology.split_capacity(4)
        self.assertEqual(split.capacity("a", "b"), 2.5)
        self.assertEqual(topology.capacity("a", "b"), 10.0)
        self.assertEqual(split.nodes, topology.nodes)
        with self.assertRaises(ConfigurationError):
            topology.split_capacity(0)

    def test_from_graph(self):
        graph = nx.DiGraph()
        graph.add_edge(1, 2, capacity=3)
        self.assertEqual(Topology(graph).capacity(1, 2), 3)
        graph.add_edge(2, 3)
        with self.assertRaises(ConfigurationError):
            Topology(graph)

    def test_negative_capacity(self):
        with self.assertRaises(ConfigurationError):
            Topology().add_edge("a", "b", capacity=-1)


if __name__ == "__main__":
    absltest.main()
