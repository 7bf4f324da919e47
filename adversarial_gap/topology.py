#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Capacitated directed topology on top of networkx.

Provides node pairs, k-shortest candidate paths, random demand partitions and
capacity splitting for the partitioned encoders.
"""
from __future__ import annotations

from enum import Enum
from itertools import islice
from typing import Dict, Hashable, List, Optional, Tuple

import networkx as nx
import numpy as np

from .errors import ConfigurationError

Node = Hashable
Pair = Tuple[Node, Node]
Path = Tuple[Node, ...]


class PathType(Enum):
    KSP = "ksp"   # k shortest simple paths by hop count


class Topology:
    """
    Directed graph with a ``capacity`` attribute on every edge.

    Args:
        graph: optional existing nx.DiGraph whose edges carry ``capacity``
    """

    def __init__(self, graph: Optional[nx.DiGraph] = None):
        self.graph = nx.DiGraph() if graph is None else graph.copy()
        for u, v, data in self.graph.edges(data=True):
            if "capacity" not in data:
                raise ConfigurationError(f"edge ({u}, {v}) has no capacity")

    def add_node(self, node: Node):
        self.graph.add_node(node)

    def add_edge(self, u: Node, v: Node, capacity: float):
        if capacity < 0:
            raise ConfigurationError(f"capacity of ({u}, {v}) must be non-negative, got {capacity}")
        self.graph.add_edge(u, v, capacity=float(capacity))

    @property
    def nodes(self) -> List[Node]:
        return list(self.graph.nodes)

    @property
    def edges(self) -> List[Tuple[Node, Node]]:
        return list(self.graph.edges)

    def capacity(self, u: Node, v: Node) -> float:
        return self.graph.edges[u, v]["capacity"]

    def get_node_pairs(self) -> List[Pair]:
        """All ordered (origin, destination) pairs with origin != destination."""
        return [(s, t) for s in self.graph.nodes for t in self.graph.nodes if s != t]

    def total_capacity(self) -> float:
        return float(sum(c for _, _, c in self.graph.edges(data="capacity")))

    def min_capacity(self) -> float:
        return float(min(c for _, _, c in self.graph.edges(data="capacity")))

    def max_capacity(self) -> float:
        return float(max(c for _, _, c in self.graph.edges(data="capacity")))

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def shortest_paths(self, source: Node, target: Node, k: int) -> List[Path]:
        try:
            return [tuple(p) for p in islice(nx.shortest_simple_paths(self.graph, source, target), k)]
        except nx.NetworkXNoPath:
            return []

    def compute_paths(
        self,
        max_num_paths: int,
        path_type: PathType = PathType.KSP,
        selected_paths: Optional[Dict[Pair, List[Path]]] = None,
    ) -> Dict[Pair, List[Path]]:
        """
        Candidate paths per node pair, shortest first.

        Args:
            max_num_paths: paths kept per pair
            path_type: selection policy
            selected_paths: precomputed paths, used as-is for the pairs they cover

        Returns:
            {(src, dst): [path, ...]}; pairs with no path map to []
        """
        if max_num_paths < 1:
            raise ConfigurationError(f"max_num_paths must be >= 1, got {max_num_paths}")
        if path_type is not PathType.KSP:
            raise ConfigurationError(f"unsupported path type {path_type!r}")

        paths = {}
        for pair in self.get_node_pairs():
            if selected_paths is not None and pair in selected_paths:
                paths[pair] = [tuple(p) for p in selected_paths[pair]]
            else:
                paths[pair] = self.shortest_paths(pair[0], pair[1], max_num_paths)
        return paths

    @staticmethod
    def edges_of_path(path: Path) -> List[Tuple[Node, Node]]:
        return list(zip(path[:-1], path[1:]))

    # ------------------------------------------------------------------
    # Partitioned variants
    # ------------------------------------------------------------------

    def random_partition(self, num_partitions: int, seed: Optional[int] = None) -> Dict[Pair, int]:
        """Assign every node pair to a partition id in [0, num_partitions)."""
        if num_partitions < 1:
            raise ConfigurationError(f"num_partitions must be >= 1, got {num_partitions}")
        rng = np.random.default_rng(seed)
        pairs = self.get_node_pairs()
        ids = rng.integers(0, num_partitions, size=len(pairs))
        return {pair: int(pid) for pair, pid in zip(pairs, ids)}

    def split_capacity(self, num_partitions: int) -> "Topology":
        """Copy of this topology with every capacity divided by num_partitions."""
        if num_partitions < 1:
            raise ConfigurationError(f"num_partitions must be >= 1, got {num_partitions}")
        split = Topology()
        split.graph.add_nodes_from(self.graph.nodes)
        for u, v, c in self.graph.edges(data="capacity"):
            split.add_edge(u, v, c / num_partitions)
        return split

    def __repr__(self):
        return f"Topology(nodes={self.graph.number_of_nodes()}, edges={self.graph.number_of_edges()})"
