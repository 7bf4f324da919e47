#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Demand pinning heuristic: every demand at or below a threshold is routed
entirely on its shortest path; the rest is optimized as usual.
"""
from __future__ import annotations

from typing import Dict

from .algebra import Polynomial, Term, Variable, VarType, as_polynomial
from .errors import ConfigurationError
from .optimal_encoder import MaxFlowOptimalEncoder
from .parameters import DEFAULT_BIG_M, MAX_NUM_PATHS, PINNING_EPSILON
from .topology import Pair, Topology


class DemandPinningEncoder(MaxFlowOptimalEncoder):
    """
    One binary p_k per routable pair, p_k = 1 iff d_k <= threshold:

        d_k <= T + M (1 - p_k)
        d_k >= (T + eps) (1 - p_k)
        f_k^sp >= d_k - M (1 - p_k)        shortest path carries everything
        f_k^p  <= M (1 - p_k)              other paths carry nothing

    Args:
        solver: Solver shared with the outer problem
        topology: Topology
        max_num_paths: candidate paths per pair
        threshold: pinning threshold T
        big_m: must exceed every demand
        epsilon: gap that separates "at most T" from "above T"
    """

    def __init__(
        self,
        solver,
        topology: Topology,
        max_num_paths: int = MAX_NUM_PATHS,
        threshold: float = 0.0,
        big_m: float = DEFAULT_BIG_M,
        epsilon: float = PINNING_EPSILON,
    ):
        super().__init__(solver, topology, max_num_paths)
        if threshold < 0:
            raise ConfigurationError(f"threshold must be non-negative, got {threshold}")
        if big_m <= 0:
            raise ConfigurationError(f"big-M must be positive, got {big_m}")
        self.threshold = float(threshold)
        self.pinning_big_m = float(big_m)
        self.epsilon = float(epsilon)
        self.pinned_variables: Dict[Pair, Variable] = {}

    def _create_extra_variables(self):
        self.pinned_variables = {
            pair: self.solver.create_variable(f"pinned_{pair[0]}_{pair[1]}", VarType.BINARY)
            for pair in self.flow_variables
        }

    def _add_extra_constraints(self, gen):
        t = self.threshold
        m = self.pinning_big_m
        low = t + self.epsilon
        for pair, p in self.pinned_variables.items():
            demand = as_polynomial(self.demand_variables[pair])

            gen.add_leq_zero_constraint(demand.copy().add(Term(-t - m)).add(Term(m, p)))
            gen.add_leq_zero_constraint(demand.negate().add(Term(low)).add(Term(-low, p)))

            shortest, *others = self.paths[pair]
            gen.add_leq_zero_constraint(
                demand.copy().add(Term(-1.0, self.flow_path_variables[shortest])).add(Term(-m)).add(Term(m, p)))
            for path in others:
                gen.add_leq_zero_constraint(
                    Polynomial(Term(1.0, self.flow_path_variables[path]), Term(-m), Term(m, p)))

    def get_pinned(self, solution) -> Dict[Pair, bool]:
        """Which pairs were pinned to their shortest path."""
        return {pair: self.solver.get_variable_value(solution, p) > 0.5
                for pair, p in self.pinned_variables.items()}
