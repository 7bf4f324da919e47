#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Optimal multi-commodity max-flow encoder.

Inner problem (per valid pair k, candidate path p):

    max  total
    s.t. sum_k f_k - total       = 0
         f_k - d_k              <= 0
         -f_k^p                 <= 0
         f_k - sum_p f_k^p       = 0
         sum_{p ∋ e} f_k^p - c_e <= 0      for every edge e

Demands d_k are outer variables shared with other encoders. Flows are inner
variables; the rewrite generator makes them optimal for the given demands.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Union

from .algebra import Polynomial, Term, Variable, as_polynomial
from .encoding import DemandRepr, Encoder, EncodingResult, FlowSolution
from .errors import ConfigurationError
from .parameters import MAX_NUM_PATHS
from .rewrite import InnerRewriteMethod, create_rewrite_generator
from .topology import Pair, Path, Topology

DemandBound = Union[None, float, Dict[Pair, float]]


class MaxFlowOptimalEncoder(Encoder):
    """
    Args:
        solver: Solver shared with the outer problem
        topology: Topology
        max_num_paths: candidate paths per pair
    """

    def __init__(self, solver, topology: Topology, max_num_paths: int = MAX_NUM_PATHS):
        super().__init__(solver, topology)
        self.max_num_paths = max_num_paths
        self.paths: Dict[Pair, List[Path]] = {}
        self.demand_variables: Dict[Pair, DemandRepr] = {}
        self.demand_constraints: Dict[Pair, float] = {}
        self.flow_variables: Dict[Pair, Variable] = {}
        self.flow_path_variables: Dict[Path, Variable] = {}
        self.total_demand_met: Optional[Variable] = None
        self.generator = None

    def is_demand_valid(self, pair: Pair) -> bool:
        """A pair pinned to a non-positive demand carries no traffic."""
        return not (pair in self.demand_constraints and self.demand_constraints[pair] <= 0)

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def _create_demand_variables(self, pre_demand_variables, demand_upper_bound: DemandBound):
        pairs = self.topology.get_node_pairs()
        if pre_demand_variables is not None:
            missing = [pair for pair in pairs
                       if pair not in pre_demand_variables and self.is_demand_valid(pair)]
            if missing:
                raise ConfigurationError(f"pre-bound demand variables missing for pairs {missing[:5]}")
            # pairs pinned to zero may be left out; they carry a constant zero demand
            self.demand_variables = {pair: pre_demand_variables.get(pair, Polynomial()) for pair in pairs}
            return

        self.demand_variables = {}
        for pair in pairs:
            if isinstance(demand_upper_bound, dict):
                ub = demand_upper_bound.get(pair)
            else:
                ub = demand_upper_bound
            self.demand_variables[pair] = self.solver.create_variable(
                f"demand_{pair[0]}_{pair[1]}", lb=0.0, ub=ub)

    def _create_flow_variables(self):
        self.total_demand_met = self.solver.create_variable("total_demand_met")
        self.flow_variables = {}
        self.flow_path_variables = {}
        for pair in self.demand_variables:
            if not self.is_demand_valid(pair) or not self.paths[pair]:
                continue
            self.flow_variables[pair] = self.solver.create_variable(f"flow_{pair[0]}_{pair[1]}")
            for path in self.paths[pair]:
                self.flow_path_variables[path] = self.solver.create_variable(
                    "flowpath_" + "_".join(str(n) for n in path))

    def _inner_variables(self) -> List[Variable]:
        return [self.total_demand_met, *self.flow_variables.values(), *self.flow_path_variables.values()]

    def _create_extra_variables(self):
        """Outer variables needed by heuristic variants."""

    def _outer_levels(self, demand_levels) -> Dict[Variable, List[float]]:
        levels = {}
        for pair, demand in self.demand_variables.items():
            if not isinstance(demand, Variable):
                continue
            if pair in self.demand_constraints:
                levels[demand] = [max(self.demand_constraints[pair], 0.0)]
            elif isinstance(demand_levels, dict):
                if pair in demand_levels:
                    levels[demand] = list(demand_levels[pair])
            elif demand_levels is not None:
                levels[demand] = list(demand_levels)
        return levels

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encoding(
        self,
        pre_demand_variables: Optional[Dict[Pair, DemandRepr]] = None,
        demand_constraints: Optional[Dict[Pair, float]] = None,
        rewrite_method: InnerRewriteMethod = InnerRewriteMethod.KKT,
        skip_optimality_constraints: bool = False,
        big_m: Optional[float] = None,
        demand_levels=None,
        demand_upper_bound: DemandBound = None,
        selected_paths: Optional[Dict[Pair, List[Path]]] = None,
        verbose: bool = False,
    ) -> EncodingResult:
        """
        Build the max-flow region on the solver.

        Args:
            pre_demand_variables: demand variables shared with another encoder
            demand_constraints: {pair: value} demands pinned to constants
            rewrite_method: InnerRewriteMethod.KKT or PRIMAL_DUAL
            skip_optimality_constraints: feasibility only (metaheuristic searches)
            big_m: passed to the rewrite generator
            demand_levels: primal-dual only; admissible demand values, a list for
                every pair or a {pair: list} mapping
            demand_upper_bound: scalar or {pair: bound} for created demands
            selected_paths: precomputed candidate paths
            verbose: print progress

        Returns:
            EncodingResult
        """
        self._claim_solver()
        self.demand_constraints = dict(demand_constraints or {})
        unknown = set(self.demand_constraints) - set(self.topology.get_node_pairs())
        if unknown:
            raise ConfigurationError(f"demand constraints for unknown pairs {sorted(unknown, key=str)[:5]}")

        if verbose:
            print(f"\n[Encoding] {type(self).__name__} ({rewrite_method.value})")

        self.paths = self.topology.compute_paths(self.max_num_paths, selected_paths=selected_paths)
        self._create_demand_variables(pre_demand_variables, demand_upper_bound)
        self._create_flow_variables()
        self._create_extra_variables()

        if verbose:
            print(f"  + Pairs: {len(self.demand_variables)} ({len(self.flow_variables)} routable)")
            print(f"  + Path variables: {len(self.flow_path_variables)}")

        self.generator = create_rewrite_generator(
            rewrite_method,
            self.solver,
            self._inner_variables(),
            big_m=big_m,
            outer_levels=self._outer_levels(demand_levels),
        )
        gen = self.generator

        # pinned demands
        for pair, value in self.demand_constraints.items():
            demand = as_polynomial(self.demand_variables[pair])
            if not demand.variables():
                continue
            gen.add_eq_zero_constraint(demand.add(Term(-max(float(value), 0.0))))

        # total = sum of flows
        total = Polynomial(Term(-1.0, self.total_demand_met))
        for flow in self.flow_variables.values():
            total.add(Term(1.0, flow))
        gen.add_eq_zero_constraint(total)

        for pair, demand in self.demand_variables.items():
            if pair not in self.flow_variables:
                if self.is_demand_valid(pair) and pair not in self.demand_constraints:
                    # no candidate path
                    gen.add_eq_zero_constraint(as_polynomial(demand))
                continue
            flow = self.flow_variables[pair]
            gen.add_leq_zero_constraint(as_polynomial(demand).negate().add(Term(1.0, flow)))

            split = Polynomial(Term(1.0, flow))
            for path in self.paths[pair]:
                path_flow = self.flow_path_variables[path]
                gen.add_leq_zero_constraint(Polynomial(Term(-1.0, path_flow)))
                split.add(Term(-1.0, path_flow))
            gen.add_eq_zero_constraint(split)

        self._add_capacity_constraints(gen)
        self._add_extra_constraints(gen)

        objective = Polynomial(Term(1.0, self.total_demand_met))
        gen.add_maximization_constraints(objective, skip_optimality_constraints, verbose)

        if verbose:
            print(f"  + Model: {self.solver.num_variables} vars, {self.solver.num_constraints} constraints")

        return EncodingResult(
            global_objective=self.total_demand_met,
            maximization_objective=objective,
            demand_variables=self.demand_variables,
        )

    def _add_capacity_constraints(self, gen):
        usage: Dict[tuple, Polynomial] = {}
        for path in self.flow_path_variables:
            for edge in self.topology.edges_of_path(path):
                usage.setdefault(edge, Polynomial()).add(Term(1.0, self.flow_path_variables[path]))
        for (u, v), poly in usage.items():
            gen.add_leq_zero_constraint(poly.add(Term(-self.topology.capacity(u, v))))

    def _add_extra_constraints(self, gen):
        """Inner constraints added by heuristic variants."""

    # ------------------------------------------------------------------
    # Solution
    # ------------------------------------------------------------------

    def _demand_value(self, solution, demand: DemandRepr) -> float:
        if isinstance(demand, Variable):
            return self.solver.get_variable_value(solution, demand)
        return as_polynomial(demand).evaluate(
            {v: self.solver.get_variable_value(solution, v) for v in demand.variables()})

    def get_solution(self, solution) -> FlowSolution:
        demands = {pair: self._demand_value(solution, d) for pair, d in self.demand_variables.items()}
        flows = {}
        for pair in self.demand_variables:
            flow = self.flow_variables.get(pair)
            flows[pair] = 0.0 if flow is None else self.solver.get_variable_value(solution, flow)
        flow_paths = {path: self.solver.get_variable_value(solution, var)
                      for path, var in self.flow_path_variables.items()}
        return FlowSolution(
            max_objective=self.solver.get_variable_value(solution, self.total_demand_met),
            demands=demands,
            flows=flows,
            flow_paths=flow_paths,
        )
