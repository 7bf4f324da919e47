#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
POP heuristic: partition the demands, give each partition an equal share of
every link, and solve each partition's max-flow independently.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from .algebra import Polynomial, Term, Variable
from .encoding import DemandRepr, Encoder, EncodingResult, FlowSolution
from .errors import ConfigurationError
from .optimal_encoder import DemandBound, MaxFlowOptimalEncoder
from .parameters import MAX_NUM_PATHS
from .rewrite import InnerRewriteMethod
from .topology import Pair, Path, Topology


class PopEncoder(Encoder):
    """
    Args:
        solver: Solver shared with the outer problem
        topology: full Topology
        max_num_paths: candidate paths per pair
        num_partitions: number of partitions (>= 1)
        demand_partitions: {pair: partition id}; random when omitted
        seed: seed for the random partition
    """

    def __init__(
        self,
        solver,
        topology: Topology,
        max_num_paths: int = MAX_NUM_PATHS,
        num_partitions: int = 2,
        demand_partitions: Optional[Dict[Pair, int]] = None,
        seed: Optional[int] = None,
    ):
        super().__init__(solver, topology)
        if num_partitions < 1:
            raise ConfigurationError(f"num_partitions must be >= 1, got {num_partitions}")
        self.max_num_paths = max_num_paths
        self.num_partitions = num_partitions

        if demand_partitions is None:
            demand_partitions = topology.random_partition(num_partitions, seed=seed)
        pairs = topology.get_node_pairs()
        missing = [pair for pair in pairs if pair not in demand_partitions]
        if missing:
            raise ConfigurationError(f"demand_partitions missing pairs {missing[:5]}")
        bad = {pid for pid in demand_partitions.values() if not 0 <= pid < num_partitions}
        if bad:
            raise ConfigurationError(f"partition ids {sorted(bad)} outside [0, {num_partitions})")
        self.demand_partitions = dict(demand_partitions)

        self.reduced_topology = topology.split_capacity(num_partitions)
        self.partition_encoders: List[MaxFlowOptimalEncoder] = []
        self.demand_variables: Dict[Pair, DemandRepr] = {}
        self.objective_variable: Optional[Variable] = None

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
        """Same arguments as MaxFlowOptimalEncoder.encoding."""
        self._claim_solver()
        demand_constraints = dict(demand_constraints or {})
        pairs = self.topology.get_node_pairs()

        if verbose:
            print(f"\n[Encoding] PopEncoder ({self.num_partitions} partitions)")

        if pre_demand_variables is None:
            self.demand_variables = {}
            for pair in pairs:
                ub = demand_upper_bound.get(pair) if isinstance(demand_upper_bound, dict) else demand_upper_bound
                self.demand_variables[pair] = self.solver.create_variable(
                    f"demand_{pair[0]}_{pair[1]}", lb=0.0, ub=ub)
        else:
            missing = [pair for pair in pairs if pair not in pre_demand_variables]
            if missing:
                raise ConfigurationError(f"pre-bound demand variables missing for pairs {missing[:5]}")
            self.demand_variables = {pair: pre_demand_variables[pair] for pair in pairs}

        self.partition_encoders = []
        totals = []
        for i in range(self.num_partitions):
            own = [pair for pair in pairs if self.demand_partitions[pair] == i]
            partition_constraints = {pair: 0.0 for pair in pairs if self.demand_partitions[pair] != i}
            for pair in own:
                if pair in demand_constraints:
                    partition_constraints[pair] = demand_constraints[pair]

            if verbose:
                print(f"  + Partition {i}: {len(own)} pairs")

            encoder = MaxFlowOptimalEncoder(self.solver, self.reduced_topology, self.max_num_paths)
            result = encoder.encoding(
                pre_demand_variables={pair: self.demand_variables[pair] for pair in own},
                demand_constraints=partition_constraints,
                rewrite_method=rewrite_method,
                skip_optimality_constraints=skip_optimality_constraints,
                big_m=big_m,
                demand_levels=demand_levels,
                selected_paths=selected_paths,
                verbose=verbose,
            )
            self.partition_encoders.append(encoder)
            totals.append(result.global_objective)

        self.objective_variable = self.solver.create_variable("objective_pop")
        link = Polynomial(Term(-1.0, self.objective_variable))
        for total in totals:
            link.add(Term(1.0, total))
        self.solver.add_eq_zero_constraint(link)

        return EncodingResult(
            global_objective=self.objective_variable,
            maximization_objective=Polynomial(Term(1.0, self.objective_variable)),
            demand_variables=self.demand_variables,
        )

    def get_solution(self, solution) -> FlowSolution:
        demands = {}
        for pair, demand in self.demand_variables.items():
            demands[pair] = self.partition_encoders[self.demand_partitions[pair]]._demand_value(solution, demand)
        flows = {pair: 0.0 for pair in self.demand_variables}
        flow_paths = {}
        for encoder in self.partition_encoders:
            for pair, var in encoder.flow_variables.items():
                flows[pair] = self.solver.get_variable_value(solution, var)
            for path, var in encoder.flow_path_variables.items():
                flow_paths[path] = self.solver.get_variable_value(solution, var)
        return FlowSolution(
            max_objective=self.solver.get_variable_value(solution, self.objective_variable),
            demands=demands,
            flows=flows,
            flow_paths=flow_paths,
        )
