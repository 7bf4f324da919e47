#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Adversarial Gap: worst-case gap between an optimal network allocation and a
heuristic, over adversarially chosen demands.

This package implements:
  - Upper Level (Adversary): choose demands to maximize optimal - heuristic
  - Lower Level (Policies): max-flow allocations, optimal or heuristic (POP, demand pinning)

The bi-level problem is solved either exactly, as a single-level MILP via
  1. KKT conditions with complementarity as disjunctions or big-M products
  2. Strong duality with quantized demands and big-M products
or approximately by random search, hill climbing or simulated annealing. The
single-level MILP also answers "is a gap of at least g reachable?", and a
sequence of such checks brackets the maximum gap.
"""

__version__ = "1.0.0"
__author__ = "Network Optimization Team"

from .algebra import Polynomial, Term, Variable, VarType
from .errors import (
    AdversarialGapError,
    ConfigurationError,
    InfeasibleOrUnboundedError,
    ProtocolError,
    SolveFailure,
    SolverError,
)
from .solver import Solution, SolveStatus, Solver
from .rewrite import InnerRewriteMethod, create_rewrite_generator
from .topology import PathType, Topology
from .encoding import EncodingResult, FlowSolution
from .optimal_encoder import MaxFlowOptimalEncoder
from .pop_encoder import PopEncoder
from .pinning_encoder import DemandPinningEncoder
from .gap import AdversarialGapEngine, GapInterval, GapResult, SearchMethod, SearchResult
from .parameters import get_all_params, get_search_params, get_solver_params

__all__ = [
    "Polynomial",
    "Term",
    "Variable",
    "VarType",
    "AdversarialGapError",
    "ConfigurationError",
    "InfeasibleOrUnboundedError",
    "ProtocolError",
    "SolveFailure",
    "SolverError",
    "Solution",
    "SolveStatus",
    "Solver",
    "InnerRewriteMethod",
    "create_rewrite_generator",
    "PathType",
    "Topology",
    "EncodingResult",
    "FlowSolution",
    "MaxFlowOptimalEncoder",
    "PopEncoder",
    "DemandPinningEncoder",
    "AdversarialGapEngine",
    "GapInterval",
    "GapResult",
    "SearchMethod",
    "SearchResult",
    "get_all_params",
    "get_search_params",
    "get_solver_params",
]
