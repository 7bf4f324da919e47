#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Shared types for allocation encoders.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from .algebra import Polynomial, Variable
from .errors import ProtocolError
from .topology import Pair, Path, Topology

DemandRepr = Union[Variable, Polynomial]


@dataclass
class EncodingResult:
    """What an encoder hands to the gap engine."""
    global_objective: Variable
    maximization_objective: Polynomial
    demand_variables: Dict[Pair, DemandRepr]


@dataclass
class FlowSolution:
    """Concrete allocation read back from a solve."""
    max_objective: float
    demands: Dict[Pair, float] = field(default_factory=dict)
    flows: Dict[Pair, float] = field(default_factory=dict)
    flow_paths: Dict[Path, float] = field(default_factory=dict)

    def to_dict(self):
        """JSON-friendly form; tuple keys become "a->b" strings."""
        def key(k):
            return "->".join(str(n) for n in k)
        return {
            "max_objective": float(self.max_objective),
            "demands": {key(k): float(v) for k, v in self.demands.items()},
            "flows": {key(k): float(v) for k, v in self.flows.items()},
            "flow_paths": {key(k): float(v) for k, v in self.flow_paths.items()},
        }


class Encoder(ABC):
    """
    Two-phase contract: encoding() builds the region on ``solver``,
    get_solution() reads the allocation back.

    encoding() may run once per solver model; reset the solver before encoding
    again.
    """

    def __init__(self, solver, topology: Topology):
        self.solver = solver
        self.topology = topology
        self._encoded_generation: Optional[int] = None

    def _claim_solver(self):
        if self._encoded_generation == self.solver.generation:
            raise ProtocolError(
                f"{type(self).__name__} already encoded on this solver model; call solver.reset() first")
        self._encoded_generation = self.solver.generation

    @abstractmethod
    def encoding(self, *args, **kwargs) -> EncodingResult:
        ...

    @abstractmethod
    def get_solution(self, solution) -> FlowSolution:
        ...
