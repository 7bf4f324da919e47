#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Disjunction strategies: "a == 0 or b == 0".

A strategy is picked when the solver is built. BigMDisjunction only uses the
solver contract and therefore works with any backend; native strategies
(SOS1, indicator) live next to their backend in gurobi_wrapper.py.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from .algebra import Polynomial, Term, VarType
from .errors import ConfigurationError
from .parameters import DISJUNCTION_BIG_M


class DisjunctionStrategy(ABC):

    @abstractmethod
    def add(self, solver, a: Polynomial, b: Polynomial):
        """Constrain solver so that a == 0 or b == 0."""


class BigMDisjunction(DisjunctionStrategy):
    """
    z = 0 forces a == 0, z = 1 forces b == 0:

        -M z     <= a <= M z
        -M (1-z) <= b <= M (1-z)

    M must bound |a| and |b| over the feasible region.
    """

    def __init__(self, big_m: float = DISJUNCTION_BIG_M):
        if big_m <= 0:
            raise ConfigurationError(f"big-M must be positive, got {big_m}")
        self.big_m = float(big_m)

    def add(self, solver, a: Polynomial, b: Polynomial):
        m = self.big_m
        z = solver.create_auxiliary_variable(VarType.BINARY)

        solver.add_leq_zero_constraint(a.copy().add(Term(-m, z)))
        solver.add_leq_zero_constraint(a.negate().add(Term(-m, z)))

        solver.add_leq_zero_constraint(b.copy().add(Term(m, z)).add(Term(-m)))
        solver.add_leq_zero_constraint(b.negate().add(Term(m, z)).add(Term(-m)))
        return z
