#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Inner-problem rewrite.

An encoder describes its inner linear program

    max  c . x
    s.t. A x + r_i(outer) <= 0
         E x + s_j(outer)  = 0

through an InnerRewriteGenerator. Constraints go straight to the solver as
primal feasibility; add_maximization_constraints() then appends the
conditions that make x optimal (not just feasible) for whatever values the
outer variables take. Two strategies:

  KKT          stationarity + complementary slackness (kkt.py)
  PRIMAL_DUAL  dual feasibility + strong duality      (primal_dual.py)

Inner variables must be free; their bounds are written as constraints so that
they get a dual variable like everything else.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .algebra import Polynomial, Term, Variable, as_polynomial
from .errors import ConfigurationError, ProtocolError
from .solver import EQ, LEQ


class InnerRewriteMethod(Enum):
    KKT = "kkt"
    PRIMAL_DUAL = "primal_dual"


class InnerRewriteGenerator(ABC):
    """
    Records the inner problem and finalizes it exactly once.

    Args:
        solver: Solver shared with the outer problem
        variables: inner (primal) variables
    """

    def __init__(self, solver, variables: Iterable[Variable]):
        self.solver = solver
        self.variables: List[Variable] = list(variables)
        self._inner = set(self.variables)
        # (sense, inner coefficients, outer part incl. constant)
        self._recorded: List[Tuple[str, Dict[Variable, float], Polynomial]] = []
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def num_inner_constraints(self) -> int:
        return len(self._recorded)

    def _check_open(self):
        if self._finalized:
            raise ProtocolError("rewrite generator already finalized")

    def _split(self, poly: Polynomial) -> Tuple[Dict[Variable, float], Polynomial]:
        """Separate inner-variable coefficients from the outer/constant remainder."""
        inner: Dict[Variable, float] = {}
        outer = Polynomial()
        for term in poly.terms:
            if not term.is_constant and term.variable in self._inner:
                inner[term.variable] = inner.get(term.variable, 0.0) + float(term.coefficient)
            else:
                outer.add(term)
        return inner, outer

    def _record(self, sense: str, poly: Polynomial):
        inner, outer = self._split(poly)
        inner = {v: a for v, a in inner.items() if a != 0.0}
        if inner:
            self._recorded.append((sense, inner, outer))

    def add_leq_zero_constraint(self, poly) -> str:
        """poly <= 0 as part of the inner problem."""
        self._check_open()
        poly = as_polynomial(poly)
        name = self.solver.add_leq_zero_constraint(poly)
        self._record(LEQ, poly)
        return name

    def add_eq_zero_constraint(self, poly) -> str:
        """poly == 0 as part of the inner problem."""
        self._check_open()
        poly = as_polynomial(poly)
        name = self.solver.add_eq_zero_constraint(poly)
        self._record(EQ, poly)
        return name

    def add_maximization_constraints(self, objective, skip_optimality_constraints: bool = False,
                                     verbose: bool = False):
        """
        Finalize: force the recorded region to be optimal for ``objective``.

        With skip_optimality_constraints the region stays feasibility-only,
        which is what the metaheuristic searches want since they maximize the
        encoder's own objective directly.
        """
        self._check_open()
        self._finalized = True
        if skip_optimality_constraints:
            if verbose:
                print("  + optimality constraints skipped")
            return
        for v in self.variables:
            if v.lb is not None or v.ub is not None:
                raise ConfigurationError(
                    f"inner variable {v.name} has bounds; express them as constraints")
        self._add_optimality_constraints(as_polynomial(objective), verbose)

    @abstractmethod
    def _add_optimality_constraints(self, objective: Polynomial, verbose: bool):
        ...

    def _create_duals(self, lam_bounds, nu_bounds):
        """One dual per recorded constraint: lambda >= 0 for <=, nu free for ==."""
        duals = []
        for sense, _, _ in self._recorded:
            if sense == LEQ:
                duals.append(self.solver.create_variable("lambda", lb=lam_bounds[0], ub=lam_bounds[1]))
            else:
                duals.append(self.solver.create_variable("nu", lb=nu_bounds[0], ub=nu_bounds[1]))
        return duals

    def _add_dual_feasibility(self, objective_coeffs: Dict[Variable, float], duals):
        """sum_i dual_i * a_iv - c_v == 0 for every inner variable v."""
        rows = {v: Polynomial(Term(-objective_coeffs.get(v, 0.0))) for v in self.variables}
        for (_, inner, _), dual in zip(self._recorded, duals):
            for v, a in inner.items():
                rows[v].add(Term(a, dual))
        for v in self.variables:
            self.solver.add_eq_zero_constraint(rows[v])

    @staticmethod
    def _constraint_polynomial(inner: Dict[Variable, float], outer: Polynomial) -> Polynomial:
        poly = Polynomial(*(Term(a, v) for v, a in inner.items()))
        return poly.add(outer)


def create_rewrite_generator(
    method: InnerRewriteMethod,
    solver,
    variables: Iterable[Variable],
    big_m: Optional[float] = None,
    outer_levels: Optional[Dict[Variable, List[float]]] = None,
) -> InnerRewriteGenerator:
    """
    Build a rewrite generator for ``method``.

    Args:
        method: InnerRewriteMethod
        solver: shared Solver
        variables: inner variables
        big_m: KKT: None uses the solver's disjunction constraint, a number uses
            big-M complementarity. Primal-dual: bound on the duals.
        outer_levels: primal-dual only, admissible values of each non-binary
            outer variable that multiplies a dual
    """
    from .kkt import KKTRewriteGenerator
    from .primal_dual import PrimalDualRewriteGenerator

    if method is InnerRewriteMethod.KKT:
        return KKTRewriteGenerator(solver, variables, big_m=big_m)
    if method is InnerRewriteMethod.PRIMAL_DUAL:
        return PrimalDualRewriteGenerator(solver, variables, big_m=big_m, outer_levels=outer_levels)
    raise ConfigurationError(f"unknown rewrite method {method!r}")
