#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
KKT rewrite of the inner linear program.

For  max c.x  s.t.  g_i(x) <= 0,  h_j(x) = 0  with x free:

    stationarity      -c_v + sum_i lambda_i dg_i/dx_v + sum_j nu_j dh_j/dx_v = 0
    dual feasibility  lambda_i >= 0
    complementarity   lambda_i * g_i = 0
"""
from __future__ import annotations

from typing import Iterable, Optional

from .algebra import Polynomial, Variable, VarType
from .errors import ConfigurationError
from .linearization import linearize_mult_non_neg_contin_and_binary
from .rewrite import InnerRewriteGenerator
from .solver import LEQ


class KKTRewriteGenerator(InnerRewriteGenerator):
    """
    Args:
        solver: shared Solver
        variables: inner variables
        big_m: None -> complementarity through solver.add_disjunction_constraint;
            otherwise a binary per constraint and big-M products. Must bound
            both the duals and the constraint slacks.
    """

    def __init__(self, solver, variables: Iterable[Variable], big_m: Optional[float] = None):
        super().__init__(solver, variables)
        if big_m is not None and big_m <= 0:
            raise ConfigurationError(f"big-M must be positive, got {big_m}")
        self.big_m = big_m

    def _add_optimality_constraints(self, objective: Polynomial, verbose: bool):
        c, _ = self._split(objective)
        duals = self._create_duals(lam_bounds=(0.0, None), nu_bounds=(None, None))

        if verbose:
            print(f"  + KKT: {len(self.variables)} primal vars, {len(duals)} duals")

        self._add_dual_feasibility(c, duals)

        num_complementarity = 0
        for (sense, inner, outer), dual in zip(self._recorded, duals):
            if sense != LEQ:
                continue
            g = self._constraint_polynomial(inner, outer)
            if self.big_m is None:
                self.solver.add_disjunction_constraint(dual, g)
            else:
                # b = 0 -> lambda = 0,  b = 1 -> g = 0
                b = self.solver.create_auxiliary_variable(VarType.BINARY)
                linearize_mult_non_neg_contin_and_binary(
                    self.solver, dual, b, self.big_m, output=Polynomial(), complement=True)
                linearize_mult_non_neg_contin_and_binary(
                    self.solver, g.negate(), b, self.big_m, output=Polynomial())
            num_complementarity += 1

        if verbose:
            how = "disjunction" if self.big_m is None else f"big-M={self.big_m:g}"
            print(f"  + KKT: {num_complementarity} complementarity constraints ({how})")
