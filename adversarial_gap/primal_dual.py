#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Primal-dual (strong duality) rewrite of the inner linear program.

Primal:  max c.x   s.t.  A x <= -r(o),  E x = -s(o),  x free
Dual:    min -r(o).lambda - s(o).nu   s.t.  A'lambda + E'nu = c,  lambda >= 0

Optimality of x is asserted as  c.x == dual objective. The dual objective
multiplies duals with outer variables o, so every such o must be either
binary or restricted to a finite set of levels; the products are then
linearized with big-M. Duals are boxed to [0, M] and [-M, M].
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .algebra import Polynomial, Term, Variable, VarType
from .errors import ConfigurationError
from .linearization import (
    linearize_mult_gen_contin_and_binary,
    linearize_mult_non_neg_contin_and_binary,
)
from .parameters import DEFAULT_BIG_M
from .rewrite import InnerRewriteGenerator
from .solver import LEQ


class PrimalDualRewriteGenerator(InnerRewriteGenerator):
    """
    Args:
        solver: shared Solver
        variables: inner variables
        big_m: bound on the duals
        outer_levels: {outer variable: admissible values} for every non-binary
            outer variable that appears in an inner constraint
    """

    def __init__(
        self,
        solver,
        variables: Iterable[Variable],
        big_m: Optional[float] = None,
        outer_levels: Optional[Dict[Variable, List[float]]] = None,
    ):
        super().__init__(solver, variables)
        big_m = DEFAULT_BIG_M if big_m is None else big_m
        if big_m <= 0:
            raise ConfigurationError(f"big-M must be positive, got {big_m}")
        self.big_m = float(big_m)
        self.outer_levels = dict(outer_levels or {})
        self._selectors: Dict[Variable, List[tuple]] = {}
        self._products: Dict[tuple, Polynomial] = {}

    def _level_selectors(self, outer: Variable):
        """
        o == sum_l level_l * y_l,  sum_l y_l <= 1.

        A zero level needs no selector: all y_l = 0 already means o = 0.
        """
        if outer in self._selectors:
            return self._selectors[outer]
        levels = sorted({float(l) for l in self.outer_levels[outer] if float(l) != 0.0})
        selectors = []
        link = Polynomial(Term(1.0, outer))
        pick_one = Polynomial(Term(-1.0))
        for level in levels:
            y = self.solver.create_variable("level_sel", VarType.BINARY)
            selectors.append((level, y))
            link.add(Term(-level, y))
            pick_one.add(Term(1.0, y))
        self.solver.add_eq_zero_constraint(link)
        if selectors:
            self.solver.add_leq_zero_constraint(pick_one)
        self._selectors[outer] = selectors
        return selectors

    def _product(self, dual: Variable, outer: Variable, non_negative: bool) -> Polynomial:
        """dual * outer as a linear polynomial."""
        key = (dual, outer)
        if key in self._products:
            return self._products[key]

        linearize = (linearize_mult_non_neg_contin_and_binary if non_negative
                     else linearize_mult_gen_contin_and_binary)
        if outer.vtype is VarType.BINARY:
            product = Polynomial(Term(1.0, linearize(self.solver, dual, outer, self.big_m)))
        elif outer in self.outer_levels:
            product = Polynomial()
            for level, y in self._level_selectors(outer):
                product.add(Term(level, linearize(self.solver, dual, y, self.big_m)))
        else:
            raise ConfigurationError(
                f"outer variable {outer.name} multiplies a dual but is neither binary "
                f"nor quantized; pass its levels in outer_levels")
        self._products[key] = product
        return product

    def _add_optimality_constraints(self, objective: Polynomial, verbose: bool):
        c, _ = self._split(objective)
        m = self.big_m
        duals = self._create_duals(lam_bounds=(0.0, m), nu_bounds=(-m, m))

        if verbose:
            print(f"  + Primal-dual: {len(self.variables)} primal vars, {len(duals)} duals")

        self._add_dual_feasibility(c, duals)

        # c.x - dual objective == 0, dual objective = sum_k dual_k * (-outer_k)
        strong_duality = Polynomial(*(Term(a, v) for v, a in c.items()))
        for (sense, _, outer), dual in zip(self._recorded, duals):
            for term in outer.terms:
                if term.is_constant:
                    strong_duality.add(Term(float(term.coefficient), dual))
                else:
                    product = self._product(dual, term.variable, non_negative=(sense == LEQ))
                    strong_duality.add(product.scale(float(term.coefficient)))
        self.solver.add_eq_zero_constraint(strong_duality)

        if verbose:
            print(f"  + Primal-dual: {len(self._products)} dual x outer products, "
                  f"{len(self._selectors)} quantized outer variables")
