#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Gurobi backend for the solver contract.

GurobiSolver keeps one gp.Env for its whole lifetime and rebuilds only the
gp.Model on reset(), so license checkout happens once per session.
"""
from __future__ import annotations

from typing import Dict, Optional

import gurobipy as gp
from gurobipy import GRB

from .algebra import Polynomial, Term, Variable, VarType
from .disjunction import BigMDisjunction, DisjunctionStrategy
from .errors import ConfigurationError, SolveFailure
from .parameters import DISJUNCTION_BIG_M, DISJUNCTION_METHOD, OBJECTIVE_STOP_MARGIN, get_solver_params
from .solver import EQ, LEQ, Solution, SolveStatus, Solver


_VTYPES = {
    VarType.CONTINUOUS: GRB.CONTINUOUS,
    VarType.INTEGER: GRB.INTEGER,
    VarType.BINARY: GRB.BINARY,
}

_SENSES = {
    LEQ: GRB.LESS_EQUAL,
    EQ: GRB.EQUAL,
}

_STATUS = {
    GRB.OPTIMAL: SolveStatus.OPTIMAL,
    GRB.SUBOPTIMAL: SolveStatus.SUBOPTIMAL,
    GRB.TIME_LIMIT: SolveStatus.TIME_LIMIT,
    GRB.INFEASIBLE: SolveStatus.INFEASIBLE,
    GRB.UNBOUNDED: SolveStatus.UNBOUNDED,
    GRB.INF_OR_UNBD: SolveStatus.INF_OR_UNBD,
    GRB.INTERRUPTED: SolveStatus.INTERRUPTED,
    GRB.NUMERIC: SolveStatus.NUMERIC,
    GRB.USER_OBJ_LIMIT: SolveStatus.USER_OBJ_LIMIT,
}

_OBJECTIVE_STOPS = ("BestObjStop", "BestBdStop")


def _bound(value, default):
    return default if value is None else float(value)


# ============================================================================
# Disjunction strategies that need Gurobi
# ============================================================================

class SOS1Disjunction(DisjunctionStrategy):
    """u = a, v = b, SOS1{u, v}: at most one of u, v is non-zero."""

    def add(self, solver, a: Polynomial, b: Polynomial):
        u = solver.create_auxiliary_variable()
        v = solver.create_auxiliary_variable()
        solver.add_eq_zero_constraint(_minus(a, u))
        solver.add_eq_zero_constraint(_minus(b, v))
        solver.model.addSOS(GRB.SOS_TYPE1, [solver.gurobi_var(u), solver.gurobi_var(v)], [1, 2])
        return u, v


class IndicatorDisjunction(DisjunctionStrategy):
    """z = 0 -> a == 0, z = 1 -> b == 0."""

    def add(self, solver, a: Polynomial, b: Polynomial):
        z = solver.create_auxiliary_variable(VarType.BINARY)
        zvar = solver.gurobi_var(z)
        for binval, poly in ((False, a), (True, b)):
            coeffs, constant = poly.collect()
            solver.model.addGenConstrIndicator(
                zvar, binval, solver.to_lin_expr(coeffs), GRB.EQUAL, -constant)
        return z


def _minus(poly: Polynomial, var: Variable) -> Polynomial:
    return poly.copy().add(Term(-1.0, var))


def make_disjunction(method) -> DisjunctionStrategy:
    """Resolve "sos" | "indicator" | "bigm" (or pass a strategy through)."""
    if isinstance(method, DisjunctionStrategy):
        return method
    if method == "sos":
        return SOS1Disjunction()
    if method == "indicator":
        return IndicatorDisjunction()
    if method == "bigm":
        return BigMDisjunction(DISJUNCTION_BIG_M)
    raise ConfigurationError(f"unknown disjunction method {method!r}")


# ============================================================================
# Solver
# ============================================================================

class GurobiSolver(Solver):
    """
    Solver contract on top of gurobipy.

    Args:
        name: model name
        time_limit: seconds per solve
        mip_gap: relative MIP gap
        threads: Gurobi Threads parameter (0 = automatic)
        disjunction: "sos", "indicator", "bigm" or a DisjunctionStrategy
        verbose: show Gurobi's log
        params: extra Gurobi parameters applied to every model
    """

    def __init__(
        self,
        name: str = "adversarial_gap",
        time_limit: Optional[float] = None,
        mip_gap: Optional[float] = None,
        threads: Optional[int] = None,
        disjunction=DISJUNCTION_METHOD,
        verbose: bool = False,
        params: Optional[Dict] = None,
    ):
        strategy = make_disjunction(disjunction)
        self.name = name
        self._params = get_solver_params()
        if time_limit is not None:
            self._params["TimeLimit"] = float(time_limit)
        if mip_gap is not None:
            self._params["MIPGap"] = float(mip_gap)
        if threads is not None:
            self._params["Threads"] = int(threads)
        self._params["OutputFlag"] = 1 if verbose else 0
        if params:
            self._params.update(params)

        self.env = gp.Env(empty=True)
        self.env.setParam("OutputFlag", self._params["OutputFlag"])
        self.env.start()
        try:
            self.model = self._new_model()
        except gp.GurobiError:
            self.env.dispose()
            raise
        self._closed = False
        super().__init__(disjunction=strategy)

    def _new_model(self):
        model = gp.Model(self.name, env=self.env)
        for key, value in self._params.items():
            model.setParam(key, value)
        return model

    def _clear_registries(self):
        super()._clear_registries()
        self._gurobi_vars: Dict[Variable, gp.Var] = {}
        self._gurobi_constrs: Dict[str, gp.Constr] = {}

    # ------------------------------------------------------------------
    # Helpers used by the native disjunction strategies
    # ------------------------------------------------------------------

    def gurobi_var(self, var: Variable) -> gp.Var:
        return self._gurobi_vars[var]

    def to_lin_expr(self, coeffs: Dict[Variable, float], constant: float = 0.0) -> gp.LinExpr:
        """Convert collected coefficients to a gurobipy LinExpr."""
        expr = gp.LinExpr(constant)
        if coeffs:
            expr.addTerms(list(coeffs.values()), [self._gurobi_vars[v] for v in coeffs])
        return expr

    # ------------------------------------------------------------------
    # Native hooks
    # ------------------------------------------------------------------

    def _native_add_variable(self, var: Variable):
        self._gurobi_vars[var] = self.model.addVar(
            lb=_bound(var.lb, -GRB.INFINITY),
            ub=_bound(var.ub, GRB.INFINITY),
            vtype=_VTYPES[var.vtype],
            name=var.name,
        )

    def _native_add_constraint(self, name, coeffs, sense, rhs):
        self._gurobi_constrs[name] = self.model.addLConstr(
            self.to_lin_expr(coeffs), _SENSES[sense], rhs, name=name)

    def _native_remove_constraint(self, name):
        self.model.update()
        self.model.remove(self._gurobi_constrs.pop(name))

    def _native_set_rhs(self, name, rhs):
        self.model.update()
        self._gurobi_constrs[name].RHS = rhs

    def _native_set_bounds(self, var):
        gvar = self._gurobi_vars[var]
        gvar.LB = _bound(var.lb, -GRB.INFINITY)
        gvar.UB = _bound(var.ub, GRB.INFINITY)

    def _native_set_objective(self, coeffs, constant):
        self.model.setObjective(self.to_lin_expr(coeffs, constant), GRB.MAXIMIZE)

    def _native_maximize(self) -> Solution:
        try:
            self.model.optimize()
        except gp.GurobiError as e:
            raise SolveFailure(f"Gurobi error {e.errno}: {e}", status=SolveStatus.OTHER) from e
        status = _STATUS.get(self.model.Status, SolveStatus.OTHER)

        values = {}
        objective = None
        if self.model.SolCount > 0:
            variables = list(self._gurobi_vars)
            if variables:
                xs = self.model.getAttr("X", [self._gurobi_vars[v] for v in variables])
                values = dict(zip(variables, xs))
            objective = self.model.ObjVal

        mip_gap = None
        if self.model.IsMIP and self.model.SolCount > 0:
            mip_gap = self.model.MIPGap

        return Solution(
            status=status,
            objective_value=objective,
            values=values,
            runtime=self.model.Runtime,
            mip_gap=mip_gap,
        )

    def _native_set_time_limit(self, seconds):
        self._params["TimeLimit"] = seconds
        self.model.setParam("TimeLimit", seconds)

    def _native_set_objective_stop(self, target):
        if target is None:
            for key in _OBJECTIVE_STOPS:
                default = self.model.getParamInfo(key)[-1]
                self.model.setParam(key, self._params.get(key, default))
            return
        self.model.setParam("BestObjStop", target)
        self.model.setParam("BestBdStop", target - OBJECTIVE_STOP_MARGIN)

    def _native_reset(self):
        self.model.dispose()
        self.model = self._new_model()

    def _native_close(self):
        if self._closed:
            return
        self.model.dispose()
        self.env.dispose()
        self._closed = True

    # ------------------------------------------------------------------

    def export(self, filepath):
        """Write the current model (LP/MPS by extension)."""
        self.model.update()
        self.model.write(str(filepath))
