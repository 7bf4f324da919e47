#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Solver contract.

Every backend derives from Solver and implements the _native_* hooks. The base
class owns the naming registries and the status handling so that every backend
names things the same way and fails the same way:

  variables      {name}_{index}
  auxiliaries    aux_{n}
  inequalities   ineq_index_{n}     (polynomial <= 0)
  equalities     eq_index_{n}       (polynomial == 0)

reset() drops every registry in one step and bumps a generation counter so
solutions from an earlier model can no longer be read.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from .algebra import Polynomial, Term, Variable, VarType, as_polynomial
from .errors import (
    ConfigurationError,
    InfeasibleOrUnboundedError,
    ProtocolError,
    SolveFailure,
)

LEQ = "<="
EQ = "="


class SolveStatus(Enum):
    OPTIMAL = "optimal"
    SUBOPTIMAL = "suboptimal"
    TIME_LIMIT = "time_limit"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    INF_OR_UNBD = "infeasible_or_unbounded"
    INTERRUPTED = "interrupted"
    NUMERIC = "numeric"
    USER_OBJ_LIMIT = "user_objective_limit"
    OTHER = "other"


_NO_OPTIMUM = (SolveStatus.INFEASIBLE, SolveStatus.UNBOUNDED, SolveStatus.INF_OR_UNBD)


@dataclass
class Solution:
    """Snapshot of a solve: status, objective and every variable value."""
    status: SolveStatus
    objective_value: Optional[float] = None
    values: Dict[Variable, float] = field(default_factory=dict)
    runtime: float = 0.0
    mip_gap: Optional[float] = None
    generation: int = 0

    def is_optimal(self) -> bool:
        return self.status is SolveStatus.OPTIMAL

    def is_feasible(self) -> bool:
        """True when an incumbent is available, optimal or not."""
        return bool(self.values) or self.status is SolveStatus.OPTIMAL


class Solver(ABC):
    """
    Abstract backend.

    Args:
        disjunction: DisjunctionStrategy used by add_disjunction_constraint.
            Defaults to the generic big-M encoding.
    """

    def __init__(self, disjunction=None):
        if disjunction is None:
            from .disjunction import BigMDisjunction
            disjunction = BigMDisjunction()
        self._disjunction = disjunction
        self._generation = 0
        self._clear_registries()

    def _clear_registries(self):
        self._variables: Dict[str, Variable] = {}
        self._auxiliary_vars: Dict[str, Variable] = {}
        self._constraint_ineq_count = 0
        self._constraint_eq_count = 0
        self._constraints: Dict[str, Tuple[str, Polynomial]] = {}
        self._objective: Optional[Polynomial] = None

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _native_add_variable(self, var: Variable):
        ...

    @abstractmethod
    def _native_add_constraint(self, name: str, coeffs: Dict[Variable, float], sense: str, rhs: float):
        """Add sum(coeffs[v] * v) <sense> rhs."""

    @abstractmethod
    def _native_remove_constraint(self, name: str):
        ...

    @abstractmethod
    def _native_set_rhs(self, name: str, rhs: float):
        ...

    @abstractmethod
    def _native_set_bounds(self, var: Variable):
        ...

    @abstractmethod
    def _native_set_objective(self, coeffs: Dict[Variable, float], constant: float):
        ...

    @abstractmethod
    def _native_maximize(self) -> Solution:
        ...

    @abstractmethod
    def _native_set_time_limit(self, seconds: float):
        ...

    @abstractmethod
    def _native_reset(self):
        ...

    def _native_set_objective_stop(self, target: Optional[float]):
        """Stop as soon as an incumbent reaches target; None clears it. Default: solve to optimality."""

    def _native_close(self):
        pass

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def num_variables(self) -> int:
        return len(self._variables) + len(self._auxiliary_vars)

    @property
    def num_constraints(self) -> int:
        return len(self._constraints)

    def create_variable(self, name: str = "", vtype: VarType = VarType.CONTINUOUS,
                        lb: Optional[float] = None, ub: Optional[float] = None) -> Variable:
        """
        Create a decision variable. Bounds of None mean unbounded on that side.

        Binary variables always get bounds [0, 1].
        """
        if vtype is VarType.BINARY:
            lb, ub = 0.0, 1.0
        full_name = f"{name}_{len(self._variables)}"
        var = Variable(full_name, vtype, lb, ub, index=len(self._variables))
        self._variables[full_name] = var
        self._native_add_variable(var)
        return var

    def create_auxiliary_variable(self, vtype: VarType = VarType.CONTINUOUS,
                                  lb: Optional[float] = None, ub: Optional[float] = None) -> Variable:
        if vtype is VarType.BINARY:
            lb, ub = 0.0, 1.0
        name = f"aux_{len(self._auxiliary_vars)}"
        var = Variable(name, vtype, lb, ub, index=len(self._auxiliary_vars))
        self._auxiliary_vars[name] = var
        self._native_add_variable(var)
        return var

    def set_variable_bounds(self, var: Variable, lb: Optional[float] = None, ub: Optional[float] = None):
        var.lb = lb
        var.ub = ub
        self._native_set_bounds(var)

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def add_leq_zero_constraint(self, poly: Polynomial) -> str:
        """Add poly <= 0 and return its name."""
        name = f"ineq_index_{self._constraint_ineq_count}"
        self._constraint_ineq_count += 1
        self._register_constraint(name, LEQ, poly)
        return name

    def add_eq_zero_constraint(self, poly: Polynomial) -> str:
        """Add poly == 0 and return its name."""
        name = f"eq_index_{self._constraint_eq_count}"
        self._constraint_eq_count += 1
        self._register_constraint(name, EQ, poly)
        return name

    def _register_constraint(self, name: str, sense: str, poly: Polynomial):
        poly = as_polynomial(poly)
        coeffs, constant = poly.collect()
        self._constraints[name] = (sense, poly)
        self._native_add_constraint(name, coeffs, sense, -constant)

    def add_disjunction_constraint(self, a, b):
        """Assert that at least one of a, b equals zero."""
        self._disjunction.add(self, as_polynomial(a), as_polynomial(b))

    def remove_constraint(self, name: str):
        if name not in self._constraints:
            raise ProtocolError(f"unknown constraint {name!r}")
        self._native_remove_constraint(name)
        del self._constraints[name]

    def set_constraint_bound(self, name: str, rhs: float):
        """
        Change the right-hand side of a named constraint.

        The constraint becomes (linear part) <sense> rhs, i.e. its constant
        term is replaced by -rhs.
        """
        if name not in self._constraints:
            raise ProtocolError(f"unknown constraint {name!r}")
        sense, poly = self._constraints[name]
        updated = Polynomial(*(t for t in poly.terms if not t.is_constant))
        updated.add(Term(-float(rhs)))
        self._constraints[name] = (sense, updated)
        self._native_set_rhs(name, float(rhs))

    def get_constraint(self, name: str) -> Tuple[str, Polynomial]:
        sense, poly = self._constraints[name]
        return sense, poly.copy()

    # ------------------------------------------------------------------
    # Objective / solve
    # ------------------------------------------------------------------

    def set_objective(self, objective):
        objective = as_polynomial(objective)
        coeffs, constant = objective.collect()
        self._objective = objective
        self._native_set_objective(coeffs, constant)

    def maximize(self, objective=None, accept_time_limit: bool = False) -> Solution:
        """
        Maximize the current (or given) objective.

        Args:
            objective: optional Polynomial; replaces the current objective
            accept_time_limit: return a time-limited incumbent instead of raising

        Returns:
            Solution

        Raises:
            ProtocolError: no objective was set
            InfeasibleOrUnboundedError: no finite optimum exists
            SolveFailure: any other non-optimal termination
        """
        if objective is not None:
            self.set_objective(objective)
        if self._objective is None:
            raise ProtocolError("maximize() called without an objective")

        solution = self._native_maximize()
        solution.generation = self._generation

        if solution.status in _NO_OPTIMUM:
            raise InfeasibleOrUnboundedError(
                f"model is {solution.status.value}", status=solution.status)
        if solution.status is not SolveStatus.OPTIMAL:
            degraded_ok = (solution.status is SolveStatus.TIME_LIMIT
                           and accept_time_limit and solution.values)
            if not degraded_ok:
                raise SolveFailure(
                    f"solver stopped with status {solution.status.value}",
                    status=solution.status, solution=solution)
        return solution

    def check_feasibility(self, target: float, objective=None, accept_time_limit: bool = False,
                          tolerance: float = 1e-6) -> Solution:
        """
        Find any solution whose objective is at least ``target``.

        The backend may stop at the first such incumbent instead of proving
        optimality. Any objective stop is cleared again before returning.

        Args:
            target: objective value to reach
            objective: optional Polynomial; replaces the current objective
            accept_time_limit: accept a time-limited incumbent that reaches target
            tolerance: absolute slack when comparing the objective to target

        Returns:
            Solution

        Raises:
            ProtocolError: no objective was set
            InfeasibleOrUnboundedError: no solution reaches target
            SolveFailure: the solver stopped before deciding
        """
        if objective is not None:
            self.set_objective(objective)
        if self._objective is None:
            raise ProtocolError("check_feasibility() called without an objective")

        self._native_set_objective_stop(float(target))
        try:
            solution = self._native_maximize()
        finally:
            self._native_set_objective_stop(None)
        solution.generation = self._generation

        if solution.status in _NO_OPTIMUM:
            raise InfeasibleOrUnboundedError(
                f"model is {solution.status.value}", status=solution.status)
        reached = (bool(solution.values) and solution.objective_value is not None
                   and solution.objective_value >= target - tolerance)
        if solution.status in (SolveStatus.OPTIMAL, SolveStatus.USER_OBJ_LIMIT):
            if not reached:
                raise InfeasibleOrUnboundedError(
                    f"best objective {solution.objective_value} is below target {target}",
                    status=solution.status)
            return solution
        if solution.status is SolveStatus.TIME_LIMIT and accept_time_limit and reached:
            return solution
        raise SolveFailure(
            f"solver stopped with status {solution.status.value}",
            status=solution.status, solution=solution)

    def get_variable_value(self, solution: Solution, var: Variable) -> float:
        if solution is None or not solution.values:
            raise ProtocolError("no solution values on the current model")
        if solution.generation != self._generation:
            raise ProtocolError("solution belongs to a model that has been reset")
        if var not in solution.values:
            raise ProtocolError(f"variable {var.name} is not part of this solution")
        return solution.values[var]

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def set_time_limit(self, seconds: float):
        if seconds is None or seconds <= 0:
            raise ConfigurationError(f"time limit must be positive, got {seconds}")
        self._native_set_time_limit(float(seconds))

    def reset(self):
        """Drop all variables, constraints and the objective. The session stays open."""
        self._native_reset()
        self._clear_registries()
        self._generation += 1

    def close(self):
        self._native_close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
