#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Big-M linearization primitives.

Each function adds constraints to a Solver so that an output variable equals a
non-linear function of its operands, and returns that output. Operands may be
Variables, Polynomials or numbers; a caller may pass its own ``output``
(variable or polynomial) instead of letting the function create one.

Precondition (not checked): big_m strictly dominates the magnitude of the
continuous operand over its feasible domain. An undersized M cuts off valid
points silently; it does not make the model infeasible.
"""
from __future__ import annotations

from typing import Union

from .algebra import Polynomial, Variable, VarType, as_polynomial
from .errors import ConfigurationError

Operand = Union[Variable, Polynomial, int, float]


def _check_big_m(big_m):
    if big_m is None or big_m <= 0:
        raise ConfigurationError(f"big-M must be positive, got {big_m}")
    return float(big_m)


def _affine(*parts) -> Polynomial:
    """Sum of coefficient * operand pairs, e.g. _affine((1, x), (-m, y), (m, 1))."""
    result = Polynomial()
    for coeff, operand in parts:
        result.add(as_polynomial(operand).scale(coeff))
    return result


def _new_output(solver, output, name, vtype=VarType.CONTINUOUS, lb=None, ub=None):
    if output is not None:
        return output
    return solver.create_variable(name, vtype, lb=lb, ub=ub)


# ============================================================================
# Continuous x binary
# ============================================================================

def linearize_mult_non_neg_contin_and_binary(
    solver,
    cont: Operand,
    binary: Operand,
    big_m: float,
    output=None,
    complement: bool = False,
):
    """
    output = cont * binary (or cont * (1 - binary) when complement is set).

    Requires 0 <= cont <= big_m.

        output >= 0
        output <= M y            (M (1 - y))
        output <= x
        output >= x - M (1 - y)  (x - M y)
    """
    m = _check_big_m(big_m)
    out = _new_output(solver, output, "mult_nonneg")

    solver.add_leq_zero_constraint(_affine((-1, out)))
    if complement:
        solver.add_leq_zero_constraint(_affine((1, out), (m, binary), (-m, 1)))
        solver.add_leq_zero_constraint(_affine((1, out), (-1, cont)))
        solver.add_leq_zero_constraint(_affine((1, cont), (-m, binary), (-1, out)))
    else:
        solver.add_leq_zero_constraint(_affine((1, out), (-m, binary)))
        solver.add_leq_zero_constraint(_affine((1, out), (-1, cont)))
        solver.add_leq_zero_constraint(_affine((1, cont), (m, binary), (-m, 1), (-1, out)))
    return out


def linearize_mult_gen_contin_and_binary(
    solver,
    cont: Operand,
    binary: Operand,
    big_m: float,
    output=None,
    complement: bool = False,
):
    """
    output = cont * binary (or cont * (1 - binary)) for cont of either sign.

    Requires |cont| <= big_m.

        -M y <= output <= M y
        x - M (1 - y) <= output <= x + M (1 - y)

    With complement, y and (1 - y) swap roles.
    """
    m = _check_big_m(big_m)
    out = _new_output(solver, output, "mult_gen")

    # on = "the product is active"; off = 1 - on
    if complement:
        on = _affine((1, 1), (-1, binary))
        off = as_polynomial(binary)
    else:
        on = as_polynomial(binary)
        off = _affine((1, 1), (-1, binary))

    solver.add_leq_zero_constraint(_affine((1, out), (-m, on)))
    solver.add_leq_zero_constraint(_affine((-1, out), (-m, on)))
    solver.add_leq_zero_constraint(_affine((1, out), (-1, cont), (-m, off)))
    solver.add_leq_zero_constraint(_affine((-1, out), (1, cont), (-m, off)))
    return out


# ============================================================================
# Binary x binary
# ============================================================================

def linearize_mult_two_binary(
    solver,
    x: Operand,
    y: Operand,
    output=None,
    complement: bool = False,
):
    """
    output = x * y (or x * (1 - y)).

        output <= y         (1 - y)
        output <= x
        output >= x + y - 1 (x - y)
    """
    out = _new_output(solver, output, "mult_bin", lb=0.0, ub=1.0)
    if complement:
        solver.add_leq_zero_constraint(_affine((1, out), (1, y), (-1, 1)))
        solver.add_leq_zero_constraint(_affine((1, out), (-1, x)))
        solver.add_leq_zero_constraint(_affine((1, x), (-1, y), (-1, out)))
    else:
        solver.add_leq_zero_constraint(_affine((1, out), (-1, y)))
        solver.add_leq_zero_constraint(_affine((1, out), (-1, x)))
        solver.add_leq_zero_constraint(_affine((1, x), (1, y), (-1, 1), (-1, out)))
    return out


# ============================================================================
# Max / Min / Or
# ============================================================================

def max_two(solver, x: Operand, y: Operand, big_m: float, output=None):
    """
    output = max(x, y). big_m must exceed |x - y|.

        output >= x,  output >= y
        output <= x + M b
        output <= y + M (1 - b)
    """
    m = _check_big_m(big_m)
    out = _new_output(solver, output, "max")
    b = solver.create_auxiliary_variable(VarType.BINARY)

    solver.add_leq_zero_constraint(_affine((1, x), (-1, out)))
    solver.add_leq_zero_constraint(_affine((1, y), (-1, out)))
    solver.add_leq_zero_constraint(_affine((1, out), (-1, x), (-m, b)))
    solver.add_leq_zero_constraint(_affine((1, out), (-1, y), (m, b), (-m, 1)))
    return out


def min_two(solver, x: Operand, y: Operand, big_m: float, output=None):
    """
    output = min(x, y). big_m must exceed |x - y|.

        output <= x,  output <= y
        output >= x - M b
        output >= y - M (1 - b)
    """
    m = _check_big_m(big_m)
    out = _new_output(solver, output, "min")
    b = solver.create_auxiliary_variable(VarType.BINARY)

    solver.add_leq_zero_constraint(_affine((1, out), (-1, x)))
    solver.add_leq_zero_constraint(_affine((1, out), (-1, y)))
    solver.add_leq_zero_constraint(_affine((1, x), (-m, b), (-1, out)))
    solver.add_leq_zero_constraint(_affine((1, y), (m, b), (-m, 1), (-1, out)))
    return out


def or_two_binary(solver, a: Operand, b: Operand, output=None):
    """output = a OR b for {0,1}-valued a, b."""
    out = _new_output(solver, output, "or", lb=0.0, ub=1.0)
    solver.add_leq_zero_constraint(_affine((1, a), (-1, out)))
    solver.add_leq_zero_constraint(_affine((1, b), (-1, out)))
    solver.add_leq_zero_constraint(_affine((1, out), (-1, a), (-1, b)))
    return out
