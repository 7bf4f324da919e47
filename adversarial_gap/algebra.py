#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Symbolic algebra shared by every encoder.

A Polynomial is an ordered sum of Terms. Terms are (coefficient, variable,
exponent) triples where the exponent is 0 (constant) or 1 (linear). Products
of two decision variables never appear here; they are linearized first
(see linearization.py).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple, Union

Number = Union[int, float]


class VarType(Enum):
    """Kind of a decision variable."""
    CONTINUOUS = "C"
    INTEGER = "I"
    BINARY = "B"


class Variable:
    """
    Opaque handle for a scalar decision variable.

    Handles are created by a Solver and hashed by identity, so two handles with
    the same name are still different variables.
    """

    __slots__ = ("name", "vtype", "lb", "ub", "index")

    def __init__(self, name: str, vtype: VarType = VarType.CONTINUOUS,
                 lb: Optional[float] = None, ub: Optional[float] = None,
                 index: int = -1):
        self.name = name
        self.vtype = vtype
        self.lb = lb
        self.ub = ub
        self.index = index

    def __repr__(self):
        return f"Variable({self.name!r}, {self.vtype.name})"


@dataclass(frozen=True)
class Term:
    """coefficient * variable ** exponent. A term without a variable is a constant."""
    coefficient: float
    variable: Optional[Variable] = None
    exponent: int = 1

    def __post_init__(self):
        if self.variable is None and self.exponent != 0:
            object.__setattr__(self, "exponent", 0)

    @property
    def is_constant(self) -> bool:
        return self.variable is None or self.exponent == 0

    def negate(self) -> "Term":
        return Term(-self.coefficient, self.variable, self.exponent)

    def value(self, assignment: Dict[Variable, float]) -> float:
        if self.is_constant:
            return float(self.coefficient)
        return float(self.coefficient) * float(assignment[self.variable]) ** self.exponent

    def __repr__(self):
        if self.is_constant:
            return f"{self.coefficient:g}"
        if self.exponent == 1:
            return f"{self.coefficient:g}*{self.variable.name}"
        return f"{self.coefficient:g}*{self.variable.name}^{self.exponent}"


class Polynomial:
    """
    Ordered sum of Terms.

    add() mutates the receiver; negate() and copy() return new polynomials and
    leave the receiver untouched. Terms are immutable, so copying the term list
    is enough to avoid aliasing between polynomials.
    """

    def __init__(self, *terms: Term):
        self.terms = list(terms)

    def add(self, other: Union[Term, "Polynomial"]) -> "Polynomial":
        """Append a term or every term of another polynomial, in place."""
        if isinstance(other, Polynomial):
            # snapshot first so p.add(p) doubles p instead of looping
            self.terms.extend(list(other.terms))
        elif isinstance(other, Term):
            self.terms.append(other)
        else:
            raise TypeError(f"cannot add {type(other).__name__} to Polynomial")
        return self

    def negate(self) -> "Polynomial":
        return Polynomial(*(t.negate() for t in self.terms))

    def copy(self) -> "Polynomial":
        return Polynomial(*self.terms)

    def scale(self, factor: Number) -> "Polynomial":
        return Polynomial(*(Term(factor * t.coefficient, t.variable, t.exponent) for t in self.terms))

    def variables(self):
        """Distinct variables in first-appearance order."""
        seen = {}
        for t in self.terms:
            if not t.is_constant and t.variable not in seen:
                seen[t.variable] = None
        return list(seen)

    def constant(self) -> float:
        return sum(float(t.coefficient) for t in self.terms if t.is_constant)

    def coefficient(self, variable: Variable) -> float:
        return sum(float(t.coefficient) for t in self.terms
                   if not t.is_constant and t.variable is variable)

    def evaluate(self, assignment: Dict[Variable, float]) -> float:
        return sum(t.value(assignment) for t in self.terms)

    def is_affine(self) -> bool:
        return all(t.exponent in (0, 1) for t in self.terms)

    def collect(self) -> Tuple[Dict[Variable, float], float]:
        """
        Merge like terms.

        Returns:
            (coefficients by variable, constant)

        Raises:
            ValueError: a term has an exponent other than 0 or 1
        """
        coeffs: Dict[Variable, float] = {}
        const = 0.0
        for t in self.terms:
            if t.exponent not in (0, 1):
                raise ValueError(f"non-linear term {t!r} cannot be passed to a linear solver")
            if t.is_constant:
                const += float(t.coefficient)
            else:
                coeffs[t.variable] = coeffs.get(t.variable, 0.0) + float(t.coefficient)
        return coeffs, const

    def __len__(self):
        return len(self.terms)

    def __iter__(self) -> Iterator[Term]:
        return iter(self.terms)

    def __repr__(self):
        if not self.terms:
            return "Polynomial(0)"
        return "Polynomial(" + " + ".join(repr(t) for t in self.terms) + ")"


def as_polynomial(x) -> Polynomial:
    """Lift a Variable, Term, number or Polynomial to a fresh Polynomial."""
    if isinstance(x, Polynomial):
        return x.copy()
    if isinstance(x, Variable):
        return Polynomial(Term(1.0, x))
    if isinstance(x, Term):
        return Polynomial(x)
    if isinstance(x, (int, float)):
        return Polynomial(Term(float(x)))
    raise TypeError(f"cannot convert {type(x).__name__} to Polynomial")
