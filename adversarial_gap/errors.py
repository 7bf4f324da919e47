#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Exception hierarchy.

  ConfigurationError          bad inputs, raised before anything is solved
  InfeasibleOrUnboundedError  solver proved there is no finite optimum
  SolveFailure                any other non-optimal termination (time limit, numerics)
  ProtocolError               API used in the wrong order
"""


class AdversarialGapError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(AdversarialGapError, ValueError):
    """Invalid parameter or missing input."""


class SolverError(AdversarialGapError):
    """Base class for errors reported by a solver backend."""


class InfeasibleOrUnboundedError(SolverError):
    """The model is infeasible or unbounded."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class SolveFailure(SolverError):
    """
    Non-optimal terminal status.

    The partial solution is attached so callers can still read an incumbent
    from a time-limited run.
    """

    def __init__(self, message, status=None, solution=None):
        super().__init__(message)
        self.status = status
        self.solution = solution


class ProtocolError(AdversarialGapError, RuntimeError):
    """Programmer error: operation not allowed in the current state."""
