"""Shared helpers for the test suite."""

import tempfile
import unittest

from adversarial_gap.solver import EQ, Solution, SolveStatus, Solver
from adversarial_gap.topology import Topology


def _gurobi_available():
    try:
        import gurobipy as gp
        env = gp.Env(empty=True)
        env.setParam("OutputFlag", 0)
        env.start()
        env.dispose()
        return True
    except Exception:  # missing package or licence
        return False


GUROBI_AVAILABLE = _gurobi_available()

requires_gurobi = unittest.skipUnless(GUROBI_AVAILABLE, "gurobipy with a usable licence is required")


def make_tempdir(test):
    """Temporary directory removed when ``test`` finishes."""
    tmp = tempfile.TemporaryDirectory()
    test.addCleanup(tmp.cleanup)
    return tmp.name


def make_solver(**kwargs):
    from adversarial_gap.gurobi_wrapper import GurobiSolver
    kwargs.setdefault("time_limit", 60)
    return GurobiSolver(**kwargs)


class RecordingSolver(Solver):
    """
    Backend that only records. maximize() returns a canned status/values so
    the contract logic can be tested without a real solver.
    """

    def __init__(self, disjunction=None):
        self.next_status = SolveStatus.OPTIMAL
        self.next_values = {}
        self.next_objective = 0.0
        self.time_limit = None
        self.native_calls = []
        super().__init__(disjunction=disjunction)

    def _native_add_variable(self, var):
        self.native_calls.append(("var", var.name))

    def _native_add_constraint(self, name, coeffs, sense, rhs):
        self.native_calls.append(("constr", name, sense, rhs))

    def _native_remove_constraint(self, name):
        self.native_calls.append(("remove", name))

    def _native_set_rhs(self, name, rhs):
        self.native_calls.append(("rhs", name, rhs))

    def _native_set_bounds(self, var):
        self.native_calls.append(("bounds", var.name, var.lb, var.ub))

    def _native_set_objective(self, coeffs, constant):
        self.native_calls.append(("objective",))

    def _native_maximize(self):
        return Solution(status=self.next_status, objective_value=self.next_objective, values=dict(self.next_values))

    def _native_set_objective_stop(self, target):
        self.native_calls.append(("stop", target))

    def _native_set_time_limit(self, seconds):
        self.time_limit = seconds

    def _native_reset(self):
        self.native_calls.append(("reset",))

    def all_variables(self):
        return list(self._variables.values()) + list(self._auxiliary_vars.values())

    def is_satisfied(self, assignment, tolerance=1e-6):
        """Check every registered constraint and variable bound under ``assignment``."""
        for var in self.all_variables():
            if var not in assignment:
                continue
            value = assignment[var]
            if var.lb is not None and value < var.lb - tolerance:
                return False
            if var.ub is not None and value > var.ub + tolerance:
                return False
        for sense, poly in self._constraints.values():
            value = poly.evaluate(assignment)
            if sense == EQ and abs(value) > tolerance:
                return False
            if sense != EQ and value > tolerance:
                return False
        return True


def two_node_topology():
    topology = Topology()
    topology.add_node("a")
    topology.add_node("b")
    topology.add_edge("a", "b", capacity=10)
    return topology


def diamond_topology(capacity=10):
    topology = Topology()
    for node in "abcd":
        topology.add_node(node)
    topology.add_edge("a", "b", capacity=capacity)
    topology.add_edge("a", "c", capacity=capacity)
    topology.add_edge("b", "d", capacity=capacity)
    topology.add_edge("c", "d", capacity=capacity)
    return topology


def triangle_topology():
    """a->b->c with a direct a->c link; gives pair (a, c) two paths."""
    topology = Topology()
    for node in "abc":
        topology.add_node(node)
    topology.add_edge("a", "b", capacity=10)
    topology.add_edge("b", "c", capacity=10)
    topology.add_edge("a", "c", capacity=5)
    return topology
