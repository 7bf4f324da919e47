"""Tests for the solver contract (adversarial_gap.solver, adversarial_gap.disjunction)."""

from absl.testing import absltest
from absl.testing import parameterized

from adversarial_gap.algebra import Polynomial, Term, VarType
from adversarial_gap.disjunction import BigMDisjunction
from adversarial_gap.errors import (
    ConfigurationError,
    InfeasibleOrUnboundedError,
    ProtocolError,
    SolveFailure,
)
from adversarial_gap.solver import SolveStatus

from tests.fixtures import RecordingSolver


class NamingTest(absltest.TestCase):

    def test_variable_and_constraint_names(self):
        solver = RecordingSolver()
        x = solver.create_variable("x")
        y = solver.create_variable("y", VarType.BINARY)
        aux = solver.create_auxiliary_variable()
        self.assertEqual(x.name, "x_0")
        self.assertEqual(y.name, "y_1")
        self.assertEqual((y.lb, y.ub), (0.0, 1.0))
        self.assertEqual(aux.name, "aux_0")

        self.assertEqual(solver.add_leq_zero_constraint(Polynomial(Term(1.0, x))), "ineq_index_0")
        self.assertEqual(solver.add_leq_zero_constraint(Polynomial(Term(1.0, y))), "ineq_index_1")
        self.assertEqual(solver.add_eq_zero_constraint(Polynomial(Term(1.0, x))), "eq_index_0")

    def test_constant_moves_to_rhs(self):
        solver = RecordingSolver()
        x = solver.create_variable("x")
        solver.add_leq_zero_constraint(Polynomial(Term(1.0, x), Term(-4.0)))
        self.assertIn(("constr", "ineq_index_0", "<=", 4.0), solver.native_calls)

    def test_nonlinear_polynomial_rejected(self):
        solver = RecordingSolver()
        x = solver.create_variable("x")
        with self.assertRaises(ValueError):
            solver.add_eq_zero_constraint(Polynomial(Term(1.0, x, exponent=2)))


class MaximizeTest(parameterized.TestCase):

    def setUp(self):
        super().setUp()
        self.solver = RecordingSolver()
        self.x = self.solver.create_variable("x")
        self.solver.next_values = {self.x: 3.0}

    def test_value_before_maximize_is_protocol_error(self):
        with self.assertRaises(ProtocolError):
            self.solver.get_variable_value(None, self.x)

    def test_maximize_without_objective_is_protocol_error(self):
        with self.assertRaises(ProtocolError):
            self.solver.maximize()

    def test_optimal(self):
        solution = self.solver.maximize(Polynomial(Term(1.0, self.x)))
        self.assertTrue(solution.is_optimal())
        self.assertEqual(self.solver.get_variable_value(solution, self.x), 3.0)

    @parameterized.parameters(
        SolveStatus.INFEASIBLE, SolveStatus.UNBOUNDED, SolveStatus.INF_OR_UNBD)
    def test_no_optimum(self, status):
        self.solver.next_status = status
        with self.assertRaises(InfeasibleOrUnboundedError) as cm:
            self.solver.maximize(Polynomial(Term(1.0, self.x)))
        self.assertIs(cm.exception.status, status)

    @parameterized.parameters(SolveStatus.TIME_LIMIT, SolveStatus.NUMERIC, SolveStatus.SUBOPTIMAL)
    def test_non_optimal_termination(self, status):
        self.solver.next_status = status
        with self.assertRaises(SolveFailure) as cm:
            self.solver.maximize(Polynomial(Term(1.0, self.x)))
        self.assertIs(cm.exception.status, status)
        self.assertEqual(self.solver.get_variable_value(cm.exception.solution, self.x), 3.0)

    def test_time_limit_accepted(self):
        self.solver.next_status = SolveStatus.TIME_LIMIT
        solution = self.solver.maximize(Polynomial(Term(1.0, self.x)), accept_time_limit=True)
        self.assertFalse(solution.is_optimal())
        self.assertTrue(solution.is_feasible())
        self.assertEqual(self.solver.get_variable_value(solution, self.x), 3.0)

    def test_time_limit_without_incumbent_still_fails(self):
        self.solver.next_status = SolveStatus.TIME_LIMIT
        self.solver.next_values = {}
        with self.assertRaises(SolveFailure):
            self.solver.maximize(Polynomial(Term(1.0, self.x)), accept_time_limit=True)


class CheckFeasibilityTest(parameterized.TestCase):

    def setUp(self):
        super().setUp()
        self.solver = RecordingSolver()
        self.x = self.solver.create_variable("x")
        self.solver.next_values = {self.x: 6.0}
        self.objective = Polynomial(Term(1.0, self.x))

    @parameterized.parameters(SolveStatus.OPTIMAL, SolveStatus.USER_OBJ_LIMIT)
    def test_target_reached(self, status):
        self.solver.next_status = status
        self.solver.next_objective = 6.0
        solution = self.solver.check_feasibility(5.0, self.objective)
        self.assertIs(solution.status, status)
        self.assertEqual(self.solver.get_variable_value(solution, self.x), 6.0)
        stops = [call for call in self.solver.native_calls if call[0] == "stop"]
        self.assertEqual(stops, [("stop", 5.0), ("stop", None)])

    @parameterized.parameters(SolveStatus.OPTIMAL, SolveStatus.USER_OBJ_LIMIT)
    def test_below_target_is_infeasible(self, status):
        self.solver.next_status = status
        self.solver.next_objective = 3.0
        with self.assertRaises(InfeasibleOrUnboundedError) as cm:
            self.solver.check_feasibility(5.0, self.objective)
        self.assertIs(cm.exception.status, status)

    def test_no_incumbent_is_infeasible(self):
        self.solver.next_status = SolveStatus.USER_OBJ_LIMIT
        self.solver.next_values = {}
        self.solver.next_objective = None
        with self.assertRaises(InfeasibleOrUnboundedError):
            self.solver.check_feasibility(5.0, self.objective)

    def test_infeasible_model(self):
        self.solver.next_status = SolveStatus.INFEASIBLE
        with self.assertRaises(InfeasibleOrUnboundedError):
            self.solver.check_feasibility(5.0, self.objective)

    def test_time_limit(self):
        self.solver.next_status = SolveStatus.TIME_LIMIT
        self.solver.next_objective = 6.0
        with self.assertRaises(SolveFailure) as cm:
            self.solver.check_feasibility(5.0, self.objective)
        self.assertEqual(self.solver.get_variable_value(cm.exception.solution, self.x), 6.0)
        solution = self.solver.check_feasibility(5.0, accept_time_limit=True)
        self.assertFalse(solution.is_optimal())

    def test_without_objective_is_protocol_error(self):
        with self.assertRaises(ProtocolError):
            self.solver.check_feasibility(5.0)

    def test_stop_cleared_when_backend_raises(self):
        solver = self.solver

        def fail():
            raise SolveFailure("backend error", status=SolveStatus.OTHER)

        solver._native_maximize = fail
        with self.assertRaises(SolveFailure):
            solver.check_feasibility(5.0, self.objective)
        self.assertEqual(solver.native_calls[-1], ("stop", None))


class LifecycleTest(absltest.TestCase):

    def test_reset_clears_everything(self):
        solver = RecordingSolver()
        x = solver.create_variable("x")
        solver.create_auxiliary_variable()
        solver.add_leq_zero_constraint(Polynomial(Term(1.0, x)))
        solver.next_values = {x: 1.0}
        solution = solver.maximize(Polynomial(Term(1.0, x)))

        solver.reset()
        self.assertEqual(solver.num_variables, 0)
        self.assertEqual(solver.num_constraints, 0)
        self.assertEqual(solver.generation, 1)
        self.assertEqual(solver.create_variable("y").name, "y_0")
        self.assertEqual(solver.create_auxiliary_variable().name, "aux_0")
        self.assertEqual(solver.add_leq_zero_constraint(Polynomial(Term(1.0))), "ineq_index_0")
        with self.assertRaises(ProtocolError):
            solver.get_variable_value(solution, x)
        with self.assertRaises(ProtocolError):
            solver.maximize()

    def test_stale_solution_after_reset(self):
        solver = RecordingSolver()
        x = solver.create_variable("x")
        solver.next_values = {x: 1.0}
        solution = solver.maximize(Polynomial(Term(1.0, x)))
        solver.reset()
        y = solver.create_variable("y")
        solver.next_values = {y: 2.0}
        solver.maximize(Polynomial(Term(1.0, y)))
        with self.assertRaises(ProtocolError):
            solver.get_variable_value(solution, x)

    def test_remove_and_rebound(self):
        solver = RecordingSolver()
        x = solver.create_variable("x")
        name = solver.add_leq_zero_constraint(Polynomial(Term(1.0, x), Term(-4.0)))
        solver.set_constraint_bound(name, 7.0)
        _, poly = solver.get_constraint(name)
        self.assertEqual(poly.evaluate({x: 7.0}), 0.0)
        self.assertIn(("rhs", name, 7.0), solver.native_calls)

        solver.remove_constraint(name)
        self.assertEqual(solver.num_constraints, 0)
        with self.assertRaises(ProtocolError):
            solver.remove_constraint(name)
        with self.assertRaises(ProtocolError):
            solver.set_constraint_bound(name, 1.0)

    def test_time_limit_validation(self):
        solver = RecordingSolver()
        solver.set_time_limit(5)
        self.assertEqual(solver.time_limit, 5.0)
        with self.assertRaises(ConfigurationError):
            solver.set_time_limit(0)

    def test_variable_bounds(self):
        solver = RecordingSolver()
        x = solver.create_variable("x", lb=0.0)
        solver.set_variable_bounds(x, 1.0, 2.0)
        self.assertEqual((x.lb, x.ub), (1.0, 2.0))

    def test_context_manager_closes(self):
        closed = []

        class Closing(RecordingSolver):
            def _native_close(self):
                closed.append(True)

        with self.assertRaises(KeyError):
            with Closing():
                raise KeyError("boom")
        self.assertEqual(closed, [True])


class BigMDisjunctionTest(parameterized.TestCase):

    @parameterized.parameters(
        (0.0, 0.0, True),
        (0.0, 5.0, True),
        (-3.0, 0.0, True),
        (2.0, -1.0, False),
        (4.0, 4.0, False),
    )
    def test_at_least_one_is_zero(self, a_value, b_value, feasible):
        solver = RecordingSolver(disjunction=BigMDisjunction(100.0))
        a = solver.create_variable("a")
        b = solver.create_variable("b")
        solver.add_disjunction_constraint(a, b)
        z = solver.all_variables()[-1]
        found = any(
            solver.is_satisfied({a: a_value, b: b_value, z: float(zv)})
            for zv in (0, 1))
        self.assertEqual(found, feasible)

    def test_polynomial_operands(self):
        solver = RecordingSolver(disjunction=BigMDisjunction(100.0))
        x = solver.create_variable("x")
        solver.add_disjunction_constraint(Polynomial(Term(1.0, x), Term(-2.0)), Polynomial(Term(1.0, x)))
        z = solver.all_variables()[-1]
        for x_value, expected in ((2.0, True), (0.0, True), (1.0, False)):
            found = any(solver.is_satisfied({x: x_value, z: zv}) for zv in (0.0, 1.0))
            self.assertEqual(found, expected)

    def test_big_m_must_be_positive(self):
        for bad in (0, -1):
            with self.assertRaises(ConfigurationError):
                BigMDisjunction(bad)


if __name__ == "__main__":
    absltest.main()
