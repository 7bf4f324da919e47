"""Tests for adversarial_gap.gurobi_wrapper."""

import os
from unittest import mock

from absl.testing import absltest
from absl.testing import parameterized

from adversarial_gap.algebra import Polynomial, Term, VarType
from adversarial_gap.errors import (
    ConfigurationError,
    InfeasibleOrUnboundedError,
    ProtocolError,
    SolveFailure,
)
from adversarial_gap.solver import SolveStatus

from tests.fixtures import GUROBI_AVAILABLE, make_solver, make_tempdir, requires_gurobi

if GUROBI_AVAILABLE:
    import gurobipy as gp

    from adversarial_gap import gurobi_wrapper


@requires_gurobi
class GurobiSolverTest(parameterized.TestCase):

    def setUp(self):
        super().setUp()
        self.solver = make_solver()

    def tearDown(self):
        self.solver.close()
        super().tearDown()

    def _small_lp(self):
        # max x + y  s.t.  x + y <= 4,  x <= 3,  x, y >= 0
        x = self.solver.create_variable("x", lb=0.0)
        y = self.solver.create_variable("y", lb=0.0)
        total = self.solver.add_leq_zero_constraint(Polynomial(Term(1.0, x), Term(1.0, y), Term(-4.0)))
        cap = self.solver.add_leq_zero_constraint(Polynomial(Term(1.0, x), Term(-3.0)))
        return x, y, total, cap

    def test_small_lp(self):
        x, y, _, _ = self._small_lp()
        solution = self.solver.maximize(Polynomial(Term(1.0, x), Term(2.0, y)))
        self.assertTrue(solution.is_optimal())
        self.assertAlmostEqual(solution.objective_value, 8.0, places=5)
        self.assertAlmostEqual(self.solver.get_variable_value(solution, y), 4.0, places=5)

    def test_objective_constant(self):
        x, _, _, _ = self._small_lp()
        solution = self.solver.maximize(Polynomial(Term(1.0, x), Term(10.0)))
        self.assertAlmostEqual(solution.objective_value, 13.0, places=5)

    def test_set_constraint_bound_and_remove(self):
        x, y, total, _ = self._small_lp()
        objective = Polynomial(Term(1.0, x), Term(1.0, y))
        self.solver.set_constraint_bound(total, 6.0)
        self.assertAlmostEqual(self.solver.maximize(objective).objective_value, 6.0, places=5)

        self.solver.remove_constraint(total)
        self.solver.add_leq_zero_constraint(Polynomial(Term(1.0, y), Term(-1.0)))
        self.assertAlmostEqual(self.solver.maximize(objective).objective_value, 4.0, places=5)
        self.assertNotIn(total, self.solver._gurobi_constrs)

    def test_infeasible(self):
        x = self.solver.create_variable("x", lb=0.0)
        self.solver.add_leq_zero_constraint(Polynomial(Term(1.0, x), Term(1.0)))
        with self.assertRaises(InfeasibleOrUnboundedError):
            self.solver.maximize(Polynomial(Term(1.0, x)))

    def test_unbounded(self):
        x = self.solver.create_variable("x", lb=0.0)
        with self.assertRaises(InfeasibleOrUnboundedError):
            self.solver.maximize(Polynomial(Term(1.0, x)))

    def test_reset_keeps_session(self):
        x, y, _, _ = self._small_lp()
        solution = self.solver.maximize(Polynomial(Term(1.0, x)))
        env = self.solver.env
        self.solver.reset()
        self.assertIs(self.solver.env, env)
        self.assertEqual(self.solver.model.NumVars, 0)
        with self.assertRaises(ProtocolError):
            self.solver.get_variable_value(solution, x)

        z = self.solver.create_variable("z", ub=2.0)
        self.assertEqual(z.name, "z_0")
        solution = self.solver.maximize(Polynomial(Term(1.0, z)))
        self.assertAlmostEqual(self.solver.get_variable_value(solution, z), 2.0, places=5)

    def test_time_limit_survives_reset(self):
        self.solver.set_time_limit(12)
        self.solver.reset()
        self.assertEqual(self.solver.model.Params.TimeLimit, 12.0)

    def test_binary_variables(self):
        b = self.solver.create_variable("b", VarType.BINARY)
        c = self.solver.create_variable("c", VarType.BINARY)
        self.solver.add_leq_zero_constraint(Polynomial(Term(1.0, b), Term(1.0, c), Term(-1.0)))
        solution = self.solver.maximize(Polynomial(Term(2.0, b), Term(3.0, c)))
        self.assertAlmostEqual(solution.objective_value, 3.0, places=5)
        self.assertIsNotNone(solution.mip_gap)

    @parameterized.parameters("sos", "indicator", "bigm")
    def test_disjunction_methods(self, method):
        with make_solver(disjunction=method) as solver:
            a = solver.create_variable("a", lb=0.0, ub=5.0)
            b = solver.create_variable("b", lb=0.0, ub=4.0)
            solver.add_disjunction_constraint(a, b)
            solution = solver.maximize(Polynomial(Term(1.0, a), Term(1.0, b)))
            self.assertAlmostEqual(solution.objective_value, 5.0, places=5)
            self.assertAlmostEqual(solver.get_variable_value(solution, b), 0.0, places=5)

    def test_check_feasibility_restores_objective_stops(self):
        x, y, _, _ = self._small_lp()
        objective = Polynomial(Term(1.0, x), Term(1.0, y))
        solution = self.solver.check_feasibility(3.0, objective)
        self.assertGreaterEqual(solution.objective_value, 3.0 - 1e-6)
        with self.assertRaises(InfeasibleOrUnboundedError):
            self.solver.check_feasibility(5.0)
        for key in ("BestObjStop", "BestBdStop"):
            self.assertEqual(getattr(self.solver.model.Params, key), self.solver.model.getParamInfo(key)[-1])
        self.assertAlmostEqual(self.solver.maximize().objective_value, 4.0, places=5)

    def test_gurobi_error_during_optimize_is_solve_failure(self):
        x, _, _, _ = self._small_lp()
        self.solver.set_objective(Polynomial(Term(1.0, x)))
        with mock.patch.object(self.solver, "model") as model:
            model.optimize.side_effect = gp.GurobiError(10001, "Out of memory")
            with self.assertRaises(SolveFailure) as cm:
                self.solver.maximize()
        self.assertIs(cm.exception.status, SolveStatus.OTHER)
        self.assertIsNone(cm.exception.solution)

    def test_export(self):
        self._small_lp()
        x = self.solver.create_variable("w", lb=0.0)
        self.solver.set_objective(Polynomial(Term(1.0, x)))
        path = os.path.join(make_tempdir(self), "model.lp")
        self.solver.export(path)
        with open(path) as f:
            text = f.read()
        for name in ("x_0", "y_1", "w_2", "ineq_index_0", "ineq_index_1"):
            self.assertIn(name, text)

    def test_unknown_parameter(self):
        with self.assertRaises(gp.GurobiError):
            make_solver(params={"NoSuchParam": 1})

    def test_env_disposed_when_model_setup_fails(self):
        error = gp.GurobiError(10007, "Unknown parameter")
        with mock.patch.object(gurobi_wrapper.gp, "Env") as env_cls, \
                mock.patch.object(gurobi_wrapper.GurobiSolver, "_new_model", side_effect=error):
            with self.assertRaises(gp.GurobiError):
                gurobi_wrapper.GurobiSolver()
        env_cls.return_value.start.assert_called_once()
        env_cls.return_value.dispose.assert_called_once()

    def test_unknown_disjunction_method(self):
        with self.assertRaises(ConfigurationError):
            make_solver(disjunction="nope")


if __name__ == "__main__":
    absltest.main()
