#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Adversarial gap engine.

Finds demands that maximize (optimal objective - heuristic objective), either
exactly, by rewriting both inner problems into one MILP, or approximately with
a metaheuristic search that re-solves both encoders per candidate demand
vector. The same MILP with a floor on the gap answers "is a gap of at least g
reachable?", which also drives a doubling-then-bisection search for the
maximum gap.

All searches share one loop: propose -> evaluate (two solves) -> accept or
reject -> record progress -> check termination. A candidate whose evaluation
fails is recorded with a NaN gap and otherwise ignored.
"""
from __future__ import annotations

import inspect
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .algebra import Polynomial, Term
from .encoding import FlowSolution
from .errors import ConfigurationError, InfeasibleOrUnboundedError, SolverError
from .parameters import (
    CONFIDENCE_LEVEL,
    INITIAL_TEMPERATURE,
    NUM_NEIGHBORS,
    NUM_TEMPERATURE_STEPS,
    NUM_TRIALS,
    SEARCH_TIME_LIMIT,
    STARTING_GAP,
    STD_DEV,
    TEMPERATURE_DECAY,
    VALUE_TOLERANCE,
    get_search_params,
)
from .rewrite import InnerRewriteMethod
from .solver import SolveStatus
from .topology import Pair
from .utils import set_empty_pairs_to_zero, store_progress

HISTORY_COLUMNS = ["trial", "step", "gap", "best_gap", "elapsed"]


class SearchMethod(Enum):
    EXACT = "exact"
    FIND_FEASIBLE = "find_feasible"
    INTERVAL_SEARCH = "interval_search"
    RANDOM = "random"
    HILL_CLIMBING = "hill_climbing"
    SIMULATED_ANNEALING = "simulated_annealing"


@dataclass
class GapResult:
    """Outcome of the exact formulation."""
    gap: float
    demands: Dict[Pair, float]
    optimal: FlowSolution
    heuristic: FlowSolution
    status: SolveStatus
    runtime: float = 0.0


@dataclass
class GapInterval:
    """The maximum gap lies in [lower_bound, upper_bound]; ``best`` reaches lower_bound."""
    lower_bound: float
    upper_bound: float
    best: Optional[GapResult]
    num_solves: int
    elapsed: float


@dataclass
class Evaluation:
    gap: float
    optimal: FlowSolution
    heuristic: FlowSolution


@dataclass
class SearchResult:
    """Outcome of a metaheuristic search."""
    method: SearchMethod
    best_gap: float
    best_demands: Optional[Dict[Pair, float]]
    num_evaluated: int
    num_failed: int
    elapsed: float
    history: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=HISTORY_COLUMNS))
    best_optimal: Optional[FlowSolution] = None
    best_heuristic: Optional[FlowSolution] = None


class _SearchRecorder:
    """Tracks the best candidate, the history rows and the wall-clock budget."""

    def __init__(self, engine, method: SearchMethod, time_limit: Optional[float], progress_file=None):
        self.engine = engine
        self.method = method
        self.time_limit = time_limit
        self.progress_file = progress_file
        self.start = time.time()
        self.best_gap = -math.inf
        self.best: Optional[Evaluation] = None
        self.best_demands = None
        self.rows: List[dict] = []
        self.num_evaluated = 0
        self.num_failed = 0

    def out_of_time(self) -> bool:
        return self.time_limit is not None and time.time() - self.start >= self.time_limit

    def evaluate(self, demands: Dict[Pair, float], trial: int, step: int) -> Optional[float]:
        evaluation = self.engine.evaluate(demands)
        elapsed = time.time() - self.start
        gap = None
        if evaluation is None:
            self.num_failed += 1
        else:
            self.num_evaluated += 1
            gap = evaluation.gap
            if gap > self.best_gap:
                self.best_gap = gap
                self.best = evaluation
                self.best_demands = dict(demands)

        self.rows.append({
            "trial": trial,
            "step": step,
            "gap": np.nan if gap is None else gap,
            "best_gap": self.best_gap,
            "elapsed": elapsed,
        })
        if self.progress_file is not None:
            store_progress(self.progress_file, len(self.rows) - 1, elapsed, gap, self.best_gap)
        if self.engine.verbose:
            shown = "failed" if gap is None else f"{gap:.4f}"
            print(f"  + [{self.method.value}] trial {trial} step {step}: gap={shown}, best={self.best_gap:.4f}")
        return gap

    def result(self) -> SearchResult:
        return SearchResult(
            method=self.method,
            best_gap=self.best_gap,
            best_demands=self.best_demands,
            num_evaluated=self.num_evaluated,
            num_failed=self.num_failed,
            elapsed=time.time() - self.start,
            history=pd.DataFrame(self.rows, columns=HISTORY_COLUMNS),
            best_optimal=None if self.best is None else self.best.optimal,
            best_heuristic=None if self.best is None else self.best.heuristic,
        )


class AdversarialGapEngine:
    """
    Args:
        optimal_encoder: encoder of the optimal policy
        heuristic_encoder: encoder of the heuristic, on the same solver
        demand_upper_bound: scalar or {pair: bound}; defaults to the largest
            link capacity
        verbose: print progress
    """

    def __init__(self, optimal_encoder, heuristic_encoder, demand_upper_bound=None, verbose: bool = False):
        if optimal_encoder.solver is not heuristic_encoder.solver:
            raise ConfigurationError("optimal and heuristic encoders must share one solver")
        self.optimal_encoder = optimal_encoder
        self.heuristic_encoder = heuristic_encoder
        self.solver = optimal_encoder.solver
        self.topology = optimal_encoder.topology
        self.pairs = self.topology.get_node_pairs()
        self.verbose = verbose

        default = self.topology.max_capacity()
        if demand_upper_bound is None:
            demand_upper_bound = default
        if isinstance(demand_upper_bound, dict):
            bounds = [float(demand_upper_bound.get(pair, default)) for pair in self.pairs]
        else:
            bounds = [float(demand_upper_bound)] * len(self.pairs)
        if any(b < 0 for b in bounds):
            raise ConfigurationError("demand upper bounds must be non-negative")
        self.upper_bounds = np.array(bounds, dtype=float)
        self.demand_upper_bound = dict(zip(self.pairs, bounds))

    # ------------------------------------------------------------------
    # Exact
    # ------------------------------------------------------------------

    def _encode_bilevel(self, rewrite_method, big_m, demand_levels, time_limit, selected_paths):
        """Fresh model with both policies under optimality constraints; returns (optimal, heuristic, gap)."""
        self.solver.reset()
        if time_limit is not None:
            self.solver.set_time_limit(time_limit)

        optimal = self.optimal_encoder.encoding(
            rewrite_method=rewrite_method,
            big_m=big_m,
            demand_levels=demand_levels,
            demand_upper_bound=self.demand_upper_bound,
            selected_paths=selected_paths,
            verbose=self.verbose,
        )
        heuristic = self.heuristic_encoder.encoding(
            pre_demand_variables=optimal.demand_variables,
            rewrite_method=rewrite_method,
            big_m=big_m,
            demand_levels=demand_levels,
            selected_paths=selected_paths,
            verbose=self.verbose,
        )
        gap = Polynomial(Term(1.0, optimal.global_objective), Term(-1.0, heuristic.global_objective))
        return optimal, heuristic, gap

    def _gap_result(self, solution) -> GapResult:
        opt_solution = self.optimal_encoder.get_solution(solution)
        heur_solution = self.heuristic_encoder.get_solution(solution)
        return GapResult(
            gap=opt_solution.max_objective - heur_solution.max_objective,
            demands=opt_solution.demands,
            optimal=opt_solution,
            heuristic=heur_solution,
            status=solution.status,
            runtime=solution.runtime,
        )

    def maximize_gap_exact(
        self,
        rewrite_method: InnerRewriteMethod = InnerRewriteMethod.KKT,
        big_m: Optional[float] = None,
        demand_levels=None,
        time_limit: Optional[float] = None,
        accept_time_limit: bool = False,
        selected_paths=None,
    ) -> GapResult:
        """
        Encode both policies with optimality constraints and maximize the gap
        in a single solve.

        Args:
            rewrite_method: KKT or PRIMAL_DUAL
            big_m: passed to both rewrite generators
            demand_levels: primal-dual only, admissible demand values
            time_limit: seconds for the solve
            accept_time_limit: return the incumbent of a time-limited solve

        Returns:
            GapResult
        """
        if self.verbose:
            print("\n[Exact] Building single-level formulation")
        _, _, objective = self._encode_bilevel(rewrite_method, big_m, demand_levels, time_limit, selected_paths)

        if self.verbose:
            print("\n[Exact] Solving")
        solution = self.solver.maximize(objective, accept_time_limit=accept_time_limit)
        result = self._gap_result(solution)
        if self.verbose:
            print(f"  + Gap: {result.gap:.4f} ({solution.status.value}, {solution.runtime:.1f}s)")
        return result

    # ------------------------------------------------------------------
    # Gap targets
    # ------------------------------------------------------------------

    def _add_gap_floor(self, optimal, heuristic, gap: float) -> str:
        """Add gap - (optimal - heuristic) <= 0 and return its name."""
        return self.solver.add_leq_zero_constraint(Polynomial(
            Term(float(gap)),
            Term(-1.0, optimal.global_objective),
            Term(1.0, heuristic.global_objective),
        ))

    def _reach_gap(self, objective: Polynomial, gap: float, accept_time_limit: bool) -> Optional[GapResult]:
        try:
            solution = self.solver.check_feasibility(gap, objective, accept_time_limit=accept_time_limit)
        except InfeasibleOrUnboundedError:
            if self.verbose:
                print(f"  ✗ No demands reach gap {gap:.4f}")
            return None
        result = self._gap_result(solution)
        if self.verbose:
            print(f"  + Gap {result.gap:.4f} reaches target {gap:.4f} ({solution.runtime:.1f}s)")
        return result

    def find_gap_at_least(
        self,
        gap: float = STARTING_GAP,
        rewrite_method: InnerRewriteMethod = InnerRewriteMethod.KKT,
        big_m: Optional[float] = None,
        demand_levels=None,
        time_limit: Optional[float] = None,
        accept_time_limit: bool = False,
        selected_paths=None,
    ) -> Optional[GapResult]:
        """
        Find demands whose gap is at least ``gap``, without proving optimality.

        The exact formulation plus the floor constraint on the gap; the solve
        stops at the first incumbent reaching it.

        Returns:
            GapResult, or None when no demand vector reaches ``gap``
        """
        if self.verbose:
            print(f"\n[Find feasible] Target gap {gap}")
        optimal, heuristic, objective = self._encode_bilevel(
            rewrite_method, big_m, demand_levels, time_limit, selected_paths)
        self._add_gap_floor(optimal, heuristic, gap)
        return self._reach_gap(objective, gap, accept_time_limit)

    def search_gap(
        self,
        starting_gap: float = STARTING_GAP,
        confidence: float = CONFIDENCE_LEVEL,
        rewrite_method: InnerRewriteMethod = InnerRewriteMethod.KKT,
        big_m: Optional[float] = None,
        demand_levels=None,
        time_limit: Optional[float] = None,
        selected_paths=None,
    ) -> GapInterval:
        """
        Bracket the maximum gap with a sequence of feasibility checks.

        The model is encoded once. The target starts at ``starting_gap`` and
        doubles while it is reachable; after the first unreachable target the
        interval is bisected by moving the right-hand side of the gap floor
        until it is at most ``confidence`` wide. The upper end never exceeds
        the sum of the demand upper bounds.

        Returns:
            GapInterval
        """
        self._check_positive(starting_gap=starting_gap, confidence=confidence)
        start = time.time()
        if self.verbose:
            print(f"\n[Interval search] start={starting_gap}, confidence={confidence}")
        optimal, heuristic, objective = self._encode_bilevel(
            rewrite_method, big_m, demand_levels, time_limit, selected_paths)
        floor = self._add_gap_floor(optimal, heuristic, 0.0)

        lower, upper = 0.0, float(self.upper_bounds.sum())
        bracketed = False
        best: Optional[GapResult] = None
        num_solves = 0
        target = min(float(starting_gap), upper)
        while upper - lower > confidence:
            self.solver.set_constraint_bound(floor, -target)
            result = self._reach_gap(objective, target, accept_time_limit=False)
            num_solves += 1
            if result is None:
                upper, bracketed = target, True
            else:
                lower = min(max(lower, target, result.gap), upper)
                if best is None or result.gap > best.gap:
                    best = result
            if not bracketed and 2.0 * lower < upper:
                target = 2.0 * lower
            else:
                target = 0.5 * (lower + upper)

        if self.verbose:
            print(f"  + Gap in [{lower:.4f}, {upper:.4f}] after {num_solves} solves")
        return GapInterval(
            lower_bound=lower,
            upper_bound=upper,
            best=best,
            num_solves=num_solves,
            elapsed=time.time() - start,
        )

    # ------------------------------------------------------------------
    # Evaluation of one candidate
    # ------------------------------------------------------------------

    def evaluate(self, demands: Dict[Pair, float]) -> Optional[Evaluation]:
        """
        Gap of a fixed demand vector: two solves on a fresh model, both
        encoders feasibility-only. Returns None when a solve fails.
        """
        demands = set_empty_pairs_to_zero(self.topology, demands)
        self.solver.reset()
        optimal = self.optimal_encoder.encoding(demand_constraints=demands, skip_optimality_constraints=True)
        heuristic = self.heuristic_encoder.encoding(
            pre_demand_variables=optimal.demand_variables,
            demand_constraints=demands,
            skip_optimality_constraints=True,
        )
        try:
            solution = self.solver.maximize(optimal.maximization_objective)
            opt_solution = self.optimal_encoder.get_solution(solution)
            solution = self.solver.maximize(heuristic.maximization_objective)
            heur_solution = self.heuristic_encoder.get_solution(solution)
        except SolverError as e:
            if self.verbose:
                print(f"  ✗ Evaluation failed: {e}")
            return None
        return Evaluation(
            gap=opt_solution.max_objective - heur_solution.max_objective,
            optimal=opt_solution,
            heuristic=heur_solution,
        )

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def _to_dict(self, vector: np.ndarray) -> Dict[Pair, float]:
        return {pair: float(v) for pair, v in zip(self.pairs, vector)}

    def _to_vector(self, demands: Dict[Pair, float]) -> np.ndarray:
        vector = np.array([float(demands.get(pair, 0.0)) for pair in self.pairs])
        return np.clip(vector, 0.0, self.upper_bounds)

    def sample_demands(self, rng: np.random.Generator) -> Dict[Pair, float]:
        """Independent uniform demand in [0, upper bound] for every pair."""
        return self._to_dict(rng.uniform(0.0, self.upper_bounds))

    def neighbor(self, demands: Dict[Pair, float], std_dev: float, rng: np.random.Generator) -> Dict[Pair, float]:
        """Gaussian perturbation clipped to [0, upper bound]."""
        vector = self._to_vector(demands) + rng.normal(0.0, std_dev, size=len(self.pairs))
        return self._to_dict(np.clip(vector, 0.0, self.upper_bounds))

    @staticmethod
    def _check_positive(**values):
        for name, value in values.items():
            if value is None or value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")

    # ------------------------------------------------------------------
    # Searches
    # ------------------------------------------------------------------

    def random_search(
        self,
        num_trials: int = NUM_TRIALS,
        time_limit: Optional[float] = SEARCH_TIME_LIMIT,
        seed: Optional[int] = None,
        progress_file=None,
    ) -> SearchResult:
        """Evaluate independent random demand vectors and keep the best."""
        self._check_positive(num_trials=num_trials)
        rng = np.random.default_rng(seed)
        recorder = _SearchRecorder(self, SearchMethod.RANDOM, time_limit, progress_file)
        if self.verbose:
            print(f"\n[Random search] {num_trials} trials")

        for trial in range(num_trials):
            if recorder.out_of_time():
                break
            recorder.evaluate(self.sample_demands(rng), trial, 0)
        return recorder.result()

    def hill_climbing(
        self,
        num_trials: int = NUM_TRIALS,
        num_neighbors: int = NUM_NEIGHBORS,
        std_dev: float = STD_DEV,
        initial_demands: Optional[Dict[Pair, float]] = None,
        time_limit: Optional[float] = SEARCH_TIME_LIMIT,
        seed: Optional[int] = None,
        progress_file=None,
    ) -> SearchResult:
        """
        Restarted hill climbing.

        Each trial starts from a random point (the first one from
        ``initial_demands`` if given), draws ``num_neighbors`` neighbors per
        step and moves to the best one if it improves; the trial ends when no
        neighbor improves.
        """
        self._check_positive(num_trials=num_trials, num_neighbors=num_neighbors, std_dev=std_dev)
        rng = np.random.default_rng(seed)
        recorder = _SearchRecorder(self, SearchMethod.HILL_CLIMBING, time_limit, progress_file)
        if self.verbose:
            print(f"\n[Hill climbing] {num_trials} trials, {num_neighbors} neighbors, std={std_dev}")

        for trial in range(num_trials):
            if recorder.out_of_time():
                break
            if trial == 0 and initial_demands is not None:
                current = self._to_dict(self._to_vector(initial_demands))
            else:
                current = self.sample_demands(rng)
            current_gap = recorder.evaluate(current, trial, 0)
            if current_gap is None:
                continue

            step = 1
            improved = True
            while improved and not recorder.out_of_time():
                improved = False
                best_neighbor, best_neighbor_gap = None, current_gap
                for _ in range(num_neighbors):
                    if recorder.out_of_time():
                        break
                    candidate = self.neighbor(current, std_dev, rng)
                    gap = recorder.evaluate(candidate, trial, step)
                    if gap is not None and gap > best_neighbor_gap + VALUE_TOLERANCE:
                        best_neighbor, best_neighbor_gap = candidate, gap
                if best_neighbor is not None:
                    current, current_gap = best_neighbor, best_neighbor_gap
                    improved = True
                step += 1
        return recorder.result()

    def simulated_annealing(
        self,
        num_temperature_steps: int = NUM_TEMPERATURE_STEPS,
        num_neighbors: int = NUM_NEIGHBORS,
        std_dev: float = STD_DEV,
        initial_temperature: float = INITIAL_TEMPERATURE,
        temperature_decay: float = TEMPERATURE_DECAY,
        initial_demands: Optional[Dict[Pair, float]] = None,
        time_limit: Optional[float] = SEARCH_TIME_LIMIT,
        seed: Optional[int] = None,
        progress_file=None,
    ) -> SearchResult:
        """
        Simulated annealing with the hill-climbing neighborhood.

        A worse neighbor is accepted with probability exp(delta / T); T is
        multiplied by ``temperature_decay`` after each of the
        ``num_temperature_steps`` steps.
        """
        self._check_positive(
            num_temperature_steps=num_temperature_steps,
            num_neighbors=num_neighbors,
            std_dev=std_dev,
            initial_temperature=initial_temperature,
        )
        if not 0 < temperature_decay < 1:
            raise ConfigurationError(f"temperature_decay must be in (0, 1), got {temperature_decay}")

        rng = np.random.default_rng(seed)
        recorder = _SearchRecorder(self, SearchMethod.SIMULATED_ANNEALING, time_limit, progress_file)
        if self.verbose:
            print(f"\n[Simulated annealing] {num_temperature_steps} steps, T0={initial_temperature}, "
                  f"decay={temperature_decay}")

        if initial_demands is not None:
            current = self._to_dict(self._to_vector(initial_demands))
        else:
            current = self.sample_demands(rng)
        current_gap = recorder.evaluate(current, 0, 0)
        if current_gap is None:
            current_gap = -math.inf

        temperature = float(initial_temperature)
        for step in range(num_temperature_steps):
            for n in range(num_neighbors):
                if recorder.out_of_time():
                    return recorder.result()
                candidate = self.neighbor(current, std_dev, rng)
                gap = recorder.evaluate(candidate, step, n + 1)
                if gap is None:
                    continue
                delta = gap - current_gap
                if delta >= 0 or rng.random() < math.exp(delta / temperature):
                    current, current_gap = candidate, gap
            temperature *= temperature_decay
        return recorder.result()

    # ------------------------------------------------------------------

    def run(self, method: SearchMethod, **kwargs):
        """
        Dispatch to the exact formulation, a gap target mode or one of the
        searches. Everything but EXACT starts from get_search_params();
        keyword arguments override those defaults.
        """
        if method is SearchMethod.EXACT:
            return self.maximize_gap_exact(**kwargs)
        defaults = get_search_params()
        if method is SearchMethod.FIND_FEASIBLE:
            kwargs.setdefault("gap", defaults["starting_gap"])
            return self.find_gap_at_least(**kwargs)
        if method is SearchMethod.INTERVAL_SEARCH:
            kwargs.setdefault("starting_gap", defaults["starting_gap"])
            kwargs.setdefault("confidence", defaults["confidence"])
            return self.search_gap(**kwargs)

        searches = {
            SearchMethod.RANDOM: self.random_search,
            SearchMethod.HILL_CLIMBING: self.hill_climbing,
            SearchMethod.SIMULATED_ANNEALING: self.simulated_annealing,
        }
        if method not in searches:
            raise ConfigurationError(f"unknown search method {method!r}")
        search = searches[method]
        accepted = inspect.signature(search).parameters
        options = {key: value for key, value in defaults.items() if key in accepted}
        options.update(kwargs)
        return search(**options)
