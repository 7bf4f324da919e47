"""
Parameters and defaults for the adversarial gap engine.

This module centralizes all configurable values:
- Linearization constants (big-M, pinning epsilon)
- Gurobi parameters (time limit, MIP gap, presolve)
- Metaheuristic search parameters (trials, neighbors, temperature schedule)
- Gap target search (starting gap, confidence)
"""

# ============================================================================
# Linearization
# ============================================================================

# Must dominate the magnitude of any continuous operand it multiplies.
# An undersized value gives wrong answers, not infeasibility.
DEFAULT_BIG_M = 1000.0

# Gap between "at most threshold" and "above threshold" in demand pinning
PINNING_EPSILON = 1e-3

# Tolerance used when comparing solver values
VALUE_TOLERANCE = 1e-4


# ============================================================================
# Gurobi Parameters
# ============================================================================

TIME_LIMIT = 600.0          # seconds per solve
MIP_GAP = 1e-4
THREADS = 0                 # 0 = let Gurobi decide
PRESOLVE = 2                # aggressive
INTEGRALITY_FOCUS = 1
OUTPUT_FLAG = 0

# "sos", "indicator" or "bigm"
DISJUNCTION_METHOD = "sos"
DISJUNCTION_BIG_M = 1e4

# BestBdStop sits this far below a feasibility target
OBJECTIVE_STOP_MARGIN = 1e-3


# ============================================================================
# Paths
# ============================================================================

MAX_NUM_PATHS = 2


# ============================================================================
# Metaheuristic Search
# ============================================================================

NUM_TRIALS = 100
NUM_NEIGHBORS = 10
STD_DEV = 10.0
SEARCH_TIME_LIMIT = 3600.0  # wall clock budget, checked between trials

# Simulated annealing schedule
INITIAL_TEMPERATURE = 10.0
TEMPERATURE_DECAY = 0.9
NUM_TEMPERATURE_STEPS = 50

RANDOM_SEED = None


# ============================================================================
# Gap Target Search
# ============================================================================

STARTING_GAP = 10.0         # first target; doubled until infeasible
CONFIDENCE_LEVEL = 0.1      # stop once upper - lower bound is this small


def get_solver_params():
    """Gurobi parameters keyed by their Gurobi names."""
    return {
        "TimeLimit": TIME_LIMIT,
        "MIPGap": MIP_GAP,
        "Threads": THREADS,
        "Presolve": PRESOLVE,
        "IntegralityFocus": INTEGRALITY_FOCUS,
        "OutputFlag": OUTPUT_FLAG,
    }


def get_search_params():
    """Default arguments for the metaheuristic searches."""
    return {
        "num_trials": NUM_TRIALS,
        "num_neighbors": NUM_NEIGHBORS,
        "std_dev": STD_DEV,
        "time_limit": SEARCH_TIME_LIMIT,
        "initial_temperature": INITIAL_TEMPERATURE,
        "temperature_decay": TEMPERATURE_DECAY,
        "num_temperature_steps": NUM_TEMPERATURE_STEPS,
        "seed": RANDOM_SEED,
        "starting_gap": STARTING_GAP,
        "confidence": CONFIDENCE_LEVEL,
    }


def get_all_params():
    return {
        "big_m": DEFAULT_BIG_M,
        "pinning_epsilon": PINNING_EPSILON,
        "max_num_paths": MAX_NUM_PATHS,
        "disjunction_method": DISJUNCTION_METHOD,
        "solver": get_solver_params(),
        "search": get_search_params(),
    }
