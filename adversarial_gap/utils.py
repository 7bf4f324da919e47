#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Utility functions: JSON persistence of demands and paths, append-only progress
files, and result printing.
"""
import json
import math
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

import numpy as np

PAIR_SEPARATOR = "->"


def convert_to_native(obj):
    """Convert numpy types to Python native types for JSON serialization."""
    if isinstance(obj, (np.integer, np.int64, np.int32)):
        return int(obj)
    elif isinstance(obj, (np.floating, np.float64, np.float32)):
        return float(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, dict):
        return {convert_to_native(k): convert_to_native(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_to_native(item) for item in obj]
    return obj


def pair_key(pair: Iterable) -> str:
    return PAIR_SEPARATOR.join(str(n) for n in pair)


def parse_pair_key(key: str) -> Tuple[str, ...]:
    return tuple(key.split(PAIR_SEPARATOR))


# ============================================================================
# Demands / paths
# ============================================================================

def write_demands(filepath, demands: Dict[Tuple, float]) -> Path:
    """
    Save a demand vector as {"src->dst": value}.

    Node ids are written with str(); read_demands returns them as strings.
    """
    output_path = Path(filepath)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(convert_to_native({pair_key(p): v for p, v in demands.items()}), f, indent=2)
    return output_path


def read_demands(filepath) -> Dict[Tuple[str, ...], float]:
    with open(Path(filepath), "r", encoding="utf-8") as f:
        raw = json.load(f)
    return {parse_pair_key(k): float(v) for k, v in raw.items()}


def write_paths(filepath, paths: Dict[Tuple, List[Tuple]]) -> Path:
    """Save candidate paths as {"src->dst": [[n0, n1, ...], ...]}."""
    output_path = Path(filepath)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump({pair_key(p): [[str(n) for n in path] for path in ps] for p, ps in paths.items()},
                  f, indent=2)
    return output_path


def read_paths(filepath) -> Dict[Tuple[str, ...], List[Tuple[str, ...]]]:
    with open(Path(filepath), "r", encoding="utf-8") as f:
        raw = json.load(f)
    return {parse_pair_key(k): [tuple(p) for p in ps] for k, ps in raw.items()}


def set_empty_pairs_to_zero(topology, demands: Dict[Tuple, float]) -> Dict[Tuple, float]:
    """Copy of ``demands`` with every missing node pair set to 0."""
    full = {pair: 0.0 for pair in topology.get_node_pairs()}
    full.update(demands)
    return full


def is_approximately(a: float, b: float, tolerance: float = 1e-4) -> bool:
    return math.isclose(a, b, rel_tol=tolerance, abs_tol=tolerance)


# ============================================================================
# Progress files
# ============================================================================

def create_progress_file(dirname, filename: str, remove_if_exists: bool = True) -> Path:
    """Create (or truncate) a progress file and return its path."""
    directory = Path(dirname)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    if remove_if_exists or not path.exists():
        path.write_text("", encoding="utf-8")
    return path


def append_to_file(filepath, line: str) -> None:
    """Append one line. The file must already exist."""
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"progress file {path} does not exist")
    with open(path, "a", encoding="utf-8") as f:
        f.write(line.rstrip("\n") + "\n")


def store_progress(filepath, trial: int, elapsed: float, gap: float, best_gap: float) -> None:
    """trial, elapsed seconds, gap of this trial, best gap so far."""
    gap_text = "nan" if gap is None else f"{gap:.6f}"
    append_to_file(filepath, f"{trial}, {elapsed:.3f}, {gap_text}, {best_gap:.6f}")


def save_search_history(result, filepath) -> Path:
    """Write a SearchResult's history DataFrame as CSV."""
    output_path = Path(filepath)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    result.history.to_csv(output_path, index=False)
    return output_path


# ============================================================================
# Printing
# ============================================================================

def print_gap_summary(result, max_pairs: int = 10) -> None:
    """Print a GapResult or SearchResult."""
    print("\n" + "=" * 70)
    print("ADVERSARIAL GAP SUMMARY")
    print("=" * 70)

    if result is None:
        print("No result.")
        return

    gap = getattr(result, "gap", None)
    if gap is None:
        gap = result.best_gap
    print(f"\nGap: {gap:,.4f}")

    optimal = getattr(result, "optimal", None)
    heuristic = getattr(result, "heuristic", None)
    if optimal is not None and heuristic is not None:
        print(f"  Optimal objective   : {optimal.max_objective:>12,.4f}")
        print(f"  Heuristic objective : {heuristic.max_objective:>12,.4f}")

    evaluated = getattr(result, "num_evaluated", None)
    if evaluated is not None:
        print(f"  Evaluated candidates: {evaluated} ({result.num_failed} failed)")
        print(f"  Elapsed             : {result.elapsed:.1f}s")

    demands = getattr(result, "demands", None)
    if demands is None:
        demands = result.best_demands
    nonzero = [(p, d) for p, d in (demands or {}).items() if d > 1e-6]
    print("\n--- Adversarial Demands ---")
    if not nonzero:
        print("  All demands are zero.")
    for pair, d in sorted(nonzero, key=lambda x: -x[1])[:max_pairs]:
        print(f"  {pair_key(pair):<20}: {d:>10,.4f}")
    if len(nonzero) > max_pairs:
        print(f"  ... and {len(nonzero) - max_pairs} more pairs")

    print("=" * 70 + "\n")
