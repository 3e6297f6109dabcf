"""
Strategy Comparison Experiments: Generic vs Preallocated vs Compiled

Experiments:
1. Constant-velocity tracking (4D state, 2D obs) - small matrices, where
   per-call overhead dominates
2. Partially observed random walk (20D state, 10D obs) - larger matrices
3. Per-call cost of predict() and update() in isolation

For every run the three strategies are checked against the generic one;
they evaluate the same formulas in the same order, so estimates should
agree to round-off.
"""

import time
import numpy as np
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from kalman_strategies.filters import STRATEGIES, make_filter
from kalman_strategies.models import LinearGaussianSSM, make_lgssm, make_constant_velocity
from kalman_strategies.simulation import simulate
from kalman_strategies.utils import compute_nees, max_abs_difference


# =============================================================================
# Model Factories
# =============================================================================

def make_partial_random_walk(
    nx: int,
    ny: int,
    q: float = 0.1,
    r: float = 0.1,
) -> LinearGaussianSSM:
    """
    Random-walk SSM observing only the first ny states.

    State: x ∈ R^nx (random walk dynamics)
    Observation: z = H @ x + noise, where H selects first ny states
    """
    F = np.eye(nx)
    Q = q * np.eye(nx)

    H = np.zeros((ny, nx))
    for i in range(ny):
        H[i, i] = 1.0

    R = r * np.eye(ny)
    return make_lgssm(F, H, Q, R, np.zeros(nx), np.eye(nx))


# =============================================================================
# Result Data Structures
# =============================================================================

@dataclass
class StrategyRun:
    """Result from a single strategy on one trajectory."""
    rmse: float
    runtime: float
    nees: float
    # Largest deviation from the generic strategy (means and covariances)
    max_diff: float = 0.0


@dataclass
class ExperimentResult:
    """Aggregated results across trajectories."""
    strategy: str
    rmse_mean: float
    rmse_std: float
    runtime_mean: float
    runtime_std: float
    nees_mean: float
    max_diff: float
    per_trajectory: List[StrategyRun] = field(default_factory=list)


# =============================================================================
# Core Experiment Runner
# =============================================================================

def run_experiment(
    model: LinearGaussianSSM,
    T: int = 200,
    n_trajectories: int = 10,
    seed: int = 42,
    strategies: Optional[List[str]] = None,
    verbose: bool = True,
) -> Dict[str, ExperimentResult]:
    """
    Run every strategy on the same simulated trajectories.

    Args:
        model: LinearGaussianSSM
        T: Time steps per trajectory
        n_trajectories: Number of trajectories
        seed: Random seed
        strategies: Strategy names (default: all)
        verbose: Print progress

    Returns:
        Dict mapping strategy name to ExperimentResult
    """
    if strategies is None:
        strategies = list(STRATEGIES)
    results = {name: [] for name in strategies}

    for traj_idx in range(n_trajectories):
        trajectory = simulate(model, T, seed=seed + traj_idx * 1000)
        states = trajectory.states

        if verbose:
            print(f"  Trajectory {traj_idx + 1}/{n_trajectories}", end="")

        reference = None
        for name in strategies:
            result = make_filter(name).filter(model, trajectory.observations)
            if reference is None:
                reference = result

            max_diff = max(
                max_abs_difference(result.means, reference.means),
                max_abs_difference(result.covariances, reference.covariances),
            )
            nees = compute_nees(states, result.means, result.covariances)

            results[name].append(StrategyRun(
                rmse=result.mean_rmse(states),
                runtime=result.elapsed,
                nees=float(np.mean(nees)),
                max_diff=max_diff,
            ))

        if verbose:
            print(" - Done")

    aggregated = {}
    for name, runs in results.items():
        rmses = [r.rmse for r in runs]
        runtimes = [r.runtime for r in runs]

        aggregated[name] = ExperimentResult(
            strategy=name,
            rmse_mean=np.mean(rmses),
            rmse_std=np.std(rmses),
            runtime_mean=np.mean(runtimes),
            runtime_std=np.std(runtimes),
            nees_mean=np.mean([r.nees for r in runs]),
            max_diff=max(r.max_diff for r in runs),
            per_trajectory=runs,
        )

    return aggregated


def print_results(results: Dict[str, ExperimentResult], title: str = ""):
    """Print results table."""
    print("\n" + "=" * 70)
    if title:
        print(title)
        print("=" * 70)

    print(f"{'Strategy':<14} | {'RMSE':>16} | {'Runtime':>16} | {'NEES':>6} | {'max|Δ|':>9}")
    print("-" * 70)
    for name, res in results.items():
        print(f"{name:<14} | {res.rmse_mean:>6.4f} ± {res.rmse_std:<6.4f} | "
              f"{res.runtime_mean * 1e3:>6.2f} ± {res.runtime_std * 1e3:<5.2f}ms | "
              f"{res.nees_mean:>6.2f} | {res.max_diff:>9.1e}")

    print("=" * 70)


# =============================================================================
# Experiment 1: Constant-Velocity Tracking
# =============================================================================

def run_experiment_1(
    T: int = 200,
    n_trajectories: int = 10,
    seed: int = 42,
) -> Dict[str, ExperimentResult]:
    """
    Experiment 1: 2D constant-velocity tracking (nx=4, ny=2)
    """
    print("\n" + "=" * 70)
    print("EXPERIMENT 1: Constant-Velocity Tracking (nx=4, ny=2)")
    print("=" * 70)

    model = make_constant_velocity(dt=1.0, q=0.1, r=1.0)
    results = run_experiment(model, T=T, n_trajectories=n_trajectories, seed=seed)

    print_results(results, "Experiment 1: Constant-Velocity Tracking")
    return results


# =============================================================================
# Experiment 2: Partially Observed Random Walk
# =============================================================================

def run_experiment_2(
    T: int = 200,
    n_trajectories: int = 10,
    seed: int = 42,
) -> Dict[str, ExperimentResult]:
    """
    Experiment 2: Random walk (nx=20) observing half the state (ny=10)
    """
    print("\n" + "=" * 70)
    print("EXPERIMENT 2: Partially Observed Random Walk (nx=20, ny=10)")
    print("=" * 70)

    model = make_partial_random_walk(nx=20, ny=10)
    results = run_experiment(model, T=T, n_trajectories=n_trajectories, seed=seed)

    print_results(results, "Experiment 2: Partially Observed Random Walk")
    return results


# =============================================================================
# Experiment 3: Per-Call Cost
# =============================================================================

def time_calls(
    strategy: str,
    model: LinearGaussianSSM,
    n_calls: int = 2000,
) -> Tuple[float, float]:
    """
    Mean wall-clock time of predict() and of update(), in microseconds.
    """
    kf = make_filter(strategy)
    kf.configure(model.F, model.Q, model.H)
    kf.set_state(model.initial_mean, model.initial_cov)
    z = np.zeros((model.obs_dim, 1))
    R = model.R

    t0 = time.perf_counter()
    for _ in range(n_calls):
        kf.predict()
    t_predict = (time.perf_counter() - t0) / n_calls

    t0 = time.perf_counter()
    for _ in range(n_calls):
        kf.update(z, R)
    t_update = (time.perf_counter() - t0) / n_calls

    return t_predict * 1e6, t_update * 1e6


def run_experiment_3(n_calls: int = 2000) -> Dict[str, Dict[int, Tuple[float, float]]]:
    """
    Experiment 3: predict/update cost versus state dimension
    """
    print("\n" + "=" * 70)
    print("EXPERIMENT 3: Per-Call Cost (µs)")
    print("=" * 70)

    dims = [2, 4, 8, 16, 32]
    timings = {name: {} for name in STRATEGIES}
    for nx in dims:
        model = make_partial_random_walk(nx=nx, ny=max(1, nx // 2))
        for name in STRATEGIES:
            timings[name][nx] = time_calls(name, model, n_calls)

    header = " | ".join(f"nx={nx:<3} pred/upd" for nx in dims)
    print(f"{'Strategy':<14} | {header}")
    print("-" * 70)
    for name, row in timings.items():
        cells = " | ".join(f"{p:6.1f}/{u:6.1f}" for p, u in row.values())
        print(f"{name:<14} | {cells}")
    print("=" * 70)

    return timings


# =============================================================================
# Run All Experiments
# =============================================================================

def run_all_experiments(
    T: int = 200,
    n_trajectories: int = 10,
    seed: int = 42,
) -> Dict:
    """Run all experiments and return results."""

    all_results = {}

    all_results['exp1'] = run_experiment_1(T, n_trajectories, seed)
    all_results['exp2'] = run_experiment_2(T, n_trajectories, seed)
    all_results['exp3'] = run_experiment_3()

    print("\n" + "=" * 70)
    print("ALL EXPERIMENTS COMPLETED")
    print("=" * 70)

    return all_results


if __name__ == "__main__":
    run_all_experiments()
