"""
Basic test script for the kalman_strategies library.

Run: python test_basic.py
"""

import os
import tempfile

import numpy as np
from numpy.random import default_rng

from kalman_strategies.models import make_lgssm, make_constant_velocity, make_lgssm_from_chol
from kalman_strategies.simulation import simulate, simulate_batch, Trajectory
from kalman_strategies.filters import STRATEGIES, make_filter
from kalman_strategies.utils import compute_rmse, compute_nees, symmetry_error, max_abs_difference


def test_strategies_lgssm():
    """Run every strategy on a 2D tracking model."""
    print("=" * 60)
    print("Testing Strategies on a Linear Gaussian State Space Model")
    print("=" * 60)

    # State: [x, y, vx, vy], observe [x, y]
    model = make_constant_velocity(dt=1.0, q=0.1, r=0.01, p0=0.1)
    print(f"Model: {model}")

    T = 50
    rng = default_rng(42)
    trajectory = simulate(model, T, rng=rng)

    print(f"Simulated {T} steps")
    print(f"States shape: {trajectory.states.shape}")
    print(f"Observations shape: {trajectory.observations.shape}")

    results = {name: make_filter(name).filter(model, trajectory.observations)
               for name in STRATEGIES}

    print("\n" + "-" * 40)
    print("Results:")
    print("-" * 40)
    for name, result in results.items():
        nees = compute_nees(trajectory.states, result.means, result.covariances)
        print(f"{name:12s} - Mean RMSE: {result.mean_rmse(trajectory.states):.4f}, "
              f"Avg NEES: {nees.mean():.2f}, Time: {result.elapsed * 1e3:.2f} ms")

    ref = results["generic"]
    for name in ("preallocated", "compiled"):
        assert max_abs_difference(results[name].means, ref.means) < 1e-9, \
            f"{name} means should match generic"
        assert max_abs_difference(results[name].covariances, ref.covariances) < 1e-9, \
            f"{name} covariances should match generic"

    # Consistency: NEES averages to the state dimension
    nees = compute_nees(trajectory.states, ref.means, ref.covariances)
    assert 1.0 < nees.mean() < 10.0, f"NEES mean {nees.mean():.2f} far from nx=4"

    print("\n✓ All strategies working correctly!")


def test_model_simulation():
    """Test model simulation and sampling."""
    print("\n" + "=" * 60)
    print("Testing Model Simulation")
    print("=" * 60)

    # Simple 1D random walk
    F = np.array([[1.0]])
    H = np.array([[1.0]])
    Q = np.array([[0.1]])
    R = np.array([[0.5]])
    m0 = np.array([0.0])
    P0 = np.array([[1.0]])

    model = make_lgssm(F, H, Q, R, m0, P0)

    rng = default_rng(0)
    x0 = model.sample_initial(1000, rng)
    assert x0.shape == (1000, 1), f"Expected (1000, 1), got {x0.shape}"
    print(f"Initial samples: mean={x0.mean():.3f}, std={x0.std():.3f}")
    assert abs(x0.std() - 1.0) < 0.1

    x1 = model.sample_dynamics(x0, rng)
    assert x1.shape == (1000, 1)
    print(f"Propagated samples: mean={x1.mean():.3f}, std={x1.std():.3f}")
    assert abs(x1.std() - np.sqrt(1.1)) < 0.1

    z = model.sample_observation(x0[0], rng)
    assert z.shape == (1,), f"Expected (1,), got {z.shape}"
    print(f"Observation: {z[0]:.3f}")

    # Square-root parameterization gives the same covariances
    model_chol = make_lgssm_from_chol(F, H, np.sqrt(Q), np.sqrt(R), m0, P0)
    assert np.allclose(model_chol.Q, Q) and np.allclose(model_chol.R, R)

    print("\n✓ Model simulation working correctly!")


def test_trajectory_io():
    """Test trajectory batches and save/load."""
    print("\n" + "=" * 60)
    print("Testing Trajectory I/O")
    print("=" * 60)

    model = make_constant_velocity()
    batch = simulate_batch(model, T=20, n_trajectories=3, seed=7)
    assert len(batch) == 3
    assert batch[2].metadata == {"trajectory_idx": 2}
    assert not np.allclose(batch[0].states, batch[1].states)

    traj = batch[0]
    assert (traj.T, traj.state_dim, traj.obs_dim) == (20, 4, 2)
    columns = list(traj.measurements())
    assert len(columns) == 20 and columns[0].shape == (2, 1)

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "traj.npz")
        traj.save(path)
        loaded = Trajectory.load(path)

    np.testing.assert_array_equal(loaded.states, traj.states)
    np.testing.assert_array_equal(loaded.observations, traj.observations)
    assert loaded.metadata == traj.metadata

    print("\n✓ Trajectory I/O working correctly!")


def test_step_by_step_matches_batch():
    """Manual predict/update loop reproduces filter()."""
    print("\n" + "=" * 60)
    print("Testing Step-by-Step Driving")
    print("=" * 60)

    model = make_constant_velocity(q=0.5, r=2.0)
    trajectory = simulate(model, T=40, seed=3)

    for name in STRATEGIES:
        batch = make_filter(name).filter(model, trajectory.observations)

        kf = make_filter(name)
        kf.configure(model.F, model.Q, model.H)
        kf.set_state(model.initial_mean, model.initial_cov)
        means = [kf.get_state()[:, 0]]
        for z in trajectory.measurements():
            kf.step(z, model.R)
            means.append(kf.get_state()[:, 0])

        np.testing.assert_array_equal(np.array(means), batch.means)
        rmse_steps, rmse_mean = compute_rmse(trajectory.states, batch.means)
        print(f"{name:12s} - RMSE: {rmse_mean:.4f} over {len(rmse_steps)} steps")

    print("\n✓ Step-by-step driving working correctly!")


def test_small_observation_noise():
    """Covariances stay usable when measurements are almost exact."""
    print("\n" + "=" * 60)
    print("Testing Small Observation Noise Stability")
    print("=" * 60)

    model = make_constant_velocity(q=0.1, r=1e-6)
    trajectory = simulate(model, T=200, seed=11)

    for name in STRATEGIES:
        result = make_filter(name).filter(model, trajectory.observations)
        asym = max(symmetry_error(P) for P in result.covariances)
        min_eig = min(np.linalg.eigvalsh(0.5 * (P + P.T)).min() for P in result.covariances)
        print(f"{name:12s} - max asymmetry: {asym:.2e}, min eigenvalue: {min_eig:.2e}")

        assert np.all(np.isfinite(result.covariances))
        assert asym < 1e-8
        assert min_eig > -1e-9

    print("\n✓ Small observation noise handled!")


def main():
    """Run all tests."""
    print("\n" + "#" * 60)
    print("# Kalman Strategies Library Tests")
    print("#" * 60)

    tests = [
        test_model_simulation,
        test_trajectory_io,
        test_strategies_lgssm,
        test_step_by_step_matches_batch,
        test_small_observation_noise,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"\n✗ {test.__name__} FAILED: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print("\n" + "#" * 60)
    print(f"# Results: {passed} passed, {failed} failed")
    print("#" * 60)

    return failed == 0


if __name__ == "__main__":
    success = main()
    exit(0 if success else 1)
