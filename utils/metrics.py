"""
Evaluation metrics and numerical diagnostics for filter runs.
"""

import numpy as np
from typing import Tuple


def compute_rmse(
    xs_true: np.ndarray,
    xs_est: np.ndarray,
) -> Tuple[np.ndarray, float]:
    """
    Compute Root Mean Square Error per time step.

    Args:
        xs_true: [T+1, nx] True states
        xs_est: [T+1, nx] or [T, nx] Estimated states

    Returns:
        rmse_per_step: [T] RMSE at each time step
        rmse_mean: Mean RMSE over all time steps
    """
    # Handle alignment
    if xs_est.shape[0] == xs_true.shape[0] - 1:
        xs_true_aligned = xs_true[1:]
    else:
        xs_true_aligned = xs_true

    T = min(xs_true_aligned.shape[0], xs_est.shape[0])

    rmse_per_step = np.sqrt(np.mean((xs_true_aligned[:T] - xs_est[:T])**2, axis=1))

    return rmse_per_step, np.mean(rmse_per_step)


def compute_nees(
    xs_true: np.ndarray,
    means: np.ndarray,
    covariances: np.ndarray,
) -> np.ndarray:
    """
    Normalized Estimation Error Squared per time step.

    For a consistent filter the NEES is chi-square distributed with nx
    degrees of freedom, so its average should be close to nx.

    Args:
        xs_true: [T+1, nx] True states
        means: [T+1, nx] Filtered means
        covariances: [T+1, nx, nx] Filtered covariances

    Returns:
        nees: [T+1] e_t^T P_t^{-1} e_t
    """
    errors = xs_true - means
    solved = np.linalg.solve(covariances, errors[..., np.newaxis])[..., 0]
    return np.sum(errors * solved, axis=1)


def symmetry_error(P: np.ndarray) -> float:
    """
    Relative asymmetry max|P - P^T| / max|P|.

    Returns 0.0 for an all-zero matrix.
    """
    scale = np.max(np.abs(P))
    if scale == 0.0:
        return 0.0
    return float(np.max(np.abs(P - P.T)) / scale)


def max_abs_difference(a: np.ndarray, b: np.ndarray) -> float:
    """Largest elementwise |a - b|, used to compare strategy outputs."""
    return float(np.max(np.abs(np.asarray(a) - np.asarray(b))))
