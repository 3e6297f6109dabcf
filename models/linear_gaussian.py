"""
Linear Gaussian State Space Model.

x_t = F @ x_{t-1} + v_t,  v_t ~ N(0, Q)
z_t = H @ x_t + w_t,      w_t ~ N(0, R)

Bundles a ModelConfig with a fixed R and an initial distribution, so that
trajectories can be simulated and filters run in batch.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Optional
from numpy.random import Generator

from .base import ModelConfig
from ..utils.linalg import as_matrix, check_shape


@dataclass
class LinearGaussianSSM:
    """
    Linear Gaussian state space model.

    Attributes:
        config: ModelConfig holding F, Q, H
        obs_cov: [ny, ny] Observation noise covariance R
        initial_mean: [nx] Initial state mean
        initial_cov: [nx, nx] Initial state covariance
    """
    config: ModelConfig
    obs_cov: np.ndarray
    initial_mean: np.ndarray
    initial_cov: np.ndarray

    # Precomputed Cholesky factors (jittered for PSD inputs)
    _initial_cov_chol: Optional[np.ndarray] = field(default=None, repr=False)
    _dynamics_cov_chol: Optional[np.ndarray] = field(default=None, repr=False)
    _obs_cov_chol: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self):
        nx, ny = self.state_dim, self.obs_dim
        self.obs_cov = as_matrix(self.obs_cov, "R")
        check_shape(self.obs_cov, (ny, ny), "R")
        self.initial_mean = np.asarray(self.initial_mean, dtype=np.float64).reshape(-1)
        check_shape(self.initial_mean, (nx,), "initial_mean")
        self.initial_cov = as_matrix(self.initial_cov, "initial_cov")
        check_shape(self.initial_cov, (nx, nx), "initial_cov")
        self._precompute_matrices()

    def _precompute_matrices(self):
        """Compute Cholesky factors used for sampling."""
        eps = 1e-12
        nx = self.state_dim
        ny = self.obs_dim

        if self._initial_cov_chol is None:
            self._initial_cov_chol = np.linalg.cholesky(self.initial_cov + eps * np.eye(nx))
        if self._dynamics_cov_chol is None:
            self._dynamics_cov_chol = np.linalg.cholesky(self.Q + eps * np.eye(nx))
        if self._obs_cov_chol is None:
            self._obs_cov_chol = np.linalg.cholesky(self.obs_cov + eps * np.eye(ny))

    @property
    def state_dim(self) -> int:
        return self.config.n

    @property
    def obs_dim(self) -> int:
        return self.config.m

    @property
    def F(self) -> np.ndarray:
        return self.config.F

    @property
    def Q(self) -> np.ndarray:
        return self.config.Q

    @property
    def H(self) -> np.ndarray:
        return self.config.H

    @property
    def R(self) -> np.ndarray:
        return self.obs_cov

    # -------------------------------------------------------------------------
    # Sampling methods
    # -------------------------------------------------------------------------

    def sample_initial(self, n: int, rng: Generator) -> np.ndarray:
        """
        Sample n states from the initial distribution.

        Returns:
            x: [n, nx] samples
        """
        noise = rng.standard_normal((n, self.state_dim))
        return self.initial_mean + noise @ self._initial_cov_chol.T

    def sample_dynamics(self, x: np.ndarray, rng: Generator) -> np.ndarray:
        """
        Sample x_t from p(x_t | x_{t-1}).

        Args:
            x: [N, nx] current states

        Returns:
            x_next: [N, nx] next states
        """
        noise = rng.standard_normal(x.shape)
        return x @ self.F.T + noise @ self._dynamics_cov_chol.T

    def sample_observation(self, x: np.ndarray, rng: Generator) -> np.ndarray:
        """
        Sample z from p(z | x) for a single state.

        Args:
            x: [nx] state

        Returns:
            z: [ny] observation
        """
        noise = rng.standard_normal(self.obs_dim)
        return self.H @ x + self._obs_cov_chol @ noise

    def simulate(self, T: int, rng: Generator) -> tuple:
        """
        Simulate a trajectory from the model.

        Returns:
            states: [T+1, nx] states (x_0, ..., x_T)
            observations: [T, ny] observations (z_1, ..., z_T)
        """
        states = np.zeros((T + 1, self.state_dim))
        observations = np.zeros((T, self.obs_dim))

        states[0] = self.sample_initial(1, rng)[0]

        for t in range(T):
            states[t + 1] = self.sample_dynamics(states[t:t+1], rng)[0]
            observations[t] = self.sample_observation(states[t + 1], rng)

        return states, observations

    def __repr__(self) -> str:
        return f"LinearGaussianSSM(nx={self.state_dim}, ny={self.obs_dim})"


def make_lgssm(
    F: np.ndarray,
    H: np.ndarray,
    Q: np.ndarray,
    R: np.ndarray,
    m0: np.ndarray,
    P0: np.ndarray,
) -> LinearGaussianSSM:
    """
    Create a Linear Gaussian State Space Model.

    Args:
        F: [nx, nx] State transition matrix
        H: [ny, nx] Observation matrix
        Q: [nx, nx] Process noise covariance
        R: [ny, ny] Observation noise covariance
        m0: [nx] Initial state mean
        P0: [nx, nx] Initial state covariance

    Returns:
        LinearGaussianSSM instance
    """
    return LinearGaussianSSM(
        config=ModelConfig(F=F, Q=Q, H=H),
        obs_cov=R,
        initial_mean=m0,
        initial_cov=P0,
    )


def make_lgssm_from_chol(
    F: np.ndarray,
    H: np.ndarray,
    B: np.ndarray,
    D: np.ndarray,
    m0: np.ndarray,
    P0: np.ndarray,
) -> LinearGaussianSSM:
    """
    Create LGSSM from noise Cholesky factors.

    Q = B @ B.T
    R = D @ D.T

    Args:
        F: [nx, nx] State transition matrix
        H: [ny, nx] Observation matrix
        B: [nx, nv] Process noise factor (Q = B @ B.T)
        D: [ny, nw] Observation noise factor (R = D @ D.T)
        m0: [nx] Initial state mean
        P0: [nx, nx] Initial state covariance
    """
    B = np.asarray(B, dtype=np.float64)
    D = np.asarray(D, dtype=np.float64)

    return make_lgssm(F, H, B @ B.T, D @ D.T, m0, P0)


def make_constant_velocity(
    dt: float = 1.0,
    q: float = 0.1,
    r: float = 1.0,
    n_dims: int = 2,
    p0: float = 1.0,
) -> LinearGaussianSSM:
    """
    Constant-velocity model observing position only.

    State layout: [p_1, ..., p_d, v_1, ..., v_d] with d = n_dims.
    Q is the discretized white-noise-acceleration covariance scaled by q.

    Args:
        dt: Sample period
        q: Process noise intensity
        r: Position measurement variance
        n_dims: Number of spatial dimensions
        p0: Initial covariance scale
    """
    d = n_dims
    I = np.eye(d)
    Z = np.zeros((d, d))

    F = np.block([[I, dt * I], [Z, I]])
    H = np.hstack([I, Z])
    Q = q * np.block([
        [dt**3 / 3 * I, dt**2 / 2 * I],
        [dt**2 / 2 * I, dt * I],
    ])
    R = r * I

    return make_lgssm(F, H, Q, R, np.zeros(2 * d), p0 * np.eye(2 * d))
