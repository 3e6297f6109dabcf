"""
Filter interface, lifecycle and result containers.

Every strategy implements the same contract:

    configure(F, Q, H) -> set_state(x, P) -> (predict() | update(z, R))*

and differs only in how it performs the linear algebra. Validation, the
lifecycle state machine and read access live here so that all strategies
fail in exactly the same way.
"""

import time
import warnings
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from ..errors import (
    CovarianceDriftWarning,
    NotConfiguredError,
    NotInitializedError,
)
from ..models.base import ModelConfig, FilterState
from ..utils.metrics import symmetry_error


class FilterStatus(Enum):
    """Lifecycle of a filter instance."""
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"    # model bound, no estimate yet
    INITIALIZED = "initialized"  # set_state called, no step taken since
    RUNNING = "running"          # at least one predict/update since set_state


@dataclass
class FilterResult:
    """
    Container for the output of a batch run.

    Attributes:
        means: [T+1, nx] Filtered state means (m_0, m_1, ..., m_T)
        covariances: [T+1, nx, nx] Filtered state covariances
        strategy: Name of the strategy that produced the run
        elapsed: Wall-clock seconds spent in predict/update
    """
    means: np.ndarray
    covariances: np.ndarray
    strategy: Optional[str] = None
    elapsed: Optional[float] = None

    @property
    def T(self) -> int:
        """Number of time steps (observations)."""
        return self.means.shape[0] - 1

    @property
    def state_dim(self) -> int:
        """State dimension."""
        return self.means.shape[1]

    def rmse(self, true_states: np.ndarray) -> np.ndarray:
        """
        Compute per-timestep RMSE against true states.

        Args:
            true_states: [T+1, nx] True state trajectory

        Returns:
            rmse: [T+1] RMSE at each time step
        """
        squared_error = (self.means - true_states) ** 2
        return np.sqrt(np.mean(squared_error, axis=1))

    def mean_rmse(self, true_states: np.ndarray) -> float:
        """Average RMSE over all time steps."""
        return float(np.mean(self.rmse(true_states)))

    def position_rmse(
        self,
        true_states: np.ndarray,
        position_indices: Optional[list] = None
    ) -> np.ndarray:
        """
        Compute RMSE for position components only.

        Args:
            true_states: [T+1, nx] True state trajectory
            position_indices: Indices of the position components.
                              Default: [0, 1] for 2D position.

        Returns:
            rmse: [T+1] Position RMSE at each time step
        """
        if position_indices is None:
            position_indices = [0, 1]

        pos_error = self.means[:, position_indices] - true_states[:, position_indices]
        return np.sqrt(np.sum(pos_error ** 2, axis=1))


class KalmanFilter(ABC):
    """
    Linear Kalman filter behind a strategy-independent contract.

    predict:  x <- F x,            P <- F P F' + Q
    update:   y <- z - H x,        S <- H P H' + R
              K <- P H' S^{-1}
              x <- x + K y,        P <- P - K (H P)

    Subclasses implement the underscored hooks; the public methods validate
    inputs and enforce the lifecycle before delegating.

    Args:
        symmetry_tol: If set, warn with CovarianceDriftWarning whenever the
            relative asymmetry of P exceeds this value after a step. P is
            never corrected.
    """

    name = "abstract"

    def __init__(self, symmetry_tol: Optional[float] = None):
        self.symmetry_tol = symmetry_tol
        self._model: Optional[ModelConfig] = None
        self._status = FilterStatus.UNCONFIGURED
        self.counts = {"predict": 0, "update": 0}

    # -------------------------------------------------------------------------
    # Strategy hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def _configure(self, model: ModelConfig):
        """Allocate or compile whatever the strategy needs for `model`."""

    @abstractmethod
    def _set_state(self, x: np.ndarray, P: np.ndarray):
        """Install copies of validated x [n, 1] and P [n, n]."""

    @abstractmethod
    def _predict(self):
        """Time update."""

    @abstractmethod
    def _update(self, z: np.ndarray, R: np.ndarray):
        """Measurement update with validated z [m, 1] and R [m, m]."""

    @abstractmethod
    def _current(self) -> Tuple[np.ndarray, np.ndarray]:
        """Live (x, P) arrays. Never handed to callers without copying."""

    # -------------------------------------------------------------------------
    # Public contract
    # -------------------------------------------------------------------------

    def configure(self, F, Q, H):
        """
        Bind the time-invariant model.

        Calling configure again discards any current estimate and returns
        the filter to CONFIGURED.

        Args:
            F: [n, n] State transition matrix
            Q: [n, n] Process noise covariance
            H: [m, n] Observation matrix

        Raises:
            DimensionError: F not square, H.cols != n, or Q not n x n
        """
        model = ModelConfig(F=F, Q=Q, H=H)
        self._configure(model)
        self._model = model
        self._status = FilterStatus.CONFIGURED
        self._reset_counts()

    def set_state(self, x, P):
        """
        Install the initial mean and covariance (copied, never aliased).

        Args:
            x: [n, 1] or [n] State mean
            P: [n, n] State covariance

        Raises:
            NotConfiguredError: configure has not been called
            DimensionError: x or P has the wrong shape
        """
        if self._model is None:
            raise NotConfiguredError("configure() must be called before set_state()")
        x, P = self._model.check_state(x, P)
        self._set_state(x, P)
        self._status = FilterStatus.INITIALIZED
        self._reset_counts()

    def predict(self):
        """Advance the estimate one step without a measurement."""
        self._require_state("predict")
        self._predict()
        self._status = FilterStatus.RUNNING
        self.counts["predict"] += 1
        self._check_drift("predict")

    def update(self, z, R):
        """
        Incorporate a measurement.

        Args:
            z: [m, 1] or [m] Observation
            R: [m, m] Observation noise covariance

        Raises:
            NotInitializedError: set_state has not been called
            DimensionError: z or R has the wrong shape
            SingularMatrixError: H P H' + R is not invertible; the
                estimate is left unchanged
        """
        self._require_state("update")
        z, R = self._model.check_measurement(z, R)
        self._update(z, R)
        self._status = FilterStatus.RUNNING
        self.counts["update"] += 1
        self._check_drift("update")

    def step(self, z, R):
        """predict() followed by update(z, R)."""
        self.predict()
        self.update(z, R)

    def get_state(self) -> np.ndarray:
        """Copy of the current mean, shape [n, 1]."""
        self._require_state("get_state")
        return self._current()[0].copy()

    def get_covariance(self) -> np.ndarray:
        """Copy of the current covariance, shape [n, n]."""
        self._require_state("get_covariance")
        return self._current()[1].copy()

    def snapshot(self) -> FilterState:
        """Copy of the full estimate."""
        self._require_state("snapshot")
        x, P = self._current()
        return FilterState(x=x, P=P).copy()

    # -------------------------------------------------------------------------
    # Batch driver
    # -------------------------------------------------------------------------

    def filter(self, model, observations: np.ndarray) -> FilterResult:
        """
        Run the filter over a sequence of observations.

        Configures the filter from `model`, starts from its initial
        distribution and applies predict/update per observation.

        Args:
            model: LinearGaussianSSM
            observations: [T, ny] Observations (z_1, ..., z_T)

        Returns:
            FilterResult with means [T+1, nx] and covariances [T+1, nx, nx]
        """
        observations = np.asarray(observations, dtype=np.float64)
        if observations.ndim == 1:
            observations = observations[:, np.newaxis]
        T = observations.shape[0]
        nx = model.state_dim

        self.configure(model.F, model.Q, model.H)
        self.set_state(model.initial_mean, model.initial_cov)

        means = np.zeros((T + 1, nx))
        covariances = np.zeros((T + 1, nx, nx))
        x, P = self._current()
        means[0], covariances[0] = x[:, 0], P

        elapsed = 0.0
        for t in range(T):
            start = time.perf_counter()
            self.predict()
            self.update(observations[t], model.R)
            elapsed += time.perf_counter() - start

            x, P = self._current()
            means[t + 1], covariances[t + 1] = x[:, 0], P

        return FilterResult(
            means=means,
            covariances=covariances,
            strategy=self.name,
            elapsed=elapsed,
        )

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def status(self) -> FilterStatus:
        return self._status

    @property
    def model(self) -> Optional[ModelConfig]:
        return self._model

    @property
    def state_dim(self) -> Optional[int]:
        return None if self._model is None else self._model.n

    @property
    def obs_dim(self) -> Optional[int]:
        return None if self._model is None else self._model.m

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_state(self, operation: str):
        if self._status in (FilterStatus.UNCONFIGURED, FilterStatus.CONFIGURED):
            raise NotInitializedError(f"set_state() must be called before {operation}()")

    def _reset_counts(self):
        self.counts = {"predict": 0, "update": 0}

    def _check_drift(self, operation: str):
        if self.symmetry_tol is None:
            return
        asym = symmetry_error(self._current()[1])
        if asym > self.symmetry_tol:
            warnings.warn(
                f"{self.name}: P asymmetry {asym:.3e} after {operation}() "
                f"exceeds {self.symmetry_tol:.1e}; P is not corrected",
                CovarianceDriftWarning,
                stacklevel=3,
            )

    def __repr__(self) -> str:
        if self._model is None:
            return f"{type(self).__name__}(status={self._status.value})"
        return (
            f"{type(self).__name__}(status={self._status.value}, "
            f"n={self._model.n}, m={self._model.m})"
        )
