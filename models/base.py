"""
Model and state containers shared by every filter strategy.

Dynamics:    x_t = F @ x_{t-1} + v_t,  v_t ~ N(0, Q)
Observation: z_t = H @ x_t + w_t,      w_t ~ N(0, R)

R is supplied per measurement and is therefore not part of ModelConfig.
"""

import numpy as np
from dataclasses import dataclass

from ..errors import DimensionError
from ..utils.linalg import as_matrix, as_column, check_shape


@dataclass(frozen=True, eq=False)
class ModelConfig:
    """
    Fixed, time-invariant linear model.

    The arrays are private float64 copies marked read-only, so a caller
    mutating its own F/Q/H afterwards cannot change a configured filter.

    Attributes:
        F: [n, n] State transition matrix
        Q: [n, n] Process noise covariance
        H: [m, n] Observation matrix
    """
    F: np.ndarray
    Q: np.ndarray
    H: np.ndarray

    def __post_init__(self):
        F = as_matrix(self.F, "F")
        Q = as_matrix(self.Q, "Q")
        H = as_matrix(self.H, "H")

        n = F.shape[1]
        if n == 0 or F.shape[0] != n:
            raise DimensionError(f"F must be square and non-empty, got shape {F.shape}")
        if H.shape[0] == 0 or H.shape[1] != n:
            raise DimensionError(
                f"H must have {n} columns and at least one row, got shape {H.shape}"
            )
        check_shape(Q, (n, n), "Q")

        for name, arr in (("F", F), ("Q", Q), ("H", H)):
            arr = arr.copy()
            arr.flags.writeable = False
            object.__setattr__(self, name, arr)

    @property
    def n(self) -> int:
        """State dimension."""
        return self.F.shape[0]

    @property
    def m(self) -> int:
        """Observation dimension."""
        return self.H.shape[0]

    def check_state(self, x, P) -> tuple:
        """
        Validate an (x, P) pair against this model.

        Args:
            x: [n] or [n, 1] State mean
            P: [n, n] State covariance

        Returns:
            x: [n, 1] float64 column (may alias the input)
            P: [n, n] float64 matrix (may alias the input)
        """
        x = as_column(x, self.n, "x")
        P = as_matrix(P, "P")
        check_shape(P, (self.n, self.n), "P")
        return x, P

    def check_measurement(self, z, R) -> tuple:
        """
        Validate a (z, R) pair against this model.

        Args:
            z: [m] or [m, 1] Observation
            R: [m, m] Observation noise covariance

        Returns:
            z: [m, 1] float64 column (may alias the input)
            R: [m, m] float64 matrix (may alias the input)
        """
        z = as_column(z, self.m, "z")
        R = as_matrix(R, "R")
        check_shape(R, (self.m, self.m), "R")
        return z, R

    def __repr__(self) -> str:
        return f"ModelConfig(n={self.n}, m={self.m})"


@dataclass
class FilterState:
    """
    Current estimate held by a filter.

    Attributes:
        x: [n, 1] State mean
        P: [n, n] State covariance
    """
    x: np.ndarray
    P: np.ndarray

    @property
    def state_dim(self) -> int:
        return self.x.shape[0]

    def copy(self) -> "FilterState":
        """Deep copy of both arrays."""
        return FilterState(x=self.x.copy(), P=self.P.copy())

    def __repr__(self) -> str:
        return f"FilterState(x={self.x.ravel()}, P_diag={np.diag(self.P)})"
