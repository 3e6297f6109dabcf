"""
Generic strategy: every algebraic step allocates its own result.

This is the reference rendition of the equations. It favours clarity over
throughput and keeps no state beyond the model and the current estimate.
"""

import numpy as np
from typing import Optional, Tuple

from .base import KalmanFilter
from ..models.base import ModelConfig, FilterState
from ..utils.linalg import invert


class GenericKalmanFilter(KalmanFilter):
    """
    Standard Kalman filter using plain NumPy expressions.

    Example:
        kf = GenericKalmanFilter()
        kf.configure(F, Q, H)
        kf.set_state(x0, P0)
        kf.predict()
        kf.update(z, R)
    """

    name = "generic"

    def __init__(self, symmetry_tol: Optional[float] = None):
        super().__init__(symmetry_tol=symmetry_tol)
        self._state: Optional[FilterState] = None

    def _configure(self, model: ModelConfig):
        self._state = None

    def _set_state(self, x: np.ndarray, P: np.ndarray):
        self._state = FilterState(x=x.copy(), P=P.copy())

    def _predict(self):
        F, Q = self._model.F, self._model.Q
        x, P = self._state.x, self._state.P

        self._state.x = F @ x
        self._state.P = F @ P @ F.T + Q

    def _update(self, z: np.ndarray, R: np.ndarray):
        H = self._model.H
        x, P = self._state.x, self._state.P

        # Innovation and its covariance
        y = z - H @ x
        HP = H @ P
        S = HP @ H.T + R

        # Kalman gain; raises before the estimate is touched
        K = P @ H.T @ invert(S)

        x_new = x + K @ y
        P_new = P - K @ HP

        self._state.x = x_new
        self._state.P = P_new

    def _current(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._state.x, self._state.P
