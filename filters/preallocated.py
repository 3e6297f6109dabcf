"""
Preallocated strategy: the shape of the computation is fixed at configure
time, only its values are refreshed on each call.

Every intermediate, including the finiteness mask used by the inversion, is
sized once from (n, m) and reused; predict/update write through NumPy `out=`
arguments and an in-place Cholesky inversion. No array buffer is reallocated
after configure; the only per-call objects are the small status tuples the
LAPACK wrappers return. The filter exclusively owns every buffer and never
hands one to a caller.
"""

import numpy as np
from typing import Dict, Optional, Tuple

from .base import KalmanFilter
from ..models.base import ModelConfig
from ..utils.linalg import invert_into


class PreallocatedKalmanFilter(KalmanFilter):
    """
    Kalman filter that reuses the buffers sized at configure.

    Buffers (n = state dim, m = observation dim):
        x [n, 1], P [n, n]                     estimate
        Fx [n, 1], FP [n, n]                   predict scratch
        Hx [m, 1], y [m, 1], HP [m, n]         innovation
        S [m, m], S_inv [m, m] (Fortran order) innovation covariance
        S_finite [m, m] (bool)                 finiteness mask for S
        PHt [n, m], K [n, m]                   gain
        Ky [n, 1], KHP [n, n]                  correction
    """

    name = "preallocated"

    def __init__(self, symmetry_tol: Optional[float] = None):
        super().__init__(symmetry_tol=symmetry_tol)
        self._buffers: Dict[str, np.ndarray] = {}

    def _configure(self, model: ModelConfig):
        n, m = model.n, model.m

        def empty(*shape, order="C"):
            return np.empty(shape, dtype=np.float64, order=order)

        self._buffers = {
            "x": np.zeros((n, 1)),
            "P": np.zeros((n, n)),
            "Fx": empty(n, 1),
            "FP": empty(n, n),
            "Hx": empty(m, 1),
            "y": empty(m, 1),
            "HP": empty(m, n),
            "S": empty(m, m),
            "S_inv": empty(m, m, order="F"),
            "S_finite": np.empty((m, m), dtype=bool),
            "PHt": empty(n, m),
            "K": empty(n, m),
            "Ky": empty(n, 1),
            "KHP": empty(n, n),
        }
        # Views, taken once
        self._Ft = model.F.T
        self._Ht = model.H.T

    def buffer_ids(self) -> Dict[str, int]:
        """Identity of every owned buffer, for checking that none is reallocated."""
        return {key: id(buf) for key, buf in self._buffers.items()}

    def _set_state(self, x: np.ndarray, P: np.ndarray):
        np.copyto(self._buffers["x"], x)
        np.copyto(self._buffers["P"], P)

    def _predict(self):
        b = self._buffers
        F, Q = self._model.F, self._model.Q

        # x <- F x
        np.matmul(F, b["x"], out=b["Fx"])
        np.copyto(b["x"], b["Fx"])

        # P <- (F P) F' + Q
        np.matmul(F, b["P"], out=b["FP"])
        np.matmul(b["FP"], self._Ft, out=b["P"])
        np.add(b["P"], Q, out=b["P"])

    def _update(self, z: np.ndarray, R: np.ndarray):
        b = self._buffers
        H = self._model.H

        # y <- z - H x
        np.matmul(H, b["x"], out=b["Hx"])
        np.subtract(z, b["Hx"], out=b["y"])

        # S <- (H P) H' + R
        np.matmul(H, b["P"], out=b["HP"])
        np.matmul(b["HP"], self._Ht, out=b["S"])
        np.add(b["S"], R, out=b["S"])

        # K <- (P H') S^{-1}; a singular S raises here, before x/P change
        invert_into(b["S"], b["S_inv"], b["S_finite"])
        np.matmul(b["P"], self._Ht, out=b["PHt"])
        np.matmul(b["PHt"], b["S_inv"], out=b["K"])

        # x <- x + K y
        np.matmul(b["K"], b["y"], out=b["Ky"])
        np.add(b["x"], b["Ky"], out=b["x"])

        # P <- P - K (H P), with H P taken before P changes
        np.matmul(b["K"], b["HP"], out=b["KHP"])
        np.subtract(b["P"], b["KHP"], out=b["P"])

    def _current(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._buffers["x"], self._buffers["P"]
