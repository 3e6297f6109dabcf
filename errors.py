"""
Exceptions and warnings raised by the Kalman filter strategies.

All errors surface synchronously from the failing call and are never
retried internally. Shape errors are detected before any state mutation.
"""

import numpy as np


class KalmanFilterError(Exception):
    """Base class for all filter errors."""


class DimensionError(KalmanFilterError, ValueError):
    """Array shapes are inconsistent with the configured dimensions."""


class SingularMatrixError(KalmanFilterError, np.linalg.LinAlgError):
    """
    Innovation covariance S is singular or not positive definite.

    The filter state is left exactly as it was before the failing call.
    Recovery (e.g. inflating R and retrying with new inputs) is up to the
    caller.
    """


class NotInitializedError(KalmanFilterError, RuntimeError):
    """predict/update/read called before set_state."""


class NotConfiguredError(NotInitializedError):
    """set_state called before configure."""


class CovarianceDriftWarning(RuntimeWarning):
    """P has drifted away from symmetry beyond the requested tolerance."""
