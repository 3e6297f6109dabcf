"""
Kalman Filter Strategies.

A NumPy/SciPy linear Kalman filter offered through three interchangeable
execution strategies:
- GenericKalmanFilter: allocating linear algebra (reference)
- PreallocatedKalmanFilter: buffers sized once, reused every call
- CompiledKalmanFilter: formulas compiled once, replayed every call
"""

from . import errors
from . import expression
from . import filters
from . import models
from . import simulation
from . import utils

from .errors import (
    KalmanFilterError,
    DimensionError,
    SingularMatrixError,
    NotInitializedError,
    NotConfiguredError,
    CovarianceDriftWarning,
)
from .filters import (
    KalmanFilter,
    FilterStatus,
    FilterResult,
    GenericKalmanFilter,
    PreallocatedKalmanFilter,
    CompiledKalmanFilter,
    make_filter,
)
from .models import ModelConfig, FilterState

__version__ = "0.1.0"
