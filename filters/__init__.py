"""
Kalman filter strategies.

All three strategies implement the same KalmanFilter contract and produce
the same numbers up to floating-point evaluation order.
"""

from typing import Literal

from .base import FilterResult, FilterStatus, KalmanFilter
from .generic import GenericKalmanFilter
from .preallocated import PreallocatedKalmanFilter
from .compiled import CompiledKalmanFilter, PREDICT_STATEMENTS, UPDATE_STATEMENTS

STRATEGIES = {
    "generic": GenericKalmanFilter,
    "preallocated": PreallocatedKalmanFilter,
    "compiled": CompiledKalmanFilter,
}


def make_filter(
    strategy: Literal["generic", "preallocated", "compiled"] = "generic",
    **kwargs,
) -> KalmanFilter:
    """
    Instantiate a filter by strategy name.

    Args:
        strategy: One of "generic", "preallocated", "compiled"
        **kwargs: Passed to the filter constructor (e.g. symmetry_tol)
    """
    try:
        cls = STRATEGIES[strategy]
    except KeyError:
        raise ValueError(
            f"Unknown strategy '{strategy}'. Available: {list(STRATEGIES)}"
        ) from None
    return cls(**kwargs)


__all__ = [
    "FilterResult",
    "FilterStatus",
    "KalmanFilter",
    "GenericKalmanFilter",
    "PreallocatedKalmanFilter",
    "CompiledKalmanFilter",
    "PREDICT_STATEMENTS",
    "UPDATE_STATEMENTS",
    "STRATEGIES",
    "make_filter",
]
