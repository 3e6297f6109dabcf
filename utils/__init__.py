"""
Utility functions.
"""

from .linalg import (
    as_matrix,
    as_column,
    check_shape,
    invert,
    invert_into,
)

from .metrics import (
    compute_rmse,
    compute_nees,
    symmetry_error,
    max_abs_difference,
)

__all__ = [
    "as_matrix",
    "as_column",
    "check_shape",
    "invert",
    "invert_into",
    "compute_rmse",
    "compute_nees",
    "symmetry_error",
    "max_abs_difference",
]
