"""
Dense linear-algebra helpers shared by the filter strategies.

Inversion of the innovation covariance goes through LAPACK potrf/potri
(SciPy bindings): S must be symmetric positive definite, every strategy
applies the same test, and the preallocated strategy can invert into a
buffer it already owns.
"""

import numpy as np
from scipy.linalg import lapack
from typing import Optional, Tuple

from ..errors import DimensionError, SingularMatrixError


_potrf, _potri = lapack.get_lapack_funcs(("potrf", "potri"), dtype=np.float64)

EPS = np.finfo(np.float64).eps


# =============================================================================
# Coercion and shape checks
# =============================================================================

def as_matrix(a, name: str) -> np.ndarray:
    """
    Coerce to a 2-D float64 array.

    No copy is made when `a` already is a float64 ndarray.
    """
    arr = np.asarray(a, dtype=np.float64)
    if arr.ndim != 2:
        raise DimensionError(f"{name} must be a 2-D array, got shape {arr.shape}")
    return arr


def as_column(v, n: int, name: str) -> np.ndarray:
    """
    Coerce a vector to an [n, 1] column.

    A 1-D input of length n is reshaped (a view when possible).
    """
    arr = np.asarray(v, dtype=np.float64)
    if arr.shape == (n,):
        arr = arr.reshape(n, 1)
    if arr.shape != (n, 1):
        raise DimensionError(f"{name} must have shape ({n}, 1), got {arr.shape}")
    return arr


def check_shape(arr: np.ndarray, shape: Tuple[int, ...], name: str):
    """Raise DimensionError unless arr.shape == shape."""
    if arr.shape != tuple(shape):
        raise DimensionError(
            f"{name} must have shape {tuple(shape)}, got {arr.shape}"
        )


# =============================================================================
# Inversion
# =============================================================================

def invert_into(
    S: np.ndarray,
    out: np.ndarray,
    finite: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Invert symmetric positive definite S into the existing buffer `out`.

    Only the upper triangle of S is read. `out` should be a
    Fortran-ordered float64 array so that LAPACK can overwrite it in
    place. S itself is never modified.

    Args:
        S: [m, m] Matrix to invert
        out: [m, m] Destination buffer
        finite: Optional [m, m] bool buffer for the finiteness check

    Returns:
        out, holding S^{-1}

    Raises:
        SingularMatrixError: S is non-finite, not positive definite, or
            has a Cholesky pivot below m * eps of its diagonal entry.
    """
    m = S.shape[0]
    check_shape(S, (m, m), "matrix to invert")
    check_shape(out, (m, m), "inverse buffer")

    if finite is None:
        finite = np.isfinite(S)
    else:
        np.isfinite(S, out=finite)
    if not finite.all():
        raise SingularMatrixError("matrix contains non-finite values")

    out[...] = S
    c, info = _potrf(out, lower=0, clean=0, overwrite_a=1)
    if info > 0:
        raise SingularMatrixError(
            f"matrix is not positive definite (leading minor {info})"
        )
    if info < 0:
        raise ValueError(f"potrf: illegal value in argument {-info}")

    # Pivot u_jj^2 is what remains of S_jj after the other channels are
    # explained; relative to S_jj the test does not depend on units
    tol = m * EPS
    for j in range(m):
        if c[j, j] * c[j, j] <= tol * S[j, j]:
            raise SingularMatrixError(
                f"matrix is numerically singular (channel {j} is a "
                f"combination of the others)"
            )

    inv, info = _potri(c, lower=0, overwrite_c=1)
    if info != 0:
        raise SingularMatrixError(f"potri failed (info={info})")

    # potri works in place only on Fortran-contiguous buffers
    if inv is not out:
        out[...] = inv

    # potri fills the upper triangle; mirror it
    for j in range(m - 1):
        out[j + 1:, j] = out[j, j + 1:]

    # Positive but denormal pivots overflow in the inverse
    np.isfinite(out, out=finite)
    if not finite.all():
        raise SingularMatrixError("inverse overflows; matrix is numerically singular")
    return out


def invert(S: np.ndarray) -> np.ndarray:
    """Allocating counterpart of invert_into."""
    S = np.asarray(S, dtype=np.float64)
    if S.ndim != 2:
        raise DimensionError(f"matrix to invert must be 2-D, got shape {S.shape}")
    out = np.empty(S.shape, dtype=np.float64, order="F")
    return invert_into(S, out)
