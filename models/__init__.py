"""
Model definitions.
"""

from .base import ModelConfig, FilterState
from .linear_gaussian import (
    LinearGaussianSSM,
    make_lgssm,
    make_lgssm_from_chol,
    make_constant_velocity,
)

__all__ = [
    "ModelConfig",
    "FilterState",
    "LinearGaussianSSM",
    "make_lgssm",
    "make_lgssm_from_chol",
    "make_constant_velocity",
]
