"""
Synthetic ground truth and measurements for driving the filters.
"""

from .trajectory import Trajectory, simulate, simulate_batch

__all__ = ["Trajectory", "simulate", "simulate_batch"]
