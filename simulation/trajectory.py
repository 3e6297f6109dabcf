"""
Synthetic trajectories for exercising the filters.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Dict, Any, Iterator, List
from numpy.random import Generator, default_rng

from ..models.linear_gaussian import LinearGaussianSSM


@dataclass
class Trajectory:
    """
    Simulated (or recorded) ground truth plus measurements.

    Attributes:
        states: [T+1, nx] True states (x_0, x_1, ..., x_T)
        observations: [T, ny] Measurements (z_1, ..., z_T)
        metadata: Optional dictionary for additional info
    """
    states: np.ndarray
    observations: np.ndarray
    metadata: Optional[Dict[str, Any]] = None

    @property
    def T(self) -> int:
        """Number of measurement steps."""
        return self.observations.shape[0]

    @property
    def state_dim(self) -> int:
        return self.states.shape[1]

    @property
    def obs_dim(self) -> int:
        return self.observations.shape[1]

    def measurements(self) -> Iterator[np.ndarray]:
        """Yield each z_t as an [ny, 1] column, ready for update()."""
        for z in self.observations:
            yield z.reshape(-1, 1)

    def save(self, path: str):
        """Save to a .npz archive."""
        np.savez(
            path,
            states=self.states,
            observations=self.observations,
            metadata=self.metadata,
        )

    @classmethod
    def load(cls, path: str) -> "Trajectory":
        """Load from a .npz archive written by save()."""
        data = np.load(path, allow_pickle=True)
        metadata = data["metadata"].item() if "metadata" in data.files else None
        return cls(
            states=data["states"],
            observations=data["observations"],
            metadata=metadata,
        )


def simulate(
    model: LinearGaussianSSM,
    T: int,
    seed: Optional[int] = None,
    rng: Optional[Generator] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Trajectory:
    """
    Simulate a trajectory from a linear Gaussian model.

    Args:
        model: LinearGaussianSSM instance
        T: Number of time steps
        seed: Random seed (ignored if rng is provided)
        rng: NumPy random generator (optional)
        metadata: Optional metadata to attach
    """
    if rng is None:
        rng = default_rng(seed)

    states, observations = model.simulate(T, rng)
    return Trajectory(states=states, observations=observations, metadata=metadata)


def simulate_batch(
    model: LinearGaussianSSM,
    T: int,
    n_trajectories: int,
    seed: Optional[int] = None,
) -> List[Trajectory]:
    """Simulate independent trajectories sharing one random stream."""
    rng = default_rng(seed)
    return [
        simulate(model, T, rng=rng, metadata={"trajectory_idx": i})
        for i in range(n_trajectories)
    ]
