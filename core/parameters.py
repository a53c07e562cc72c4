"""Shared meta-parameter vector.

This is the engine's only long-lived mutable state. Writes (initialization,
import, Reptile updates, applied meta-gradients) are serialized by a
re-entrant lock; readers work on snapshot copies.
"""
import contextlib
import logging
import threading
from typing import Iterator, Optional, Sequence

import numpy as np

from .errors import ArgumentError, InitializationError, UninitializedParametersError

logger = logging.getLogger(__name__)

INIT_METHODS = ('xavier', 'he', 'uniform')


def init_variance(dimensions: int, init_method: str) -> float:
    if init_method == 'xavier':
        return 2.0 / dimensions
    if init_method == 'he':
        return 2.0 / np.sqrt(dimensions)
    if init_method == 'uniform':
        return 0.1
    raise InitializationError(
        f"Unknown init method '{init_method}', expected one of {INIT_METHODS}"
    )


def initialize_meta_parameters(dimensions: int, init_method: str = 'xavier',
                               rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Sample a zero-mean parameter vector.

    Each entry is ``(U(0, 1) - 0.5) * sqrt(variance)`` where the variance is
    2/d for 'xavier', 2/sqrt(d) for 'he' and 0.1 for 'uniform'.

    Args:
        dimensions: Vector length, must be positive
        init_method: 'xavier', 'he' or 'uniform'
        rng: Random generator (a fresh default generator if None)

    Returns:
        Array of shape (dimensions,)
    """
    try:
        dimensions = int(dimensions)
    except (TypeError, ValueError) as e:
        raise InitializationError(f"Invalid dimensions {dimensions!r}: {e}") from e
    if dimensions <= 0:
        raise InitializationError(f"dimensions must be positive, got {dimensions}")
    variance = init_variance(dimensions, init_method)
    rng = rng if rng is not None else np.random.default_rng()
    return (rng.random(dimensions) - 0.5) * np.sqrt(variance)


class MetaParameterVector:
    """Owner of the meta-policy parameters.

    Example:
        >>> params = MetaParameterVector()
        >>> params.initialize(16, 'xavier')
        >>> theta = params.snapshot()
        >>> params.step(theta - 1.0, lr=0.1)
    """

    def __init__(self, values: Optional[Sequence[float]] = None):
        self._lock = threading.RLock()
        self._values = np.zeros(0) if values is None else np.array(values, dtype=np.float64)

    def __len__(self) -> int:
        return len(self._values)

    @property
    def is_initialized(self) -> bool:
        return len(self._values) > 0

    def initialize(self, dimensions: int, init_method: str = 'xavier',
                   rng: Optional[np.random.Generator] = None) -> None:
        values = initialize_meta_parameters(dimensions, init_method, rng)
        with self._lock:
            self._values = values
        logger.info(f"Initialized {dimensions} meta-parameters ({init_method})")

    def snapshot(self) -> np.ndarray:
        """Copy of the current values."""
        with self._lock:
            return self._values.copy()

    def require(self) -> np.ndarray:
        """Snapshot, failing if the vector was never initialized."""
        values = self.snapshot()
        if len(values) == 0:
            raise UninitializedParametersError("Meta-parameters not initialized")
        return values

    def load(self, values: Sequence[float]) -> None:
        """Replace the vector with a copy of ``values``; the dimension is not checked."""
        new_values = np.array(values, dtype=np.float64).reshape(-1)
        with self._lock:
            self._values = new_values

    @contextlib.contextmanager
    def writing(self) -> Iterator[np.ndarray]:
        """Hold the write lock and yield the live array for in-place updates."""
        with self._lock:
            yield self._values

    def step(self, direction: np.ndarray, lr: float) -> np.ndarray:
        """In-place ``theta -= lr * direction``; returns a snapshot of the result."""
        with self.writing() as values:
            if len(values) != len(direction):
                raise ArgumentError(
                    f"Update of size {len(direction)} does not match {len(values)} meta-parameters"
                )
            values -= lr * np.asarray(direction, dtype=np.float64)
            return values.copy()
