"""Configuration for the meta-RL adaptation engine.

``MetaRLConfig`` is fixed at engine construction and never mutated afterwards.
Experiment scripts can load it from a JSON file with ``MetaRLConfig.from_json``.
"""
import dataclasses
import json
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional

from .errors import ArgumentError

ALGORITHMS = ('MAML', 'Reptile', 'ProtoNet')

# Numerical constants shared by the adaptation algorithms
FD_EPSILON = 1e-5
GRAD_NORM_TOL = 1e-4
LOSS_DELTA_TOL = 1e-5
SCORE_EPS = 1e-8
DISCOUNT = 0.99


def normalize_algorithm(name: str) -> str:
    """Map a case-insensitive algorithm name onto its canonical tag."""
    for algo in ALGORITHMS:
        if str(name).lower() == algo.lower():
            return algo
    raise ArgumentError(f"Unknown algorithm '{name}', expected one of {ALGORITHMS}")


@dataclass(frozen=True)
class MetaRLConfig:
    """Meta-learning hyperparameters.

    Attributes:
        algorithm: 'MAML', 'Reptile' or 'ProtoNet' (declared, not implemented)
        inner_lr: Learning rate of the per-task inner loop
        outer_lr: Learning rate of the meta-level update
        adaptation_steps: Inner-loop gradient steps per adaptation
        meta_batch_size: Tasks drawn per meta-batch
        task_samples_per_batch: Transitions collected per support/query set
        first_order: Use the first-order meta-gradient
        max_grad_norm: Global norm the meta-gradient is clipped to
        seed: Seed for the engine's random generator (None = nondeterministic)
    """
    algorithm: str = 'MAML'
    inner_lr: float = 0.01
    outer_lr: float = 0.001
    adaptation_steps: int = 5
    meta_batch_size: int = 8
    task_samples_per_batch: int = 10
    first_order: bool = False
    max_grad_norm: float = 10.0
    seed: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, 'algorithm', normalize_algorithm(self.algorithm))
        if int(self.adaptation_steps) < 0:
            raise ArgumentError(f"adaptation_steps must be >= 0, got {self.adaptation_steps}")
        if int(self.meta_batch_size) < 1:
            raise ArgumentError(f"meta_batch_size must be >= 1, got {self.meta_batch_size}")
        if int(self.task_samples_per_batch) < 1:
            raise ArgumentError(
                f"task_samples_per_batch must be >= 1, got {self.task_samples_per_batch}"
            )
        if not self.max_grad_norm > 0:
            raise ArgumentError(f"max_grad_norm must be positive, got {self.max_grad_norm}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to a serializable dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> 'MetaRLConfig':
        """Build a config from a mapping, rejecting unknown keys.

        Args:
            values: Field names to values; missing fields keep their defaults

        Returns:
            MetaRLConfig instance
        """
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ArgumentError(f"Unknown config keys: {unknown}")
        return cls(**dict(values))

    @classmethod
    def from_json(cls, path: str) -> 'MetaRLConfig':
        """Load a config from a JSON object file."""
        with open(path, 'r', encoding='utf-8') as fh:
            values = json.load(fh)
        if not isinstance(values, dict):
            raise ArgumentError(f"Config file {path} must contain a JSON object")
        return cls.from_dict(values)
