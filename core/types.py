"""Data model of the meta-RL engine.

Tasks, experience batches, adaptation contexts and the records produced by
adaptation runs. Vectors are float64 numpy arrays.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import ArgumentError

SAMPLING_STRATEGIES = ('uniform', 'prioritized', 'curriculum')


@dataclass(frozen=True)
class MetaRLTask:
    """A single task instance of a task family.

    Attributes:
        task_id: Unique identifier, used as the history key
        environment: Environment name
        parameters: Numeric description of the task instance
        state_space: Dimension of the state vectors
        action_space: Number of discrete actions
        episode_length: Episode horizon, also the curriculum difficulty
        reward_scale: Multiplier applied to environment rewards
    """
    task_id: str
    environment: str
    parameters: Tuple[float, ...] = ()
    state_space: int = 1
    action_space: int = 1
    episode_length: int = 1
    reward_scale: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, 'parameters', tuple(float(p) for p in self.parameters))


@dataclass
class ExperienceBatch:
    """Parallel sequences of N >= 1 transitions."""
    states: np.ndarray
    actions: np.ndarray
    rewards: np.ndarray
    next_states: np.ndarray
    dones: np.ndarray
    advantages: Optional[np.ndarray] = None

    def __post_init__(self):
        self.states = np.atleast_2d(np.asarray(self.states, dtype=np.float64))
        self.next_states = np.atleast_2d(np.asarray(self.next_states, dtype=np.float64))
        actions = np.asarray(self.actions).reshape(-1)
        if actions.dtype.kind not in 'biu':
            as_float = actions.astype(np.float64)
            if not np.all(np.isfinite(as_float) & (as_float == np.floor(as_float))):
                raise ArgumentError(f"actions must be whole-number indices, got {actions.tolist()}")
        self.actions = actions.astype(np.int64)
        self.rewards = np.asarray(self.rewards, dtype=np.float64).reshape(-1)
        self.dones = np.asarray(self.dones, dtype=bool).reshape(-1)
        if self.advantages is not None:
            self.advantages = np.asarray(self.advantages, dtype=np.float64).reshape(-1)

        if self.states.ndim != 2:
            raise ArgumentError(f"states must be a sequence of vectors, got shape {self.states.shape}")
        n = self.states.shape[0]
        if n < 1:
            raise ArgumentError("ExperienceBatch must contain at least one transition")
        lengths = {
            'actions': len(self.actions),
            'rewards': len(self.rewards),
            'next_states': self.next_states.shape[0],
            'dones': len(self.dones),
        }
        if self.advantages is not None:
            lengths['advantages'] = len(self.advantages)
        mismatched = {k: v for k, v in lengths.items() if v != n}
        if mismatched:
            raise ArgumentError(f"Batch sequences must all have length {n}, got {mismatched}")

    def __len__(self) -> int:
        return self.states.shape[0]


@dataclass
class AdaptationContext:
    """Support/query sets for one adaptation call.

    ``baseline_performance``, ``target_performance`` and ``adaptation_budget``
    are carried for callers; the step count is taken from the config.
    """
    support_set: ExperienceBatch
    query_set: ExperienceBatch
    baseline_performance: float = 0.0
    target_performance: float = 0.0
    adaptation_budget: int = 0


class AdaptationStatus(str, Enum):
    RUNNING = 'running'
    CONVERGED = 'converged'
    BUDGET_EXHAUSTED = 'budget_exhausted'


@dataclass
class ConvergenceMetrics:
    """Per-step trace of one inner-loop run (one entry per executed step)."""
    loss_history: List[float] = field(default_factory=list)
    reward_history: List[float] = field(default_factory=list)
    gradient_norms: List[float] = field(default_factory=list)
    parameter_change_magnitude: float = 0.0
    converged: bool = False
    convergence_step: int = -1
    status: AdaptationStatus = AdaptationStatus.RUNNING

    @property
    def steps_executed(self) -> int:
        return len(self.loss_history)


@dataclass(frozen=True)
class MetaRLResult:
    """Outcome of one adaptation call; stored in the adaptation history."""
    task_id: str
    adapted_policy: np.ndarray
    adaptation_score: float
    adaptation_steps: int
    pre_adaptation_reward: float
    post_adaptation_reward: float
    convergence_metrics: ConvergenceMetrics

    def __post_init__(self):
        policy = np.array(self.adapted_policy, dtype=np.float64, copy=True)
        policy.setflags(write=False)
        object.__setattr__(self, 'adapted_policy', policy)


@dataclass
class MetaGradient:
    """Aggregated meta-gradient of one task batch.

    ``value_gradient`` is always zero; ``meta_loss`` equals ``outer_loop_loss``.
    """
    policy_gradient: np.ndarray
    value_gradient: np.ndarray
    meta_loss: float
    inner_loop_losses: List[float]
    outer_loop_loss: float


@dataclass
class TaskDistribution:
    """Population of tasks plus the strategy used to sample meta-batches.

    ``difficulty_range`` and ``diversity_metric`` are informational only.
    """
    task_family: str
    tasks: Sequence[MetaRLTask]
    sampling_strategy: str = 'uniform'
    difficulty_range: Tuple[float, float] = (0.0, 1.0)
    diversity_metric: float = 0.0

    def __post_init__(self):
        self.tasks = list(self.tasks)
        if self.sampling_strategy not in SAMPLING_STRATEGIES:
            raise ArgumentError(
                f"Unknown sampling strategy '{self.sampling_strategy}', "
                f"expected one of {SAMPLING_STRATEGIES}"
            )
