"""Meta-batch sampling from a task distribution.

Strategies:
    uniform:     shuffle, take the first min(meta_batch_size, N) tasks
    prioritized: draw with replacement, weight 1 - last adaptation score
                 (1.0 for tasks without history)
    curriculum:  sort by episode length, take the shortest tasks
"""
import logging
from typing import List, Optional, Sequence

import numpy as np

from core.errors import EmptyTaskDistributionError, NotInitializedError
from core.types import MetaRLTask, TaskDistribution

from .history import AdaptationHistoryStore

logger = logging.getLogger(__name__)

# Smallest weight a task keeps in prioritized sampling
PRIORITY_FLOOR = 1e-6


class TaskSampler:
    """Draws meta-batches from the configured task distribution.

    Args:
        history: Adaptation history consulted by the prioritized strategy
        meta_batch_size: Upper bound on tasks per batch
        rng: Random generator for the uniform and prioritized strategies
    """

    def __init__(self, history: AdaptationHistoryStore, meta_batch_size: int = 8,
                 rng: Optional[np.random.Generator] = None):
        self.history = history
        self.meta_batch_size = meta_batch_size
        self.rng = rng if rng is not None else np.random.default_rng()
        self.distribution: Optional[TaskDistribution] = None

    def setup(self, distribution: TaskDistribution) -> None:
        if len(distribution.tasks) == 0:
            raise EmptyTaskDistributionError("Task distribution must contain at least one task")
        self.distribution = distribution
        logger.info(
            f"Task distribution '{distribution.task_family}': {len(distribution.tasks)} tasks, "
            f"{distribution.sampling_strategy} sampling"
        )

    def sample(self) -> List[MetaRLTask]:
        if self.distribution is None:
            raise NotInitializedError("Task distribution not initialized")

        tasks = self.distribution.tasks
        batch_size = min(self.meta_batch_size, len(tasks))
        strategy = self.distribution.sampling_strategy
        if strategy == 'uniform':
            return self._uniform(tasks, batch_size)
        if strategy == 'prioritized':
            return self._prioritized(tasks, batch_size)
        return self._curriculum(tasks, batch_size)

    def priorities(self, tasks: Sequence[MetaRLTask]) -> np.ndarray:
        """Sampling weight of each task: 1 - last score, 1.0 without history."""
        weights = []
        for task in tasks:
            last = self.history.latest(task.task_id)
            weights.append(1.0 if last is None else 1.0 - last.adaptation_score)
        return np.asarray(weights, dtype=np.float64)

    def _uniform(self, tasks: Sequence[MetaRLTask], batch_size: int) -> List[MetaRLTask]:
        order = self.rng.permutation(len(tasks))
        return [tasks[i] for i in order[:batch_size]]

    def _prioritized(self, tasks: Sequence[MetaRLTask], batch_size: int) -> List[MetaRLTask]:
        raw = self.priorities(tasks)
        if np.any(raw <= 0):
            logger.warning(
                f"{int(np.sum(raw <= 0))} task(s) with non-positive priority, "
                f"flooring at {PRIORITY_FLOOR}"
            )
        weights = np.maximum(raw, PRIORITY_FLOOR)
        total = float(weights.sum())

        sampled = []
        for _ in range(batch_size):
            # Roulette wheel; rounding can leave r > 0 after the walk, which picks the last task
            r = self.rng.random() * total
            chosen = tasks[-1]
            for task, weight in zip(tasks, weights):
                r -= weight
                if r <= 0:
                    chosen = task
                    break
            sampled.append(chosen)
        return sampled

    def _curriculum(self, tasks: Sequence[MetaRLTask], batch_size: int) -> List[MetaRLTask]:
        return sorted(tasks, key=lambda t: t.episode_length)[:batch_size]
