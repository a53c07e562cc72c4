"""Fast few-shot adaptation at test time.

A reduced-budget inner loop for online use: a fixed number of unconditional
gradient steps on a handful of transitions, with no query-set evaluation and
no early stopping.
"""
import logging

import numpy as np

from core.errors import ArgumentError
from core.types import ExperienceBatch, MetaRLTask

from .inner_loop import InnerLoopAdapter

logger = logging.getLogger(__name__)

DEFAULT_FAST_STEPS = 3


class FastAdapter:
    """Few-shot adaptation from the current meta-parameters.

    Args:
        inner_loop: Inner-loop adapter supplying the gradient and step size
    """

    def __init__(self, inner_loop: InnerLoopAdapter):
        self.inner_loop = inner_loop

    def adapt(self, task: MetaRLTask, params: np.ndarray, few_shot_batch: ExperienceBatch,
              max_steps: int = DEFAULT_FAST_STEPS) -> np.ndarray:
        """Adapt ``params`` to ``task`` using ``few_shot_batch``.

        With ``max_steps == 0`` the parameters come back unchanged.

        Returns:
            Adapted parameter vector
        """
        if max_steps < 0:
            raise ArgumentError(f"max_steps must be >= 0, got {max_steps}")
        adapted = self.inner_loop.descend(params, few_shot_batch, num_steps=max_steps)
        logger.debug(f"Fast adaptation on task {task.task_id}: {max_steps} steps")
        return adapted
