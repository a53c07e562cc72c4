"""Meta-RL Module: MAML adaptation on flat meta-parameter vectors

MAML adapts a copy of the shared meta-parameters to a single task with the
inner loop and scores the result; the meta-parameters themselves are left
untouched (the outer update is applied separately from a MetaGradient).

References:
- MAML: Finn et al. "Model-Agnostic Meta-Learning for Fast Adaptation of Deep Networks"
"""
import logging

import numpy as np

from adaptation.inner_loop import InnerLoopAdapter
from core.config import SCORE_EPS
from core.parameters import MetaParameterVector
from core.types import AdaptationContext, ConvergenceMetrics, MetaRLResult, MetaRLTask

from .history import AdaptationHistoryStore

logger = logging.getLogger(__name__)


def adaptation_score(pre_reward: float, post_reward: float) -> float:
    """Normalized reward delta ``(post - pre) / (|pre| + 1e-8)``."""
    return (post_reward - pre_reward) / (abs(pre_reward) + SCORE_EPS)


def build_result(task: MetaRLTask, adapted: np.ndarray, metrics: ConvergenceMetrics,
                 pre_reward: float, post_reward: float) -> MetaRLResult:
    """Package an adaptation run; steps taken is the number of executed inner steps."""
    return MetaRLResult(
        task_id=task.task_id,
        adapted_policy=adapted,
        adaptation_score=adaptation_score(pre_reward, post_reward),
        adaptation_steps=metrics.steps_executed,
        pre_adaptation_reward=pre_reward,
        post_adaptation_reward=post_reward,
        convergence_metrics=metrics,
    )


class MAMLAdapter:
    """Model-Agnostic Meta-Learning adaptation for one task at a time.

    Args:
        meta_parameters: Shared meta-parameters (read only here)
        inner_loop: Inner-loop adapter
        history: Store every result is appended to

    Example:
        >>> maml = MAMLAdapter(meta_parameters, inner_loop, history)
        >>> result = maml.adapt(task, context)
        >>> result.adapted_policy, result.adaptation_score
    """

    def __init__(self, meta_parameters: MetaParameterVector, inner_loop: InnerLoopAdapter,
                 history: AdaptationHistoryStore):
        self.meta_parameters = meta_parameters
        self.inner_loop = inner_loop
        self.history = history

    @property
    def evaluator(self):
        return self.inner_loop.evaluator

    def adapt(self, task: MetaRLTask, context: AdaptationContext) -> MetaRLResult:
        """Adapt the meta-parameters to ``task`` without modifying them.

        Args:
            task: Task being adapted to
            context: Support and query sets

        Returns:
            MetaRLResult with adapted parameters and convergence trace
        """
        theta = self.meta_parameters.require()
        adapted, metrics = self.inner_loop.run(theta, context)

        pre_reward = self.evaluator.evaluate(theta, context.support_set)
        post_reward = self.evaluator.evaluate(adapted, context.query_set)

        result = build_result(task, adapted, metrics, pre_reward, post_reward)
        self.history.record(result)
        logger.info(
            f"MAML task {task.task_id}: {result.adaptation_steps} steps "
            f"({metrics.status.value}), score={result.adaptation_score:.4f}"
        )
        return result
