"""Reptile: first-order meta-learning by moving toward adapted solutions.

After the inner loop, the shared meta-parameters take one step toward the
task-adapted parameters:

    meta_grad = theta - adapted
    theta    <- theta - outer_lr * meta_grad

The update holds the meta-parameter write lock, so concurrent Reptile calls on
one engine serialize their meta-updates.

Reference: Nichol et al., 2018 - "On First-Order Meta-Learning Algorithms"
"""
import logging

from adaptation.inner_loop import InnerLoopAdapter
from core.parameters import MetaParameterVector
from core.types import AdaptationContext, MetaRLResult, MetaRLTask

from .history import AdaptationHistoryStore
from .meta_maml import build_result

logger = logging.getLogger(__name__)


class ReptileAdapter:
    """Reptile adaptation plus meta-update for one task.

    Args:
        meta_parameters: Shared meta-parameters (updated in place)
        inner_loop: Inner-loop adapter
        history: Store every result is appended to
        outer_lr: Step size toward the adapted parameters
    """

    def __init__(self, meta_parameters: MetaParameterVector, inner_loop: InnerLoopAdapter,
                 history: AdaptationHistoryStore, outer_lr: float = 0.001):
        self.meta_parameters = meta_parameters
        self.inner_loop = inner_loop
        self.history = history
        self.outer_lr = outer_lr

    def adapt(self, task: MetaRLTask, context: AdaptationContext) -> MetaRLResult:
        theta = self.meta_parameters.require()
        adapted, metrics = self.inner_loop.run(theta, context)

        with self.meta_parameters.writing() as live:
            live -= self.outer_lr * (live - adapted)
            updated = live.copy()

        # Rewards are read after the meta-update
        evaluator = self.inner_loop.evaluator
        pre_reward = evaluator.evaluate(updated, context.support_set)
        post_reward = evaluator.evaluate(adapted, context.query_set)

        result = build_result(task, adapted, metrics, pre_reward, post_reward)
        self.history.record(result)
        logger.info(
            f"Reptile task {task.task_id}: {result.adaptation_steps} steps, "
            f"score={result.adaptation_score:.4f}, "
            f"change={metrics.parameter_change_magnitude:.6f}"
        )
        return result
