"""Meta-gradient aggregation over a batch of tasks.

For each (task, context) pair the inner loop runs the full step budget from a
read-only snapshot of the meta-parameters. The per-task contribution is

    first order:   g_q(adapted)
    otherwise:     g_q(adapted) - inner_lr * g_s(adapted)

where g_q/g_s are the query/support gradients at the adapted parameters. The
second form is a finite stand-in for the MAML Hessian-vector term, not a true
second-order product. Contributions are averaged over the batch and the result
is clipped to ``max_grad_norm``.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

import numpy as np

from adaptation.inner_loop import InnerLoopAdapter
from core.config import MetaRLConfig
from core.errors import ArgumentError
from core.gradients import clip_by_global_norm
from core.parameters import MetaParameterVector
from core.types import AdaptationContext, MetaGradient, MetaRLTask

logger = logging.getLogger(__name__)


class MetaGradientComputer:
    """Computes (but does not apply) the meta-gradient of a task batch.

    Args:
        meta_parameters: Shared meta-parameters (read only here)
        inner_loop: Inner-loop adapter, also the source of the gradient estimator
        config: Supplies first_order, inner_lr, adaptation_steps and max_grad_norm
        max_workers: Run per-task inner loops on a thread pool when > 1
    """

    def __init__(self, meta_parameters: MetaParameterVector, inner_loop: InnerLoopAdapter,
                 config: MetaRLConfig, max_workers: Optional[int] = None):
        self.meta_parameters = meta_parameters
        self.inner_loop = inner_loop
        self.config = config
        self.max_workers = max_workers
        self._pool: Optional[ThreadPoolExecutor] = None
        if max_workers and max_workers > 1:
            self._pool = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix='meta-gradient')

    def _task_contribution(self, theta: np.ndarray,
                           context: AdaptationContext) -> Tuple[float, float, np.ndarray]:
        evaluator = self.inner_loop.evaluator
        gradient_fn = self.inner_loop.gradient_fn

        adapted = self.inner_loop.descend(theta, context.support_set,
                                          num_steps=self.config.adaptation_steps)
        inner_loss = evaluator.loss(adapted, context.support_set)
        query_loss = evaluator.loss(adapted, context.query_set)

        contribution = gradient_fn(adapted, context.query_set)
        if not self.config.first_order:
            contribution = contribution - self.config.inner_lr * gradient_fn(adapted, context.support_set)
        return inner_loss, query_loss, contribution

    def compute(self, task_batch: Sequence[MetaRLTask],
                contexts: Sequence[AdaptationContext]) -> MetaGradient:
        """Aggregate the meta-gradient over ``task_batch``.

        Args:
            task_batch: Tasks of the meta-batch
            contexts: One adaptation context per task, same order

        Returns:
            MetaGradient with the clipped policy gradient
        """
        if len(task_batch) != len(contexts):
            raise ArgumentError(
                f"Got {len(task_batch)} tasks but {len(contexts)} adaptation contexts"
            )
        if len(task_batch) == 0:
            raise ArgumentError("Meta-gradient requires at least one task")

        theta = self.meta_parameters.require()
        theta.setflags(write=False)

        if self._pool is not None and len(contexts) > 1:
            outputs = list(self._pool.map(lambda ctx: self._task_contribution(theta, ctx), contexts))
        else:
            outputs = [self._task_contribution(theta, ctx) for ctx in contexts]

        n_tasks = len(task_batch)
        inner_loop_losses: List[float] = []
        outer_loop_loss = 0.0
        policy_gradient = np.zeros(len(theta))
        for inner_loss, query_loss, contribution in outputs:
            inner_loop_losses.append(inner_loss)
            outer_loop_loss += query_loss
            policy_gradient += contribution / n_tasks
        outer_loop_loss /= n_tasks

        policy_gradient, grad_norm = clip_by_global_norm(policy_gradient, self.config.max_grad_norm)
        if grad_norm > self.config.max_grad_norm:
            logger.info(f"Clipped meta-gradient norm {grad_norm:.4f} -> {self.config.max_grad_norm}")
        logger.info(
            f"Meta-gradient over {n_tasks} tasks: outer loss={outer_loop_loss:.6f}, "
            f"{'first' if self.config.first_order else 'second'}-order"
        )

        return MetaGradient(
            policy_gradient=policy_gradient,
            value_gradient=np.zeros(len(theta)),
            meta_loss=outer_loop_loss,
            inner_loop_losses=inner_loop_losses,
            outer_loop_loss=outer_loop_loss,
        )
