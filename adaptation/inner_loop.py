"""Inner-loop adaptation shared by MAML, Reptile and fast adaptation.

A run starts from a copy of the meta-parameters and performs plain gradient
descent on the support set:

    for step in range(num_steps):
        grad = gradient(adapted, support_set)
        adapted -= inner_lr * grad
        record loss/reward on the query set
        stop if ||grad|| < 1e-4 or |loss[step] - loss[step-1]| < 1e-5

The run ends CONVERGED when the stopping rule fires and BUDGET_EXHAUSTED when
the step budget runs out.
"""
import logging
from typing import Optional, Tuple

import numpy as np

from core.config import GRAD_NORM_TOL, LOSS_DELTA_TOL
from core.gradients import GradientEstimator, vector_distance, vector_norm
from core.policy import PolicyEvaluator
from core.types import (
    AdaptationContext, AdaptationStatus, ConvergenceMetrics, ExperienceBatch,
)

logger = logging.getLogger(__name__)


class InnerLoopAdapter:
    """Bounded gradient descent on a task's support set.

    Args:
        evaluator: Supplies loss and reward estimates on the query set
        gradient_fn: Gradient estimator for the support-set loss
        inner_lr: Step size of the inner loop
        num_steps: Default step budget

    Example:
        >>> inner = InnerLoopAdapter(evaluator, gradient_fn, inner_lr=0.01, num_steps=5)
        >>> adapted, metrics = inner.run(theta, context)
        >>> metrics.status
        <AdaptationStatus.CONVERGED: 'converged'>
    """

    def __init__(self, evaluator: PolicyEvaluator, gradient_fn: GradientEstimator,
                 inner_lr: float = 0.01, num_steps: int = 5):
        self.evaluator = evaluator
        self.gradient_fn = gradient_fn
        self.inner_lr = inner_lr
        self.num_steps = num_steps

    def descend(self, params: np.ndarray, batch: ExperienceBatch,
                num_steps: Optional[int] = None) -> np.ndarray:
        """Run exactly ``num_steps`` untracked gradient steps on ``batch``.

        Args:
            params: Starting parameters (not modified)
            batch: Data the loss is computed on
            num_steps: Step count (default: ``self.num_steps``)

        Returns:
            Adapted parameters (a new array)
        """
        steps = self.num_steps if num_steps is None else num_steps
        adapted = np.array(params, dtype=np.float64, copy=True)
        for _ in range(steps):
            adapted = adapted - self.inner_lr * self.gradient_fn(adapted, batch)
        return adapted

    def run(self, params: np.ndarray, context: AdaptationContext,
            num_steps: Optional[int] = None) -> Tuple[np.ndarray, ConvergenceMetrics]:
        """Tracked inner loop with early stopping on convergence.

        Args:
            params: Starting parameters (not modified)
            context: Support set to descend on, query set to evaluate on
            num_steps: Step budget (default: ``self.num_steps``)

        Returns:
            Tuple of (adapted parameters, convergence metrics)
        """
        steps = self.num_steps if num_steps is None else num_steps
        start = np.array(params, dtype=np.float64, copy=True)
        adapted = start.copy()
        metrics = ConvergenceMetrics()

        for step in range(steps):
            gradient = self.gradient_fn(adapted, context.support_set)
            grad_norm = vector_norm(gradient)
            metrics.gradient_norms.append(grad_norm)

            adapted = adapted - self.inner_lr * gradient

            metrics.reward_history.append(self.evaluator.evaluate(adapted, context.query_set))
            loss = self.evaluator.loss(adapted, context.query_set)
            metrics.loss_history.append(loss)
            logger.debug(f"Inner step {step}: loss={loss:.6f}, grad_norm={grad_norm:.6f}")

            if grad_norm < GRAD_NORM_TOL or (
                step > 0
                and abs(metrics.loss_history[step] - metrics.loss_history[step - 1]) < LOSS_DELTA_TOL
            ):
                metrics.converged = True
                metrics.convergence_step = step
                break

        metrics.status = (
            AdaptationStatus.CONVERGED if metrics.converged else AdaptationStatus.BUDGET_EXHAUSTED
        )
        metrics.parameter_change_magnitude = vector_distance(start, adapted)
        return adapted, metrics
