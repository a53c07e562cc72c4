"""Gradient estimators for flat parameter vectors.

``FiniteDifferenceGradient`` treats the evaluator's loss as a black box and
costs two loss evaluations per parameter. Evaluators that can differentiate
their own loss advertise ``has_analytic_gradient`` and are served by
``AnalyticGradient`` instead; ``make_gradient_estimator`` picks between them.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

import numpy as np

from .config import FD_EPSILON
from .policy import PolicyEvaluator
from .types import ExperienceBatch


def vector_norm(vec: np.ndarray) -> float:
    return float(np.linalg.norm(vec))


def vector_distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(np.asarray(a) - np.asarray(b)))


def clip_by_global_norm(grad: np.ndarray, max_norm: float) -> Tuple[np.ndarray, float]:
    """Rescale ``grad`` so its L2 norm does not exceed ``max_norm``.

    Returns:
        Tuple of (clipped gradient, norm before clipping)
    """
    norm = vector_norm(grad)
    if norm > max_norm:
        grad = grad * (max_norm / norm)
    return grad, norm


class GradientEstimator:
    """Callable mapping (params, batch) to d loss / d params."""

    name = 'base'

    def __init__(self, evaluator: PolicyEvaluator):
        self.evaluator = evaluator

    def __call__(self, params: np.ndarray, batch: ExperienceBatch) -> np.ndarray:
        raise NotImplementedError


class FiniteDifferenceGradient(GradientEstimator):
    """Symmetric finite differences, one parameter at a time.

    Args:
        evaluator: Provides the loss being differentiated
        epsilon: Perturbation size
        max_workers: Evaluate components on a thread pool when > 1. Each
            component is independent so the result matches the sequential pass.
            The pool is created once and reused by every call.
    """

    name = 'finite_difference'

    def __init__(self, evaluator: PolicyEvaluator, epsilon: float = FD_EPSILON,
                 max_workers: Optional[int] = None):
        super().__init__(evaluator)
        self.epsilon = epsilon
        self.max_workers = max_workers
        self._pool: Optional[ThreadPoolExecutor] = None
        if max_workers and max_workers > 1:
            self._pool = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix='fd-gradient')

    def _component(self, params: np.ndarray, batch: ExperienceBatch, i: int) -> float:
        plus = params.copy()
        plus[i] += self.epsilon
        minus = params.copy()
        minus[i] -= self.epsilon
        loss_plus = self.evaluator.loss(plus, batch)
        loss_minus = self.evaluator.loss(minus, batch)
        return (loss_plus - loss_minus) / (2 * self.epsilon)

    def __call__(self, params: np.ndarray, batch: ExperienceBatch) -> np.ndarray:
        params = np.asarray(params, dtype=np.float64)
        indices = range(len(params))
        if self._pool is not None and len(params) > 1:
            values = list(self._pool.map(lambda i: self._component(params, batch, i), indices))
        else:
            values = [self._component(params, batch, i) for i in indices]
        return np.asarray(values, dtype=np.float64)

    def close(self) -> None:
        """Shut down the worker pool, if any."""
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None


class AnalyticGradient(GradientEstimator):
    """Delegates to the evaluator's own ``gradient`` method."""

    name = 'analytic'

    def __call__(self, params: np.ndarray, batch: ExperienceBatch) -> np.ndarray:
        return np.asarray(self.evaluator.gradient(np.asarray(params, dtype=np.float64), batch),
                          dtype=np.float64)


def make_gradient_estimator(evaluator: PolicyEvaluator, **kwargs) -> GradientEstimator:
    """Analytic gradient when the evaluator offers one, finite differences otherwise."""
    if getattr(evaluator, 'has_analytic_gradient', False):
        return AnalyticGradient(evaluator)
    return FiniteDifferenceGradient(evaluator, **kwargs)
