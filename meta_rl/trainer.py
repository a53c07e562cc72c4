"""Meta-training driver for the MetaRL engine.

Each iteration samples a meta-batch from the task distribution, collects fresh
support/query sets from the task environments, and runs the outer loop of the
configured algorithm:

    Reptile: adapt_to_task_reptile on every task (updates theta per task)
    MAML:    compute_meta_gradients + apply_meta_gradient, then record a MAML
             adaptation per task so prioritized sampling has history
"""
import logging
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from core.errors import UnsupportedAlgorithmError
from core.types import AdaptationContext, MetaRLTask, TaskDistribution
from env_runner.environment import make_adaptation_context

from .engine import MetaRL

logger = logging.getLogger(__name__)

ContextFn = Callable[[MetaRLTask, int, Optional[np.ndarray], Optional[int]], AdaptationContext]


class MetaTrainer:
    """Outer-loop driver around an engine and a task distribution.

    Args:
        engine: Engine with initialized meta-parameters
        distribution: Task distribution to train on
        context_fn: Builds an AdaptationContext for (task, num_transitions,
            params, seed); defaults to rolling out the task environment
        seed: Base seed for experience collection
    """

    def __init__(self, engine: MetaRL, distribution: TaskDistribution,
                 context_fn: Optional[ContextFn] = None, seed: Optional[int] = None):
        self.engine = engine
        self.context_fn = context_fn or make_adaptation_context
        self.seed = seed
        self.engine.setup_task_distribution(distribution)

    def _contexts(self, tasks: List[MetaRLTask], iteration: int) -> List[AdaptationContext]:
        theta = self.engine.export_meta_parameters()
        n = self.engine.config.task_samples_per_batch
        contexts = []
        for k, task in enumerate(tasks):
            seed = None if self.seed is None else self.seed + 1000 * iteration + 2 * k
            contexts.append(self.context_fn(task, n, theta, seed))
        return contexts

    def train_step(self, iteration: int = 0) -> Dict[str, Any]:
        """Run one meta-iteration.

        Returns:
            Dict with 'meta_loss', 'avg_score' and 'num_tasks'
        """
        algorithm = self.engine.config.algorithm
        if algorithm not in ('MAML', 'Reptile'):
            raise UnsupportedAlgorithmError(f"Algorithm '{algorithm}' is not implemented")

        tasks = self.engine.sample_task_batch()
        contexts = self._contexts(tasks, iteration)

        if algorithm == 'Reptile':
            results = [self.engine.adapt_to_task_reptile(t, c) for t, c in zip(tasks, contexts)]
            meta_loss = float(np.mean([
                r.convergence_metrics.loss_history[-1]
                for r in results if r.convergence_metrics.loss_history
            ] or [0.0]))
        else:
            meta_gradient = self.engine.compute_meta_gradients(tasks, contexts)
            self.engine.apply_meta_gradient(meta_gradient)
            meta_loss = meta_gradient.meta_loss
            results = [self.engine.adapt_to_task_maml(t, c) for t, c in zip(tasks, contexts)]

        return {
            'meta_loss': meta_loss,
            'avg_score': float(np.mean([r.adaptation_score for r in results])),
            'num_tasks': len(tasks),
        }

    def train(self, num_iterations: int = 100, log_interval: int = 10) -> List[Dict[str, Any]]:
        """Run the meta-training loop.

        Args:
            num_iterations: Number of meta-iterations
            log_interval: How often to log training metrics; 0 disables
                per-iteration logging

        Returns:
            Per-iteration metrics from ``train_step``
        """
        logger.info(
            f"{self.engine.config.algorithm} training: {num_iterations} iterations, "
            f"{self.engine.config.meta_batch_size} tasks/batch, "
            f"{self.engine.config.adaptation_steps} inner steps"
        )
        metrics = []
        for iteration in range(num_iterations):
            step = self.train_step(iteration)
            metrics.append(step)
            if log_interval > 0 and iteration % log_interval == 0:
                logger.info(
                    f"Iter {iteration}/{num_iterations}, "
                    f"Meta loss: {step['meta_loss']:.4f}, "
                    f"Avg score: {step['avg_score']:.4f}"
                )
        return metrics
