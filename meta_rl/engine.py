"""Meta-RL engine: MAML, Reptile, meta-gradients and fast adaptation.

``MetaRL`` is the public entry point embedded by training loops and offline
experiment runners. Its state lives in an explicit ``EngineState`` (config,
meta-parameters, adaptation history); the algorithms are separate components
that only touch that state through the lock-guarded ``MetaParameterVector``
and the ``AdaptationHistoryStore``.

Example:
    >>> engine = MetaRL(MetaRLConfig(algorithm='Reptile', outer_lr=0.1, seed=0))
    >>> engine.initialize_meta_parameters(32, 'xavier')
    >>> result = engine.adapt_to_task(task, context)
    >>> theta = engine.export_meta_parameters()
"""
import logging
import os
import pickle
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import torch

from adaptation.fast_adaptation import DEFAULT_FAST_STEPS, FastAdapter
from adaptation.inner_loop import InnerLoopAdapter
from core.config import MetaRLConfig
from core.errors import CheckpointError, UnsupportedAlgorithmError, wrap_errors
from core.gradients import make_gradient_estimator
from core.parameters import MetaParameterVector
from core.policy import PolicyEvaluator
from core.types import (
    AdaptationContext, ExperienceBatch, MetaGradient, MetaRLResult, MetaRLTask, TaskDistribution,
)

from .history import AdaptationHistoryStore
from .meta_gradient import MetaGradientComputer
from .meta_maml import MAMLAdapter
from .reptile import ReptileAdapter
from .task_sampler import TaskSampler

logger = logging.getLogger(__name__)


@dataclass
class EngineState:
    """Everything an engine instance owns exclusively."""
    config: MetaRLConfig
    meta_parameters: MetaParameterVector = field(default_factory=MetaParameterVector)
    history: AdaptationHistoryStore = field(default_factory=AdaptationHistoryStore)


class MetaRL:
    """Meta-reinforcement-learning adaptation engine.

    Args:
        config: Hyperparameters (defaults to ``MetaRLConfig()``)
        evaluator: Policy evaluator; the placeholder TD-loss evaluator by default
        gradient_workers: Thread pool size for finite-difference components
        task_workers: Thread pool size for per-task inner loops in meta-gradients
    """

    def __init__(self, config: Optional[MetaRLConfig] = None,
                 evaluator: Optional[PolicyEvaluator] = None,
                 gradient_workers: Optional[int] = None,
                 task_workers: Optional[int] = None):
        self.state = EngineState(config=config or MetaRLConfig())
        self.evaluator = evaluator or PolicyEvaluator()
        self.rng = np.random.default_rng(self.config.seed)

        estimator_kwargs = {} if self.evaluator.has_analytic_gradient else {'max_workers': gradient_workers}
        self.gradient_fn = make_gradient_estimator(self.evaluator, **estimator_kwargs)
        self.inner_loop = InnerLoopAdapter(
            self.evaluator, self.gradient_fn,
            inner_lr=self.config.inner_lr, num_steps=self.config.adaptation_steps,
        )

        params, history = self.state.meta_parameters, self.state.history
        self.maml = MAMLAdapter(params, self.inner_loop, history)
        self.reptile = ReptileAdapter(params, self.inner_loop, history, outer_lr=self.config.outer_lr)
        self.meta_gradients = MetaGradientComputer(params, self.inner_loop, self.config,
                                                   max_workers=task_workers)
        self.fast_adapter = FastAdapter(self.inner_loop)
        self.sampler = TaskSampler(history, self.config.meta_batch_size, rng=self.rng)

    @property
    def config(self) -> MetaRLConfig:
        return self.state.config

    @property
    def history(self) -> AdaptationHistoryStore:
        return self.state.history

    @wrap_errors('Meta-parameter initialization')
    def initialize_meta_parameters(self, dimensions: int, init_method: str = 'xavier') -> None:
        self.state.meta_parameters.initialize(dimensions, init_method, rng=self.rng)

    @wrap_errors('MAML adaptation')
    def adapt_to_task_maml(self, task: MetaRLTask, context: AdaptationContext) -> MetaRLResult:
        return self.maml.adapt(task, context)

    @wrap_errors('Reptile adaptation')
    def adapt_to_task_reptile(self, task: MetaRLTask, context: AdaptationContext) -> MetaRLResult:
        return self.reptile.adapt(task, context)

    def adapt_to_task(self, task: MetaRLTask, context: AdaptationContext) -> MetaRLResult:
        """Adapt with the configured algorithm."""
        if self.config.algorithm == 'MAML':
            return self.adapt_to_task_maml(task, context)
        if self.config.algorithm == 'Reptile':
            return self.adapt_to_task_reptile(task, context)
        raise UnsupportedAlgorithmError(f"Algorithm '{self.config.algorithm}' is not implemented")

    @wrap_errors('Meta-gradient computation')
    def compute_meta_gradients(self, task_batch: Sequence[MetaRLTask],
                               contexts: Sequence[AdaptationContext]) -> MetaGradient:
        return self.meta_gradients.compute(task_batch, contexts)

    @wrap_errors('Meta-gradient update')
    def apply_meta_gradient(self, meta_gradient: MetaGradient) -> np.ndarray:
        """Apply ``theta -= outer_lr * policy_gradient``; returns the new parameters."""
        self.state.meta_parameters.require()
        return self.state.meta_parameters.step(meta_gradient.policy_gradient, self.config.outer_lr)

    @wrap_errors('Fast adaptation')
    def fast_adaptation(self, task: MetaRLTask, few_shot_experiences: ExperienceBatch,
                        max_steps: int = DEFAULT_FAST_STEPS) -> np.ndarray:
        theta = self.state.meta_parameters.require()
        return self.fast_adapter.adapt(task, theta, few_shot_experiences, max_steps=max_steps)

    @wrap_errors('Task distribution setup')
    def setup_task_distribution(self, distribution: TaskDistribution) -> None:
        self.sampler.setup(distribution)

    @wrap_errors('Task sampling')
    def sample_task_batch(self) -> List[MetaRLTask]:
        return self.sampler.sample()

    def get_adaptation_history(self, task_id: str) -> List[MetaRLResult]:
        return self.state.history.get(task_id)

    def export_meta_parameters(self) -> np.ndarray:
        return self.state.meta_parameters.snapshot()

    @wrap_errors('Meta-parameter import')
    def import_meta_parameters(self, params: Sequence[float]) -> None:
        self.state.meta_parameters.load(params)

    def save_checkpoint(self, path: str) -> None:
        """Save config and meta-parameters using torch.save.

        Args:
            path: Destination file
        """
        try:
            os.makedirs(os.path.dirname(path) if os.path.dirname(path) else '.', exist_ok=True)
            torch.save({
                'meta_parameters': torch.from_numpy(self.export_meta_parameters()),
                'config': self.config.to_dict(),
            }, path)
        except OSError as e:
            raise CheckpointError(f"Failed to save checkpoint to {path}: {e}") from e
        logger.info(f"Saved meta-parameters to {path}")

    @staticmethod
    def load_checkpoint(path: str, evaluator: Optional[PolicyEvaluator] = None) -> 'MetaRL':
        """Rebuild an engine from a checkpoint written by ``save_checkpoint``.

        The adaptation history is not persisted.
        """
        try:
            checkpoint = torch.load(path, map_location='cpu')
            config = MetaRLConfig.from_dict(checkpoint['config'])
            params = checkpoint['meta_parameters'].numpy()
        except (OSError, KeyError, IndexError, AttributeError, TypeError, ValueError,
                RuntimeError, pickle.UnpicklingError) as e:
            raise CheckpointError(f"Failed to load checkpoint from {path}: {e}") from e

        engine = MetaRL(config, evaluator=evaluator)
        engine.import_meta_parameters(params)
        return engine
