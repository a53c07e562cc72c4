"""Core module of the meta-RL adaptation engine.

Exports:
    MetaRLConfig: Engine hyperparameters
    PolicyEvaluator: Placeholder forward model, TD loss and reward estimate
    FiniteDifferenceGradient, AnalyticGradient: Gradient estimators
    MetaParameterVector: Lock-guarded shared meta-parameters
"""
from .config import MetaRLConfig
from .errors import (
    MetaRLError, InitializationError, UninitializedParametersError,
    EmptyTaskDistributionError, NotInitializedError, UnsupportedAlgorithmError,
    ArgumentError, AdaptationError, CheckpointError,
)
from .types import (
    MetaRLTask, ExperienceBatch, AdaptationContext, AdaptationStatus,
    ConvergenceMetrics, MetaRLResult, MetaGradient, TaskDistribution,
)
from .policy import PolicyEvaluator
from .gradients import (
    GradientEstimator, FiniteDifferenceGradient, AnalyticGradient, make_gradient_estimator,
)
from .parameters import MetaParameterVector, initialize_meta_parameters

__all__ = [
    'MetaRLConfig',
    'MetaRLError', 'InitializationError', 'UninitializedParametersError',
    'EmptyTaskDistributionError', 'NotInitializedError', 'UnsupportedAlgorithmError',
    'ArgumentError', 'AdaptationError', 'CheckpointError',
    'MetaRLTask', 'ExperienceBatch', 'AdaptationContext', 'AdaptationStatus',
    'ConvergenceMetrics', 'MetaRLResult', 'MetaGradient', 'TaskDistribution',
    'PolicyEvaluator',
    'GradientEstimator', 'FiniteDifferenceGradient', 'AnalyticGradient', 'make_gradient_estimator',
    'MetaParameterVector', 'initialize_meta_parameters',
]
