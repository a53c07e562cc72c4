"""Meta Reinforcement Learning module.

Exports:
    MetaRL: Engine facade (MAML, Reptile, meta-gradients, fast adaptation)
    MAMLAdapter: Model-Agnostic Meta-Learning adaptation
    ReptileAdapter: Reptile adaptation with meta-update
    MetaGradientComputer: Batch meta-gradient with clipping
    TaskSampler: Uniform / prioritized / curriculum meta-batch sampling
    AdaptationHistoryStore: Per-task adaptation results
    MetaTrainer: Outer-loop training driver
"""

from .history import AdaptationHistoryStore
from .meta_maml import MAMLAdapter
from .reptile import ReptileAdapter
from .meta_gradient import MetaGradientComputer
from .task_sampler import TaskSampler
from .engine import MetaRL, EngineState
from .trainer import MetaTrainer

__all__ = [
    'MetaRL', 'EngineState', 'MAMLAdapter', 'ReptileAdapter', 'MetaGradientComputer',
    'TaskSampler', 'AdaptationHistoryStore', 'MetaTrainer',
]
