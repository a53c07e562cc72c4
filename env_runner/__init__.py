"""Environment runner: gymnasium task environments and experience collection."""
from .environment import (
    TaskEnvironment, collect_batch, make_adaptation_context, make_task_family, policy_dimensions,
)

__all__ = [
    'TaskEnvironment', 'collect_batch', 'make_adaptation_context', 'make_task_family',
    'policy_dimensions',
]
