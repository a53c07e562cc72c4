"""Shared fixtures: tasks, batches and a quadratic evaluator with a known optimum."""
import numpy as np
import pytest

from core.policy import PolicyEvaluator
from core.types import AdaptationContext, ExperienceBatch, MetaRLTask


class QuadraticEvaluator(PolicyEvaluator):
    """Loss ``sum((p - t)^2)`` where ``t`` is the batch's mean reward."""

    def loss(self, params, batch):
        target = float(np.mean(batch.rewards))
        return float(np.sum((np.asarray(params) - target) ** 2))


class ParameterSumEvaluator(QuadraticEvaluator):
    """Quadratic loss whose reward is the sum of the parameters it is given."""

    def evaluate(self, params, batch):
        return float(np.sum(params))


class AnalyticQuadraticEvaluator(QuadraticEvaluator):
    has_analytic_gradient = True

    def gradient(self, params, batch):
        return 2.0 * (np.asarray(params) - float(np.mean(batch.rewards)))


def make_batch(rewards, state_dim=2, actions=None, dones=None):
    """Batch of len(rewards) transitions with unit states."""
    n = len(rewards)
    states = np.ones((n, state_dim))
    return ExperienceBatch(
        states=states,
        actions=np.zeros(n, dtype=int) if actions is None else actions,
        rewards=rewards,
        next_states=states,
        dones=np.zeros(n, dtype=bool) if dones is None else dones,
    )


def make_task(task_id='task-a', episode_length=10, state_space=2, action_space=2):
    return MetaRLTask(
        task_id=task_id,
        environment='unit-test',
        parameters=(0.5, -0.5),
        state_space=state_space,
        action_space=action_space,
        episode_length=episode_length,
        reward_scale=1.0,
    )


def quadratic_context(target, n=4):
    """Support and query sets whose quadratic optimum is ``target``."""
    return AdaptationContext(
        support_set=make_batch([target] * n),
        query_set=make_batch([target] * n),
    )


@pytest.fixture
def task():
    return make_task()


@pytest.fixture
def batch():
    """Small batch for the placeholder forward model (4 params -> 2 actions)."""
    return ExperienceBatch(
        states=[[0.5, -0.2], [0.1, 0.9], [-0.3, 0.4]],
        actions=[0, 1, 1],
        rewards=[1.0, 0.0, 0.5],
        next_states=[[0.1, 0.9], [-0.3, 0.4], [0.0, 0.0]],
        dones=[False, False, True],
    )


@pytest.fixture
def context(batch):
    query = ExperienceBatch(
        states=[[0.2, 0.2], [0.7, -0.1]],
        actions=[1, 0],
        rewards=[0.3, 0.8],
        next_states=[[0.7, -0.1], [0.0, 0.0]],
        dones=[False, True],
    )
    return AdaptationContext(support_set=batch, query_set=query,
                             baseline_performance=0.5, target_performance=1.0,
                             adaptation_budget=5)


@pytest.fixture
def quadratic():
    return QuadraticEvaluator()
