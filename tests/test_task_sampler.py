# -*- coding: utf-8 -*-
"""
Unit tests for task sampling and the adaptation history store.
"""

import numpy as np
import pytest

from core.config import MetaRLConfig
from core.errors import ArgumentError, EmptyTaskDistributionError, NotInitializedError
from core.types import ConvergenceMetrics, MetaRLResult, TaskDistribution
from meta_rl.engine import MetaRL
from meta_rl.history import AdaptationHistoryStore
from meta_rl.task_sampler import TaskSampler

from conftest import make_task


def make_result(task_id, score):
    return MetaRLResult(task_id, np.zeros(2), score, 1, 1.0, 1.0 + score, ConvergenceMetrics())


def make_distribution(n, strategy='uniform'):
    tasks = [make_task(f"task-{i}", episode_length=10 * (n - i)) for i in range(n)]
    return TaskDistribution('unit', tasks, sampling_strategy=strategy)


class TestTaskSampler:
    """Test suite for TaskSampler."""

    def test_empty_distribution_rejected(self):
        engine = MetaRL()
        with pytest.raises(EmptyTaskDistributionError):
            engine.setup_task_distribution(TaskDistribution('empty', []))

    def test_sample_before_setup(self):
        with pytest.raises(NotInitializedError):
            MetaRL().sample_task_batch()

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ArgumentError):
            TaskDistribution('unit', [make_task()], sampling_strategy='greedy')

    @pytest.mark.parametrize('strategy', ['uniform', 'prioritized', 'curriculum'])
    @pytest.mark.parametrize('n_tasks,meta_batch_size', [(3, 8), (10, 4), (5, 5)])
    def test_batch_size_invariant(self, strategy, n_tasks, meta_batch_size):
        engine = MetaRL(MetaRLConfig(meta_batch_size=meta_batch_size, seed=0))
        distribution = make_distribution(n_tasks, strategy)
        engine.setup_task_distribution(distribution)
        ids = {t.task_id for t in distribution.tasks}

        for _ in range(10):
            batch = engine.sample_task_batch()
            assert len(batch) == min(meta_batch_size, n_tasks)
            assert all(t.task_id in ids for t in batch)

    def test_uniform_draws_without_replacement(self):
        engine = MetaRL(MetaRLConfig(meta_batch_size=4, seed=1))
        engine.setup_task_distribution(make_distribution(6))
        for _ in range(10):
            batch = engine.sample_task_batch()
            assert len({t.task_id for t in batch}) == 4

    def test_curriculum_picks_shortest_episode(self):
        task_a = make_task('A', episode_length=10)
        task_b = make_task('B', episode_length=50)
        engine = MetaRL(MetaRLConfig(meta_batch_size=1))
        engine.setup_task_distribution(
            TaskDistribution('unit', [task_b, task_a], sampling_strategy='curriculum')
        )
        for _ in range(5):
            assert engine.sample_task_batch() == [task_a]

    def test_prioritized_favours_poorly_adapted_tasks(self):
        history = AdaptationHistoryStore()
        solved, unsolved = make_task('solved'), make_task('unsolved')
        history.record(make_result('solved', 1.0))
        history.record(make_result('unsolved', -1.0))

        sampler = TaskSampler(history, meta_batch_size=2, rng=np.random.default_rng(0))
        sampler.setup(TaskDistribution('unit', [solved, unsolved], sampling_strategy='prioritized'))
        np.testing.assert_allclose(sampler.priorities([solved, unsolved]), [0.0, 2.0])

        draws = [t.task_id for _ in range(50) for t in sampler.sample()]
        assert len(draws) == 100
        assert draws.count('unsolved') >= 99

    def test_priority_defaults_to_one_without_history(self):
        sampler = TaskSampler(AdaptationHistoryStore())
        np.testing.assert_allclose(sampler.priorities([make_task('a'), make_task('b')]), [1.0, 1.0])


class TestAdaptationHistoryStore:
    """Test suite for AdaptationHistoryStore."""

    def test_record_and_query(self):
        store = AdaptationHistoryStore()
        store.record(make_result('a', 0.1))
        store.record(make_result('a', 0.3))
        store.record(make_result('b', -0.2))

        assert [r.adaptation_score for r in store.get('a')] == [0.1, 0.3]
        assert store.latest('a').adaptation_score == 0.3
        assert store.latest('missing') is None
        assert store.get('missing') == []
        assert 'a' in store and 'missing' not in store
        assert len(store) == 3
        assert sorted(store.task_ids()) == ['a', 'b']

    def test_get_returns_copy(self):
        store = AdaptationHistoryStore()
        store.record(make_result('a', 0.1))
        store.get('a').clear()
        assert len(store.get('a')) == 1

    def test_summary(self):
        store = AdaptationHistoryStore()
        store.record(make_result('a', 0.2))
        store.record(make_result('a', 0.4))
        summary = store.summary('a')
        assert summary['count'] == 2
        assert summary['mean_score'] == pytest.approx(0.3)
        assert summary['last_score'] == 0.4
        assert store.summary('b')['mean_score'] is None


if __name__ == "__main__":
    pytest.main([__file__, '-v'])
