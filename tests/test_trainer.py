import logging

import numpy as np
import pytest

from core.config import MetaRLConfig
from core.errors import UnsupportedAlgorithmError
from env_runner.environment import make_task_family, policy_dimensions
from meta_rl.engine import MetaRL
from meta_rl.trainer import MetaTrainer


def make_trainer(algorithm, strategy='uniform'):
    config = MetaRLConfig(algorithm=algorithm, inner_lr=0.05, outer_lr=0.1, adaptation_steps=2,
                          meta_batch_size=2, task_samples_per_batch=4, seed=0)
    distribution = make_task_family('reach', 3, state_space=2, action_space=2,
                                    sampling_strategy=strategy, seed=0)
    engine = MetaRL(config)
    engine.initialize_meta_parameters(policy_dimensions(distribution.tasks))
    return MetaTrainer(engine, distribution, seed=0), distribution


@pytest.mark.parametrize('algorithm', ['MAML', 'Reptile'])
def test_train_updates_meta_parameters(algorithm):
    trainer, distribution = make_trainer(algorithm)
    before = trainer.engine.export_meta_parameters()

    metrics = trainer.train(num_iterations=2, log_interval=1)

    assert len(metrics) == 2
    assert all(np.isfinite(m['meta_loss']) for m in metrics)
    assert all(m['num_tasks'] == 2 for m in metrics)
    assert not np.array_equal(trainer.engine.export_meta_parameters(), before)
    recorded = sum(len(trainer.engine.get_adaptation_history(t.task_id))
                   for t in distribution.tasks)
    assert recorded == 4


def test_prioritized_training_uses_history():
    trainer, distribution = make_trainer('Reptile', strategy='prioritized')
    trainer.train(num_iterations=3, log_interval=1)
    assert len(trainer.engine.history) == 6


def test_protonet_training_fails():
    trainer, _ = make_trainer('ProtoNet')
    with pytest.raises(UnsupportedAlgorithmError):
        trainer.train_step()


def test_zero_log_interval_disables_iteration_logs(caplog):
    trainer, _ = make_trainer('Reptile')
    with caplog.at_level(logging.INFO, logger='meta_rl.trainer'):
        metrics = trainer.train(num_iterations=2, log_interval=0)
    assert len(metrics) == 2
    assert not any(r.getMessage().startswith('Iter ') for r in caplog.records)
