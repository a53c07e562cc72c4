# -*- coding: utf-8 -*-
"""
Unit tests for the inner-loop adapter and fast adaptation.
"""

import numpy as np
import pytest

from adaptation.fast_adaptation import FastAdapter
from adaptation.inner_loop import InnerLoopAdapter
from core.errors import ArgumentError
from core.gradients import FiniteDifferenceGradient, make_gradient_estimator
from core.policy import PolicyEvaluator
from core.types import AdaptationStatus

from conftest import AnalyticQuadraticEvaluator, make_task, quadratic_context


def make_inner_loop(evaluator, inner_lr=0.1, num_steps=50):
    return InnerLoopAdapter(evaluator, make_gradient_estimator(evaluator),
                            inner_lr=inner_lr, num_steps=num_steps)


class TestInnerLoopAdapter:
    """Test suite for InnerLoopAdapter."""

    def test_quadratic_converges_to_optimum(self, quadratic):
        inner = make_inner_loop(quadratic, inner_lr=0.1, num_steps=50)
        adapted, metrics = inner.run(np.array([0.0]), quadratic_context(3.0))

        assert abs(adapted[0] - 3.0) < 0.01
        assert metrics.converged
        assert metrics.status == AdaptationStatus.CONVERGED
        assert metrics.convergence_step == len(metrics.loss_history) - 1

    def test_loss_history_is_non_increasing(self, quadratic):
        inner = make_inner_loop(quadratic, inner_lr=0.1, num_steps=50)
        _, metrics = inner.run(np.array([-2.0, 7.0]), quadratic_context(3.0))

        losses = metrics.loss_history
        assert len(losses) > 1
        assert all(b <= a for a, b in zip(losses, losses[1:]))

    def test_histories_have_one_entry_per_step(self, context):
        inner = make_inner_loop(PolicyEvaluator(), inner_lr=0.01, num_steps=3)
        _, metrics = inner.run(np.linspace(-0.3, 0.3, 4), context)

        n = len(metrics.loss_history)
        assert 1 <= n <= 3
        assert len(metrics.reward_history) == n
        assert len(metrics.gradient_norms) == n

    def test_budget_exhausted(self, quadratic):
        inner = make_inner_loop(quadratic, inner_lr=0.01, num_steps=2)
        _, metrics = inner.run(np.array([0.0]), quadratic_context(3.0))

        assert not metrics.converged
        assert metrics.convergence_step == -1
        assert metrics.status == AdaptationStatus.BUDGET_EXHAUSTED
        assert len(metrics.loss_history) == 2

    def test_parameter_change_magnitude(self, quadratic):
        inner = make_inner_loop(quadratic, inner_lr=0.1, num_steps=1)
        start = np.array([0.0, 0.0])
        adapted, metrics = inner.run(start, quadratic_context(1.0))

        # One step of size 0.1 * 2 * (0 - 1) per coordinate
        np.testing.assert_allclose(adapted, [0.2, 0.2], atol=1e-6)
        assert metrics.parameter_change_magnitude == pytest.approx(np.linalg.norm(adapted - start))
        np.testing.assert_array_equal(start, [0.0, 0.0])

    def test_zero_gradient_converges_immediately(self, quadratic):
        inner = make_inner_loop(quadratic, num_steps=10)
        _, metrics = inner.run(np.array([2.0]), quadratic_context(2.0))
        assert metrics.converged
        assert metrics.convergence_step == 0

    def test_descend_runs_fixed_steps(self):
        evaluator = AnalyticQuadraticEvaluator()
        inner = make_inner_loop(evaluator, inner_lr=0.1, num_steps=3)
        adapted = inner.descend(np.array([0.0]), quadratic_context(1.0).support_set)
        # error shrinks by 0.8 per step
        assert adapted[0] == pytest.approx(1.0 - 0.8 ** 3)


class TestFastAdapter:
    """Test suite for FastAdapter."""

    def test_zero_steps_returns_parameters_unchanged(self, batch):
        evaluator = PolicyEvaluator()
        fast = FastAdapter(InnerLoopAdapter(evaluator, FiniteDifferenceGradient(evaluator)))
        params = np.array([0.1, -0.2, 0.3, -0.4])
        np.testing.assert_array_equal(fast.adapt(make_task(), params, batch, max_steps=0), params)

    def test_steps_move_toward_optimum(self, quadratic):
        fast = FastAdapter(make_inner_loop(quadratic, inner_lr=0.1))
        support = quadratic_context(1.0).support_set
        one = fast.adapt(make_task(), np.array([0.0]), support, max_steps=1)
        three = fast.adapt(make_task(), np.array([0.0]), support, max_steps=3)
        assert abs(three[0] - 1.0) < abs(one[0] - 1.0) < 1.0

    def test_negative_steps_rejected(self, quadratic):
        fast = FastAdapter(make_inner_loop(quadratic))
        with pytest.raises(ArgumentError):
            fast.adapt(make_task(), np.array([0.0]), quadratic_context(1.0).support_set,
                       max_steps=-1)


if __name__ == "__main__":
    pytest.main([__file__, '-v'])
