"""Policy evaluation for flat meta-parameter vectors.

The forward model is a fixed, generic scoring function rather than a real
network architecture: output unit ``i`` is

    tanh(sum_j params[(i * len(state) + j) % len(params)] * state[j])

with ``max(1, len(params) // len(state))`` output units. All functions here are
pure and deterministic.
"""

import numpy as np

from .config import DISCOUNT
from .errors import ArgumentError
from .types import ExperienceBatch


def _weight_matrix(params: np.ndarray, state_dim: int) -> np.ndarray:
    """Gather the (output_width, state_dim) weights used by ``forward``."""
    n_params = len(params)
    if n_params == 0:
        raise ArgumentError("Cannot evaluate an empty parameter vector")
    if state_dim == 0:
        raise ArgumentError("Cannot evaluate an empty state vector")
    width = max(1, n_params // state_dim)
    idx = (np.arange(width)[:, None] * state_dim + np.arange(state_dim)[None, :]) % n_params
    return params[idx]


def forward(params: np.ndarray, state: np.ndarray) -> np.ndarray:
    """Action-values of a single state.

    Args:
        params: Flat parameter vector
        state: State vector

    Returns:
        Array of shape (max(1, len(params) // len(state)),)
    """
    params = np.asarray(params, dtype=np.float64)
    state = np.asarray(state, dtype=np.float64).reshape(-1)
    return np.tanh(_weight_matrix(params, len(state)) @ state)


def batch_forward(params: np.ndarray, states: np.ndarray) -> np.ndarray:
    """Action-values for every row of ``states``, shape (N, output_width)."""
    params = np.asarray(params, dtype=np.float64)
    return np.tanh(states @ _weight_matrix(params, states.shape[1]).T)


def td_loss(params: np.ndarray, batch: ExperienceBatch, gamma: float = DISCOUNT) -> float:
    """Mean squared TD-error of the batch.

    The bootstrap target uses the max action-value of the *current* state,
    ``reward + gamma * max(forward(params, state))`` unless the transition is
    terminal.
    """
    q = batch_forward(params, batch.states)
    width = q.shape[1]
    bad = (batch.actions < 0) | (batch.actions >= width)
    if np.any(bad):
        raise ArgumentError(
            f"Action {int(batch.actions[bad][0])} out of range for output width {width}"
        )
    predicted = q[np.arange(len(batch)), batch.actions]
    target = batch.rewards + np.where(batch.dones, 0.0, gamma * q.max(axis=1))
    return float(np.mean((predicted - target) ** 2))


def mean_reward(batch: ExperienceBatch) -> float:
    """Mean reward of the batch; the actions taken do not enter the estimate."""
    return float(np.mean(batch.rewards))


class PolicyEvaluator:
    """Turns (parameters, data) into action-values, a loss and a performance estimate.

    Subclasses may replace ``loss``/``evaluate`` with another objective and set
    ``has_analytic_gradient = True`` together with a ``gradient`` method to
    skip finite differences.

    Args:
        gamma: Discount used for the TD target
    """

    has_analytic_gradient = False

    def __init__(self, gamma: float = DISCOUNT):
        self.gamma = gamma

    def forward(self, params: np.ndarray, state: np.ndarray) -> np.ndarray:
        return forward(params, state)

    def loss(self, params: np.ndarray, batch: ExperienceBatch) -> float:
        return td_loss(params, batch, self.gamma)

    def evaluate(self, params: np.ndarray, batch: ExperienceBatch) -> float:
        return mean_reward(batch)

    def gradient(self, params: np.ndarray, batch: ExperienceBatch) -> np.ndarray:
        raise NotImplementedError(f"{type(self).__name__} has no analytic gradient")
