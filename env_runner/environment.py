"""Environment Runner Module for meta-RL tasks

Turns a ``MetaRLTask`` into a small gymnasium environment and rolls it out
into ``ExperienceBatch`` / ``AdaptationContext`` records the engine consumes.
This is the data source used by the meta-training driver.

Task dynamics: the agent moves a point in [-1, 1]^d. Action ``a`` pushes
coordinate ``(a // 2) % d`` up (even ``a``) or down (odd ``a``). The goal is
derived from the task parameters and the reward is the negative scaled
distance to it.
"""
from typing import Optional, Sequence, Tuple

import numpy as np
import gymnasium as gym
from gymnasium import spaces

from core.errors import ArgumentError
from core.policy import forward
from core.types import AdaptationContext, ExperienceBatch, MetaRLTask, TaskDistribution

MOVE_SIZE = 0.1
GOAL_TOLERANCE = 0.05


class TaskEnvironment(gym.Env):
    """Point-reaching environment parameterized by a ``MetaRLTask``.

    Attributes:
        task (MetaRLTask): Task instance the environment was built from
        goal (np.ndarray): Target position derived from ``task.parameters``
        observation_space (spaces.Box): Box(-1, 1, (state_space,))
        action_space (spaces.Discrete): Discrete(action_space)
    """

    metadata = {'render_modes': []}

    def __init__(self, task: MetaRLTask):
        super().__init__()
        if task.state_space < 1 or task.action_space < 1:
            raise ArgumentError(
                f"Task {task.task_id} needs positive state/action spaces, "
                f"got {task.state_space}/{task.action_space}"
            )
        self.task = task
        params = np.asarray(task.parameters if task.parameters else (0.0,), dtype=np.float64)
        self.goal = np.clip(np.resize(params, task.state_space), -1.0, 1.0)

        self.observation_space = spaces.Box(
            low=-1.0, high=1.0, shape=(task.state_space,), dtype=np.float64
        )
        self.action_space = spaces.Discrete(task.action_space)

        self._state = np.zeros(task.state_space)
        self._current_step = 0

    def reset(self, *, seed: Optional[int] = None, options: Optional[dict] = None):
        super().reset(seed=seed)
        self._state = self.np_random.uniform(-1.0, 1.0, size=self.task.state_space)
        self._current_step = 0
        return self._state.copy(), {'task_id': self.task.task_id}

    def step(self, action):
        if not self.action_space.contains(int(action)):
            raise ArgumentError(f"Invalid action {action} for {self.action_space}")
        action = int(action)
        self._current_step += 1

        dim = (action // 2) % self.task.state_space
        direction = 1.0 if action % 2 == 0 else -1.0
        self._state = self._state.copy()
        self._state[dim] = np.clip(self._state[dim] + direction * MOVE_SIZE, -1.0, 1.0)

        distance = float(np.linalg.norm(self._state - self.goal))
        reward = -self.task.reward_scale * distance / np.sqrt(self.task.state_space)
        terminated = distance < GOAL_TOLERANCE
        truncated = self._current_step >= self.task.episode_length
        info = {'task_id': self.task.task_id, 'step': self._current_step}
        return self._state.copy(), reward, terminated, truncated, info


def select_action(env: TaskEnvironment, state: np.ndarray, params: Optional[np.ndarray],
                  epsilon: float, rng: np.random.Generator) -> int:
    """Epsilon-greedy on the placeholder forward model, random without params."""
    n_actions = env.action_space.n
    if params is None or len(params) == 0 or rng.random() < epsilon:
        return int(rng.integers(n_actions))
    q_values = forward(params, state)[:n_actions]
    return int(np.argmax(q_values))


def collect_batch(env: TaskEnvironment, num_transitions: int,
                  params: Optional[np.ndarray] = None, epsilon: float = 0.1,
                  seed: Optional[int] = None) -> ExperienceBatch:
    """Roll out ``num_transitions`` steps, resetting at episode boundaries.

    Args:
        env: Environment to roll out
        num_transitions: Batch size N (>= 1)
        params: Policy parameters for greedy actions; random actions if None
        epsilon: Exploration rate when ``params`` is given
        seed: Seed for environment resets and action selection

    Returns:
        ExperienceBatch of N transitions
    """
    if num_transitions < 1:
        raise ArgumentError(f"num_transitions must be >= 1, got {num_transitions}")
    rng = np.random.default_rng(seed)

    states, actions, rewards, next_states, dones = [], [], [], [], []
    state, _ = env.reset(seed=seed)
    for _ in range(num_transitions):
        action = select_action(env, state, params, epsilon, rng)
        next_state, reward, terminated, truncated, _ = env.step(action)
        states.append(state)
        actions.append(action)
        rewards.append(reward)
        next_states.append(next_state)
        dones.append(terminated or truncated)
        if terminated or truncated:
            state, _ = env.reset()
        else:
            state = next_state

    return ExperienceBatch(
        states=np.asarray(states),
        actions=np.asarray(actions),
        rewards=np.asarray(rewards),
        next_states=np.asarray(next_states),
        dones=np.asarray(dones),
    )


def make_adaptation_context(task: MetaRLTask, num_transitions: int,
                            params: Optional[np.ndarray] = None,
                            seed: Optional[int] = None) -> AdaptationContext:
    """Collect independent support and query sets for ``task``."""
    env = TaskEnvironment(task)
    query_seed = None if seed is None else seed + 1
    support = collect_batch(env, num_transitions, params=params, seed=seed)
    query = collect_batch(env, num_transitions, params=params, seed=query_seed)
    env.close()
    return AdaptationContext(
        support_set=support,
        query_set=query,
        baseline_performance=float(np.mean(support.rewards)),
        target_performance=0.0,
    )


def make_task_family(family: str, num_tasks: int, state_space: int = 4, action_space: int = 4,
                     episode_lengths: Tuple[int, int] = (10, 100),
                     sampling_strategy: str = 'uniform',
                     seed: Optional[int] = None) -> TaskDistribution:
    """Generate a family of point-reaching tasks with random goals.

    Episode lengths are spread evenly over ``episode_lengths`` so the
    curriculum strategy has a difficulty ordering to follow.
    """
    if num_tasks < 1:
        raise ArgumentError(f"num_tasks must be >= 1, got {num_tasks}")
    rng = np.random.default_rng(seed)
    lengths = np.linspace(episode_lengths[0], episode_lengths[1], num_tasks).astype(int)
    tasks = [
        MetaRLTask(
            task_id=f"{family}-{i}",
            environment=family,
            parameters=tuple(rng.uniform(-1.0, 1.0, size=state_space)),
            state_space=state_space,
            action_space=action_space,
            episode_length=int(lengths[i]),
            reward_scale=1.0,
        )
        for i in range(num_tasks)
    ]
    goals = np.array([t.parameters for t in tasks])
    diversity = float(np.mean(np.std(goals, axis=0))) if num_tasks > 1 else 0.0
    return TaskDistribution(
        task_family=family,
        tasks=tasks,
        sampling_strategy=sampling_strategy,
        difficulty_range=(float(lengths.min()), float(lengths.max())),
        diversity_metric=diversity,
    )


def policy_dimensions(tasks: Sequence[MetaRLTask]) -> int:
    """Parameter count giving the forward model one output per action."""
    return max(t.state_space * t.action_space for t in tasks)
