"""
Q-Learning Agent Module

Tabular Q-learning over the grid's state indices. The Q-table is a numpy
array of shape (n_states, n_actions) where Q[s, a] estimates the expected
discounted return of taking action a in state s.

The table is written only by QLearningAgent.update:

    Q[s, a] <- Q[s, a] + alpha * (r + gamma * max_a' Q[s', a'] - Q[s, a])

Action selection is epsilon-greedy, and epsilon decays once per finished
episode towards a floor.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from wumpusrl.config import AgentConfig
from wumpusrl.grid_env import N_ACTIONS

logger = logging.getLogger(__name__)


class QLearningAgent:
    """
    Epsilon-greedy tabular Q-learning agent.

    The agent knows nothing about the grid beyond the size of the state and
    action spaces; positions are encoded into state indices by the caller.

    Attributes:
        n_states: Number of states.
        n_actions: Number of actions.
        config: Hyperparameters.
        rng: Random number generator for exploration and tie-breaking.

    Example:
        >>> agent = QLearningAgent(64, rng=np.random.default_rng(0))
        >>> a = agent.choose_action(0)
        >>> agent.update(0, a, -1.0, 8)
        True
    """

    def __init__(
        self,
        n_states: int,
        n_actions: int = N_ACTIONS,
        config: Optional[AgentConfig] = None,
        rng: Optional[np.random.Generator] = None
    ) -> None:
        if n_states <= 0 or n_actions <= 0:
            raise ValueError(
                f"n_states and n_actions must be positive, got ({n_states}, {n_actions})"
            )

        self.n_states: int = n_states
        self.n_actions: int = n_actions
        self.config: AgentConfig = config if config is not None else AgentConfig()
        self.rng: np.random.Generator = rng if rng is not None else np.random.default_rng()

        self._q: np.ndarray = np.zeros((n_states, n_actions), dtype=np.float64)
        self._epsilon: float = self.config.exploration_rate

    @property
    def exploration_rate(self) -> float:
        return self._epsilon

    @property
    def q_table(self) -> np.ndarray:
        """Read-only copy of the Q-table."""
        table = self._q.copy()
        table.flags.writeable = False
        return table

    def is_valid_state(self, state: int) -> bool:
        return 0 <= state < self.n_states

    def q_values(self, state: int) -> np.ndarray:
        self._check_state(state)
        return self._q[state].copy()

    def max_q(self, state: int) -> float:
        self._check_state(state)
        return float(np.max(self._q[state]))

    def greedy_action(self, state: int) -> int:
        """Lowest-index action with the highest Q-value. Used for display only."""
        self._check_state(state)
        return int(np.argmax(self._q[state]))

    def greedy_policy(self) -> np.ndarray:
        """
        Deterministic greedy action for every state.

        Returns:
            Array of shape (n_states,) of action indices.
        """
        return np.argmax(self._q, axis=1)

    def choose_action(self, state: int) -> int:
        """
        Pick an action epsilon-greedily.

        With probability epsilon a uniformly random action is returned,
        otherwise the action with the highest Q-value. Ties between greedy
        actions are broken according to config.tie_break.

        Args:
            state: Current state index.

        Returns:
            Action index in [0, n_actions).

        Raises:
            ValueError: If state is out of range.
        """
        self._check_state(state)

        if self.rng.random() < self._epsilon:
            return int(self.rng.integers(0, self.n_actions))

        if self.config.tie_break == "sequential":
            return self._sequential_best_action(state)

        row = self._q[state]
        best = np.flatnonzero(row == row.max())
        return int(self.rng.choice(best))

    def _sequential_best_action(self, state: int) -> int:
        # Legacy rule: scan in order, flip a coin on every tie with the
        # incumbent. Biased towards later actions.
        best_action = 0
        best_value = -np.inf
        for a in range(self.n_actions):
            value = self._q[state, a]
            if value > best_value:
                best_value = value
                best_action = a
            elif value == best_value and self.rng.random() < 0.5:
                best_action = a
        return best_action

    def update(self, state: int, action: int, reward: float, next_state: int) -> bool:
        """
        Apply one Q-learning update for the transition (s, a, r, s').

        Args:
            state: State the action was taken in.
            action: Action taken.
            reward: Observed reward.
            next_state: Resulting state.

        Returns:
            True if the table was written, False if the update was skipped
            because a state index was invalid.
        """
        if not (self.is_valid_state(state) and self.is_valid_state(next_state)):
            logger.debug(
                "Skipping update for invalid transition %s -> %s", state, next_state
            )
            return False
        if action < 0 or action >= self.n_actions:
            raise ValueError(f"Invalid action {action}. Must be in [0, {self.n_actions - 1}]")

        alpha = self.config.learning_rate
        gamma = self.config.discount_factor

        old_q = self._q[state, action]
        target = reward + gamma * np.max(self._q[next_state])
        self._q[state, action] = old_q + alpha * (target - old_q)
        return True

    def decay_exploration_rate(self) -> float:
        """
        Decay epsilon once, never below config.min_exploration_rate.

        Returns:
            The new exploration rate.
        """
        self._epsilon = max(
            self.config.min_exploration_rate,
            self._epsilon * self.config.exploration_decay,
        )
        return self._epsilon

    def _check_state(self, state: int) -> None:
        if not self.is_valid_state(state):
            raise ValueError(f"Invalid state {state}. Must be in [0, {self.n_states - 1}]")

    def __repr__(self) -> str:
        return (
            f"QLearningAgent(n_states={self.n_states}, n_actions={self.n_actions}, "
            f"exploration_rate={self._epsilon:.4f})"
        )
