"""
Utility Module

This module provides helpers for driving and inspecting training sessions.

Key functions:
    - StepScheduler: Call controller.step() at a fixed simulated cadence
    - new_session: Start a session on a freshly generated layout
    - run_session: Drive a session headlessly until won or out of steps
    - greedy_policy_grid: Render the greedy policy as arrows
    - print_policy_info / print_q_values: Display tables for debugging
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from wumpusrl.agent import QLearningAgent
from wumpusrl.config import DEFAULT_STEP_INTERVAL, AgentConfig, SessionConfig
from wumpusrl.controller import EpisodeController, EpisodeOutcome, StepOutcome
from wumpusrl.grid_env import GridWorld, generate_hazard_map

logger = logging.getLogger(__name__)

ACTION_ARROWS = {0: '^', 1: 'v', 2: '<', 3: '>'}


class StepScheduler:
    """
    Fixed-cadence driver for an EpisodeController.

    Time is simulated: the caller reports elapsed seconds through advance()
    and one step is taken per whole interval that has elapsed. Leftover
    time carries over to the next call.

    Example:
        >>> scheduler = StepScheduler(controller, interval=0.15)
        >>> outcomes = scheduler.advance(0.5)  # three steps, 0.05s carried over
    """

    def __init__(
        self,
        controller: EpisodeController,
        interval: float = DEFAULT_STEP_INTERVAL
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.controller = controller
        self.interval = interval
        self._accumulated = 0.0

    @classmethod
    def from_config(cls, controller: EpisodeController, config: SessionConfig) -> "StepScheduler":
        """Scheduler stepping at config.step_interval."""
        return cls(controller, interval=config.step_interval)

    def advance(self, dt: float) -> List[StepOutcome]:
        if dt < 0:
            raise ValueError(f"dt must be non-negative, got {dt}")

        self._accumulated += dt
        outcomes: List[StepOutcome] = []
        # Tolerance keeps 0.15 + 0.15 from falling just short of 0.3.
        while self._accumulated + 1e-9 >= self.interval:
            self._accumulated -= self.interval
            if self.controller.is_won:
                continue
            outcome = self.controller.step()
            if outcome is not None:
                outcomes.append(outcome)
        if self._accumulated < 0:
            self._accumulated = 0.0
        return outcomes


@dataclass
class TrainingSummary:
    """
    Result of a headless session run.

    Attributes:
        steps: Steps taken.
        episodes: Finished episodes (lost or won). A partially played
            episode at the step limit is not counted.
        losses: Episodes lost.
        won: Whether the session was won.
        final_exploration_rate: Agent's epsilon at the end of the run.
        episode_rewards: Total reward of each finished episode.
    """
    steps: int
    episodes: int
    losses: int
    won: bool
    final_exploration_rate: float
    episode_rewards: np.ndarray

    @property
    def average_episode_reward(self) -> float:
        if len(self.episode_rewards) == 0:
            return 0.0
        return float(np.mean(self.episode_rewards))


def new_session(
    config: Optional[SessionConfig] = None,
    agent: Optional[QLearningAgent] = None,
    agent_config: Optional[AgentConfig] = None,
    rng: Optional[np.random.Generator] = None
) -> EpisodeController:
    """
    Start a brand-new session on a freshly generated HazardMap.

    Passing an existing agent carries its Q-table (and epsilon) over to the
    new layout; otherwise a fresh agent is created.

    Args:
        config: Session parameters. Defaults to SessionConfig().
        agent: Learner to reuse, or None for a new one.
        agent_config: Hyperparameters for a new agent. Ignored if agent is given.
        rng: Random number generator. If None, seeded from config.seed.

    Returns:
        An EpisodeController in the RUNNING state.
    """
    if config is None:
        config = SessionConfig()
    if rng is None:
        rng = np.random.default_rng(config.seed)

    hazards = generate_hazard_map(config.grid_size, config.n_traps, config.n_obstacles, rng=rng)
    world = GridWorld(hazards)
    if agent is None:
        agent = QLearningAgent(world.n_states, world.n_actions, config=agent_config, rng=rng)

    logger.info(
        "New session: %dx%d grid, goal=%s, wumpus=%s, %d traps, %d obstacles",
        config.grid_size, config.grid_size, hazards.goal, hazards.wumpus,
        len(hazards.traps), len(hazards.obstacles)
    )
    return EpisodeController(world, agent, start=config.start)


def run_session(controller: EpisodeController, max_steps: int) -> TrainingSummary:
    """
    Step a session until it is won or max_steps steps have been taken.

    Args:
        controller: Session to drive.
        max_steps: Upper bound on the number of steps.

    Returns:
        TrainingSummary with per-episode rewards of every finished episode.
    """
    if max_steps < 0:
        raise ValueError(f"max_steps must be non-negative, got {max_steps}")

    rewards: List[float] = []
    episode_reward = 0.0
    steps = 0
    losses = 0

    while steps < max_steps and not controller.is_won:
        outcome = controller.step()
        if outcome is None:
            break
        steps += 1
        episode_reward += outcome.reward
        if outcome.episode_ended:
            rewards.append(episode_reward)
            episode_reward = 0.0
            if outcome.outcome is EpisodeOutcome.LOST:
                losses += 1

    return TrainingSummary(
        steps=steps,
        episodes=len(rewards),
        losses=losses,
        won=controller.is_won,
        final_exploration_rate=controller.exploration_rate,
        episode_rewards=np.array(rewards, dtype=np.float64),
    )


def greedy_policy_grid(world: GridWorld, agent: QLearningAgent) -> str:
    """
    Render the greedy action of every free cell as an arrow.

    Special cells keep their layout character. Top line is the highest row.
    """
    policy = agent.greedy_policy()
    lines = []
    for y in reversed(range(world.grid_size)):
        chars = []
        for x in range(world.grid_size):
            char = world.hazards.cell_char((x, y))
            if char == '.':
                char = ACTION_ARROWS[int(policy[world.state_index((x, y))])]
            chars.append(char)
        lines.append(''.join(chars))
    return '\n'.join(lines)


def print_policy_info(world: GridWorld, agent: QLearningAgent) -> None:
    """
    Print the greedy policy and the layout side by side.
    """
    layout = world.get_grid_string().split('\n')
    policy = greedy_policy_grid(world, agent).split('\n')
    print(f"{'Layout':<{world.grid_size}}   Policy")
    for left, right in zip(layout, policy):
        print(f"{left}   {right}")


def print_q_values(world: GridWorld, agent: QLearningAgent) -> None:
    """
    Print the Q-values of every state.

    Args:
        world: The GridWorld the agent was trained on.
        agent: The trained agent.
    """
    q = agent.q_table
    print("Q-values:")
    print("-" * 70)
    print(f"{'State':>6} {'Position':>10} | {'Up':>8} {'Down':>8} {'Left':>8} {'Right':>8}")
    print("-" * 70)

    for s in range(world.n_states):
        pos = world.position_of(s)
        marker = f" {world.hazards.cell_char(pos)}" if world.hazards.cell_char(pos) != '.' else ""
        print(
            f"{s:>6} {str(pos):>10}{marker:2} | "
            f"{q[s, 0]:>8.2f} {q[s, 1]:>8.2f} {q[s, 2]:>8.2f} {q[s, 3]:>8.2f}"
        )

    print("-" * 70)
