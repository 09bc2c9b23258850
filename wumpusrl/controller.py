"""
Episode Controller Module

Drives the interaction between a QLearningAgent and a GridWorld for one
training session and manages episode boundaries.

Session states:
    - RUNNING: steps are processed
    - SESSION_WON: the goal was reached; no further steps are processed

Losing an episode (trap or live wumpus) is a transient event: the agent is
put back on the start cell, the episode counter is incremented, epsilon is
decayed once, and the session keeps RUNNING on the same HazardMap.

The controller holds no clock. An external scheduler calls step() at
whatever cadence it wants.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from wumpusrl.agent import QLearningAgent
from wumpusrl.entities import AgentBody
from wumpusrl.grid_env import BlockReason, Coord, GridWorld, HazardMap

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    RUNNING = "running"
    SESSION_WON = "session_won"


class EpisodeOutcome(Enum):
    IN_PROGRESS = "in_progress"
    LOST = "lost"
    WON = "won"


@dataclass
class EpisodeState:
    """Mutable per-session bookkeeping, reset at each episode boundary."""
    episode: int = 0
    steps: int = 0
    total_reward: float = 0.0
    last_action: Optional[int] = None

    def start_next_episode(self) -> None:
        self.episode += 1
        self.steps = 0
        self.total_reward = 0.0
        self.last_action = None


@dataclass(frozen=True)
class StepOutcome:
    """
    Result of one controller step, for status display and animation.

    Attributes:
        episode: Episode the step belonged to.
        action: Action the agent chose.
        origin: Position before the step.
        target: Cell the move resolved to (the losing cell on a loss).
        reward: Reward fed to the agent.
        blocked: Whether the move was blocked.
        block_reason: Why it was blocked, if it was.
        outcome: IN_PROGRESS, LOST or WON.
        exploration_rate: Agent's epsilon after the step.
    """
    episode: int
    action: int
    origin: Coord
    target: Coord
    reward: float
    blocked: bool
    block_reason: Optional[BlockReason]
    outcome: EpisodeOutcome
    exploration_rate: float

    @property
    def episode_ended(self) -> bool:
        return self.outcome is not EpisodeOutcome.IN_PROGRESS

    @property
    def session_won(self) -> bool:
        return self.outcome is EpisodeOutcome.WON


class EpisodeController:
    """
    Orchestrates one training session.

    Args:
        world: GridWorld built on the session's HazardMap.
        agent: Learner whose Q-table covers world.n_states states.
        start: Cell every episode starts from.

    Raises:
        ValueError: If the agent's state space does not match the world, or
            start is not a free cell of the grid.

    Example:
        >>> world = GridWorld(generate_hazard_map(8, 3, 4))
        >>> controller = EpisodeController(world, QLearningAgent(world.n_states))
        >>> outcome = controller.step()
    """

    def __init__(
        self,
        world: GridWorld,
        agent: QLearningAgent,
        start: Coord = (0, 0)
    ) -> None:
        if agent.n_states != world.n_states or agent.n_actions != world.n_actions:
            raise ValueError(
                f"Agent shape ({agent.n_states}, {agent.n_actions}) doesn't match "
                f"world ({world.n_states}, {world.n_actions})"
            )
        start = tuple(start)
        if not world.is_in_bounds(start):
            raise ValueError(f"Start {start} is outside the grid")
        if world.hazards.cell_char(start) != '.':
            raise ValueError(f"Start {start} is not a free cell")

        self.world: GridWorld = world
        self.agent: QLearningAgent = agent
        self.start: Coord = start
        self.body: AgentBody = AgentBody(start)
        self.state: EpisodeState = EpisodeState()
        self._status: SessionStatus = SessionStatus.RUNNING

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_won(self) -> bool:
        return self._status is SessionStatus.SESSION_WON

    @property
    def position(self) -> Coord:
        return self.body.position

    @property
    def episode(self) -> int:
        return self.state.episode

    @property
    def exploration_rate(self) -> float:
        return self.agent.exploration_rate

    @property
    def last_action(self) -> Optional[int]:
        return self.state.last_action

    @property
    def hazards(self) -> HazardMap:
        return self.world.hazards

    def step(self) -> Optional[StepOutcome]:
        """
        Advance the session by one transition.

        Returns:
            The StepOutcome, or None if the session is already won.
        """
        if self.is_won:
            return None

        origin = self.body.position
        state = self.world.state_index(origin)
        action = self.agent.choose_action(state)
        transition = self.world.step(origin, action)
        next_state = self.world.state_index(transition.target)

        self.agent.update(state, action, transition.reward, next_state)

        episode = self.state.episode
        self.state.steps += 1
        self.state.total_reward += transition.reward
        self.state.last_action = action
        self.body.move_to(transition.target)

        if transition.won:
            outcome = EpisodeOutcome.WON
            self._status = SessionStatus.SESSION_WON
            logger.info(
                "Session won in episode %d after %d steps (epsilon=%.4f)",
                episode, self.state.steps, self.agent.exploration_rate
            )
        elif transition.terminal:
            outcome = EpisodeOutcome.LOST
            logger.debug(
                "Episode %d lost at %s after %d steps (reward %.1f)",
                episode, transition.target, self.state.steps, self.state.total_reward
            )
            self._reset_episode()
        else:
            outcome = EpisodeOutcome.IN_PROGRESS
            logger.debug(
                "Episode %d: %s %s -> %s reward=%.1f",
                episode, self.world.ACTIONS[action], origin, transition.target, transition.reward
            )

        return StepOutcome(
            episode=episode,
            action=action,
            origin=origin,
            target=transition.target,
            reward=transition.reward,
            blocked=transition.blocked,
            block_reason=transition.block_reason,
            outcome=outcome,
            exploration_rate=self.agent.exploration_rate,
        )

    def _reset_episode(self) -> None:
        self.body.move_to(self.start)
        self.state.start_next_episode()
        self.agent.decay_exploration_rate()

    def __repr__(self) -> str:
        return (
            f"EpisodeController(status={self._status.value}, episode={self.state.episode}, "
            f"position={self.body.position})"
        )
