"""
Configuration Module

Dataclasses holding the tunable parameters of the learner and of a
training session, plus the fixed reward signal of the Wumpus grid.

Reward table (checked in this order by GridWorld.classify):
    - goal reached:            +100, terminal (session win)
    - trap entered:            -100, terminal (episode loss)
    - live wumpus entered:     -100, terminal (episode loss)
    - bumped into the border:   -10
    - bumped into an obstacle:   -5
    - any other step:            -1
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

REWARD_GOAL: float = 100.0
REWARD_TRAP: float = -100.0
REWARD_WUMPUS: float = -100.0
REWARD_WALL: float = -10.0
REWARD_OBSTACLE: float = -5.0
REWARD_STEP: float = -1.0

DEFAULT_GRID_SIZE: int = 8
DEFAULT_STEP_INTERVAL: float = 0.15

# Side length of the square at the origin that never holds a hazard.
SAFE_REGION_SIZE: int = 2

TIE_BREAK_MODES = ("uniform", "sequential")


@dataclass
class AgentConfig:
    """
    Hyperparameters of the tabular Q-learning agent.

    Attributes:
        learning_rate: alpha, weight of the new estimate in each update.
        discount_factor: gamma, weight of future return.
        exploration_rate: initial epsilon.
        exploration_decay: factor applied to epsilon after each episode.
        min_exploration_rate: floor for epsilon.
        tie_break: "uniform" picks uniformly among tied greedy actions;
            "sequential" reproduces the legacy scan-and-coin-flip rule.
    """
    learning_rate: float = 0.8
    discount_factor: float = 0.9
    exploration_rate: float = 1.0
    exploration_decay: float = 0.9995
    min_exploration_rate: float = 0.01
    tie_break: str = "uniform"

    def __post_init__(self) -> None:
        if not 0.0 < self.learning_rate <= 1.0:
            raise ValueError(f"learning_rate must be in (0, 1], got {self.learning_rate}")
        if not 0.0 <= self.discount_factor <= 1.0:
            raise ValueError(f"discount_factor must be in [0, 1], got {self.discount_factor}")
        if not 0.0 < self.exploration_decay <= 1.0:
            raise ValueError(f"exploration_decay must be in (0, 1], got {self.exploration_decay}")
        if not 0.0 <= self.min_exploration_rate <= 1.0:
            raise ValueError(
                f"min_exploration_rate must be in [0, 1], got {self.min_exploration_rate}"
            )
        if not self.min_exploration_rate <= self.exploration_rate <= 1.0:
            raise ValueError(
                f"exploration_rate must be in [{self.min_exploration_rate}, 1], "
                f"got {self.exploration_rate}"
            )
        if self.tie_break not in TIE_BREAK_MODES:
            raise ValueError(
                f"Unknown tie_break '{self.tie_break}'. Valid modes are: {TIE_BREAK_MODES}"
            )


@dataclass
class SessionConfig:
    """
    Parameters of one training session (one generated hazard layout).

    Attributes:
        grid_size: Side length of the square grid.
        n_traps: Number of lethal traps to place.
        n_obstacles: Number of impassable obstacles to place.
        start: Cell every episode starts from.
        step_interval: Simulated seconds between two controller steps.
        seed: Seed for layout generation and exploration. None for entropy.
    """
    grid_size: int = DEFAULT_GRID_SIZE
    n_traps: int = 3
    n_obstacles: int = 4
    start: Tuple[int, int] = (0, 0)
    step_interval: float = DEFAULT_STEP_INTERVAL
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.grid_size < SAFE_REGION_SIZE + 1:
            raise ValueError(
                f"grid_size must be at least {SAFE_REGION_SIZE + 1}, got {self.grid_size}"
            )
        if self.n_traps < 0 or self.n_obstacles < 0:
            raise ValueError("n_traps and n_obstacles must be non-negative")
        x, y = self.start
        if not (0 <= x < SAFE_REGION_SIZE and 0 <= y < SAFE_REGION_SIZE):
            raise ValueError(f"start {self.start} must lie inside the safe start region")
        if self.step_interval <= 0:
            raise ValueError(f"step_interval must be positive, got {self.step_interval}")
