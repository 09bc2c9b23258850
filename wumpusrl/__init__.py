"""
wumpusrl: Tabular Q-learning in a hazard-filled Wumpus grid world.

This package provides tools for:
- Generating and parsing Wumpus grid layouts (goal, wumpus, traps, obstacles)
- Resolving moves and classifying cells into rewards
- Learning a policy with an epsilon-greedy Q-learning agent
- Driving training sessions episode by episode
"""

from wumpusrl.agent import QLearningAgent
from wumpusrl.config import AgentConfig, SessionConfig
from wumpusrl.controller import (
    EpisodeController,
    EpisodeOutcome,
    SessionStatus,
    StepOutcome,
)
from wumpusrl.entities import AgentBody, Movable, PlayerBody
from wumpusrl.grid_env import (
    BlockReason,
    GridWorld,
    HazardMap,
    generate_hazard_map,
)
from wumpusrl.utils import (
    StepScheduler,
    new_session,
    run_session,
)

__version__ = "0.1.0"
__all__ = [
    "QLearningAgent",
    "AgentConfig",
    "SessionConfig",
    "EpisodeController",
    "EpisodeOutcome",
    "SessionStatus",
    "StepOutcome",
    "AgentBody",
    "Movable",
    "PlayerBody",
    "BlockReason",
    "GridWorld",
    "HazardMap",
    "generate_hazard_map",
    "StepScheduler",
    "new_session",
    "run_session",
]
