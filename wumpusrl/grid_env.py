"""
GridWorld Environment Module

This module provides the HazardMap layout and the GridWorld model of the
Wumpus grid used by the Q-learning agent.

Layouts can be generated at random or parsed from text where, reading the
top line as the highest row:
    - '.' represents free cells ('S' may mark the start cell)
    - '#' represents obstacles (impassable)
    - 'T' represents lethal traps
    - 'W' represents the wumpus ('w' for a dead one)
    - 'G' represents the unique goal cell

The environment is episodic:
    - Entering the goal yields +100 and ends the session
    - Entering a trap or a live wumpus yields -100 and ends the episode
    - Bumping into the border or an obstacle leaves the agent in place
      with -10 or -5 respectively
    - All other moves yield -1
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Tuple

import numpy as np

from wumpusrl.config import (
    REWARD_GOAL,
    REWARD_OBSTACLE,
    REWARD_STEP,
    REWARD_TRAP,
    REWARD_WALL,
    REWARD_WUMPUS,
    SAFE_REGION_SIZE,
)

logger = logging.getLogger(__name__)

Coord = Tuple[int, int]

INVALID_STATE: int = -1

ACTION_UP: int = 0
ACTION_DOWN: int = 1
ACTION_LEFT: int = 2
ACTION_RIGHT: int = 3
N_ACTIONS: int = 4


class BlockReason(Enum):
    """Why a move left the agent in place."""
    WALL = "wall"
    OBSTACLE = "obstacle"


class MoveResult(NamedTuple):
    target: Coord
    blocked: bool
    block_reason: Optional[BlockReason]


class Transition(NamedTuple):
    """Full outcome of one move: resolved position plus reward signal."""
    target: Coord
    reward: float
    terminal: bool
    won: bool
    blocked: bool
    block_reason: Optional[BlockReason]


class Percepts(NamedTuple):
    stench: bool
    breeze: bool
    glitter: bool


def in_safe_region(position: Coord) -> bool:
    x, y = position
    return 0 <= x < SAFE_REGION_SIZE and 0 <= y < SAFE_REGION_SIZE


@dataclass(frozen=True)
class HazardMap:
    """
    Fixed layout of one training session.

    Attributes:
        grid_size: Side length of the square grid.
        goal: The unique goal cell.
        wumpus: Cell occupied by the (stationary) wumpus.
        traps: Lethal trap cells.
        obstacles: Impassable cells.
        wumpus_alive: Whether the wumpus cell is lethal.

    Raises:
        ValueError: If a cell is out of bounds, two special cells coincide,
            or a special cell lies in the safe start region.
    """
    grid_size: int
    goal: Coord
    wumpus: Coord
    traps: FrozenSet[Coord] = field(default_factory=frozenset)
    obstacles: FrozenSet[Coord] = field(default_factory=frozenset)
    wumpus_alive: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "traps", frozenset(tuple(c) for c in self.traps))
        object.__setattr__(self, "obstacles", frozenset(tuple(c) for c in self.obstacles))
        object.__setattr__(self, "goal", tuple(self.goal))
        object.__setattr__(self, "wumpus", tuple(self.wumpus))

        if self.grid_size <= SAFE_REGION_SIZE:
            raise ValueError(
                f"grid_size must be greater than {SAFE_REGION_SIZE}, got {self.grid_size}"
            )

        cells: List[Coord] = [self.goal, self.wumpus, *self.traps, *self.obstacles]
        for cell in cells:
            x, y = cell
            if not (0 <= x < self.grid_size and 0 <= y < self.grid_size):
                raise ValueError(f"Cell {cell} is outside the {self.grid_size}x{self.grid_size} grid")
            if in_safe_region(cell):
                raise ValueError(f"Cell {cell} lies in the safe start region")

        if len(set(cells)) != len(cells):
            raise ValueError("Goal, wumpus, traps and obstacles must occupy distinct cells")

    def cell_char(self, position: Coord) -> str:
        if position == self.goal:
            return 'G'
        if position == self.wumpus:
            return 'W' if self.wumpus_alive else 'w'
        if position in self.traps:
            return 'T'
        if position in self.obstacles:
            return '#'
        return '.'


def generate_hazard_map(
    grid_size: int,
    n_traps: int,
    n_obstacles: int,
    rng: Optional[np.random.Generator] = None
) -> HazardMap:
    """
    Generate a random HazardMap.

    Goal, wumpus, traps and obstacles are drawn uniformly without
    replacement from all cells outside the safe start region.

    Args:
        grid_size: Side length of the square grid.
        n_traps: Number of traps to place.
        n_obstacles: Number of obstacles to place.
        rng: Random number generator. If None, uses numpy's default.

    Returns:
        A validated HazardMap.

    Raises:
        ValueError: If the grid has too few eligible cells.

    Example:
        >>> hazards = generate_hazard_map(8, 3, 4, rng=np.random.default_rng(0))
        >>> assert len(hazards.traps) == 3
    """
    if rng is None:
        rng = np.random.default_rng()

    candidates = [
        (x, y)
        for y in range(grid_size)
        for x in range(grid_size)
        if not in_safe_region((x, y))
    ]
    needed = 2 + n_traps + n_obstacles
    if needed > len(candidates):
        raise ValueError(
            f"Cannot place {needed} special cells on a {grid_size}x{grid_size} grid "
            f"({len(candidates)} eligible cells)"
        )

    picks = rng.choice(len(candidates), size=needed, replace=False)
    cells = [candidates[int(i)] for i in picks]

    hazards = HazardMap(
        grid_size=grid_size,
        goal=cells[0],
        wumpus=cells[1],
        traps=frozenset(cells[2:2 + n_traps]),
        obstacles=frozenset(cells[2 + n_traps:]),
    )
    logger.debug("Generated hazard map: goal=%s wumpus=%s", hazards.goal, hazards.wumpus)
    return hazards


class GridWorld:
    """
    Deterministic model of the Wumpus grid.

    Every method is a pure function of the HazardMap and its arguments;
    the agent's position lives with the caller.

    Attributes:
        hazards: The session's HazardMap.
        grid_size: Side length of the grid.
        n_states: Number of state indices (grid_size ** 2).
        n_actions: Number of actions (always 4).
        ACTIONS: Dictionary mapping action indices to action names.
        ACTION_DELTAS: Dictionary mapping action indices to (dx, dy).

    Example:
        >>> world = GridWorld.from_lines(["...G", "..T.", "....", "S.W."])
        >>> world.step((0, 0), ACTION_RIGHT)
        Transition(target=(1, 0), reward=-1.0, terminal=False, won=False, blocked=False, block_reason=None)
    """

    ACTIONS: Dict[int, str] = {
        ACTION_UP: "up",
        ACTION_DOWN: "down",
        ACTION_LEFT: "left",
        ACTION_RIGHT: "right",
    }

    # y grows upwards
    ACTION_DELTAS: Dict[int, Coord] = {
        ACTION_UP: (0, 1),
        ACTION_DOWN: (0, -1),
        ACTION_LEFT: (-1, 0),
        ACTION_RIGHT: (1, 0),
    }

    def __init__(self, hazards: HazardMap) -> None:
        self.hazards: HazardMap = hazards
        self.grid_size: int = hazards.grid_size
        self.n_states: int = self.grid_size * self.grid_size
        self.n_actions: int = N_ACTIONS

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "GridWorld":
        """
        Build a GridWorld from a text layout.

        Args:
            lines: Rows of the grid, top (highest y) first.

        Returns:
            A configured GridWorld instance.

        Raises:
            ValueError: If the layout is not square, contains invalid
                characters, or does not have exactly one goal and one wumpus.
        """
        rows = [line.rstrip('\r\n') for line in lines if line.strip()]
        if not rows:
            raise ValueError("Layout cannot be empty")

        size = len(rows)
        valid_chars = {'.', 'S', '#', 'T', 'W', 'w', 'G'}
        goals: List[Coord] = []
        wumpi: List[Tuple[Coord, bool]] = []
        traps: List[Coord] = []
        obstacles: List[Coord] = []

        for row_idx, row in enumerate(rows):
            if len(row) != size:
                raise ValueError(
                    f"Row {row_idx} has length {len(row)}, expected {size}. "
                    "Layouts must be square."
                )
            y = size - 1 - row_idx
            for x, char in enumerate(row):
                if char not in valid_chars:
                    raise ValueError(
                        f"Invalid character '{char}' at position ({x}, {y}). "
                        f"Valid characters are: {sorted(valid_chars)}"
                    )
                if char == 'G':
                    goals.append((x, y))
                elif char in ('W', 'w'):
                    wumpi.append(((x, y), char == 'W'))
                elif char == 'T':
                    traps.append((x, y))
                elif char == '#':
                    obstacles.append((x, y))

        if len(goals) != 1:
            raise ValueError(f"Layout must contain exactly one goal 'G'. Found {len(goals)}.")
        if len(wumpi) != 1:
            raise ValueError(f"Layout must contain exactly one wumpus 'W'. Found {len(wumpi)}.")

        wumpus, alive = wumpi[0]
        hazards = HazardMap(
            grid_size=size,
            goal=goals[0],
            wumpus=wumpus,
            traps=frozenset(traps),
            obstacles=frozenset(obstacles),
            wumpus_alive=alive,
        )
        return cls(hazards)

    @classmethod
    def from_txt(cls, path: str | Path) -> "GridWorld":
        """
        Load a GridWorld from a .txt layout file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file contains an invalid layout.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Layout file not found: {path}")

        with open(path, 'r') as f:
            lines = f.read().strip().split('\n')

        return cls.from_lines(lines)

    def is_in_bounds(self, position: Coord) -> bool:
        x, y = position
        return 0 <= x < self.grid_size and 0 <= y < self.grid_size

    def state_index(self, position: Coord) -> int:
        """
        Encode a coordinate as a state index (y * grid_size + x).

        Returns:
            The state index, or INVALID_STATE for out-of-bounds coordinates.
        """
        if not self.is_in_bounds(position):
            return INVALID_STATE
        x, y = position
        return y * self.grid_size + x

    def position_of(self, state: int) -> Coord:
        """
        Decode a state index back to its (x, y) coordinate.

        Raises:
            ValueError: If state is out of range.
        """
        if state < 0 or state >= self.n_states:
            raise ValueError(f"Invalid state {state}. Must be in [0, {self.n_states - 1}]")
        return (state % self.grid_size, state // self.grid_size)

    def resolve_move(self, position: Coord, action: int) -> MoveResult:
        """
        Resolve where an action takes the agent.

        Moves leaving the grid are blocked with BlockReason.WALL, moves into
        an obstacle with BlockReason.OBSTACLE; a blocked agent stays put.

        Args:
            position: Current (x, y) position.
            action: Action index (0 to n_actions-1).

        Returns:
            MoveResult(target, blocked, block_reason).

        Raises:
            ValueError: If action is out of bounds.
        """
        if action not in self.ACTION_DELTAS:
            raise ValueError(f"Invalid action {action}. Must be in [0, {self.n_actions - 1}]")

        dx, dy = self.ACTION_DELTAS[action]
        candidate = (position[0] + dx, position[1] + dy)

        if not self.is_in_bounds(candidate):
            return MoveResult(tuple(position), True, BlockReason.WALL)
        if candidate in self.hazards.obstacles:
            return MoveResult(tuple(position), True, BlockReason.OBSTACLE)
        return MoveResult(candidate, False, None)

    def classify(
        self,
        position: Coord,
        block_reason: Optional[BlockReason] = None
    ) -> Tuple[float, bool]:
        """
        Compute the reward and terminal flag for arriving at a cell.

        Checks run in priority order: goal, traps, live wumpus, then the
        block penalties, then the ordinary step cost.

        Args:
            position: Cell the agent ended up in.
            block_reason: Why the move was blocked, if it was.

        Returns:
            Tuple of (reward, terminal).
        """
        hazards = self.hazards
        if position == hazards.goal:
            return REWARD_GOAL, True
        if position in hazards.traps:
            return REWARD_TRAP, True
        if hazards.wumpus_alive and position == hazards.wumpus:
            return REWARD_WUMPUS, True
        if block_reason is BlockReason.WALL:
            return REWARD_WALL, False
        if block_reason is BlockReason.OBSTACLE:
            return REWARD_OBSTACLE, False
        return REWARD_STEP, False

    def step(self, position: Coord, action: int) -> Transition:
        """
        Execute one move from position.

        Args:
            position: Current (x, y) position.
            action: Action index.

        Returns:
            Transition with the resolved target and its reward signal.
        """
        move = self.resolve_move(position, action)
        reward, terminal = self.classify(move.target, move.block_reason)
        won = terminal and move.target == self.hazards.goal
        return Transition(
            target=move.target,
            reward=reward,
            terminal=terminal,
            won=won,
            blocked=move.blocked,
            block_reason=move.block_reason,
        )

    def percepts(self, position: Coord) -> Percepts:
        """
        Sense the neighbourhood of a cell.

        Stench next to a live wumpus, breeze next to a trap, glitter on
        the goal. Adjacency is orthogonal only.
        """
        x, y = position
        neighbours = {(x + dx, y + dy) for dx, dy in self.ACTION_DELTAS.values()}
        hazards = self.hazards
        return Percepts(
            stench=hazards.wumpus_alive and hazards.wumpus in neighbours,
            breeze=any(trap in neighbours for trap in hazards.traps),
            glitter=tuple(position) == hazards.goal,
        )

    def get_grid_string(self) -> str:
        """
        Get a string representation of the grid.

        Returns:
            Multi-line string, top line is the highest row.
        """
        return '\n'.join(
            ''.join(self.hazards.cell_char((x, y)) for x in range(self.grid_size))
            for y in reversed(range(self.grid_size))
        )

    def __repr__(self) -> str:
        return (
            f"GridWorld(grid_size={self.grid_size}, n_states={self.n_states}, "
            f"goal={self.hazards.goal}, wumpus={self.hazards.wumpus})"
        )

    def __str__(self) -> str:
        return self.get_grid_string()
