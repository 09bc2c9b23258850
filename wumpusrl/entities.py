"""
Entities that occupy a cell of the grid.

Both the learning agent and a human-controlled player "have a position and
can be moved"; that capability is the Movable protocol. The two bodies are
independent implementations of it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from wumpusrl.grid_env import Coord


@runtime_checkable
class Movable(Protocol):
    @property
    def position(self) -> Coord: ...

    def move_to(self, position: Coord) -> None: ...


class AgentBody:
    """Position of the learning agent. The controller decides every move."""

    def __init__(self, start: Coord) -> None:
        self._position: Coord = tuple(start)

    @property
    def position(self) -> Coord:
        return self._position

    def move_to(self, position: Coord) -> None:
        self._position = tuple(position)

    def __repr__(self) -> str:
        return f"AgentBody(position={self._position})"


class PlayerBody:
    """
    Position of a human-controlled player.

    Moves that would leave the grid are ignored. Hazards are not checked
    here; the caller classifies the resulting cell.
    """

    def __init__(self, start: Coord, grid_size: int) -> None:
        self._position: Coord = tuple(start)
        self.grid_size: int = grid_size

    @property
    def position(self) -> Coord:
        return self._position

    def move_to(self, position: Coord) -> None:
        x, y = position
        if 0 <= x < self.grid_size and 0 <= y < self.grid_size:
            self._position = (x, y)

    def move(self, dx: int, dy: int) -> Coord:
        """Shift by (dx, dy) if the result stays on the grid; return the new position."""
        x, y = self._position
        self.move_to((x + dx, y + dy))
        return self._position

    def __repr__(self) -> str:
        return f"PlayerBody(position={self._position})"
