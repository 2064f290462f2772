"""
Board and ship model: grid cells, placement rules and shot resolution.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum

from armada.core.config import (
    BOARD_SIZE,
    FLEET_LENGTHS,
    PLACEMENT_MAX_ATTEMPTS,
    SHIP_NAMES,
)

logger = logging.getLogger(__name__)

Coord = tuple[int, int]


class CellState(str, Enum):
    EMPTY = "empty"
    SHIP = "ship"
    HIT = "hit"
    MISS = "miss"
    SUNK = "sunk"


RESOLVED_STATES = frozenset({CellState.HIT, CellState.MISS, CellState.SUNK})


class Orientation(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    def step(self) -> Coord:
        return (0, 1) if self is Orientation.HORIZONTAL else (1, 0)


class ShotOutcome(str, Enum):
    MISS = "miss"
    HIT = "hit"
    SUNK = "sunk"


class PlacementError(RuntimeError):
    """Random placement ran out of attempts for one or more ships."""

    def __init__(self, ship_ids: list[int]) -> None:
        self.ship_ids = ship_ids
        super().__init__(f"Could not place ships: {ship_ids}")


@dataclass
class Cell:
    state: CellState = CellState.EMPTY
    ship_id: int | None = None


@dataclass
class Ship:
    """A ship in the fleet; ``sunk`` flips once ``hits`` reaches ``length``."""

    id: int
    length: int
    name: str = ""
    hits: int = 0
    sunk: bool = False
    placed: bool = False


@dataclass(frozen=True)
class ShotResult:
    """Resolution of one shot, including every cell of a ship that just sank."""

    coord: Coord
    outcome: ShotOutcome
    sunk_cells: tuple[Coord, ...] = ()


def create_ships(fleet: tuple[int, ...] | list[int] = FLEET_LENGTHS) -> list[Ship]:
    return [
        Ship(id=index, length=length, name=SHIP_NAMES.get(index, f"Ship {index + 1}"))
        for index, length in enumerate(fleet)
    ]


def ship_cells(origin: Coord, length: int, orientation: Orientation) -> list[Coord]:
    dr, dc = orientation.step()
    row, col = origin
    return [(row + dr * i, col + dc * i) for i in range(length)]


@dataclass
class Board:
    """One side's grid and fleet roster for a single game."""

    size: int = BOARD_SIZE
    ships: list[Ship] = field(default_factory=create_ships)
    grid: list[list[Cell]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.grid:
            self.grid = [[Cell() for _ in range(self.size)] for _ in range(self.size)]

    @classmethod
    def new(
        cls,
        size: int = BOARD_SIZE,
        fleet: tuple[int, ...] | list[int] = FLEET_LENGTHS,
        rng: random.Random | None = None,
    ) -> Board:
        """Create a board with the whole fleet placed at random."""
        board = cls(size=size, ships=create_ships(fleet))
        board.place_fleet_randomly(rng=rng)
        return board

    def in_bounds(self, coord: Coord) -> bool:
        row, col = coord
        return 0 <= row < self.size and 0 <= col < self.size

    def cell(self, coord: Coord) -> Cell:
        row, col = coord
        return self.grid[row][col]

    def get_ship(self, ship_id: int) -> Ship:
        for ship in self.ships:
            if ship.id == ship_id:
                return ship
        raise KeyError(ship_id)

    def can_place(self, origin: Coord, length: int, orientation: Orientation) -> bool:
        """Return True if every covered cell is on the board and empty."""
        for coord in ship_cells(origin, length, orientation):
            if not self.in_bounds(coord) or self.cell(coord).state is not CellState.EMPTY:
                return False
        return True

    def place(
        self, origin: Coord, length: int, orientation: Orientation, ship_id: int
    ) -> None:
        """Mark covered cells as ``ship``. Callers validate with ``can_place`` first."""
        for coord in ship_cells(origin, length, orientation):
            target = self.cell(coord)
            target.state = CellState.SHIP
            target.ship_id = ship_id
        for ship in self.ships:
            if ship.id == ship_id:
                ship.placed = True

    def remove_ship(self, ship_id: int) -> None:
        for row in self.grid:
            for target in row:
                if target.ship_id == ship_id:
                    target.state = CellState.EMPTY
                    target.ship_id = None
        self.get_ship(ship_id).placed = False

    def place_fleet_randomly(
        self,
        rng: random.Random | None = None,
        max_attempts: int = PLACEMENT_MAX_ATTEMPTS,
    ) -> None:
        """Place every unplaced ship, longest first, at random valid slots."""
        rng = rng or random.Random()  # noqa: S311
        unplaced: list[int] = []

        for ship in sorted(self.ships, key=lambda s: s.length, reverse=True):
            if ship.placed:
                continue
            for _ in range(max_attempts):
                orientation = rng.choice(list(Orientation))
                if orientation is Orientation.HORIZONTAL:
                    row_limit, col_limit = self.size, self.size - ship.length + 1
                else:
                    row_limit, col_limit = self.size - ship.length + 1, self.size
                if row_limit <= 0 or col_limit <= 0:
                    break
                origin = (rng.randrange(row_limit), rng.randrange(col_limit))
                if self.can_place(origin, ship.length, orientation):
                    self.place(origin, ship.length, orientation, ship.id)
                    break
            if not ship.placed:
                logger.error(
                    "Gave up placing %s (length %d) after %d attempts",
                    ship.name,
                    ship.length,
                    max_attempts,
                )
                unplaced.append(ship.id)

        if unplaced:
            raise PlacementError(unplaced)

    def resolve_shot(self, coord: Coord) -> ShotResult:
        """Apply a shot at an unresolved cell and report what happened."""
        target = self.cell(coord)
        if target.state is not CellState.SHIP:
            target.state = CellState.MISS
            return ShotResult(coord, ShotOutcome.MISS)

        target.state = CellState.HIT
        ship = self.get_ship(target.ship_id)
        ship.hits += 1
        if ship.hits < ship.length:
            return ShotResult(coord, ShotOutcome.HIT)

        ship.sunk = True
        sunk_cells = self.cells_of(ship.id)
        for sunk in sunk_cells:
            self.cell(sunk).state = CellState.SUNK
        return ShotResult(coord, ShotOutcome.SUNK, tuple(sunk_cells))

    def cells_of(self, ship_id: int) -> list[Coord]:
        return [
            (row, col)
            for row in range(self.size)
            for col in range(self.size)
            if self.grid[row][col].ship_id == ship_id
        ]

    def is_resolved(self, coord: Coord) -> bool:
        return self.cell(coord).state in RESOLVED_STATES

    def fleet_destroyed(self) -> bool:
        return all(ship.sunk for ship in self.ships)

    def all_placed(self) -> bool:
        return all(ship.placed for ship in self.ships)

    def view(self, *, reveal_ships: bool = True) -> list[list[str]]:
        """Rows of cell-state strings; hidden ships read as ``empty``."""
        rows: list[list[str]] = []
        for row in self.grid:
            states: list[str] = []
            for target in row:
                if target.state is CellState.SHIP and not reveal_ships:
                    states.append(CellState.EMPTY.value)
                else:
                    states.append(target.state.value)
            rows.append(states)
        return rows
