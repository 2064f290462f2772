"""Human-vs-computer game loop: setup, turn sequencing and win detection."""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from armada.ai.targeting import TargetingEngine
from armada.core.config import BOARD_SIZE, FLEET_LENGTHS
from armada.core.result import ServiceResult
from armada.game.board import (
    Board,
    Coord,
    Orientation,
    PlacementError,
    ShotOutcome,
    ShotResult,
    create_ships,
)

logger = logging.getLogger(__name__)

LOG_LIMIT = 5
TEST_MODE_MESSAGE = (
    "Test mode: the highlighted cell is the computer's suggested shot. "
    "Pick any cell on your board to commit its next move"
)


class GamePhase(str, Enum):
    SETUP = "setup"
    PLAYING = "playing"
    ENDED = "ended"


class Winner(str, Enum):
    PLAYER = "player"
    COMPUTER = "computer"


class TurnInProgressError(RuntimeError):
    """A turn was requested while the previous one is still being applied."""


_OUTCOME_TEXT = {
    ShotOutcome.MISS: "missed",
    ShotOutcome.HIT: "hit",
    ShotOutcome.SUNK: "sunk a ship",
}


@dataclass
class GameSession:
    """
    One player's game against the computer.

    ``player_board`` holds the human fleet (the computer fires at it) and
    ``enemy_board`` holds the computer fleet. The targeting engine is created
    once per session and only ever reset between games.
    """

    size: int = BOARD_SIZE
    fleet: tuple[int, ...] = FLEET_LENGTHS
    rng: random.Random = field(default_factory=random.Random)
    engine: TargetingEngine | None = None
    phase: GamePhase = GamePhase.SETUP
    winner: Winner | None = None
    message: str = "Select ship, then place on grid"
    log: list[str] = field(default_factory=list)
    test_mode: bool = False
    recommended_shot: Coord | None = None

    def __post_init__(self) -> None:
        self.fleet = tuple(self.fleet)
        self.player_board = self._empty_board()
        self.enemy_board = self._empty_board()
        if self.engine is None:
            self.engine = TargetingEngine(size=self.size, fleet=self.fleet)
        self._turn_lock = threading.Lock()

    def _empty_board(self) -> Board:
        return Board(size=self.size, ships=create_ships(self.fleet))

    def append_log(self, message: str) -> None:
        self.log.append(message)
        if len(self.log) > LOG_LIMIT:
            self.log.pop(0)

    @contextmanager
    def _turn(self) -> Iterator[None]:
        if not self._turn_lock.acquire(blocking=False):
            raise TurnInProgressError("A turn is already in progress")
        try:
            yield
        finally:
            self._turn_lock.release()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def place_ship(
        self, ship_id: int, origin: Coord, orientation: Orientation
    ) -> ServiceResult[None]:
        """Put one ship of the human fleet at ``origin``."""
        with self._turn():
            if self.phase is not GamePhase.SETUP:
                return ServiceResult.fail("Ships can only be placed during setup")
            try:
                ship = self.player_board.get_ship(ship_id)
            except KeyError:
                return ServiceResult.fail(f"Unknown ship {ship_id}")
            if ship.placed:
                return ServiceResult.fail(f"{ship.name} is already placed")
            if not self.player_board.can_place(origin, ship.length, orientation):
                return ServiceResult.fail("Cannot place ship there!")

            self.player_board.place(origin, ship.length, orientation, ship.id)
            self.message = (
                'All ships placed! Click "Start Game" to begin'
                if self.player_board.all_placed()
                else "Select another ship to place"
            )
            return ServiceResult.ok()

    def remove_ship(self, ship_id: int) -> ServiceResult[None]:
        with self._turn():
            if self.phase is not GamePhase.SETUP:
                return ServiceResult.fail("Ships can only be moved during setup")
            try:
                self.player_board.remove_ship(ship_id)
            except KeyError:
                return ServiceResult.fail(f"Unknown ship {ship_id}")
            self.message = "Ship removed. Click to select and place it again"
            return ServiceResult.ok()

    def auto_place(self) -> ServiceResult[None]:
        """Replace the human fleet with a random, complete placement."""
        with self._turn():
            if self.phase is not GamePhase.SETUP:
                return ServiceResult.fail("Ships can only be placed during setup")
            board = self._empty_board()
            try:
                board.place_fleet_randomly(rng=self.rng)
            except PlacementError as e:
                return ServiceResult.fail(str(e))
            self.player_board = board
            self.message = 'Ships placed! Click "Start Game" to begin'
            return ServiceResult.ok()

    def start(self) -> ServiceResult[None]:
        """Place the computer fleet and move to play once the human fleet is down."""
        with self._turn():
            if self.phase is not GamePhase.SETUP:
                return ServiceResult.fail("Game already started")
            if not self.player_board.all_placed():
                return ServiceResult.fail("Place your ships first!")

            enemy = self._empty_board()
            try:
                enemy.place_fleet_randomly(rng=self.rng)
            except PlacementError as e:
                logger.error("Enemy fleet placement failed: %s", e)
                return ServiceResult.fail(str(e))

            self.enemy_board = enemy
            self.engine.reset()
            self.test_mode = False
            self.recommended_shot = None
            self.phase = GamePhase.PLAYING
            self.message = "Your turn! Click in Enemy Waters to fire"
            logger.info("Game started on a %dx%d board", self.size, self.size)
            return ServiceResult.ok()

    def reset(self) -> None:
        """Clear both boards and go back to setup, keeping the same engine."""
        with self._turn():
            self.player_board = self._empty_board()
            self.enemy_board = self._empty_board()
            self.engine.reset()
            self.phase = GamePhase.SETUP
            self.winner = None
            self.test_mode = False
            self.recommended_shot = None
            self.log.clear()
            self.message = "Select ship, then place on grid"

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def fire(self, coord: Coord) -> ServiceResult[dict[str, Any]]:
        """
        Apply the human's shot, then the computer's reply, as one turn.

        In test mode the computer does not answer; its suggested shot is
        kept in ``recommended_shot`` until one is committed with
        ``commit_computer_shot``.
        """
        with self._turn():
            if self.phase is not GamePhase.PLAYING:
                return ServiceResult.fail("Game is not in progress")
            if not self.enemy_board.in_bounds(coord):
                return ServiceResult.fail("Shot is off the board")
            if self.enemy_board.is_resolved(coord):
                return ServiceResult.fail("Already fired there! Pick another cell")

            player_shot = self.enemy_board.resolve_shot(coord)
            self.append_log(f"You {_OUTCOME_TEXT[player_shot.outcome]} at {coord}")
            turn: dict[str, Any] = {"player": player_shot, "computer": None}

            if self.enemy_board.fleet_destroyed():
                self._finish(Winner.PLAYER, "You win! All enemy ships destroyed!")
                return ServiceResult.ok(turn)

            if self.test_mode:
                if self.recommended_shot is None:
                    self.recommended_shot = self.engine.next_shot()
                self.message = TEST_MODE_MESSAGE
                return ServiceResult.ok(turn)

            computer_shot = self._computer_turn()
            turn["computer"] = computer_shot

            if self.player_board.fleet_destroyed():
                self._finish(Winner.COMPUTER, "Computer wins! All your ships destroyed!")
            elif computer_shot.outcome is ShotOutcome.SUNK:
                self.message = "Computer sunk your ship! Your turn"
            elif computer_shot.outcome is ShotOutcome.HIT:
                self.message = "Computer hit your ship! Your turn"
            else:
                self.message = "Computer missed! Your turn"
            return ServiceResult.ok(turn)

    def _computer_turn(self) -> ShotResult:
        return self._apply_computer_shot(self.engine.next_shot())

    def _apply_computer_shot(self, shot: Coord) -> ShotResult:
        result = self.player_board.resolve_shot(shot)
        self.engine.report_result(shot, result.outcome, result.sunk_cells)
        self.append_log(f"Computer {_OUTCOME_TEXT[result.outcome]} at {shot}")
        return result

    def _finish(self, winner: Winner, message: str) -> None:
        self.phase = GamePhase.ENDED
        self.winner = winner
        self.recommended_shot = None
        self.message = message
        logger.info("Game over, %s wins", winner.value)

    # ------------------------------------------------------------------
    # Test mode
    # ------------------------------------------------------------------

    def set_test_mode(self, enabled: bool) -> ServiceResult[None]:
        """
        Switch test mode on or off.

        While it is on the computer only suggests its next shot, and the
        human commits the computer's moves one at a time. Switching it off
        hands the unused suggestion back to the targeting engine.
        """
        with self._turn():
            if self.phase is not GamePhase.PLAYING:
                return ServiceResult.fail("Test mode is only available during play")
            if enabled == self.test_mode:
                return ServiceResult.ok()

            self.test_mode = enabled
            if enabled:
                self.recommended_shot = self.engine.next_shot()
                self.message = TEST_MODE_MESSAGE
            else:
                self.engine.withdraw_shot()
                self.recommended_shot = None
                self.message = "Your turn! Click in Enemy Waters to fire"
            logger.info("Test mode %s", "enabled" if enabled else "disabled")
            return ServiceResult.ok()

    def commit_computer_shot(self, coord: Coord) -> ServiceResult[ShotResult]:
        """Fire the computer's shot at ``coord`` on the human board while in test mode."""
        with self._turn():
            if self.phase is not GamePhase.PLAYING or not self.test_mode:
                return ServiceResult.fail("Computer shots are only taken in test mode")
            if not self.player_board.in_bounds(coord):
                return ServiceResult.fail("Shot is off the board")
            if self.player_board.is_resolved(coord):
                return ServiceResult.fail("Computer already fired there! Pick another cell")

            if coord != self.recommended_shot:
                self.engine.withdraw_shot()
            self.recommended_shot = None
            result = self._apply_computer_shot(coord)

            if self.player_board.fleet_destroyed():
                self._finish(Winner.COMPUTER, "Computer wins! All your ships destroyed!")
                return ServiceResult.ok(result)

            self.recommended_shot = self.engine.next_shot()
            self.message = (
                f"{result.outcome.value.capitalize()}! "
                "Commit the highlighted cell for the next suggestion"
            )
            return ServiceResult.ok(result)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready view of the session; enemy ships stay hidden until the game ends."""
        reveal_enemy = self.phase is GamePhase.ENDED
        return {
            "phase": self.phase.value,
            "winner": self.winner.value if self.winner else None,
            "message": self.message,
            "log": list(self.log),
            "ai_mode": self.engine.mode.value,
            "test_mode": self.test_mode,
            "recommended_shot": (
                list(self.recommended_shot) if self.recommended_shot else None
            ),
            "board_size": self.size,
            "player_board": self.player_board.view(),
            "enemy_board": self.enemy_board.view(reveal_ships=reveal_enemy),
            "ships": [
                {
                    "id": ship.id,
                    "name": ship.name,
                    "length": ship.length,
                    "placed": ship.placed,
                    "hits": ship.hits,
                    "sunk": ship.sunk,
                }
                for ship in self.player_board.ships
            ],
            "enemy_ships_sunk": sum(ship.sunk for ship in self.enemy_board.ships),
        }
