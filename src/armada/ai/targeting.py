"""
Hunt/target shot selection for the computer opponent.

The engine only ever sees its own shot history: which cells it fired at and
whether each shot missed, hit, or sank a ship. It keeps that history in an
``EngineState`` that lives for the whole game and is cleared with ``reset``.

Hunt mode scores every unfired cell by how many placements of the surviving
ships could cover it and draws a cell weighted by that score, looking at one
checkerboard colour first. Target mode works through a queue of cells that
extend the known lines of open hits.
"""

from __future__ import annotations

import logging
import random
from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
from itertools import accumulate

from armada.ai.lines import (
    Line,
    find_lines,
    lines_through,
    longest_line,
    run_through,
    would_extend,
)
from armada.core.config import (
    AI_DETERMINISTIC,
    AI_RANDOM_SEED,
    BOARD_SIZE,
    FLEET_LENGTHS,
)
from armada.game.board import Coord, ShotOutcome

logger = logging.getLogger(__name__)

PARITY = 2

UP, DOWN, LEFT, RIGHT = (-1, 0), (1, 0), (0, -1), (0, 1)
DIRECTIONS: tuple[Coord, ...] = (UP, DOWN, LEFT, RIGHT)


class Mode(str, Enum):
    HUNT = "hunt"
    TARGET = "target"


class NoShotsRemainingError(RuntimeError):
    """Every cell on the board has already been fired upon."""


@dataclass
class EngineState:
    """Everything the engine has learned during one game."""

    remaining_lengths: list[int]
    mode: Mode = Mode.HUNT
    fired: set[Coord] = field(default_factory=set)
    misses: set[Coord] = field(default_factory=set)
    sunk: set[Coord] = field(default_factory=set)
    open_hits: list[Coord] = field(default_factory=list)
    queue: list[Coord] = field(default_factory=list)
    last_hit: Coord | None = None
    pending: Coord | None = None
    pending_queued: bool = False


class TargetingEngine:
    """Chooses the computer's next shot and learns from each outcome."""

    def __init__(
        self,
        size: int = BOARD_SIZE,
        fleet: tuple[int, ...] | list[int] = FLEET_LENGTHS,
        rng: random.Random | None = None,
        *,
        deterministic: bool = AI_DETERMINISTIC,
    ) -> None:
        self.size = size
        self.fleet = tuple(fleet)
        self.rng = rng or random.Random(AI_RANDOM_SEED)  # noqa: S311
        self.deterministic = deterministic
        self.state = EngineState(remaining_lengths=list(self.fleet))

    @property
    def mode(self) -> Mode:
        return self.state.mode

    def reset(self) -> None:
        """Forget the previous game entirely."""
        self.state = EngineState(remaining_lengths=list(self.fleet))

    # ------------------------------------------------------------------
    # Shot selection
    # ------------------------------------------------------------------

    def next_shot(self) -> Coord:
        """
        Pick the next cell to fire at and mark it as fired.

        Target mode works through the queue (rebuilding it when it runs dry)
        while open hits remain; otherwise, or once every open hit turns out
        to be stranded, a hunt shot is drawn from the scored parity cells.

        Raises:
            NoShotsRemainingError: every cell on the board has been fired at.
        """
        state = self.state
        queued = False

        if not state.open_hits:
            state.mode = Mode.HUNT
            shot = self._hunt_shot()
        else:
            state.mode = Mode.TARGET
            shot = self._pop_queue()
            if shot is None:
                self._rebuild_queue()
                shot = self._pop_queue()
            queued = shot is not None
            if shot is None:
                self._prune_stranded_hits()
                if not state.open_hits:
                    logger.debug("All open hits were stranded, back to hunting")
                    state.mode = Mode.HUNT
                shot = self._hunt_shot()

        state.fired.add(shot)
        state.pending = shot
        state.pending_queued = queued
        logger.debug("Next shot %s (mode=%s)", shot, state.mode.value)
        return shot

    def withdraw_shot(self) -> Coord | None:
        """
        Take back the last shot handed out by ``next_shot`` if it was never reported.

        The cell becomes available again and, when it came from the target
        queue, goes back to the front of it. Returns the withdrawn cell.
        """
        state = self.state
        shot, state.pending = state.pending, None
        queued, state.pending_queued = state.pending_queued, False
        if shot is None:
            return None

        state.fired.discard(shot)
        if queued and state.open_hits and shot not in state.queue:
            state.queue.insert(0, shot)
        logger.debug("Withdrew unreported shot %s", shot)
        return shot

    def _pop_queue(self) -> Coord | None:
        queue = self.state.queue
        while queue:
            candidate = queue.pop(0)
            if candidate not in self.state.fired:
                return candidate
        return None

    def _hunt_shot(self) -> Coord:
        """Draw from the parity cells, falling back to every unfired cell."""
        unfired = [
            (row, col)
            for row in range(self.size)
            for col in range(self.size)
            if (row, col) not in self.state.fired
        ]
        if not unfired:
            raise NoShotsRemainingError("Every cell has already been fired upon")

        parity = [(row, col) for row, col in unfired if (row + col) % PARITY == 0]
        for pool in (parity, unfired):
            scored = [(cell, self._cell_score(cell)) for cell in pool]
            scored = [(cell, score) for cell, score in scored if score > 0]
            if scored:
                return self._choose(scored)

        return unfired[0]

    def _choose(self, scored: list[tuple[Coord, int]]) -> Coord:
        """Pick one cell, by top score or by a score-weighted draw."""
        if self.deterministic:
            # Highest score; ties go to the lowest row, then column.
            return min(scored, key=lambda item: (-item[1], item[0]))[0]

        cumulative = list(accumulate(score for _, score in scored))
        draw = self.rng.random() * cumulative[-1]
        return scored[bisect_right(cumulative, draw)][0]

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _in_bounds(self, coord: Coord) -> bool:
        row, col = coord
        return 0 <= row < self.size and 0 <= col < self.size

    def _blocked(self, coord: Coord) -> bool:
        """A cell that no surviving ship can occupy."""
        return coord in self.state.misses or coord in self.state.sunk

    def _fits(self, cells: list[Coord]) -> bool:
        return all(self._in_bounds(c) and not self._blocked(c) for c in cells)

    def _cell_score(self, coord: Coord) -> int:
        """Number of surviving-ship placements that cover ``coord``."""
        row, col = coord
        score = 0
        for length in self.state.remaining_lengths:
            for offset in range(length):
                horizontal = [(row, col - offset + i) for i in range(length)]
                vertical = [(row - offset + i, col) for i in range(length)]
                score += self._fits(horizontal) + self._fits(vertical)
        return score

    def _direction_score(self, hit: Coord, direction: Coord) -> int:
        """Number of surviving lengths that fit running from ``hit`` in ``direction``."""
        (row, col), (dr, dc) = hit, direction
        return sum(
            self._fits([(row + dr * i, col + dc * i) for i in range(1, length)])
            for length in self.state.remaining_lengths
        )

    # ------------------------------------------------------------------
    # Queue construction
    # ------------------------------------------------------------------

    def _available(self, coord: Coord) -> bool:
        return self._in_bounds(coord) and coord not in self.state.fired

    def _extensions(self, line: Line) -> list[Coord]:
        return [c for c in line.extensions() if self._available(c)]

    def _scored_neighbors(
        self, hits: list[Coord], directions: tuple[Coord, ...] = DIRECTIONS
    ) -> list[Coord]:
        """Unfired neighbours of ``hits``, most promising direction first."""
        scored: dict[Coord, int] = {}
        for row, col in hits:
            for dr, dc in directions:
                neighbor = (row + dr, col + dc)
                if self._available(neighbor) and neighbor not in scored:
                    scored[neighbor] = self._direction_score((row, col), (dr, dc))
        return sorted(scored, key=lambda c: scored[c], reverse=True)

    def _rebuild_queue(self) -> None:
        """Refill the queue from the longest line, else from open hit neighbours."""
        state = self.state
        state.queue = []

        line = longest_line(find_lines(state.open_hits))
        if line is not None:
            state.queue = self._extensions(line)
            if not state.queue:
                across = (UP, DOWN) if line.horizontal else (LEFT, RIGHT)
                state.queue = self._scored_neighbors(list(line.cells), across)
                logger.debug("Line %s is capped, searching across it", line.cells)

        if not state.queue:
            state.queue = self._scored_neighbors(state.open_hits)

        logger.debug("Rebuilt target queue: %s", state.queue)

    def _prune_stranded_hits(self) -> None:
        """Forget open hits whose four neighbours have all been fired at."""
        state = self.state
        kept = [
            hit
            for hit in state.open_hits
            if any(
                self._available((hit[0] + dr, hit[1] + dc)) for dr, dc in DIRECTIONS
            )
        ]
        if len(kept) < len(state.open_hits):
            logger.warning(
                "Dropping %d stranded open hits with no unfired neighbours",
                len(state.open_hits) - len(kept),
            )
        state.open_hits = kept

    # ------------------------------------------------------------------
    # Outcome updates
    # ------------------------------------------------------------------

    def report_result(
        self,
        coord: Coord,
        outcome: ShotOutcome | str,
        sunk_coords: list[Coord] | tuple[Coord, ...] | None = None,
    ) -> None:
        """Fold the outcome of a shot at ``coord`` into the engine state."""
        outcome = ShotOutcome(outcome)
        state = self.state
        state.fired.add(coord)
        if coord == state.pending:
            state.pending = None
            state.pending_queued = False
        state.queue = [c for c in state.queue if c != coord]

        if outcome is ShotOutcome.HIT:
            self._record_hit(coord)
        elif outcome is ShotOutcome.MISS:
            self._record_miss(coord)
        else:
            self._record_sunk(coord, sunk_coords)

    def _record_hit(self, coord: Coord) -> None:
        state = self.state
        tracked = len(state.open_hits)
        state.open_hits.append(coord)
        state.mode = Mode.TARGET
        state.last_hit = coord

        if tracked == 0:
            state.queue = self._scored_neighbors([coord])
            return

        if tracked == 1:
            first = state.open_hits[0]
            if first[0] == coord[0]:
                cols = sorted((first[1], coord[1]))
                span = Line(((coord[0], cols[0]), (coord[0], cols[1])), horizontal=True)
            elif first[1] == coord[1]:
                rows = sorted((first[0], coord[0]))
                span = Line(((rows[0], coord[1]), (rows[1], coord[1])), horizontal=False)
            else:
                return
            state.queue = self._extensions(span)
            return

        best = longest_line(find_lines(state.open_hits))
        if best is not None and coord in best:
            logger.debug("Hit %s extends line %s", coord, best.cells)
            state.queue = self._extensions(best)
            return

        new_lines = lines_through(state.open_hits, coord)
        prioritized = [
            c for c in state.queue if any(would_extend(c, line) for line in new_lines)
        ]
        others = [c for c in state.queue if c not in prioritized]
        state.queue = prioritized + others

        if not prioritized:
            for line in new_lines:
                for extension in self._extensions(line):
                    if extension not in state.queue:
                        state.queue.insert(0, extension)

    def _record_miss(self, coord: Coord) -> None:
        state = self.state
        state.misses.add(coord)
        if not state.open_hits or not state.queue:
            return

        lines = find_lines(state.open_hits)
        if lines and not any(
            would_extend(target, line) for target in state.queue for line in lines
        ):
            logger.debug("Miss at %s left no queued cell on a known line", coord)
            self._rebuild_queue()

    def _record_sunk(
        self,
        coord: Coord,
        sunk_coords: list[Coord] | tuple[Coord, ...] | None,
    ) -> None:
        """Retire the sunk ship, then go back to any other open hits."""
        state = self.state

        if sunk_coords:
            segment = set(sunk_coords) | {coord}
            length = len(segment)
        else:
            segment, length = self._infer_sunk_segment(coord)

        self._remove_fleet_length(length)
        state.sunk |= segment
        state.open_hits = [hit for hit in state.open_hits if hit not in segment]
        state.queue = []

        if state.open_hits:
            state.mode = Mode.TARGET
            self._rebuild_queue()
        else:
            state.mode = Mode.HUNT
            state.last_hit = None

    def _infer_sunk_segment(self, coord: Coord) -> tuple[set[Coord], int]:
        """Guess the sunk ship from the longest run of hits through ``coord``."""
        run = list(run_through(self.state.open_hits, coord).cells)
        cap = max(self.state.remaining_lengths, default=len(run))
        if len(run) > cap:
            logger.warning(
                "Run of %d hits through %s is longer than any surviving ship (%d)",
                len(run),
                coord,
                cap,
            )
            # Keep a window holding the sinking shot, trimmed from the far end.
            index = run.index(coord)
            if index > len(run) - 1 - index:
                start = max(0, min(index - cap + 1, len(run) - cap))
            else:
                start = max(0, min(index, len(run) - cap))
            run = run[start : start + cap]
        return set(run), len(run)

    def _remove_fleet_length(self, length: int) -> None:
        """
        Strike a sunk ship of ``length`` off the surviving fleet.

        With no exact match the largest surviving length not above ``length``
        is removed instead, or the largest overall when every survivor is
        longer. A mismatch is logged as a warning either way.
        """
        remaining = self.state.remaining_lengths
        if length in remaining:
            remaining.remove(length)
            return
        if not remaining:
            logger.warning("Sunk report with no surviving ships left to match")
            return

        fallback = max(
            (size for size in remaining if size <= length), default=max(remaining)
        )
        logger.warning(
            "No surviving ship of length %d, counting it as length %d",
            length,
            fallback,
        )
        remaining.remove(fallback)
