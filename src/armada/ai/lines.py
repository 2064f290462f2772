"""Line geometry over open hits: maximal colinear runs and their end extensions."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from armada.game.board import Coord


@dataclass(frozen=True)
class Line:
    """Consecutive hits along one row (horizontal) or one column (vertical)."""

    cells: tuple[Coord, ...]
    horizontal: bool

    def __len__(self) -> int:
        return len(self.cells)

    def __contains__(self, coord: object) -> bool:
        return coord in self.cells

    @property
    def start(self) -> Coord:
        return self.cells[0]

    @property
    def end(self) -> Coord:
        return self.cells[-1]

    def extensions(self) -> tuple[Coord, Coord]:
        """Cells one past the far end and one before the near end, in that order."""
        (r0, c0), (r1, c1) = self.start, self.end
        if self.horizontal:
            return (r1, c1 + 1), (r0, c0 - 1)
        return (r1 + 1, c1), (r0 - 1, c0)

    def is_extended_by(self, coord: Coord) -> bool:
        return coord in self.extensions()


def _runs(positions: list[int]) -> list[list[int]]:
    runs: list[list[int]] = []
    for pos in sorted(positions):
        if runs and pos == runs[-1][-1] + 1:
            runs[-1].append(pos)
        else:
            runs.append([pos])
    return runs


def find_lines(hits: Iterable[Coord], min_length: int = 2) -> list[Line]:
    """Every maximal run of at least ``min_length`` hits, rows first then columns."""
    by_row: dict[int, list[int]] = defaultdict(list)
    by_col: dict[int, list[int]] = defaultdict(list)
    for row, col in set(hits):
        by_row[row].append(col)
        by_col[col].append(row)

    lines: list[Line] = []
    for row in sorted(by_row):
        for run in _runs(by_row[row]):
            if len(run) >= min_length:
                lines.append(Line(tuple((row, col) for col in run), horizontal=True))
    for col in sorted(by_col):
        for run in _runs(by_col[col]):
            if len(run) >= min_length:
                lines.append(Line(tuple((row, col) for row in run), horizontal=False))
    return lines


def longest_line(lines: Iterable[Line]) -> Line | None:
    """Longest line; on a tie the one found last wins."""
    best: Line | None = None
    for line in lines:
        if best is None or len(line) >= len(best):
            best = line
    return best


def lines_through(hits: Iterable[Coord], coord: Coord) -> list[Line]:
    return [line for line in find_lines(hits) if coord in line]


def would_extend(target: Coord, line: Line) -> bool:
    """True if firing at ``target`` could lengthen ``line`` along its axis."""
    if len(line) == 1:
        (row, col), (t_row, t_col) = line.start, target
        return abs(row - t_row) + abs(col - t_col) == 1
    return line.is_extended_by(target)


def run_through(hits: Iterable[Coord], coord: Coord) -> Line:
    """Longest horizontal or vertical run of ``hits`` that contains ``coord``."""
    candidates = find_lines([*hits, coord], min_length=1)
    horizontal = next(line for line in candidates if line.horizontal and coord in line)
    vertical = next(line for line in candidates if not line.horizontal and coord in line)
    return horizontal if len(horizontal) > len(vertical) else vertical
