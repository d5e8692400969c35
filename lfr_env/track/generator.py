"""Procedural closed-loop track generation over a tile grid.

Each attempt:
1. random self-avoiding walk from a random cell, backtracking when stuck;
2. close the loop on the longest walk prefix that ends next to the start;
3. derive the two connectors every loop cell needs;
4. fill each cell with the first (shuffled) pass-through part and rotation
   whose connectors match exactly.
A failed attempt discards the whole grid; after `max_retries` the generator
reports failure instead of returning a partial grid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from math import pi
from typing import List, Optional, Sequence, Tuple

import numpy as np

from lfr_env.constants import PIXELS_PER_METER, TRACK_PART_SIZE_PX
from lfr_env.sim.dynamics import Pose

from .parts import (
    DIRECTION_ORDER,
    OFFSETS,
    OPPOSITE,
    ROTATIONS,
    Connectors,
    TrackGrid,
    TrackPart,
    TrackPartCatalog,
    direction_between,
)

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]

MAX_STUCK = 8
SMALL_GRID_AREA = 9

# Heading when starting on a cell, by preferred connector
_HEADINGS = {"S": pi / 2.0, "N": -pi / 2.0, "E": 0.0, "W": pi}


def path_length_range(rows: int, cols: int) -> Tuple[int, int]:
    """(min, max) loop length in cells; small grids get short loops."""
    area = rows * cols
    if area <= SMALL_GRID_AREA:
        return 4, 8
    return max(3, int(area * 0.30)), int(area * 0.80)


def default_max_retries(rows: int, cols: int) -> int:
    return 50 if rows * cols <= SMALL_GRID_AREA else 20


def cell_center(r: int, c: int, part_size_px: float = TRACK_PART_SIZE_PX) -> Tuple[float, float]:
    """Centre of grid cell (r, c) in world meters."""
    return (c + 0.5) * part_size_px / PIXELS_PER_METER, (r + 0.5) * part_size_px / PIXELS_PER_METER


@dataclass
class GenerationResult:
    success: bool
    grid: TrackGrid
    attempts: int
    path: List[Cell] = field(default_factory=list)
    start_cell: Optional[Cell] = None
    start_pose: Optional[Pose] = None


class TrackGenerator:
    """Randomized loop generator with whole-grid retries.

    Args:
        rng: optional numpy Generator; if None, created internally.
        part_size_px: tile edge length, used to place the start pose.
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        part_size_px: int = TRACK_PART_SIZE_PX,
    ) -> None:
        self._rng = rng or np.random.default_rng()
        self.part_size_px = int(part_size_px)

    def set_seed(self, seed: int) -> None:
        self._rng = np.random.default_rng(seed)

    def _shuffled(self, items: Sequence) -> list:
        return [items[i] for i in self._rng.permutation(len(items))]

    def generate_loop(
        self,
        rows: int,
        cols: int,
        catalog: Optional[TrackPartCatalog] = None,
        max_retries: Optional[int] = None,
    ) -> GenerationResult:
        catalog = catalog or TrackPartCatalog()
        retries = max_retries if max_retries is not None else default_max_retries(rows, cols)
        loop_parts = catalog.loop_parts()
        if not loop_parts:
            logger.error("Catalog has no parts with exactly two connectors")
            return GenerationResult(False, TrackGrid(rows, cols), attempts=0)

        for attempt in range(1, retries + 1):
            grid = TrackGrid(rows, cols)
            path = self.sample_loop_path(rows, cols)
            if path is None:
                continue
            if not self._place_parts(grid, path, loop_parts):
                continue
            start_cell, start_pose = self.pick_start(grid, path)
            logger.debug("Loop of %d cells generated after %d attempt(s)", len(path), attempt)
            return GenerationResult(True, grid, attempt, path, start_cell, start_pose)

        logger.warning(
            "No valid loop track after %d attempts on a %dx%d grid", retries, rows, cols
        )
        return GenerationResult(False, TrackGrid(rows, cols), attempts=retries)

    def sample_loop_path(self, rows: int, cols: int) -> Optional[List[Cell]]:
        """Closed cell loop (start not repeated), or None if the walk cannot close."""
        min_len, max_len = path_length_range(rows, cols)
        if max_len < min_len:
            return None
        target = int(self._rng.integers(min_len, max_len + 1))
        start = (int(self._rng.integers(rows)), int(self._rng.integers(cols)))
        path = [start]
        on_path = {start}
        stuck = 0

        for _ in range(max_len * 2):
            if len(path) >= target:
                break
            r, c = path[-1]
            moved = False
            for d in self._shuffled(DIRECTION_ORDER):
                dr, dc = OFFSETS[d]
                nxt = (r + dr, c + dc)
                if 0 <= nxt[0] < rows and 0 <= nxt[1] < cols and nxt not in on_path:
                    path.append(nxt)
                    on_path.add(nxt)
                    moved = True
                    stuck = 0
                    break
            if moved:
                continue
            stuck += 1
            if stuck > MAX_STUCK and len(path) >= min_len:
                break
            if stuck > MAX_STUCK * 2 or len(path) <= 1:
                break
            on_path.discard(path.pop())

        # Longest prefix that can be closed back onto the start
        for end in range(len(path) - 1, min_len - 2, -1):
            if end >= 2 and direction_between(path[end], start) is not None:
                return path[: end + 1]
        return None

    @staticmethod
    def required_connections(path: Sequence[Cell]) -> List[Connectors]:
        """Per loop cell: the side it is entered from plus the side it leaves by."""
        n = len(path)
        required = []
        for i, cell in enumerate(path):
            prev_cell = path[i - 1]
            next_cell = path[(i + 1) % n]
            came_from = direction_between(prev_cell, cell)
            going_to = direction_between(cell, next_cell)
            if came_from is None or going_to is None:
                raise ValueError(f"Path cells {prev_cell} -> {cell} -> {next_cell} are not adjacent")
            required.append(frozenset((OPPOSITE[came_from], going_to)))
        return required

    def _place_parts(
        self, grid: TrackGrid, path: Sequence[Cell], parts: Sequence[TrackPart]
    ) -> bool:
        for (r, c), needed in zip(path, self.required_connections(path)):
            placed = False
            for part in self._shuffled(parts):
                for rot in self._shuffled(ROTATIONS):
                    if part.connections_at(rot) == needed:
                        grid.place(r, c, part, rot)
                        placed = True
                        break
                if placed:
                    break
            if not placed:
                return False
        return True

    def pick_start(
        self, grid: TrackGrid, path: Optional[Sequence[Cell]] = None
    ) -> Tuple[Optional[Cell], Optional[Pose]]:
        """Start cell and pose: a random straight piece, else the first cell."""
        if path is None:
            path = [(r, c) for r, c, _ in grid.filled()]
        if not path:
            return None, None
        straights = [(r, c) for r, c in path if grid.get(r, c).part.is_straight]
        if straights:
            r, c = straights[int(self._rng.integers(len(straights)))]
            order = ("S", "N", "E", "W")
        else:
            r, c = path[0]
            order = ("S", "E", "N", "W")
        conns = grid.connections(r, c)
        heading = next((_HEADINGS[d] for d in order if d in conns), 0.0)
        x, y = cell_center(r, c, self.part_size_px)
        return (r, c), Pose(x, y, heading)
