"""Track tile catalog, connector masks and the tile grid."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

# Clockwise order; rotating a tile by 90 degrees shifts each connector one step
DIRECTION_ORDER: Tuple[str, ...] = ("N", "E", "S", "W")
OFFSETS: Dict[str, Tuple[int, int]] = {"N": (-1, 0), "E": (0, 1), "S": (1, 0), "W": (0, -1)}
OPPOSITE: Dict[str, str] = {"N": "S", "S": "N", "E": "W", "W": "E"}
ROTATIONS: Tuple[int, ...] = (0, 90, 180, 270)

Connectors = FrozenSet[str]


def normalize_rotation(rotation_deg: float) -> int:
    """Snap any angle to the nearest of 0/90/180/270."""
    steps = int(round((float(rotation_deg) % 360.0) / 90.0)) % 4
    return steps * 90


def rotate_connectors(connectors: Connectors, rotation_deg: float) -> Connectors:
    steps = normalize_rotation(rotation_deg) // 90
    return frozenset(
        DIRECTION_ORDER[(DIRECTION_ORDER.index(d) + steps) % 4] for d in connectors
    )


def direction_between(a: Tuple[int, int], b: Tuple[int, int]) -> Optional[str]:
    """Direction of the grid step from cell a to adjacent cell b."""
    delta = (b[0] - a[0], b[1] - a[1])
    for name, off in OFFSETS.items():
        if off == delta:
            return name
    return None


@dataclass(frozen=True)
class TrackPart:
    """Tile definition; `connectors` are given at rotation 0."""

    name: str
    file: str
    connectors: Connectors

    @property
    def connection_count(self) -> int:
        return len(self.connectors)

    @property
    def is_straight(self) -> bool:
        c = self.connectors
        return c == frozenset("NS") or c == frozenset("EW")

    def connections_at(self, rotation_deg: float) -> Connectors:
        return rotate_connectors(self.connectors, rotation_deg)


DEFAULT_PARTS: Tuple[TrackPart, ...] = (
    TrackPart("Straight", "recta.png", frozenset("NS")),
    TrackPart("Curve", "curva.png", frozenset("NE")),
    TrackPart("Cross", "cruce.png", frozenset("NSEW")),
    TrackPart("T-Junction", "t_junction.png", frozenset("NSE")),
)


class TrackPartCatalog:
    """Immutable lookup of available parts by file name."""

    def __init__(self, parts: Sequence[TrackPart] = DEFAULT_PARTS) -> None:
        self._parts = tuple(parts)
        self._by_file = {p.file: p for p in self._parts}
        if len(self._by_file) != len(self._parts):
            raise ValueError("Duplicate part file names in catalog")

    def __iter__(self) -> Iterator[TrackPart]:
        return iter(self._parts)

    def __len__(self) -> int:
        return len(self._parts)

    def __contains__(self, file: object) -> bool:
        return file in self._by_file

    def get(self, file: str) -> Optional[TrackPart]:
        return self._by_file.get(file)

    def loop_parts(self) -> List[TrackPart]:
        """Pass-through pieces (exactly two connectors)."""
        return [p for p in self._parts if p.connection_count == 2]


@dataclass(frozen=True)
class TrackCell:
    part: TrackPart
    rotation: int = 0

    def __post_init__(self) -> None:
        if self.rotation not in ROTATIONS:
            raise ValueError(f"rotation must be one of {ROTATIONS}, got {self.rotation}")

    @property
    def connections(self) -> Connectors:
        return self.part.connections_at(self.rotation)


class TrackGrid:
    """Rows x cols grid of optional TrackCells, indexed [r][c]."""

    def __init__(self, rows: int, cols: int) -> None:
        if rows <= 0 or cols <= 0:
            raise ValueError("Grid size must be positive")
        self.rows = int(rows)
        self.cols = int(cols)
        self._cells: List[List[Optional[TrackCell]]] = [
            [None] * self.cols for _ in range(self.rows)
        ]

    def in_bounds(self, r: int, c: int) -> bool:
        return 0 <= r < self.rows and 0 <= c < self.cols

    def get(self, r: int, c: int) -> Optional[TrackCell]:
        return self._cells[r][c] if self.in_bounds(r, c) else None

    def place(self, r: int, c: int, part: TrackPart, rotation: float = 0) -> TrackCell:
        if not self.in_bounds(r, c):
            raise IndexError(f"Cell ({r}, {c}) outside {self.rows}x{self.cols} grid")
        cell = TrackCell(part, normalize_rotation(rotation))
        self._cells[r][c] = cell
        return cell

    def remove(self, r: int, c: int) -> None:
        if self.in_bounds(r, c):
            self._cells[r][c] = None

    def rotate(self, r: int, c: int) -> Optional[TrackCell]:
        """Advance a placed part 0 -> 90 -> 180 -> 270 -> 0."""
        cell = self.get(r, c)
        if cell is None:
            return None
        return self.place(r, c, cell.part, (cell.rotation + 90) % 360)

    def clear(self) -> None:
        for row in self._cells:
            row[:] = [None] * self.cols

    def connections(self, r: int, c: int) -> Connectors:
        cell = self.get(r, c)
        return cell.connections if cell is not None else frozenset()

    def filled(self) -> Iterator[Tuple[int, int, TrackCell]]:
        for r, row in enumerate(self._cells):
            for c, cell in enumerate(row):
                if cell is not None:
                    yield r, c, cell

    def cells(self) -> Tuple[Tuple[Optional[TrackCell], ...], ...]:
        """Immutable view of the grid contents."""
        return tuple(tuple(row) for row in self._cells)

    def __len__(self) -> int:
        return sum(1 for _ in self.filled())
