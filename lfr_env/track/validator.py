"""Connector consistency checks for tile grids (advisory, never raises)."""

from __future__ import annotations

from dataclasses import dataclass

from .parts import DIRECTION_ORDER, OFFSETS, OPPOSITE, TrackGrid


@dataclass(frozen=True)
class ValidationReport:
    part_count: int
    dangling_connections: int
    connection_mismatches: int

    @property
    def is_valid(self) -> bool:
        # A lone part may have open ends
        return (
            self.part_count > 0
            and self.connection_mismatches == 0
            and (self.dangling_connections == 0 or self.part_count == 1)
        )


def validate_grid(grid: TrackGrid) -> ValidationReport:
    """Count open connectors leading nowhere and connectors facing a closed side.

    - dangling: the neighbour is off the grid or empty
    - mismatch: the neighbour is filled but has no connector pointing back
    """
    parts = dangling = mismatches = 0
    for r, c, cell in grid.filled():
        parts += 1
        conns = cell.connections
        for d in DIRECTION_ORDER:
            if d not in conns:
                continue
            dr, dc = OFFSETS[d]
            neighbor = grid.get(r + dr, c + dc)
            if neighbor is None:
                dangling += 1
            elif OPPOSITE[d] not in neighbor.connections:
                mismatches += 1
    return ValidationReport(parts, dangling, mismatches)
