"""Track design persistence (JSON grid of placed parts)."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from lfr_env.errors import UnknownPartError

from .parts import TrackGrid, TrackPartCatalog, normalize_rotation

logger = logging.getLogger(__name__)

DEFAULT_TRACK_NAME = "MyTrack"


@dataclass(frozen=True)
class PlacedPart:
    r: int
    c: int
    part_file: str
    rotation: int = 0


@dataclass
class TrackDesign:
    """Serializable track layout.

    `skipped` lists entries dropped by a non-strict load so callers can warn.
    """

    rows: int
    cols: int
    parts: List[PlacedPart] = field(default_factory=list)
    track_name: str = DEFAULT_TRACK_NAME
    skipped: List[PlacedPart] = field(default_factory=list)

    @classmethod
    def from_grid(cls, grid: TrackGrid, track_name: str = DEFAULT_TRACK_NAME) -> "TrackDesign":
        parts = [
            PlacedPart(r, c, cell.part.file, cell.rotation) for r, c, cell in grid.filled()
        ]
        return cls(grid.rows, grid.cols, parts, track_name)

    def to_grid(self, catalog: Optional[TrackPartCatalog] = None) -> TrackGrid:
        catalog = catalog or TrackPartCatalog()
        grid = TrackGrid(self.rows, self.cols)
        for p in self.parts:
            part = catalog.get(p.part_file)
            if part is None:
                raise UnknownPartError(f"Unknown track part '{p.part_file}' at [{p.r},{p.c}]")
            grid.place(p.r, p.c, part, p.rotation)
        return grid

    def to_json(self) -> Dict[str, Any]:
        return {
            "gridSize": {"rows": self.rows, "cols": self.cols},
            "gridParts": [
                {"r": p.r, "c": p.c, "partFile": p.part_file, "rotation": p.rotation}
                for p in self.parts
            ],
            "trackName": self.track_name,
        }

    @staticmethod
    def from_json(
        obj: Dict[str, Any],
        catalog: Optional[TrackPartCatalog] = None,
        strict: bool = True,
    ) -> "TrackDesign":
        """Parse a design; unknown parts raise (strict) or are logged and skipped."""
        if not isinstance(obj, dict) or "gridSize" not in obj or "gridParts" not in obj:
            raise ValueError("Invalid track design: 'gridSize' and 'gridParts' are required")
        catalog = catalog or TrackPartCatalog()
        size = obj["gridSize"] or {}
        rows = int(size.get("rows") or 4)
        cols = int(size.get("cols") or 4)
        design = TrackDesign(rows, cols, track_name=str(obj.get("trackName") or DEFAULT_TRACK_NAME))

        for raw in obj["gridParts"]:
            placed = PlacedPart(
                r=int(raw["r"]),
                c=int(raw["c"]),
                part_file=str(raw.get("partFile", "")),
                rotation=normalize_rotation(raw.get("rotation", 0) or 0),
            )
            problem = None
            if placed.part_file not in catalog:
                problem = f"Unknown track part '{placed.part_file}'"
            elif not (0 <= placed.r < rows and 0 <= placed.c < cols):
                problem = f"Part '{placed.part_file}' outside the {rows}x{cols} grid"
            if problem is None:
                design.parts.append(placed)
                continue
            if strict:
                raise UnknownPartError(f"{problem} at [{placed.r},{placed.c}]")
            logger.warning("%s at [%d,%d]; skipped", problem, placed.r, placed.c)
            design.skipped.append(placed)
        return design

    def save(self, path: str | Path) -> Path:
        out = Path(path)
        if out.parent != Path(""):
            out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w", encoding="utf-8") as fh:
            json.dump(self.to_json(), fh, indent=2)
        return out

    @classmethod
    def load(
        cls,
        path: str | Path,
        catalog: Optional[TrackPartCatalog] = None,
        strict: bool = True,
    ) -> "TrackDesign":
        with open(path, "r", encoding="utf-8") as fh:
            return cls.from_json(json.load(fh), catalog, strict)
