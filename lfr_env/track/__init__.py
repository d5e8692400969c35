"""Track tiles, loop generation, validation, rasterization and designs."""

from .design import PlacedPart, TrackDesign
from .generator import GenerationResult, TrackGenerator, cell_center, path_length_range
from .parts import (
    DEFAULT_PARTS,
    TrackCell,
    TrackGrid,
    TrackPart,
    TrackPartCatalog,
    rotate_connectors,
)
from .raster import grid_extent_m, render_grid
from .validator import ValidationReport, validate_grid

__all__ = [
    "PlacedPart",
    "TrackDesign",
    "GenerationResult",
    "TrackGenerator",
    "cell_center",
    "path_length_range",
    "DEFAULT_PARTS",
    "TrackCell",
    "TrackGrid",
    "TrackPart",
    "TrackPartCatalog",
    "rotate_connectors",
    "grid_extent_m",
    "render_grid",
    "ValidationReport",
    "validate_grid",
]
