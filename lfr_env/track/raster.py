"""Rasterize a tile grid into an RGBA track image.

Each tile is drawn as a one-pixel centreline skeleton for its rotated
connectors (straight bands to the edges, a quarter arc for corners) and then
inflated to tape width with a disk kernel.
"""

from __future__ import annotations

from math import ceil, pi
from typing import Dict, Tuple

import numpy as np
from scipy.ndimage import binary_dilation

from lfr_env.constants import PIXELS_PER_METER, TAPE_WIDTH_PX, TRACK_PART_SIZE_PX

from .parts import OPPOSITE, Connectors, TrackGrid

BACKGROUND = (255, 255, 255, 255)
TAPE = (0, 0, 0, 255)


def _disk_kernel(radius_cells: int) -> np.ndarray:
    r = int(radius_cells)
    yy, xx = np.ogrid[-r : r + 1, -r : r + 1]
    mask = (xx * xx + yy * yy) <= (r * r)
    return mask.astype(bool)


def _is_corner(connectors: Connectors) -> bool:
    if len(connectors) != 2:
        return False
    a, b = sorted(connectors)
    return OPPOSITE[a] != b


def tile_skeleton(connectors: Connectors, size: int) -> np.ndarray:
    """One-pixel centreline of a tile with the given connectors."""
    skel = np.zeros((size, size), dtype=bool)
    mid = size // 2
    last = size - 1
    if _is_corner(connectors):
        # Quarter arc of radius size/2 around the corner shared by both connectors
        corner_x = size if "E" in connectors else 0
        corner_y = 0 if "N" in connectors else size
        sx = -1.0 if corner_x else 1.0
        sy = -1.0 if corner_y else 1.0
        radius = size / 2.0
        n = max(2, int(ceil(pi * radius)))
        t = np.linspace(0.0, pi / 2.0, n)
        xs = np.clip(np.rint(corner_x + sx * radius * np.cos(t)), 0, last).astype(int)
        ys = np.clip(np.rint(corner_y + sy * radius * np.sin(t)), 0, last).astype(int)
        skel[ys, xs] = True
        return skel
    if "N" in connectors:
        skel[: mid + 1, mid] = True
    if "S" in connectors:
        skel[mid:, mid] = True
    if "W" in connectors:
        skel[mid, : mid + 1] = True
    if "E" in connectors:
        skel[mid, mid:] = True
    return skel


def tile_mask(connectors: Connectors, size: int, tape_width_px: int) -> np.ndarray:
    """Boolean tape mask for one tile."""
    skel = tile_skeleton(connectors, size)
    r_cells = int(tape_width_px) // 2
    if r_cells <= 0 or not skel.any():
        return skel
    return binary_dilation(skel, structure=_disk_kernel(r_cells))


def render_grid(
    grid: TrackGrid,
    part_size_px: int = TRACK_PART_SIZE_PX,
    tape_width_px: int = TAPE_WIDTH_PX,
) -> np.ndarray:
    """Draw the grid as a white HxWx4 uint8 image with black tape."""
    size = int(part_size_px)
    image = np.empty((grid.rows * size, grid.cols * size, 4), dtype=np.uint8)
    image[...] = BACKGROUND
    cache: Dict[Connectors, np.ndarray] = {}
    for r, c, cell in grid.filled():
        conns = cell.connections
        if conns not in cache:
            cache[conns] = tile_mask(conns, size, tape_width_px)
        block = image[r * size : (r + 1) * size, c * size : (c + 1) * size]
        block[cache[conns]] = TAPE
    return image


def grid_extent_m(grid: TrackGrid, part_size_px: int = TRACK_PART_SIZE_PX) -> Tuple[float, float]:
    """Width and height of the rendered grid in meters."""
    return grid.cols * part_size_px / PIXELS_PER_METER, grid.rows * part_size_px / PIXELS_PER_METER
