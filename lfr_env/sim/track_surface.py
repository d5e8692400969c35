"""Raster track surface with on-line pixel classification.

Design decisions:
- Raster convention: rgba[i, j] is the pixel at column j (x), row i (y); (0, 0) is top-left.
- A pixel is line iff alpha >= alpha_cutoff and mean(R, G, B) < line_threshold.
- Grey and RGB sources get an opaque alpha channel.
- A failed load keeps the previous raster; an empty surface is never on line.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

import imageio.v3 as iio
import numpy as np

from lfr_env.constants import ALPHA_CUTOFF, LINE_THRESHOLD

logger = logging.getLogger(__name__)


def to_rgba(image: np.ndarray) -> np.ndarray:
    """Convert a grey, RGB or RGBA array into a uint8 HxWx4 array."""
    arr = np.asarray(image)
    if arr.dtype != np.uint8:
        if np.issubdtype(arr.dtype, np.floating) and arr.size and arr.max() <= 1.0:
            arr = arr * 255.0
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    if arr.ndim == 2:
        arr = np.stack([arr, arr, arr], axis=-1)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError(f"Unsupported raster shape {arr.shape}")
    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=-1)
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ValueError("Empty raster")
    return np.ascontiguousarray(arr)


class TrackSurface:
    """Track raster classifying pixels as line or background.

    Args:
        line_threshold: brightness below which an opaque pixel is line.
        alpha_cutoff: alpha below which a pixel counts as background.
    """

    def __init__(
        self,
        line_threshold: float = LINE_THRESHOLD,
        alpha_cutoff: int = ALPHA_CUTOFF,
    ) -> None:
        self.rgba: Optional[np.ndarray] = None
        self.name = ""
        self._line_threshold = float(line_threshold)
        self._alpha_cutoff = int(alpha_cutoff)
        self._mask: Optional[np.ndarray] = None

    @property
    def loaded(self) -> bool:
        return self.rgba is not None

    @property
    def width_px(self) -> int:
        return 0 if self.rgba is None else int(self.rgba.shape[1])

    @property
    def height_px(self) -> int:
        return 0 if self.rgba is None else int(self.rgba.shape[0])

    @property
    def line_threshold(self) -> float:
        return self._line_threshold

    @line_threshold.setter
    def line_threshold(self, value: float) -> None:
        if float(value) != self._line_threshold:
            self._line_threshold = float(value)
            self._mask = None

    @property
    def alpha_cutoff(self) -> int:
        return self._alpha_cutoff

    @alpha_cutoff.setter
    def alpha_cutoff(self, value: int) -> None:
        if int(value) != self._alpha_cutoff:
            self._alpha_cutoff = int(value)
            self._mask = None

    def load(self, source: Any, name: str | None = None) -> bool:
        """Read a bitmap (path, bytes or file object) with imageio."""
        try:
            image = iio.imread(source)
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Could not read track raster %r: %s", source, exc)
            return False
        if name is None:
            name = os.fspath(source) if isinstance(source, (str, os.PathLike)) else ""
        return self.load_array(image, name=name)

    def load_array(self, image: np.ndarray, name: str = "") -> bool:
        """Use an in-memory array (grey, RGB or RGBA) as the track."""
        try:
            rgba = to_rgba(image)
        except ValueError as exc:
            logger.warning("Rejected track raster: %s", exc)
            return False
        self.rgba = rgba
        self.name = name
        self._mask = None
        logger.debug("Track loaded: %dx%d px", self.width_px, self.height_px)
        return True

    def clear(self) -> None:
        self.rgba = None
        self.name = ""
        self._mask = None

    def line_mask(self) -> Optional[np.ndarray]:
        """Boolean HxW mask of line pixels (cached per threshold)."""
        if self.rgba is None:
            return None
        if self._mask is None:
            rgb = self.rgba[..., :3].astype(np.float64)
            brightness = rgb.sum(axis=-1) / 3.0
            self._mask = (self.rgba[..., 3] >= self._alpha_cutoff) & (
                brightness < self._line_threshold
            )
        return self._mask

    def is_on_line(self, x_px: int, y_px: int) -> bool:
        """Classify an integer pixel; out of bounds or no raster is off line."""
        mask = self.line_mask()
        if mask is None:
            return False
        if x_px < 0 or y_px < 0 or x_px >= self.width_px or y_px >= self.height_px:
            return False
        return bool(mask[y_px, x_px])
