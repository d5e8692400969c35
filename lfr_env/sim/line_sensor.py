"""Reflective line-sensor model over a track raster.

Design decisions:
- Sensors sit on a line `sensor_offset_m` ahead of the axle centre, spread along
  the left normal (-sin, cos) of the heading.
- World meters are scaled by PIXELS_PER_METER and rounded half-up to a pixel.
- Noise: each reading flips independently with probability noise_prob.
"""

from __future__ import annotations

from math import cos, floor, sin
from typing import Dict, Optional, Tuple

import numpy as np

from lfr_env.config import RobotGeometry
from lfr_env.constants import PIXELS_PER_METER

from .dynamics import Pose
from .track_surface import TrackSurface

# Lateral offsets in units of sensor_spread, positive toward the robot's left
SENSOR_LAYOUTS: Dict[int, Tuple[Tuple[str, float], ...]] = {
    2: (("left", 1.0), ("right", -1.0)),
    3: (("left", 1.0), ("center", 0.0), ("right", -1.0)),
    4: (("far_left", 1.5), ("left", 0.5), ("right", -0.5), ("far_right", -1.5)),
    5: (
        ("far_left", 2.0),
        ("left", 1.0),
        ("center", 0.0),
        ("right", -1.0),
        ("far_right", -2.0),
    ),
}


def sensor_names(count: int) -> Tuple[str, ...]:
    return tuple(name for name, _ in SENSOR_LAYOUTS[count])


def sensor_positions(pose: Pose, geometry: RobotGeometry) -> Dict[str, Tuple[float, float]]:
    """World positions (meters) of each sensor for the given pose."""
    c, s = cos(pose.angle), sin(pose.angle)
    cx = pose.x + geometry.sensor_offset_m * c
    cy = pose.y + geometry.sensor_offset_m * s
    positions = {}
    for name, k in SENSOR_LAYOUTS[geometry.sensor_count]:
        lateral = k * geometry.sensor_spread_m
        positions[name] = (cx - lateral * s, cy + lateral * c)
    return positions


def world_to_pixel(x_m: float, y_m: float, scale: float = PIXELS_PER_METER) -> Tuple[int, int]:
    """Convert meters to the nearest raster pixel (half-up rounding)."""
    return int(floor(x_m * scale + 0.5)), int(floor(y_m * scale + 0.5))


def to_digital(readings: Dict[str, bool]) -> Dict[str, int]:
    """Map on-line booleans to the sensor pin convention (0 = on line)."""
    return {name: 0 if on_line else 1 for name, on_line in readings.items()}


class LineSensorModel:
    """Samples on/off-line readings for every sensor of the robot.

    Args:
        scale: pixels per meter of the track raster.
        rng: optional numpy Generator used for noise; created internally if None.
    """

    def __init__(
        self,
        scale: float = PIXELS_PER_METER,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.scale = float(scale)
        self._rng = rng or np.random.default_rng()

    def set_seed(self, seed: int) -> None:
        self._rng = np.random.default_rng(seed)

    def sample(
        self,
        pose: Pose,
        geometry: RobotGeometry,
        surface: TrackSurface,
        noise_prob: float = 0.0,
    ) -> Dict[str, bool]:
        """Return {sensor name: on_line}; True means the sensor sees the line."""
        readings: Dict[str, bool] = {}
        for name, (x_m, y_m) in sensor_positions(pose, geometry).items():
            px, py = world_to_pixel(x_m, y_m, self.scale)
            readings[name] = surface.is_on_line(px, py)
        if noise_prob > 0.0:
            for name in readings:
                if self._rng.random() < noise_prob:
                    readings[name] = not readings[name]
        return readings
