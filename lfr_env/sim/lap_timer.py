"""Start/finish line lap timer.

Crossings are detected from the sign of the 2D cross product between the start
segment and the robot position. Flips that happen sooner than `min_lap_time_s`
after the lap start are treated as line bounce: they update the stored side
but do not count a lap.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from math import cos, hypot, pi, sin
from typing import Deque, Optional, Tuple

from lfr_env.constants import LAP_HISTORY_LEN, MIN_LAP_TIME_S

from .dynamics import Pose

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartLine:
    x1: float
    y1: float
    x2: float
    y2: float

    def __post_init__(self) -> None:
        if self.x1 == self.x2 and self.y1 == self.y2:
            raise ValueError("Start line endpoints must be distinct")

    @classmethod
    def behind_pose(cls, pose: Pose, half_width_m: float, length_m: float) -> "StartLine":
        """Line perpendicular to the heading, centred length/2 behind the pose."""
        back = -length_m / 2.0
        cx = pose.x + back * cos(pose.angle)
        cy = pose.y + back * sin(pose.angle)
        perp = pose.angle + pi / 2.0
        dx = half_width_m * cos(perp)
        dy = half_width_m * sin(perp)
        return cls(cx - dx, cy - dy, cx + dx, cy + dy)

    def side_value(self, x: float, y: float) -> float:
        return (y - self.y1) * (self.x2 - self.x1) - (x - self.x1) * (self.y2 - self.y1)

    def distance_to(self, x: float, y: float) -> float:
        """Euclidean distance from (x, y) to the finite segment."""
        cx, cy = self.x2 - self.x1, self.y2 - self.y1
        len_sq = cx * cx + cy * cy
        t = ((x - self.x1) * cx + (y - self.y1) * cy) / len_sq
        t = min(max(t, 0.0), 1.0)
        return hypot(x - (self.x1 + t * cx), y - (self.y1 + t * cy))


@dataclass(frozen=True)
class LapUpdate:
    crossed: bool
    lap_time_s: Optional[float] = None


@dataclass(frozen=True)
class LapRecord:
    lap_count: int
    last_lap_time_s: Optional[float]
    best_lap_time_s: Optional[float]
    current_lap_start_s: float
    current_lap_time_s: Optional[float]
    is_timing: bool
    lap_history: Tuple[float, ...]


class LapTimer:
    """Counts laps across a start/finish segment.

    Args:
        min_lap_time_s: minimum lap duration for a crossing to count.
        gate_margin_m: if set, poses farther than this from the segment keep
            the previous side, so crossings of the infinite line elsewhere
            on the track are ignored.
    """

    def __init__(
        self,
        min_lap_time_s: float = MIN_LAP_TIME_S,
        gate_margin_m: Optional[float] = None,
    ) -> None:
        self.min_lap_time_s = float(min_lap_time_s)
        self.gate_margin_m = gate_margin_m
        self.start_line: Optional[StartLine] = None
        self.history: Deque[float] = deque(maxlen=LAP_HISTORY_LEN)
        self.reset()

    def reset(self) -> None:
        """Stop timing and clear lap data; the start line is kept."""
        self.is_active = False
        self.lap_count = 0
        self.current_lap_start_s = 0.0
        self.last_lap_time_s: Optional[float] = None
        self.best_lap_time_s: Optional[float] = None
        self.on_positive_side = False
        self.history.clear()

    def initialize(
        self,
        start_pose: Pose,
        now_s: float = 0.0,
        start_line: Optional[StartLine] = None,
        half_width_m: float = 0.0,
        length_m: float = 0.0,
    ) -> StartLine:
        """Arm the timer at `start_pose`, deriving the line when none is given."""
        if start_line is None:
            start_line = StartLine.behind_pose(start_pose, half_width_m, length_m)
        self.reset()
        self.start_line = start_line
        self.current_lap_start_s = float(now_s)
        self.is_active = True
        self.on_positive_side = start_line.side_value(start_pose.x, start_pose.y) > 0.0
        logger.debug("Lap timer armed: %s (positive side=%s)", start_line, self.on_positive_side)
        return start_line

    def _positive_side(self, x: float, y: float) -> bool:
        line = self.start_line
        if self.gate_margin_m is not None and line.distance_to(x, y) > self.gate_margin_m:
            return self.on_positive_side
        return line.side_value(x, y) > 0.0

    def update(self, pose: Pose, now_s: float) -> LapUpdate:
        if not self.is_active:
            return LapUpdate(False)
        side = self._positive_side(pose.x, pose.y)
        if side == self.on_positive_side:
            return LapUpdate(False)

        self.on_positive_side = side
        lap_time = float(now_s) - self.current_lap_start_s
        if lap_time <= self.min_lap_time_s:
            logger.debug("Ignored start-line bounce after %.3fs", lap_time)
            return LapUpdate(False)

        self.lap_count += 1
        self.last_lap_time_s = lap_time
        self.history.appendleft(lap_time)
        if self.best_lap_time_s is None or lap_time < self.best_lap_time_s:
            self.best_lap_time_s = lap_time
        self.current_lap_start_s = float(now_s)
        logger.info("Lap %d completed in %.3fs", self.lap_count, lap_time)
        return LapUpdate(True, lap_time)

    def display(self, now_s: float) -> LapRecord:
        current = float(now_s) - self.current_lap_start_s if self.is_active else None
        return LapRecord(
            lap_count=self.lap_count,
            last_lap_time_s=self.last_lap_time_s,
            best_lap_time_s=self.best_lap_time_s,
            current_lap_start_s=self.current_lap_start_s,
            current_lap_time_s=current,
            is_timing=self.is_active,
            lap_history=tuple(self.history),
        )
