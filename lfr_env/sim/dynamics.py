"""Differential-drive kinematics and integration utilities.

Implements first-order motor lag, speed clamping, optional multiplicative
perturbation, Euler (unicycle) integration and angle normalization.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from math import atan2, cos, isfinite, pi, sin
from typing import Deque, Optional, Tuple

import numpy as np

from lfr_env.config import RobotGeometry
from lfr_env.constants import MIN_WHEELBASE_M, TRAIL_MAX_LEN
from lfr_env.errors import NumericFault


@dataclass(frozen=True)
class Pose:
    """Planar pose: x, y in meters and angle in radians, wrapped to (-pi, pi]."""

    x: float
    y: float
    angle: float


@dataclass
class ActuatorState:
    commanded_left_pwm: float = 0.0
    commanded_right_pwm: float = 0.0
    applied_left: float = 0.0
    applied_right: float = 0.0


@dataclass
class RobotState:
    """Pose, geometry, actuator state and trails of the simulated robot."""

    x: float = 0.0
    y: float = 0.0
    angle: float = 0.0
    geometry: RobotGeometry = field(default_factory=RobotGeometry)
    actuators: ActuatorState = field(default_factory=ActuatorState)
    center_trail: Deque[Tuple[float, float]] = field(
        default_factory=lambda: deque(maxlen=TRAIL_MAX_LEN)
    )
    left_wheel_trail: Deque[Tuple[float, float]] = field(
        default_factory=lambda: deque(maxlen=TRAIL_MAX_LEN)
    )
    right_wheel_trail: Deque[Tuple[float, float]] = field(
        default_factory=lambda: deque(maxlen=TRAIL_MAX_LEN)
    )

    def as_pose(self) -> Pose:
        return Pose(self.x, self.y, self.angle)

    def reset(self, pose: Pose, geometry: Optional[RobotGeometry] = None) -> None:
        """Place the robot at `pose`, stop the motors and clear the trails."""
        if geometry is not None:
            self.geometry = geometry
        self.x, self.y = float(pose.x), float(pose.y)
        self.angle = wrap_to_pi(float(pose.angle))
        self.actuators = ActuatorState()
        self.reset_trails()

    def set_geometry(self, geometry: RobotGeometry) -> None:
        """Swap the geometry; the pose is kept and the trails restart."""
        self.geometry = geometry
        self.reset_trails()

    def reset_trails(self) -> None:
        self.center_trail.clear()
        self.left_wheel_trail.clear()
        self.right_wheel_trail.clear()

    def record_trails(self) -> None:
        half = self.geometry.wheelbase_m / 2.0
        # Left of the heading is along (-sin, cos)
        nx, ny = -sin(self.angle), cos(self.angle)
        self.center_trail.append((self.x, self.y))
        self.left_wheel_trail.append((self.x + half * nx, self.y + half * ny))
        self.right_wheel_trail.append((self.x - half * nx, self.y - half * ny))

    def trails(self) -> dict[str, tuple[tuple[float, float], ...]]:
        return {
            "center": tuple(self.center_trail),
            "left_wheel": tuple(self.left_wheel_trail),
            "right_wheel": tuple(self.right_wheel_trail),
        }


def wrap_to_pi(theta: float) -> float:
    """Normalize angle to (-pi, pi] via atan2."""
    wrapped = atan2(sin(theta), cos(theta))
    if wrapped <= -pi:
        wrapped = pi
    return wrapped


def _clip(value: float, limit: float) -> float:
    return min(max(value, -limit), limit)


class DifferentialDriveModel:
    """Two-wheel kinematics with actuator lag and optional perturbation.

    Interface:
    - integrate(state, dt, target_left, target_right, response_factor,
      max_speed, perturb_factor) -> RobotState
    - set_seed(seed)
    """

    def __init__(self, rng: Optional[np.random.Generator] = None) -> None:
        self._rng = rng or np.random.default_rng()

    def set_seed(self, seed: int) -> None:
        self._rng = np.random.default_rng(seed)

    def integrate(
        self,
        state: RobotState,
        dt: float,
        target_left: float,
        target_right: float,
        response_factor: float,
        max_speed: float,
        perturb_factor: float = 0.0,
    ) -> RobotState:
        """Advance `state` by one tick of duration dt (in place)."""
        inputs = (dt, target_left, target_right, response_factor, max_speed, perturb_factor)
        if not all(isfinite(float(v)) for v in inputs):
            raise NumericFault(f"Non-finite kinematics input: {inputs}")

        act = state.actuators
        v_left = act.applied_left + (target_left - act.applied_left) * response_factor
        v_right = act.applied_right + (target_right - act.applied_right) * response_factor
        v_left = _clip(v_left, max_speed)
        v_right = _clip(v_right, max_speed)

        d = (v_right + v_left) / 2.0 * dt
        d_theta = 0.0
        wheelbase = state.geometry.wheelbase_m
        if wheelbase > MIN_WHEELBASE_M:
            # Right wheel faster -> counter-clockwise
            d_theta = (v_right - v_left) / wheelbase * dt

        if perturb_factor > 0.0:
            d *= 1.0 + float(self._rng.uniform(-perturb_factor, perturb_factor))
            d_theta *= 1.0 + float(self._rng.uniform(-perturb_factor, perturb_factor))

        x = state.x + d * cos(state.angle)
        y = state.y + d * sin(state.angle)
        th = wrap_to_pi(state.angle + d_theta)
        if not all(isfinite(v) for v in (x, y, th, v_left, v_right)):
            raise NumericFault("Integration produced a non-finite pose")

        act.applied_left, act.applied_right = v_left, v_right
        state.x, state.y, state.angle = x, y, th
        state.record_trails()
        return state
