"""Simulation context and the per-tick stepper.

One tick: sense -> PWM to target speed -> integrate -> advance clock ->
lap timer -> bounds check -> snapshot. All mutable state lives in
`SimulationContext`; the stepper is the only writer during a tick.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from math import isfinite
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from lfr_env.config import RobotGeometry, SimParams
from lfr_env.constants import MIN_WHEELBASE_M, PIXELS_PER_METER, PWM_MAX
from lfr_env.errors import NumericFault

from .dynamics import DifferentialDriveModel, Pose, RobotState
from .lap_timer import LapRecord, LapTimer, StartLine
from .line_sensor import LineSensorModel, sensor_names, to_digital
from .track_surface import TrackSurface

logger = logging.getLogger(__name__)

NO_TRACK = "no_track"


@dataclass(frozen=True)
class Snapshot:
    """Everything a renderer or UI needs from one tick."""

    sensor_states: Dict[str, int]
    sensor_on_line: Dict[str, bool]
    applied_speeds: Tuple[float, float]
    commanded_pwm: Tuple[float, float]
    lap: Optional[LapRecord]
    crossed: bool
    lap_time_s: Optional[float]
    sim_time_s: float
    out_of_bounds: bool
    pose: Optional[Pose]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SimulationContext:
    """Owner of all mutable simulation state."""

    params: SimParams = field(default_factory=SimParams)
    robot: RobotState = field(default_factory=RobotState)
    track: TrackSurface = field(default_factory=TrackSurface)
    lap_timer: LapTimer = field(default_factory=LapTimer)
    rng: np.random.Generator = field(default_factory=np.random.default_rng)
    start_pose: Pose = field(default_factory=lambda: Pose(0.0, 0.0, 0.0))
    start_line: Optional[StartLine] = None
    sim_time_s: float = 0.0
    out_of_bounds: bool = False
    sensor_on_line: Dict[str, bool] = field(default_factory=dict)
    serial: List[str] = field(default_factory=list)
    pin_modes: Dict[int, str] = field(default_factory=dict)
    pending_delay_ms: float = 0.0
    motor_pwm: Dict[str, int] = field(default_factory=lambda: {"left": 0, "right": 0})

    def __post_init__(self) -> None:
        self.sync_params()
        self.clear_sensors()

    @classmethod
    def create(
        cls,
        params: Optional[SimParams] = None,
        geometry: Optional[RobotGeometry] = None,
        seed: Optional[int] = None,
    ) -> "SimulationContext":
        robot = RobotState(geometry=geometry or RobotGeometry())
        return cls(
            params=params or SimParams(),
            robot=robot,
            rng=np.random.default_rng(seed),
        )

    def sync_params(self) -> None:
        """Push parameters into the components that cache them."""
        self.track.line_threshold = self.params.line_threshold
        self.track.alpha_cutoff = self.params.alpha_cutoff
        self.lap_timer.min_lap_time_s = self.params.min_lap_time_s
        self.lap_timer.gate_margin_m = self.gate_margin_m()

    def _half_width_m(self) -> float:
        return max(self.robot.geometry.wheelbase_m, MIN_WHEELBASE_M)

    def gate_margin_m(self) -> float:
        """Distance from the start segment within which side flips are tracked."""
        if self.params.lap_gate_margin_m is not None:
            return self.params.lap_gate_margin_m
        return self._half_width_m() * 0.5

    def start_line_for(self, pose: Pose, start_line: Optional[StartLine] = None) -> StartLine:
        """The explicit start line if one is set, else one derived behind `pose`."""
        line = start_line if start_line is not None else self.start_line
        if line is not None:
            return line
        return StartLine.behind_pose(pose, self._half_width_m(), self.robot.geometry.length_m)

    def clear_sensors(self) -> None:
        names = sensor_names(self.robot.geometry.sensor_count)
        self.sensor_on_line = {name: False for name in names}

    def reset_io(self) -> None:
        """Forget control-side state: motor outputs, pin modes, serial buffer."""
        self.motor_pwm = {"left": 0, "right": 0}
        self.pin_modes.clear()
        self.serial.clear()
        self.pending_delay_ms = 0.0

    def reset(self, start_pose: Optional[Pose] = None, start_line: Optional[StartLine] = None) -> None:
        """Return to the start pose with a fresh clock and lap record."""
        if start_pose is not None:
            self.start_pose = start_pose
        if start_line is not None:
            self.start_line = start_line
        self.robot.reset(self.start_pose)
        self.sim_time_s = 0.0
        self.out_of_bounds = False
        self.pending_delay_ms = 0.0
        self.clear_sensors()
        self.lap_timer.reset()
        if self.track.loaded:
            self.lap_timer.initialize(
                self.start_pose,
                now_s=self.sim_time_s,
                start_line=self.start_line_for(self.start_pose),
            )


def pwm_to_speed(pwm: float, params: SimParams) -> float:
    """Convert a PWM command into a target wheel speed in m/s."""
    if not isfinite(float(pwm)):
        raise NumericFault(f"Non-finite PWM command: {pwm}")
    pwm = min(max(float(pwm), -PWM_MAX), PWM_MAX)
    if pwm != 0.0 and abs(pwm) < params.motor_deadband_pwm:
        pwm = 0.0
    return pwm / PWM_MAX * params.effective_max_speed


class SimulationStepper:
    """Advances a SimulationContext one tick at a time.

    Interface:
    - load_track(source, start_pose?, start_line?) -> bool
    - load_track_array(array, start_pose?, start_line?) -> bool
    - update_params(**changes), update_geometry(geometry), reset(start_pose?)
    - step(left_pwm, right_pwm) -> Snapshot
    """

    def __init__(
        self,
        context: Optional[SimulationContext] = None,
        kinematics: Optional[DifferentialDriveModel] = None,
        sensors: Optional[LineSensorModel] = None,
    ) -> None:
        self.ctx = context or SimulationContext()
        self.kinematics = kinematics or DifferentialDriveModel(self.ctx.rng)
        self.sensors = sensors or LineSensorModel(PIXELS_PER_METER, self.ctx.rng)

    def load_track(
        self,
        source: Any,
        start_pose: Optional[Pose] = None,
        start_line: Optional[StartLine] = None,
    ) -> bool:
        self._check_start(start_pose, start_line)
        if not self.ctx.track.load(source):
            return False
        self.ctx.reset(start_pose, start_line)
        return True

    def load_track_array(
        self,
        image: np.ndarray,
        start_pose: Optional[Pose] = None,
        start_line: Optional[StartLine] = None,
        name: str = "",
    ) -> bool:
        self._check_start(start_pose, start_line)
        if not self.ctx.track.load_array(image, name=name):
            return False
        self.ctx.reset(start_pose, start_line)
        return True

    def _check_start(self, start_pose: Optional[Pose], start_line: Optional[StartLine]) -> None:
        # Raises before the raster or the timer is touched
        pose = start_pose if start_pose is not None else self.ctx.start_pose
        if not all(isfinite(v) for v in (pose.x, pose.y, pose.angle)):
            raise NumericFault(f"Non-finite start pose: {pose}")
        self.ctx.start_line_for(pose, start_line)

    def update_params(self, **changes: Any) -> SimParams:
        """Replace parameters between ticks without touching the pose."""
        self.ctx.params = self.ctx.params.updated(**changes)
        self.ctx.sync_params()
        return self.ctx.params

    def update_geometry(self, geometry: RobotGeometry) -> None:
        self.ctx.robot.set_geometry(geometry)
        self.ctx.sync_params()
        self.ctx.clear_sensors()

    def reset(self, start_pose: Optional[Pose] = None) -> None:
        self.ctx.reset(start_pose)

    def _error_snapshot(self, error: str) -> Snapshot:
        ctx = self.ctx
        act = ctx.robot.actuators
        names = sensor_names(ctx.robot.geometry.sensor_count)
        return Snapshot(
            sensor_states={name: 1 for name in names},
            sensor_on_line={name: False for name in names},
            applied_speeds=(act.applied_left, act.applied_right),
            commanded_pwm=(act.commanded_left_pwm, act.commanded_right_pwm),
            lap=None,
            crossed=False,
            lap_time_s=None,
            sim_time_s=ctx.sim_time_s,
            out_of_bounds=ctx.out_of_bounds,
            pose=None,
            error=error,
        )

    def _is_out_of_bounds(self) -> bool:
        ctx = self.ctx
        robot = ctx.robot
        margin = max(robot.geometry.length_m, robot.geometry.wheelbase_m)
        return (
            robot.x < -margin
            or robot.x * PIXELS_PER_METER > ctx.track.width_px + margin * PIXELS_PER_METER
            or robot.y < -margin
            or robot.y * PIXELS_PER_METER > ctx.track.height_px + margin * PIXELS_PER_METER
        )

    def step(self, left_pwm: float, right_pwm: float) -> Snapshot:
        ctx = self.ctx
        if not ctx.track.loaded:
            return self._error_snapshot(NO_TRACK)

        params = ctx.params
        robot = ctx.robot

        # 1. Sense from the pose left by the previous tick
        readings = self.sensors.sample(
            robot.as_pose(), robot.geometry, ctx.track, params.sensor_noise_prob
        )

        # 2. PWM -> target wheel speeds
        target_left = pwm_to_speed(left_pwm, params)
        target_right = pwm_to_speed(right_pwm, params)

        # 3. Kinematics (raises before mutating on non-finite values)
        self.kinematics.integrate(
            robot,
            params.dt,
            target_left,
            target_right,
            params.motor_response_factor,
            params.effective_max_speed,
            params.movement_perturb_factor,
        )
        robot.actuators.commanded_left_pwm = float(left_pwm)
        robot.actuators.commanded_right_pwm = float(right_pwm)
        ctx.sensor_on_line = readings

        # 4-6. Clock, laps, bounds
        ctx.sim_time_s += params.dt
        pose = robot.as_pose()
        lap_update = ctx.lap_timer.update(pose, ctx.sim_time_s)
        ctx.out_of_bounds = self._is_out_of_bounds()

        act = robot.actuators
        return Snapshot(
            sensor_states=to_digital(readings),
            sensor_on_line=dict(readings),
            applied_speeds=(act.applied_left, act.applied_right),
            commanded_pwm=(act.commanded_left_pwm, act.commanded_right_pwm),
            lap=ctx.lap_timer.display(ctx.sim_time_s),
            crossed=lap_update.crossed,
            lap_time_s=lap_update.lap_time_s,
            sim_time_s=ctx.sim_time_s,
            out_of_bounds=ctx.out_of_bounds,
            pose=pose,
        )
