from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional

from .constants import (
    ALPHA_CUTOFF,
    DT_S,
    LINE_THRESHOLD,
    MAX_ROBOT_SPEED_MPS,
    MIN_LAP_TIME_S,
    MOTOR_DEADBAND_PWM,
    MOTOR_EFFICIENCY,
    MOTOR_RESPONSE_FACTOR,
    ROBOT_LENGTH_M,
    ROBOT_WHEELBASE_M,
    SENSOR_COUNT,
    SENSOR_DIAMETER_M,
    SENSOR_OFFSET_M,
    SENSOR_SPREAD_M,
    TAPE_WIDTH_PX,
    TRACK_PART_SIZE_PX,
)


@dataclass(frozen=True)
class RobotGeometry:
    """Robot dimensions in meters.

    - wheelbase_m: distance between wheel centres (also the robot width)
    - length_m: chassis length
    - sensor_offset_m: forward distance from the axle centre to the sensor line
    - sensor_spread_m: lateral distance between neighbouring sensors
    - sensor_diameter_m: sensor spot size (display only)
    - sensor_count: 2..5 sensors on the sensor line
    """

    wheelbase_m: float = ROBOT_WHEELBASE_M
    length_m: float = ROBOT_LENGTH_M
    sensor_offset_m: float = SENSOR_OFFSET_M
    sensor_spread_m: float = SENSOR_SPREAD_M
    sensor_diameter_m: float = SENSOR_DIAMETER_M
    sensor_count: int = SENSOR_COUNT

    def __post_init__(self) -> None:
        for name in (
            "wheelbase_m",
            "length_m",
            "sensor_offset_m",
            "sensor_spread_m",
            "sensor_diameter_m",
        ):
            assert getattr(self, name) >= 0.0, f"{name} must be >= 0"
        assert 2 <= self.sensor_count <= 5, "sensor_count in [2,5]"


@dataclass
class SimParams:
    """Stepper parameters; all of them may change between ticks."""

    dt: float = DT_S
    max_robot_speed: float = MAX_ROBOT_SPEED_MPS
    motor_efficiency: float = MOTOR_EFFICIENCY
    motor_response_factor: float = MOTOR_RESPONSE_FACTOR
    sensor_noise_prob: float = 0.0
    movement_perturb_factor: float = 0.0
    motor_deadband_pwm: float = MOTOR_DEADBAND_PWM
    line_threshold: float = LINE_THRESHOLD
    alpha_cutoff: int = ALPHA_CUTOFF
    min_lap_time_s: float = MIN_LAP_TIME_S
    lap_gate_margin_m: Optional[float] = None

    def __post_init__(self) -> None:
        assert self.dt > 0.0, "dt must be > 0"
        assert self.max_robot_speed > 0.0, "max_robot_speed must be > 0"
        assert 0.0 < self.motor_efficiency <= 1.0, "motor_efficiency in (0,1]"
        assert 0.0 <= self.motor_response_factor <= 1.0, "motor_response_factor in [0,1]"
        assert 0.0 <= self.sensor_noise_prob <= 1.0, "sensor_noise_prob in [0,1]"
        assert 0.0 <= self.movement_perturb_factor <= 1.0, "movement_perturb_factor in [0,1]"
        assert 0.0 <= self.motor_deadband_pwm <= 255.0, "motor_deadband_pwm in [0,255]"
        assert 0.0 <= self.line_threshold <= 256.0, "line_threshold in [0,256]"
        assert 0 <= self.alpha_cutoff <= 255, "alpha_cutoff in [0,255]"
        assert self.min_lap_time_s >= 0.0, "min_lap_time_s must be >= 0"
        if self.lap_gate_margin_m is not None:
            assert self.lap_gate_margin_m > 0.0, "lap_gate_margin_m must be > 0"

    @property
    def effective_max_speed(self) -> float:
        return self.max_robot_speed * self.motor_efficiency

    def updated(self, **changes: Any) -> "SimParams":
        """Return a validated copy with the given fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise KeyError(f"Unknown simulation parameters: {sorted(unknown)}")
        return replace(self, **changes)


@dataclass
class TrackConfig:
    rows: int = 3
    cols: int = 3
    part_size_px: int = TRACK_PART_SIZE_PX
    tape_width_px: int = TAPE_WIDTH_PX
    max_retries: Optional[int] = None

    def __post_init__(self) -> None:
        assert self.rows > 0 and self.cols > 0, "grid size must be > 0"
        assert self.part_size_px > 0, "part_size_px must be > 0"
        assert 0 < self.tape_width_px < self.part_size_px, "tape_width_px in (0, part_size_px)"
        if self.max_retries is not None:
            assert self.max_retries > 0, "max_retries must be > 0"


@dataclass
class SimConfig:
    sim: SimParams = field(default_factory=SimParams)
    robot: RobotGeometry = field(default_factory=RobotGeometry)
    track: TrackConfig = field(default_factory=TrackConfig)
    seed: Optional[int] = None

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any] | None) -> "SimConfig":
        d = cfg or {}
        return cls(
            sim=SimParams(**dict(d.get("sim") or {})),
            robot=RobotGeometry(**dict(d.get("robot") or {})),
            track=TrackConfig(**dict(d.get("track") or {})),
            seed=d.get("seed"),
        )
