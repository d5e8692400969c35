"""Simulation core: kinematics, line sensors, track raster, lap timing, stepping."""

from .dynamics import ActuatorState, DifferentialDriveModel, Pose, RobotState, wrap_to_pi
from .lap_timer import LapRecord, LapTimer, LapUpdate, StartLine
from .line_sensor import LineSensorModel, sensor_names, sensor_positions, to_digital
from .stepper import NO_TRACK, SimulationContext, SimulationStepper, Snapshot, pwm_to_speed
from .track_surface import TrackSurface

__all__ = [
    "ActuatorState",
    "DifferentialDriveModel",
    "Pose",
    "RobotState",
    "wrap_to_pi",
    "LapRecord",
    "LapTimer",
    "LapUpdate",
    "StartLine",
    "LineSensorModel",
    "sensor_names",
    "sensor_positions",
    "to_digital",
    "NO_TRACK",
    "SimulationContext",
    "SimulationStepper",
    "Snapshot",
    "pwm_to_speed",
    "TrackSurface",
]
