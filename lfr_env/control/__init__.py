"""Control host: capability set, runner and the PID example program."""

from .interface import ControlIO, ControlProgram, FunctionProgram
from .pid import PIDController, PIDGains, PIDLineFollower
from .runner import SimulationRunner

__all__ = [
    "ControlIO",
    "ControlProgram",
    "FunctionProgram",
    "PIDController",
    "PIDGains",
    "PIDLineFollower",
    "SimulationRunner",
]
