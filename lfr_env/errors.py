"""Exception types raised by the simulator core."""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for simulator errors."""


class NumericFault(SimulationError, ArithmeticError):
    """A non-finite value reached the kinematics; the previous state was kept."""


class ControlError(SimulationError):
    """The control program failed during setup() or loop()."""


class UnknownPartError(SimulationError, ValueError):
    """A track design references a part that is not in the catalog."""
