"""Host-side capability set offered to control programs.

A control program never touches simulator internals; it sees only a
`ControlIO` with four capabilities:

    read_sensor(id) -> 0 | 1     (0 = on line, unknown pins read 1)
    write_motor(id, value)       (PWM, rounded and clamped to [-255, 255])
    sleep(ms)                    (simulated delay, accumulated per tick)
    log(message)                 (serial monitor buffer)

Pins follow the classic Arduino wiring of the kit: sensors from pin 2 upward
in left-to-right order, left motor on pin 6, right motor on pin 5. Sensor and
motor names ("left", "center", ...) are accepted wherever a pin is.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from math import isfinite
from typing import Callable, Dict, Optional, Union

from lfr_env.constants import FIRST_SENSOR_PIN, MOTOR_LEFT_PIN, MOTOR_RIGHT_PIN, PWM_MAX
from lfr_env.errors import NumericFault
from lfr_env.sim.line_sensor import sensor_names
from lfr_env.sim.stepper import SimulationContext

logger = logging.getLogger(__name__)

PinId = Union[int, str]

MOTOR_PINS: Dict[int, str] = {MOTOR_LEFT_PIN: "left", MOTOR_RIGHT_PIN: "right"}


class ControlIO:
    """Capability set bound to one SimulationContext."""

    def __init__(self, ctx: SimulationContext, first_sensor_pin: int = FIRST_SENSOR_PIN) -> None:
        self.ctx = ctx
        self.first_sensor_pin = int(first_sensor_pin)

    @property
    def sensor_pins(self) -> Dict[int, str]:
        names = sensor_names(self.ctx.robot.geometry.sensor_count)
        return {self.first_sensor_pin + i: name for i, name in enumerate(names)}

    def _sensor_name(self, sensor: PinId) -> Optional[str]:
        if isinstance(sensor, str):
            return sensor if sensor in self.ctx.sensor_on_line else None
        return self.sensor_pins.get(int(sensor))

    def pin_mode(self, pin: int, mode: str) -> None:
        self.ctx.pin_modes[int(pin)] = str(mode)

    def read_sensor(self, sensor: PinId) -> int:
        name = self._sensor_name(sensor)
        if name is None:
            return 1
        return 0 if self.ctx.sensor_on_line.get(name, False) else 1

    def write_motor(self, motor: PinId, value: float) -> None:
        if isinstance(motor, str):
            side = motor if motor in ("left", "right") else None
        else:
            side = MOTOR_PINS.get(int(motor))
        if side is None:
            logger.debug("write to unmapped motor %r ignored", motor)
            return
        if not isfinite(float(value)):
            raise NumericFault(f"Non-finite PWM for {side} motor: {value}")
        self.ctx.motor_pwm[side] = int(min(max(round(float(value)), -PWM_MAX), PWM_MAX))

    def sleep(self, ms: float) -> None:
        if ms > 0:
            self.ctx.pending_delay_ms += float(ms)

    def log(self, message: object) -> None:
        text = str(message)
        self.ctx.serial.append(text)
        logger.debug("serial: %s", text)


class ControlProgram(ABC):
    """Strategy interface: `setup` once per run, `loop` once per tick."""

    def setup(self, io: ControlIO) -> None:
        pass

    @abstractmethod
    def loop(self, io: ControlIO) -> None:
        ...


class FunctionProgram(ControlProgram):
    """Wrap a plain (setup, loop) callback pair as a ControlProgram."""

    def __init__(
        self,
        loop: Callable[[ControlIO], None],
        setup: Optional[Callable[[ControlIO], None]] = None,
    ) -> None:
        self._loop = loop
        self._setup = setup

    def setup(self, io: ControlIO) -> None:
        if self._setup is not None:
            self._setup(io)

    def loop(self, io: ControlIO) -> None:
        self._loop(io)
