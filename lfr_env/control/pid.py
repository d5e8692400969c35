"""PID line following for the three-sensor robot.

Design decisions:
- Error from the sensor pattern: line under the left sensor only -> -max_error,
  left+center -> -max_error/2, center -> 0, center+right -> +max_error/2,
  right only -> +max_error.
- Lost line (no sensor on it): keep the previous error, pushed to 1.5x when it
  was already beyond half of max_error. All sensors on the line: error 0.
- Wheel split: left = base + output, right = base - output, so a negative
  error speeds up the right wheel and turns toward the left sensor.
- Integral clamped to [integral_min, integral_max] (anti-windup).
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Dict, Optional, Tuple

from lfr_env.constants import MOTOR_DEADBAND_PWM, PWM_MAX

from .interface import ControlIO, ControlProgram


@dataclass
class PIDGains:
    kp: float = 90.0
    ki: float = 0.75
    kd: float = 25.0
    base_speed: float = 150.0
    max_speed: float = float(PWM_MAX)
    min_speed: float = 0.0
    integral_min: float = -200.0
    integral_max: float = 200.0

    def __post_init__(self) -> None:
        assert self.min_speed <= self.max_speed, "min_speed <= max_speed"
        assert self.integral_min <= self.integral_max, "integral_min <= integral_max"

    def updated(self, **changes: Optional[float]) -> "PIDGains":
        """Validated copy with the given gains replaced; None values are ignored."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise KeyError(f"Unknown PID setting: {sorted(unknown)}")
        return replace(self, **{k: float(v) for k, v in changes.items() if v is not None})


class PIDController:
    """Discrete PID on a sensor-pattern error.

    Interface:
    - calculate_error(left, center, right, max_error=2.0) -> float
    - compute_output(dt=1.0) -> float
    - motor_pwms(adjustment, deadband_pwm=0) -> (left_pwm, right_pwm)
    - terms() -> {"P", "I", "D", "error"}
    """

    def __init__(self, gains: Optional[PIDGains] = None) -> None:
        self.gains = gains or PIDGains()
        self.reset()

    def reset(self) -> None:
        self.error = 0.0
        self.previous_error = 0.0
        self.integral = 0.0
        self.derivative = 0.0

    def update_settings(self, **changes: Optional[float]) -> None:
        self.gains = self.gains.updated(**changes)

    def calculate_error(
        self, left: bool, center: bool, right: bool, max_error: float = 2.0
    ) -> float:
        """Update the error from on-line flags (True = sensor sees the line)."""
        pattern = (left, center, right)
        if pattern == (True, False, False):
            self.error = -max_error
        elif pattern == (True, True, False):
            self.error = -max_error / 2.0
        elif pattern == (False, True, False):
            self.error = 0.0
        elif pattern == (False, True, True):
            self.error = max_error / 2.0
        elif pattern == (False, False, True):
            self.error = max_error
        elif pattern == (False, False, False):
            prev = self.previous_error
            if prev > max_error / 2.0:
                self.error = max_error * 1.5
            elif prev < -max_error / 2.0:
                self.error = -max_error * 1.5
            else:
                self.error = prev
        elif pattern == (True, True, True):
            self.error = 0.0
        # left+right without center: keep the current error
        return self.error

    def compute_output(self, dt: float = 1.0) -> float:
        g = self.gains
        self.integral = min(max(self.integral + self.error * dt, g.integral_min), g.integral_max)
        self.derivative = (self.error - self.previous_error) / dt if dt > 0 else 0.0
        output = g.kp * self.error + g.ki * self.integral + g.kd * self.derivative
        self.previous_error = self.error
        return output

    def motor_pwms(self, adjustment: float, deadband_pwm: float = 0.0) -> Tuple[int, int]:
        g = self.gains
        left = min(max(g.base_speed + adjustment, g.min_speed), g.max_speed)
        right = min(max(g.base_speed - adjustment, g.min_speed), g.max_speed)

        def _deadband(v: float) -> int:
            return 0 if v != 0 and abs(v) < deadband_pwm else int(round(v))

        return _deadband(left), _deadband(right)

    def terms(self) -> Dict[str, float]:
        g = self.gains
        return {
            "P": g.kp * self.error,
            "I": g.ki * self.integral,
            "D": g.kd * self.derivative,
            "error": self.error,
        }


class PIDLineFollower(ControlProgram):
    """Example program: three digital sensors in, two PWM motors out."""

    def __init__(
        self,
        gains: Optional[PIDGains] = None,
        deadband_pwm: float = MOTOR_DEADBAND_PWM,
        loop_delay_ms: float = 5.0,
        verbose: bool = False,
    ) -> None:
        self.pid = PIDController(gains)
        self.deadband_pwm = float(deadband_pwm)
        self.loop_delay_ms = float(loop_delay_ms)
        self.verbose = verbose

    def setup(self, io: ControlIO) -> None:
        self.pid.reset()
        for pin in io.sensor_pins:
            io.pin_mode(pin, "INPUT")
        io.log("Robot setup complete. PID line follower.")

    def loop(self, io: ControlIO) -> None:
        on_line = [io.read_sensor(name) == 0 for name in ("left", "center", "right")]
        self.pid.calculate_error(*on_line)
        output = self.pid.compute_output()
        left_pwm, right_pwm = self.pid.motor_pwms(output, self.deadband_pwm)
        io.write_motor("left", left_pwm)
        io.write_motor("right", right_pwm)
        if self.verbose:
            t = self.pid.terms()
            io.log(f"E:{t['error']:.1f} P:{t['P']:.1f} I:{t['I']:.1f} D:{t['D']:.1f} L:{left_pwm} R:{right_pwm}")
        if self.loop_delay_ms > 0:
            io.sleep(self.loop_delay_ms)
