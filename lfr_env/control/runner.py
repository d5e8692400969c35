"""Tick loop host: control program -> stepper, one tick at a time."""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from lfr_env.errors import ControlError
from lfr_env.sim.stepper import SimulationStepper, Snapshot

from .interface import ControlIO, ControlProgram

logger = logging.getLogger(__name__)


class SimulationRunner:
    """Drives `program.loop` and `stepper.step` in lockstep.

    A tick runs the control loop to completion (including its simulated
    delay) before the stepper reads the motor outputs. Exceptions from the
    program are raised as ControlError and leave the simulation state as it
    was after the last committed tick.

    Args:
        stepper: simulation stepper owning the context.
        program: control strategy.
        realtime: if True, `sleep()` calls made by the program really wait.
    """

    def __init__(
        self,
        stepper: SimulationStepper,
        program: ControlProgram,
        realtime: bool = False,
    ) -> None:
        self.stepper = stepper
        self.program = program
        self.realtime = realtime
        self.io = ControlIO(stepper.ctx)
        self.started = False
        self.ticks = 0

    def start(self) -> None:
        self.stepper.ctx.reset_io()
        self.ticks = 0
        try:
            self.program.setup(self.io)
        except Exception as exc:
            raise ControlError(f"setup() failed: {exc}") from exc
        self.started = True

    def tick(self) -> Snapshot:
        if not self.started:
            self.start()
        ctx = self.stepper.ctx
        ctx.pending_delay_ms = 0.0
        motor_pwm = dict(ctx.motor_pwm)
        pin_modes = dict(ctx.pin_modes)
        serial_len = len(ctx.serial)
        try:
            self.program.loop(self.io)
        except Exception as exc:
            # Roll the I/O back to the last committed tick
            ctx.motor_pwm = motor_pwm
            ctx.pin_modes = pin_modes
            del ctx.serial[serial_len:]
            raise ControlError(f"loop() failed at tick {self.ticks}: {exc}") from exc
        if self.realtime and ctx.pending_delay_ms > 0:
            time.sleep(ctx.pending_delay_ms / 1000.0)
        snap = self.stepper.step(ctx.motor_pwm["left"], ctx.motor_pwm["right"])
        if snap.ok:
            self.ticks += 1
        return snap

    def run(self, ticks: int, stop_on_out_of_bounds: bool = True) -> List[Snapshot]:
        """Run up to `ticks` ticks; stops early on an error or out-of-bounds snapshot."""
        snapshots: List[Snapshot] = []
        for _ in range(int(ticks)):
            snap = self.tick()
            snapshots.append(snap)
            if not snap.ok:
                logger.warning("Simulation stopped: %s", snap.error)
                break
            if stop_on_out_of_bounds and snap.out_of_bounds:
                logger.info("Robot left the track after %d ticks", self.ticks)
                break
        return snapshots

    @property
    def last_serial(self) -> Optional[str]:
        serial = self.stepper.ctx.serial
        return serial[-1] if serial else None
