import math

import numpy as np
import pytest

from lfr_env.config import RobotGeometry, SimParams
from lfr_env.control import PIDLineFollower, SimulationRunner
from lfr_env.errors import NumericFault
from lfr_env.sim import NO_TRACK, Pose, SimulationContext, SimulationStepper, StartLine, pwm_to_speed
from lfr_env.track import TrackGenerator, render_grid


def _white(h=1000, w=1000) -> np.ndarray:
    return np.full((h, w, 3), 255, dtype=np.uint8)


def _stepper(image=None, pose=Pose(0.5, 0.5, 0.0), **params) -> SimulationStepper:
    ctx = SimulationContext.create(SimParams(**params), seed=0)
    stepper = SimulationStepper(ctx)
    if image is not None:
        assert stepper.load_track_array(image, start_pose=pose)
    return stepper


def test_step_without_track_reports_error_and_keeps_state():
    stepper = _stepper()
    before = stepper.ctx.robot.as_pose()
    snap = stepper.step(200, 200)
    assert not snap.ok
    assert snap.error == NO_TRACK
    assert snap.pose is None
    assert all(v == 1 for v in snap.sensor_states.values())
    assert stepper.ctx.sim_time_s == 0.0
    assert stepper.ctx.robot.as_pose() == before
    assert stepper.ctx.robot.actuators.commanded_left_pwm == 0.0


def test_one_tick_forward():
    stepper = _stepper(_white(), motor_response_factor=1.0)
    snap = stepper.step(200, 200)
    assert snap.ok
    assert snap.pose.x == pytest.approx(0.5 + 0.33333 * 0.02, abs=1e-6)
    assert snap.pose.y == pytest.approx(0.5)
    assert snap.pose.angle == pytest.approx(0.0)
    assert snap.sim_time_s == pytest.approx(0.02)
    assert snap.commanded_pwm == (200.0, 200.0)
    assert snap.applied_speeds[0] == pytest.approx(200 / 255 * 0.425)
    assert not snap.out_of_bounds


def test_pwm_conversion_deadband_and_clamp():
    params = SimParams()
    assert pwm_to_speed(5, params) == 0.0
    assert pwm_to_speed(-9, params) == 0.0
    assert pwm_to_speed(10, params) == pytest.approx(10 / 255 * 0.425)
    assert pwm_to_speed(400, params) == pytest.approx(0.425)
    with pytest.raises(NumericFault):
        pwm_to_speed(float("nan"), params)


def test_deadband_command_does_not_move():
    stepper = _stepper(_white())
    snap = stepper.step(5, -5)
    assert snap.pose == Pose(0.5, 0.5, 0.0)
    assert snap.commanded_pwm == (5.0, -5.0)
    assert snap.applied_speeds == (0.0, 0.0)


def test_non_finite_command_leaves_last_committed_state():
    stepper = _stepper(_white())
    stepper.step(100, 100)
    pose = stepper.ctx.robot.as_pose()
    t = stepper.ctx.sim_time_s
    with pytest.raises(NumericFault):
        stepper.step(float("inf"), 100)
    assert stepper.ctx.robot.as_pose() == pose
    assert stepper.ctx.sim_time_s == t
    assert stepper.ctx.robot.actuators.commanded_left_pwm == 100.0


def test_sensor_states_follow_raster():
    stepper = _stepper(np.zeros((1000, 1000, 3), dtype=np.uint8))
    snap = stepper.step(0, 0)
    assert snap.sensor_states == {"left": 0, "center": 0, "right": 0}
    assert stepper.ctx.sensor_on_line == {"left": True, "center": True, "right": True}


def test_out_of_bounds_uses_largest_dimension_margin():
    img = _white(100, 100)
    inside = _stepper(img, pose=Pose(0.21, 0.05, 0.0))
    assert not inside.step(0, 0).out_of_bounds
    outside = _stepper(img, pose=Pose(0.23, 0.05, 0.0))
    assert outside.step(0, 0).out_of_bounds


def test_parameter_update_between_ticks():
    stepper = _stepper(_white())
    stepper.step(0, 0)
    pose = stepper.ctx.robot.as_pose()
    stepper.update_params(dt=0.01, line_threshold=50)
    assert stepper.ctx.robot.as_pose() == pose
    assert stepper.ctx.track.line_threshold == 50
    snap = stepper.step(0, 0)
    assert snap.sim_time_s == pytest.approx(0.03)
    with pytest.raises(KeyError):
        stepper.update_params(warp_speed=9)
    with pytest.raises(AssertionError):
        stepper.update_params(dt=0.0)


def test_reset_returns_to_start_and_rearms_lap_timer():
    stepper = _stepper(_white())
    for _ in range(10):
        stepper.step(150, 150)
    stepper.reset()
    ctx = stepper.ctx
    assert ctx.robot.as_pose() == Pose(0.5, 0.5, 0.0)
    assert ctx.sim_time_s == 0.0
    assert ctx.lap_timer.is_active
    assert ctx.lap_timer.lap_count == 0


def test_lap_counted_through_stepper():
    line = StartLine(0.55, 0.4, 0.55, 0.6)
    stepper = _stepper(_white(), motor_response_factor=1.0, min_lap_time_s=0.1)
    assert stepper.load_track_array(_white(), start_pose=Pose(0.5, 0.5, 0.0), start_line=line)
    crossings = [snap for snap in (stepper.step(255, 255) for _ in range(20)) if snap.crossed]
    assert len(crossings) == 1
    assert crossings[0].lap.lap_count == 1
    assert math.isclose(crossings[0].lap_time_s, crossings[0].sim_time_s)


def test_generated_loop_counts_one_lap_per_gate_pass():
    gen = TrackGenerator()
    gen.set_seed(1)
    result = gen.generate_loop(3, 3, max_retries=200)
    assert result.success
    stepper = _stepper(render_grid(result.grid), pose=result.start_pose)
    timer = stepper.ctx.lap_timer
    assert timer.gate_margin_m == pytest.approx(0.05)
    line = timer.start_line

    snaps = SimulationRunner(stepper, PIDLineFollower()).run(3000)
    assert len(snaps) == 3000
    passes, inside = 0, False
    for snap in snaps:
        near = line.distance_to(snap.pose.x, snap.pose.y) <= timer.gate_margin_m
        if near and not inside:
            passes += 1
        inside = near
    assert passes >= 3
    assert snaps[-1].lap.lap_count == passes
    assert all(t > 2.0 for t in snaps[-1].lap.lap_history)


def test_gate_ignores_far_side_of_start_line():
    stepper = _stepper(_white(), pose=Pose(0.5, 0.5, 0.0))
    timer = stepper.ctx.lap_timer
    # Far behind the derived line, off the end of the segment
    assert not timer.update(Pose(0.3, 0.9, 0.0), 5.0).crossed
    assert timer.update(Pose(0.43, 0.5, 0.0), 6.0).crossed


def test_gate_margin_override_and_geometry_change():
    stepper = _stepper(_white(), lap_gate_margin_m=0.2)
    assert stepper.ctx.lap_timer.gate_margin_m == pytest.approx(0.2)
    stepper.update_params(lap_gate_margin_m=None)
    assert stepper.ctx.lap_timer.gate_margin_m == pytest.approx(0.05)
    stepper.update_geometry(RobotGeometry(wheelbase_m=0.2))
    assert stepper.ctx.lap_timer.gate_margin_m == pytest.approx(0.1)


def test_zero_wheelbase_robot_loads_track():
    ctx = SimulationContext.create(SimParams(), RobotGeometry(wheelbase_m=0.0), seed=0)
    stepper = SimulationStepper(ctx)
    assert stepper.load_track_array(_white(), start_pose=Pose(0.25, 0.25, 0.0))
    assert ctx.lap_timer.is_active
    line = ctx.lap_timer.start_line
    assert math.hypot(line.x2 - line.x1, line.y2 - line.y1) == pytest.approx(0.002)
    assert ctx.lap_timer.gate_margin_m == pytest.approx(0.0005)
    assert stepper.step(100, 100).ok


def test_bad_start_pose_leaves_loaded_track_untouched():
    stepper = _stepper(_white())
    ctx = stepper.ctx
    with pytest.raises(NumericFault):
        stepper.load_track_array(_white(500, 800), start_pose=Pose(float("nan"), 0.1, 0.0))
    assert ctx.track.width_px == 1000 and ctx.track.height_px == 1000
    assert ctx.lap_timer.is_active
    assert ctx.start_pose == Pose(0.5, 0.5, 0.0)
