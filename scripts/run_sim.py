from __future__ import annotations

import argparse
import logging
import os

import numpy as np

from lfr_env.control import PIDGains, PIDLineFollower, SimulationRunner
from lfr_env.errors import ControlError
from lfr_env.sim import Pose, SimulationContext, SimulationStepper
from lfr_env.track import TrackDesign, TrackGenerator, render_grid
from lfr_env.utils import load_sim_config


def parse_pose(text: str) -> Pose:
    x, y, angle = (float(v) for v in text.split(","))
    return Pose(x, y, angle)


def build_stepper(cfg) -> SimulationStepper:
    ctx = SimulationContext.create(cfg.sim, cfg.robot, cfg.seed)
    return SimulationStepper(ctx)


def load_track(stepper: SimulationStepper, args, cfg) -> bool:
    start = parse_pose(args.start) if args.start else None
    if args.design:
        design = TrackDesign.load(args.design, strict=False)
        for p in design.skipped:
            print(f"[WARN] Skipped part {p.part_file} at [{p.r},{p.c}]")
        grid = design.to_grid()
        if start is None:
            _, start = TrackGenerator(part_size_px=cfg.track.part_size_px).pick_start(grid)
        image = render_grid(grid, cfg.track.part_size_px, cfg.track.tape_width_px)
        return stepper.load_track_array(image, start_pose=start, name=design.track_name)
    if args.track:
        return stepper.load_track(args.track, start_pose=start)
    gen = TrackGenerator(part_size_px=cfg.track.part_size_px)
    if cfg.seed is not None:
        gen.set_seed(int(cfg.seed))
    result = gen.generate_loop(cfg.track.rows, cfg.track.cols, max_retries=cfg.track.max_retries)
    if not result.success:
        print("[WARN] Track generation failed")
        return False
    image = render_grid(result.grid, cfg.track.part_size_px, cfg.track.tape_width_px)
    return stepper.load_track_array(image, start_pose=start or result.start_pose, name="generated")


def main():
    parser = argparse.ArgumentParser(description="Run the PID line follower on a track")
    parser.add_argument("--config", type=str, default="configs/sim.yaml")
    parser.add_argument("--track", type=str, default=None, help="Track image (PNG)")
    parser.add_argument("--design", type=str, default=None, help="Track design JSON")
    parser.add_argument("--start", type=str, default=None, help="Start pose 'x,y,angle' in meters/radians")
    parser.add_argument("--ticks", type=int, default=3000)
    parser.add_argument("--kp", type=float, default=None)
    parser.add_argument("--ki", type=float, default=None)
    parser.add_argument("--kd", type=float, default=None)
    parser.add_argument("--base-speed", type=float, default=None)
    parser.add_argument("--keep-going", action="store_true", help="Do not stop when out of bounds")
    parser.add_argument("--csv", type=str, default=None, help="Write the trajectory to this CSV file")
    parser.add_argument("--log-level", type=str, default="WARNING")
    parser.add_argument("overrides", nargs="*", help="OmegaConf dotlist overrides, e.g. sim.dt=0.01")
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))
    cfg = load_sim_config(args.config if os.path.exists(args.config) else None, args.overrides)
    stepper = build_stepper(cfg)
    if not load_track(stepper, args, cfg):
        print("[WARN] No track loaded; nothing to simulate")
        return 1

    gains = PIDGains().updated(kp=args.kp, ki=args.ki, kd=args.kd, base_speed=args.base_speed)
    program = PIDLineFollower(gains, deadband_pwm=cfg.sim.motor_deadband_pwm)
    runner = SimulationRunner(stepper, program)

    try:
        snapshots = runner.run(args.ticks, stop_on_out_of_bounds=not args.keep_going)
    except ControlError as e:
        print(f"[WARN] {e}")
        return 1

    for snap in snapshots:
        if snap.crossed:
            print(f"[INFO] Lap completed in {snap.lap_time_s:.2f}s at t={snap.sim_time_s:.2f}s")
    last = snapshots[-1] if snapshots else None
    if last is not None and last.lap is not None:
        lap = last.lap
        best = f"{lap.best_lap_time_s:.2f}s" if lap.best_lap_time_s is not None else "-"
        print(f"[INFO] Ticks={runner.ticks} sim_time={last.sim_time_s:.2f}s laps={lap.lap_count} best={best}")
    if last is not None and last.out_of_bounds:
        print("[WARN] Robot left the track")

    if args.csv:
        rows = [
            (s.sim_time_s, s.pose.x, s.pose.y, s.pose.angle, s.commanded_pwm[0], s.commanded_pwm[1])
            for s in snapshots
            if s.pose is not None
        ]
        out_dir = os.path.dirname(args.csv)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        np.savetxt(
            args.csv,
            np.asarray(rows, dtype=float).reshape(-1, 6),
            delimiter=",",
            header="t,x,y,angle,left_pwm,right_pwm",
            comments="",
            fmt="%.6f",
        )
        print(f"[INFO] Saved trajectory: {args.csv}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
