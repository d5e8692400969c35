from __future__ import annotations

import argparse
import logging
import os

import imageio.v3 as iio

from lfr_env.track import TrackDesign, TrackGenerator, render_grid, validate_grid
from lfr_env.utils import load_sim_config


def main():
    parser = argparse.ArgumentParser(description="Generate a closed-loop tile track")
    parser.add_argument("--config", type=str, default="configs/sim.yaml")
    parser.add_argument("--rows", type=int, default=None)
    parser.add_argument("--cols", type=int, default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--max-retries", type=int, default=None)
    parser.add_argument("--name", type=str, default="GeneratedTrack")
    parser.add_argument("--out-dir", type=str, default="tracks")
    parser.add_argument("--no-png", action="store_true", help="Only write the JSON design")
    parser.add_argument("--log-level", type=str, default="WARNING")
    parser.add_argument("overrides", nargs="*", help="OmegaConf dotlist overrides, e.g. track.rows=4")
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))
    cfg = load_sim_config(args.config if os.path.exists(args.config) else None, args.overrides)
    rows = args.rows or cfg.track.rows
    cols = args.cols or cfg.track.cols
    seed = args.seed if args.seed is not None else cfg.seed
    retries = args.max_retries or cfg.track.max_retries

    gen = TrackGenerator(part_size_px=cfg.track.part_size_px)
    if seed is not None:
        gen.set_seed(int(seed))
    result = gen.generate_loop(rows, cols, max_retries=retries)
    if not result.success:
        print(f"[WARN] No valid loop on a {rows}x{cols} grid after {result.attempts} attempts")
        return 1

    report = validate_grid(result.grid)
    print(
        f"[INFO] Loop of {len(result.path)} cells after {result.attempts} attempt(s); "
        f"parts={report.part_count} dangling={report.dangling_connections} "
        f"mismatches={report.connection_mismatches} valid={report.is_valid}"
    )

    os.makedirs(args.out_dir, exist_ok=True)
    design_path = TrackDesign.from_grid(result.grid, args.name).save(
        os.path.join(args.out_dir, f"{args.name}.json")
    )
    print(f"[INFO] Saved design: {design_path}")
    if not args.no_png:
        png_path = os.path.join(args.out_dir, f"{args.name}.png")
        iio.imwrite(png_path, render_grid(result.grid, cfg.track.part_size_px, cfg.track.tape_width_px))
        print(f"[INFO] Saved track image: {png_path}")
    if result.start_pose is not None:
        p = result.start_pose
        print(f"[INFO] Start pose: x={p.x:.3f} y={p.y:.3f} angle={p.angle:.3f}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
