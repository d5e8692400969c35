import numpy as np

from lfr_env.sim import SimulationContext, SimulationStepper
from lfr_env.sim.line_sensor import world_to_pixel
from lfr_env.sim.track_surface import TrackSurface
from lfr_env.track import DEFAULT_PARTS, TrackGenerator, TrackGrid, grid_extent_m, render_grid

STRAIGHT, CURVE, CROSS, TEE = DEFAULT_PARTS


def test_straight_tile_has_tape_width():
    grid = TrackGrid(1, 1)
    grid.place(0, 0, STRAIGHT)
    img = render_grid(grid)
    assert img.shape == (350, 350, 4)
    assert img.dtype == np.uint8
    black = (img[..., :3] == 0).all(axis=-1)
    assert black[0, 175] and black[349, 175]
    assert black[175].sum() == 21
    assert (img[0, 0] == 255).all()
    assert (img[..., 3] == 255).all()


def test_corner_tile_is_a_quarter_arc():
    grid = TrackGrid(1, 1)
    grid.place(0, 0, CURVE)
    black = (render_grid(grid)[..., :3] == 0).all(axis=-1)
    assert black[0, 175]
    assert black[175, 349]
    assert not black[175, 175]
    assert not black[349, 0]


def test_junction_tile_reaches_every_connector():
    grid = TrackGrid(1, 1)
    grid.place(0, 0, TEE, 90)
    black = (render_grid(grid)[..., :3] == 0).all(axis=-1)
    assert black[175, 349] and black[175, 0] and black[349, 175]
    assert not black[0, 175]


def test_empty_cells_stay_white():
    grid = TrackGrid(2, 3)
    img = render_grid(grid, part_size_px=50, tape_width_px=6)
    assert img.shape == (100, 150, 4)
    assert (img == 255).all()
    assert grid_extent_m(grid, 50) == (0.15, 0.1)


def test_generated_track_start_pose_is_on_line():
    for seed in range(50):
        result = TrackGenerator(np.random.default_rng(seed)).generate_loop(3, 3, max_retries=200)
        if result.success and result.grid.get(*result.start_cell).part.is_straight:
            break
    else:
        raise AssertionError("no generated loop with a straight piece")
    surface = TrackSurface()
    assert surface.load_array(render_grid(result.grid))
    px, py = world_to_pixel(result.start_pose.x, result.start_pose.y)
    assert surface.is_on_line(px, py)

    stepper = SimulationStepper(SimulationContext.create(seed=0))
    assert stepper.load_track_array(render_grid(result.grid), start_pose=result.start_pose)
    assert stepper.step(0, 0).ok
