import imageio.v3 as iio
import numpy as np

from lfr_env.sim.track_surface import TrackSurface, to_rgba


def test_alpha_cutoff_hides_transparent_ink():
    img = np.zeros((2, 2, 4), dtype=np.uint8)
    img[0, 0, 3] = 100
    img[0, 1, 3] = 200
    surface = TrackSurface(line_threshold=100, alpha_cutoff=128)
    surface.load_array(img)
    assert not surface.is_on_line(0, 0)
    assert surface.is_on_line(1, 0)


def test_threshold_change_reclassifies():
    img = np.full((4, 4, 3), 120, dtype=np.uint8)
    surface = TrackSurface(line_threshold=100)
    surface.load_array(img)
    assert not surface.is_on_line(1, 1)
    surface.line_threshold = 150
    assert surface.is_on_line(1, 1)


def test_out_of_bounds_and_empty_surface_are_off_line():
    surface = TrackSurface()
    assert not surface.loaded
    assert not surface.is_on_line(0, 0)
    surface.load_array(np.zeros((3, 5), dtype=np.uint8))
    assert surface.width_px == 5 and surface.height_px == 3
    assert surface.is_on_line(4, 2)
    assert not surface.is_on_line(5, 0)
    assert not surface.is_on_line(-1, 0)


def test_load_png_from_disk(tmp_path):
    img = np.full((8, 12, 4), 255, dtype=np.uint8)
    img[4, :, :3] = 0
    path = tmp_path / "track.png"
    iio.imwrite(path, img)
    surface = TrackSurface()
    assert surface.load(str(path))
    assert (surface.width_px, surface.height_px) == (12, 8)
    assert surface.name == str(path)
    assert surface.is_on_line(3, 4)
    assert not surface.is_on_line(3, 3)


def test_failed_load_keeps_previous_raster(tmp_path):
    surface = TrackSurface()
    surface.load_array(np.zeros((6, 6), dtype=np.uint8), name="first")
    assert not surface.load(str(tmp_path / "missing.png"))
    assert surface.loaded
    assert surface.name == "first"
    assert surface.width_px == 6

    bad = tmp_path / "corrupt.png"
    bad.write_bytes(b"not an image")
    assert not surface.load(str(bad))
    assert surface.name == "first"


def test_rejects_unsupported_shapes():
    surface = TrackSurface()
    assert not surface.load_array(np.zeros((4, 4, 2), dtype=np.uint8))
    assert not surface.loaded


def test_to_rgba_scales_float_images():
    rgba = to_rgba(np.ones((2, 2), dtype=np.float32))
    assert rgba.dtype == np.uint8
    assert rgba.shape == (2, 2, 4)
    assert (rgba == 255).all()
