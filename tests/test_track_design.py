import json

import numpy as np
import pytest

from lfr_env.errors import UnknownPartError
from lfr_env.track import TrackDesign, TrackGenerator, TrackPartCatalog


def _generated_grid():
    result = TrackGenerator(np.random.default_rng(3)).generate_loop(3, 3, max_retries=200)
    assert result.success
    return result.grid


def test_design_round_trip_through_file(tmp_path):
    grid = _generated_grid()
    path = TrackDesign.from_grid(grid, "Loop3").save(tmp_path / "designs" / "loop.json")
    loaded = TrackDesign.load(path)
    assert loaded.track_name == "Loop3"
    assert (loaded.rows, loaded.cols) == (3, 3)
    rebuilt = loaded.to_grid()
    assert rebuilt.cells() == grid.cells()


def test_json_layout():
    grid = _generated_grid()
    obj = TrackDesign.from_grid(grid).to_json()
    assert obj["gridSize"] == {"rows": 3, "cols": 3}
    assert obj["trackName"] == "MyTrack"
    assert len(obj["gridParts"]) == len(grid)
    assert set(obj["gridParts"][0]) == {"r", "c", "partFile", "rotation"}
    json.dumps(obj)


def _design_with_unknown_part():
    return {
        "gridSize": {"rows": 2, "cols": 2},
        "gridParts": [
            {"r": 0, "c": 0, "partFile": "recta.png", "rotation": 90},
            {"r": 0, "c": 1, "partFile": "spiral.png", "rotation": 0},
        ],
    }


def test_unknown_part_raises_in_strict_mode():
    with pytest.raises(UnknownPartError):
        TrackDesign.from_json(_design_with_unknown_part())


def test_unknown_part_skipped_in_lenient_mode():
    design = TrackDesign.from_json(_design_with_unknown_part(), strict=False)
    assert [p.part_file for p in design.parts] == ["recta.png"]
    assert [p.part_file for p in design.skipped] == ["spiral.png"]
    grid = design.to_grid()
    assert grid.connections(0, 0) == frozenset("EW")


def test_part_outside_grid_is_rejected():
    obj = {"gridSize": {"rows": 1, "cols": 1}, "gridParts": [{"r": 3, "c": 0, "partFile": "curva.png"}]}
    with pytest.raises(UnknownPartError):
        TrackDesign.from_json(obj)
    assert len(TrackDesign.from_json(obj, strict=False).skipped) == 1


def test_missing_keys_rejected():
    with pytest.raises(ValueError):
        TrackDesign.from_json({"gridParts": []})


def test_to_grid_with_reduced_catalog():
    design = TrackDesign.from_json(_design_with_unknown_part(), strict=False)
    with pytest.raises(UnknownPartError):
        design.to_grid(TrackPartCatalog([]))
