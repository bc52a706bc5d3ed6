import logging

import numpy as np
import pytest
from world.coordinates import cell_area
from world.scan_grid import CoverageGrid

def _cells(grid: CoverageGrid) -> set:
    return {(int(x), int(y)) for x, y in np.argwhere(grid.scanned)}

def test_new_grid_is_empty():
    grid = CoverageGrid(20, 10, total_mits=6.0)
    assert grid.scanned.shape == grid.revealed.shape == (20, 10)
    assert not grid.scanned.any()
    assert grid.scan_percent == 0.0
    assert grid.mits_gleaned == 0.0

def test_invalid_dimensions_rejected():
    with pytest.raises(ValueError):
        CoverageGrid(0, 10, total_mits=6.0)

def test_total_area_is_sum_of_cell_weights():
    grid = CoverageGrid(20, 10, total_mits=6.0)
    expected = sum(cell_area(row, 10) for row in range(10)) * 20
    assert grid.total_area == pytest.approx(expected)
    assert grid.total_area < 20 * 10

def test_equator_scan_paints_expected_ellipse():
    grid = CoverageGrid(20, 10, total_mits=6.0)
    # lon 0 -> col 5, lat 0 -> row 5; radius 1 gives a plus-shaped footprint
    changed = grid.update_scan_data(True, 0.0, 0.0, 1)
    expected = {(4, 5), (5, 5), (6, 5), (5, 4), (5, 6)}
    assert changed == 5
    assert _cells(grid) == expected

    weight = sum(cell_area(y, 10) for _, y in expected)
    assert grid.scan_percent == pytest.approx(weight / grid.total_area)

def test_update_is_idempotent():
    grid = CoverageGrid(20, 10, total_mits=6.0)
    grid.update_scan_data(True, 0.0, 0.0, 1)
    first = grid.scan_percent
    assert grid.update_scan_data(True, 0.0, 0.0, 1) == 0
    assert grid.scan_percent == first

def test_unscan_restores_zero():
    grid = CoverageGrid(20, 10, total_mits=6.0)
    grid.update_scan_data(True, 0.0, 0.0, 1)
    grid.update_scan_data(False, 0.0, 0.0, 1)
    assert not grid.scanned.any()
    assert grid.scan_percent == pytest.approx(0.0, abs=1e-12)

def test_radius_clamped_to_seventh_of_width():
    grid = CoverageGrid(20, 10, total_mits=6.0, autocomplete_threshold=1.0)
    grid.update_scan_data(True, 0.0, 0.0, 50)
    # max radius 20 // 7 = 2: rows 3..7 only
    rows = {y for _, y in _cells(grid)}
    assert rows == {3, 4, 5, 6, 7}

def test_incremental_percent_matches_recomputed():
    rng = np.random.default_rng(42)
    grid = CoverageGrid(40, 20, total_mits=6.0, autocomplete_threshold=1.0)
    for _ in range(60):
        lon = float(rng.uniform(-180.0, 180.0))
        lat = float(rng.choice([-90.0, 90.0, rng.uniform(-90.0, 90.0)]))
        radius = int(rng.integers(0, 8))
        grid.update_scan_data(bool(rng.random() < 0.8), lon, lat, radius)
        assert abs(grid.scan_percent - grid.coverage_percent(grid.scanned)) < 1e-9

def test_high_latitude_scan_clamps_semi_major_axis(caplog):
    grid = CoverageGrid(70, 35, total_mits=6.0, autocomplete_threshold=1.0)
    with caplog.at_level(logging.ERROR):
        grid.update_scan_data(True, 0.0, 89.0, 5)
    assert np.isfinite(grid.scan_percent)
    assert 0.0 < grid.scan_percent <= 1.0
    assert "out of bounds" not in caplog.text

    # The stretched footprint is clamped at half the width either side
    top_row = grid.scanned[:, 34]
    assert top_row.all()

def test_exact_pole_scan_takes_half_width():
    grid = CoverageGrid(20, 10, total_mits=6.0, autocomplete_threshold=1.0)
    changed = grid.update_scan_data(True, 0.0, -90.0, 1)
    # Row 0 fully painted; row -1 reflects to row 1 shifted half way round
    expected = {(c, 0) for c in range(20)} | {(5, 1), (15, 1)}
    assert _cells(grid) == expected
    assert changed == len(expected)
    assert np.isfinite(grid.scan_percent)

def test_scan_crossing_south_pole_wraps_to_far_side():
    grid = CoverageGrid(20, 10, total_mits=6.0, autocomplete_threshold=1.0)
    # lat -72 -> row 1; radius 2 -> semi-major round(2 / cos 72) = 6
    grid.update_scan_data(True, 0.0, -72.0, 2)
    expected = (
        {(c, 0) for c in range(0, 11)}
        | {(c, 1) for c in [19] + list(range(0, 12))}
        | {(15, 1)}                                   # offset j=-2 passed the pole
        | {(c, 2) for c in range(0, 11)}
        | {(5, 3)}
    )
    assert _cells(grid) == expected
    assert grid.scan_percent == pytest.approx(grid.coverage_percent(grid.scanned))

def test_autocomplete_fills_grid():
    grid = CoverageGrid(20, 10, total_mits=6.0, autocomplete_threshold=0.0)
    grid.update_scan_data(True, 0.0, 0.0, 1)
    assert grid.scan_percent == 1.0
    assert grid.scanned.all()

def test_autocomplete_waits_for_a_changing_scan():
    grid = CoverageGrid(20, 10, total_mits=6.0, autocomplete_threshold=0.5)
    mask = np.zeros((20, 10), dtype=bool)
    mask[:, :8] = True
    grid.set_scanned_map(mask)
    assert 0.5 <= grid.scan_percent < 1.0

    # Row 2 is already scanned: nothing changes, no auto-complete
    assert grid.update_scan_data(True, 0.0, -54.0, 1) == 0
    assert not grid.scanned.all()

    # lat 54 -> row 8, which is new
    grid.update_scan_data(True, 0.0, 54.0, 1)
    assert grid.scan_percent == 1.0
    assert grid.scanned.all()

def test_available_mits_holds_back_reserved_unit():
    grid = CoverageGrid(20, 10, total_mits=11.0, autocomplete_threshold=1.0)
    assert grid.available_mits() == 0.0

    grid.update_scan_data(True, 0.0, 0.0, 2)
    partial = grid.available_mits()
    assert partial == pytest.approx(grid.scan_percent * 10.0)
    assert 0.0 < partial < grid.total_mits - grid.mits_gleaned

    grid.fill_scanned()
    assert grid.available_mits() == 11.0
    grid.mits_gleaned = 3.0
    assert grid.available_mits() == 8.0

def test_mits_gleaned_bounded():
    grid = CoverageGrid(20, 10, total_mits=6.0)
    grid.mits_gleaned = 100.0
    assert grid.mits_gleaned == 6.0
    # Never decreases
    grid.mits_gleaned = 1.0
    assert grid.mits_gleaned == 6.0

def test_point_revealed_policy():
    grid = CoverageGrid(20, 10, total_mits=6.0, autocomplete_threshold=1.0)
    grid.update_scan_data(True, 0.0, 0.0, 1)
    assert grid.is_point_scanned(5, 5) is True
    assert grid.is_point_revealed(5, 5, requires_transmit=True) is False
    assert grid.is_point_revealed(5, 5, requires_transmit=False) is True

def test_transmit_reveals_snapshot_and_claims_mits():
    grid = CoverageGrid(20, 10, total_mits=6.0, autocomplete_threshold=1.0)
    grid.update_scan_data(True, 0.0, 0.0, 1)
    snapshot = grid.snapshot_scanned()

    # Scanning continues while the transmission is in flight
    grid.update_scan_data(True, 90.0, 0.0, 1)

    claimed = grid.transmit(snapshot)
    assert claimed > 0.0
    assert grid.mits_gleaned == pytest.approx(claimed)
    assert np.array_equal(grid.revealed, snapshot)
    assert grid.is_point_revealed(5, 5) is True
    assert grid.is_point_revealed(0, 5) is False

def test_transmit_with_nothing_available():
    grid = CoverageGrid(20, 10, total_mits=6.0)
    assert grid.transmit() == 0.0
    assert not grid.revealed.any()

def test_views_are_read_only():
    grid = CoverageGrid(20, 10, total_mits=6.0)
    with pytest.raises(ValueError):
        grid.scanned[0, 0] = True
    with pytest.raises(ValueError):
        grid.snapshot_scanned()[0, 0] = True

def test_set_map_shape_checked():
    grid = CoverageGrid(20, 10, total_mits=6.0)
    with pytest.raises(ValueError):
        grid.set_scanned_map(np.zeros((10, 20), dtype=bool))

def test_serialized_maps_round_trip():
    grid = CoverageGrid(20, 10, total_mits=6.0, autocomplete_threshold=1.0)
    grid.update_scan_data(True, 30.0, 20.0, 2)

    other = CoverageGrid(20, 10, total_mits=6.0, autocomplete_threshold=1.0)
    other.load_scanned_map(grid.serialized_scanned_map())
    assert np.array_equal(other.scanned, grid.scanned)
    assert other.scan_percent == pytest.approx(grid.scan_percent, abs=1e-9)

def test_loading_sentinel_sets_full_coverage():
    grid = CoverageGrid(20, 10, total_mits=6.0)
    grid.load_scanned_map("X")
    assert grid.scanned.all()
    assert grid.scan_percent == 1.0
