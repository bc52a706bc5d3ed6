"""
Surveyor — world/coordinates.py
Coordinate Mapping: longitude/latitude <-> coverage grid column/row.
====================================================================
Version:     0.2  (Phase 2 — canonical implementation)
Stack:       Python 3.14.3 | NumPy
Status:      Production-ready. Pure functions, no state.

Architecture notes
------------------
- Grids are addressed [col, row]. Column 0 sits at longitude +90 and
  columns run westward; row 0 is the south pole, row `height` the north.
- Cells are equirectangular, so a cell's true surface weight is
  cos(latitude) of its row (1 at the equator, 0 at the poles).
- All pole / date-line wraparound goes through wrap_index(). Never inline
  the arithmetic at a call site.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

LONGITUDE_SHIFT: float = 270.0
LATITUDE_SHIFT: float = 90.0


def lon_to_col(lon: float, width: int) -> int:
    """
    Map a longitude in degrees to a grid column in [0, width).
    Raises ValueError for a non-finite longitude.
    """
    if not math.isfinite(lon):
        raise ValueError(f"Longitude must be finite, got {lon}")

    lon = math.fmod(lon + LONGITUDE_SHIFT, 360.0)
    if lon < 0:
        lon += 360.0
    if lon >= 360.0:
        lon -= 360.0

    scale = 1.0 - (lon / 360.0)
    return int(round(scale * width)) % width


def col_to_lon(col: int, width: int) -> float:
    """Inverse of lon_to_col, up to rounding."""
    lon = (1.0 - (col / width)) * 360.0 - LONGITUDE_SHIFT
    return clamp_longitude(lon)


def lat_to_row(lat: float, height: int) -> int:
    """Map a latitude in degrees to a grid row in [0, height]."""
    scale = (lat + LATITUDE_SHIFT) / 180.0
    return int(round(scale * height))


def row_to_lat(row: int, height: int) -> float:
    return (row / height) * 180.0 - LATITUDE_SHIFT


def mercator_scale(lat: float) -> float:
    """
    East-west stretch factor at a latitude: 1 / cos(lat).
    Returns math.inf at (or past) the poles instead of dividing by ~0.
    """
    if abs(lat) >= 90.0:
        return math.inf
    return 1.0 / math.cos(math.radians(lat))


def cell_area(row: int, height: int) -> float:
    """Physical-surface weight of any cell in `row`."""
    return 1.0 / mercator_scale(row_to_lat(row, height))


def row_area_weights(height: int) -> np.ndarray:
    """Vector of cell_area() for every row, shape (height,)."""
    return np.array([cell_area(row, height) for row in range(height)], dtype=np.float64)


def clamp_longitude(lon: float) -> float:
    """Normalize any longitude into (-180, 180]."""
    lon = math.fmod(lon, 360.0)
    if lon <= -180.0:
        lon += 360.0
    elif lon > 180.0:
        lon -= 360.0
    return lon


def clamp_latitude(lat: float) -> float:
    """
    Normalize any latitude into [-90, 90].
    Values past a pole are reflected back over it (91 -> 89).
    """
    lat = math.fmod(lat, 360.0)
    if lat >= 180.0:
        lat -= 360.0
    elif lat < -180.0:
        lat += 360.0

    if lat > 90.0:
        lat = 180.0 - lat
    elif lat < -90.0:
        lat = -180.0 - lat
    return lat


def within_distance(x1: float, y1: float, x2: float, y2: float, dist: float) -> bool:
    return ((x2 - x1) * (x2 - x1)) + ((y2 - y1) * (y2 - y1)) <= dist * dist


def wrap_index(col: int, row: int, width: int, height: int) -> Tuple[int, int]:
    """
    Resolve an unbounded (col, row) onto the grid.

    Columns wrap east-west. A row past either pole is reflected back into
    range and the column is shifted by half the width: a point "behind" the
    pole lies on the opposite side of the planet.
    """
    half_width = width // 2
    col %= width

    if row < 0:
        row = -row
        col = (col + half_width) % width
    elif row >= height:
        row = 2 * height - row - 1
        col = (col + half_width) % width

    return col, row
