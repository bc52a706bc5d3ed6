"""
Surveyor — world/scan_grid.py
CoverageGrid: per-body scanned/revealed maps with area-weighted coverage.
=======================================================================
Version:     0.3  (Phase 3 — Latitude-corrected footprints)
Stack:       Python 3.14.3 | NumPy
Status:      Production-ready.

Architecture notes
------------------
- Two equal-shape bool arrays addressed [col, row]:
    scanned   — surface that has been sampled
    revealed  — sampled data that has been transmitted home
- scan_percent is maintained incrementally by update_scan_data(); it must
  always equal coverage_percent(scanned) within floating tolerance.
- The grid is the sole writer of its arrays. scanned / revealed properties
  hand out read-only views; snapshot_scanned() hands out frozen copies.
- Single-threaded. update_scan_data() reads and mutates the arrays and the
  running percentage non-atomically.

Invariants
----------
  scanned.shape == revealed.shape == (width, height)
  0 <= mits_gleaned <= total_mits
  0 <= scan_percent <= 1
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from world import codec
from world.coordinates import (
    lat_to_row,
    lon_to_col,
    mercator_scale,
    row_area_weights,
    wrap_index,
)

logger = logging.getLogger(__name__)

# ============================================================
# DESIGN VARIABLE DEFAULTS
# ============================================================

SCAN_AUTOCOMPLETE_THRESHOLD: float = 0.95
MAX_RADIUS_DIVISOR: int = 7     # a single scan's radius is capped at width / 7


def _read_only(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


def _ellipse_term(offset: int, axis: int) -> float:
    if offset == 0:
        return 0.0
    if axis == 0:
        return float("inf")
    return (offset * offset) / (axis * axis)


class CoverageGrid:
    """Scan coverage for a single celestial body."""

    def __init__(
        self,
        width: int,
        height: int,
        total_mits: float,
        autocomplete_threshold: float = SCAN_AUTOCOMPLETE_THRESHOLD,
    ):
        if width <= 0 or height <= 0:
            raise ValueError(f"Grid dimensions must be positive, got {width}x{height}")

        self.width = width
        self.height = height
        self.total_mits = float(total_mits)
        self.autocomplete_threshold = autocomplete_threshold

        self._scanned = np.zeros((width, height), dtype=bool)
        self._revealed = np.zeros((width, height), dtype=bool)
        self._mits_gleaned = 0.0
        self.scan_percent = 0.0

        # Cells are not equal-area: weights per row, total over the whole grid.
        self._row_weights = row_area_weights(height)
        self._total_area = float(self._row_weights.sum() * width)

    # --------------------------------------------------------
    # Read access
    # --------------------------------------------------------

    @property
    def scanned(self) -> np.ndarray:
        return _read_only(self._scanned)

    @property
    def revealed(self) -> np.ndarray:
        return _read_only(self._revealed)

    @property
    def total_area(self) -> float:
        return self._total_area

    @property
    def mits_gleaned(self) -> float:
        return self._mits_gleaned

    @mits_gleaned.setter
    def mits_gleaned(self, value: float) -> None:
        clamped = min(max(float(value), self._mits_gleaned, 0.0), self.total_mits)
        if clamped != value:
            logger.warning(
                "mits_gleaned %.3f out of range [%.3f, %.3f]; clamped to %.3f",
                value, self._mits_gleaned, self.total_mits, clamped,
            )
        self._mits_gleaned = clamped

    def coverage_percent(self, mask: np.ndarray) -> float:
        """Area-weighted fraction of true cells in a [col, row] mask."""
        covered = float((np.asarray(mask, dtype=bool) @ self._row_weights).sum())
        return covered / self._total_area

    def is_point_scanned(self, x: int, y: int) -> bool:
        return bool(self._scanned[x, y])

    def is_point_revealed(self, x: int, y: int, requires_transmit: bool = True) -> bool:
        """
        Whether a cell may be shown to the player. Under the transmit policy
        only transmitted data counts; otherwise anything scanned does.
        """
        if requires_transmit:
            return bool(self._revealed[x, y])
        return bool(self._scanned[x, y])

    def is_fully_scanned(self) -> bool:
        return self.scan_percent >= 1.0

    def available_mits(self) -> float:
        """Mits claimable right now. One mit is held back until 100% coverage."""
        if self.scan_percent == 1.0:
            return self.total_mits - self._mits_gleaned
        return self.scan_percent * (self.total_mits - 1.0) - self._mits_gleaned

    def snapshot_scanned(self) -> np.ndarray:
        snapshot = self._scanned.copy()
        snapshot.flags.writeable = False
        return snapshot

    # --------------------------------------------------------
    # Mutation
    # --------------------------------------------------------

    def update_scan_data(self, is_scanned: bool, lon: float, lat: float, radius: int) -> int:
        """
        Paints a latitude-corrected elliptical footprint centred on (lon, lat).
        Returns the number of cells whose state changed.
        """
        center_x = lon_to_col(lon, self.width)
        center_y = lat_to_row(lat, self.height)

        max_radius = self.width // MAX_RADIUS_DIVISOR
        if radius > max_radius:
            radius = max_radius
        radius = max(int(radius), 0)

        # Rows are never stretched; columns widen with latitude to offset
        # meridian convergence. cos(90) is 0, so the pole takes half-width.
        half_width = self.width // 2
        semi_minor = radius
        if abs(lat) >= 90.0:
            semi_major = half_width
        else:
            semi_major = min(int(round(radius * mercator_scale(lat))), half_width)

        delta = 1.0 / self._total_area if is_scanned else -1.0 / self._total_area
        changed = 0
        for j in range(-semi_minor, semi_minor + 1):
            row_term = _ellipse_term(j, semi_minor)
            if row_term > 1.0:
                continue
            for i in range(-semi_major, semi_major + 1):
                if row_term + _ellipse_term(i, semi_major) > 1.0:
                    continue

                x, y = wrap_index(center_x + i, center_y + j, self.width, self.height)
                if not (0 <= x < self.width and 0 <= y < self.height):
                    logger.error(
                        "Index out of bounds in update_scan_data: width=%d height=%d x=%d y=%d",
                        self.width, self.height, x, y,
                    )
                    continue

                if self._scanned[x, y] != is_scanned:
                    self._scanned[x, y] = is_scanned
                    self.scan_percent += self._row_weights[y] * delta
                    changed += 1

        if changed:
            self.scan_percent = float(min(max(self.scan_percent, 0.0), 1.0))
            if self.scan_percent < 1.0 and self._scanned.all():
                self.scan_percent = 1.0
            elif self.autocomplete_threshold <= self.scan_percent < 1.0:
                self.fill_scanned()

        return changed

    def fill_scanned(self) -> None:
        """Marks the whole surface scanned; scan_percent becomes exactly 1."""
        self._scanned.fill(True)
        self.scan_percent = 1.0

    def recompute_scan_percent(self) -> float:
        if self._scanned.all():
            self.scan_percent = 1.0
        else:
            self.scan_percent = min(self.coverage_percent(self._scanned), 1.0)
        return self.scan_percent

    def set_scanned_map(self, mask: np.ndarray) -> None:
        self._scanned[...] = self._checked(mask)
        self.recompute_scan_percent()

    def set_revealed_map(self, mask: np.ndarray) -> None:
        self._revealed[...] = self._checked(mask)

    def load_scanned_map(self, text: str) -> None:
        self.set_scanned_map(codec.decode_scan_map(text, self.width, self.height))

    def load_revealed_map(self, text: str) -> None:
        self.set_revealed_map(codec.decode_scan_map(text, self.width, self.height))

    def serialized_scanned_map(self) -> str:
        return codec.encode_scan_map(self._scanned)

    def serialized_revealed_map(self) -> str:
        return codec.encode_scan_map(self._revealed)

    def transmit(self, snapshot: Optional[np.ndarray] = None) -> float:
        """
        Claims every currently available mit and reveals the scanned map as it
        stood when transmission began (`snapshot`, or now if omitted).
        Returns the mits claimed; 0 when nothing is available.
        """
        available = self.available_mits()
        if available <= 0:
            return 0.0
        if snapshot is None:
            snapshot = self._scanned
        self.mits_gleaned = self._mits_gleaned + available
        self.set_revealed_map(snapshot)
        return available

    def _checked(self, mask: np.ndarray) -> np.ndarray:
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != self._scanned.shape:
            raise ValueError(
                f"Map shape {mask.shape} does not match grid {(self.width, self.height)}"
            )
        return mask
