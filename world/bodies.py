"""
Surveyor — world/bodies.py
BodyCatalog: memoized per-body survey parameters keyed by body id.
Replaces static per-body caches with a lookup owned by whoever owns the catalog.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from engine.settings import CelestialBodyDef, SurveySettings, get_body_defs, load_settings

# ============================================================
# DESIGN VARIABLE DEFAULTS
# ============================================================

SCAN_DATA_WIDTH_DIVISOR: float = 25.0     # Kerbin (600 km) -> 300 x 150 grid
SCAN_DATA_MITS_DIVISOR: float = 50000.0   # Kerbin -> 90 mits (+1 reserved)
MIN_GRID_HEIGHT: int = 10                 # tiny moons would get a useless grid otherwise
MIN_TOTAL_MITS: int = 5
RESERVED_MITS: int = 1                    # held back until a body is 100% scanned


def grid_size_for_radius(radius: float) -> Tuple[int, int]:
    """Returns (width, height) of the coverage grid for a body radius in metres."""
    radius_km = radius / 1000.0
    height = int((2.0 * math.pi * radius_km) / SCAN_DATA_WIDTH_DIVISOR)
    if height < MIN_GRID_HEIGHT:
        height = MIN_GRID_HEIGHT
    return height * 2, height


def total_mits_for_radius(radius: float) -> float:
    """Surface-area based mits budget, floored, plus the reserved completion unit."""
    radius_km = radius / 1000.0
    mits = int((4.0 * math.pi * radius_km * radius_km) / SCAN_DATA_MITS_DIVISOR)
    if mits < MIN_TOTAL_MITS:
        mits = MIN_TOTAL_MITS
    return float(mits + RESERVED_MITS)


@dataclass(frozen=True)
class BodyProfile:
    body_id: int
    name: str
    radius: float
    width: int
    height: int
    total_mits: float
    min_altitude: float
    max_altitude: float
    scannable: bool = True

    def altitude_in_range(self, altitude: float) -> bool:
        return self.min_altitude <= altitude <= self.max_altitude


class BodyCatalog:
    """
    Known celestial bodies and their derived survey profiles.
    Profiles are computed on first lookup and memoized by body id.
    """
    def __init__(
        self,
        bodies: Optional[Iterable[CelestialBodyDef]] = None,
        settings: Optional[SurveySettings] = None,
    ):
        if bodies is None:
            bodies = get_body_defs()
        self.settings = settings if settings is not None else load_settings()
        self._defs: Dict[int, CelestialBodyDef] = {b.id: b for b in bodies}
        self._names: Dict[str, int] = {b.name: b.id for b in self._defs.values()}
        self._profiles: Dict[int, BodyProfile] = {}

    def __contains__(self, body_id: int) -> bool:
        return body_id in self._defs

    def body_ids(self) -> List[int]:
        return sorted(self._defs)

    def id_for_name(self, name: str) -> Optional[int]:
        return self._names.get(name)

    def name_for_id(self, body_id: int) -> str:
        return self.profile(body_id).name

    def profile(self, body_id: int) -> BodyProfile:
        """Raises KeyError for a body the catalog does not know."""
        cached = self._profiles.get(body_id)
        if cached is not None:
            return cached

        body = self._defs[body_id]
        width, height = grid_size_for_radius(body.radius)
        s = self.settings
        profile = BodyProfile(
            body_id=body.id,
            name=body.name,
            radius=body.radius,
            width=width,
            height=height,
            total_mits=total_mits_for_radius(body.radius),
            min_altitude=max(body.radius * s.min_altitude_factor, s.min_altitude_absolute),
            max_altitude=min(body.radius * s.max_altitude_factor, s.max_altitude_absolute),
            scannable=body.scannable,
        )
        self._profiles[body_id] = profile
        return profile
