"""
Surveyor — engine/ecs/components.py
ECS Component Definitions for python-tcod-ecs.
==============================================
Version:     0.2  (Phase 3 — Survey vessels)
Stack:       Python 3.14.3 | python-tcod-ecs
Status:      Production-ready.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

@dataclass
class VesselIdentity:
    vessel_id: str
    name: str

@dataclass
class OrbitalState:
    """Current sub-vessel point, written by the host's orbit propagation."""
    body_id: int
    longitude: float
    latitude: float
    altitude: float                         # metres above the surface

@dataclass
class Surveyor:
    scan_radius: int = 8                    # grid cells
    perpetual_scan: bool = True
    last_scan_time: Optional[float] = None  # None = no scan yet this scene

@dataclass
class Trajectory:
    """Position-at-time sampler used for retroactive catch-up: ut -> (body_id, lon, lat)."""
    sample: Callable[[float], Tuple[int, float, float]]
