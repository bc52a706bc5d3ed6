"""
Surveyor — engine/settings.py
JIT Data Loaders for TOML settings and body definitions powered by Pydantic.
=============================================================================================
Version:     0.3 (Phase 3 — Survey Parameters)
Stack:       Python 3.14.3 | Pydantic v2 | tomllib
Status:      Core data validation and loading layer.
"""

import tomllib
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

# ================================================================================
# SCHEMAS
# ================================================================================

class SurveySettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Overlays stay shrouded until scan data has been transmitted home
    overlay_requires_transmit: bool = True
    scan_autocomplete_threshold: float = Field(default=0.95, ge=0.0, le=1.0)
    background_scan: bool = True
    time_between_scans: float = Field(default=3.0, gt=0.0) # seconds of game time
    retroactive_scanning: bool = True
    processing_load: int = Field(default=2, ge=1, le=100) # queued scans drained per tick
    min_altitude_factor: float = 0.1
    min_altitude_absolute: float = 25000.0
    max_altitude_factor: float = 5.0
    max_altitude_absolute: float = 15000000.0
    default_scan_radius: int = Field(default=8, ge=0)

class CelestialBodyDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: int
    name: str
    radius: float = Field(gt=0.0) # metres
    scannable: bool = True

class CelestialBodyCollectionDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    bodies: List[CelestialBodyDef] = Field(default_factory=list)

# ================================================================================
# LOADERS & CACHE (JIT)
# ================================================================================

_SETTINGS_CACHE: Optional[SurveySettings] = None
_BODY_CACHE: Optional[List[CelestialBodyDef]] = None


DATA_DIR = Path(__file__).parent.parent / "data"

def load_settings(path: Optional[Path] = None) -> SurveySettings:
    """
    Loads survey settings from TOML. The default file is cached globally;
    an explicit path always reads fresh. A missing file yields defaults.
    """
    global _SETTINGS_CACHE
    if path is None and _SETTINGS_CACHE is not None:
        return _SETTINGS_CACHE

    source = path if path is not None else DATA_DIR / "settings.toml"
    if not source.exists():
        settings = SurveySettings()
    else:
        with open(source, "rb") as f:
            data = tomllib.load(f)
        settings = SurveySettings(**data.get("survey", {}))

    if path is None:
        _SETTINGS_CACHE = settings
    return settings

def get_body_defs(path: Optional[Path] = None) -> List[CelestialBodyDef]:
    """Loads celestial body definitions from TOML. Cached globally."""
    global _BODY_CACHE
    if path is None and _BODY_CACHE is not None:
        return _BODY_CACHE

    source = path if path is not None else DATA_DIR / "bodies.toml"
    if not source.exists():
        return []

    with open(source, "rb") as f:
        data = tomllib.load(f)

    collection = CelestialBodyCollectionDef(**data)
    if path is None:
        _BODY_CACHE = collection.bodies
    return collection.bodies
