"""
Surveyor — engine/loop.py
Main Survey Loop: Wires ECS vessels, EventBus, ScanRegistry, and the request queue.
========================================================================
Version:     0.3  (Phase 3 Integration)
Stack:       Python 3.14.3 | python-tcod-ecs | tomllib
Status:      Integration entry point.

Per tick
--------
  1. background_scan_system  — perpetual surveyors enqueue scans
  2. ScanRequestQueue.drain  — at most `processing_load` grid updates
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

import tcod.ecs

from engine.ecs.components import OrbitalState, Surveyor, Trajectory, VesselIdentity
from engine.ecs.systems import background_scan_system, reset_scan_clock_system
from engine.events import EventBus
from engine.settings import SurveySettings, load_settings
from world.bodies import BodyCatalog
from world.scan_queue import PositionSampler, ScanRequestQueue
from world.scan_registry import ScanRegistry

logger = logging.getLogger(__name__)

SAVE_FORMAT_VERSION = "0.3.0"
SCAN_DATA_TABLE = "scan_data"


class SurveyLoop:
    """
    Core executor for the survey engine.
    Owns the vessel registry, the per-body scan registry and the request queue.
    """
    def __init__(
        self,
        settings: Optional[SurveySettings] = None,
        catalog: Optional[BodyCatalog] = None,
        bus: Optional[EventBus] = None,
    ):
        self.settings = settings if settings is not None else load_settings()
        self.catalog = catalog if catalog is not None else BodyCatalog(settings=self.settings)
        self.bus = bus if bus is not None else EventBus()

        self.registry = tcod.ecs.Registry()
        self.scan_data = ScanRegistry(self.catalog, self.settings, self.bus)
        self.queue = ScanRequestQueue(self.scan_data, self.catalog, self.settings, self.bus)
        self.ut = 0.0

    def add_vessel(
        self,
        vessel_id: str,
        name: str,
        body_id: int,
        longitude: float,
        latitude: float,
        altitude: float,
        scan_radius: Optional[int] = None,
        trajectory: Optional[PositionSampler] = None,
    ) -> tcod.ecs.Entity:
        """Spawns a surveying vessel entity."""
        vessel = self.registry.new_entity()
        vessel.components[VesselIdentity] = VesselIdentity(vessel_id=vessel_id, name=name)
        vessel.components[OrbitalState] = OrbitalState(
            body_id=body_id, longitude=longitude, latitude=latitude, altitude=altitude
        )
        vessel.components[Surveyor] = Surveyor(
            scan_radius=scan_radius if scan_radius is not None else self.settings.default_scan_radius
        )
        if trajectory is not None:
            vessel.components[Trajectory] = Trajectory(sample=trajectory)
        return vessel

    def tick(self, ut: float) -> int:
        """Advance the survey to game time `ut`. Returns grid updates executed."""
        self.ut = ut
        if self.settings.background_scan:
            background_scan_system(
                self.registry, self.queue, self.scan_data, self.catalog, self.settings, ut
            )
        return self.queue.drain()

    def scene_change(self) -> None:
        """The first scan after a scene change never backfills; queued work continues."""
        reset_scan_clock_system(self.registry)
        self.queue.forget_sources()

    def is_point_revealed(self, body_id: int, x: int, y: int) -> bool:
        grid = self.scan_data.get(body_id)
        if grid is None:
            return False
        return grid.is_point_revealed(x, y, self.settings.overlay_requires_transmit)

    # ============================================================
    # SESSION PERSISTENCE
    # ============================================================

    def save_session(self, snapshot_path: Optional[Path] = None) -> None:
        """Writes every body's scan record to TOML, keyed by body name."""
        if snapshot_path is None:
            snapshot_path = Path("sessions/survey_snapshot.toml")

        snapshot_path.parent.mkdir(parents=True, exist_ok=True)

        lines = []
        lines.append(f'version = "{SAVE_FORMAT_VERSION}"')
        lines.append(f"ut = {float(self.ut)!r}")
        lines.append("")

        for body_id, record in self.scan_data.save_all().items():
            name = self.catalog.name_for_id(body_id)
            lines.append(f'[{SCAN_DATA_TABLE}."{name}"]')
            lines.append(f"dataWidth = {record['dataWidth']}")
            lines.append(f"dataHeight = {record['dataHeight']}")
            lines.append(f'data = "{record["data"]}"')
            lines.append(f'revealed = "{record["revealed"]}"')
            lines.append(f"mitsTransmitted = {float(record['mitsTransmitted'])!r}")
            lines.append("")

        with open(snapshot_path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines))

    def resume_session(self, snapshot_path: Optional[Path] = None) -> None:
        """Restores scan data from a snapshot written by save_session()."""
        if snapshot_path is None:
            snapshot_path = Path("sessions/survey_snapshot.toml")

        if not snapshot_path.exists():
            raise FileNotFoundError(f"Cannot resume, missing {snapshot_path}")

        with open(snapshot_path, "rb") as f:
            data = tomllib.load(f)

        if data.get("version") != SAVE_FORMAT_VERSION:
            logger.info("Resuming snapshot version %s with engine %s", data.get("version"), SAVE_FORMAT_VERSION)

        records: Dict[int, Dict[str, Any]] = {}
        for name, record in data.get(SCAN_DATA_TABLE, {}).items():
            body_id = self.catalog.id_for_name(name)
            if body_id is None:
                logger.warning("Snapshot has scan data for unknown body %r; skipped", name)
                continue
            records[body_id] = record

        self.scan_data.load_all(records)
        self.ut = float(data.get("ut", 0.0))
        self.queue.clear()
        reset_scan_clock_system(self.registry)
