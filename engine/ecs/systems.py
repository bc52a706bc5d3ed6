"""
Surveyor — engine/ecs/systems.py
ECS Systems: Pure functions for background scanning and data transmission.
=====================================================================
Version:     0.3  (Phase 3 — Survey vessels)
Stack:       Python 3.14.3 | python-tcod-ecs
Status:      Production-ready.

Architecture notes
------------------
- Systems are pure functions operating on a tcod.ecs.Registry.
- Grid mutation only ever happens through ScanRequestQueue.drain();
  systems enqueue, they never paint.
"""

from __future__ import annotations

import tcod.ecs
from engine.ecs.components import OrbitalState, Surveyor, Trajectory, VesselIdentity
from engine.settings import SurveySettings
from world.bodies import BodyCatalog
from world.scan_queue import ScanRequestQueue
from world.scan_registry import ScanRegistry

# ============================================================
# SCANNING SYSTEMS
# ============================================================

def background_scan_system(
    registry: tcod.ecs.Registry,
    queue: ScanRequestQueue,
    scan_data: ScanRegistry,
    catalog: BodyCatalog,
    settings: SurveySettings,
    ut: float,
) -> int:
    """
    Queues scans for every perpetual surveyor whose scan interval has elapsed.
    Returns the number of vessels that queued at least one request.
    """
    scanned = 0
    for entity in registry.Q.all_of(components=[VesselIdentity, OrbitalState, Surveyor]):
        surveyor = entity.components[Surveyor]
        if not surveyor.perpetual_scan:
            continue

        last = surveyor.last_scan_time
        if last is not None and ut - last < settings.time_between_scans:
            continue

        orbit = entity.components[OrbitalState]
        if orbit.body_id not in catalog:
            continue
        profile = catalog.profile(orbit.body_id)

        # Out of the scan window: forget the clock so re-entry never backfills
        # positions that were not actually scannable.
        if (
            not profile.scannable
            or scan_data.is_fully_scanned(orbit.body_id)
            or not profile.altitude_in_range(orbit.altitude)
        ):
            surveyor.last_scan_time = None
            continue

        vessel_id = entity.components[VesselIdentity].vessel_id
        trajectory = entity.components.get(Trajectory)
        if trajectory is None or last is None:
            queue.queue_request(
                vessel_id, orbit.body_id, orbit.longitude, orbit.latitude, True, surveyor.scan_radius, ut
            )
        else:
            queue.queue_retroactive(vessel_id, True, surveyor.scan_radius, last, ut, trajectory.sample)

        surveyor.last_scan_time = ut
        scanned += 1

    return scanned

def reset_scan_clock_system(registry: tcod.ecs.Registry) -> None:
    """Scene change: the first scan afterwards never backfills."""
    for entity in registry.Q.all_of(components=[Surveyor]):
        entity.components[Surveyor].last_scan_time = None

# ============================================================
# TRANSMISSION
# ============================================================

def transmit_system(entity: tcod.ecs.Entity, scan_data: ScanRegistry) -> float:
    """Sends the vessel's current body's available scan data home. Returns mits claimed."""
    if OrbitalState not in entity.components:
        return 0.0
    return scan_data.transmit(entity.components[OrbitalState].body_id)

def available_mits_system(entity: tcod.ecs.Entity, scan_data: ScanRegistry) -> float:
    if OrbitalState not in entity.components:
        return 0.0
    grid = scan_data.get(entity.components[OrbitalState].body_id)
    if grid is None:
        return 0.0
    return grid.available_mits()
