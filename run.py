"""
Surveyor — run.py
Headless demo: one polar-ish surveyor circling Kerbin under time warp.
"""

import logging
import math
import sys
from pathlib import Path

# Ensure we can import surveyor packages
project_root = Path(__file__).parent.resolve()
sys.path.insert(0, str(project_root))

from engine.ecs.components import OrbitalState
from engine.events import EVT_BODY_COMPLETED
from engine.loop import SurveyLoop
from world.coordinates import clamp_longitude

KERBIN = 1
ORBIT_PERIOD = 2400.0       # seconds
INCLINATION = 85.0          # degrees
BODY_ROTATION = 21549.425   # seconds per sidereal day
WARP_STEP = 30.0            # game seconds per tick


def ground_track(ut: float):
    phase = 2.0 * math.pi * ut / ORBIT_PERIOD
    lat = INCLINATION * math.sin(phase)
    lon = math.degrees(phase) - 360.0 * ut / BODY_ROTATION
    return KERBIN, clamp_longitude(lon), lat


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    loop = SurveyLoop()
    loop.bus.subscribe(EVT_BODY_COMPLETED, lambda e: print(f"{e.target} fully surveyed"))

    _, lon, lat = ground_track(0.0)
    vessel = loop.add_vessel("demo-1", "Survey Probe", KERBIN, lon, lat, altitude=250000.0, trajectory=ground_track)

    ut = 0.0
    for step in range(1, 2001):
        ut += WARP_STEP
        _, lon, lat = ground_track(ut)
        orbit = vessel.components[OrbitalState]
        orbit.longitude, orbit.latitude = lon, lat
        loop.tick(ut)
        if step % 200 == 0:
            print(f"ut={ut:>8.0f}  coverage={loop.scan_data.scan_percent(KERBIN) * 100:6.2f}%  backlog={len(loop.queue)}")
        if loop.scan_data.is_fully_scanned(KERBIN):
            break

    loop.save_session(Path("sessions/survey_snapshot.toml"))


if __name__ == "__main__":
    main()
