"""
Surveyor — world/scan_registry.py
ScanRegistry: every body's CoverageGrid, keyed by body id.
Grids are created lazily on first scan, never removed during a session,
and replaced wholesale by load_all().
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from engine.events import (
    EVT_BODY_COMPLETED,
    EVT_DATA_TRANSMITTED,
    EVT_SCAN_APPLIED,
    EventBus,
    SurveyEvent,
)
from engine.settings import SurveySettings
from world.bodies import BodyCatalog
from world.scan_grid import CoverageGrid

logger = logging.getLogger(__name__)


class ScanRecord(BaseModel):
    """Persisted shape of one body's scan data. Every field may be absent."""
    model_config = ConfigDict(populate_by_name=True)

    data_width: Optional[int] = Field(default=None, alias="dataWidth", gt=0)
    data_height: Optional[int] = Field(default=None, alias="dataHeight", gt=0)
    data: Optional[str] = None
    revealed: Optional[str] = None
    mits_transmitted: Optional[float] = Field(default=None, alias="mitsTransmitted", allow_inf_nan=False)


# Persisted key (alias or field name) -> ScanRecord field name
_RECORD_KEYS: Dict[str, str] = {}
for _field, _info in ScanRecord.model_fields.items():
    _RECORD_KEYS[_field] = _field
    if _info.alias:
        _RECORD_KEYS[_info.alias] = _field


def _salvage_record(raw: Any, name: str) -> Tuple[ScanRecord, Set[str]]:
    """
    Validates a persisted record field by field. Invalid fields are logged
    and dropped, so they read as absent. Returns the record and the names of
    the dropped fields.
    """
    if not isinstance(raw, Mapping):
        logger.warning("Scan data for %s is not a table (%s): all fields reset", name, type(raw).__name__)
        return ScanRecord(), set(ScanRecord.model_fields)

    try:
        return ScanRecord.model_validate(raw), set()
    except ValidationError as exc:
        invalid: Set[str] = set()
        for error in exc.errors():
            if not error["loc"]:
                continue
            key = str(error["loc"][0])
            field = _RECORD_KEYS.get(key, key)
            if field not in invalid:
                logger.warning("Scan data field %s for %s is invalid (%s): field reset", key, name, error["msg"])
            invalid.add(field)

    cleaned = {k: v for k, v in raw.items() if _RECORD_KEYS.get(k) not in invalid}
    return ScanRecord.model_validate(cleaned), invalid


class ScanRegistry:
    def __init__(
        self,
        catalog: BodyCatalog,
        settings: Optional[SurveySettings] = None,
        bus: Optional[EventBus] = None,
    ):
        self.catalog = catalog
        self.settings = settings if settings is not None else catalog.settings
        self.bus = bus
        self._grids: Dict[int, CoverageGrid] = {}

    def __contains__(self, body_id: int) -> bool:
        return body_id in self._grids

    def __len__(self) -> int:
        return len(self._grids)

    def bodies(self) -> List[int]:
        return sorted(self._grids)

    def clear(self) -> None:
        self._grids.clear()

    def get(self, body_id: int) -> Optional[CoverageGrid]:
        """Never creates a grid."""
        return self._grids.get(body_id)

    def scan_percent(self, body_id: int) -> float:
        grid = self._grids.get(body_id)
        if grid is None:
            return 0.0
        return grid.scan_percent

    def is_fully_scanned(self, body_id: int) -> bool:
        return self.scan_percent(body_id) >= 1.0

    def _new_grid(self, body_id: int, width: Optional[int] = None, height: Optional[int] = None) -> CoverageGrid:
        profile = self.catalog.profile(body_id)
        return CoverageGrid(
            width=width if width is not None else profile.width,
            height=height if height is not None else profile.height,
            total_mits=profile.total_mits,
            autocomplete_threshold=self.settings.scan_autocomplete_threshold,
        )

    def update(self, body_id: int, scanned: bool, lon: float, lat: float, radius: int) -> int:
        """Paints one scan onto the body's grid, creating the grid if needed."""
        grid = self._grids.get(body_id)
        if grid is None:
            grid = self._new_grid(body_id)
            self._grids[body_id] = grid

        was_complete = grid.is_fully_scanned()
        changed = grid.update_scan_data(scanned, lon, lat, radius)

        if self.bus is not None and changed:
            name = self.catalog.name_for_id(body_id)
            self.bus.emit(SurveyEvent(
                event_key=EVT_SCAN_APPLIED,
                source="ScanRegistry",
                target=name,
                data={"body_id": body_id, "cells_changed": changed, "scan_percent": grid.scan_percent},
            ))
            if not was_complete and grid.is_fully_scanned():
                self.bus.emit(SurveyEvent(
                    event_key=EVT_BODY_COMPLETED,
                    source="ScanRegistry",
                    target=name,
                    data={"body_id": body_id},
                ))
        return changed

    def transmit(self, body_id: int, snapshot: Optional[np.ndarray] = None) -> float:
        """Claims the body's available mits. Returns 0 for an unscanned body."""
        grid = self._grids.get(body_id)
        if grid is None:
            return 0.0

        mits = grid.transmit(snapshot)
        if self.bus is not None and mits > 0:
            self.bus.emit(SurveyEvent(
                event_key=EVT_DATA_TRANSMITTED,
                source="ScanRegistry",
                target=self.catalog.name_for_id(body_id),
                data={"body_id": body_id, "mits": mits, "mits_gleaned": grid.mits_gleaned},
            ))
        return mits

    # ============================================================
    # PERSISTENCE
    # ============================================================

    def load_all(self, records: Mapping[int, Mapping[str, Any]]) -> None:
        """
        Replaces all state with the persisted records. Persisted grid sizes
        win over the computed ones so older saves keep their layout.
        A bad field only resets that field; the rest of the record still loads.
        """
        self.clear()

        for body_id, raw in records.items():
            if body_id not in self.catalog:
                logger.warning("Scan data for unknown body id %s skipped", body_id)
                continue
            name = self.catalog.name_for_id(body_id)
            record, invalid = _salvage_record(raw, name)

            profile = self.catalog.profile(body_id)
            if record.data_width is not None and record.data_height is not None:
                grid = self._new_grid(body_id, record.data_width, record.data_height)
                if (record.data_width, record.data_height) != (profile.width, profile.height):
                    logger.warning(
                        "Saved data size for %s is %dx%d, expected %dx%d; this may be an older save. "
                        "The saved size will be used regardless",
                        name, record.data_width, record.data_height, profile.width, profile.height,
                    )
            else:
                grid = self._new_grid(body_id)

            if record.data is not None:
                grid.load_scanned_map(record.data)
            elif "data" not in invalid:
                logger.warning("Scan data for %s blank: data reset", name)

            if record.revealed is not None:
                grid.load_revealed_map(record.revealed)
            elif "revealed" not in invalid:
                logger.warning("Reveal data for %s blank: data reset", name)

            if record.mits_transmitted is not None:
                grid.mits_gleaned = record.mits_transmitted
            elif "mits_transmitted" not in invalid:
                logger.warning("Mits gleaned for %s blank: data reset", name)

            self._grids[body_id] = grid

    def save_all(self) -> Dict[int, Dict[str, Any]]:
        records: Dict[int, Dict[str, Any]] = {}
        for body_id in sorted(self._grids):
            grid = self._grids[body_id]
            record = ScanRecord(
                data_width=grid.width,
                data_height=grid.height,
                data=grid.serialized_scanned_map(),
                revealed=grid.serialized_revealed_map(),
                mits_transmitted=grid.mits_gleaned,
            )
            records[body_id] = record.model_dump(by_alias=True)
        return records
