"""
Surveyor — engine/events.py
Event Bus: typed survey events and bespoke pub-sub.
==============================================================================
Version:     0.2  (Phase 2 — canonical implementation)
Stack:       Python 3.14.3 | Pydantic v2 | bespoke pub-sub
Status:      Production-ready.

Architecture notes
------------------
- Events are Pydantic v2 models. data dict stays flat + JSON-serializable.
- No global bus. Pass an instance at construction.
- Wildcard key "*" receives every emitted event.
- A failing handler is logged and skipped; emission always continues.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

# ============================================================
# CANONICAL EVENT KEYS
# Never use raw strings. Add new keys here only.
# ============================================================

EVT_SCAN_QUEUED        = "survey.scan_queued"
EVT_SCAN_APPLIED       = "survey.scan_applied"
EVT_BODY_COMPLETED     = "survey.body_completed"
EVT_DATA_TRANSMITTED   = "survey.data_transmitted"

WILDCARD = "*"


class SurveyEvent(BaseModel):
    """Base envelope for everything the survey engine announces."""
    event_key: str
    source: str
    target: Optional[str] = None
    data: Dict[str, Any] = {}


HandlerFn = Callable[[SurveyEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._subscribers: Dict[str, List[HandlerFn]] = {}

    def subscribe(self, event_key: str, handler: HandlerFn) -> None:
        self._subscribers.setdefault(event_key, []).append(handler)

    def unsubscribe(self, event_key: str, handler: HandlerFn) -> None:
        if event_key in self._subscribers:
            self._subscribers[event_key] = [
                h for h in self._subscribers[event_key] if h != handler
            ]

    def emit(self, event: SurveyEvent) -> None:
        targets = (
            self._subscribers.get(event.event_key, [])
            + self._subscribers.get(WILDCARD, [])
        )
        for handler in targets:
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                logger.exception("Handler error on '%s'", event.event_key)
