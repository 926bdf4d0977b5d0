"""Append-only event log collaborator.

The persistent log store lives outside this service; :class:`LoggingEventLog`
forwards events to the ``app.events`` logger, which deployments route to
their store.  ``record`` must never raise to its caller.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger("app.events")


class EventLog(Protocol):
    def record(self, event_kind: str, details: Dict[str, Any], user_id: Optional[str] = None) -> None:
        ...


class LoggingEventLog:
    """Writes one JSON line per event to the ``app.events`` logger."""

    def record(self, event_kind: str, details: Dict[str, Any], user_id: Optional[str] = None) -> None:
        try:
            entry = {
                "event": event_kind,
                "user_id": user_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "details": details,
            }
            logger.info(json.dumps(entry, default=str, ensure_ascii=False))
        except Exception as exc:  # a failing log write must not surface
            logger.error("Failed to record %s event: %s", event_kind, exc)
