"""
Event logging utilities for NDJSON format.

Each run appends events to <run dir>/logs.ndjson. The trail is only read
back for display; nothing resumes a run from it.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from .state import get_run_dir


class EventTypes:
    RUN_START = "RUN_START"
    STAGE_START = "STAGE_START"
    STAGE_DONE = "STAGE_DONE"
    TEARDOWN_START = "TEARDOWN_START"
    DONE = "DONE"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"
    GC_SCAN = "GC_SCAN"
    GC_CLEANED = "GC_CLEANED"


def emit_event(run_id: str, event_type: str, data: Dict[str, Any]) -> None:
    """
    Append an event to the run's logs.ndjson file.

    Args:
        run_id: Run ID
        event_type: One of EventTypes
        data: Event data
    """
    logs_file = get_run_dir(run_id) / "logs.ndjson"

    event = {
        "ts": datetime.now().isoformat(),
        "type": event_type,
        "data": data
    }

    with open(logs_file, "a") as f:
        f.write(json.dumps(event) + "\n")
        f.flush()


def read_events(run_id: str) -> List[Dict[str, Any]]:
    """
    Read all events of a run. Malformed lines are skipped.
    """
    logs_file = get_run_dir(run_id) / "logs.ndjson"

    if not logs_file.exists():
        return []

    events = []
    with open(logs_file, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue

    return events


def get_last_event(run_id: str) -> Optional[Dict[str, Any]]:
    events = read_events(run_id)
    return events[-1] if events else None


def get_status_from_events(run_id: str) -> str:
    """
    Derive a run's status from its last event.

    Returns:
        "unknown", "started", "<stage>:running", "<stage>:done",
        "tearing_down", "succeeded", "failed" or "cancelled"
    """
    last_event = get_last_event(run_id)
    if not last_event:
        return "unknown"

    event_type = last_event.get("type", "")
    data = last_event.get("data") or {}

    if event_type == EventTypes.STAGE_START:
        return f"{data.get('stage', 'stage')}:running"
    if event_type == EventTypes.STAGE_DONE:
        return f"{data.get('stage', 'stage')}:done"

    status_map = {
        EventTypes.RUN_START: "started",
        EventTypes.TEARDOWN_START: "tearing_down",
        EventTypes.DONE: "succeeded",
        EventTypes.ERROR: "failed",
        EventTypes.CANCELLED: "cancelled",
        EventTypes.GC_SCAN: "sweeping",
        EventTypes.GC_CLEANED: "swept",
    }

    return status_map.get(event_type, "unknown")
