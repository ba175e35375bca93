"""
Audit log service.

Appends one EventLog row per state-changing action, inside the caller's
transaction, and exports the log in id order for external formatting.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models import EventLog


def log_event(db: Session, event_type: str, payload: Optional[Dict[str, Any]], timestamp: int) -> EventLog:
    """
    Append an audit event.

    Does not flush or commit; the surrounding @transactional call owns that,
    so a rolled-back operation never leaves an event behind.
    """
    event = EventLog(
        event_type=event_type,
        data=dict(payload or {}),
        timestamp=timestamp
    )
    db.add(event)
    return event


def export_events(db: Session) -> List[Dict[str, Any]]:
    """Return every event as {id, type, timestamp, payload}, oldest first."""
    rows = db.query(EventLog).order_by(EventLog.id).all()
    return [
        {
            "id": row.id,
            "type": row.event_type,
            "timestamp": row.timestamp,
            "payload": row.data or {},
        }
        for row in rows
    ]
