"""
Event repository: sink for the analytics_events table.

Rows are built with event_row() where an event is published and written by
the record_event worker job. Writes are keyed on event_id, so a job that is
retried after a partial failure records the event once.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from domain.events import DomainEvent
from repositories.rows import response_rows, to_iso_utc

_EVENTS_TABLE: str = "analytics_events"


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def event_row(event: DomainEvent) -> Dict[str, Any]:
    """JSON-safe analytics_events row for an event."""

    return {
        "event_id": str(event.event_id),
        "event": event.name.value,
        "lead_id": str(event.lead_id) if event.lead_id else None,
        "properties": _jsonable(dict(event.properties)),
        "created_at_utc": to_iso_utc(event.occurred_at, name="occurred_at"),
    }


class EventRepository:
    def __init__(self, client: Any):
        self._client = client

    def record(self, row: Mapping[str, Any]) -> None:
        response = (
            self._client.table(_EVENTS_TABLE)
            .upsert(dict(row), on_conflict="event_id", ignore_duplicates=True)
            .execute()
        )
        response_rows(response, "record event")


__all__ = ["EventRepository", "event_row"]
