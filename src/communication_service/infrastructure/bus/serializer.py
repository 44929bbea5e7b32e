"""Wire format of fanned-out events: ``{"event": type, "data": {"route": ..., "data": ...}}``."""
from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from communication_service.application.ports.bus import Route


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


def to_json_compatible(payload: dict[str, Any]) -> dict[str, Any]:
    """Round-trip through the encoder so JSONB columns accept UUIDs and datetimes."""
    return json.loads(json.dumps(payload, cls=_Encoder))


def serialize_event(event_type: str, route: Route, data: dict[str, Any]) -> str:
    envelope = {
        "event": event_type,
        "data": {
            "route": {
                "conversation_ids": list(route.get("conversation_ids") or []),
                "user_ids": list(route.get("user_ids") or []),
            },
            "data": data,
        },
    }
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, Route, dict[str, Any]]:
    envelope = json.loads(raw)
    body = envelope.get("data") or {}
    route = body.get("route") or {}
    return (
        envelope["event"],
        Route(
            conversation_ids=[str(c) for c in route.get("conversation_ids") or []],
            user_ids=[str(u) for u in route.get("user_ids") or []],
        ),
        body.get("data") or {},
    )
