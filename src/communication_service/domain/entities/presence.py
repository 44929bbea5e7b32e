from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class UserPresence:
    user_id: str
    status: str
    last_seen_at: datetime
    last_active_at: datetime
    status_message: str | None = None
    active_connections: int = 0
