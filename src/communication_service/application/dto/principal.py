from __future__ import annotations

from dataclasses import dataclass, field

STAFF_ROLES = frozenset(
    {
        "admin",
        "club_admin",
        "coach",
        "physical_trainer",
        "medical_staff",
        "equipment_manager",
        "system",
    }
)


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    user_id: str
    roles: list[str] = field(default_factory=list)
    organization_id: str | None = None
    team_ids: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

    @property
    def is_staff(self) -> bool:
        """Staff may send notifications to other users."""
        return any(role in STAFF_ROLES for role in self.roles)

    @property
    def principal_key(self) -> str:
        """Unique key for WS connection registry."""
        return self.user_id
