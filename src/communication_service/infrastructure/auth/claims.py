from __future__ import annotations

from typing import Any

import jwt

from communication_service.application.dto.principal import Principal


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """Build a Principal from decoded JWT claims.

    Accepts both snake_case and the camelCase claims issued by the user service.
    """
    user_id = payload.get("sub") or payload.get("userId")
    if not user_id:
        raise jwt.InvalidTokenError("Token has no subject")

    roles = payload.get("roles")
    if roles is None:
        role = payload.get("role")
        roles = [role] if role else []

    return Principal(
        user_id=str(user_id),
        roles=[str(r) for r in roles],
        organization_id=payload.get("organization_id") or payload.get("organizationId"),
        team_ids=[str(t) for t in payload.get("team_ids") or payload.get("teamIds") or []],
    )
