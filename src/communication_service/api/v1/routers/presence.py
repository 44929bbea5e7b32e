from __future__ import annotations

from fastapi import APIRouter, Query

from communication_service.api.deps import CurrentPrincipal, UoWDep
from communication_service.api.v1.schemas.common import ApiResponse
from communication_service.api.v1.schemas.presence import (
    PresenceResponse,
    PresenceUpdateRequest,
)
from communication_service.application.exceptions import ValidationError
from communication_service.domain.entities.presence import UserPresence
from communication_service.services import presence_service

router = APIRouter(prefix="/api/presence", tags=["presence"])

MAX_BATCH = 100


def _to_response(presence: UserPresence) -> PresenceResponse:
    return PresenceResponse.model_validate(presence, from_attributes=True)


@router.put("", response_model=ApiResponse[PresenceResponse])
async def update_presence(
    body: PresenceUpdateRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[PresenceResponse]:
    presence = await presence_service.update_presence(
        principal.user_id, body.status, body.status_message, uow,
    )
    return ApiResponse(data=_to_response(presence))


@router.post("/heartbeat", response_model=ApiResponse[PresenceResponse])
async def heartbeat(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[PresenceResponse]:
    presence = await presence_service.heartbeat(principal.user_id, uow)
    return ApiResponse(data=_to_response(presence))


@router.get("/online", response_model=ApiResponse[list[PresenceResponse]])
async def list_online(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[list[PresenceResponse]]:
    online = await presence_service.list_online(uow)
    return ApiResponse(data=[_to_response(p) for p in online])


@router.get("", response_model=ApiResponse[list[PresenceResponse]])
async def get_many(
    principal: CurrentPrincipal,
    uow: UoWDep,
    user_ids: list[str] = Query(...),
) -> ApiResponse[list[PresenceResponse]]:
    if len(user_ids) > MAX_BATCH:
        raise ValidationError(f"At most {MAX_BATCH} user ids per request")
    found = await presence_service.get_many(user_ids, uow)
    return ApiResponse(data=[_to_response(p) for p in found])


@router.get("/{user_id}", response_model=ApiResponse[PresenceResponse])
async def get_presence(
    user_id: str,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[PresenceResponse]:
    presence = await presence_service.get_presence(user_id, uow)
    return ApiResponse(data=_to_response(presence))
