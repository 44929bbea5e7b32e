from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from communication_service.api.deps import CurrentPrincipal, UoWDep
from communication_service.api.v1.schemas.common import ApiResponse, PageResponse
from communication_service.api.v1.schemas.conversation import (
    AddParticipantsRequest,
    ConversationResponse,
    CreateConversationRequest,
    MuteRequest,
    ParticipantResponse,
    UpdateConversationRequest,
)
from communication_service.application.dto.conversation import (
    ConversationListParams,
    CreateConversationDTO,
    UpdateConversationDTO,
)
from communication_service.domain.value_objects.enums import ConversationType
from communication_service.services import conversation_service

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


@router.post("", response_model=ApiResponse[ConversationResponse], status_code=201)
async def create_conversation(
    body: CreateConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[ConversationResponse]:
    view = await conversation_service.create_conversation(
        CreateConversationDTO(**body.model_dump()), principal, uow,
    )
    return ApiResponse(data=ConversationResponse.from_view(view))


@router.get("", response_model=ApiResponse[PageResponse[ConversationResponse]])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    type: ConversationType | None = Query(None),
    include_archived: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse[PageResponse[ConversationResponse]]:
    result = await conversation_service.list_conversations(
        ConversationListParams(
            type=type, include_archived=include_archived, page=page, limit=limit,
        ),
        principal,
        uow,
    )
    return ApiResponse(
        data=PageResponse(
            items=[ConversationResponse.from_view(v) for v in result.items],
            total=result.total,
            page=result.page,
            total_pages=result.total_pages,
        )
    )


@router.get("/{conversation_id}", response_model=ApiResponse[ConversationResponse])
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[ConversationResponse]:
    view = await conversation_service.get_conversation(conversation_id, principal, uow)
    return ApiResponse(data=ConversationResponse.from_view(view))


@router.put("/{conversation_id}", response_model=ApiResponse[ConversationResponse])
async def update_conversation(
    conversation_id: UUID,
    body: UpdateConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[ConversationResponse]:
    view = await conversation_service.update_conversation(
        conversation_id,
        UpdateConversationDTO(**body.model_dump(exclude_unset=True)),
        principal,
        uow,
    )
    return ApiResponse(data=ConversationResponse.from_view(view))


@router.delete("/{conversation_id}", response_model=ApiResponse[None])
async def delete_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[None]:
    await conversation_service.delete_conversation(conversation_id, principal, uow)
    return ApiResponse(data=None)


@router.post("/{conversation_id}/archive", response_model=ApiResponse[None])
async def archive_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[None]:
    await conversation_service.archive_conversation(conversation_id, principal, uow)
    return ApiResponse(data=None)


@router.post("/{conversation_id}/unarchive", response_model=ApiResponse[None])
async def unarchive_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[None]:
    await conversation_service.unarchive_conversation(conversation_id, principal, uow)
    return ApiResponse(data=None)


@router.post(
    "/{conversation_id}/participants",
    response_model=ApiResponse[list[ParticipantResponse]],
    status_code=201,
)
async def add_participants(
    conversation_id: UUID,
    body: AddParticipantsRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[list[ParticipantResponse]]:
    added = await conversation_service.add_participants(
        conversation_id, body.user_ids, principal, uow,
    )
    return ApiResponse(
        data=[ParticipantResponse.model_validate(p, from_attributes=True) for p in added]
    )


@router.delete(
    "/{conversation_id}/participants/{user_id}", response_model=ApiResponse[None]
)
async def remove_participant(
    conversation_id: UUID,
    user_id: str,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[None]:
    await conversation_service.remove_participant(conversation_id, user_id, principal, uow)
    return ApiResponse(data=None)


@router.post("/{conversation_id}/read", response_model=ApiResponse[None])
async def mark_conversation_read(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[None]:
    await conversation_service.mark_conversation_read(conversation_id, principal, uow)
    return ApiResponse(data=None)


@router.put("/{conversation_id}/mute", response_model=ApiResponse[None])
async def mute_conversation(
    conversation_id: UUID,
    body: MuteRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[None]:
    await conversation_service.mute_conversation(conversation_id, body.until, principal, uow)
    return ApiResponse(data=None)


@router.delete("/{conversation_id}/mute", response_model=ApiResponse[None])
async def unmute_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[None]:
    await conversation_service.unmute_conversation(conversation_id, principal, uow)
    return ApiResponse(data=None)
