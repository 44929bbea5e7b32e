from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query

from communication_service.api.deps import CurrentPrincipal, UoWDep
from communication_service.api.v1.schemas.common import ApiResponse, CountResponse, PageResponse
from communication_service.api.v1.schemas.message import (
    EditMessageRequest,
    MarkReadRequest,
    MarkReadResponse,
    MessageItemResponse,
    MessageResponse,
    ReactionRequest,
    ReactionResponse,
    SendMessageRequest,
)
from communication_service.application.dto.message import (
    MessageListParams,
    MessageSearchParams,
    MessageView,
)
from communication_service.domain.value_objects.enums import MessageType
from communication_service.services import message_service

router = APIRouter(prefix="/api", tags=["messages"])


def _item(view: MessageView) -> MessageItemResponse:
    base = MessageResponse.model_validate(view.message, from_attributes=True)
    return MessageItemResponse(
        **base.model_dump(),
        is_read=view.is_read,
        reaction_counts=view.reaction_counts,
    )


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=ApiResponse[PageResponse[MessageItemResponse]],
)
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    before_id: UUID | None = Query(None),
    after_id: UUID | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
) -> ApiResponse[PageResponse[MessageItemResponse]]:
    result = await message_service.list_messages(
        conversation_id,
        MessageListParams(
            before_id=before_id, after_id=after_id, search=search, page=page, limit=limit,
        ),
        principal,
        uow,
    )
    return ApiResponse(
        data=PageResponse(
            items=[_item(v) for v in result.items],
            total=result.total,
            page=result.page,
            total_pages=result.total_pages,
        )
    )


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=ApiResponse[MessageResponse],
    status_code=201,
)
async def send_message(
    conversation_id: UUID,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[MessageResponse]:
    msg = await message_service.send_message(body.to_dto(conversation_id), principal, uow)
    return ApiResponse(data=MessageResponse.model_validate(msg, from_attributes=True))


@router.get("/messages/search", response_model=ApiResponse[list[MessageResponse]])
async def search_messages(
    principal: CurrentPrincipal,
    uow: UoWDep,
    q: str = Query(..., min_length=1),
    conversation_id: UUID | None = Query(None),
    type: MessageType | None = Query(None),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
) -> ApiResponse[list[MessageResponse]]:
    found = await message_service.search_messages(
        MessageSearchParams(
            query=q,
            conversation_id=conversation_id,
            type=type,
            from_date=from_date,
            to_date=to_date,
        ),
        principal,
        uow,
    )
    return ApiResponse(
        data=[MessageResponse.model_validate(m, from_attributes=True) for m in found]
    )


@router.get("/messages/unread-count", response_model=ApiResponse[CountResponse])
async def unread_count(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[CountResponse]:
    count = await message_service.get_unread_count(principal, uow)
    return ApiResponse(data=CountResponse(count=count))


@router.post("/messages/read", response_model=ApiResponse[MarkReadResponse])
async def mark_messages_read(
    body: MarkReadRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[MarkReadResponse]:
    marked = await message_service.mark_messages_read(body.message_ids, principal, uow)
    return ApiResponse(data=MarkReadResponse(marked=marked))


@router.put("/messages/{message_id}", response_model=ApiResponse[MessageResponse])
async def edit_message(
    message_id: UUID,
    body: EditMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[MessageResponse]:
    msg = await message_service.edit_message(message_id, body.content, principal, uow)
    return ApiResponse(data=MessageResponse.model_validate(msg, from_attributes=True))


@router.delete("/messages/{message_id}", response_model=ApiResponse[None])
async def delete_message(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[None]:
    await message_service.delete_message(message_id, principal, uow)
    return ApiResponse(data=None)


@router.post(
    "/messages/{message_id}/reactions",
    response_model=ApiResponse[ReactionResponse],
    status_code=201,
)
async def add_reaction(
    message_id: UUID,
    body: ReactionRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[ReactionResponse]:
    reaction = await message_service.add_reaction(message_id, body.emoji, principal, uow)
    return ApiResponse(data=ReactionResponse.model_validate(reaction, from_attributes=True))


@router.delete("/messages/{message_id}/reactions/{emoji}", response_model=ApiResponse[None])
async def remove_reaction(
    message_id: UUID,
    emoji: str,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[None]:
    await message_service.remove_reaction(message_id, emoji, principal, uow)
    return ApiResponse(data=None)
