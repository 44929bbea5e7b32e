from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query

from communication_service.api.deps import CurrentPrincipal, UoWDep
from communication_service.api.v1.schemas.common import ApiResponse, CountResponse
from communication_service.api.v1.schemas.notification import (
    CreateNotificationRequest,
    MarkAllReadRequest,
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationStatsResponse,
    PreferenceItem,
    RecurringNotificationRequest,
    UpdatePreferencesRequest,
)
from communication_service.application.dto.notification import (
    NotificationFilterDTO,
    PreferenceUpdateDTO,
)
from communication_service.domain.entities.notification import Notification
from communication_service.domain.value_objects.enums import (
    NotificationPriority,
    NotificationStatus,
)
from communication_service.services import notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _to_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse.model_validate(notification, from_attributes=True)


@router.get("", response_model=ApiResponse[NotificationListResponse])
async def list_notifications(
    principal: CurrentPrincipal,
    uow: UoWDep,
    status: NotificationStatus | None = Query(None),
    priority: NotificationPriority | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse[NotificationListResponse]:
    page = await notification_service.list_notifications(
        NotificationFilterDTO(status=status, priority=priority, limit=limit, offset=offset),
        principal,
        uow,
    )
    return ApiResponse(
        data=NotificationListResponse(
            notifications=[_to_response(n) for n in page.notifications],
            total=page.total,
            unread_count=page.unread_count,
        )
    )


@router.post("", response_model=ApiResponse[list[NotificationResponse]], status_code=201)
async def create_notification(
    body: CreateNotificationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[list[NotificationResponse]]:
    created = await notification_service.create_notification(body.to_dto(), principal, uow)
    return ApiResponse(data=[_to_response(n) for n in created])


@router.post(
    "/recurring", response_model=ApiResponse[list[NotificationResponse]], status_code=201
)
async def create_recurring_notification(
    body: RecurringNotificationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[list[NotificationResponse]]:
    created = await notification_service.schedule_recurring(
        body.notification.to_dto(), body.recurrence.to_rule(), principal, uow,
    )
    return ApiResponse(data=[_to_response(n) for n in created])


@router.get("/unread-count", response_model=ApiResponse[CountResponse])
async def unread_count(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[CountResponse]:
    count = await notification_service.get_unread_count(principal, uow)
    return ApiResponse(data=CountResponse(count=count))


@router.post("/read-all", response_model=ApiResponse[MarkAllReadResponse])
async def mark_all_read(
    body: MarkAllReadRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[MarkAllReadResponse]:
    updated = await notification_service.mark_all_read(
        principal, uow, body.notification_ids,
    )
    return ApiResponse(data=MarkAllReadResponse(updated=updated))


@router.get("/preferences", response_model=ApiResponse[list[PreferenceItem]])
async def get_preferences(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[list[PreferenceItem]]:
    prefs = await notification_service.get_preferences(principal, uow)
    return ApiResponse(
        data=[PreferenceItem.model_validate(p, from_attributes=True) for p in prefs]
    )


@router.put("/preferences", response_model=ApiResponse[list[PreferenceItem]])
async def update_preferences(
    body: UpdatePreferencesRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[list[PreferenceItem]]:
    prefs = await notification_service.update_preferences(
        [
            PreferenceUpdateDTO(type=p.type, channel=p.channel, is_enabled=p.is_enabled)
            for p in body.preferences
        ],
        principal,
        uow,
    )
    return ApiResponse(
        data=[PreferenceItem.model_validate(p, from_attributes=True) for p in prefs]
    )


@router.get("/stats", response_model=ApiResponse[NotificationStatsResponse])
async def get_stats(
    principal: CurrentPrincipal,
    uow: UoWDep,
    user_id: str | None = Query(None),
    team_id: str | None = Query(None),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
) -> ApiResponse[NotificationStatsResponse]:
    stats = await notification_service.get_stats(
        principal, uow, user_id=user_id, team_id=team_id, start=start, end=end,
    )
    return ApiResponse(
        data=NotificationStatsResponse.model_validate(stats, from_attributes=True)
    )


@router.get("/{notification_id}", response_model=ApiResponse[NotificationResponse])
async def get_notification(
    notification_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[NotificationResponse]:
    notification = await notification_service.get_notification(notification_id, principal, uow)
    return ApiResponse(data=_to_response(notification))


@router.post("/{notification_id}/read", response_model=ApiResponse[None])
async def mark_read(
    notification_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[None]:
    await notification_service.mark_read(notification_id, principal, uow)
    return ApiResponse(data=None)


@router.delete("/{notification_id}", response_model=ApiResponse[None])
async def delete_notification(
    notification_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[None]:
    await notification_service.delete_notification(notification_id, principal, uow)
    return ApiResponse(data=None)
