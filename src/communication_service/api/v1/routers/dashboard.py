from __future__ import annotations

from fastapi import APIRouter

from communication_service.api.deps import CurrentPrincipal, UoWDep
from communication_service.api.v1.schemas.common import ApiResponse
from communication_service.api.v1.schemas.dashboard import CommunicationSummaryResponse
from communication_service.services import dashboard_service

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/communication", response_model=ApiResponse[CommunicationSummaryResponse])
async def communication_summary(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ApiResponse[CommunicationSummaryResponse]:
    summary = await dashboard_service.get_communication_summary(principal, uow)
    return ApiResponse(data=CommunicationSummaryResponse.from_summary(summary))
