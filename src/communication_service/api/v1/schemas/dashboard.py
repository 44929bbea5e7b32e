from __future__ import annotations

from pydantic import BaseModel

from communication_service.api.v1.schemas.conversation import ConversationResponse
from communication_service.services.dashboard_service import CommunicationSummary


class CommunicationSummaryResponse(BaseModel):
    unread_messages: int
    unread_notifications: int
    recent_conversations: list[ConversationResponse]
    online_contacts: int

    @classmethod
    def from_summary(cls, summary: CommunicationSummary) -> CommunicationSummaryResponse:
        return cls(
            unread_messages=summary.unread_messages,
            unread_notifications=summary.unread_notifications,
            recent_conversations=[
                ConversationResponse.from_view(v) for v in summary.recent_conversations
            ],
            online_contacts=summary.online_contacts,
        )
