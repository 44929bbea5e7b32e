from __future__ import annotations

from enum import StrEnum


class ConversationType(StrEnum):
    DIRECT = "direct"
    GROUP = "group"
    TEAM = "team"
    CHANNEL = "channel"


class ParticipantRole(StrEnum):
    ADMIN = "admin"
    MEMBER = "member"


class MessageType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    VOICE = "voice"
    VIDEO = "video"
    SYSTEM = "system"


class AttachmentType(StrEnum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    OTHER = "other"


class NotificationType(StrEnum):
    MESSAGE = "message"
    MENTION = "mention"
    REACTION = "reaction"
    TEAM_ANNOUNCEMENT = "team_announcement"
    TRAINING_REMINDER = "training_reminder"
    TRAINING_ASSIGNED = "training_assigned"
    SCHEDULE_CHANGE = "schedule_change"
    MEDICAL_APPOINTMENT = "medical_appointment"
    INJURY_UPDATE = "injury_update"
    EQUIPMENT_DUE = "equipment_due"
    PAYMENT_DUE = "payment_due"
    SYSTEM_ALERT = "system_alert"


class NotificationPriority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


UNREAD_NOTIFICATION_STATUSES = (
    NotificationStatus.PENDING,
    NotificationStatus.SENT,
    NotificationStatus.DELIVERED,
)

# Claim order of queue rows: lower rank first.
PRIORITY_RANK: dict[str, int] = {
    NotificationPriority.URGENT: 0,
    NotificationPriority.HIGH: 1,
    NotificationPriority.NORMAL: 2,
    NotificationPriority.LOW: 3,
}


class NotificationChannel(StrEnum):
    IN_APP = "in_app"
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


class QueueStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PresenceStatus(StrEnum):
    ONLINE = "online"
    AWAY = "away"
    BUSY = "busy"
    OFFLINE = "offline"


class RecurrenceFrequency(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
