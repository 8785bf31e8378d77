"""Push notification dispatch: audience resolution, delivery channels and cleanup."""

from app.services.push.audience import AudienceResolver, MemberDirectory, SqlMemberDirectory
from app.services.push.cleanup import SubscriptionCleanup
from app.services.push.dispatcher import NotificationDispatcher, build_dispatcher
from app.services.push.store import SubscriptionStore
from app.services.push.types import (
    DeliveryOutcome,
    DispatchReport,
    MemberBatch,
    NotificationPayload,
    SubscriptionTarget,
    TargetingSpec,
    TargetKind,
)

__all__ = [
    "AudienceResolver",
    "DeliveryOutcome",
    "DispatchReport",
    "MemberBatch",
    "MemberDirectory",
    "NotificationDispatcher",
    "NotificationPayload",
    "SqlMemberDirectory",
    "SubscriptionCleanup",
    "SubscriptionStore",
    "SubscriptionTarget",
    "TargetKind",
    "TargetingSpec",
    "build_dispatcher",
]
