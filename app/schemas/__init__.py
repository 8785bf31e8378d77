"""Pydantic schemas package."""

from app.schemas.auth import TokenPayload
from app.schemas.push import (
    BroadcastRequest,
    DispatchQueuedResponse,
    NotificationContent,
    PushConfigResponse,
    PushKeys,
    PushResubscribeRequest,
    PushStatusResponse,
    PushSubscribeRequest,
    PushSubscribeResponse,
    PushUnsubscribeRequest,
    PushUnsubscribeResponse,
    TargetRequest,
    VapidPublicKeyResponse,
)

__all__ = [
    "BroadcastRequest",
    "DispatchQueuedResponse",
    "NotificationContent",
    "PushConfigResponse",
    "PushKeys",
    "PushResubscribeRequest",
    "PushStatusResponse",
    "PushSubscribeRequest",
    "PushSubscribeResponse",
    "PushUnsubscribeRequest",
    "PushUnsubscribeResponse",
    "TargetRequest",
    "TokenPayload",
    "VapidPublicKeyResponse",
]
