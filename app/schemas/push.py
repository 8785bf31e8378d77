"""Pydantic models for push subscription and dispatch endpoints."""
from __future__ import annotations

import base64
import binascii
import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Uncompressed P-256 point and the shared auth secret, as browsers emit them
P256DH_BYTES = 65
AUTH_SECRET_BYTES = 16


def _urlsafe_length(value: str) -> Optional[int]:
    text = value.strip().rstrip("=").replace("+", "-").replace("/", "_")
    try:
        return len(base64.b64decode(text + "=" * (-len(text) % 4), altchars=b"-_", validate=True))
    except (binascii.Error, ValueError):
        return None


class PushKeys(BaseModel):
    """Key material the browser generated for one subscription."""

    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)

    @field_validator("p256dh")
    @classmethod
    def check_p256dh(cls, value: str) -> str:
        if _urlsafe_length(value) != P256DH_BYTES:
            raise ValueError(f"p256dh must be a base64url encoded {P256DH_BYTES}-byte public key")
        return value

    @field_validator("auth")
    @classmethod
    def check_auth(cls, value: str) -> str:
        if _urlsafe_length(value) != AUTH_SECRET_BYTES:
            raise ValueError(f"auth must be a base64url encoded {AUTH_SECRET_BYTES}-byte secret")
        return value


class PushSubscribeRequest(BaseModel):
    endpoint: str = Field(min_length=1)
    keys: PushKeys


class PushUnsubscribeRequest(BaseModel):
    endpoint: str = Field(min_length=1)


class PushResubscribeRequest(BaseModel):
    """Sent by the service worker when the browser rotated a subscription."""

    model_config = ConfigDict(populate_by_name=True)

    old_endpoint: str = Field(min_length=1, alias="oldEndpoint")
    endpoint: str = Field(min_length=1)
    keys: PushKeys


class PushSubscribeResponse(BaseModel):
    success: bool = True
    subscription_id: uuid.UUID = Field(serialization_alias="subscriptionId")


class PushUnsubscribeResponse(BaseModel):
    success: bool = True
    removed: int


class PushStatusResponse(BaseModel):
    enabled: bool
    subscriptions: int


class VapidPublicKeyResponse(BaseModel):
    public_key: str = Field(serialization_alias="publicKey")


class PushConfigResponse(BaseModel):
    """Channel readiness; never carries secrets."""

    direct_enabled: bool = Field(serialization_alias="directEnabled")
    hosted_enabled: bool = Field(serialization_alias="hostedEnabled")
    public_key_preview: Optional[str] = Field(default=None, serialization_alias="publicKeyPreview")
    subject: str
    default_channel: str = Field(serialization_alias="defaultChannel")


class TargetRequest(BaseModel):
    """Audience of a broadcast; exactly the fields relevant to ``kind`` are used."""

    kind: Literal["members", "roles", "teams", "all_staff"]
    member_ids: List[int] = Field(default_factory=list)
    roles: List[str] = Field(default_factory=list)
    team_ids: List[int] = Field(default_factory=list)


class NotificationContent(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    body: str = Field(default="", max_length=2000)
    url: str = Field(default="/", max_length=2048)
    icon: Optional[str] = Field(default=None, max_length=2048)


class BroadcastRequest(BaseModel):
    target: TargetRequest
    notification: NotificationContent
    channel: Optional[Literal["direct", "hosted"]] = None


class DispatchQueuedResponse(BaseModel):
    status: str = "queued"
    task_id: Optional[str] = Field(default=None, serialization_alias="taskId")
