"""Push subscription management and notification dispatch endpoints."""
from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status

from app.api import deps
from app.config import settings
from app.db.models.member import Member
from app.schemas import (
    BroadcastRequest,
    DispatchQueuedResponse,
    PushConfigResponse,
    PushResubscribeRequest,
    PushStatusResponse,
    PushSubscribeRequest,
    PushSubscribeResponse,
    PushUnsubscribeRequest,
    PushUnsubscribeResponse,
    VapidPublicKeyResponse,
)
from app.services.push.background import notify_in_background
from app.services.push.store import SubscriptionStore
from app.services.push.types import NotificationPayload, TargetingSpec, preview
from app.utils.exceptions import ConfigurationError, handle_configuration_error

router = APIRouter(prefix="/push", tags=["push"])


@router.get("/vapid-public-key", response_model=VapidPublicKeyResponse)
def get_vapid_public_key() -> VapidPublicKeyResponse:
    """Return the application server key browsers subscribe with."""

    if not settings.VAPID_PUBLIC_KEY:
        raise handle_configuration_error(ConfigurationError("VAPID public key not configured"))
    return VapidPublicKeyResponse(public_key=settings.VAPID_PUBLIC_KEY)


@router.post("/subscribe", response_model=PushSubscribeResponse)
def subscribe(
    subscription: PushSubscribeRequest,
    user_agent: Optional[str] = Header(default=None),
    store: SubscriptionStore = Depends(deps.get_subscription_store),
    current_member: Member = Depends(deps.get_current_member),
) -> PushSubscribeResponse:
    """Register (or refresh) the caller's device subscription."""

    saved = store.upsert(
        current_member.id,
        subscription.endpoint,
        auth_secret=subscription.keys.auth,
        encryption_key=subscription.keys.p256dh,
        user_agent=user_agent,
    )
    return PushSubscribeResponse(subscription_id=saved.id)


@router.post("/resubscribe", response_model=PushSubscribeResponse)
def resubscribe(
    request: PushResubscribeRequest,
    user_agent: Optional[str] = Header(default=None),
    store: SubscriptionStore = Depends(deps.get_subscription_store),
) -> PushSubscribeResponse:
    """Swap a rotated endpoint into the existing subscription row.

    Called by the service worker on ``pushsubscriptionchange``, where no
    bearer token is available; knowing the old endpoint identifies the row.
    """

    saved = store.rotate_endpoint(
        request.old_endpoint,
        request.endpoint,
        auth_secret=request.keys.auth,
        encryption_key=request.keys.p256dh,
        user_agent=user_agent,
    )
    if saved is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No subscription found to update")
    return PushSubscribeResponse(subscription_id=saved.id)


@router.delete("/unsubscribe", response_model=PushUnsubscribeResponse)
def unsubscribe(
    request: PushUnsubscribeRequest = Body(...),
    store: SubscriptionStore = Depends(deps.get_subscription_store),
    current_member: Member = Depends(deps.get_current_member),
) -> PushUnsubscribeResponse:
    """Remove one of the caller's device subscriptions."""

    removed = store.delete_by_endpoint(request.endpoint, member_id=current_member.id)
    return PushUnsubscribeResponse(removed=removed)


@router.get("/status", response_model=PushStatusResponse)
def push_status(
    store: SubscriptionStore = Depends(deps.get_subscription_store),
    current_member: Member = Depends(deps.get_current_member),
) -> PushStatusResponse:
    count = store.count_for_member(current_member.id)
    return PushStatusResponse(enabled=count > 0, subscriptions=count)


@router.post("/test", response_model=DispatchQueuedResponse, status_code=status.HTTP_202_ACCEPTED)
def send_test_notification(
    channel: Optional[Literal["direct", "hosted"]] = Query(default=None),
    current_member: Member = Depends(deps.get_current_member),
) -> DispatchQueuedResponse:
    """Queue a test notification to every device of the caller."""

    payload = NotificationPayload(
        title=settings.PUSH_DEFAULT_TITLE,
        body="Push notifications are working on this device.",
        url="/",
        icon=settings.PUSH_DEFAULT_ICON,
    )
    task_id = notify_in_background(TargetingSpec.for_members([current_member.id]), payload, channel)
    return DispatchQueuedResponse(task_id=task_id)


@router.post("/broadcast", response_model=DispatchQueuedResponse, status_code=status.HTTP_202_ACCEPTED)
def broadcast(
    request: BroadcastRequest,
    _: Member = Depends(deps.require_staff),
) -> DispatchQueuedResponse:
    """Queue a notification to members, roles, teams or all staff."""

    spec = TargetingSpec.from_dict(request.target.model_dump())
    payload = NotificationPayload.from_dict(request.notification.model_dump())
    task_id = notify_in_background(spec, payload, request.channel)
    return DispatchQueuedResponse(task_id=task_id)


@router.get("/config", response_model=PushConfigResponse)
def push_config(_: Member = Depends(deps.require_staff)) -> PushConfigResponse:
    """Report which delivery channels are ready, without exposing secrets."""

    return PushConfigResponse(
        direct_enabled=settings.vapid_configured,
        hosted_enabled=settings.onesignal_configured,
        public_key_preview=preview(settings.VAPID_PUBLIC_KEY, 20) or None,
        subject=settings.VAPID_SUBJECT,
        default_channel=settings.PUSH_DEFAULT_CHANNEL,
    )
