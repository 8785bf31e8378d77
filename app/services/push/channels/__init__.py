"""Notification delivery channels."""
from __future__ import annotations

from typing import Optional

from app.config import settings
from app.services.push.channels.base import DeliveryChannel, NotificationChannel
from app.services.push.channels.hosted import HostedPushChannel, logical_id
from app.services.push.channels.web_push import (
    TERMINAL_STATUS_CODES,
    WebPushChannel,
    is_terminal_status,
)
from app.utils.exceptions import UnknownChannelError


def build_channel(name: Optional[str] = None) -> NotificationChannel:
    """Construct a channel from settings; ``None`` selects the default."""

    raw = name or settings.PUSH_DEFAULT_CHANNEL
    try:
        channel = DeliveryChannel(raw)
    except ValueError as exc:
        raise UnknownChannelError(f"Unknown push channel: {raw!r}") from exc

    if channel is DeliveryChannel.HOSTED:
        return HostedPushChannel(
            settings.ONESIGNAL_APP_ID,
            settings.ONESIGNAL_REST_API_KEY,
            api_url=settings.ONESIGNAL_API_URL,
            timeout=settings.ONESIGNAL_TIMEOUT_SECONDS,
            default_icon=settings.PUSH_DEFAULT_ICON,
        )
    return WebPushChannel(
        settings.VAPID_PUBLIC_KEY,
        settings.VAPID_PRIVATE_KEY,
        settings.VAPID_SUBJECT,
        timeout=settings.WEB_PUSH_TIMEOUT_SECONDS,
        ttl=settings.WEB_PUSH_TTL_SECONDS,
        max_workers=settings.PUSH_MAX_CONCURRENCY,
    )


__all__ = [
    "DeliveryChannel",
    "HostedPushChannel",
    "NotificationChannel",
    "TERMINAL_STATUS_CODES",
    "WebPushChannel",
    "build_channel",
    "is_terminal_status",
    "logical_id",
]
