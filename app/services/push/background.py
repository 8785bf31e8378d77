"""Fire-and-forget submission of notification dispatches."""
from __future__ import annotations

from typing import Optional

from loguru import logger

from app.services.push.channels import DeliveryChannel
from app.services.push.types import NotificationPayload, TargetingSpec
from app.tasks.notifications import dispatch_notification
from app.utils.exceptions import UnknownChannelError


def notify_in_background(
    spec: TargetingSpec,
    payload: NotificationPayload,
    channel: Optional[str] = None,
) -> Optional[str]:
    """Queue a dispatch and return the task id without waiting for delivery.

    Input is validated here so programming errors surface to the caller.
    A broker that cannot accept the task only costs the notification.
    """

    if channel is not None:
        try:
            DeliveryChannel(channel)
        except ValueError as exc:
            raise UnknownChannelError(f"Unknown push channel: {channel!r}") from exc

    try:
        result = dispatch_notification.delay(spec.as_dict(), payload.as_dict(), channel)
    except Exception as exc:
        logger.error(
            "Failed to queue push dispatch",
            target=spec.kind.value,
            channel=channel,
            error=f"{type(exc).__name__}: {exc}",
        )
        return None

    logger.info("Push dispatch queued", task_id=result.id, target=spec.kind.value, channel=channel)
    return result.id
