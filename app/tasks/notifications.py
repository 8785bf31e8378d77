"""Celery tasks for push notification delivery and maintenance."""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from loguru import logger

from app.celery_app import celery_app
from app.db.session import SessionLocal
from app.services.push.channels import build_channel
from app.services.push.dispatcher import build_dispatcher
from app.services.push.store import SubscriptionStore
from app.services.push.types import NotificationPayload, TargetingSpec


@celery_app.task(name="app.tasks.notifications.dispatch_notification")
def dispatch_notification(
    target: dict[str, Any],
    notification: dict[str, Any],
    channel: Optional[str] = None,
) -> dict[str, Any]:
    """Run one best-effort dispatch outside the request that triggered it."""

    spec = TargetingSpec.from_dict(target)
    payload = NotificationPayload.from_dict(notification)
    delivery_channel = build_channel(channel)

    db = SessionLocal()
    try:
        dispatcher = build_dispatcher(db)
        report = asyncio.run(dispatcher.dispatch(spec, payload, delivery_channel))
        logger.info("Background push dispatch finished", **report.summary())
        return report.as_dict()
    finally:
        delivery_channel.close()
        db.close()


@celery_app.task(name="app.tasks.notifications.purge_invalid_subscriptions")
def purge_invalid_subscriptions() -> dict[str, int]:
    """Delete subscriptions stored without usable key material."""

    db = SessionLocal()
    try:
        removed = SubscriptionStore(db).purge_invalid()
        logger.info("Invalid push subscriptions purged", removed=removed)
        return {"removed": removed}
    finally:
        db.close()
