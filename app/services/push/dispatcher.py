"""Resolve an audience, fan out delivery and heal the subscription registry."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

from loguru import logger
from sqlalchemy.orm import Session

from app.config import settings
from app.services.push.audience import AudienceResolver, SqlMemberDirectory
from app.services.push.channels.base import NotificationChannel
from app.services.push.cleanup import SubscriptionCleanup
from app.services.push.store import SubscriptionStore
from app.services.push.types import (
    DeliveryOutcome,
    DispatchReport,
    NotificationPayload,
    TargetingSpec,
)
from app.utils.exceptions import InvalidPayloadError


class NotificationDispatcher:
    """Dispatch one notification to an audience over a single channel.

    Delivery failures never escape :meth:`dispatch`; they are classified into
    the returned :class:`DispatchReport`. Only malformed input raises.
    """

    def __init__(
        self,
        resolver: AudienceResolver,
        store: SubscriptionStore,
        cleanup: SubscriptionCleanup,
        *,
        max_concurrency: int = 20,
    ) -> None:
        self.resolver = resolver
        self.store = store
        self.cleanup = cleanup
        self.max_concurrency = max(1, max_concurrency)

    async def dispatch(
        self,
        spec: TargetingSpec,
        payload: NotificationPayload,
        channel: NotificationChannel,
    ) -> DispatchReport:
        if not isinstance(payload, NotificationPayload):
            raise InvalidPayloadError(f"Expected a NotificationPayload, got {type(payload).__name__}")

        member_ids = self.resolver.resolve(spec)
        report = DispatchReport(channel=channel.name, audience=len(member_ids))
        if not member_ids:
            logger.info("Push audience empty, nothing to send", channel=channel.name, target=spec.kind.value)
            return report

        targets = channel.collect_targets(sorted(member_ids), self.store)
        if not targets:
            logger.info("No push targets for audience", channel=channel.name, audience=report.audience)
            return report

        started = time.perf_counter()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def attempt(target: Any) -> DeliveryOutcome:
            async with semaphore:
                return await channel.deliver(target, payload)

        results = await asyncio.gather(*(attempt(target) for target in targets), return_exceptions=True)

        for target, result in zip(targets, results):
            if isinstance(result, BaseException):
                subscription_id = getattr(target, "id", None)
                logger.error(
                    "Unexpected push delivery error",
                    channel=channel.name,
                    subscription_id=str(subscription_id) if subscription_id else None,
                    error=f"{type(result).__name__}: {result}",
                )
                result = DeliveryOutcome.transient(subscription_id, f"{type(result).__name__}: {result}")
            report.outcomes.append(result)

        for outcome in report.outcomes:
            if outcome.terminal and outcome.subscription_id is not None:
                if self.cleanup.on_terminal_failure(outcome.subscription_id):
                    report.removed += 1

        logger.info(
            "Push dispatch complete",
            elapsed_ms=round((time.perf_counter() - started) * 1000),
            **report.summary(),
        )
        return report


def build_dispatcher(db: Session, *, max_concurrency: Optional[int] = None) -> NotificationDispatcher:
    """Assemble a dispatcher bound to the database session."""

    store = SubscriptionStore(db)
    resolver = AudienceResolver(SqlMemberDirectory(db), settings.PUSH_STAFF_ROLES)
    return NotificationDispatcher(
        resolver,
        store,
        SubscriptionCleanup(store),
        max_concurrency=max_concurrency or settings.PUSH_MAX_CONCURRENCY,
    )
