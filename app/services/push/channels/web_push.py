"""Direct Web Push delivery signed with the service VAPID key pair."""
from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import List, Optional, Sequence

import requests
from loguru import logger
from py_vapid import Vapid
from pywebpush import WebPushException, webpush

from app.services.push.channels.base import DeliveryChannel, warn_disabled
from app.services.push.types import (
    DETAIL_PREVIEW_CHARS,
    DeliveryOutcome,
    NotificationPayload,
    SubscriptionTarget,
    preview,
)


# The push service answers 404/410 once the browser dropped the subscription
TERMINAL_STATUS_CODES = frozenset({404, 410})


def is_terminal_status(status_code: Optional[int]) -> bool:
    """Return whether a push-service status means the endpoint is gone for good."""

    return status_code in TERMINAL_STATUS_CODES


class WebPushChannel:
    """Send encrypted payloads straight to each subscribed browser endpoint."""

    name = DeliveryChannel.DIRECT.value

    def __init__(
        self,
        public_key: Optional[str],
        private_key: Optional[str],
        subject: str,
        *,
        timeout: float = 10.0,
        ttl: int = 86400,
        max_workers: int = 20,
    ) -> None:
        self.public_key = public_key
        self.subject = subject
        self.timeout = timeout
        self.ttl = ttl
        self.max_workers = max(1, max_workers)
        self._disabled_reason = "VAPID keys not configured"
        self._vapid = self._load_key(private_key) if public_key else None
        self._executor: Optional[ThreadPoolExecutor] = None

    def _load_key(self, private_key: Optional[str]) -> Optional[Vapid]:
        if not private_key:
            return None
        try:
            return Vapid.from_string(private_key=private_key)
        except (ValueError, TypeError) as exc:
            self._disabled_reason = f"VAPID private key unreadable ({type(exc).__name__})"
            warn_disabled(self.name, self._disabled_reason)
            return None

    @property
    def enabled(self) -> bool:
        return self._vapid is not None

    def close(self) -> None:
        """Release the sender threads; the channel can still be reused afterwards."""

        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def _pool(self) -> ThreadPoolExecutor:
        # Each send blocks a thread for up to ``timeout``; size the pool like the dispatcher semaphore
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="web-push")
        return self._executor

    def collect_targets(self, member_ids: Sequence[int], store) -> List[SubscriptionTarget]:
        subscriptions = store.list_by_member_ids(member_ids)
        return [SubscriptionTarget.from_subscription(subscription) for subscription in subscriptions]

    async def deliver(self, target: SubscriptionTarget, payload: NotificationPayload) -> DeliveryOutcome:
        return await self.send(target, payload)

    async def send(self, subscription: SubscriptionTarget, payload: NotificationPayload) -> DeliveryOutcome:
        """Deliver ``payload`` to one subscription and classify the result."""

        if not self.enabled:
            warn_disabled(self.name, self._disabled_reason)
            return DeliveryOutcome.transient(subscription.id, self._disabled_reason)

        if not subscription.has_key_material:
            logger.warning(
                "Push subscription has no key material",
                subscription_id=str(subscription.id),
                member_id=subscription.member_id,
            )
            return DeliveryOutcome.dead(subscription.id, "missing subscription keys")

        try:
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                self._pool(), partial(self._post, subscription, payload.to_wire())
            )
        except WebPushException as exc:
            return self._classify_rejection(subscription, exc)
        except requests.RequestException as exc:
            logger.warning(
                "Web push transport error",
                subscription_id=str(subscription.id),
                endpoint=preview(subscription.endpoint),
                error=f"{type(exc).__name__}: {exc}",
            )
            return DeliveryOutcome.transient(subscription.id, f"{type(exc).__name__}: {exc}")

        status_code = getattr(response, "status_code", None)
        logger.debug(
            "Web push delivered",
            subscription_id=str(subscription.id),
            endpoint=preview(subscription.endpoint),
            status=status_code,
        )
        return DeliveryOutcome.delivered(subscription.id, status_code)

    def _post(self, subscription: SubscriptionTarget, data: str):
        # pywebpush writes aud/exp into the claims it receives, so never share the dict
        return webpush(
            subscription_info=subscription.subscription_info(),
            data=data,
            vapid_private_key=self._vapid,
            vapid_claims={"sub": self.subject},
            timeout=self.timeout,
            ttl=self.ttl,
        )

    def _classify_rejection(self, subscription: SubscriptionTarget, exc: WebPushException) -> DeliveryOutcome:
        response = exc.response
        status_code = getattr(response, "status_code", None) if response is not None else None
        body = preview(getattr(response, "text", None), DETAIL_PREVIEW_CHARS) if response is not None else ""

        if is_terminal_status(status_code):
            logger.info(
                "Push endpoint expired",
                subscription_id=str(subscription.id),
                endpoint=preview(subscription.endpoint),
                status=status_code,
            )
            return DeliveryOutcome.dead(subscription.id, f"endpoint gone ({status_code})", status_code)

        logger.warning(
            "Web push rejected",
            subscription_id=str(subscription.id),
            endpoint=preview(subscription.endpoint),
            status=status_code,
            body=body,
        )
        detail = f"push service returned {status_code}" if status_code is not None else str(exc)
        return DeliveryOutcome.transient(subscription.id, detail, status_code)
