"""Delivery through the hosted push relay (OneSignal) by logical member id."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import httpx
from loguru import logger

from app.services.push.channels.base import DeliveryChannel, warn_disabled
from app.services.push.types import (
    DETAIL_PREVIEW_CHARS,
    DeliveryOutcome,
    MemberBatch,
    NotificationPayload,
    preview,
)


def logical_id(member_id: int) -> str:
    """Return the provider-side external user id for a member."""

    return f"member_{member_id}"


class HostedPushChannel:
    """One batched provider request per dispatch; the provider owns device state."""

    name = DeliveryChannel.HOSTED.value

    def __init__(
        self,
        app_id: Optional[str],
        api_key: Optional[str],
        *,
        api_url: str = "https://api.onesignal.com",
        timeout: float = 10.0,
        default_icon: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.app_id = app_id
        self._api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.default_icon = default_icon
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.app_id and self._api_key)

    def collect_targets(self, member_ids: Sequence[int], store=None) -> List[MemberBatch]:
        # Subscriptions live with the provider; the local store is never consulted
        if not member_ids:
            return []
        return [MemberBatch(tuple(member_ids))]

    async def deliver(self, target: MemberBatch, payload: NotificationPayload) -> DeliveryOutcome:
        return await self._send(list(target.member_ids), payload)

    def close(self) -> None:
        # Each request opens its own client
        return None

    async def send_to_members(self, member_ids: Sequence[int], payload: NotificationPayload) -> bool:
        """Notify ``member_ids`` in a single provider call; never raises."""

        outcome = await self._send(list(member_ids), payload)
        return outcome.success

    def build_request(self, member_ids: Sequence[int], payload: NotificationPayload) -> Dict[str, Any]:
        icon = payload.icon or self.default_icon
        return {
            "app_id": self.app_id,
            "include_external_user_ids": [logical_id(member_id) for member_id in member_ids],
            "headings": {"en": payload.title},
            "contents": {"en": payload.body},
            "url": payload.url,
            "icon": icon,
            "chrome_web_icon": icon,
        }

    async def _send(self, member_ids: List[int], payload: NotificationPayload) -> DeliveryOutcome:
        if not self.enabled:
            warn_disabled(self.name, "OneSignal app id or API key not configured")
            return DeliveryOutcome.transient(None, "hosted provider not configured")
        if not member_ids:
            logger.warning("No member ids provided for hosted push")
            return DeliveryOutcome.transient(None, "no recipients")

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._api_key}",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.api_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    "/notifications", json=self.build_request(member_ids, payload), headers=headers
                )
        except httpx.HTTPError as exc:
            logger.error("OneSignal request failed", error=f"{type(exc).__name__}: {exc}")
            return DeliveryOutcome.transient(None, f"{type(exc).__name__}: {exc}")

        body = preview(response.text, DETAIL_PREVIEW_CHARS)
        if not response.is_success:
            logger.error("OneSignal returned error", status=response.status_code, body=body)
            return DeliveryOutcome.transient(None, f"provider returned {response.status_code}", response.status_code)

        try:
            data = response.json()
        except ValueError:
            logger.error("OneSignal returned malformed response", status=response.status_code, body=body)
            return DeliveryOutcome.transient(None, "malformed provider response", response.status_code)

        if not isinstance(data, dict) or (data.get("errors") and not data.get("id")):
            logger.error("OneSignal rejected notification", status=response.status_code, body=body)
            return DeliveryOutcome.transient(None, "provider rejected notification", response.status_code)

        logger.info("OneSignal push sent", recipients=len(member_ids), notification_id=data.get("id"))
        return DeliveryOutcome.delivered(None, response.status_code)
