"""Interface shared by notification delivery channels."""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING, Any, List, Protocol, Sequence

from loguru import logger

from app.services.push.types import DeliveryOutcome, NotificationPayload

if TYPE_CHECKING:
    from app.services.push.store import SubscriptionStore


class DeliveryChannel(str, Enum):
    DIRECT = "direct"
    HOSTED = "hosted"


class NotificationChannel(Protocol):
    """A way of getting a payload onto members' devices.

    The dispatcher asks the channel which targets make up an audience, then
    delivers to every target independently.
    """

    name: str

    @property
    def enabled(self) -> bool:  # pragma: no cover - interface definition
        """Whether the channel has the configuration it needs."""

    def collect_targets(self, member_ids: Sequence[int], store: "SubscriptionStore") -> List[Any]:  # pragma: no cover - interface definition
        """Return the delivery units for ``member_ids``."""

    async def deliver(self, target: Any, payload: NotificationPayload) -> DeliveryOutcome:  # pragma: no cover - interface definition
        """Attempt delivery to one target. Must not raise for delivery failures."""

    def close(self) -> None:  # pragma: no cover - interface definition
        """Release resources held between deliveries."""


@lru_cache(maxsize=None)
def warn_disabled(channel: str, reason: str) -> None:
    """Log a channel misconfiguration once per process."""

    logger.warning("Push channel disabled", channel=channel, reason=reason)
