"""Remove subscriptions whose endpoint is permanently gone."""
from __future__ import annotations

import uuid

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from app.services.push.store import SubscriptionStore


class SubscriptionCleanup:
    """Delete dead endpoints reported by a channel's terminal failures."""

    def __init__(self, store: SubscriptionStore):
        self.store = store

    def on_terminal_failure(self, subscription_id: uuid.UUID) -> bool:
        """Delete the subscription; calling twice for the same id is harmless.

        Returns ``True`` when a row was actually removed.
        """

        try:
            removed = self.store.delete_by_id(subscription_id)
        except SQLAlchemyError as exc:
            self.store.db.rollback()
            logger.error(
                "Failed to remove expired push subscription",
                subscription_id=str(subscription_id),
                error=str(exc),
            )
            return False

        if removed:
            logger.info("Removed expired push subscription", subscription_id=str(subscription_id))
        return bool(removed)
