"""Durable registry of device push endpoints per member."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from loguru import logger
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models.push_subscription import PushSubscription
from app.services.push.types import preview
from app.utils.exceptions import ValidationError


_UPSERT_BUILDERS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SubscriptionStore:
    """Atomic single-row upserts and deletes keyed by endpoint or id."""

    def __init__(self, db: Session):
        self.db = db

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        builder = _UPSERT_BUILDERS.get(dialect)
        if builder is None:
            raise NotImplementedError(f"Subscription upsert is not supported on {dialect}")
        return builder(PushSubscription)

    def upsert(
        self,
        member_id: int,
        endpoint: str,
        auth_secret: str,
        encryption_key: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        """Register a device, or refresh its key material if the endpoint is known."""

        if not endpoint or not endpoint.strip():
            raise ValidationError("Endpoint required")
        if not auth_secret or not encryption_key:
            raise ValidationError("Subscription keys required", {"endpoint": preview(endpoint)})

        now = datetime.now(timezone.utc)
        stmt = self._insert().values(
            [
                {
                    "id": uuid.uuid4(),
                    "member_id": member_id,
                    "endpoint": endpoint,
                    "p256dh": encryption_key,
                    "auth": auth_secret,
                    "user_agent": user_agent[:255] if user_agent else None,
                    "created_at": now,
                    "updated_at": now,
                }
            ]
        )
        # Same device, possibly a different account logged in: follow the new owner
        stmt = stmt.on_conflict_do_update(
            index_elements=[PushSubscription.endpoint],
            set_={
                "member_id": stmt.excluded.member_id,
                "p256dh": stmt.excluded.p256dh,
                "auth": stmt.excluded.auth,
                "user_agent": stmt.excluded.user_agent,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        subscription = self.db.scalars(
            stmt.returning(PushSubscription),
            execution_options={"populate_existing": True},
        ).one()
        self.db.commit()

        logger.info(
            "Push subscription saved",
            member_id=member_id,
            subscription_id=str(subscription.id),
            endpoint=preview(endpoint),
        )
        return subscription

    def rotate_endpoint(
        self,
        old_endpoint: str,
        endpoint: str,
        auth_secret: str,
        encryption_key: str,
        user_agent: Optional[str] = None,
    ) -> Optional[PushSubscription]:
        """Move the row registered for ``old_endpoint`` to the endpoint the browser rotated to.

        Id, ``created_at`` and owning member are kept. Returns ``None`` when
        ``old_endpoint`` is unknown. If ``endpoint`` is already registered the
        stale row is dropped and the registered one takes the old owner.
        """

        if not old_endpoint or not old_endpoint.strip() or not endpoint or not endpoint.strip():
            raise ValidationError("Endpoint required")
        if not auth_secret or not encryption_key:
            raise ValidationError("Subscription keys required", {"endpoint": preview(endpoint)})

        values = {
            "endpoint": endpoint,
            "p256dh": encryption_key,
            "auth": auth_secret,
            "updated_at": datetime.now(timezone.utc),
        }
        if user_agent:
            values["user_agent"] = user_agent[:255]
        stmt = (
            update(PushSubscription)
            .where(PushSubscription.endpoint == old_endpoint)
            .values(**values)
            .returning(PushSubscription)
        )
        try:
            subscription = self.db.scalars(
                stmt,
                execution_options={"populate_existing": True},
            ).one_or_none()
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            owner = self.db.scalar(
                select(PushSubscription.member_id).where(PushSubscription.endpoint == old_endpoint)
            )
            if owner is None:
                return None
            self.delete_by_endpoint(old_endpoint)
            return self.upsert(owner, endpoint, auth_secret, encryption_key, user_agent)

        if subscription is None:
            logger.warning("Rotated push endpoint has no registered predecessor", endpoint=preview(old_endpoint))
            return None

        logger.info(
            "Push subscription endpoint rotated",
            member_id=subscription.member_id,
            subscription_id=str(subscription.id),
            endpoint=preview(endpoint),
        )
        return subscription

    def list_by_member_ids(self, member_ids: Iterable[int]) -> list[PushSubscription]:
        ids = set(member_ids)
        if not ids:
            return []
        stmt = select(PushSubscription).where(PushSubscription.member_id.in_(ids))
        return list(self.db.scalars(stmt))

    def list_for_member(self, member_id: int) -> list[PushSubscription]:
        stmt = (
            select(PushSubscription)
            .where(PushSubscription.member_id == member_id)
            .order_by(PushSubscription.created_at)
        )
        return list(self.db.scalars(stmt))

    def count_for_member(self, member_id: int) -> int:
        stmt = select(func.count()).select_from(PushSubscription).where(PushSubscription.member_id == member_id)
        return int(self.db.scalar(stmt) or 0)

    def delete_by_endpoint(self, endpoint: str, member_id: Optional[int] = None) -> int:
        """Remove the subscription for ``endpoint``; unknown endpoints are a no-op."""

        stmt = delete(PushSubscription).where(PushSubscription.endpoint == endpoint)
        if member_id is not None:
            stmt = stmt.where(PushSubscription.member_id == member_id)
        removed = self.db.execute(stmt, execution_options={"synchronize_session": False}).rowcount or 0
        self.db.commit()
        if removed:
            logger.info("Push subscription removed", endpoint=preview(endpoint), member_id=member_id)
        return removed

    def delete_by_id(self, subscription_id: uuid.UUID) -> int:
        stmt = delete(PushSubscription).where(PushSubscription.id == subscription_id)
        removed = self.db.execute(stmt, execution_options={"synchronize_session": False}).rowcount or 0
        self.db.commit()
        return removed

    def purge_invalid(self) -> int:
        """Delete rows that can never be delivered because key material is blank."""

        stmt = delete(PushSubscription).where(
            or_(
                PushSubscription.p256dh.is_(None),
                func.trim(PushSubscription.p256dh) == "",
                PushSubscription.auth.is_(None),
                func.trim(PushSubscription.auth) == "",
            )
        )
        removed = self.db.execute(stmt, execution_options={"synchronize_session": False}).rowcount or 0
        self.db.commit()
        if removed:
            logger.warning("Removed push subscriptions without key material", count=removed)
        return removed
